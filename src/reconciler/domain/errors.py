"""Shared domain error messages and error types."""


class DomainError(ValueError):
    """Base class for domain-level errors.

    Subclasses provide semantic categories while preserving ValueError
    compatibility for existing error handling.
    """


class ValidationError(DomainError):
    """Invalid input or failed validation in domain logic."""


class NotFoundError(DomainError):
    """Requested domain entity does not exist for the owner."""


class ConflictError(DomainError):
    """Domain conflict, such as uniqueness violations or stale state."""


class DependencyError(DomainError):
    """Operation blocked due to dependent domain data."""


class UnauthorizedError(DomainError):
    """No owner context was supplied for an owner-scoped operation."""


class MissingCategoryError(DomainError):
    """Approval attempted without a category on the suggestion or override."""


class StorageError(RuntimeError):
    """Backend read or write failure.

    Raised by the database layer after the session has been rolled back.
    """


def require_owner(owner_id: str | None) -> str:
    """Return the owner id or raise UnauthorizedError if it is missing."""
    if not owner_id:
        raise UnauthorizedError("Unauthorized: no owner context")
    return owner_id


def rule_not_found(rule_id: int) -> str:
    """Return message for missing rule."""
    return f"Rule {rule_id} not found"


def match_not_found(match_id: int) -> str:
    """Return message for missing pending match."""
    return f"Match {match_id} not found"


def transaction_not_found(transaction_id: int) -> str:
    """Return message for missing transaction."""
    return f"Transaction {transaction_id} not found"


def category_not_found(category_id: int) -> str:
    """Return message for missing category by ID."""
    return f"Category {category_id} not found"


def vendor_not_found(vendor_id: int) -> str:
    """Return message for missing vendor by ID."""
    return f"Vendor {vendor_id} not found"


def staff_not_found(staff_id: int) -> str:
    """Return message for missing staff member by ID."""
    return f"Staff {staff_id} not found"


def missing_category(match_id: int) -> str:
    """Return message when a match cannot be approved without a category."""
    return f"Cannot approve match {match_id}: no suggested category found"


def match_already_reviewed(match_id: int, status: str) -> str:
    """Return message when a match has already left the pending state."""
    return f"Match {match_id} is already {status}"


def duplicate_external_id(external_id: str, source: str) -> str:
    """Return message for a duplicate bank feed identity."""
    return f"Transaction with external_id '{external_id}' already exists for source '{source}'"
