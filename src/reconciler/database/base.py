"""Abstract database interface."""

from abc import ABC, abstractmethod
from typing import Optional
from datetime import date, datetime
from decimal import Decimal

# Import entities directly to avoid circular import through domain/__init__.py
from reconciler.domain.entities import (
    Category,
    Vendor,
    Staff,
    Transaction,
    Rule,
    PendingMatch,
)


class Database(ABC):
    """Abstract database interface for reconciler.

    Every operation is scoped to an owner; rows belonging to other owners are
    invisible. Implementations raise ``StorageError`` on backend failures.
    """

    @abstractmethod
    def connect(self) -> None:
        """Connect to the database."""
        pass

    @abstractmethod
    def disconnect(self) -> None:
        """Disconnect from the database."""
        pass

    @abstractmethod
    def initialize_schema(self) -> None:
        """Initialize database schema (create tables)."""
        pass

    # Lookup operations
    @abstractmethod
    def create_category(self, owner_id: str, name: str) -> int:
        """Create a category. Returns category ID."""
        pass

    @abstractmethod
    def get_category(self, owner_id: str, category_id: int) -> Optional[Category]:
        """Get category by ID."""
        pass

    @abstractmethod
    def list_categories(self, owner_id: str, ids: Optional[list[int]] = None) -> list[Category]:
        """List categories, optionally restricted to the given IDs."""
        pass

    @abstractmethod
    def create_vendor(self, owner_id: str, name: str) -> int:
        """Create a vendor. Returns vendor ID."""
        pass

    @abstractmethod
    def get_vendor(self, owner_id: str, vendor_id: int) -> Optional[Vendor]:
        """Get vendor by ID."""
        pass

    @abstractmethod
    def list_vendors(self, owner_id: str) -> list[Vendor]:
        """List vendors."""
        pass

    @abstractmethod
    def create_staff(self, owner_id: str, name: str, role: str = "staff") -> int:
        """Create a staff member. Returns staff ID."""
        pass

    @abstractmethod
    def get_staff(self, owner_id: str, staff_id: int) -> Optional[Staff]:
        """Get staff member by ID."""
        pass

    @abstractmethod
    def list_staff(self, owner_id: str) -> list[Staff]:
        """List staff members."""
        pass

    # Transaction operations
    @abstractmethod
    def create_transaction(
        self,
        owner_id: str,
        transaction_date: date,
        amount: Decimal,
        description: Optional[str] = None,
        raw_party: Optional[str] = None,
        source: str = "manual",
        external_id: Optional[str] = None,
        import_hash: Optional[str] = None,
        category_id: Optional[int] = None,
        vendor_id: Optional[int] = None,
        staff_id: Optional[int] = None,
        notes: Optional[str] = None,
        confirmed: bool = False,
        reconciliation_status: str = "unreconciled",
        linked_payable_id: Optional[int] = None,
        bill_id: Optional[int] = None,
        debt_id: Optional[int] = None,
    ) -> int:
        """Create a transaction. Returns transaction ID."""
        pass

    @abstractmethod
    def get_transaction(self, owner_id: str, transaction_id: int) -> Optional[Transaction]:
        """Get transaction by ID."""
        pass

    @abstractmethod
    def get_transactions(self, owner_id: str, transaction_ids: list[int]) -> list[Transaction]:
        """Get the transactions with the given IDs."""
        pass

    @abstractmethod
    def external_id_exists(self, owner_id: str, source: str, external_id: str) -> bool:
        """Check if a transaction with given external_id exists for source."""
        pass

    @abstractmethod
    def list_transactions(
        self, owner_id: str, reconciliation_status: Optional[str] = None
    ) -> list[Transaction]:
        """List transactions, newest first, optionally filtered by status."""
        pass

    @abstractmethod
    def list_transaction_batch(
        self, owner_id: str, offset: int, limit: int, unreconciled_only: bool = True
    ) -> list[Transaction]:
        """Fetch one page of transactions in stable ID order."""
        pass

    @abstractmethod
    def list_transactions_without_external_id(self, owner_id: str) -> list[Transaction]:
        """List transactions that did not come from an authoritative bank feed."""
        pass

    @abstractmethod
    def list_external_ids(self, owner_id: str) -> list[tuple[int, str]]:
        """Return (transaction ID, external_id) pairs for all non-null external IDs."""
        pass

    @abstractmethod
    def list_import_hashes(self, owner_id: str) -> list[tuple[int, str]]:
        """Return (transaction ID, import_hash) pairs for all non-null import hashes."""
        pass

    @abstractmethod
    def update_transaction_status(self, owner_id: str, transaction_id: int, status: str) -> None:
        """Set a transaction's reconciliation status."""
        pass

    @abstractmethod
    def add_payable_link(self, owner_id: str, transaction_id: int, payable_id: int) -> int:
        """Link a payable to a transaction. Returns link ID."""
        pass

    @abstractmethod
    def get_payable_linked_ids(self, owner_id: str, transaction_ids: list[int]) -> set[int]:
        """Return the subset of transaction IDs that have payable link rows."""
        pass

    @abstractmethod
    def delete_transactions(self, owner_id: str, transaction_ids: list[int]) -> list[int]:
        """Delete transactions. Returns the IDs actually deleted."""
        pass

    # Rule operations
    @abstractmethod
    def create_rule(self, rule: Rule) -> int:
        """Persist a new rule. Returns rule ID."""
        pass

    @abstractmethod
    def get_rule(self, owner_id: str, rule_id: int) -> Optional[Rule]:
        """Get rule by ID."""
        pass

    @abstractmethod
    def list_rules(
        self, owner_id: str, active_only: bool = False, ids: Optional[list[int]] = None
    ) -> list[Rule]:
        """List rules ordered by priority ascending, ties by ID."""
        pass

    @abstractmethod
    def update_rule(self, rule: Rule) -> None:
        """Overwrite a rule's editable fields."""
        pass

    @abstractmethod
    def delete_rule(self, owner_id: str, rule_id: int) -> None:
        """Delete a rule, detaching its historical matches."""
        pass

    # Pending match operations
    @abstractmethod
    def save_match_results(
        self,
        owner_id: str,
        candidates: list[PendingMatch],
        pending_transaction_ids: list[int],
        rule_match_counts: dict[int, int],
        matched_at: datetime,
        upsert_batch_size: int = 500,
        status_batch_size: int = 100,
    ) -> None:
        """Persist one engine run atomically.

        Upserts candidates on (transaction_id, rule_id), moves the given
        transactions to ``pending_approval`` and bumps rule telemetry.
        """
        pass

    @abstractmethod
    def create_pending_match(self, match: PendingMatch) -> int:
        """Queue a match, reusing the open row for its (transaction, rule) key. Returns match ID."""
        pass

    @abstractmethod
    def get_pending_match(self, owner_id: str, match_id: int) -> Optional[PendingMatch]:
        """Get pending match by ID."""
        pass

    @abstractmethod
    def list_pending_matches(
        self, owner_id: str, status: Optional[str] = "pending", rule_id: Optional[int] = None
    ) -> list[PendingMatch]:
        """List matches, newest first, filtered by status and/or rule."""
        pass

    @abstractmethod
    def count_pending_matches(self, owner_id: str) -> int:
        """Count matches awaiting review."""
        pass

    @abstractmethod
    def apply_approval(
        self,
        owner_id: str,
        match_id: int,
        category_id: int,
        notes: Optional[str],
        staff_id: Optional[int],
        vendor_id: Optional[int],
        reviewed_at: datetime,
    ) -> None:
        """Write an approved categorization to the transaction and close the match."""
        pass

    @abstractmethod
    def apply_rejection(self, owner_id: str, match_id: int, reviewed_at: datetime) -> None:
        """Return the transaction to the unreconciled pool and close the match."""
        pass
