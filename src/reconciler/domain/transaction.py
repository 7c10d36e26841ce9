"""Transaction domain service."""

from typing import Optional
from datetime import date
from decimal import Decimal
from reconciler.database.base import Database
from reconciler.domain.entities import (
    RECONCILIATION_STATUSES,
    TRANSACTION_SOURCES,
    UNRECONCILED,
    Transaction as TransactionEntity,
)
from reconciler.domain.errors import (
    ConflictError,
    NotFoundError,
    ValidationError,
    duplicate_external_id,
    require_owner,
    transaction_not_found,
)
from reconciler.domain.lookups import LookupService


class TransactionService:
    """Service for recording raw transactions handed over by the sync collaborators."""

    def __init__(self, db: Database):
        """Initialize transaction service.

        Args:
            db: Database instance
        """
        self.db = db
        self.lookups = LookupService(db)

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
        reconciliation_status: str = UNRECONCILED,
        linked_payable_id: Optional[int] = None,
        bill_id: Optional[int] = None,
        debt_id: Optional[int] = None,
    ) -> int:
        """Create a transaction.

        Args:
            owner_id: Owner the transaction belongs to
            transaction_date: Booking date
            amount: Signed amount (positive income, negative expense)
            description: Bank reference / free text
            raw_party: Counterparty name as reported by the bank
            source: One of manual, starling, mindbody, csv
            external_id: Bank feed identity, unique per source
            import_hash: Re-import dedup key

        Returns:
            Transaction ID

        Raises:
            ValidationError: If source or status is unknown
            ConflictError: If external_id already exists for the source
            NotFoundError: If a referenced category, vendor or staff member is missing
        """
        require_owner(owner_id)
        if source not in TRANSACTION_SOURCES:
            raise ValidationError(
                f"Unknown source '{source}'. Expected one of: {', '.join(TRANSACTION_SOURCES)}"
            )
        if reconciliation_status not in RECONCILIATION_STATUSES:
            raise ValidationError(f"Unknown reconciliation status '{reconciliation_status}'")

        if external_id and self.db.external_id_exists(owner_id, source, external_id):
            raise ConflictError(duplicate_external_id(external_id, source))

        self.lookups.verify_references(
            owner_id, category_id=category_id, vendor_id=vendor_id, staff_id=staff_id
        )

        return self.db.create_transaction(
            owner_id=owner_id,
            transaction_date=transaction_date,
            amount=Decimal(str(amount)),
            description=description,
            raw_party=raw_party,
            source=source,
            external_id=external_id or None,
            import_hash=import_hash or None,
            category_id=category_id,
            vendor_id=vendor_id,
            staff_id=staff_id,
            notes=notes,
            confirmed=confirmed,
            reconciliation_status=reconciliation_status,
            linked_payable_id=linked_payable_id,
            bill_id=bill_id,
            debt_id=debt_id,
        )

    def get_transaction(self, owner_id: str, transaction_id: int) -> Optional[TransactionEntity]:
        """Get transaction by ID, or None if not found."""
        require_owner(owner_id)
        return self.db.get_transaction(owner_id, transaction_id)

    def list_transactions(
        self, owner_id: str, reconciliation_status: Optional[str] = None
    ) -> list[TransactionEntity]:
        """List transactions, newest first.

        Args:
            owner_id: Owner to list for
            reconciliation_status: Optional status filter
        """
        require_owner(owner_id)
        if reconciliation_status is not None and reconciliation_status not in RECONCILIATION_STATUSES:
            raise ValidationError(f"Unknown reconciliation status '{reconciliation_status}'")
        return self.db.list_transactions(owner_id, reconciliation_status=reconciliation_status)

    def link_payable(self, owner_id: str, transaction_id: int, payable_id: int) -> int:
        """Record that a payable was settled by this transaction.

        Linked transactions are never removed by duplicate cleanup.

        Raises:
            NotFoundError: If the transaction doesn't exist
        """
        require_owner(owner_id)
        if self.db.get_transaction(owner_id, transaction_id) is None:
            raise NotFoundError(transaction_not_found(transaction_id))
        return self.db.add_payable_link(owner_id, transaction_id, payable_id)
