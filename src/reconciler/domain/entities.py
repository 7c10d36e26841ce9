"""Domain model entities for reconciler.

These are pure data classes representing business concepts, independent of
database schema. Services and the predicate evaluator only ever see these,
never the ORM rows.
"""

from dataclasses import dataclass, field
from datetime import datetime, date
from decimal import Decimal
from typing import Optional, Union

# Reconciliation status values
UNRECONCILED = "unreconciled"
PENDING_APPROVAL = "pending_approval"
APPROVED = "approved"
RECONCILED = "reconciled"
RECONCILIATION_STATUSES = (UNRECONCILED, PENDING_APPROVAL, APPROVED, RECONCILED)

# Pending match status values
MATCH_PENDING = "pending"
MATCH_APPROVED = "approved"
MATCH_REJECTED = "rejected"

TRANSACTION_SOURCES = ("manual", "starling", "mindbody", "csv")
TRANSACTION_TYPES = ("income", "expense")

MATCH_TYPES = (
    "vendor",
    "staff",
    "description",
    "amount",
    "regex",
    "composite",
    "counter_party",
    "conditions",
)

CONDITION_FIELDS = ("counter_party", "reference", "amount", "transaction_type")
CONDITION_OPERATORS = (
    "contains",
    "not_contains",
    "equals",
    "starts_with",
    "ends_with",
    "regex",
    "greater_than",
    "less_than",
    "between",
)


def transaction_type_for(amount: Decimal) -> str:
    """Classify an amount as income or expense by its sign."""
    return "expense" if amount < 0 else "income"


@dataclass(frozen=True)
class Category:
    """Category lookup entity."""

    id: int
    owner_id: str
    name: str
    created_at: datetime


@dataclass(frozen=True)
class Vendor:
    """Vendor lookup entity."""

    id: int
    owner_id: str
    name: str
    created_at: datetime


@dataclass(frozen=True)
class Staff:
    """Staff lookup entity."""

    id: int
    owner_id: str
    name: str
    role: str
    created_at: datetime


@dataclass(frozen=True)
class Transaction:
    """Financial ledger entry domain entity."""

    id: int
    owner_id: str
    date: date
    amount: Decimal
    description: Optional[str]
    raw_party: Optional[str]
    source: str
    category_id: Optional[int] = None
    vendor_id: Optional[int] = None
    staff_id: Optional[int] = None
    linked_payable_id: Optional[int] = None
    bill_id: Optional[int] = None
    debt_id: Optional[int] = None
    notes: Optional[str] = None
    confirmed: bool = False
    reconciliation_status: str = UNRECONCILED
    matched_rule_id: Optional[int] = None
    reconciled_at: Optional[datetime] = None
    reconciled_by: Optional[str] = None
    external_id: Optional[str] = None
    import_hash: Optional[str] = None
    created_at: Optional[datetime] = None

    @property
    def type(self) -> str:
        """Income or expense, derived from the amount sign."""
        return transaction_type_for(self.amount)


@dataclass(frozen=True)
class Condition:
    """One structured clause of a ``conditions`` rule."""

    field: str
    operator: str
    value: Union[str, int, float, Decimal]
    value2: Optional[Union[int, float, Decimal]] = None

    def to_dict(self) -> dict:
        """Return a JSON-serializable representation."""
        data = {"field": self.field, "operator": self.operator, "value": _plain(self.value)}
        if self.value2 is not None:
            data["value2"] = _plain(self.value2)
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Condition":
        """Build a condition from its stored representation."""
        return cls(
            field=data.get("field", ""),
            operator=data.get("operator", ""),
            value=data.get("value", ""),
            value2=data.get("value2"),
        )


def _plain(value):
    if isinstance(value, Decimal):
        return str(value)
    return value


@dataclass(frozen=True)
class Rule:
    """User-defined matching rule with its suggested action."""

    id: Optional[int]
    owner_id: str
    name: str
    match_type: str
    priority: int = 100
    description: Optional[str] = None
    conditions: tuple[Condition, ...] = ()
    match_vendor_id: Optional[int] = None
    match_staff_id: Optional[int] = None
    match_description_pattern: Optional[str] = None
    match_counter_party_pattern: Optional[str] = None
    match_amount_min: Optional[Decimal] = None
    match_amount_max: Optional[Decimal] = None
    match_transaction_type: Optional[str] = None
    action_category_id: Optional[int] = None
    action_staff_id: Optional[int] = None
    action_vendor_id: Optional[int] = None
    action_notes_template: Optional[str] = None
    is_active: bool = True
    requires_approval: bool = True
    match_count: int = 0
    last_matched_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass(frozen=True)
class PendingMatch:
    """A proposed categorization for one transaction."""

    id: Optional[int]
    owner_id: str
    transaction_id: int
    rule_id: Optional[int]
    suggested_category_id: Optional[int]
    suggested_staff_id: Optional[int] = None
    suggested_vendor_id: Optional[int] = None
    suggested_notes: Optional[str] = None
    match_confidence: float = 1.0
    status: str = MATCH_PENDING
    created_at: Optional[datetime] = None
    reviewed_at: Optional[datetime] = None

    @property
    def is_manual(self) -> bool:
        return self.rule_id is None


@dataclass(frozen=True)
class PendingMatchView:
    """Pending match joined with its transaction, rule and category for display."""

    match: PendingMatch
    transaction: Optional[Transaction]
    rule: Optional[Rule]
    suggested_category: Optional[Category]

    @property
    def was_already_reconciled(self) -> bool:
        if self.transaction is None:
            return False
        return self.transaction.confirmed or self.transaction.reconciliation_status == RECONCILED

    @property
    def is_stale(self) -> bool:
        """True when a sibling match has already resolved the transaction."""
        if self.transaction is None:
            return False
        return self.transaction.reconciliation_status == APPROVED


@dataclass(frozen=True)
class MatchGroup:
    """Pending matches sharing an originating rule."""

    rule_id: Optional[int]
    rule_name: str
    rule_description: Optional[str]
    matches: tuple[PendingMatchView, ...]

    @property
    def match_ids(self) -> list[int]:
        return [view.match.id for view in self.matches]


@dataclass(frozen=True)
class RuleView:
    """Rule joined with vendor, staff and category display names."""

    rule: Rule
    match_vendor_name: Optional[str]
    match_staff_name: Optional[str]
    action_category_name: Optional[str]


@dataclass(frozen=True)
class RulePreview:
    """Dry-run result of evaluating a rule against unreconciled transactions."""

    match_count: int
    sample_matches: tuple[Transaction, ...]


@dataclass(frozen=True)
class MatchRunResult:
    """Counters reported by one matching engine run."""

    processed: int = 0
    matched: int = 0
    already_reconciled: int = 0


@dataclass(frozen=True)
class BulkResult:
    """Aggregate outcome of a bulk approve or reject."""

    succeeded: int
    failed: int
    errors: dict[int, str] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return self.failed == 0


@dataclass(frozen=True)
class DuplicateGroup:
    """Transactions sharing (date, amount, description, counterparty, source)."""

    transaction_date: date
    amount: Decimal
    description: Optional[str]
    raw_party: Optional[str]
    source: str
    transaction_ids: tuple[int, ...]
    keep_id: int
    delete_ids: tuple[int, ...]

    @property
    def count(self) -> int:
        return len(self.transaction_ids)


@dataclass(frozen=True)
class DuplicateCheckResult:
    """Result of a duplicate scan."""

    duplicate_groups: tuple[DuplicateGroup, ...]

    @property
    def total_groups(self) -> int:
        return len(self.duplicate_groups)

    @property
    def total_duplicate_rows(self) -> int:
        return sum(len(group.delete_ids) for group in self.duplicate_groups)


@dataclass(frozen=True)
class CleanupResult:
    """Result of deleting duplicate transactions."""

    deleted_ids: tuple[int, ...]
    skipped_linked_ids: tuple[int, ...] = ()

    @property
    def deleted_count(self) -> int:
        return len(self.deleted_ids)


@dataclass(frozen=True)
class IdentityDuplicate:
    """Several transactions sharing one external id or import hash."""

    key: str
    ids: tuple[int, ...]

    @property
    def count(self) -> int:
        return len(self.ids)
