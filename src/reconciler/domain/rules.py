"""Rule domain service."""

import dataclasses
import re
from datetime import datetime, UTC
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Optional, Union

from reconciler.database.base import Database
from reconciler.domain.entities import (
    CONDITION_FIELDS,
    CONDITION_OPERATORS,
    MATCH_TYPES,
    TRANSACTION_TYPES,
    Condition,
    Rule,
    RulePreview,
    RuleView,
)
from reconciler.domain.errors import (
    NotFoundError,
    ValidationError,
    require_owner,
    rule_not_found,
)
from reconciler.domain.lookups import LookupService
from reconciler.domain.matching import iter_transactions
from reconciler.domain.predicate import matches

PREVIEW_SAMPLE_SIZE = 20

# Fields a caller may change through update_rule
EDITABLE_FIELDS = frozenset(
    f.name
    for f in dataclasses.fields(Rule)
    if f.name not in {"id", "owner_id", "match_count", "last_matched_at", "created_at", "updated_at"}
)

# Operators that make sense for each condition field
_TEXT_OPERATORS = ("contains", "not_contains", "equals", "starts_with", "ends_with", "regex")
_FIELD_OPERATORS = {
    "counter_party": _TEXT_OPERATORS,
    "reference": _TEXT_OPERATORS,
    "amount": ("equals", "greater_than", "less_than", "between"),
    "transaction_type": ("equals",),
}

ConditionInput = Union[Condition, dict[str, Any]]


class RuleService:
    """Service for managing reconciliation rules."""

    def __init__(self, db: Database):
        """Initialize rule service.

        Args:
            db: Database instance
        """
        self.db = db
        self.lookups = LookupService(db)

    def create_rule(
        self,
        owner_id: str,
        name: str,
        match_type: str,
        description: Optional[str] = None,
        priority: int = 100,
        conditions: Optional[Iterable[ConditionInput]] = None,
        match_vendor_id: Optional[int] = None,
        match_staff_id: Optional[int] = None,
        match_description_pattern: Optional[str] = None,
        match_counter_party_pattern: Optional[str] = None,
        match_amount_min: Optional[Union[Decimal, int, float, str]] = None,
        match_amount_max: Optional[Union[Decimal, int, float, str]] = None,
        match_transaction_type: Optional[str] = None,
        action_category_id: Optional[int] = None,
        action_staff_id: Optional[int] = None,
        action_vendor_id: Optional[int] = None,
        action_notes_template: Optional[str] = None,
        requires_approval: bool = True,
    ) -> int:
        """Create a rule.

        New rules are active. Lower priority numbers are evaluated first.

        Returns:
            Rule ID

        Raises:
            ValidationError: If the rule definition is incomplete or malformed
            NotFoundError: If a referenced vendor, staff member or category is missing
        """
        require_owner(owner_id)
        rule = build_rule(
            owner_id,
            name=name,
            match_type=match_type,
            description=description,
            priority=priority,
            conditions=conditions,
            match_vendor_id=match_vendor_id,
            match_staff_id=match_staff_id,
            match_description_pattern=match_description_pattern,
            match_counter_party_pattern=match_counter_party_pattern,
            match_amount_min=match_amount_min,
            match_amount_max=match_amount_max,
            match_transaction_type=match_transaction_type,
            action_category_id=action_category_id,
            action_staff_id=action_staff_id,
            action_vendor_id=action_vendor_id,
            action_notes_template=action_notes_template,
            requires_approval=requires_approval,
        )
        self._verify_references(rule)
        return self.db.create_rule(rule)

    def get_rule(self, owner_id: str, rule_id: int) -> Optional[Rule]:
        """Get rule by ID, or None if not found."""
        require_owner(owner_id)
        return self.db.get_rule(owner_id, rule_id)

    def require_rule(self, owner_id: str, rule_id: int) -> Rule:
        """Get rule by ID.

        Raises:
            NotFoundError: If the rule doesn't exist
        """
        rule = self.get_rule(owner_id, rule_id)
        if rule is None:
            raise NotFoundError(rule_not_found(rule_id))
        return rule

    def list_rules(self, owner_id: str, active_only: bool = False) -> list[Rule]:
        """List rules in evaluation order (priority ascending)."""
        require_owner(owner_id)
        return self.db.list_rules(owner_id, active_only=active_only)

    def list_rule_views(self, owner_id: str) -> list[RuleView]:
        """List rules with vendor, staff and category names resolved for display.

        References to rows that no longer exist are shown as "Unknown".
        """
        rules = self.list_rules(owner_id)
        if not rules:
            return []

        vendors = {v.id: v.name for v in self.db.list_vendors(owner_id)}
        staff = {s.id: s.name for s in self.db.list_staff(owner_id)}
        categories = {c.id: c.name for c in self.db.list_categories(owner_id)}

        def name_for(lookup: dict[int, str], ref_id: Optional[int]) -> Optional[str]:
            if ref_id is None:
                return None
            return lookup.get(ref_id, "Unknown")

        return [
            RuleView(
                rule=rule,
                match_vendor_name=name_for(vendors, rule.match_vendor_id),
                match_staff_name=name_for(staff, rule.match_staff_id),
                action_category_name=name_for(categories, rule.action_category_id),
            )
            for rule in rules
        ]

    def update_rule(self, owner_id: str, rule_id: int, **changes: Any) -> Rule:
        """Update selected fields of a rule.

        Args:
            owner_id: Owner of the rule
            rule_id: Rule to update
            **changes: Field values to replace (see EDITABLE_FIELDS)

        Returns:
            The updated rule

        Raises:
            NotFoundError: If the rule doesn't exist
            ValidationError: If a field is unknown or the result is invalid
        """
        rule = self.require_rule(owner_id, rule_id)

        unknown = sorted(set(changes) - EDITABLE_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown rule field(s): {', '.join(unknown)}")

        if "conditions" in changes:
            changes["conditions"] = normalize_conditions(changes["conditions"])
        for amount_field in ("match_amount_min", "match_amount_max"):
            if amount_field in changes:
                changes[amount_field] = _to_amount(changes[amount_field], amount_field)
        _blank_to_none(changes)

        updated = dataclasses.replace(rule, updated_at=datetime.now(UTC), **changes)
        validate_rule(updated)
        self._verify_references(updated)
        self.db.update_rule(updated)
        return updated

    def toggle_rule_active(self, owner_id: str, rule_id: int, is_active: bool) -> Rule:
        """Enable or disable a rule without touching its definition."""
        return self.update_rule(owner_id, rule_id, is_active=is_active)

    def delete_rule(self, owner_id: str, rule_id: int) -> None:
        """Delete a rule.

        Pending matches it produced are kept and lose their rule reference.

        Raises:
            NotFoundError: If the rule doesn't exist
        """
        self.require_rule(owner_id, rule_id)
        self.db.delete_rule(owner_id, rule_id)

    def preview_rule(self, owner_id: str, draft: Rule) -> RulePreview:
        """Evaluate an unsaved rule against unreconciled transactions.

        Nothing is written. Returns the number of matches and the first few
        matching transactions.
        """
        require_owner(owner_id)
        count = 0
        samples = []
        for batch in iter_transactions(self.db, owner_id, unreconciled_only=True):
            for transaction in batch:
                if matches(draft, transaction):
                    count += 1
                    if len(samples) < PREVIEW_SAMPLE_SIZE:
                        samples.append(transaction)
        return RulePreview(match_count=count, sample_matches=tuple(samples))

    def test_rule(self, owner_id: str, rule_id: int) -> RulePreview:
        """Preview what a stored rule would match right now."""
        return self.preview_rule(owner_id, self.require_rule(owner_id, rule_id))

    def _verify_references(self, rule: Rule) -> None:
        self.lookups.verify_references(
            rule.owner_id, vendor_id=rule.match_vendor_id, staff_id=rule.match_staff_id
        )
        self.lookups.verify_references(
            rule.owner_id,
            category_id=rule.action_category_id,
            vendor_id=rule.action_vendor_id,
            staff_id=rule.action_staff_id,
        )


def normalize_conditions(conditions: Optional[Iterable[ConditionInput]]) -> tuple[Condition, ...]:
    """Convert condition dicts to Condition entities."""
    if not conditions:
        return ()
    result = []
    for cond in conditions:
        if isinstance(cond, Condition):
            result.append(cond)
        elif isinstance(cond, dict):
            result.append(Condition.from_dict(cond))
        else:
            raise ValidationError(f"Invalid condition: {cond!r}")
    return tuple(result)


def validate_rule(rule: Rule) -> None:
    """Check a rule definition for completeness and consistency.

    Raises:
        ValidationError: Describing the first problem found
    """
    if not (rule.name or "").strip():
        raise ValidationError("Rule name cannot be empty")
    if rule.match_type not in MATCH_TYPES:
        raise ValidationError(
            f"Unknown match type '{rule.match_type}'. Expected one of: {', '.join(MATCH_TYPES)}"
        )
    if rule.match_transaction_type is not None and rule.match_transaction_type not in TRANSACTION_TYPES:
        raise ValidationError(
            f"Unknown transaction type '{rule.match_transaction_type}'. Expected income or expense"
        )
    if (
        rule.match_amount_min is not None
        and rule.match_amount_max is not None
        and rule.match_amount_min > rule.match_amount_max
    ):
        raise ValidationError("match_amount_min cannot be greater than match_amount_max")

    if rule.match_type == "vendor" and rule.match_vendor_id is None:
        raise ValidationError("Vendor rules require match_vendor_id")
    if rule.match_type == "staff" and rule.match_staff_id is None:
        raise ValidationError("Staff rules require match_staff_id")
    if rule.match_type in ("description", "regex") and not rule.match_description_pattern:
        raise ValidationError(f"{rule.match_type.capitalize()} rules require match_description_pattern")
    if rule.match_type == "counter_party" and not rule.match_counter_party_pattern:
        raise ValidationError("Counter party rules require match_counter_party_pattern")

    # Every type except plain description treats the pattern as a regex
    if rule.match_description_pattern and rule.match_type != "description":
        _validate_regex(rule.match_description_pattern)

    for cond in rule.conditions:
        _validate_condition(cond)


def _validate_condition(cond: Condition) -> None:
    if cond.field not in CONDITION_FIELDS:
        raise ValidationError(
            f"Unknown condition field '{cond.field}'. Expected one of: {', '.join(CONDITION_FIELDS)}"
        )
    if cond.operator not in CONDITION_OPERATORS:
        raise ValidationError(f"Unknown condition operator '{cond.operator}'")
    if cond.operator not in _FIELD_OPERATORS[cond.field]:
        raise ValidationError(f"Operator '{cond.operator}' cannot be used with field '{cond.field}'")
    if cond.field == "amount":
        low = _to_amount(cond.value, "condition value")
        if low is None:
            raise ValidationError("Amount conditions require a value")
        if cond.value2 is not None:
            high = _to_amount(cond.value2, "condition value2")
            if high is not None and high < low:
                raise ValidationError("Condition value2 cannot be less than value")
    elif cond.field == "transaction_type":
        if str(cond.value).lower() not in TRANSACTION_TYPES:
            raise ValidationError("Transaction type conditions require 'income' or 'expense'")
    elif cond.operator == "regex":
        _validate_regex(str(cond.value))


def _validate_regex(pattern: str) -> None:
    try:
        re.compile(pattern)
    except re.error as e:
        raise ValidationError(f"Invalid regular expression '{pattern}': {e}")


def _to_amount(value: Any, label: str) -> Optional[Decimal]:
    if value is None or value == "":
        return None
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"Invalid amount for {label}: {value!r}")
    if not amount.is_finite():
        raise ValidationError(f"Invalid amount for {label}: {value!r}")
    return amount


def build_rule(
    owner_id: str,
    name: str,
    match_type: str,
    conditions: Optional[Iterable[ConditionInput]] = None,
    match_amount_min: Any = None,
    match_amount_max: Any = None,
    **fields: Any,
) -> Rule:
    """Build and validate an unsaved, active rule.

    Empty strings for pattern/text fields are treated as unset.

    Raises:
        ValidationError: If the definition is invalid
    """
    _blank_to_none(fields)
    now = datetime.now(UTC)
    try:
        rule = Rule(
            id=None,
            owner_id=owner_id,
            name=name,
            match_type=match_type,
            conditions=normalize_conditions(conditions),
            match_amount_min=_to_amount(match_amount_min, "match_amount_min"),
            match_amount_max=_to_amount(match_amount_max, "match_amount_max"),
            is_active=True,
            created_at=now,
            updated_at=now,
            **fields,
        )
    except TypeError as e:
        raise ValidationError(f"Invalid rule definition: {e}")
    validate_rule(rule)
    return rule


def _blank_to_none(fields: dict[str, Any]) -> None:
    for text_field in (
        "match_description_pattern",
        "match_counter_party_pattern",
        "match_transaction_type",
        "action_notes_template",
    ):
        if text_field in fields:
            fields[text_field] = fields[text_field] or None
