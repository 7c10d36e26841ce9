"""Rule predicate evaluation.

``matches`` decides whether a rule applies to a transaction. It is pure and
total: malformed patterns or conditions evaluate to ``False`` instead of
raising, so one bad rule can never abort a matching run.
"""

import re
from decimal import Decimal, InvalidOperation
from typing import Optional

from reconciler.domain.entities import Condition, Rule, Transaction, transaction_type_for


def matches(rule: Rule, transaction: Transaction) -> bool:
    """Return True if the transaction satisfies the rule's match criteria."""
    # Income/expense pre-filter applies to every match type
    if rule.match_transaction_type and rule.match_transaction_type != transaction.type:
        return False

    description = transaction.description or ""
    pattern = rule.match_description_pattern or ""
    match_type = rule.match_type

    if match_type == "vendor":
        if rule.match_vendor_id is None or transaction.vendor_id != rule.match_vendor_id:
            return False
        return _match_text(description, pattern, regex=True)

    if match_type == "staff":
        if rule.match_staff_id is None or transaction.staff_id != rule.match_staff_id:
            return False
        return _match_text(description, pattern, regex=True)

    if match_type == "counter_party":
        return _match_counter_party(transaction.raw_party, rule.match_counter_party_pattern)

    if match_type in ("description", "regex"):
        return _match_text(description, pattern, regex=match_type == "regex")

    if match_type == "amount":
        return _within_bounds(abs(transaction.amount), rule.match_amount_min, rule.match_amount_max)

    if match_type == "composite":
        if rule.match_vendor_id is not None and transaction.vendor_id != rule.match_vendor_id:
            return False
        if rule.match_staff_id is not None and transaction.staff_id != rule.match_staff_id:
            return False
        if pattern and not _match_text(description, pattern, regex=True):
            return False
        return _within_bounds(abs(transaction.amount), rule.match_amount_min, rule.match_amount_max)

    if match_type == "conditions":
        if not rule.conditions:
            return False
        return all(_condition_holds(cond, transaction) for cond in rule.conditions)

    return False


def _match_text(text: str, pattern: str, regex: bool) -> bool:
    # An unset pattern places no constraint on the text
    if not pattern:
        return True
    if regex:
        return _regex_search(pattern, text)
    return pattern.lower() in text.lower()


def _regex_search(pattern: str, text: str) -> bool:
    try:
        return re.search(pattern, text, re.IGNORECASE) is not None
    except re.error:
        return False


def _match_counter_party(raw_party: Optional[str], pattern: Optional[str]) -> bool:
    party = (raw_party or "").lower()
    wanted = (pattern or "").lower()
    if not party or not wanted:
        return False
    return wanted in party or party in wanted


def _within_bounds(value: Decimal, minimum: Optional[Decimal], maximum: Optional[Decimal]) -> bool:
    if minimum is not None and value < Decimal(str(minimum)):
        return False
    if maximum is not None and value > Decimal(str(maximum)):
        return False
    return True


def _to_decimal(value) -> Optional[Decimal]:
    if value is None or isinstance(value, bool):
        return None
    try:
        result = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    if not result.is_finite():
        return None
    return result


def _condition_holds(cond: Condition, transaction: Transaction) -> bool:
    if cond.field == "amount":
        return _amount_condition_holds(cond, abs(transaction.amount))

    if cond.field == "transaction_type":
        wants_expense = str(cond.value).lower() == "expense"
        return (transaction_type_for(transaction.amount) == "expense") == wants_expense

    if cond.field == "counter_party":
        field_value = (transaction.raw_party or "").lower()
    elif cond.field == "reference":
        field_value = (transaction.description or "").lower()
    else:
        return False

    wanted = str(cond.value).lower()
    operator = cond.operator
    if operator == "contains":
        return wanted in field_value
    if operator == "not_contains":
        return wanted not in field_value
    if operator == "equals":
        return field_value == wanted
    if operator == "starts_with":
        return field_value.startswith(wanted)
    if operator == "ends_with":
        return field_value.endswith(wanted)
    if operator == "regex":
        return _regex_search(str(cond.value), field_value)
    return False


def _amount_condition_holds(cond: Condition, amount: Decimal) -> bool:
    target = _to_decimal(cond.value)
    if target is None:
        return False

    operator = cond.operator
    if operator == "equals":
        return amount == target
    if operator == "greater_than":
        return amount > target
    if operator == "less_than":
        return amount < target
    if operator == "between":
        upper = _to_decimal(cond.value2) if cond.value2 is not None else target
        if upper is None:
            return False
        return target <= amount <= upper
    return False
