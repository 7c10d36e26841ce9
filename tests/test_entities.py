"""Tests for domain entities."""

import pytest
from dataclasses import FrozenInstanceError
from datetime import date
from decimal import Decimal

from reconciler.domain.entities import (
    BulkResult,
    CleanupResult,
    Condition,
    DuplicateCheckResult,
    DuplicateGroup,
    PendingMatch,
    Transaction,
    transaction_type_for,
)


def test_transaction_type_from_sign():
    assert transaction_type_for(Decimal("-0.01")) == "expense"
    assert transaction_type_for(Decimal("0")) == "income"
    assert transaction_type_for(Decimal("12")) == "income"


def test_entities_are_frozen():
    txn = Transaction(
        id=1, owner_id="o", date=date(2024, 1, 1), amount=Decimal("1"), description=None, raw_party=None, source="csv"
    )
    with pytest.raises(FrozenInstanceError):
        txn.amount = Decimal("2")


def test_condition_dict_round_trip():
    cond = Condition("amount", "between", Decimal("10.50"), Decimal("20"))
    data = cond.to_dict()
    assert data == {"field": "amount", "operator": "between", "value": "10.50", "value2": "20"}
    assert Condition.from_dict(data) == Condition("amount", "between", "10.50", "20")


def test_condition_without_upper_bound_omits_value2():
    assert "value2" not in Condition("counter_party", "contains", "x").to_dict()


def test_manual_match():
    assert PendingMatch(id=1, owner_id="o", transaction_id=1, rule_id=None, suggested_category_id=None).is_manual
    assert not PendingMatch(id=1, owner_id="o", transaction_id=1, rule_id=2, suggested_category_id=None).is_manual


def test_result_counters():
    assert BulkResult(succeeded=2, failed=0).success is True
    assert BulkResult(succeeded=1, failed=1, errors={3: "boom"}).success is False
    assert CleanupResult(deleted_ids=(1, 2)).deleted_count == 2

    group = DuplicateGroup(
        transaction_date=date(2024, 1, 1),
        amount=Decimal("1"),
        description=None,
        raw_party=None,
        source="csv",
        transaction_ids=(1, 2, 3),
        keep_id=1,
        delete_ids=(2, 3),
    )
    result = DuplicateCheckResult(duplicate_groups=(group, group))
    assert result.total_groups == 2
    assert result.total_duplicate_rows == 4
