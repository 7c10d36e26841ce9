"""Tests for Database interface returning domain models."""

import pytest
from datetime import date, datetime, UTC
from decimal import Decimal

from reconciler.database.sqlalchemy_db import chunked
from reconciler.domain import entities
from reconciler.domain.errors import NotFoundError, StorageError

from conftest import OWNER, OTHER_OWNER


def _add_transaction(db, amount="-10.00", **fields):
    return db.create_transaction(OWNER, date(2024, 1, 15), Decimal(amount), **fields)


def _add_rule(db, name="r", **fields):
    return db.create_rule(entities.Rule(id=None, owner_id=OWNER, name=name, match_type="amount", **fields))


class TestDatabaseInterface:
    """Tests to verify Database interface returns domain models."""

    def test_get_transaction_returns_domain_model(self, temp_db):
        """Test that get_transaction returns a domain Transaction entity."""
        txn_id = _add_transaction(temp_db, description="Coffee", raw_party="Cafe")

        txn = temp_db.get_transaction(OWNER, txn_id)

        assert isinstance(txn, entities.Transaction)
        assert txn.id == txn_id
        assert txn.amount == Decimal("-10.00")
        assert txn.reconciliation_status == "unreconciled"
        assert isinstance(txn.created_at, datetime)

    def test_rows_are_owner_scoped(self, temp_db):
        txn_id = _add_transaction(temp_db)
        assert temp_db.get_transaction(OTHER_OWNER, txn_id) is None
        assert temp_db.list_transactions(OTHER_OWNER) == []

    def test_list_categories_returns_domain_models(self, temp_db):
        temp_db.create_category(OWNER, "Rent")
        temp_db.create_category(OWNER, "Fuel")

        categories = temp_db.list_categories(OWNER)

        assert [c.name for c in categories] == ["Fuel", "Rent"]
        for category in categories:
            assert isinstance(category, entities.Category)

    def test_get_rule_returns_domain_model(self, temp_db):
        rule_id = _add_rule(temp_db, match_amount_min=Decimal("5"))
        rule = temp_db.get_rule(OWNER, rule_id)

        assert isinstance(rule, entities.Rule)
        assert rule.match_amount_min == Decimal("5")
        assert rule.conditions == ()

    def test_transaction_batches_page_in_id_order(self, temp_db):
        ids = [_add_transaction(temp_db) for _ in range(5)]

        first = temp_db.list_transaction_batch(OWNER, offset=0, limit=2)
        rest = temp_db.list_transaction_batch(OWNER, offset=2, limit=10)

        assert [t.id for t in first] == ids[:2]
        assert [t.id for t in rest] == ids[2:]


class TestSaveMatchResults:
    """Tests for persisting an engine run."""

    def _candidate(self, txn_id, rule_id, category_id=None):
        return entities.PendingMatch(
            id=None,
            owner_id=OWNER,
            transaction_id=txn_id,
            rule_id=rule_id,
            suggested_category_id=category_id,
        )

    def test_upsert_keeps_one_row_per_transaction_and_rule(self, temp_db):
        txn_id = _add_transaction(temp_db)
        rule_id = _add_rule(temp_db)
        category_a = temp_db.create_category(OWNER, "A")
        category_b = temp_db.create_category(OWNER, "B")
        now = datetime.now(UTC)

        temp_db.save_match_results(OWNER, [self._candidate(txn_id, rule_id, category_a)], [txn_id], {rule_id: 1}, now)
        temp_db.save_match_results(OWNER, [self._candidate(txn_id, rule_id, category_b)], [txn_id], {rule_id: 1}, now)

        matches = temp_db.list_pending_matches(OWNER, status=None)
        assert len(matches) == 1
        assert matches[0].suggested_category_id == category_b
        assert temp_db.get_rule(OWNER, rule_id).match_count == 2
        assert temp_db.get_transaction(OWNER, txn_id).reconciliation_status == "pending_approval"

    def test_small_batches_write_everything(self, temp_db):
        rule_id = _add_rule(temp_db)
        txn_ids = [_add_transaction(temp_db) for _ in range(7)]

        temp_db.save_match_results(
            OWNER,
            [self._candidate(t, rule_id) for t in txn_ids],
            txn_ids,
            {rule_id: len(txn_ids)},
            datetime.now(UTC),
            upsert_batch_size=2,
            status_batch_size=3,
        )

        assert temp_db.count_pending_matches(OWNER) == 7
        statuses = {t.reconciliation_status for t in temp_db.list_transactions(OWNER)}
        assert statuses == {"pending_approval"}

    def test_rejected_match_is_reopened_by_upsert(self, temp_db):
        txn_id = _add_transaction(temp_db)
        rule_id = _add_rule(temp_db)
        now = datetime.now(UTC)
        temp_db.save_match_results(OWNER, [self._candidate(txn_id, rule_id)], [txn_id], {rule_id: 1}, now)
        match_id = temp_db.list_pending_matches(OWNER)[0].id
        temp_db.apply_rejection(OWNER, match_id, now)

        temp_db.save_match_results(OWNER, [self._candidate(txn_id, rule_id)], [txn_id], {rule_id: 1}, now)

        match = temp_db.get_pending_match(OWNER, match_id)
        assert match.status == "pending"


class TestRuleDeletion:
    """Tests for deleting rules with existing matches."""

    def test_delete_rule_detaches_matches(self, temp_db):
        txn_id = _add_transaction(temp_db)
        rule_id = _add_rule(temp_db)
        temp_db.save_match_results(
            OWNER,
            [entities.PendingMatch(id=None, owner_id=OWNER, transaction_id=txn_id, rule_id=rule_id,
                                   suggested_category_id=None)],
            [txn_id],
            {rule_id: 1},
            datetime.now(UTC),
        )

        temp_db.delete_rule(OWNER, rule_id)

        assert temp_db.get_rule(OWNER, rule_id) is None
        matches = temp_db.list_pending_matches(OWNER)
        assert len(matches) == 1
        assert matches[0].rule_id is None

    def test_delete_missing_rule(self, temp_db):
        with pytest.raises(NotFoundError):
            temp_db.delete_rule(OWNER, 123)


class TestStorageErrors:
    """Tests for backend failure translation."""

    def test_constraint_violation_raises_storage_error(self, temp_db):
        _add_transaction(temp_db, source="csv", external_id="X1")
        with pytest.raises(StorageError):
            _add_transaction(temp_db, source="csv", external_id="X1")

    def test_session_usable_after_failure(self, temp_db):
        _add_transaction(temp_db, source="csv", external_id="X1")
        with pytest.raises(StorageError):
            _add_transaction(temp_db, source="csv", external_id="X1")

        assert len(temp_db.list_transactions(OWNER)) == 1


def test_chunked():
    assert [list(c) for c in chunked([1, 2, 3, 4, 5], 2)] == [[1, 2], [3, 4], [5]]
    assert list(chunked([], 3)) == []
