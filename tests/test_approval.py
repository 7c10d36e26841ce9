"""Tests for the approval queue."""

import pytest
from typing import get_type_hints

from reconciler.domain.approval import (
    MANUAL_MATCH_NAME,
    ApprovalQueue,
    group_by_rule,
)
from reconciler.domain.entities import (
    APPROVED,
    PENDING_APPROVAL,
    RECONCILED,
    UNRECONCILED,
    PendingMatch,
    PendingMatchView,
)
from reconciler.domain.errors import (
    ConflictError,
    MissingCategoryError,
    NotFoundError,
    UnauthorizedError,
)

from conftest import OWNER


@pytest.fixture
def amazon_rule(rule_service, sample_lookups):
    """Counter party rule suggesting a category, vendor and staff member."""
    return rule_service.create_rule(
        OWNER,
        "Amazon",
        "counter_party",
        description="Online purchases",
        match_counter_party_pattern="amazon",
        action_category_id=sample_lookups["office"],
        action_vendor_id=sample_lookups["amazon"],
        action_staff_id=sample_lookups["alice"],
        action_notes_template="Office order",
    )


@pytest.fixture
def queued(engine, make_transaction, amazon_rule, approval_queue):
    """Run the engine over one Amazon transaction and return its match view."""
    txn_id = make_transaction("-75.00", raw_party="AMAZON EU SARL")
    engine.run(OWNER)
    views = approval_queue.list(OWNER)
    assert len(views) == 1
    assert views[0].transaction.id == txn_id
    return views[0]


class TestListing:
    """Tests for listing pending matches."""

    def test_list_joins_display_data(self, queued, amazon_rule):
        assert queued.rule.id == amazon_rule
        assert queued.rule.name == "Amazon"
        assert queued.suggested_category.name == "Office Supplies"
        assert queued.transaction.raw_party == "AMAZON EU SARL"
        assert queued.was_already_reconciled is False
        assert queued.is_stale is False

    def test_pending_count(self, queued, approval_queue):
        assert approval_queue.pending_count(OWNER) == 1
        approval_queue.reject(OWNER, queued.match.id)
        assert approval_queue.pending_count(OWNER) == 0

    def test_list_excludes_reviewed(self, queued, approval_queue):
        approval_queue.approve(OWNER, queued.match.id)
        assert approval_queue.list(OWNER) == []

    def test_matches_by_rule_includes_reviewed(self, queued, approval_queue, amazon_rule):
        approval_queue.approve(OWNER, queued.match.id)
        views = approval_queue.matches_by_rule(OWNER, amazon_rule)
        assert [v.match.status for v in views] == ["approved"]

    def test_list_requires_owner(self, approval_queue):
        with pytest.raises(UnauthorizedError):
            approval_queue.list(None)

    def test_list_joins_many_transactions(self, engine, make_transaction, amazon_rule, approval_queue):
        """Test joining more transactions than fit in one fetch chunk."""
        for i in range(120):
            make_transaction("-10.00", raw_party=f"Amazon {i}")
        engine.run(OWNER)

        views = approval_queue.list(OWNER)
        assert len(views) == 120
        assert all(v.transaction is not None for v in views)


class TestApprove:
    """Tests for approving matches."""

    def test_approve_applies_suggestion(self, queued, approval_queue, temp_db, sample_lookups, amazon_rule):
        approval_queue.approve(OWNER, queued.match.id)

        txn = temp_db.get_transaction(OWNER, queued.transaction.id)
        assert txn.category_id == sample_lookups["office"]
        assert txn.vendor_id == sample_lookups["amazon"]
        assert txn.staff_id == sample_lookups["alice"]
        assert txn.notes == "Office order"
        assert txn.confirmed is True
        assert txn.reconciliation_status == APPROVED
        assert txn.matched_rule_id == amazon_rule
        assert txn.reconciled_by == "rule"
        assert txn.reconciled_at is not None

        match = temp_db.get_pending_match(OWNER, queued.match.id)
        assert match.status == "approved"
        assert match.reviewed_at is not None

    def test_approve_without_category_fails(self, engine, rule_service, make_transaction, approval_queue, temp_db):
        txn_id = make_transaction("-75.00")
        rule_service.create_rule(OWNER, "no category", "amount")
        engine.run(OWNER)
        match_id = approval_queue.list(OWNER)[0].match.id

        with pytest.raises(MissingCategoryError, match="no suggested category"):
            approval_queue.approve(OWNER, match_id)

        assert temp_db.get_transaction(OWNER, txn_id).reconciliation_status == PENDING_APPROVAL
        assert temp_db.get_pending_match(OWNER, match_id).status == "pending"

    def test_approve_missing_match(self, approval_queue):
        with pytest.raises(NotFoundError, match="Match 99 not found"):
            approval_queue.approve(OWNER, 99)

    def test_approve_twice_conflicts(self, queued, approval_queue):
        approval_queue.approve(OWNER, queued.match.id)
        with pytest.raises(ConflictError, match="already approved"):
            approval_queue.approve(OWNER, queued.match.id)

    def test_approve_with_edit_overrides_category_and_notes(
        self, queued, approval_queue, temp_db, sample_lookups
    ):
        approval_queue.approve_with_edit(OWNER, queued.match.id, sample_lookups["rent"], notes="Checked")

        txn = temp_db.get_transaction(OWNER, queued.transaction.id)
        assert txn.category_id == sample_lookups["rent"]
        assert txn.notes == "Checked"
        assert txn.vendor_id == sample_lookups["amazon"]
        assert txn.reconciliation_status == APPROVED

    def test_approve_with_edit_keeps_suggested_notes(self, queued, approval_queue, temp_db, sample_lookups):
        approval_queue.approve_with_edit(OWNER, queued.match.id, sample_lookups["rent"])
        assert temp_db.get_transaction(OWNER, queued.transaction.id).notes == "Office order"

    def test_approve_with_edit_requires_category(self, queued, approval_queue):
        with pytest.raises(MissingCategoryError):
            approval_queue.approve_with_edit(OWNER, queued.match.id, None)

    def test_approve_with_edit_unknown_category(self, queued, approval_queue):
        with pytest.raises(NotFoundError, match="Category 999 not found"):
            approval_queue.approve_with_edit(OWNER, queued.match.id, 999)


class TestReject:
    """Tests for rejecting matches."""

    def test_reject_returns_transaction_to_pool(self, queued, approval_queue, temp_db):
        approval_queue.reject(OWNER, queued.match.id)

        txn = temp_db.get_transaction(OWNER, queued.transaction.id)
        assert txn.reconciliation_status == UNRECONCILED
        match = temp_db.get_pending_match(OWNER, queued.match.id)
        assert match.status == "rejected"
        assert match.reviewed_at is not None

    def test_reject_after_approval_keeps_categorization(
        self, queued, approval_queue, engine, temp_db, sample_lookups, rule_service
    ):
        """Test that a later rejection leaves previously approved fields alone."""
        approval_queue.approve(OWNER, queued.match.id)
        rule_service.create_rule(OWNER, "Everything", "amount", priority=1)
        engine.run(OWNER, include_confirmed=True)
        fresh = [v for v in approval_queue.list(OWNER) if v.match.id != queued.match.id][0]

        approval_queue.reject(OWNER, fresh.match.id)

        txn = temp_db.get_transaction(OWNER, queued.transaction.id)
        assert txn.reconciliation_status == UNRECONCILED
        assert txn.category_id == sample_lookups["office"]
        assert txn.vendor_id == sample_lookups["amazon"]
        assert txn.staff_id == sample_lookups["alice"]

    def test_reject_reviewed_match_conflicts(self, queued, approval_queue):
        approval_queue.reject(OWNER, queued.match.id)
        with pytest.raises(ConflictError):
            approval_queue.reject(OWNER, queued.match.id)


class TestBulk:
    """Tests for bulk approve and reject."""

    def test_bulk_approve_partial_failure(self, engine, make_transaction, amazon_rule, rule_service, approval_queue):
        for i in range(3):
            make_transaction("-75.00", raw_party=f"Amazon {i}")
        make_transaction("-5.00", raw_party="Corner shop")
        rule_service.create_rule(OWNER, "no category", "amount", match_amount_max=10)
        engine.run(OWNER)
        views = approval_queue.list(OWNER)
        uncategorized = [v.match.id for v in views if v.match.suggested_category_id is None]
        ids = [v.match.id for v in views] + [999]

        result = approval_queue.bulk_approve(OWNER, ids)

        assert result.succeeded == 3
        assert result.failed == 2
        assert result.success is False
        assert set(result.errors) == {uncategorized[0], 999}
        assert "not found" in result.errors[999]
        assert approval_queue.pending_count(OWNER) == 1

    def test_bulk_reject(self, engine, make_transaction, amazon_rule, approval_queue, temp_db):
        ids = [make_transaction("-75.00", raw_party=f"Amazon {i}") for i in range(3)]
        engine.run(OWNER)
        match_ids = [v.match.id for v in approval_queue.list(OWNER)]

        result = approval_queue.bulk_reject(OWNER, match_ids)

        assert result.succeeded == 3
        assert result.success is True
        assert all(temp_db.get_transaction(OWNER, i).reconciliation_status == UNRECONCILED for i in ids)

    def test_bulk_ignores_repeated_ids(self, queued, approval_queue):
        result = approval_queue.bulk_reject(OWNER, [queued.match.id, queued.match.id])
        assert result.succeeded == 1
        assert result.failed == 0


class TestStaleMatches:
    """A transaction may carry matches from several rules."""

    def test_sibling_match_becomes_stale(
        self, queued, approval_queue, transaction_service, sample_lookups, amazon_rule
    ):
        manual_id = approval_queue.suggest_manual(OWNER, queued.transaction.id, sample_lookups["rent"])
        approval_queue.approve(OWNER, queued.match.id)

        views = {v.match.id: v for v in approval_queue.list(OWNER)}
        assert list(views) == [manual_id]
        assert views[manual_id].is_stale is True
        assert views[manual_id].was_already_reconciled is True


class TestManualSuggestions:
    """Tests for operator-created matches."""

    def test_suggest_manual(self, approval_queue, make_transaction, sample_lookups, temp_db):
        txn_id = make_transaction("-20.00", description="Cash")
        match_id = approval_queue.suggest_manual(
            OWNER, txn_id, sample_lookups["wages"], staff_id=sample_lookups["alice"], notes="Tip"
        )

        match = temp_db.get_pending_match(OWNER, match_id)
        assert match.rule_id is None
        assert match.is_manual is True
        assert match.suggested_staff_id == sample_lookups["alice"]
        assert temp_db.get_transaction(OWNER, txn_id).reconciliation_status == PENDING_APPROVAL

        approval_queue.approve(OWNER, match_id)
        txn = temp_db.get_transaction(OWNER, txn_id)
        assert txn.category_id == sample_lookups["wages"]
        assert txn.matched_rule_id is None

    def test_repeated_suggestion_updates_open_manual_match(
        self, approval_queue, make_transaction, sample_lookups, temp_db
    ):
        txn_id = make_transaction("-20.00")
        first = approval_queue.suggest_manual(OWNER, txn_id, sample_lookups["office"])
        second = approval_queue.suggest_manual(OWNER, txn_id, sample_lookups["wages"], notes="Cash wages")

        assert second == first
        matches = [m for m in temp_db.list_pending_matches(OWNER) if m.transaction_id == txn_id]
        assert len(matches) == 1
        assert matches[0].suggested_category_id == sample_lookups["wages"]
        assert matches[0].suggested_notes == "Cash wages"

    def test_suggestion_after_rejection_opens_new_match(self, approval_queue, make_transaction, sample_lookups):
        txn_id = make_transaction("-20.00")
        rejected = approval_queue.suggest_manual(OWNER, txn_id, sample_lookups["office"])
        approval_queue.reject(OWNER, rejected)

        reopened = approval_queue.suggest_manual(OWNER, txn_id, sample_lookups["wages"])

        assert reopened != rejected
        assert approval_queue.pending_count(OWNER) == 1

    @pytest.mark.parametrize(
        "fields",
        [
            {"confirmed": True, "reconciliation_status": APPROVED},
            {"reconciliation_status": RECONCILED},
        ],
    )
    def test_suggestion_keeps_reconciled_status(
        self, approval_queue, make_transaction, sample_lookups, temp_db, fields
    ):
        txn_id = make_transaction("-20.00", **fields)
        approval_queue.suggest_manual(OWNER, txn_id, sample_lookups["office"])

        assert temp_db.get_transaction(OWNER, txn_id).reconciliation_status == fields["reconciliation_status"]
        assert approval_queue.pending_count(OWNER) == 1

    def test_suggest_manual_unknown_transaction(self, approval_queue, sample_lookups):
        with pytest.raises(NotFoundError, match="Transaction 404 not found"):
            approval_queue.suggest_manual(OWNER, 404, sample_lookups["wages"])


class TestGrouping:
    """Tests for grouping matches by rule."""

    def test_groups_sorted_by_size_with_manual_group(
        self, engine, make_transaction, amazon_rule, rule_service, approval_queue, sample_lookups
    ):
        for i in range(3):
            make_transaction("-75.00", raw_party=f"Amazon {i}")
        rent = rule_service.create_rule(
            OWNER, "Rent", "description", match_description_pattern="rent", action_category_id=sample_lookups["rent"]
        )
        make_transaction("-900.00", description="Studio rent")
        manual_txn = make_transaction("-1.00", description="misc")
        engine.run(OWNER)
        approval_queue.suggest_manual(OWNER, manual_txn, sample_lookups["office"])

        groups = group_by_rule(approval_queue.list(OWNER))

        assert [g.rule_name for g in groups[:1]] == ["Amazon"]
        assert len(groups[0].matches) == 3
        assert groups[0].rule_description == "Online purchases"
        names = {g.rule_name: g for g in groups}
        assert names["Rent"].rule_id == rent
        assert names[MANUAL_MATCH_NAME].rule_id is None
        assert names[MANUAL_MATCH_NAME].rule_description == "Matched without a specific rule"
        assert len(groups[0].match_ids) == 3

    def test_hide_reconciled(self, engine, make_transaction, amazon_rule, approval_queue):
        make_transaction("-75.00", raw_party="Amazon", reconciliation_status=RECONCILED)
        make_transaction("-75.00", raw_party="Amazon")
        engine.run(OWNER, include_confirmed=True)

        views = approval_queue.list(OWNER)
        assert len(group_by_rule(views)[0].matches) == 2
        groups = group_by_rule(views, hide_reconciled=True)
        assert len(groups) == 1
        assert len(groups[0].matches) == 1

    def test_empty(self):
        assert group_by_rule([]) == []


def test_list_method_does_not_shadow_builtin_in_annotations():
    """Annotations after ``ApprovalQueue.list`` still mean the builtin list."""
    assert get_type_hints(ApprovalQueue.matches_by_rule)["return"] == list[PendingMatchView]
    assert get_type_hints(ApprovalQueue._join)["matches"] == list[PendingMatch]
