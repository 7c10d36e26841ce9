"""Approval queue for pending rule matches.

Transaction reconciliation status moves through:

    unreconciled -> pending_approval -> approved
    pending_approval -> unreconciled   (rejected, back in the pool)

Approving one match resolves its transaction. Other pending matches for the
same transaction are left as they are and reported as stale by ``list``.
"""

from __future__ import annotations

import logging
from datetime import datetime, UTC
from typing import Callable, Iterable, Optional

from reconciler.database.base import Database
from reconciler.domain.entities import (
    MATCH_PENDING,
    BulkResult,
    MatchGroup,
    PendingMatch,
    PendingMatchView,
)
from reconciler.domain.errors import (
    ConflictError,
    DomainError,
    MissingCategoryError,
    NotFoundError,
    StorageError,
    match_already_reviewed,
    match_not_found,
    missing_category,
    require_owner,
    transaction_not_found,
)
from reconciler.domain.lookups import LookupService

logger = logging.getLogger(__name__)

JOIN_BATCH_SIZE = 50
MANUAL_MATCH_NAME = "Manual Match"
MANUAL_MATCH_DESCRIPTION = "Matched without a specific rule"


class ApprovalQueue:
    """Service for reviewing pending matches."""

    def __init__(self, db: Database):
        """Initialize approval queue.

        Args:
            db: Database instance
        """
        self.db = db
        self.lookups = LookupService(db)

    def list(self, owner_id: str) -> list[PendingMatchView]:
        """List pending matches, newest first, joined with display data."""
        require_owner(owner_id)
        return self._join(owner_id, self.db.list_pending_matches(owner_id))

    def pending_count(self, owner_id: str) -> int:
        """Number of matches awaiting review."""
        require_owner(owner_id)
        return self.db.count_pending_matches(owner_id)

    def matches_by_rule(self, owner_id: str, rule_id: int) -> list[PendingMatchView]:
        """All matches a rule has produced, in any status."""
        require_owner(owner_id)
        return self._join(owner_id, self.db.list_pending_matches(owner_id, status=None, rule_id=rule_id))

    def approve(self, owner_id: str, match_id: int) -> None:
        """Accept a match's suggestion as-is.

        Raises:
            NotFoundError: If the match doesn't exist
            ConflictError: If the match was already reviewed
            MissingCategoryError: If the match suggests no category
        """
        match = self._require_pending(owner_id, match_id)
        if match.suggested_category_id is None:
            raise MissingCategoryError(missing_category(match_id))
        self._approve(owner_id, match, match.suggested_category_id, match.suggested_notes)

    def approve_with_edit(
        self, owner_id: str, match_id: int, category_id: Optional[int], notes: Optional[str] = None
    ) -> None:
        """Accept a match with an operator-chosen category.

        Args:
            owner_id: Owner of the match
            match_id: Match to approve
            category_id: Category overriding the suggestion
            notes: Notes overriding the suggested notes

        Raises:
            NotFoundError: If the match or category doesn't exist
            ConflictError: If the match was already reviewed
            MissingCategoryError: If no category is given
        """
        match = self._require_pending(owner_id, match_id)
        if category_id is None:
            raise MissingCategoryError(missing_category(match_id))
        self.lookups.verify_references(owner_id, category_id=category_id)
        self._approve(owner_id, match, category_id, notes or match.suggested_notes)

    def reject(self, owner_id: str, match_id: int) -> None:
        """Decline a match and return its transaction to the unreconciled pool.

        Category, vendor and staff already on the transaction are left untouched.

        Raises:
            NotFoundError: If the match doesn't exist
            ConflictError: If the match was already reviewed
        """
        self._require_pending(owner_id, match_id)
        self.db.apply_rejection(owner_id, match_id, reviewed_at=datetime.now(UTC))
        logger.debug("Rejected match %s", match_id)

    def bulk_approve(self, owner_id: str, match_ids: Iterable[int]) -> BulkResult:
        """Approve each match independently, collecting failures."""
        return self._bulk(owner_id, match_ids, self.approve, "approve")

    def bulk_reject(self, owner_id: str, match_ids: Iterable[int]) -> BulkResult:
        """Reject each match independently, collecting failures."""
        return self._bulk(owner_id, match_ids, self.reject, "reject")

    def suggest_manual(
        self,
        owner_id: str,
        transaction_id: int,
        category_id: Optional[int],
        staff_id: Optional[int] = None,
        vendor_id: Optional[int] = None,
        notes: Optional[str] = None,
    ) -> int:
        """Queue an operator-made categorization that is not backed by a rule.

        Returns:
            Match ID

        Raises:
            NotFoundError: If the transaction or a referenced lookup is missing
        """
        require_owner(owner_id)
        if self.db.get_transaction(owner_id, transaction_id) is None:
            raise NotFoundError(transaction_not_found(transaction_id))
        self.lookups.verify_references(owner_id, category_id=category_id, vendor_id=vendor_id, staff_id=staff_id)
        return self.db.create_pending_match(
            PendingMatch(
                id=None,
                owner_id=owner_id,
                transaction_id=transaction_id,
                rule_id=None,
                suggested_category_id=category_id,
                suggested_staff_id=staff_id,
                suggested_vendor_id=vendor_id,
                suggested_notes=notes,
            )
        )

    def _approve(self, owner_id: str, match: PendingMatch, category_id: int, notes: Optional[str]) -> None:
        self.db.apply_approval(
            owner_id,
            match.id,
            category_id=category_id,
            notes=notes,
            staff_id=match.suggested_staff_id,
            vendor_id=match.suggested_vendor_id,
            reviewed_at=datetime.now(UTC),
        )
        logger.debug("Approved match %s for transaction %s", match.id, match.transaction_id)

    def _require_pending(self, owner_id: str, match_id: int) -> PendingMatch:
        require_owner(owner_id)
        match = self.db.get_pending_match(owner_id, match_id)
        if match is None:
            raise NotFoundError(match_not_found(match_id))
        if match.status != MATCH_PENDING:
            raise ConflictError(match_already_reviewed(match_id, match.status))
        return match

    def _bulk(
        self, owner_id: str, match_ids: Iterable[int], action: Callable[[str, int], None], verb: str
    ) -> BulkResult:
        require_owner(owner_id)
        # Remove duplicates while preserving order
        unique_ids = list(dict.fromkeys(match_ids))
        errors: dict[int, str] = {}
        for match_id in unique_ids:
            try:
                action(owner_id, match_id)
            except (DomainError, StorageError) as e:
                errors[match_id] = str(e)
                logger.warning("Failed to %s match %s: %s", verb, match_id, e)
        result = BulkResult(succeeded=len(unique_ids) - len(errors), failed=len(errors), errors=errors)
        logger.info("Bulk %s: %d succeeded, %d failed", verb, result.succeeded, result.failed)
        return result

    def _join(self, owner_id: str, matches: list[PendingMatch]) -> list[PendingMatchView]:
        if not matches:
            return []

        transaction_ids = list(dict.fromkeys(m.transaction_id for m in matches))
        rule_ids = list({m.rule_id for m in matches if m.rule_id is not None})
        category_ids = list({m.suggested_category_id for m in matches if m.suggested_category_id is not None})

        transactions = {}
        for start in range(0, len(transaction_ids), JOIN_BATCH_SIZE):
            chunk = transaction_ids[start:start + JOIN_BATCH_SIZE]
            for txn in self.db.get_transactions(owner_id, chunk):
                transactions[txn.id] = txn

        rules = {r.id: r for r in self.db.list_rules(owner_id, ids=rule_ids)} if rule_ids else {}
        categories = (
            {c.id: c for c in self.db.list_categories(owner_id, ids=category_ids)} if category_ids else {}
        )

        return [
            PendingMatchView(
                match=m,
                transaction=transactions.get(m.transaction_id),
                rule=rules.get(m.rule_id) if m.rule_id is not None else None,
                suggested_category=categories.get(m.suggested_category_id)
                if m.suggested_category_id is not None
                else None,
            )
            for m in matches
        ]


def group_by_rule(views: Iterable[PendingMatchView], hide_reconciled: bool = False) -> list[MatchGroup]:
    """Group matches by originating rule, largest group first.

    Matches without a rule fall into a "Manual Match" group. With
    ``hide_reconciled`` set, matches whose transaction was already confirmed
    or reconciled are left out.
    """
    buckets: dict[Optional[int], list[PendingMatchView]] = {}
    for view in views:
        if hide_reconciled and view.was_already_reconciled:
            continue
        rule_id = view.rule.id if view.rule is not None else None
        buckets.setdefault(rule_id, []).append(view)

    groups = []
    for rule_id, members in buckets.items():
        rule = members[0].rule
        groups.append(
            MatchGroup(
                rule_id=rule_id,
                rule_name=rule.name if rule is not None else MANUAL_MATCH_NAME,
                rule_description=rule.description if rule is not None else MANUAL_MATCH_DESCRIPTION,
                matches=tuple(members),
            )
        )
    # Stable sort keeps first-seen order among equal-sized groups
    groups.sort(key=lambda g: len(g.matches), reverse=True)
    return groups
