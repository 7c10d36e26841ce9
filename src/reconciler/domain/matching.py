"""Matching engine: applies active rules to transactions and records suggestions.

Conflict resolution is first-rule-wins: active rules are evaluated in
ascending priority order (ties by rule ID) and the first rule whose predicate
holds produces the only pending match for that transaction in a run. Rules
after it are not consulted, so overlapping rules never yield competing
suggestions.
"""

import logging
import threading
from collections import Counter
from contextlib import contextmanager
from datetime import datetime, UTC
from typing import Iterator

from reconciler.database.base import Database
from reconciler.domain.entities import (
    MATCH_PENDING,
    RECONCILED,
    MatchRunResult,
    PendingMatch,
    Rule,
    Transaction,
)
from reconciler.domain.errors import ConflictError, require_owner
from reconciler.domain.predicate import matches

logger = logging.getLogger(__name__)

FETCH_BATCH_SIZE = 1000
UPSERT_BATCH_SIZE = 500
STATUS_BATCH_SIZE = 100

_runs_lock = threading.Lock()
_active_owners: set[str] = set()


def iter_transactions(
    db: Database, owner_id: str, unreconciled_only: bool = True, batch_size: int = FETCH_BATCH_SIZE
) -> Iterator[list[Transaction]]:
    """Yield the owner's transactions one fixed-size batch at a time."""
    offset = 0
    while True:
        batch = db.list_transaction_batch(
            owner_id, offset=offset, limit=batch_size, unreconciled_only=unreconciled_only
        )
        if not batch:
            return
        yield batch
        if len(batch) < batch_size:
            return
        offset += batch_size


def first_matching_rule(rules: list[Rule], transaction: Transaction) -> Rule | None:
    """Return the first rule, in the given order, that matches the transaction."""
    for rule in rules:
        if matches(rule, transaction):
            return rule
    return None


def is_already_reconciled(transaction: Transaction) -> bool:
    return transaction.confirmed or transaction.reconciliation_status == RECONCILED


class MatchingEngine:
    """Runs active rules over an owner's transactions."""

    def __init__(self, db: Database, batch_size: int = FETCH_BATCH_SIZE):
        """Initialize matching engine.

        Args:
            db: Database instance
            batch_size: Number of transactions fetched per page
        """
        self.db = db
        self.batch_size = batch_size

    def run(self, owner_id: str, include_confirmed: bool = False) -> MatchRunResult:
        """Evaluate active rules and persist one pending match per matched transaction.

        Args:
            owner_id: Owner whose rules and transactions are processed
            include_confirmed: Scan every transaction instead of only unreconciled ones

        Returns:
            MatchRunResult with processed, matched and already_reconciled counts

        Raises:
            UnauthorizedError: If owner_id is missing
            ConflictError: If a run for this owner is already in progress
            StorageError: If reading rules/transactions or persisting results fails
        """
        require_owner(owner_id)
        with _single_flight(owner_id):
            return self._run(owner_id, include_confirmed)

    def _run(self, owner_id: str, include_confirmed: bool) -> MatchRunResult:
        rules = self.db.list_rules(owner_id, active_only=True)
        if not rules:
            logger.info("No active rules for owner %s; nothing to match", owner_id)
            return MatchRunResult()

        processed = 0
        candidates: list[PendingMatch] = []
        already_reconciled: set[int] = set()
        rule_counts: Counter[int] = Counter()

        for batch in iter_transactions(
            self.db, owner_id, unreconciled_only=not include_confirmed, batch_size=self.batch_size
        ):
            processed += len(batch)
            logger.debug("Evaluating batch of %d transactions (processed %d)", len(batch), processed)
            for transaction in batch:
                rule = first_matching_rule(rules, transaction)
                if rule is None:
                    continue
                candidates.append(self._candidate_for(owner_id, rule, transaction))
                rule_counts[rule.id] += 1
                if is_already_reconciled(transaction):
                    already_reconciled.add(transaction.id)

        if candidates:
            pending_ids = [c.transaction_id for c in candidates if c.transaction_id not in already_reconciled]
            self.db.save_match_results(
                owner_id,
                candidates,
                pending_transaction_ids=pending_ids,
                rule_match_counts=dict(rule_counts),
                matched_at=datetime.now(UTC),
                upsert_batch_size=UPSERT_BATCH_SIZE,
                status_batch_size=STATUS_BATCH_SIZE,
            )

        result = MatchRunResult(
            processed=processed,
            matched=len(candidates),
            already_reconciled=len(already_reconciled),
        )
        logger.info(
            "Rule run for owner %s: processed=%d matched=%d already_reconciled=%d",
            owner_id,
            result.processed,
            result.matched,
            result.already_reconciled,
        )
        return result

    @staticmethod
    def _candidate_for(owner_id: str, rule: Rule, transaction: Transaction) -> PendingMatch:
        return PendingMatch(
            id=None,
            owner_id=owner_id,
            transaction_id=transaction.id,
            rule_id=rule.id,
            suggested_category_id=rule.action_category_id,
            suggested_staff_id=rule.action_staff_id,
            suggested_vendor_id=rule.action_vendor_id,
            suggested_notes=rule.action_notes_template,
            match_confidence=1.0,
            status=MATCH_PENDING,
        )


@contextmanager
def _single_flight(owner_id: str) -> Iterator[None]:
    """Reject a second concurrent run for the same owner within this process."""
    with _runs_lock:
        if owner_id in _active_owners:
            raise ConflictError(f"A rule run is already in progress for owner {owner_id}")
        _active_owners.add(owner_id)
    try:
        yield
    finally:
        with _runs_lock:
            _active_owners.discard(owner_id)
