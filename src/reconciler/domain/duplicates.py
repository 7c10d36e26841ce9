"""Duplicate transaction detection and cleanup."""

import logging
from collections import defaultdict
from datetime import datetime, UTC
from typing import Iterable, Optional

from reconciler.database.base import Database
from reconciler.domain.entities import (
    RECONCILED,
    CleanupResult,
    DuplicateCheckResult,
    DuplicateGroup,
    IdentityDuplicate,
    Transaction,
)
from reconciler.domain.errors import require_owner

logger = logging.getLogger(__name__)

# Sorts records with no creation timestamp after every dated one
_NO_TIMESTAMP = datetime.max.replace(tzinfo=UTC)


def enrichment_score(transaction: Transaction) -> int:
    """Score how much curation a transaction carries. Higher is kept."""
    score = 0
    for linked in (transaction.category_id, transaction.vendor_id, transaction.staff_id):
        if linked is not None:
            score += 1
    for linked in (transaction.linked_payable_id, transaction.bill_id, transaction.debt_id):
        if linked is not None:
            score += 2
    if transaction.confirmed:
        score += 3
    if transaction.reconciliation_status == RECONCILED:
        score += 3
    return score


def identity_key(transaction: Transaction) -> tuple:
    """Fields that must all be equal for two transactions to be duplicates."""
    return (
        transaction.date,
        transaction.amount,
        transaction.description or "",
        transaction.raw_party or "",
        transaction.source or "",
    )


def _keep_order(transaction: Transaction) -> tuple:
    created_at = transaction.created_at
    if created_at is None:
        created_at = _NO_TIMESTAMP
    elif created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=UTC)
    return (-enrichment_score(transaction), created_at, transaction.id)


def build_duplicate_groups(transactions: Iterable[Transaction]) -> list[DuplicateGroup]:
    """Group transactions by identity and pick the one to keep in each group.

    The highest enrichment score wins; ties go to the earliest created record.
    Groups are returned largest first.
    """
    buckets: dict[tuple, list[Transaction]] = defaultdict(list)
    for transaction in transactions:
        buckets[identity_key(transaction)].append(transaction)

    groups = []
    for members in buckets.values():
        if len(members) < 2:
            continue
        ranked = sorted(members, key=_keep_order)
        first = ranked[0]
        groups.append(
            DuplicateGroup(
                transaction_date=first.date,
                amount=first.amount,
                description=first.description,
                raw_party=first.raw_party,
                source=first.source,
                transaction_ids=tuple(t.id for t in ranked),
                keep_id=first.id,
                delete_ids=tuple(t.id for t in ranked[1:]),
            )
        )
    groups.sort(key=lambda g: g.count, reverse=True)
    return groups


def _shared_keys(pairs: list[tuple[int, str]]) -> list[IdentityDuplicate]:
    by_key: dict[str, list[int]] = defaultdict(list)
    for transaction_id, key in pairs:
        by_key[key].append(transaction_id)
    duplicates = [IdentityDuplicate(key=key, ids=tuple(ids)) for key, ids in by_key.items() if len(ids) > 1]
    duplicates.sort(key=lambda d: d.count, reverse=True)
    return duplicates


class DuplicateDetector:
    """Finds and removes duplicated manually-imported transactions."""

    def __init__(self, db: Database):
        """Initialize duplicate detector.

        Args:
            db: Database instance
        """
        self.db = db

    def check(self, owner_id: str) -> DuplicateCheckResult:
        """Scan transactions without an external ID for duplicates.

        Feed-sourced transactions are deduplicated upstream by external ID and
        are not scanned.

        Returns:
            DuplicateCheckResult with groups sorted by size, largest first
        """
        require_owner(owner_id)
        transactions = self.db.list_transactions_without_external_id(owner_id)
        groups = build_duplicate_groups(transactions)
        result = DuplicateCheckResult(duplicate_groups=tuple(groups))
        logger.info(
            "Duplicate scan for owner %s: %d groups, %d removable rows",
            owner_id,
            result.total_groups,
            result.total_duplicate_rows,
        )
        return result

    def cleanup(self, owner_id: str, ids: Optional[list[int]] = None) -> CleanupResult:
        """Delete duplicate transactions.

        Args:
            owner_id: Owner whose transactions are cleaned
            ids: Explicit IDs to delete. When omitted, every ``delete_ids``
                entry from a fresh scan is used.

        Returns:
            CleanupResult with deleted IDs and IDs skipped because a payable
            is linked to them
        """
        require_owner(owner_id)
        if ids:
            candidates = list(dict.fromkeys(ids))
        else:
            candidates = [
                transaction_id
                for group in self.check(owner_id).duplicate_groups
                for transaction_id in group.delete_ids
            ]
        if not candidates:
            return CleanupResult(deleted_ids=())

        linked = self.db.get_payable_linked_ids(owner_id, candidates)
        if linked:
            logger.warning(
                "Skipping %d transaction(s) linked to payables: %s",
                len(linked),
                ", ".join(str(i) for i in sorted(linked)),
            )
        deletable = [i for i in candidates if i not in linked]

        deleted = self.db.delete_transactions(owner_id, deletable)
        logger.info("Deleted %d duplicate transaction(s) for owner %s", len(deleted), owner_id)
        return CleanupResult(deleted_ids=tuple(deleted), skipped_linked_ids=tuple(sorted(linked)))

    def find_external_id_duplicates(self, owner_id: str) -> list[IdentityDuplicate]:
        """External IDs carried by more than one transaction. Expected to be empty."""
        require_owner(owner_id)
        return _shared_keys(self.db.list_external_ids(owner_id))

    def find_import_hash_duplicates(self, owner_id: str) -> list[IdentityDuplicate]:
        """Import hashes carried by more than one transaction. Expected to be empty."""
        require_owner(owner_id)
        return _shared_keys(self.db.list_import_hashes(owner_id))
