"""Mapper functions to convert between domain models and SQLAlchemy models.

This layer isolates the conversion logic so services and the predicate
evaluator never touch ORM rows.
"""

from reconciler.domain import entities as domain
from reconciler.database.models import (
    Category as ORMCategory,
    Vendor as ORMVendor,
    Staff as ORMStaff,
    Transaction as ORMTransaction,
    ReconciliationRule as ORMRule,
    PendingMatch as ORMPendingMatch,
)


def category_to_domain(orm_category: ORMCategory) -> domain.Category:
    """Convert SQLAlchemy Category model to domain Category entity."""
    return domain.Category(
        id=orm_category.id,
        owner_id=orm_category.owner_id,
        name=orm_category.name,
        created_at=orm_category.created_at,
    )


def vendor_to_domain(orm_vendor: ORMVendor) -> domain.Vendor:
    """Convert SQLAlchemy Vendor model to domain Vendor entity."""
    return domain.Vendor(
        id=orm_vendor.id,
        owner_id=orm_vendor.owner_id,
        name=orm_vendor.name,
        created_at=orm_vendor.created_at,
    )


def staff_to_domain(orm_staff: ORMStaff) -> domain.Staff:
    """Convert SQLAlchemy Staff model to domain Staff entity."""
    return domain.Staff(
        id=orm_staff.id,
        owner_id=orm_staff.owner_id,
        name=orm_staff.name,
        role=orm_staff.role,
        created_at=orm_staff.created_at,
    )


def transaction_to_domain(orm_transaction: ORMTransaction) -> domain.Transaction:
    """Convert SQLAlchemy Transaction model to domain Transaction entity."""
    return domain.Transaction(
        id=orm_transaction.id,
        owner_id=orm_transaction.owner_id,
        date=orm_transaction.transaction_date,
        amount=orm_transaction.amount,
        description=orm_transaction.description,
        raw_party=orm_transaction.raw_party,
        source=orm_transaction.source,
        category_id=orm_transaction.category_id,
        vendor_id=orm_transaction.vendor_id,
        staff_id=orm_transaction.staff_id,
        linked_payable_id=orm_transaction.linked_payable_id,
        bill_id=orm_transaction.bill_id,
        debt_id=orm_transaction.debt_id,
        notes=orm_transaction.notes,
        confirmed=bool(orm_transaction.confirmed),
        reconciliation_status=orm_transaction.reconciliation_status,
        matched_rule_id=orm_transaction.matched_rule_id,
        reconciled_at=orm_transaction.reconciled_at,
        reconciled_by=orm_transaction.reconciled_by,
        external_id=orm_transaction.external_id,
        import_hash=orm_transaction.import_hash,
        created_at=orm_transaction.created_at,
    )


def rule_to_domain(orm_rule: ORMRule) -> domain.Rule:
    """Convert SQLAlchemy ReconciliationRule model to domain Rule entity."""
    return domain.Rule(
        id=orm_rule.id,
        owner_id=orm_rule.owner_id,
        name=orm_rule.name,
        description=orm_rule.description,
        priority=orm_rule.priority,
        match_type=orm_rule.match_type,
        conditions=tuple(domain.Condition.from_dict(c) for c in (orm_rule.conditions or [])),
        match_vendor_id=orm_rule.match_vendor_id,
        match_staff_id=orm_rule.match_staff_id,
        match_description_pattern=orm_rule.match_description_pattern,
        match_counter_party_pattern=orm_rule.match_counter_party_pattern,
        match_amount_min=orm_rule.match_amount_min,
        match_amount_max=orm_rule.match_amount_max,
        match_transaction_type=orm_rule.match_transaction_type,
        action_category_id=orm_rule.action_category_id,
        action_staff_id=orm_rule.action_staff_id,
        action_vendor_id=orm_rule.action_vendor_id,
        action_notes_template=orm_rule.action_notes_template,
        is_active=bool(orm_rule.is_active),
        requires_approval=bool(orm_rule.requires_approval),
        match_count=orm_rule.match_count or 0,
        last_matched_at=orm_rule.last_matched_at,
        created_at=orm_rule.created_at,
        updated_at=orm_rule.updated_at,
    )


def rule_to_columns(rule: domain.Rule) -> dict:
    """Return the writable column values for a domain Rule."""
    return {
        "name": rule.name,
        "description": rule.description,
        "priority": rule.priority,
        "match_type": rule.match_type,
        "conditions": [c.to_dict() for c in rule.conditions],
        "match_vendor_id": rule.match_vendor_id,
        "match_staff_id": rule.match_staff_id,
        "match_description_pattern": rule.match_description_pattern,
        "match_counter_party_pattern": rule.match_counter_party_pattern,
        "match_amount_min": rule.match_amount_min,
        "match_amount_max": rule.match_amount_max,
        "match_transaction_type": rule.match_transaction_type,
        "action_category_id": rule.action_category_id,
        "action_staff_id": rule.action_staff_id,
        "action_vendor_id": rule.action_vendor_id,
        "action_notes_template": rule.action_notes_template,
        "is_active": rule.is_active,
        "requires_approval": rule.requires_approval,
    }


def pending_match_to_domain(orm_match: ORMPendingMatch) -> domain.PendingMatch:
    """Convert SQLAlchemy PendingMatch model to domain PendingMatch entity."""
    return domain.PendingMatch(
        id=orm_match.id,
        owner_id=orm_match.owner_id,
        transaction_id=orm_match.transaction_id,
        rule_id=orm_match.rule_id,
        suggested_category_id=orm_match.suggested_category_id,
        suggested_staff_id=orm_match.suggested_staff_id,
        suggested_vendor_id=orm_match.suggested_vendor_id,
        suggested_notes=orm_match.suggested_notes,
        match_confidence=orm_match.match_confidence,
        status=orm_match.status,
        created_at=orm_match.created_at,
        reviewed_at=orm_match.reviewed_at,
    )
