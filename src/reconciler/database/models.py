"""SQLAlchemy models for reconciler database."""

from datetime import datetime, UTC
from sqlalchemy import (
    JSON,
    Column,
    Integer,
    String,
    ForeignKey,
    DateTime,
    Date,
    Numeric,
    Boolean,
    Float,
    Index,
    UniqueConstraint,
    create_engine,
    event,
)
from sqlalchemy.orm import declarative_base, relationship, sessionmaker, Session

Base = declarative_base()


def _now() -> datetime:
    return datetime.now(UTC)


class Category(Base):
    """Category lookup model."""

    __tablename__ = "categories"

    id = Column(Integer, primary_key=True)
    owner_id = Column(String, nullable=False, index=True)
    name = Column(String, nullable=False)
    created_at = Column(DateTime, default=_now, nullable=False)


class Vendor(Base):
    """Vendor lookup model."""

    __tablename__ = "vendors"

    id = Column(Integer, primary_key=True)
    owner_id = Column(String, nullable=False, index=True)
    name = Column(String, nullable=False)
    created_at = Column(DateTime, default=_now, nullable=False)


class Staff(Base):
    """Staff lookup model."""

    __tablename__ = "staff"

    id = Column(Integer, primary_key=True)
    owner_id = Column(String, nullable=False, index=True)
    name = Column(String, nullable=False)
    role = Column(String, default="staff", nullable=False)
    created_at = Column(DateTime, default=_now, nullable=False)


class Transaction(Base):
    """Transaction model."""

    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True)
    owner_id = Column(String, nullable=False)
    transaction_date = Column(Date, nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    description = Column(String, nullable=True)
    raw_party = Column(String, nullable=True)
    source = Column(String, default="manual", nullable=False)
    category_id = Column(Integer, ForeignKey("categories.id", ondelete="SET NULL"), nullable=True)
    vendor_id = Column(Integer, ForeignKey("vendors.id", ondelete="SET NULL"), nullable=True)
    staff_id = Column(Integer, ForeignKey("staff.id", ondelete="SET NULL"), nullable=True)
    linked_payable_id = Column(Integer, nullable=True)
    bill_id = Column(Integer, nullable=True)
    debt_id = Column(Integer, nullable=True)
    notes = Column(String, nullable=True)
    confirmed = Column(Boolean, default=False, nullable=False)
    reconciliation_status = Column(String, default="unreconciled", nullable=False)
    matched_rule_id = Column(Integer, nullable=True)
    reconciled_at = Column(DateTime, nullable=True)
    reconciled_by = Column(String, nullable=True)
    external_id = Column(String, nullable=True)
    import_hash = Column(String, nullable=True)
    created_at = Column(DateTime, default=_now, nullable=False)

    # external_id is unique per source; NULLs never collide
    __table_args__ = (
        UniqueConstraint("owner_id", "source", "external_id", name="uq_source_external_id"),
        Index("ix_transactions_owner_status", "owner_id", "reconciliation_status"),
    )

    # Relationships
    pending_matches = relationship(
        "PendingMatch", back_populates="transaction", cascade="all, delete-orphan"
    )
    payable_links = relationship(
        "PayableTransaction", back_populates="transaction", cascade="all, delete-orphan"
    )


class ReconciliationRule(Base):
    """Reconciliation rule model."""

    __tablename__ = "reconciliation_rules"

    id = Column(Integer, primary_key=True)
    owner_id = Column(String, nullable=False, index=True)
    name = Column(String, nullable=False)
    description = Column(String, nullable=True)
    priority = Column(Integer, default=100, nullable=False)
    match_type = Column(String, nullable=False)
    conditions = Column(JSON, default=list, nullable=False)
    match_vendor_id = Column(Integer, nullable=True)
    match_staff_id = Column(Integer, nullable=True)
    match_description_pattern = Column(String, nullable=True)
    match_counter_party_pattern = Column(String, nullable=True)
    match_amount_min = Column(Numeric(12, 2), nullable=True)
    match_amount_max = Column(Numeric(12, 2), nullable=True)
    match_transaction_type = Column(String, nullable=True)
    action_category_id = Column(Integer, nullable=True)
    action_staff_id = Column(Integer, nullable=True)
    action_vendor_id = Column(Integer, nullable=True)
    action_notes_template = Column(String, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    requires_approval = Column(Boolean, default=True, nullable=False)
    match_count = Column(Integer, default=0, nullable=False)
    last_matched_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=_now, nullable=False)
    updated_at = Column(DateTime, default=_now, nullable=False)


class PendingMatch(Base):
    """Proposed categorization awaiting review."""

    __tablename__ = "pending_matches"

    id = Column(Integer, primary_key=True)
    owner_id = Column(String, nullable=False)
    transaction_id = Column(Integer, ForeignKey("transactions.id", ondelete="CASCADE"), nullable=False)
    rule_id = Column(Integer, ForeignKey("reconciliation_rules.id", ondelete="SET NULL"), nullable=True)
    suggested_category_id = Column(Integer, nullable=True)
    suggested_staff_id = Column(Integer, nullable=True)
    suggested_vendor_id = Column(Integer, nullable=True)
    suggested_notes = Column(String, nullable=True)
    match_confidence = Column(Float, default=1.0, nullable=False)
    status = Column(String, default="pending", nullable=False)
    created_at = Column(DateTime, default=_now, nullable=False)
    reviewed_at = Column(DateTime, nullable=True)

    # One row per (transaction, rule); engine re-runs update it in place
    __table_args__ = (
        UniqueConstraint("transaction_id", "rule_id", name="uq_pending_transaction_rule"),
        Index("ix_pending_matches_owner_status", "owner_id", "status"),
    )

    # Relationships
    transaction = relationship("Transaction", back_populates="pending_matches")


class PayableTransaction(Base):
    """Join row linking a payable to the transaction that settled it."""

    __tablename__ = "payable_transactions"

    id = Column(Integer, primary_key=True)
    owner_id = Column(String, nullable=False)
    payable_id = Column(Integer, nullable=False)
    transaction_id = Column(Integer, ForeignKey("transactions.id", ondelete="CASCADE"), nullable=False)
    created_at = Column(DateTime, default=_now, nullable=False)

    # Relationships
    transaction = relationship("Transaction", back_populates="payable_links")


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys = ON")
    cursor.close()


def create_session_factory(database_url: str) -> sessionmaker[Session]:
    """Create a SQLAlchemy session factory."""
    engine = create_engine(database_url, echo=False)
    if engine.dialect.name == "sqlite":
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine)
