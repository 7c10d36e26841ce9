"""Shared pytest fixtures for reconciler tests."""

import tempfile
import os
from datetime import date
from decimal import Decimal
import pytest

from reconciler.database.factories import create_sqlite_database
from reconciler.domain.approval import ApprovalQueue
from reconciler.domain.duplicates import DuplicateDetector
from reconciler.domain.lookups import LookupService
from reconciler.domain.matching import MatchingEngine
from reconciler.domain.rules import RuleService
from reconciler.domain.transaction import TransactionService

OWNER = "owner-1"
OTHER_OWNER = "owner-2"


@pytest.fixture
def temp_db():
    """Create a temporary database for testing."""
    # Create a temporary file for the database
    fd, db_path = tempfile.mkstemp(suffix=".db")
    os.close(fd)

    # Create database
    db = create_sqlite_database(database_path=db_path)
    # Store the path for tests that need it
    db.database_path = db_path
    db.connect()
    db.initialize_schema()

    yield db

    # Cleanup
    db.disconnect()
    if os.path.exists(db_path):
        os.unlink(db_path)


@pytest.fixture
def lookup_service(temp_db):
    """Create a LookupService with a temporary database."""
    return LookupService(temp_db)


@pytest.fixture
def transaction_service(temp_db):
    """Create a TransactionService with a temporary database."""
    return TransactionService(temp_db)


@pytest.fixture
def rule_service(temp_db):
    """Create a RuleService with a temporary database."""
    return RuleService(temp_db)


@pytest.fixture
def engine(temp_db):
    """Create a MatchingEngine with a temporary database."""
    return MatchingEngine(temp_db)


@pytest.fixture
def approval_queue(temp_db):
    """Create an ApprovalQueue with a temporary database."""
    return ApprovalQueue(temp_db)


@pytest.fixture
def duplicate_detector(temp_db):
    """Create a DuplicateDetector with a temporary database."""
    return DuplicateDetector(temp_db)


@pytest.fixture
def sample_lookups(lookup_service):
    """Create a few categories, vendors and staff members."""
    return {
        "office": lookup_service.create_category(OWNER, "Office Supplies"),
        "rent": lookup_service.create_category(OWNER, "Rent"),
        "wages": lookup_service.create_category(OWNER, "Wages"),
        "amazon": lookup_service.create_vendor(OWNER, "Amazon"),
        "landlord": lookup_service.create_vendor(OWNER, "Landlord Ltd"),
        "alice": lookup_service.create_staff(OWNER, "Alice", role="instructor"),
    }


@pytest.fixture
def make_transaction(transaction_service):
    """Factory creating a transaction for OWNER with sensible defaults."""

    def _make(amount="-10.00", **fields):
        fields.setdefault("transaction_date", date(2024, 1, 15))
        return transaction_service.create_transaction(OWNER, amount=Decimal(amount), **fields)

    return _make


@pytest.fixture
def cli_runner():
    """Create a Click CLI test runner."""
    from click.testing import CliRunner

    return CliRunner()
