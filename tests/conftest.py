"""
Shared fixtures: temporary ledgers and a transaction factory.
"""

import os
import shutil
import tempfile
from datetime import datetime, timezone

import pytest

from token_telemetry.storage.models import TokenType, Transaction
from token_telemetry.storage.repository import TransactionRepository, initialize_schema

USER_ID = "65f1c0ffee0ddba11cafe001"
OTHER_USER_ID = "65f1c0ffee0ddba11cafe002"
NOW = datetime(2024, 3, 15, 12, 0, 0, tzinfo=timezone.utc)


def make_transaction(
    token_type=TokenType.COMPLETION,
    raw_amount=-100,
    created_at=NOW,
    user=USER_ID,
    **kwargs
) -> Transaction:
    """Build a transaction with sensible defaults for tests."""
    return Transaction(
        user=user,
        token_type=token_type,
        raw_amount=raw_amount,
        created_at=created_at,
        **kwargs
    )


@pytest.fixture
def db_path():
    """Path to a freshly initialized ledger in a temporary directory."""
    temp_dir = tempfile.mkdtemp()
    path = os.path.join(temp_dir, "test.db")
    initialize_schema(path)
    yield path
    shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture
def repository(db_path):
    return TransactionRepository(db_path)
