"""Shared test fixtures and configuration.

Sets up environment variables before any src imports so src.config reads
test values, and provides an engine backed by a temp DB.
"""

import os

# Patch env vars BEFORE any src imports
os.environ.setdefault("DATABASE_PATH", ":memory:")
os.environ.setdefault("TWILIO_ACCOUNT_SID", "")
os.environ.setdefault("SMTP_HOST", "")
os.environ.setdefault("DELIVERY_TIMEOUT_SECONDS", "1")
os.environ.setdefault("DELIVERY_MAX_ATTEMPTS", "2")

import pytest
from unittest.mock import AsyncMock

from src.data.models import Actor, DeliveryMethod, Role


@pytest.fixture
def tmp_db_path(tmp_path):
    """Return a temporary SQLite DB path."""
    return str(tmp_path / "test_household.db")


@pytest.fixture
def household_db(tmp_db_path):
    """Return a HouseholdDB instance backed by a temp file."""
    from src.data.db import HouseholdDB
    return HouseholdDB(db_path=tmp_db_path)


@pytest.fixture
def channels():
    """One AsyncMock channel per delivery method; all succeed by default."""
    return {method: AsyncMock() for method in DeliveryMethod}


@pytest.fixture
def engine(household_db, channels):
    """Return a DutyEngine on the temp DB with mocked channels."""
    from src.core.engine import DutyEngine
    return DutyEngine(household_db, channels=channels, timeout_seconds=0.5, max_attempts=2)


@pytest.fixture
def superuser():
    return Actor(email="owner@example.com", role=Role.SUPERUSER)


@pytest.fixture
def editor():
    return Actor(email="editor@example.com", role=Role.EDITOR)


@pytest.fixture
def viewer():
    return Actor(email="viewer@example.com", role=Role.VIEWER)
