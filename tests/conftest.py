"""
Pytest configuration and fixtures for wifigate tests.

This module provides shared fixtures used across unit, integration,
and concurrency tests.
"""

import tempfile
from datetime import UTC, datetime
from pathlib import Path
from typing import Generator

import pytest

from wifigate.clock import FrozenClock
from wifigate.ledger import UsageLedger
from wifigate.policy import CategoryTable, DecisionEngine, PolicyStore
from wifigate.schema import AccessConfig, load_access_config_from_string
from wifigate.sessions import SessionRegistry
from wifigate.store import AccessDB
from wifigate.violations import ViolationRecorder

# Monday 2024-05-06, noon UTC
NOON = datetime(2024, 5, 6, 12, 0, 0, tzinfo=UTC)

ACCESS_YAML = """
categories:
  STREAMING: [netflix, twitch]
policies:
  - role_id: Student
    bandwidth_down_mbps: 10
    bandwidth_up_mbps: 2
    daily_quota_gb: 1
    session_time_limit_minutes: 30
    allowed_hours_start: "08:00:00"
    allowed_hours_end: "22:00:00"
    blocked_categories: [P2P, STREAMING]
  - role_id: Staff
    bandwidth_down_mbps: 50
    bandwidth_up_mbps: 10
    access_24x7: true
    allowed_hours_start: "09:00:00"
    allowed_hours_end: "10:00:00"
  - role_id: Guest
    bandwidth_down_mbps: 2
    bandwidth_up_mbps: 1
    daily_quota_gb: 0.5
    allowed_hours_start: "22:00:00"
    allowed_hours_end: "06:00:00"
  - role_id: Admin
    bandwidth_down_mbps: 100
    bandwidth_up_mbps: 100
    daily_quota_bytes: 1
    session_time_limit_minutes: 1
    allowed_hours_start: "03:00:00"
    allowed_hours_end: "03:01:00"
    blocked_categories: [P2P]
principals:
  - user_id: u-student
    role_id: Student
  - user_id: u-staff
    role_id: Staff
  - user_id: u-guest
    role_id: Guest
  - user_id: u-admin
    role_id: Admin
  - user_id: u-orphan
    role_id: Visitor
  - user_id: u-gone
    role_id: Student
    is_active: false
"""


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def access_yaml() -> str:
    """Return the access config YAML used across tests."""
    return ACCESS_YAML


@pytest.fixture
def access_config(access_yaml: str) -> AccessConfig:
    """Return the parsed access config."""
    return load_access_config_from_string(access_yaml)


@pytest.fixture
def clock() -> FrozenClock:
    """A clock frozen at noon UTC on a Monday."""
    return FrozenClock(NOON)


@pytest.fixture
def db(temp_dir: Path) -> Generator[AccessDB, None, None]:
    """Create an empty database instance."""
    database = AccessDB(temp_dir / "wifigate.db")
    yield database
    database.close()


@pytest.fixture
def policy_store(db: AccessDB, clock: FrozenClock, access_config: AccessConfig) -> PolicyStore:
    """A policy store seeded with the access config."""
    store = PolicyStore(db, clock)
    store.load(access_config)
    return store


@pytest.fixture
def ledger(db: AccessDB) -> UsageLedger:
    return UsageLedger(db)


@pytest.fixture
def sessions(db: AccessDB, clock: FrozenClock) -> SessionRegistry:
    return SessionRegistry(db, clock)


@pytest.fixture
def recorder(db: AccessDB, clock: FrozenClock) -> ViolationRecorder:
    return ViolationRecorder(db, clock)


@pytest.fixture
def engine(
    policy_store: PolicyStore,
    ledger: UsageLedger,
    sessions: SessionRegistry,
    recorder: ViolationRecorder,
    clock: FrozenClock,
    access_config: AccessConfig,
) -> DecisionEngine:
    """A decision engine over the seeded store, evaluating in UTC."""
    return DecisionEngine(
        policies=policy_store,
        ledger=ledger,
        sessions=sessions,
        recorder=recorder,
        clock=clock,
        categories=CategoryTable(access_config.categories),
    )
