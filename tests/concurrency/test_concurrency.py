"""
Concurrency tests.

These verify that:
- Concurrent usage increments are never lost
- A session is ended exactly once when several callers race
- Only one of several concurrent logins opens a session
- Concurrent denials each record exactly one violation
"""

from concurrent.futures import ThreadPoolExecutor
from datetime import date
from pathlib import Path

import pytest

from wifigate.clock import FrozenClock
from wifigate.errors import ActiveSessionExistsError
from wifigate.ledger import UsageLedger
from wifigate.policy import DecisionEngine
from wifigate.schema import AccessConfig, SessionEndReason
from wifigate.service import AccessService
from wifigate.sessions import SessionRegistry
from wifigate.settings import Settings
from wifigate.store import AccessDB

DAY = date(2024, 5, 6)
WORKERS = 16


class TestUsageIncrements:
    """N concurrent increments of X bytes add exactly N*X."""

    def test_no_lost_updates(self, ledger: UsageLedger) -> None:
        n, x = 200, 4096
        with ThreadPoolExecutor(max_workers=WORKERS) as pool:
            list(pool.map(lambda _: ledger.add_usage("u-1", DAY, data_bytes=x, minutes=1), range(n)))

        record = ledger.get_usage("u-1", DAY)
        assert record.data_used_bytes == n * x
        assert record.time_used_minutes == n

    def test_many_users(self, ledger: UsageLedger) -> None:
        users = [f"u-{i}" for i in range(8)]

        def book(i: int) -> None:
            ledger.add_usage(users[i % len(users)], DAY, data_bytes=10)

        with ThreadPoolExecutor(max_workers=WORKERS) as pool:
            list(pool.map(book, range(400)))

        assert all(ledger.get_usage(u, DAY).data_used_bytes == 500 for u in users)


class TestSessionEnd:
    """Racing end calls transition a session once."""

    def test_exactly_one_transition(self, sessions: SessionRegistry) -> None:
        session_id = sessions.start_session("u-1", "Student")
        reasons = [SessionEndReason.LOGOUT, SessionEndReason.DISCONNECT] * (WORKERS // 2)

        with ThreadPoolExecutor(max_workers=WORKERS) as pool:
            results = list(pool.map(lambda r: sessions.terminate(session_id, r), reasons))

        transitions = [transitioned for _, transitioned in results]
        assert transitions.count(True) == 1
        ended = {session.ended_at for session, _ in results}
        assert len(ended) == 1
        assert not sessions.get_session(session_id).is_active


class TestConcurrentLogins:
    """Only one concurrent login per user opens a session."""

    @pytest.fixture
    def service(self, temp_dir: Path, clock: FrozenClock, access_config: AccessConfig) -> AccessService:
        svc = AccessService(Settings(db_path=str(temp_dir / "race.db")), clock=clock, config=access_config)
        svc.load_config()
        yield svc
        svc.close()

    def test_single_session(self, service: AccessService) -> None:
        def attempt(_: int) -> str | None:
            try:
                return service.login("u-student").session_id
            except ActiveSessionExistsError:
                return None

        with ThreadPoolExecutor(max_workers=WORKERS) as pool:
            results = list(pool.map(attempt, range(WORKERS)))

        opened = [r for r in results if r is not None]
        assert len(opened) == 1
        assert [s.session_id for s in service.sessions.list_active()] == opened
        assert service.get_usage("u-student").session_count == 1


class TestConcurrentDenials:
    """Each denial records exactly one violation under contention."""

    def test_one_violation_each(self, engine: DecisionEngine, db: AccessDB) -> None:
        with ThreadPoolExecutor(max_workers=WORKERS) as pool:
            decisions = list(
                pool.map(
                    lambda _: engine.evaluate("u-student", resource_ref="magnet:?xt=urn:btih:abc"),
                    range(50),
                )
            )

        assert not any(d.allowed for d in decisions)
        assert db.count_violations() == 50
