"""
Violation Recorder for wifigate.

Append-only log of denied access attempts. The decision engine calls
``record`` once per denial and inspects the returned RecordResult; a failed
write is retried after a short delay, logged and counted, but never raised. A storage outage
therefore cannot turn a deny into an allow or an allow into an error.
"""

import logging
import threading
import time
from dataclasses import dataclass
from datetime import datetime

from wifigate.clock import Clock, SystemClock
from wifigate.errors import StorageError
from wifigate.schema import Violation, ViolationType
from wifigate.store import AccessDB

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RecordResult:
    """
    Outcome of a violation write.

    Attributes:
        ok: Whether the violation was stored
        violation_id: ID of the stored row (ok only)
        attempts: How many writes were tried
        error: The last storage error (failure only)
    """

    ok: bool
    violation_id: int | None = None
    attempts: int = 1
    error: StorageError | None = None


class ViolationRecorder:
    """
    Writes violations to the shared store.

    Attributes:
        db: The store to append to
        attempts: Writes tried before giving up on one violation
        retry_delay_seconds: Pause between two attempts
        failures: Violations that could not be stored since construction
    """

    def __init__(
        self,
        db: AccessDB,
        clock: Clock | None = None,
        attempts: int = 3,
        retry_delay_seconds: float = 0.05,
    ) -> None:
        self.db = db
        self.clock = clock or SystemClock()
        self.attempts = max(1, attempts)
        self.retry_delay_seconds = max(0.0, retry_delay_seconds)
        self._failures = 0
        self._failures_lock = threading.Lock()

    @property
    def failures(self) -> int:
        with self._failures_lock:
            return self._failures

    def record(
        self,
        user_id: str,
        session_id: str | None,
        violation_type: ViolationType,
        details: str,
    ) -> RecordResult:
        """
        Append one violation.

        Returns:
            RecordResult; never raises for storage failures
        """
        created_at = self.clock.now()
        last_error: StorageError | None = None

        for attempt in range(1, self.attempts + 1):
            try:
                violation_id = self.db.insert_violation(
                    user_id=user_id,
                    session_id=session_id,
                    violation_type=violation_type,
                    details=details,
                    created_at=created_at,
                )
            except StorageError as e:
                last_error = e
                logger.warning(
                    "violation write failed for %s (attempt %d/%d): %s",
                    user_id,
                    attempt,
                    self.attempts,
                    e.message,
                )
                if attempt < self.attempts and self.retry_delay_seconds:
                    time.sleep(self.retry_delay_seconds)
                continue
            return RecordResult(ok=True, violation_id=violation_id, attempts=attempt)

        with self._failures_lock:
            self._failures += 1
        logger.error(
            "dropping %s violation for %s after %d attempts: %s",
            violation_type.value,
            user_id,
            self.attempts,
            details,
        )
        return RecordResult(ok=False, attempts=self.attempts, error=last_error)

    def list_violations(
        self,
        user_id: str | None = None,
        violation_type: ViolationType | None = None,
        since: datetime | None = None,
        until: datetime | None = None,
        limit: int = 100,
    ) -> list[Violation]:
        """Recorded violations, most recent first."""
        return self.db.list_violations(
            user_id=user_id,
            violation_type=violation_type,
            since=since,
            until=until,
            limit=limit,
        )
