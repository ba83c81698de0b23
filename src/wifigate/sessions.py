"""
Session Registry for wifigate.

Tracks the session lifecycle used by login, logout and disconnect flows.

State machine:
    ACTIVE -> ENDED, one way, exactly once. Ending an ended session is a
    no-op. The transition is a compare-and-set on the active flag, so an
    admin disconnect racing a user logout ends the session once and both
    callers see success.

A user may hold at most one active session at a time.
"""

import logging
import math

from wifigate.clock import Clock, SystemClock
from wifigate.errors import InvalidInputError, SessionNotFoundError
from wifigate.schema import Session, SessionEndReason, check_identifier
from wifigate.store import AccessDB

logger = logging.getLogger(__name__)


def minutes_between(start, end) -> int:
    """Whole minutes from start to end, floored, never negative."""
    seconds = (end - start).total_seconds()
    return max(0, math.floor(seconds / 60))


class SessionRegistry:
    """
    Session lifecycle backed by the shared store.

    Usage:
        registry = SessionRegistry(db, clock)
        session_id = registry.start_session("u-1001", "Student", ip_address="10.0.0.5")
        registry.elapsed_minutes(session_id)
        registry.end_session(session_id)
    """

    def __init__(self, db: AccessDB, clock: Clock | None = None) -> None:
        self.db = db
        self.clock = clock or SystemClock()

    def start_session(
        self,
        user_id: str,
        role_id: str,
        ip_address: str | None = None,
        mac_address: str | None = None,
    ) -> str:
        """
        Start a session for a user.

        Returns:
            The new session ID

        Raises:
            InvalidInputError: For malformed user or role IDs
            ActiveSessionExistsError: If the user already has an active session
        """
        check_identifier("user_id", user_id)
        check_identifier("role_id", role_id)

        session = self.db.create_session(
            user_id=user_id,
            role_id=role_id,
            started_at=self.clock.now(),
            ip_address=ip_address,
            mac_address=mac_address,
        )
        logger.info("session %s started for %s (%s)", session.session_id, user_id, role_id)
        return session.session_id

    def end_session(
        self,
        session_id: str,
        reason: SessionEndReason = SessionEndReason.LOGOUT,
    ) -> Session:
        """
        End a session. Idempotent.

        The first call stamps ended_at; later calls leave the session as it
        is and return it unchanged.

        Raises:
            SessionNotFoundError: If the session does not exist
        """
        session, _ = self.terminate(session_id, reason)
        return session

    def terminate(
        self,
        session_id: str,
        reason: SessionEndReason = SessionEndReason.LOGOUT,
    ) -> tuple[Session, bool]:
        """
        End a session and report whether this call did the transition.

        Of several concurrent callers exactly one gets True.
        """
        check_identifier("session_id", session_id)
        reason = SessionEndReason(reason)
        if self.db.get_session(session_id) is None:
            raise SessionNotFoundError(session_id=session_id)

        transitioned = self.db.end_session(session_id, self.clock.now(), reason)
        if transitioned:
            logger.info("session %s ended (%s)", session_id, reason.value)
        else:
            logger.debug("session %s already ended", session_id)

        return self.get_session(session_id), transitioned

    def get_session(self, session_id: str) -> Session:
        """
        Get a session by ID, active or not.

        Raises:
            SessionNotFoundError: If the session does not exist
        """
        check_identifier("session_id", session_id)
        session = self.db.get_session(session_id)
        if session is None:
            raise SessionNotFoundError(session_id=session_id)
        return session

    def get_active(self, user_id: str) -> Session | None:
        """The user's active session, or None."""
        check_identifier("user_id", user_id)
        return self.db.get_active_session(user_id)

    def elapsed_minutes(self, session_id: str) -> int:
        """
        Whole minutes the session has lasted.

        For an active session this is now - started_at; for an ended one it
        is ended_at - started_at and no longer changes.
        """
        return self.session_elapsed(self.get_session(session_id))

    def session_elapsed(self, session: Session) -> int:
        """Elapsed minutes for an already-loaded session."""
        end = session.ended_at if not session.is_active and session.ended_at else self.clock.now()
        return minutes_between(session.started_at, end)

    def list_active(self) -> list[Session]:
        """Every active session, oldest first."""
        return self.db.list_active_sessions()

    def history(self, user_id: str, limit: int = 20) -> list[Session]:
        """A user's sessions, most recent first."""
        check_identifier("user_id", user_id)
        return self.db.list_sessions_for_user(user_id, limit=limit)

    def add_session_data(self, session_id: str, data_bytes: int) -> bool:
        """
        Add transferred bytes to an active session.

        Returns:
            False when the session has already ended
        """
        check_identifier("session_id", session_id)
        if data_bytes < 0:
            raise InvalidInputError(field_name="data_bytes", value=data_bytes)
        return self.db.add_session_data(session_id, data_bytes)
