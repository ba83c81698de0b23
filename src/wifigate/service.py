"""
Access Service for wifigate.

The service is the composition root. It opens the store once, wires the
policy store, usage ledger, session registry, violation recorder and
decision engine to it, and closes it at shutdown. Callers (the login flow,
the periodic expiry sweep, administrative tooling, the CLI) go through it.

Flows:
    login:   evaluate (no session) -> start session -> count session
    logout:  end session -> book connection minutes
    sweep:   evaluate every active session -> end the ones now denied

Category keywords come from the store, with the constructor's access config
layered on top, and are rebuilt whenever a config is loaded.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from wifigate.clock import Clock, SystemClock, local_today
from wifigate.errors import EvaluationError, StorageError
from wifigate.ledger import UsageLedger
from wifigate.policy import DecisionEngine, PolicyStore
from wifigate.policy.engine import PRINCIPAL_LOOKUP_RULE
from wifigate.schema import (
    AccessConfig,
    Decision,
    Session,
    SessionEndReason,
    UsageRecord,
    ViolationType,
    load_access_config,
)
from wifigate.sessions import SessionRegistry
from wifigate.settings import Settings
from wifigate.store import AccessDB
from wifigate.violations import ViolationRecorder

logger = logging.getLogger(__name__)

# Denials that end a running session during a sweep
EXPIRING_VIOLATIONS = frozenset(
    {
        ViolationType.SESSION_TIME_LIMIT,
        ViolationType.TIME_RESTRICTION,
        ViolationType.QUOTA_EXCEEDED,
    }
)


@dataclass
class LoginResult:
    """
    Outcome of a login attempt.

    Attributes:
        decision: The access decision taken before the session was opened
        session_id: The new session (allowed logins only)
    """

    decision: Decision
    session_id: str | None = None

    @property
    def allowed(self) -> bool:
        return self.decision.allowed and self.session_id is not None


@dataclass
class SweepResult:
    """
    Outcome of one expiry sweep.

    Attributes:
        checked: Active sessions evaluated
        ended: Session IDs ended by this sweep
        reasons: Denial reason per ended session
        errors: Session IDs whose evaluation failed
    """

    checked: int = 0
    ended: list[str] = field(default_factory=list)
    reasons: dict[str, str] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)


class AccessService:
    """
    Wires the wifigate components to one store.

    Usage:
        with AccessService(Settings(db_path="wifigate.db")) as service:
            service.load_config(load_access_config("access.yaml"))
            result = service.login("u-1001", ip_address="10.0.0.5")
            service.evaluate("u-1001", result.session_id, "https://example.com")
            service.logout(result.session_id)

    Attributes:
        settings: Process settings
        db: The shared store
        policies, ledger, sessions, recorder: The leaf components
        engine: The decision engine
    """

    def __init__(
        self,
        settings: Settings | None = None,
        clock: Clock | None = None,
        config: AccessConfig | None = None,
        db: AccessDB | None = None,
    ) -> None:
        """
        Open the store and build the components.

        Args:
            settings: Process settings (environment defaults when omitted)
            clock: Clock for every component (system clock when omitted)
            config: Access config whose categories are layered over the
                    stored ones; read from settings.config_path when omitted
            db: An already opened store to use instead of settings.db_path
        """
        self.settings = settings or Settings()
        self.clock = clock or SystemClock()

        if config is None and self.settings.config_path is not None:
            config = load_access_config(self.settings.config_path)
        self.config = config

        self.db = db or AccessDB(self.settings.db_path)
        self.policies = PolicyStore(self.db, self.clock)
        self.categories = self.policies.category_table(config.categories if config else None)
        self.ledger = UsageLedger(self.db)
        self.sessions = SessionRegistry(self.db, self.clock)
        self.recorder = ViolationRecorder(
            self.db,
            self.clock,
            attempts=self.settings.violation_write_attempts,
            retry_delay_seconds=self.settings.violation_retry_delay_seconds,
        )
        self.engine = DecisionEngine(
            policies=self.policies,
            ledger=self.ledger,
            sessions=self.sessions,
            recorder=self.recorder,
            clock=self.clock,
            categories=self.categories,
            unrestricted_role=self.settings.unrestricted_role,
            tz=self.settings.tz,
        )

    def close(self) -> None:
        """Close the store."""
        self.db.close()

    def __enter__(self) -> "AccessService":
        """Enter context manager."""
        return self

    def __exit__(self, *args: Any) -> None:
        """Exit context manager."""
        self.close()

    def today(self) -> date:
        """The current day in the configured timezone (the quota day)."""
        return local_today(self.clock, self.settings.tz)

    def load_config(self, config: AccessConfig | None = None) -> tuple[int, int]:
        """
        Store the categories, policies and principals of an access config.

        The engine's keyword table is rebuilt from the store afterwards.

        Raises:
            PolicyValidationError: If a policy blocks an unknown category
        """
        config = config or self.config
        if config is None:
            return 0, 0
        counts = self.policies.load(config)
        self.categories = self.policies.category_table()
        self.engine.set_categories(self.categories)
        return counts

    # =========================================================================
    # Decisions
    # =========================================================================

    def evaluate(
        self,
        user_id: str,
        session_id: str | None = None,
        resource_ref: str | None = None,
    ) -> Decision:
        """See DecisionEngine.evaluate."""
        return self.engine.evaluate(user_id, session_id, resource_ref)

    def login(
        self,
        user_id: str,
        ip_address: str | None = None,
        mac_address: str | None = None,
    ) -> LoginResult:
        """
        Evaluate a user and open a session if access is allowed.

        Credentials are checked by the caller before this is reached.

        Raises:
            ActiveSessionExistsError: If the user already has an active session
            EvaluationError: If the decision could not be rendered
        """
        decision = self.engine.evaluate(user_id)
        if not decision.allowed:
            return LoginResult(decision=decision)

        principal = self.policies.resolve_principal(user_id)
        session_id = self.sessions.start_session(
            user_id,
            principal.role_id,
            ip_address=ip_address,
            mac_address=mac_address,
        )
        self.ledger.add_usage(user_id, self.today(), sessions=1)
        return LoginResult(decision=decision, session_id=session_id)

    def logout(
        self,
        session_id: str,
        reason: SessionEndReason = SessionEndReason.LOGOUT,
    ) -> Session:
        """
        End a session and book its connection minutes. Idempotent.

        Minutes are booked only by the call that actually ended the session.
        """
        session, transitioned = self.sessions.terminate(session_id, reason)
        if transitioned:
            minutes = self.sessions.session_elapsed(session)
            if minutes:
                self.ledger.add_usage(session.user_id, self.today(), minutes=minutes)
        return session

    def disconnect(self, session_id: str) -> Session:
        """Administrative disconnect."""
        return self.logout(session_id, SessionEndReason.DISCONNECT)

    # =========================================================================
    # Usage
    # =========================================================================

    def add_usage(
        self,
        user_id: str,
        data_bytes: int = 0,
        minutes: int = 0,
        session_id: str | None = None,
        day: date | None = None,
    ) -> UsageRecord:
        """
        Book metered usage for a user (today unless a day is given).

        When a session is named, its byte counter is advanced too.
        """
        record = self.ledger.add_usage(user_id, day or self.today(), data_bytes, minutes)
        if session_id is not None and data_bytes:
            self.sessions.add_session_data(session_id, data_bytes)
        return record

    def get_usage(self, user_id: str, day: date | None = None) -> UsageRecord:
        return self.ledger.get_usage(user_id, day or self.today())

    # =========================================================================
    # Expiry Sweep
    # =========================================================================

    def sweep_expired_sessions(self) -> SweepResult:
        """
        Re-check every active session and end the ones policy now denies.

        Sessions denied for time window, quota or session length are ended
        with reason "expired". Sessions whose principal was deactivated or
        whose role lost its policy are ended with reason "revoked" (no
        violation is recorded for those). Evaluation failures are logged and
        the session is left alone until the next sweep.
        """
        result = SweepResult()
        for session in self.sessions.list_active():
            result.checked += 1
            try:
                decision = self.engine.evaluate(session.user_id, session.session_id)
            except (EvaluationError, StorageError):
                logger.exception("sweep could not evaluate session %s", session.session_id)
                result.errors.append(session.session_id)
                continue

            if decision.allowed:
                continue
            if decision.violation_type in EXPIRING_VIOLATIONS:
                reason = SessionEndReason.EXPIRED
            elif decision.rule == PRINCIPAL_LOOKUP_RULE:
                reason = SessionEndReason.REVOKED
            else:
                continue

            self.logout(session.session_id, reason)
            result.ended.append(session.session_id)
            result.reasons[session.session_id] = decision.reason or ""

        if result.ended:
            logger.info(
                "sweep ended %d of %d active sessions",
                len(result.ended),
                result.checked,
            )
        return result
