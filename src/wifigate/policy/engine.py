"""
Decision Engine for wifigate.

Given a user, an optional session and an optional resource locator, the
engine renders an allow/deny Decision.

How it works:
    1. Identifiers are validated (InvalidInputError, before any storage read)
    2. Principal and role policy are resolved; a miss is a denial with
       reason "User or policy not found" and no violation
    3. The unrestricted role is allowed outright, no further checks
    4. The session, if given, is loaded; a miss is a denial without violation
    5. The rule chain runs in order and stops at the first denial
    6. A denial from the chain records exactly one violation
    7. If every rule passes, the decision carries a policy snapshot

Design Principles:
    - Predictable: same inputs at the same instant give the same decision
    - Denials are values; only storage failures on required reads raise
      (EvaluationError), so callers never mistake an outage for a denial
    - The violation write cannot change the decision
"""

import logging
from collections.abc import Sequence
from datetime import UTC, tzinfo

from wifigate.clock import Clock, SystemClock
from wifigate.errors import (
    EvaluationError,
    InvalidInputError,
    NotFoundError,
    SessionNotFoundError,
    StorageError,
)
from wifigate.ledger import UsageLedger
from wifigate.policy.categories import CategoryTable
from wifigate.policy.rules import CategoryBlockRule, EvaluationContext, Rule, default_rules
from wifigate.policy.store import PolicyStore
from wifigate.schema import (
    Decision,
    Policy,
    PolicySnapshot,
    QuotaState,
    SessionLimitState,
    check_identifier,
)
from wifigate.sessions import SessionRegistry
from wifigate.violations import ViolationRecorder

logger = logging.getLogger(__name__)

NOT_FOUND_REASON = "User or policy not found"
SESSION_NOT_FOUND_REASON = "Session not found"
PRINCIPAL_LOOKUP_RULE = "principal_lookup"
DEFAULT_UNRESTRICTED_ROLE = "Admin"


class DecisionEngine:
    """
    Central access evaluator.

    Usage:
        engine = DecisionEngine(policies, ledger, sessions, recorder)
        decision = engine.evaluate("u-1001", session_id, "https://example.com")
        if decision.allowed:
            # apply decision.policy.bandwidth_down_mbps, etc.
        else:
            # disconnect / block with decision.reason

    Attributes:
        rules: The ordered rule chain
        unrestricted_role: Role that bypasses every rule
        tz: Timezone used for allowed hours and the quota day
    """

    def __init__(
        self,
        policies: PolicyStore,
        ledger: UsageLedger,
        sessions: SessionRegistry,
        recorder: ViolationRecorder,
        clock: Clock | None = None,
        categories: CategoryTable | None = None,
        unrestricted_role: str = DEFAULT_UNRESTRICTED_ROLE,
        tz: tzinfo | None = None,
        rules: Sequence[Rule] | None = None,
    ) -> None:
        self.policies = policies
        self.ledger = ledger
        self.sessions = sessions
        self.recorder = recorder
        self.clock = clock or SystemClock()
        self.unrestricted_role = unrestricted_role
        self.tz = tz or UTC
        self.rules: list[Rule] = (
            list(rules) if rules is not None else default_rules(ledger, categories)
        )

    def set_categories(self, categories: CategoryTable) -> None:
        """Point every category rule at a new keyword table."""
        for rule in self.rules:
            if isinstance(rule, CategoryBlockRule):
                rule.table = categories

    def evaluate(
        self,
        user_id: str,
        session_id: str | None = None,
        resource_ref: str | None = None,
    ) -> Decision:
        """
        Evaluate an access request.

        Args:
            user_id: The principal asking for access
            session_id: The session to check against the time limit, if any
            resource_ref: A locator (e.g. URL) for category matching, if any

        Returns:
            Decision (allowed or denied, with reason)

        Raises:
            InvalidInputError: For malformed identifiers
            EvaluationError: If a required read fails at the storage layer
        """
        check_identifier("user_id", user_id)
        if session_id is not None:
            check_identifier("session_id", session_id)
        if resource_ref is not None and (
            not isinstance(resource_ref, str) or not resource_ref.strip()
        ):
            raise InvalidInputError(field_name="resource_ref", value=resource_ref)

        now = self.clock.now().astimezone(self.tz)

        try:
            principal = self.policies.resolve_principal(user_id)
            policy = self.policies.resolve_policy(principal.role_id)
        except NotFoundError as e:
            logger.info("no principal/policy for %s: %s", user_id, e.message)
            return Decision.deny(
                NOT_FOUND_REASON,
                rule=PRINCIPAL_LOOKUP_RULE,
                context={"error": e.message},
            )
        except StorageError as e:
            raise self._evaluation_error(user_id, "policy", e) from e

        if principal.role_id == self.unrestricted_role:
            return Decision.allow(
                self._unrestricted_snapshot(policy),
                reason="Unrestricted role",
                rule="unrestricted_role",
            )

        session = None
        if session_id is not None:
            try:
                session = self.sessions.get_session(session_id)
            except SessionNotFoundError:
                session = None
            except StorageError as e:
                raise self._evaluation_error(user_id, "session", e) from e
            if session is None or session.user_id != user_id:
                logger.info("session %s not found for %s", session_id, user_id)
                return Decision.deny(
                    SESSION_NOT_FOUND_REASON,
                    rule="session_lookup",
                    context={"session_id": session_id},
                )

        ctx = EvaluationContext(
            principal=principal,
            policy=policy,
            now=now,
            session=session,
            resource_ref=resource_ref,
        )

        for rule in self.rules:
            try:
                decision = rule.evaluate(ctx)
            except StorageError as e:
                raise self._evaluation_error(user_id, rule.name, e) from e
            if decision is not None:
                self._record_violation(user_id, session_id, decision)
                return decision

        return Decision.allow(self._snapshot(ctx), rule="all_rules_passed")

    def _record_violation(
        self,
        user_id: str,
        session_id: str | None,
        decision: Decision,
    ) -> None:
        logger.info(
            "access denied for %s by %s: %s",
            user_id,
            decision.rule,
            decision.reason,
        )
        if decision.violation_type is None:
            return
        result = self.recorder.record(
            user_id=user_id,
            session_id=session_id,
            violation_type=decision.violation_type,
            details=decision.reason or "",
        )
        if not result.ok:
            logger.error(
                "decision for %s stands without a violation record (%s)",
                user_id,
                decision.violation_type.value,
            )

    def _evaluation_error(
        self,
        user_id: str,
        stage: str,
        error: StorageError,
    ) -> EvaluationError:
        logger.error("evaluation for %s failed reading %s: %s", user_id, stage, error.message)
        return EvaluationError(
            user_id=user_id,
            stage=stage,
            underlying_error=error.message,
        )

    def _unrestricted_snapshot(self, policy: Policy) -> PolicySnapshot:
        return PolicySnapshot(
            role_id=policy.role_id,
            unrestricted=True,
            bandwidth_down_mbps=policy.bandwidth_down_mbps,
            bandwidth_up_mbps=policy.bandwidth_up_mbps,
            quota=QuotaState(),
            session_limit=SessionLimitState(),
        )

    def _snapshot(self, ctx: EvaluationContext) -> PolicySnapshot:
        policy = ctx.policy
        return PolicySnapshot(
            role_id=policy.role_id,
            bandwidth_down_mbps=policy.bandwidth_down_mbps,
            bandwidth_up_mbps=policy.bandwidth_up_mbps,
            quota=ctx.quota,
            session_limit=ctx.session_limit,
            blocked_categories=policy.blocked_categories,
        )
