"""
Access rules evaluated by the decision engine.

Each rule looks at one aspect of the request and either passes (returns
None) or returns a terminal DENY decision. The engine runs them in a fixed
order and stops at the first denial:

    1. TimeOfDayRule         - allowed hours window
    2. DailyQuotaRule        - bytes used today vs. daily quota
    3. SessionTimeLimitRule  - minutes since session start vs. limit
    4. CategoryBlockRule     - resource locator vs. blocked categories

Rules that pass may leave state on the context (remaining quota, remaining
session minutes) which ends up in the allow decision's snapshot.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import ClassVar

from wifigate.ledger import UsageLedger
from wifigate.policy.categories import CategoryTable
from wifigate.schema import (
    Decision,
    Policy,
    Principal,
    QuotaState,
    Session,
    SessionLimitState,
    ViolationType,
)
from wifigate.sessions import minutes_between


@dataclass
class EvaluationContext:
    """
    Everything a rule may look at for one evaluation.

    Attributes:
        principal: The resolved principal
        policy: The principal's role policy
        now: Evaluation instant in the configured local timezone
        session: The session being checked, if any
        resource_ref: Locator used for category matching, if any
        quota: Filled in by DailyQuotaRule
        session_limit: Filled in by SessionTimeLimitRule
    """

    principal: Principal
    policy: Policy
    now: datetime
    session: Session | None = None
    resource_ref: str | None = None
    quota: QuotaState = field(default_factory=QuotaState)
    session_limit: SessionLimitState = field(default_factory=SessionLimitState)

    @property
    def today(self) -> date:
        return self.now.date()


class Rule(ABC):
    """
    One step of the ordered rule chain.

    Attributes:
        name: Rule identifier, reported as Decision.rule
        violation_type: Violation recorded when this rule denies
    """

    name: ClassVar[str]
    violation_type: ClassVar[ViolationType]

    @abstractmethod
    def evaluate(self, ctx: EvaluationContext) -> Decision | None:
        """Return None to pass, or a DENY decision to stop the chain."""

    def deny(self, reason: str, **kwargs) -> Decision:
        return Decision.deny(
            reason,
            rule=self.name,
            violation_type=self.violation_type,
            **kwargs,
        )

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"


def within_window(current: time, start: time, end: time) -> bool:
    """
    Inclusive time-of-day window test.

    A window whose start is after its end wraps past midnight
    (22:00-06:00 contains 23:30 and 05:00).
    """
    current = current.replace(tzinfo=None, microsecond=0)
    start = start.replace(tzinfo=None)
    end = end.replace(tzinfo=None)
    if start <= end:
        return start <= current <= end
    return current >= start or current <= end


class TimeOfDayRule(Rule):
    """Deny outside the policy's allowed hours."""

    name = "allowed_hours"
    violation_type = ViolationType.TIME_RESTRICTION

    def evaluate(self, ctx: EvaluationContext) -> Decision | None:
        policy = ctx.policy
        if policy.access_24x7:
            return None

        start, end = policy.allowed_hours_start, policy.allowed_hours_end
        # A lone bound restricts nothing
        if start is None or end is None:
            return None

        if within_window(ctx.now.time(), start, end):
            return None

        return self.deny(
            f"Access denied. Allowed hours: {start:%H:%M:%S} - {end:%H:%M:%S}",
            context={
                "allowed_hours_start": start.strftime("%H:%M:%S"),
                "allowed_hours_end": end.strftime("%H:%M:%S"),
                "local_time": ctx.now.strftime("%H:%M:%S"),
            },
        )


class DailyQuotaRule(Rule):
    """Deny once today's usage has reached the daily quota."""

    name = "daily_quota"
    violation_type = ViolationType.QUOTA_EXCEEDED

    def __init__(self, ledger: UsageLedger) -> None:
        self.ledger = ledger

    def evaluate(self, ctx: EvaluationContext) -> Decision | None:
        if not ctx.policy.has_quota:
            return None

        quota = ctx.policy.daily_quota_bytes
        used = self.ledger.get_usage(ctx.principal.user_id, ctx.today).data_used_bytes

        if used >= quota:
            ctx.quota = QuotaState(quota_bytes=quota, used_bytes=used, remaining_bytes=0)
            return self.deny(
                "Daily quota exceeded",
                context={"used_bytes": used, "quota_bytes": quota},
            )

        ctx.quota = QuotaState(
            quota_bytes=quota,
            used_bytes=used,
            remaining_bytes=quota - used,
        )
        return None


class SessionTimeLimitRule(Rule):
    """Deny once the session has lasted as long as the policy allows."""

    name = "session_time_limit"
    violation_type = ViolationType.SESSION_TIME_LIMIT

    def evaluate(self, ctx: EvaluationContext) -> Decision | None:
        limit = ctx.policy.session_time_limit_minutes
        if ctx.session is None or not ctx.policy.has_session_limit:
            ctx.session_limit = SessionLimitState(limit_minutes=limit)
            return None

        session = ctx.session
        end = session.ended_at if not session.is_active and session.ended_at else ctx.now
        elapsed = minutes_between(session.started_at, end)

        if elapsed >= limit:
            ctx.session_limit = SessionLimitState(
                limit_minutes=limit,
                elapsed_minutes=elapsed,
                remaining_minutes=0,
            )
            return self.deny(
                f"Session time limit ({limit} min) exceeded",
                context={"elapsed_minutes": elapsed, "limit_minutes": limit},
            )

        ctx.session_limit = SessionLimitState(
            limit_minutes=limit,
            elapsed_minutes=elapsed,
            remaining_minutes=limit - elapsed,
        )
        return None


class CategoryBlockRule(Rule):
    """Deny resources that match one of the policy's blocked categories."""

    name = "blocked_categories"
    violation_type = ViolationType.CATEGORY_BLOCKED

    def __init__(self, table: CategoryTable | None = None) -> None:
        self.table = table or CategoryTable()

    def evaluate(self, ctx: EvaluationContext) -> Decision | None:
        if not ctx.resource_ref or not ctx.policy.blocked_categories:
            return None

        hit = self.table.match(ctx.resource_ref, ctx.policy.blocked_categories)
        if hit is None:
            return None

        category, keyword = hit
        return self.deny(
            f"{category} is blocked for your role",
            category=category,
            context={"resource_ref": ctx.resource_ref, "keyword": keyword},
        )


def default_rules(
    ledger: UsageLedger,
    categories: CategoryTable | None = None,
) -> list[Rule]:
    """The standard rule chain, in evaluation order."""
    return [
        TimeOfDayRule(),
        DailyQuotaRule(ledger),
        SessionTimeLimitRule(),
        CategoryBlockRule(categories),
    ]
