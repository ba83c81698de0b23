"""
Schema definitions for wifigate.

This module defines the Pydantic models used throughout wifigate:
- Principal/Policy: Who is asking and what their role permits
- Session/UsageRecord: Live state the rules read
- Violation: Append-only record of a denial
- Decision/PolicySnapshot: The result of policy evaluation
- AccessConfig: The YAML document that seeds roles, policies and categories

Design Decisions:
    - Stored records are immutable (frozen=True); state changes go through
      the store and come back as new instances
    - Policies are validated when written, not when evaluated
    - Quotas are held in bytes; YAML may state them in GB (1 GB = 1024**3 bytes)
"""

import re
from datetime import UTC, date, datetime, time
from enum import Enum
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from wifigate.errors import InvalidInputError

BYTES_PER_GB = 1024**3

# Identifiers are opaque but must be printable and bounded
ID_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.:@-]{0,63}$")


def check_identifier(field_name: str, value: Any) -> str:
    """
    Validate an identifier before it reaches storage.

    Raises:
        InvalidInputError: If the value is not a well-formed identifier
    """
    if not isinstance(value, str) or not ID_PATTERN.match(value):
        raise InvalidInputError(field_name=field_name, value=value)
    return value


# =============================================================================
# Enums
# =============================================================================


class ViolationType(str, Enum):
    """Which rule produced a denial."""

    TIME_RESTRICTION = "TIME_RESTRICTION"
    QUOTA_EXCEEDED = "QUOTA_EXCEEDED"
    SESSION_TIME_LIMIT = "SESSION_TIME_LIMIT"
    CATEGORY_BLOCKED = "CATEGORY_BLOCKED"


class SessionEndReason(str, Enum):
    """Why a session moved to the ended state."""

    LOGOUT = "logout"
    DISCONNECT = "disconnect"
    EXPIRED = "expired"
    REVOKED = "revoked"


# =============================================================================
# Identity and Policy Models
# =============================================================================


class Principal(BaseModel):
    """
    An authenticated user as seen by the decision engine.

    Attributes:
        user_id: Opaque user identifier
        role_id: The role the user belongs to
        is_active: Inactive principals are treated as unknown
        username: Optional display name
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    user_id: str = Field(..., pattern=ID_PATTERN.pattern)
    role_id: str = Field(..., pattern=ID_PATTERN.pattern)
    is_active: bool = Field(default=True)
    username: str | None = Field(default=None)


class Policy(BaseModel):
    """
    Access policy bound to a role (one policy per role).

    Attributes:
        role_id: The role this policy applies to
        bandwidth_down_mbps: Downstream cap handed to the enforcement point
        bandwidth_up_mbps: Upstream cap handed to the enforcement point
        daily_quota_bytes: Bytes allowed per day (None = unlimited, 0 = none)
        session_time_limit_minutes: Minutes per session (None = unlimited,
            0 = sessions expire at once)
        allowed_hours_start: Start of the daily access window (inclusive)
        allowed_hours_end: End of the daily access window (inclusive)
        access_24x7: When true the access window is ignored
        blocked_categories: Category tags matched against resource locators
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    role_id: str = Field(..., pattern=ID_PATTERN.pattern)
    bandwidth_down_mbps: float = Field(default=0.0, ge=0)
    bandwidth_up_mbps: float = Field(default=0.0, ge=0)
    daily_quota_bytes: int | None = Field(default=None, ge=0)
    session_time_limit_minutes: int | None = Field(default=None, ge=0)
    allowed_hours_start: time | None = Field(default=None)
    allowed_hours_end: time | None = Field(default=None)
    access_24x7: bool = Field(default=False)
    blocked_categories: tuple[str, ...] = Field(default=())

    @model_validator(mode="before")
    @classmethod
    def convert_quota_gb(cls, data: Any) -> Any:
        """Accept daily_quota_gb as an alternative to daily_quota_bytes."""
        if not isinstance(data, dict) or "daily_quota_gb" not in data:
            return data
        data = dict(data)
        gb = data.pop("daily_quota_gb")
        if data.get("daily_quota_bytes") is not None:
            msg = "daily_quota_gb and daily_quota_bytes are mutually exclusive"
            raise ValueError(msg)
        data["daily_quota_bytes"] = None if gb is None else round(float(gb) * BYTES_PER_GB)
        return data

    @field_validator("allowed_hours_start", "allowed_hours_end", mode="before")
    @classmethod
    def parse_hours(cls, v: Any) -> Any:
        """YAML 1.1 reads unquoted 22:00:00 as base-60 seconds."""
        if isinstance(v, int) and not isinstance(v, bool):
            if not 0 <= v < 86400:
                msg = f"Time of day out of range: {v}"
                raise ValueError(msg)
            return time(v // 3600, (v % 3600) // 60, v % 60)
        return v

    @field_validator("blocked_categories", mode="before")
    @classmethod
    def normalize_categories(cls, v: Any) -> Any:
        """Upper-case and de-duplicate category tags, keeping order."""
        if v is None:
            return ()
        if isinstance(v, str):
            v = [v]
        seen: list[str] = []
        for tag in v:
            tag = str(tag).strip().upper()
            if tag and tag not in seen:
                seen.append(tag)
        return tuple(seen)

    @model_validator(mode="after")
    def check_hour_bounds(self) -> "Policy":
        """Hour bounds are only meaningful as a pair."""
        if (self.allowed_hours_start is None) != (self.allowed_hours_end is None):
            msg = "allowed_hours_start and allowed_hours_end must be set together"
            raise ValueError(msg)
        return self

    @property
    def has_quota(self) -> bool:
        """Whether a daily quota applies (a quota of 0 allows no data)."""
        return self.daily_quota_bytes is not None

    @property
    def has_session_limit(self) -> bool:
        """Whether a session time limit applies."""
        return self.session_time_limit_minutes is not None


# =============================================================================
# Runtime State Models
# =============================================================================


class UsageRecord(BaseModel):
    """Per-user, per-day usage totals."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    user_id: str
    day: date
    data_used_bytes: int = Field(default=0, ge=0)
    time_used_minutes: int = Field(default=0, ge=0)
    session_count: int = Field(default=0, ge=0)


class Session(BaseModel):
    """
    A network session.

    ACTIVE (is_active=True, ended_at=None) moves to ENDED exactly once.
    Ended sessions are never modified again.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    session_id: str
    user_id: str
    role_id: str
    started_at: datetime
    ended_at: datetime | None = None
    is_active: bool = True
    ip_address: str | None = None
    mac_address: str | None = None
    data_used_bytes: int = Field(default=0, ge=0)
    end_reason: SessionEndReason | None = None


class Violation(BaseModel):
    """An append-only record of a denied access attempt."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    violation_id: int
    user_id: str
    session_id: str | None = None
    violation_type: ViolationType
    details: str = ""
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


# =============================================================================
# Decision Models
# =============================================================================


class QuotaState(BaseModel):
    """Daily quota position at evaluation time (bytes)."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    quota_bytes: int | None = None
    used_bytes: int = 0
    remaining_bytes: int | None = None


class SessionLimitState(BaseModel):
    """Session time-limit position at evaluation time (minutes)."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    limit_minutes: int | None = None
    elapsed_minutes: int | None = None
    remaining_minutes: int | None = None


class PolicySnapshot(BaseModel):
    """
    What the enforcement point needs to act on an allow.

    Mirrors the policy fields plus the live quota and session-limit state.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    role_id: str
    unrestricted: bool = False
    bandwidth_down_mbps: float = 0.0
    bandwidth_up_mbps: float = 0.0
    quota: QuotaState = Field(default_factory=QuotaState)
    session_limit: SessionLimitState = Field(default_factory=SessionLimitState)
    blocked_categories: tuple[str, ...] = ()


class Decision(BaseModel):
    """
    Result of evaluating an access request.

    Attributes:
        allowed: Whether access is permitted
        reason: Human-readable explanation (always set on denial)
        rule: Which rule produced this decision
        violation_type: Set when the denial is a policy breach
        category: Matched category for category denials
        context: Rule-specific figures (used/quota bytes, elapsed minutes, ...)
        policy: Snapshot for the enforcement point (allow only)
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    allowed: bool
    reason: str | None = None
    rule: str | None = None
    violation_type: ViolationType | None = None
    category: str | None = None
    context: dict[str, Any] = Field(default_factory=dict)
    policy: PolicySnapshot | None = None

    @classmethod
    def allow(
        cls,
        snapshot: PolicySnapshot,
        reason: str | None = None,
        rule: str | None = None,
    ) -> "Decision":
        """Create an ALLOW decision."""
        return cls(allowed=True, reason=reason, rule=rule, policy=snapshot)

    @classmethod
    def deny(
        cls,
        reason: str,
        rule: str | None = None,
        violation_type: ViolationType | None = None,
        category: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> "Decision":
        """Create a DENY decision."""
        return cls(
            allowed=False,
            reason=reason,
            rule=rule,
            violation_type=violation_type,
            category=category,
            context=context or {},
        )


# =============================================================================
# Access Config (YAML)
# =============================================================================


class AccessConfig(BaseModel):
    """
    Seed document for roles, principals and category keywords.

    Attributes:
        categories: Extra category tag -> keyword list entries
        policies: One policy per role
        principals: Users and their roles
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    categories: dict[str, list[str]] = Field(default_factory=dict)
    policies: list[Policy] = Field(default_factory=list)
    principals: list[Principal] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_unique_roles(self) -> "AccessConfig":
        """Each role may carry only one policy."""
        roles = [p.role_id for p in self.policies]
        duplicates = sorted({r for r in roles if roles.count(r) > 1})
        if duplicates:
            msg = f"Duplicate policies for roles: {', '.join(duplicates)}"
            raise ValueError(msg)
        return self


def load_access_config(path: Path | str) -> AccessConfig:
    """
    Load an access config from a YAML file.

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValidationError: If the YAML doesn't match the schema
    """
    path = Path(path)
    with path.open() as f:
        data = yaml.safe_load(f)

    return AccessConfig.model_validate(data or {})


def load_access_config_from_string(content: str) -> AccessConfig:
    """Load an access config from a YAML string."""
    data = yaml.safe_load(content)
    return AccessConfig.model_validate(data or {})
