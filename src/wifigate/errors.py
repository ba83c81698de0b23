"""
Exception hierarchy for wifigate.

All wifigate exceptions inherit from WifigateError, allowing callers to catch
every library-specific failure with a single except clause.

Exception Categories:
    - NotFoundError: Unknown principal, policy or session (non-retryable)
    - InvalidInputError: Malformed identifiers or values, rejected before storage
    - PolicyValidationError: A policy that cannot be written as given
    - EvaluationError: Infrastructure failure during a required read
    - StorageError: Database operation failed

A policy denial is NOT an exception. The decision engine returns it as a
normal Decision value; exceptions are reserved for conditions a caller must
not confuse with a legitimate denial.
"""

from dataclasses import dataclass, field
from typing import Any


# =============================================================================
# Error Codes
# =============================================================================

# Not found: 1xxx
ERROR_PRINCIPAL_NOT_FOUND = 1001
ERROR_POLICY_NOT_FOUND = 1002
ERROR_SESSION_NOT_FOUND = 1003

# Input errors: 2xxx
ERROR_INVALID_INPUT = 2001
ERROR_POLICY_INVALID = 2002
ERROR_SESSION_ALREADY_ACTIVE = 2003

# Evaluation errors: 3xxx
ERROR_EVALUATION_FAILED = 3001

# Storage errors: 5xxx
ERROR_STORAGE_CONNECTION = 5001
ERROR_STORAGE_WRITE = 5002
ERROR_STORAGE_READ = 5003


# =============================================================================
# Base Exception
# =============================================================================


@dataclass
class WifigateError(Exception):
    """
    Base exception for all wifigate errors.

    Attributes:
        message: Human-readable error description
        code: Numeric error code for programmatic handling
        suggestion: Optional hint for how to resolve the error
        context: Optional dict with additional debugging info
    """

    message: str = ""
    code: int = 0
    suggestion: str | None = None
    context: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        """Format error for display."""
        parts = [f"[E{self.code}] {self.message}"]
        if self.suggestion:
            parts.append(f"\nSuggestion: {self.suggestion}")
        return "".join(parts)

    def __repr__(self) -> str:
        """Format error for debugging."""
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"code={self.code}, "
            f"context={self.context!r})"
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "code": self.code,
            "suggestion": self.suggestion,
            "context": self.context,
        }


# =============================================================================
# Not Found Errors
# =============================================================================


@dataclass
class NotFoundError(WifigateError):
    """
    Base class for lookups that found nothing.

    The decision engine maps principal and policy misses to a denial without
    a violation record; they are data-integrity conditions, not breaches.
    """


@dataclass
class PrincipalNotFoundError(NotFoundError):
    """Raised when a user ID is unknown or the principal is inactive."""

    user_id: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Principal not found: {self.user_id}"
        if self.code == 0:
            self.code = ERROR_PRINCIPAL_NOT_FOUND
        self.context["user_id"] = self.user_id


@dataclass
class PolicyNotFoundError(NotFoundError):
    """Raised when a role has no policy bound to it."""

    role_id: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"No policy for role: {self.role_id}"
        if self.code == 0:
            self.code = ERROR_POLICY_NOT_FOUND
        if not self.suggestion:
            self.suggestion = "Add a policy for the role to the access config"
        self.context["role_id"] = self.role_id


@dataclass
class SessionNotFoundError(NotFoundError):
    """Raised when a session ID does not exist."""

    session_id: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Session not found: {self.session_id}"
        if self.code == 0:
            self.code = ERROR_SESSION_NOT_FOUND
        self.context["session_id"] = self.session_id


# =============================================================================
# Input Errors
# =============================================================================


@dataclass
class InvalidInputError(WifigateError):
    """Raised when an identifier or value is malformed."""

    field_name: str = ""
    value: Any = None

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Invalid value for {self.field_name}: {self.value!r}"
        if self.code == 0:
            self.code = ERROR_INVALID_INPUT
        self.context.update({
            "field": self.field_name,
            "value": self.value,
        })


@dataclass
class PolicyValidationError(WifigateError):
    """Raised when a policy write would produce an invalid policy."""

    role_id: str = ""
    errors: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            detail = "; ".join(self.errors) if self.errors else "invalid policy"
            self.message = f"Invalid policy for role {self.role_id}: {detail}"
        if self.code == 0:
            self.code = ERROR_POLICY_INVALID
        self.context.update({
            "role_id": self.role_id,
            "errors": self.errors,
        })


@dataclass
class ActiveSessionExistsError(WifigateError):
    """Raised when a user who already has an active session logs in again."""

    user_id: str = ""
    active_session_id: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = (
                f"User {self.user_id} already has an active session: "
                f"{self.active_session_id}"
            )
        if self.code == 0:
            self.code = ERROR_SESSION_ALREADY_ACTIVE
        if not self.suggestion:
            self.suggestion = "End the existing session before starting a new one"
        self.context.update({
            "user_id": self.user_id,
            "active_session_id": self.active_session_id,
        })


# =============================================================================
# Evaluation Errors
# =============================================================================


@dataclass
class EvaluationError(WifigateError):
    """
    Raised when a decision cannot be rendered because a required read failed.

    Callers must treat this as an infrastructure failure, never as a policy
    denial.

    Attributes:
        user_id: The principal being evaluated
        stage: Which read failed (principal, policy, session, usage)
        underlying_error: Text of the storage error
    """

    user_id: str = ""
    stage: str = ""
    underlying_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = (
                f"Evaluation failed for {self.user_id} while reading "
                f"{self.stage}: {self.underlying_error}"
            )
        if self.code == 0:
            self.code = ERROR_EVALUATION_FAILED
        self.context.update({
            "user_id": self.user_id,
            "stage": self.stage,
            "underlying_error": self.underlying_error,
        })


# =============================================================================
# Storage Errors
# =============================================================================


@dataclass
class StorageError(WifigateError):
    """
    Base class for storage/database errors.

    Attributes:
        operation: The operation that failed (e.g., "add_usage", "get_session")
    """

    operation: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        self.context["operation"] = self.operation


@dataclass
class StorageConnectionError(StorageError):
    """Raised when database connection fails or the store is closed."""

    db_path: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Failed to connect to database: {self.db_path}"
        if self.code == 0:
            self.code = ERROR_STORAGE_CONNECTION
        if not self.suggestion:
            self.suggestion = "Check that the database path is valid and writable"
        super().__post_init__()
        self.context["db_path"] = self.db_path


@dataclass
class StorageWriteError(StorageError):
    """Raised when a write operation fails."""

    underlying_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Database write failed: {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_STORAGE_WRITE
        super().__post_init__()
        self.context["underlying_error"] = self.underlying_error


@dataclass
class StorageReadError(StorageError):
    """Raised when a read operation fails."""

    underlying_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Database read failed: {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_STORAGE_READ
        super().__post_init__()
        self.context["underlying_error"] = self.underlying_error
