"""
Policy Store for wifigate.

Resolves principals to roles and roles to policies, and carries the
administrative operations that change them. Reads are the hot path; writes
happen only through ``put_policy``/``update_policy``/``put_principal``/``load``.

Category keywords live in the store beside the policies, so a process that
did not read the access config still enforces every stored category. A
policy may only block tags the category table knows.
"""

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from pydantic import ValidationError

from wifigate.clock import Clock, SystemClock
from wifigate.errors import (
    PolicyNotFoundError,
    PolicyValidationError,
    PrincipalNotFoundError,
)
from wifigate.policy.categories import CategoryTable
from wifigate.schema import AccessConfig, Policy, Principal, check_identifier
from wifigate.store import AccessDB

logger = logging.getLogger(__name__)

# Fields an administrator may change on an existing policy
UPDATABLE_FIELDS = frozenset(
    {
        "bandwidth_down_mbps",
        "bandwidth_up_mbps",
        "daily_quota_bytes",
        "daily_quota_gb",
        "session_time_limit_minutes",
        "allowed_hours_start",
        "allowed_hours_end",
        "access_24x7",
        "blocked_categories",
    }
)


def _validation_messages(error: ValidationError) -> list[str]:
    messages = []
    for item in error.errors():
        loc = ".".join(str(part) for part in item.get("loc", ()))
        msg = item.get("msg", "invalid")
        messages.append(f"{loc}: {msg}" if loc else msg)
    return messages


class PolicyStore:
    """
    Role policy and principal lookups.

    Usage:
        policies = PolicyStore(db)
        principal = policies.resolve_principal("u-1001")
        policy = policies.resolve_policy(principal.role_id)
    """

    def __init__(self, db: AccessDB, clock: Clock | None = None) -> None:
        self.db = db
        self.clock = clock or SystemClock()

    # =========================================================================
    # Lookups
    # =========================================================================

    def resolve_principal(self, user_id: str) -> Principal:
        """
        Look up an active principal.

        Raises:
            PrincipalNotFoundError: If the user is unknown or inactive
        """
        check_identifier("user_id", user_id)
        principal = self.db.get_principal(user_id)
        if principal is None or not principal.is_active:
            raise PrincipalNotFoundError(user_id=user_id)
        return principal

    def resolve_policy(self, role_id: str) -> Policy:
        """
        Look up the policy bound to a role.

        Raises:
            PolicyNotFoundError: If the role has no policy
        """
        check_identifier("role_id", role_id)
        policy = self.db.get_policy(role_id)
        if policy is None:
            raise PolicyNotFoundError(role_id=role_id)
        return policy

    def list_policies(self) -> list[Policy]:
        return self.db.list_policies()

    def list_principals(self) -> list[Principal]:
        return self.db.list_principals()

    def category_table(
        self,
        extra: Mapping[str, Iterable[str]] | None = None,
    ) -> CategoryTable:
        """
        Build the keyword table from the defaults and the stored categories.

        Entries in ``extra`` replace stored keywords for the same tag.
        """
        entries: dict[str, Iterable[str]] = dict(self.db.list_categories())
        for tag, keywords in (extra or {}).items():
            entries[tag.strip().upper()] = keywords
        return CategoryTable(entries)

    def unknown_categories(
        self,
        policy: Policy,
        table: CategoryTable | None = None,
    ) -> list[str]:
        """Blocked tags of a policy that have no keywords in the table."""
        table = table or self.category_table()
        return [tag for tag in policy.blocked_categories if not table.keywords(tag)]

    def _check_categories(self, policy: Policy, table: CategoryTable | None = None) -> None:
        unknown = self.unknown_categories(policy, table)
        if unknown:
            raise PolicyValidationError(
                role_id=policy.role_id,
                errors=[f"unknown category: {tag}" for tag in unknown],
            )

    # =========================================================================
    # Administrative Writes
    # =========================================================================

    def put_policy(self, policy: Policy) -> None:
        """
        Bind a policy to its role, replacing any previous one.

        Raises:
            PolicyValidationError: If the policy blocks an unknown category
        """
        self._check_categories(policy)
        self.db.put_policy(policy, updated_at=self.clock.now())
        logger.info("policy for role %s stored", policy.role_id)

    def put_categories(self, categories: Mapping[str, Iterable[str]]) -> None:
        """Store category keywords, replacing the keywords of existing tags."""
        normalized = CategoryTable(categories, include_defaults=False)
        self.db.put_categories({tag: list(normalized.keywords(tag)) for tag in normalized.tags})
        logger.info("stored keywords for %d categories", len(normalized))

    def update_policy(self, role_id: str, **changes: Any) -> Policy:
        """
        Change selected fields of a role's policy.

        The merged policy is validated as a whole before it is written, so a
        change that would leave only one hour bound set is rejected.

        Returns:
            The updated policy

        Raises:
            PolicyNotFoundError: If the role has no policy
            PolicyValidationError: If no fields are given, a field is unknown,
                the result is invalid or it blocks an unknown category
        """
        current = self.resolve_policy(role_id)

        if not changes:
            raise PolicyValidationError(role_id=role_id, errors=["no fields to update"])
        unknown = sorted(set(changes) - UPDATABLE_FIELDS)
        if unknown:
            raise PolicyValidationError(
                role_id=role_id,
                errors=[f"unknown field: {name}" for name in unknown],
            )

        data = current.model_dump()
        if "daily_quota_gb" in changes:
            data.pop("daily_quota_bytes")
        data.update(changes)

        try:
            updated = Policy.model_validate(data)
        except ValidationError as e:
            raise PolicyValidationError(
                role_id=role_id,
                errors=_validation_messages(e),
            ) from e

        self._check_categories(updated)
        self.db.put_policy(updated, updated_at=self.clock.now())
        logger.info(
            "policy for role %s updated: %s",
            role_id,
            ", ".join(sorted(changes)),
        )
        return updated

    def put_principal(self, principal: Principal) -> None:
        """Create or replace a principal."""
        self.db.put_principal(principal)
        logger.info("principal %s bound to role %s", principal.user_id, principal.role_id)

    def set_principal_active(self, user_id: str, is_active: bool) -> Principal:
        """
        Activate or deactivate a principal.

        Raises:
            PrincipalNotFoundError: If the user is unknown
        """
        check_identifier("user_id", user_id)
        principal = self.db.get_principal(user_id)
        if principal is None:
            raise PrincipalNotFoundError(user_id=user_id)
        updated = principal.model_copy(update={"is_active": is_active})
        self.db.put_principal(updated)
        return updated

    def load(self, config: AccessConfig) -> tuple[int, int]:
        """
        Store the categories, policies and principals of an access config.

        Every policy is checked against the merged category table before
        anything is written.

        Returns:
            (policies stored, principals stored)

        Raises:
            PolicyValidationError: If a policy blocks an unknown category
        """
        table = self.category_table(config.categories)
        for policy in config.policies:
            self._check_categories(policy, table)

        if config.categories:
            self.put_categories(config.categories)
        for policy in config.policies:
            self.db.put_policy(policy, updated_at=self.clock.now())
        for principal in config.principals:
            self.db.put_principal(principal)
        logger.info(
            "loaded %d policies and %d principals",
            len(config.policies),
            len(config.principals),
        )
        return len(config.policies), len(config.principals)
