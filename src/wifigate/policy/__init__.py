"""
Policy module for wifigate.

This module holds the access decision logic: the role policy store, the
ordered rule chain and the engine that runs it.

Key concepts:
    - Decision: allow/deny with a reason and, on allow, a policy snapshot
    - Rule: one ordered check that passes or returns a terminal denial
    - DecisionEngine: resolves the principal and runs the rule chain
    - PolicyStore: role -> policy lookups and administrative updates
"""

from wifigate.policy.categories import DEFAULT_CATEGORIES, CategoryTable
from wifigate.policy.engine import DecisionEngine
from wifigate.policy.rules import (
    CategoryBlockRule,
    DailyQuotaRule,
    EvaluationContext,
    Rule,
    SessionTimeLimitRule,
    TimeOfDayRule,
    default_rules,
)
from wifigate.policy.store import PolicyStore

__all__ = [
    "CategoryBlockRule",
    "CategoryTable",
    "DEFAULT_CATEGORIES",
    "DailyQuotaRule",
    "DecisionEngine",
    "EvaluationContext",
    "PolicyStore",
    "Rule",
    "SessionTimeLimitRule",
    "TimeOfDayRule",
    "default_rules",
]
