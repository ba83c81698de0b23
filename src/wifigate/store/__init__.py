"""
Storage module for wifigate.

This module provides SQLite-based persistence for principals, policies,
usage counters, sessions and violations.

Tables:
    - principals: Users and the role each one belongs to
    - policies: The policy bound to each role
    - usage: Per-user, per-day counters (bytes, minutes, sessions)
    - sessions: Session lifecycle (ACTIVE -> ENDED)
    - violations: Append-only record of denials

Design principles:
    - One explicitly constructed store object, passed to every component
    - Atomic increments and compare-and-set transitions
    - Violations are never modified after insert
"""

from wifigate.store.db import AccessDB, generate_session_id

__all__ = [
    "AccessDB",
    "generate_session_id",
]
