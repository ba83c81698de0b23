"""
wifigate - Role-based network access decisions with usage accounting.

wifigate decides whether an authenticated user may use the network right
now, based on the policy of the user's role, today's usage and the state of
the user's session. Every denial is recorded as a violation.

It provides:
- An ordered rule chain (allowed hours, daily quota, session length, categories)
- A usage ledger whose increments stay exact under concurrency
- A session registry with a one-way ACTIVE -> ENDED lifecycle
- An append-only violation log

Example usage:
    $ wifigate load access.yaml
    $ wifigate login u-1001 --ip 10.0.0.5
    $ wifigate evaluate u-1001 --session <session_id> --resource https://example.com
"""

__version__ = "0.1.0"
__author__ = "wifigate Contributors"

__all__ = [
    "__version__",
    "__author__",
]
