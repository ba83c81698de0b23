"""
Usage Ledger for wifigate.

Per-user, per-day accumulation of consumed bytes, minutes and sessions.
Whatever meters real traffic reports increments here; the decision engine
only reads the totals.

Every increment is unconditional and atomic: N concurrent calls adding X
bytes leave exactly N*X more bytes on the row.
"""

import logging
from datetime import date

from wifigate.errors import InvalidInputError
from wifigate.schema import UsageRecord, check_identifier
from wifigate.store import AccessDB

logger = logging.getLogger(__name__)


class UsageLedger:
    """
    Usage counters backed by the shared store.

    Usage:
        ledger = UsageLedger(db)
        ledger.add_usage("u-1001", date.today(), data_bytes=4096, minutes=1)
        used = ledger.get_usage("u-1001", date.today()).data_used_bytes
    """

    def __init__(self, db: AccessDB) -> None:
        self.db = db

    def add_usage(
        self,
        user_id: str,
        day: date,
        data_bytes: int = 0,
        minutes: int = 0,
        sessions: int = 0,
    ) -> UsageRecord:
        """
        Add usage for (user_id, day).

        Args:
            user_id: The user the traffic belongs to
            day: The calendar day to book the usage on
            data_bytes: Bytes transferred since the last report
            minutes: Minutes of connection time since the last report
            sessions: Sessions started since the last report

        Returns:
            The day's totals including this increment

        Raises:
            InvalidInputError: For a malformed user ID or a negative amount
            StorageWriteError: If the increment could not be committed
        """
        check_identifier("user_id", user_id)
        for name, amount in (
            ("data_bytes", data_bytes),
            ("minutes", minutes),
            ("sessions", sessions),
        ):
            if not isinstance(amount, int) or isinstance(amount, bool) or amount < 0:
                raise InvalidInputError(field_name=name, value=amount)

        record = self.db.add_usage(user_id, day, data_bytes, minutes, sessions)
        logger.debug(
            "usage %s %s +%d bytes +%d min -> %d bytes",
            user_id,
            day,
            data_bytes,
            minutes,
            record.data_used_bytes,
        )
        return record

    def get_usage(self, user_id: str, day: date) -> UsageRecord:
        """Return the totals for (user_id, day); zeros if nothing was booked."""
        check_identifier("user_id", user_id)
        record = self.db.get_usage(user_id, day)
        if record is None:
            return UsageRecord(user_id=user_id, day=day)
        return record

    def usage_between(self, user_id: str, start: date, end: date) -> list[UsageRecord]:
        """Return the booked days in [start, end], oldest first."""
        check_identifier("user_id", user_id)
        if end < start:
            raise InvalidInputError(
                field_name="end",
                value=end.isoformat(),
                message=f"End day {end} is before start day {start}",
            )
        return self.db.list_usage(user_id, start, end)
