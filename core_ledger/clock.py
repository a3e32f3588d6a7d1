"""
Wall Clock Module

The ledger reads "now" through an injectable callable so that calendar-day
logic (daily withdrawal limits) can be driven deterministically in tests.
"""

from datetime import date, datetime
from typing import Callable

Clock = Callable[[], datetime]


def local_now() -> datetime:
    """Current local time, timezone-aware"""
    return datetime.now().astimezone()


def local_date(moment: datetime) -> date:
    """
    Calendar date of moment in the system's local time zone

    The offset is resolved for moment itself, so a day that starts or ends
    on a daylight-saving change still begins at local 00:00:00.000.
    """
    return moment.astimezone().date()
