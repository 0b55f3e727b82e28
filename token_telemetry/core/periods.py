"""
Reporting periods.

Maps a named period to the time window it covers, relative to request time.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional, Union

from token_telemetry.storage.models import to_utc

logger = logging.getLogger(__name__)


class Period(Enum):
    """Named relative reporting windows."""
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    ALL = "all"

    @classmethod
    def parse(cls, value: Union["Period", str, None]) -> "Period":
        """Parse a period name, falling back to MONTH for anything unknown."""
        if isinstance(value, Period):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            logger.debug("Unknown period %r, using month", value)
            return cls.MONTH


_SPANS = {
    Period.DAY: timedelta(days=1),
    Period.WEEK: timedelta(days=7),
    Period.MONTH: timedelta(days=30),
}


@dataclass(frozen=True)
class TimeWindow:
    """Half-open window ``[start, end)``. ``None`` bounds are open."""
    start: Optional[datetime]
    end: Optional[datetime]


def resolve_window(period: Union[Period, str, None], now: datetime) -> TimeWindow:
    """Resolve a period to its window ending at ``now``.

    ``all`` is unrestricted in both directions.
    """
    resolved = Period.parse(period)
    if resolved is Period.ALL:
        return TimeWindow(start=None, end=None)
    now = to_utc(now)
    return TimeWindow(start=now - _SPANS[resolved], end=now)
