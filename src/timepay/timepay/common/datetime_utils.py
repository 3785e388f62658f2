from __future__ import annotations

import math
from datetime import date, datetime, timedelta
from typing import Iterator

from ..core.enums import CalculationMethod


def parse_iso_date(value: str) -> date:
    """Parse YYYY-MM-DD string into date."""
    return datetime.strptime(value, "%Y-%m-%d").date()


def parse_iso_datetime(value: str) -> datetime:
    return datetime.fromisoformat(value)


def now_local() -> datetime:
    """Current local time.

    Note: Wrapped so tests can patch/mocked easier.
    """
    return datetime.now()


def minutes_between(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() / 60


def round_minutes(value: float, method: CalculationMethod = CalculationMethod.FLOOR) -> int:
    if value <= 0:
        return 0
    if method == CalculationMethod.CEIL:
        return int(math.ceil(value))
    if method == CalculationMethod.NEAREST:
        return int(math.floor(value + 0.5))
    return int(math.floor(value))


def iter_days(start: date, end: date) -> Iterator[date]:
    day = start
    while day <= end:
        yield day
        day += timedelta(days=1)
