from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Optional

NAIVE_FORMAT = "%Y-%m-%dT%H:%M:%S"

END_OF_DAY = time(23, 59, 59, 999000)


@dataclass(frozen=True)
class DateRange:
    """Inclusive range of naive local datetimes."""

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.start > self.end:
            raise ValueError(f"DateRange start {self.start} is after end {self.end}.")

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment <= self.end

    def as_params(self) -> tuple[str, str]:
        return to_naive_timestamp(self.start), to_naive_timestamp(self.end)


def _as_naive_local(value: datetime) -> datetime:
    if value.tzinfo is not None:
        value = value.astimezone().replace(tzinfo=None)
    return value


def start_of_day(value: date | datetime) -> datetime:
    d = value.date() if isinstance(value, datetime) else value
    return datetime.combine(d, time.min)


def end_of_day(value: date | datetime) -> datetime:
    d = value.date() if isinstance(value, datetime) else value
    return datetime.combine(d, END_OF_DAY)


def last_n_days(n: int, now: Optional[datetime] = None) -> DateRange:
    """[start of day, n-1 days ago] through [end of day, today]."""
    if n < 1:
        raise ValueError("n must be >= 1.")
    today = _as_naive_local(now or datetime.now())
    return DateRange(start_of_day(today - timedelta(days=n - 1)), end_of_day(today))


def custom_range(start: date | datetime, end: date | datetime) -> DateRange:
    if isinstance(start, datetime):
        start = _as_naive_local(start)
    if isinstance(end, datetime):
        end = _as_naive_local(end)
    return DateRange(start_of_day(start), end_of_day(end))


def to_naive_timestamp(value: datetime) -> str:
    # backend expects local time without offset or fraction
    return _as_naive_local(value).strftime(NAIVE_FORMAT)


def parse_timestamp(raw: str) -> datetime:
    """Parse a backend timestamp (naive, offset or 'Z' suffixed) into naive local time."""
    text = (raw or "").strip()
    if not text:
        raise ValueError("Empty timestamp.")
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    if " " in text and "T" not in text:
        text = text.replace(" ", "T", 1)
    return _as_naive_local(datetime.fromisoformat(text))
