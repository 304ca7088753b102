from __future__ import annotations  # Interview eligibility window calculation

import datetime as dt
from dataclasses import dataclass
from typing import Optional

REINTERVIEW_EXTENSION = dt.timedelta(hours=2)


@dataclass(frozen=True)
class TimeWindow:  # Resolved window plus flags relative to ``now``
    start: dt.datetime
    end: dt.datetime
    can_start_now: bool
    is_expired: bool
    is_before_start: bool
    ms_until_start: int
    ms_until_end: int

    def as_dict(self) -> dict:
        return {
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "can_start_now": self.can_start_now,
            "is_expired": self.is_expired,
            "is_before_start": self.is_before_start,
            "ms_until_start": self.ms_until_start,
            "ms_until_end": self.ms_until_end,
        }


def as_utc(value: dt.datetime) -> dt.datetime:  # Treat naive datetimes as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=dt.timezone.utc)
    return value.astimezone(dt.timezone.utc)


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def _ms(delta: dt.timedelta) -> int:
    return max(0, int(delta.total_seconds() * 1000))


def calculate_time_window(
    candidate_start: Optional[dt.datetime],
    candidate_end: Optional[dt.datetime],
    job_start: dt.datetime,
    job_end: dt.datetime,
    is_reinterviewed: bool,
    *,
    now: Optional[dt.datetime] = None,
) -> TimeWindow:
    """Resolve the effective window for a candidate.

    Candidate overrides win over the job window. A re-interview extends the
    end by two hours; the start is never moved. The window is half-open,
    ``[start, end)``.
    """

    start = as_utc(candidate_start or job_start)
    end = as_utc(candidate_end or job_end)
    if is_reinterviewed:
        end = end + REINTERVIEW_EXTENSION
    current = as_utc(now) if now is not None else utcnow()
    return TimeWindow(
        start=start,
        end=end,
        can_start_now=start <= current < end,
        is_expired=current >= end,
        is_before_start=current < start,
        ms_until_start=_ms(start - current),
        ms_until_end=_ms(end - current),
    )
