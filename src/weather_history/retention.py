"""Retention policy: which stored observations are too old to keep.

Pure functions; deleting files and updating lists is the caller's job.
"""

from __future__ import annotations

from datetime import timedelta
from typing import TYPE_CHECKING

from weather_history.schemas import RetentionChoice

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import datetime

    from weather_history.record import WeatherRecord

RETENTION_DURATIONS: dict[RetentionChoice, timedelta | None] = {
    RetentionChoice.ONE_DAY: timedelta(days=1),
    RetentionChoice.ONE_WEEK: timedelta(days=7),
    RetentionChoice.ONE_MONTH: timedelta(days=31),
    RetentionChoice.ONE_YEAR: timedelta(days=356),
    RetentionChoice.NEVER: None,
}


def retention_duration(choice: RetentionChoice | int) -> timedelta | None:
    """Maximum age for a retention choice, or None for "never delete"."""
    return RETENTION_DURATIONS[RetentionChoice(choice)]


def select_expired(
    records: Iterable[WeatherRecord],
    choice: RetentionChoice | int,
    now: datetime,
) -> list[WeatherRecord]:
    """
    Return the records older than the retention limit, in input order.

    A record is expired when ``now - captured_at`` is strictly greater than the
    limit. Every record is checked on its own; newest-first order is not
    assumed to make expired records a suffix.

    Args:
        records: Candidate records.
        choice: Configured retention choice.
        now: Reference instant (timezone-aware).
    """
    limit = retention_duration(choice)
    if limit is None:
        return []
    return [r for r in records if now - r.captured_at > limit]
