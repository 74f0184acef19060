"""Error taxonomy shared by the record model, store, fetcher and controller.

Every error is recovered by ``LocationController`` and surfaced to the
display layer as a ``Notice``; none of them is meant to end the process.
"""

from __future__ import annotations

from datetime import timedelta

from weather_history.units import format_wait


class WeatherHistoryError(Exception):
    """Base class for all recoverable weather-history failures."""

    kind = "error"


class MalformedRecord(WeatherHistoryError):
    """A payload is missing fields that every observation must have."""

    kind = "malformed-record"


class NetworkError(WeatherHistoryError):
    """The weather endpoint could not be reached or answered with an error."""

    kind = "network-error"


class StorageError(WeatherHistoryError):
    """Reading, writing or deleting a record file failed."""

    kind = "storage-error"


class ConfigurationMissing(WeatherHistoryError):
    """No API key is configured."""

    kind = "no-api-key"


class RateLimited(WeatherHistoryError):
    """A remote call was refused by policy; not a failure.

    Carries the remaining wait so the display can tell the user how long.
    """

    kind = "rate-limited"

    def __init__(self, wait: timedelta) -> None:
        self.wait = wait
        super().__init__(f"Please wait {self.wait_text}.")

    @property
    def wait_text(self) -> str:
        """Human-readable wait, e.g. ``"3 minutes"`` or ``"45 seconds"``."""
        return format_wait(self.wait)
