"""
Domain value types for weather history.

Pydantic models and enums shared by the configuration, the controller and
the display layer.
"""

from __future__ import annotations

from enum import IntEnum, StrEnum

from pydantic import BaseModel, Field

# =============================================================================
# Settings values
# =============================================================================


class Units(StrEnum):
    """Unit system used by derived record views (OpenWeather naming)."""

    METRIC = "metric"
    IMPERIAL = "imperial"
    STANDARD = "standard"  # Kelvin / metres


class RetentionChoice(IntEnum):
    """How long stored observations are kept (``delete_after_choice``)."""

    ONE_DAY = 0
    ONE_WEEK = 1
    ONE_MONTH = 2
    ONE_YEAR = 3
    NEVER = 4

    @property
    def label(self) -> str:
        """Label shown in settings listings."""
        return _RETENTION_LABELS[self]


_RETENTION_LABELS = {
    RetentionChoice.ONE_DAY: "1 day",
    RetentionChoice.ONE_WEEK: "7 days",
    RetentionChoice.ONE_MONTH: "31 days",
    RetentionChoice.ONE_YEAR: "356 days",
    RetentionChoice.NEVER: "never delete",
}


# =============================================================================
# Location
# =============================================================================


class LocationKey(BaseModel):
    """A place to fetch weather for; also names the store partition."""

    model_config = {"frozen": True, "str_strip_whitespace": True}

    city: str = Field(..., min_length=1)
    state: str = ""
    country: str = Field(..., min_length=1)

    @property
    def key(self) -> str:
        """Canonical form, e.g. ``London,UK`` or ``Portland,OR,US``.

        Used as the store directory name and as the ``q`` query term.
        """
        if not self.state:
            return f"{self.city},{self.country}"
        return f"{self.city},{self.state},{self.country}"

    @property
    def pretty(self) -> str:
        """Display form with ``", "`` separators."""
        if not self.state:
            return f"{self.city}, {self.country}"
        return f"{self.city}, {self.state}, {self.country}"

    def __str__(self) -> str:
        return self.key


# =============================================================================
# Notices
# =============================================================================


class NoticeKind(StrEnum):
    """Kinds of short, transient messages shown to the user."""

    UPDATED = "updated"
    NO_NEW_DATA = "no-new-data"
    PURGED = "purged"
    RATE_LIMITED = "rate-limited"
    NO_API_KEY = "no-api-key"
    IN_PROGRESS = "in-progress"
    MALFORMED_RECORD = "malformed-record"
    NETWORK_ERROR = "network-error"
    STORAGE_ERROR = "storage-error"

    @property
    def is_error(self) -> bool:
        return self in _ERROR_KINDS


_ERROR_KINDS = {
    NoticeKind.MALFORMED_RECORD,
    NoticeKind.NETWORK_ERROR,
    NoticeKind.STORAGE_ERROR,
}


class Notice(BaseModel):
    """A short message for the display layer (kind + text)."""

    model_config = {"frozen": True}

    kind: NoticeKind
    message: str
    wait_seconds: int | None = None
