"""Weather record model.

A ``WeatherRecord`` is one immutable observation parsed from an OpenWeather
"current weather" payload. The raw payload is kept verbatim: it is what gets
written to disk and it defines equality, so two fetches that return the same
bytes are recognised as "no new data".
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta, timezone
from typing import Any

from weather_history.errors import MalformedRecord
from weather_history.units import format_distance, format_percent, format_temperature

#: OpenWeather recomputes current conditions roughly this often.
MIN_RECALCULATE_INTERVAL = timedelta(minutes=15)

UNKNOWN = "unknown"


@dataclass(frozen=True, eq=False)
class WeatherRecord:
    """A single observation at one location.

    Optional readings are ``None`` when the payload omits them. Sorting a list
    of records puts the most recent first.
    """

    captured_at: datetime  # aware, in the location's own UTC offset
    raw_payload: str = field(repr=False)
    condition: str | None = None
    temp_kelvin: float | None = None
    feels_like_kelvin: float | None = None
    humidity_percent: int | None = None
    cloud_cover_percent: int | None = None
    visibility_meters: int | None = None

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, WeatherRecord):
            return NotImplemented
        return self.raw_payload == other.raw_payload

    def __hash__(self) -> int:
        return hash(self.raw_payload)

    def __lt__(self, other: WeatherRecord) -> bool:
        # Newest first: "less than" means "captured later".
        return self.captured_at > other.captured_at

    @property
    def epoch_seconds(self) -> int:
        """Capture time as Unix seconds (names the record's file)."""
        return int(self.captured_at.timestamp())

    # -------------------------------------------------------------------------
    # Freshness
    # -------------------------------------------------------------------------

    def time_since_calculated(self, now: datetime | None = None) -> timedelta:
        """Time elapsed since the observation was computed (not received)."""
        now = now or datetime.now(UTC)
        return now - self.captured_at

    def time_until_next_recalculation(self, now: datetime | None = None) -> timedelta:
        """Time until newer data may exist upstream; negative once it may."""
        return MIN_RECALCULATE_INTERVAL - self.time_since_calculated(now)

    # -------------------------------------------------------------------------
    # Derived, unit-aware views
    # -------------------------------------------------------------------------

    def temperature(self, units: str) -> str:
        if self.temp_kelvin is None:
            return UNKNOWN
        return format_temperature(self.temp_kelvin, units)

    def feels_like(self, units: str) -> str:
        if self.feels_like_kelvin is None:
            return UNKNOWN
        return format_temperature(self.feels_like_kelvin, units)

    def visibility(self, units: str) -> str:
        if self.visibility_meters is None:
            return UNKNOWN
        return format_distance(self.visibility_meters, units)

    def humidity(self) -> str:
        if self.humidity_percent is None:
            return UNKNOWN
        return format_percent(self.humidity_percent)

    def cloud_cover(self) -> str:
        if self.cloud_cover_percent is None:
            return UNKNOWN
        return format_percent(self.cloud_cover_percent)

    def condition_text(self) -> str:
        return self.condition if self.condition is not None else UNKNOWN

    def formatted_time(self, separator: str, now: datetime | None = None) -> str:
        """Time of day, plus the date once the record is at least a day old.

        Example: ``"3:05 PM"`` or ``"3:05 PM 10/14/26"`` with ``separator=" "``.
        """
        local = self.captured_at
        text = f"{local.hour % 12 or 12}:{local:%M %p}"
        if self.time_since_calculated(now) >= timedelta(days=1):
            text += separator + f"{local:%m/%d/%y}"
        return text


# =============================================================================
# Parsing
# =============================================================================


def parse_record(raw_payload: str | bytes) -> WeatherRecord:
    """Build a ``WeatherRecord`` from an OpenWeather current-weather payload.

    Raises:
        MalformedRecord: If the payload is not JSON, or ``weather``, ``main``,
            ``dt`` or ``timezone`` are missing or of the wrong type.
    """
    if isinstance(raw_payload, bytes):
        try:
            raw_payload = raw_payload.decode("utf-8")
        except UnicodeDecodeError as e:
            raise MalformedRecord(f"Payload is not UTF-8: {e}") from e

    try:
        data = json.loads(raw_payload)
    except ValueError as e:  # JSONDecodeError, or an integer past the digit limit
        raise MalformedRecord(f"Payload is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise MalformedRecord("Payload is not a JSON object")

    weather_list = data.get("weather")
    if not isinstance(weather_list, list) or not weather_list:
        raise MalformedRecord("Missing or empty 'weather' array")
    weather = weather_list[0]
    if not isinstance(weather, dict):
        raise MalformedRecord("'weather[0]' is not an object")

    main = data.get("main")
    if not isinstance(main, dict):
        raise MalformedRecord("Missing 'main' object")

    dt = _required_int(data, "dt")
    offset = _required_int(data, "timezone")
    try:
        tz = timezone(timedelta(seconds=offset))
        captured_at = datetime.fromtimestamp(dt, tz=tz)
    except (ValueError, OverflowError, OSError) as e:
        raise MalformedRecord(f"Invalid 'dt'/'timezone': {e}") from e

    description = weather.get("description")
    condition = description if isinstance(description, str) and description.strip() else None

    clouds = data.get("clouds")
    cloud_cover = _optional_nonzero_int(clouds, "all") if isinstance(clouds, dict) else None

    return WeatherRecord(
        captured_at=captured_at,
        raw_payload=raw_payload,
        condition=condition,
        temp_kelvin=_optional_float(main, "temp"),
        feels_like_kelvin=_optional_float(main, "feels_like"),
        humidity_percent=_optional_nonzero_int(main, "humidity"),
        cloud_cover_percent=cloud_cover,
        visibility_meters=_optional_nonzero_int(data, "visibility"),
    )


def _is_number(value: Any) -> bool:
    return isinstance(value, int | float) and not isinstance(value, bool)


def _finite(value: Any) -> bool:
    # Integers too large for a float overflow in math.isfinite.
    try:
        return _is_number(value) and math.isfinite(value)
    except OverflowError:
        return False


def _required_int(obj: dict[str, Any], key: str) -> int:
    value = obj.get(key)
    if not _finite(value):
        raise MalformedRecord(f"Missing or non-numeric '{key}'")
    return int(value)


def _optional_float(obj: dict[str, Any], key: str) -> float | None:
    value = obj.get(key)
    if not _finite(value):
        return None
    return float(value)


def _optional_nonzero_int(obj: dict[str, Any], key: str) -> int | None:
    # Upstream reports a missing reading as 0, so 0 is treated as unknown.
    value = obj.get(key)
    if not _finite(value):
        return None
    return int(value) or None
