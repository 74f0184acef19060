"""Test helpers: OpenWeather-shaped payloads and a fixed clock."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import Any

from weather_history.schemas import LocationKey

NOW = datetime(2026, 10, 17, 12, 0, tzinfo=UTC)

LONDON = LocationKey(city="London", country="UK")


def make_payload(
    captured_at: datetime = NOW,
    *,
    timezone: int = 0,
    description: str | None = "light rain",
    main: dict[str, Any] | None = None,
    clouds: int | None = 75,
    visibility: int | None = 10000,
    **extra: Any,
) -> str:
    """Build a current-weather payload like the API returns."""
    data: dict[str, Any] = {
        "weather": [{"id": 500, "main": "Rain", "description": description, "icon": "10d"}],
        "main": main
        if main is not None
        else {"temp": 283.15, "feels_like": 281.65, "humidity": 81, "pressure": 1012},
        "dt": int(captured_at.timestamp()),
        "timezone": timezone,
        "name": "London",
    }
    if description is None:
        del data["weather"][0]["description"]
    if clouds is not None:
        data["clouds"] = {"all": clouds}
    if visibility is not None:
        data["visibility"] = visibility
    data.update(extra)
    return json.dumps(data)

