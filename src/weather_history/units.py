"""Unit conversion and formatting helpers.

Pure conversion functions with no external dependencies. Inputs are always
in OpenWeather's "standard" units (Kelvin, metres).
"""

from __future__ import annotations

import math
from datetime import timedelta

FEET_PER_METRE = 3.28084
FEET_PER_MILE = 5280.0
METRES_PER_KM = 1000.0

_TEMPERATURE_SYMBOLS = {
    "standard": "K",
    "metric": "°C",
    "imperial": "°F",
}


def kelvin_to_celsius(kelvin: float) -> float:
    """Convert Kelvin to Celsius."""
    return kelvin - 273.15


def kelvin_to_fahrenheit(kelvin: float) -> float:
    """Convert Kelvin to Fahrenheit."""
    return kelvin * 1.8 - 459.67


def format_temperature(kelvin: float, units: str) -> str:
    """Convert, round to the nearest degree and append the unit symbol.

    >>> format_temperature(293.15, "metric")
    '20 °C'
    """
    if units == "standard":
        value = kelvin
    elif units == "metric":
        value = kelvin_to_celsius(kelvin)
    else:
        value = kelvin_to_fahrenheit(kelvin)
    symbol = _TEMPERATURE_SYMBOLS.get(units, "°F")
    return f"{_round_half_up(value)} {symbol}"


def format_distance(metres: float, units: str) -> str:
    """Format a distance in the unit system's length scale.

    Imperial uses feet, switching to miles at one mile; everything else uses
    metres, switching to kilometres at one kilometre.
    """
    if units == "imperial":
        feet = metres * FEET_PER_METRE
        if feet >= FEET_PER_MILE:
            return f"{_round_half_up(feet / FEET_PER_MILE)} mi"
        return f"{_round_half_up(feet)} ft"

    if metres >= METRES_PER_KM:
        return f"{_round_half_up(metres / METRES_PER_KM)} km"
    return f"{_round_half_up(metres)} m"


def format_percent(value: int) -> str:
    """Format an integer percentage, e.g. ``"75%"``."""
    return f"{value}%"


def format_wait(wait: timedelta) -> str:
    """Describe a remaining wait in whole minutes or seconds, rounded up."""
    total = max(0.0, wait.total_seconds())
    if total >= 60:
        minutes = math.ceil(total / 60)
        return f"{minutes} minute" + ("" if minutes == 1 else "s")
    seconds = math.ceil(total)
    return f"{seconds} second" + ("" if seconds == 1 else "s")


def _round_half_up(value: float) -> int:
    # round() would give banker's rounding (0.5 -> 0)
    return math.floor(value + 0.5)
