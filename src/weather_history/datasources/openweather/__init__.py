"""OpenWeather current-weather data source.

Public API:
  - current: fetch_latest (one call to the current weather endpoint)
  - client: API URL, query parameter names
"""

from weather_history.datasources.openweather.client import OPENWEATHER_CURRENT_API
from weather_history.datasources.openweather.current import fetch_latest

__all__ = [
    "OPENWEATHER_CURRENT_API",
    "fetch_latest",
]
