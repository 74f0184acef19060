"""Latest observation from the OpenWeather current weather API."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import requests

from weather_history.datasources.openweather.client import (
    API_KEY_PARAM,
    OPENWEATHER_CURRENT_API,
    QUERY_PARAM,
)
from weather_history.errors import NetworkError
from weather_history.record import WeatherRecord, parse_record
from weather_history.services.http import session

if TYPE_CHECKING:
    from weather_history.schemas import LocationKey

logger = logging.getLogger(__name__)


def fetch_latest(
    location: LocationKey,
    api_key: str,
    *,
    http: requests.Session | None = None,
) -> WeatherRecord:
    """
    Fetch the current observation for a location.

    Makes exactly one request and does not retry. Readings are requested in
    standard units (Kelvin, metres); conversion happens at display time.

    Args:
        location: Location to query; its canonical key is sent as ``q``.
        api_key: OpenWeather API key.
        http: Session to use (defaults to the shared session).

    Returns:
        The parsed record, holding the response body verbatim.

    Raises:
        NetworkError: Connection failure, timeout or non-2xx response.
        MalformedRecord: The response body is not a usable observation.
    """
    params = {QUERY_PARAM: location.key, API_KEY_PARAM: api_key}
    client = http or session

    logger.info("Fetching current weather for %s", location)
    try:
        resp = client.get(OPENWEATHER_CURRENT_API, params=params)
        resp.raise_for_status()
    except requests.RequestException as e:
        raise NetworkError(_describe(e)) from e

    return parse_record(resp.content)


def _describe(error: requests.RequestException) -> str:
    response = error.response
    if response is not None:
        # Don't echo the URL: it carries the API key.
        return f"HTTP {response.status_code} {response.reason or ''}".strip()
    return type(error).__name__
