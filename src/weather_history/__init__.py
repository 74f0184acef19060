"""Weather History - rate-limited current weather with a local observation log.

Architecture::

    record.py      One observation parsed from an OpenWeather payload (+ unit views)
    units.py       Pure Kelvin/metre conversions and wait-time phrasing
    store.py       One directory per location, one JSON file per observation
    retention.py   Which stored observations are older than the configured limit
    datasources/   External APIs (OpenWeather current weather)
    controller.py  Per-location refresh state machine (hydrate -> purge -> fetch)
    renderers/     Pure data -> text (display summary)
    flows/         Prefect orchestration (one refresh cycle for cron / deployments)
    services/      Shared utilities (HTTP session with default timeout)

Data flow: datasources -> controller -> store (cache) -> renderers
"""

__version__ = "0.1.0"

from weather_history.config import AppSettings, UserSettings
from weather_history.record import WeatherRecord

__all__ = ["AppSettings", "UserSettings", "WeatherRecord", "__version__"]
