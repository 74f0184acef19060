"""External data source integrations.

Each subdirectory is one data source with a consistent structure:

    datasources/{name}/
    ├── __init__.py       # Public API re-exports
    ├── client.py         # API URLs, constants
    └── {feature}.py      # Fetch functions (one per endpoint/concept)

Fetch functions return domain objects (``WeatherRecord``) and translate
transport failures into ``weather_history.errors`` types. They never retry;
call rationing belongs to ``controller.py``.
"""
