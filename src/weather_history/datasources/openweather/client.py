"""OpenWeather API client constants.

API docs:
  - Current weather: https://openweathermap.org/current
"""

OPENWEATHER_CURRENT_API = "https://api.openweathermap.org/data/2.5/weather"

# Query parameter names
QUERY_PARAM = "q"  # "city,country" or "city,state,country"
API_KEY_PARAM = "appid"
