"""
Prefect flows for the weather history pipeline.

Flows:
- refresh: Load settings, hydrate/purge the local history, call the weather
  API when the call-eligibility window allows, store new observations.

Usage (local):
    python -m weather_history.flows.refresh

Usage (Prefect, e.g. every 15 minutes):
    prefect server start  # Optional, for dashboard
    prefect deployment run 'refresh-weather/default'
"""
