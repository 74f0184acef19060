"""
Prefect flow for one weather refresh cycle.

Run locally:
    python -m weather_history.flows.refresh

Run with Prefect dashboard:
    prefect server start &
    python -m weather_history.flows.refresh
"""

from __future__ import annotations

import asyncio
from functools import partial
from typing import Any

from prefect import flow, task

from weather_history.config import AppSettings, UserSettings, get_settings, load_user_settings
from weather_history.controller import LocationController
from weather_history.datasources.openweather import fetch_latest
from weather_history.renderers.summary import build_summary, render_summary_text
from weather_history.services.http import create_session
from weather_history.store import RecordStore


def build_controller(user: UserSettings, app: AppSettings) -> LocationController:
    """Controller for the configured location, storing under ``app.data_dir``."""
    http = create_session(timeout=app.request_timeout)
    return LocationController(
        user.location,
        RecordStore(app.data_dir / "records"),
        user,
        fetcher=partial(fetch_latest, http=http),
    )


@task(name="load-user-settings")
def load_settings(app: AppSettings) -> UserSettings:
    """Load the user settings file (defaults if missing or unreadable)."""
    return load_user_settings(app.settings_file)


@flow(name="refresh-weather", log_prints=True)
async def refresh_weather(app: AppSettings | None = None) -> dict[str, Any]:
    """
    Refresh the configured location once.

    Prints every notice and the resulting summary, and returns them so
    callers (CLI, deployments) can inspect the outcome.
    """
    app = app or get_settings()
    user = load_settings(app)
    controller = build_controller(user, app)

    notices = await controller.refresh()
    for notice in notices:
        print(notice.message)

    summary = build_summary(controller, user.units)
    print(render_summary_text(summary, show_history=False))

    return {
        "location": user.location.key,
        "records": len(controller.records),
        "notices": [n.model_dump(mode="json") for n in notices],
    }


if __name__ == "__main__":
    result = asyncio.run(refresh_weather())
    print(f"Flow complete: {result}")
