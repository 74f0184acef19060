"""Display summary: the strings a weather screen shows for one location."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from weather_history.record import UNKNOWN
from weather_history.renderers import render_template

if TYPE_CHECKING:
    from datetime import datetime

    from weather_history.controller import LocationController


@dataclass
class HistoryRow:
    """One line of the history list."""

    index: int
    time: str
    temperature: str
    condition: str
    selected: bool = False


@dataclass
class DisplaySummary:
    """Derived strings for the current and the selected observation."""

    location: str
    last_updated: str
    selected_time: str  # empty when the newest record is selected
    condition: str = UNKNOWN
    temperature: str = UNKNOWN
    feels_like: str = UNKNOWN
    humidity: str = UNKNOWN
    cloud_cover: str = UNKNOWN
    visibility: str = UNKNOWN
    history: list[HistoryRow] = field(default_factory=list)


def build_summary(
    controller: LocationController,
    units: str,
    now: datetime | None = None,
) -> DisplaySummary:
    """Snapshot a controller into display strings.

    Args:
        controller: Controller whose history and selection are shown.
        units: Unit system for temperatures and distances.
        now: Reference time for "show the date once a day old".
    """
    records = controller.records
    newest = records[0] if records else None
    selected = controller.selected if records else None

    show_selected_time = selected is not None and selected is not newest
    summary = DisplaySummary(
        location=controller.location.pretty,
        last_updated=newest.formatted_time(" ", now) if newest else UNKNOWN,
        selected_time=selected.formatted_time(" ", now) if show_selected_time else "",
    )

    if selected is not None:
        summary.condition = selected.condition_text()
        summary.temperature = selected.temperature(units)
        summary.feels_like = selected.feels_like(units)
        summary.humidity = selected.humidity()
        summary.cloud_cover = selected.cloud_cover()
        summary.visibility = selected.visibility(units)

    summary.history = [
        HistoryRow(
            index=i,
            time=r.formatted_time(" ", now),
            temperature=r.temperature(units),
            condition=r.condition_text(),
            selected=i == controller.selected_index,
        )
        for i, r in enumerate(records)
    ]
    return summary


def render_summary_text(summary: DisplaySummary, *, show_history: bool = True) -> str:
    """Render a summary as plain text for the terminal."""
    return render_template("summary.txt.j2", summary=summary, show_history=show_history)
