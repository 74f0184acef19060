"""Per-location refresh controller.

``LocationController`` owns one location's in-memory history and is the only
thing that calls the weather API or touches that location's store partition.

Refresh cycle (``refresh()``)::

    idle --refresh()--> refreshing --(done / refused / error)--> idle
          \\--refresh() while refreshing--> "Update already in progress."

1. Hydrate from the store on first use, then purge expired records.
2. Stop if no API key is configured.
3. Stop if the call-eligibility window has not passed (wait time reported).
4. Fetch; prepend and persist the record if its payload is new.

Suspension points are the store sweeps and the network call, each run in a
worker thread via ``asyncio.to_thread``. Everything else is synchronous, so
display reads never block and always see a complete list.
"""

from __future__ import annotations

import asyncio
import logging
import math
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from weather_history.datasources.openweather import fetch_latest
from weather_history.errors import (
    ConfigurationMissing,
    MalformedRecord,
    NetworkError,
    RateLimited,
    StorageError,
    WeatherHistoryError,
)
from weather_history.retention import select_expired
from weather_history.schemas import Notice, NoticeKind

if TYPE_CHECKING:
    from collections.abc import Callable

    from weather_history.config import UserSettings
    from weather_history.record import WeatherRecord
    from weather_history.schemas import LocationKey
    from weather_history.store import RecordStore

    Fetcher = Callable[[LocationKey, str], WeatherRecord]
    ChangeListener = Callable[[], None]
    NoticeListener = Callable[[Notice], None]

logger = logging.getLogger(__name__)

#: Minimum spacing between two calls to the weather API.
MIN_CALL_INTERVAL = timedelta(minutes=1)

_ERROR_NOTICE_KINDS: dict[type[WeatherHistoryError], NoticeKind] = {
    MalformedRecord: NoticeKind.MALFORMED_RECORD,
    NetworkError: NoticeKind.NETWORK_ERROR,
    StorageError: NoticeKind.STORAGE_ERROR,
    ConfigurationMissing: NoticeKind.NO_API_KEY,
    RateLimited: NoticeKind.RATE_LIMITED,
}


def _utc_now() -> datetime:
    return datetime.now(UTC)


class LocationController:
    """Refresh state machine and observation history for one location."""

    def __init__(
        self,
        location: LocationKey,
        store: RecordStore,
        settings: UserSettings,
        *,
        fetcher: Fetcher = fetch_latest,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.location = location
        self.store = store
        self.settings = settings
        self._fetcher = fetcher
        self._clock = clock

        self._records: tuple[WeatherRecord, ...] = ()
        self._selected = 0
        self._refreshing = False
        self._last_call: datetime | None = None

        self._change_listeners: list[ChangeListener] = []
        self._notice_listeners: list[NoticeListener] = []

    # -------------------------------------------------------------------------
    # Read-only state for the display layer
    # -------------------------------------------------------------------------

    @property
    def records(self) -> tuple[WeatherRecord, ...]:
        """Snapshot of the history, newest first."""
        return self._records

    @property
    def selected_index(self) -> int:
        return self._selected

    @property
    def selected(self) -> WeatherRecord | None:
        """The record chosen for detailed display, if any."""
        records = self._records
        return records[self._selected] if records else None

    @property
    def newest(self) -> WeatherRecord | None:
        records = self._records
        return records[0] if records else None

    @property
    def is_refreshing(self) -> bool:
        return self._refreshing

    @property
    def last_call(self) -> datetime | None:
        """When the weather API last answered successfully."""
        return self._last_call

    # -------------------------------------------------------------------------
    # Subscriptions
    # -------------------------------------------------------------------------

    def on_change(self, listener: ChangeListener) -> Callable[[], None]:
        """Call ``listener`` after every change to records or selection.

        Returns a function that removes the listener.
        """
        self._change_listeners.append(listener)
        return lambda: self._change_listeners.remove(listener)

    def on_notice(self, listener: NoticeListener) -> Callable[[], None]:
        """Call ``listener`` with every user-facing notice.

        Returns a function that removes the listener.
        """
        self._notice_listeners.append(listener)
        return lambda: self._notice_listeners.remove(listener)

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    def select(self, index: int) -> None:
        """Choose which record the display shows in detail. No I/O."""
        if not 0 <= index < len(self._records):
            msg = f"Record index {index} out of range (0..{len(self._records) - 1})"
            raise IndexError(msg)
        self._selected = index
        self._changed()

    def update_settings(self, settings: UserSettings) -> None:
        """Use new settings from the next refresh cycle on.

        A controller is bound to one store partition, so a settings change
        that moves to another location needs a new controller.

        Raises:
            ValueError: If ``settings.location`` is not this controller's location.
        """
        if settings.location != self.location:
            msg = f"Settings are for {settings.location}, controller is for {self.location}"
            raise ValueError(msg)
        self.settings = settings

    def time_until_next_call(self, now: datetime | None = None) -> timedelta:
        """Remaining call-eligibility window; zero or negative means "may call".

        The window is the later of: newer data being computed upstream, and
        ``MIN_CALL_INTERVAL`` since the last call.
        """
        now = now or self._clock()
        waits = [timedelta(0)]
        records = self._records
        if records:
            waits.append(records[0].time_until_next_recalculation(now))
        if self._last_call is not None:
            waits.append(MIN_CALL_INTERVAL - (now - self._last_call))
        return max(waits)

    async def refresh(self) -> list[Notice]:
        """Run one refresh cycle.

        Never raises for expected failures; they become notices.

        Returns:
            The notices produced by this call, in order.
        """
        notices: list[Notice] = []

        if self._refreshing:
            self._emit(notices, NoticeKind.IN_PROGRESS, "Update already in progress.")
            return notices

        self._refreshing = True
        settings = self.settings
        try:
            if not self._records:
                await self._hydrate(settings, notices)

            if not settings.has_api_key:
                raise ConfigurationMissing("No API key.")

            wait = self.time_until_next_call()
            if wait > timedelta(0):
                raise RateLimited(wait)

            await self._call_api(settings, notices)
        except RateLimited as e:
            logger.info("Refusing call for %s, %s remaining", self.location, e.wait_text)
            self._emit(notices, NoticeKind.RATE_LIMITED, str(e), wait=e.wait)
        except WeatherHistoryError as e:
            self._report(notices, e)
        finally:
            self._refreshing = False

        return notices

    async def load(self) -> list[Notice]:
        """Hydrate from the store and purge, without calling the API.

        Does nothing if records are already loaded. Shares the refresh guard.
        """
        notices: list[Notice] = []

        if self._refreshing:
            self._emit(notices, NoticeKind.IN_PROGRESS, "Update already in progress.")
            return notices

        self._refreshing = True
        try:
            if not self._records:
                await self._hydrate(self.settings, notices)
        finally:
            self._refreshing = False

        return notices

    # -------------------------------------------------------------------------
    # Refresh steps
    # -------------------------------------------------------------------------

    async def _hydrate(self, settings: UserSettings, notices: list[Notice]) -> None:
        try:
            loaded = await asyncio.to_thread(self.store.list_all, self.location)
        except (MalformedRecord, StorageError) as e:
            self._report(notices, e)
            return

        if loaded:
            self._records = tuple(loaded)
            self._selected = 0
            logger.info("Loaded %d stored records for %s", len(loaded), self.location)
            self._changed()

        await self._purge(settings, notices)

    async def _purge(self, settings: UserSettings, notices: list[Notice]) -> None:
        expired = select_expired(self._records, settings.delete_after_choice, self._clock())
        if not expired:
            return

        removed: list[WeatherRecord] = []
        for record in expired:
            try:
                await asyncio.to_thread(self.store.delete, self.location, record)
            except StorageError as e:
                self._report(notices, e)
                continue
            removed.append(record)

        if not removed:
            return

        selected = self.selected
        gone = {id(r) for r in removed}
        self._records = tuple(r for r in self._records if id(r) not in gone)
        self._selected = self._index_of(selected)

        logger.info("Purged %d expired records for %s", len(removed), self.location)
        self._emit(notices, NoticeKind.PURGED, f"Deleted {len(removed)} old weather states.")
        self._changed()

    async def _call_api(self, settings: UserSettings, notices: list[Notice]) -> None:
        record = await asyncio.to_thread(self._fetcher, self.location, settings.api_key)
        self._last_call = self._clock()

        newest = self.newest
        if newest is not None and record == newest:
            self._emit(notices, NoticeKind.NO_NEW_DATA, "New weather data is not available yet.")
            return

        # Persist first: a failed write leaves the in-memory history untouched.
        await asyncio.to_thread(self.store.save, self.location, record)

        self._records = (record, *self._records)
        if self._selected != 0:
            self._selected += 1  # keep showing the same record

        logger.info("New record for %s captured at %s", self.location, record.captured_at)
        self._emit(notices, NoticeKind.UPDATED, "Weather updated.")
        self._changed()

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _index_of(self, record: WeatherRecord | None) -> int:
        for i, r in enumerate(self._records):
            if r is record:
                return i
        return 0

    def _report(self, notices: list[Notice], error: WeatherHistoryError) -> None:
        kind = _ERROR_NOTICE_KINDS.get(type(error), NoticeKind.STORAGE_ERROR)
        if kind.is_error:
            logger.warning("%s for %s: %s", type(error).__name__, self.location, error)
        self._emit(notices, kind, str(error))

    def _emit(
        self,
        notices: list[Notice],
        kind: NoticeKind,
        message: str,
        *,
        wait: timedelta | None = None,
    ) -> None:
        wait_seconds = math.ceil(wait.total_seconds()) if wait is not None else None
        notice = Notice(kind=kind, message=message, wait_seconds=wait_seconds)
        notices.append(notice)
        for listener in list(self._notice_listeners):
            listener(notice)

    def _changed(self) -> None:
        for listener in list(self._change_listeners):
            listener()
