"""Tests for the per-location refresh controller."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta
from pathlib import Path
from unittest.mock import Mock

import pytest

from tests.helpers import LONDON, NOW, make_payload
from weather_history.config import UserSettings
from weather_history.controller import MIN_CALL_INTERVAL, LocationController
from weather_history.errors import MalformedRecord, NetworkError, StorageError
from weather_history.record import WeatherRecord, parse_record
from weather_history.schemas import LocationKey, Notice, NoticeKind, RetentionChoice
from weather_history.store import RecordStore


class FakeClock:
    """Settable clock for deterministic timing."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now += delta


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(NOW)


@pytest.fixture
def store(tmp_path: Path) -> RecordStore:
    return RecordStore(tmp_path)


def _controller(
    store: RecordStore,
    settings: UserSettings,
    clock: FakeClock,
    fetcher: Mock | None = None,
) -> LocationController:
    return LocationController(
        LONDON, store, settings, fetcher=fetcher or Mock(), clock=clock
    )


def _kinds(notices: list[Notice]) -> list[NoticeKind]:
    return [n.kind for n in notices]


class TestFirstRefresh:
    """Empty store, valid key: fetch, store, then rate-limit."""

    def test_fetches_and_persists(
        self, store: RecordStore, user_settings: UserSettings, clock: FakeClock
    ) -> None:
        payload = make_payload(NOW - timedelta(minutes=2))
        fetcher = Mock(return_value=parse_record(payload))
        controller = _controller(store, user_settings, clock, fetcher)

        notices = asyncio.run(controller.refresh())

        assert _kinds(notices) == [NoticeKind.UPDATED]
        assert [r.raw_payload for r in controller.records] == [payload]
        record = controller.records[0]
        assert (store.location_dir(LONDON) / f"{record.epoch_seconds}.json").exists()
        fetcher.assert_called_once_with(LONDON, "test-key")
        assert controller.last_call == NOW

    def test_immediate_second_refresh_is_refused(
        self, store: RecordStore, user_settings: UserSettings, clock: FakeClock
    ) -> None:
        # Old enough that only the call spacing applies.
        fetcher = Mock(return_value=parse_record(make_payload(NOW - timedelta(hours=1))))
        controller = _controller(store, user_settings, clock, fetcher)

        asyncio.run(controller.refresh())
        clock.advance(timedelta(seconds=20))
        notices = asyncio.run(controller.refresh())

        assert _kinds(notices) == [NoticeKind.RATE_LIMITED]
        assert notices[0].message == "Please wait 40 seconds."
        assert notices[0].wait_seconds == 40
        assert fetcher.call_count == 1

    def test_wait_uses_recalculation_window(
        self, store: RecordStore, user_settings: UserSettings, clock: FakeClock
    ) -> None:
        fetcher = Mock(return_value=parse_record(make_payload(NOW - timedelta(minutes=2))))
        controller = _controller(store, user_settings, clock, fetcher)

        asyncio.run(controller.refresh())
        notices = asyncio.run(controller.refresh())

        assert _kinds(notices) == [NoticeKind.RATE_LIMITED]
        assert notices[0].message == "Please wait 13 minutes."
        assert fetcher.call_count == 1

    def test_allowed_again_after_window(
        self, store: RecordStore, user_settings: UserSettings, clock: FakeClock
    ) -> None:
        first = parse_record(make_payload(NOW - timedelta(hours=1)))
        second = parse_record(make_payload(NOW))
        fetcher = Mock(side_effect=[first, second])
        controller = _controller(store, user_settings, clock, fetcher)

        asyncio.run(controller.refresh())
        clock.advance(MIN_CALL_INTERVAL)
        notices = asyncio.run(controller.refresh())

        assert _kinds(notices) == [NoticeKind.UPDATED]
        assert controller.records == (second, first)
        assert fetcher.call_count == 2


class TestHydrationAndPurge:
    """Loading stored records and removing expired ones."""

    def test_loads_stored_records(
        self, store: RecordStore, user_settings: UserSettings, clock: FakeClock
    ) -> None:
        recent = parse_record(make_payload(NOW - timedelta(minutes=5)))
        older = parse_record(make_payload(NOW - timedelta(hours=5)))
        store.save(LONDON, older)
        store.save(LONDON, recent)
        fetcher = Mock()
        controller = _controller(store, user_settings, clock, fetcher)

        notices = asyncio.run(controller.refresh())

        assert controller.records == (recent, older)
        assert _kinds(notices) == [NoticeKind.RATE_LIMITED]
        fetcher.assert_not_called()

    def test_purges_expired_before_fetching(
        self, store: RecordStore, user_settings: UserSettings, clock: FakeClock
    ) -> None:
        stale = parse_record(make_payload(NOW - timedelta(days=40)))
        path = store.save(LONDON, stale)
        fresh = parse_record(make_payload(NOW))
        fetcher = Mock(return_value=fresh)
        controller = _controller(store, user_settings, clock, fetcher)

        notices = asyncio.run(controller.refresh())

        assert not path.exists()
        assert _kinds(notices) == [NoticeKind.PURGED, NoticeKind.UPDATED]
        assert notices[0].message == "Deleted 1 old weather states."
        assert controller.records == (fresh,)

    def test_never_retention_keeps_everything(
        self, store: RecordStore, user_settings: UserSettings, clock: FakeClock
    ) -> None:
        ancient = parse_record(make_payload(NOW - timedelta(days=900)))
        store.save(LONDON, ancient)
        settings = user_settings.model_copy(update={"delete_after_choice": RetentionChoice.NEVER})
        controller = _controller(store, settings, clock, Mock(return_value=ancient))

        notices = asyncio.run(controller.refresh())

        assert NoticeKind.PURGED not in _kinds(notices)
        assert controller.records == (ancient,)

    def test_failed_delete_continues_with_others(
        self, store: RecordStore, user_settings: UserSettings, clock: FakeClock
    ) -> None:
        a = parse_record(make_payload(NOW - timedelta(days=40)))
        b = parse_record(make_payload(NOW - timedelta(days=50)))
        store.save(LONDON, a)
        store.save(LONDON, b)

        real_delete = store.delete

        def flaky_delete(location: object, record: WeatherRecord) -> bool:
            if record == a:
                raise StorageError("permission denied")
            return real_delete(LONDON, record)

        store.delete = flaky_delete  # type: ignore[method-assign]
        settings = user_settings.model_copy(update={"api_key": ""})
        controller = _controller(store, settings, clock)

        notices = asyncio.run(controller.refresh())

        assert _kinds(notices) == [
            NoticeKind.STORAGE_ERROR,
            NoticeKind.PURGED,
            NoticeKind.NO_API_KEY,
        ]
        assert controller.records == (a,)

    def test_malformed_store_is_reported(
        self, store: RecordStore, user_settings: UserSettings, clock: FakeClock
    ) -> None:
        directory = store.location_dir(LONDON)
        directory.mkdir(parents=True)
        (directory / "1.json").write_text("garbage")
        fetcher = Mock(return_value=parse_record(make_payload(NOW)))
        controller = _controller(store, user_settings, clock, fetcher)

        notices = asyncio.run(controller.refresh())

        assert _kinds(notices) == [NoticeKind.MALFORMED_RECORD, NoticeKind.UPDATED]

    def test_stored_file_with_huge_number_does_not_crash_refresh(
        self, store: RecordStore, user_settings: UserSettings, clock: FakeClock
    ) -> None:
        directory = store.location_dir(LONDON)
        directory.mkdir(parents=True)
        (directory / "1.json").write_text(make_payload(NOW, dt=10**400))
        fetcher = Mock(return_value=parse_record(make_payload(NOW)))
        controller = _controller(store, user_settings, clock, fetcher)

        notices = asyncio.run(controller.refresh())

        assert _kinds(notices) == [NoticeKind.MALFORMED_RECORD, NoticeKind.UPDATED]
        assert controller.is_refreshing is False

    def test_load_does_not_fetch(
        self, store: RecordStore, user_settings: UserSettings, clock: FakeClock
    ) -> None:
        record = parse_record(make_payload(NOW - timedelta(hours=2)))
        store.save(LONDON, record)
        fetcher = Mock()
        controller = _controller(store, user_settings, clock, fetcher)

        notices = asyncio.run(controller.load())

        assert notices == []
        assert controller.records == (record,)
        fetcher.assert_not_called()


class TestNoNewData:
    """Identical payloads are not stored twice."""

    def test_identical_payload_is_ignored(
        self, store: RecordStore, user_settings: UserSettings, clock: FakeClock
    ) -> None:
        record = parse_record(make_payload(NOW - timedelta(hours=1)))
        path = store.save(LONDON, record)
        mtime = path.stat().st_mtime_ns
        fetcher = Mock(return_value=parse_record(record.raw_payload))
        controller = _controller(store, user_settings, clock, fetcher)

        notices = asyncio.run(controller.refresh())

        assert _kinds(notices) == [NoticeKind.NO_NEW_DATA]
        assert notices[0].message == "New weather data is not available yet."
        assert controller.records == (record,)
        assert path.stat().st_mtime_ns == mtime
        assert len(store.list_all(LONDON)) == 1
        # The call still counts against the spacing.
        assert controller.last_call == NOW


class TestNoApiKey:
    """Refresh without an API key."""

    def test_no_network_or_storage(self, user_settings: UserSettings, clock: FakeClock) -> None:
        store = Mock(spec=RecordStore)
        store.list_all.return_value = []
        fetcher = Mock()
        settings = user_settings.model_copy(update={"api_key": ""})
        controller = LocationController(LONDON, store, settings, fetcher=fetcher, clock=clock)

        notices = asyncio.run(controller.refresh())

        assert _kinds(notices) == [NoticeKind.NO_API_KEY]
        assert notices[0].message == "No API key."
        fetcher.assert_not_called()
        store.save.assert_not_called()
        store.delete.assert_not_called()
        assert controller.is_refreshing is False


class TestErrors:
    """Fetch and storage failures become notices."""

    def test_network_error(
        self, store: RecordStore, user_settings: UserSettings, clock: FakeClock
    ) -> None:
        fetcher = Mock(side_effect=NetworkError("ConnectionError"))
        controller = _controller(store, user_settings, clock, fetcher)

        notices = asyncio.run(controller.refresh())

        assert _kinds(notices) == [NoticeKind.NETWORK_ERROR]
        assert notices[0].message == "ConnectionError"
        assert controller.records == ()
        assert controller.last_call is None
        assert controller.is_refreshing is False

    def test_malformed_response(
        self, store: RecordStore, user_settings: UserSettings, clock: FakeClock
    ) -> None:
        fetcher = Mock(side_effect=MalformedRecord("Missing 'main' object"))
        controller = _controller(store, user_settings, clock, fetcher)

        notices = asyncio.run(controller.refresh())

        assert _kinds(notices) == [NoticeKind.MALFORMED_RECORD]
        assert controller.records == ()
        assert controller.last_call is None

    def test_save_failure_leaves_history_unchanged(
        self, user_settings: UserSettings, clock: FakeClock
    ) -> None:
        store = Mock(spec=RecordStore)
        store.list_all.return_value = []
        store.save.side_effect = StorageError("disk full")
        fetcher = Mock(return_value=parse_record(make_payload(NOW)))
        controller = LocationController(LONDON, store, user_settings, fetcher=fetcher, clock=clock)

        notices = asyncio.run(controller.refresh())

        assert _kinds(notices) == [NoticeKind.STORAGE_ERROR]
        assert controller.records == ()


class TestGuard:
    """At most one refresh in flight."""

    def test_concurrent_refresh_is_rejected(
        self, store: RecordStore, user_settings: UserSettings, clock: FakeClock
    ) -> None:
        fetcher = Mock(return_value=parse_record(make_payload(NOW)))
        controller = _controller(store, user_settings, clock, fetcher)

        async def run_both() -> tuple[list[Notice], list[Notice]]:
            first = asyncio.create_task(controller.refresh())
            await asyncio.sleep(0)  # let the first refresh take the guard
            second = await controller.refresh()
            return await first, second

        first, second = asyncio.run(run_both())

        assert _kinds(second) == [NoticeKind.IN_PROGRESS]
        assert second[0].message == "Update already in progress."
        assert _kinds(first) == [NoticeKind.UPDATED]
        assert fetcher.call_count == 1
        assert controller.is_refreshing is False


class TestSelectionAndEvents:
    """Selection and change notifications."""

    def _loaded(
        self, store: RecordStore, settings: UserSettings, clock: FakeClock
    ) -> LocationController:
        for hours in (1, 2, 3):
            store.save(LONDON, parse_record(make_payload(NOW - timedelta(hours=hours))))
        controller = _controller(store, settings, clock)
        asyncio.run(controller.load())
        return controller

    def test_select(
        self, store: RecordStore, user_settings: UserSettings, clock: FakeClock
    ) -> None:
        controller = self._loaded(store, user_settings, clock)
        controller.select(2)
        assert controller.selected_index == 2
        assert controller.selected is controller.records[2]

    @pytest.mark.parametrize("index", [-1, 3])
    def test_select_out_of_range(
        self, store: RecordStore, user_settings: UserSettings, clock: FakeClock, index: int
    ) -> None:
        controller = self._loaded(store, user_settings, clock)
        with pytest.raises(IndexError):
            controller.select(index)

    def test_select_on_empty(
        self, store: RecordStore, user_settings: UserSettings, clock: FakeClock
    ) -> None:
        controller = _controller(store, user_settings, clock)
        assert controller.selected is None
        with pytest.raises(IndexError):
            controller.select(0)

    def test_change_listener_fires(
        self, store: RecordStore, user_settings: UserSettings, clock: FakeClock
    ) -> None:
        controller = self._loaded(store, user_settings, clock)
        listener = Mock()
        unsubscribe = controller.on_change(listener)

        controller.select(1)
        assert listener.call_count == 1

        unsubscribe()
        controller.select(0)
        assert listener.call_count == 1

    def test_notice_listener_receives_notices(
        self, store: RecordStore, user_settings: UserSettings, clock: FakeClock
    ) -> None:
        settings = user_settings.model_copy(update={"api_key": ""})
        controller = _controller(store, settings, clock)
        received: list[Notice] = []
        controller.on_notice(received.append)

        asyncio.run(controller.refresh())

        assert _kinds(received) == [NoticeKind.NO_API_KEY]

    def test_new_record_keeps_selected_record(
        self, store: RecordStore, user_settings: UserSettings, clock: FakeClock
    ) -> None:
        controller = self._loaded(store, user_settings, clock)
        controller.select(1)
        chosen = controller.selected
        controller._fetcher = Mock(return_value=parse_record(make_payload(NOW)))  # noqa: SLF001

        asyncio.run(controller.refresh())

        assert controller.selected is chosen
        assert controller.selected_index == 2

    def test_update_settings_applies_next_cycle(
        self, store: RecordStore, user_settings: UserSettings, clock: FakeClock
    ) -> None:
        controller = _controller(store, user_settings.model_copy(update={"api_key": ""}), clock)
        assert _kinds(asyncio.run(controller.refresh())) == [NoticeKind.NO_API_KEY]

        controller.update_settings(user_settings)
        controller._fetcher = Mock(return_value=parse_record(make_payload(NOW)))  # noqa: SLF001
        assert _kinds(asyncio.run(controller.refresh())) == [NoticeKind.UPDATED]

    def test_update_settings_rejects_other_location(
        self, store: RecordStore, user_settings: UserSettings, clock: FakeClock
    ) -> None:
        controller = _controller(store, user_settings, clock)
        paris = LocationKey(city="Paris", country="FR")

        with pytest.raises(ValueError, match="Paris,FR"):
            controller.update_settings(user_settings.model_copy(update={"location": paris}))
        assert controller.settings is user_settings
