"""File-backed observation store.

One directory per location, one file per observation::

    <base_dir>/
      London,UK/
        1760700000.json
        1760703600.json
      Portland,OR,US/
        ...

Each file holds the raw API payload byte-for-byte, named after the epoch
second the observation was computed. Two observations computed in the same
second share a file name; the later write wins.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from weather_history.errors import StorageError
from weather_history.record import WeatherRecord, parse_record

if TYPE_CHECKING:
    from pathlib import Path

    from weather_history.schemas import LocationKey

logger = logging.getLogger(__name__)

RECORD_SUFFIX = ".json"


class RecordStore:
    """Reads, writes and deletes per-location observation files."""

    def __init__(self, base_dir: Path) -> None:
        self.base = base_dir

    def location_dir(self, location: LocationKey) -> Path:
        """Directory holding the records for ``location``."""
        return self._resolve(location.key)

    def record_path(self, location: LocationKey, record: WeatherRecord) -> Path:
        """File a record is (or would be) stored in."""
        return self.location_dir(location) / f"{record.epoch_seconds}{RECORD_SUFFIX}"

    def list_all(self, location: LocationKey) -> list[WeatherRecord]:
        """Load every stored record for a location, newest first.

        A location that was never saved yields an empty list.

        Raises:
            MalformedRecord: If any file does not parse. Nothing is skipped.
            StorageError: If the directory or a file cannot be read.
        """
        directory = self.location_dir(location)
        if not directory.is_dir():
            return []

        records: list[WeatherRecord] = []
        try:
            paths = sorted(directory.glob(f"*{RECORD_SUFFIX}"))
            for path in paths:
                records.append(parse_record(path.read_bytes()))
        except OSError as e:
            raise StorageError(f"Could not read records for {location}: {e}") from e

        records.sort()
        logger.debug("Loaded %d records from %s", len(records), directory)
        return records

    def save(self, location: LocationKey, record: WeatherRecord) -> Path:
        """Write a record's raw payload, creating the location directory if needed.

        Returns:
            Absolute path of the written file.
        """
        path = self.record_path(location, record)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(record.raw_payload.encode("utf-8"))
        except OSError as e:
            raise StorageError(f"Could not save {path.name} for {location}: {e}") from e

        logger.debug("Saved record %s", path)
        return path

    def delete(self, location: LocationKey, record: WeatherRecord) -> bool:
        """Remove a record's file.

        Returns:
            True if a file was removed, False if it was already gone.
        """
        path = self.record_path(location, record)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StorageError(f"Could not delete {path.name} for {location}: {e}") from e

        logger.debug("Deleted record %s", path)
        return True

    def _resolve(self, name: str) -> Path:
        full = self.base / name
        try:
            full.resolve().relative_to(self.base.resolve())
        except ValueError:
            msg = f"Location escapes store base directory: {name}"
            raise StorageError(msg) from None
        if full.resolve() == self.base.resolve():
            msg = f"Location does not name a directory: {name!r}"
            raise StorageError(msg)
        return full
