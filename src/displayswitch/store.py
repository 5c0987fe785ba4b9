"""Saved configurations: whole-list load/save to a JSON file."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Callable

from .models import Config
from .utils import configs_path, read_json, write_json

log = logging.getLogger(__name__)

STORE_VERSION = 2


class ConfigStore:
    """Ordered list of configs plus the index of the last applied one.

    Reads and writes always cover the whole list.  Observers are called
    when the file is changed by someone else; writes made through this
    store do not notify.
    """

    def __init__(self, path: Path | None = None) -> None:
        self._path = path or configs_path()
        self._observers: list[Callable[[], None]] = []
        self._mtime_ns = self._current_mtime()

    @property
    def path(self) -> Path:
        return self._path

    def _current_mtime(self) -> int | None:
        try:
            return self._path.stat().st_mtime_ns
        except OSError:
            return None

    def _read(self) -> tuple[list, int]:
        data = read_json(self._path)
        if data is None:
            return [], 0
        if isinstance(data, list):
            return data, 0
        if not isinstance(data, dict):
            log.warning("Ignoring malformed config store %s", self._path)
            return [], 0
        raw = data.get("configs", [])
        if not isinstance(raw, list):
            log.warning("Ignoring malformed config list in %s", self._path)
            raw = []
        index = data.get("last_config_index", 0)
        return raw, index if isinstance(index, int) and index >= 0 else 0

    def _write(self, raw_configs: list, index: int) -> None:
        write_json(self._path, {
            "version": STORE_VERSION,
            "last_config_index": index,
            "configs": raw_configs,
        })
        self._mtime_ns = self._current_mtime()

    def load(self) -> list[Config]:
        """Load all configs. Hashes are recomputed, unreadable entries skipped."""
        raw, _index = self._read()
        configs = []
        for entry in raw:
            try:
                configs.append(Config.from_tuple(entry))
            except (TypeError, ValueError, KeyError) as e:
                log.warning("Skipping unreadable config %r: %s", entry, e)
        return configs

    def save(self, configs: list[Config]) -> None:
        """Replace the stored list."""
        _raw, index = self._read()
        self._write([c.rehashed().to_tuple() for c in configs], index)
        log.info("Saved %d configuration(s)", len(configs))

    @property
    def last_applied_index(self) -> int:
        return self._read()[1]

    @last_applied_index.setter
    def last_applied_index(self, index: int) -> None:
        raw, current = self._read()
        if index != current:
            self._write(raw, index)

    # ── Change notification ─────────────────────────────────────────

    def add_observer(self, callback: Callable[[], None]) -> None:
        self._observers.append(callback)

    def remove_observer(self, callback: Callable[[], None]) -> None:
        if callback in self._observers:
            self._observers.remove(callback)

    def check_for_changes(self) -> bool:
        """Notify observers if the file changed since we last saw it."""
        mtime = self._current_mtime()
        if mtime == self._mtime_ns:
            return False
        self._mtime_ns = mtime
        log.info("Configurations changed on disk")
        for callback in list(self._observers):
            try:
                callback()
            except Exception as e:
                log.error("Config store observer failed: %s", e)
        return True

    async def watch(self, interval_s: float = 1.0) -> None:
        """Poll for external changes until cancelled."""
        while True:
            await asyncio.sleep(interval_s)
            self.check_for_changes()
