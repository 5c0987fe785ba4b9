"""Owns the live display snapshot and serializes apply operations."""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Callable, Iterable, Mapping

from .errors import BusyError, ControllerDestroyedError
from .models import ApplyMethod, Config, LogicalMonitor, PhysicalDisplay, Value
from .remap import remap_connectors
from .scheduler import Scheduler
from .service import DisplayConfigService
from .state import DisplayState

log = logging.getLogger(__name__)

DEBOUNCE_MS = 500       # MonitorsChanged bursts while a display initializes
APPLY_SETTLE_MS = 1000  # Wait after ApplyMonitorsConfig before trusting GetCurrentState


class ControllerState(Enum):
    UNINITIALIZED = "uninitialized"
    READY = "ready"
    REFRESHING = "refreshing"
    DESTROYED = "destroyed"


class DisplayStateController:
    """Keeps the current ``DisplayState`` and applies layouts.

    ``MonitorsChanged`` notifications are debounced into a single refresh
    and ignored while an apply is in flight.  Only one apply may run at a
    time; a second one raises ``BusyError``.
    """

    def __init__(
        self,
        service: DisplayConfigService,
        *,
        debounce_ms: int = DEBOUNCE_MS,
        settle_ms: int = APPLY_SETTLE_MS,
        scheduler: Scheduler | None = None,
    ) -> None:
        self._service = service
        self._scheduler = scheduler or Scheduler()
        self._debounce_s = debounce_ms / 1000.0
        self._settle_s = settle_ms / 1000.0
        self._snapshot: DisplayState | None = None
        self._state = ControllerState.UNINITIALIZED
        self._observers: list[Callable[[], None]] = []
        self._debounce_handle: asyncio.TimerHandle | None = None
        self._refresh_task: asyncio.Future | None = None
        self._background_task: asyncio.Future | None = None
        self._apply_lock = asyncio.Lock()
        self._handler_id: int | None = None
        self._destroyed = False

    # ── Lifecycle ────────────────────────────────────────────────────

    async def start(self) -> DisplayState:
        """Subscribe to MonitorsChanged and fetch the initial state."""
        self._check_alive()
        if self._handler_id is None:
            self._handler_id = self._service.connect_monitors_changed(self._on_monitors_changed)
        return await self.refresh()

    def destroy(self) -> None:
        """Cancel timers, unsubscribe, and discard any late completions."""
        if self._destroyed:
            return
        self._destroyed = True
        self._state = ControllerState.DESTROYED
        self._scheduler.cancel(self._debounce_handle)
        self._debounce_handle = None
        self._scheduler.cancel_all()
        if self._handler_id is not None:
            self._service.disconnect(self._handler_id)
            self._handler_id = None
        self._observers.clear()
        log.debug("Display state controller destroyed")

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    def _check_alive(self) -> None:
        if self._destroyed:
            raise ControllerDestroyedError("Display state controller has been destroyed")

    # ── Observers ────────────────────────────────────────────────────

    def add_observer(self, callback: Callable[[], None]) -> None:
        self._observers.append(callback)

    def remove_observer(self, callback: Callable[[], None]) -> None:
        if callback in self._observers:
            self._observers.remove(callback)

    def _notify(self) -> None:
        for callback in list(self._observers):
            try:
                callback()
            except Exception as e:
                log.error("State observer failed: %s", e)

    # ── State access ─────────────────────────────────────────────────

    @property
    def state(self) -> ControllerState:
        return self._state

    @property
    def snapshot(self) -> DisplayState | None:
        return self._snapshot

    def has_state(self) -> bool:
        return self._snapshot is not None

    @property
    def apply_in_progress(self) -> bool:
        return self._apply_lock.locked()

    def physical_displays(self) -> list[PhysicalDisplay]:
        if self._snapshot is None:
            return []
        return self._snapshot.physical_displays()

    def current_config(self, name: str = "") -> Config | None:
        if self._snapshot is None:
            return None
        return self._snapshot.monitors_config(name)

    def remap(self, config: Config) -> list[LogicalMonitor]:
        """Saved layout rewritten for the live connectors (unchanged without state)."""
        if self._snapshot is None:
            return list(config.logical_monitors)
        return remap_connectors(
            config.logical_monitors, config.physical_displays, self._snapshot.physical_displays(),
        )

    # ── Refresh ──────────────────────────────────────────────────────

    def _on_monitors_changed(self) -> None:
        if self._destroyed:
            return
        if self.apply_in_progress:
            log.debug("Ignoring MonitorsChanged while applying a configuration")
            return
        self._schedule_refresh()

    def _schedule_refresh(self) -> None:
        """(Re)start the debounce timer."""
        self._scheduler.cancel(self._debounce_handle)
        self._debounce_handle = self._scheduler.call_later(self._debounce_s, self._on_debounce_timeout)

    def _on_debounce_timeout(self) -> None:
        self._debounce_handle = None
        if self._destroyed or self.apply_in_progress:
            return
        if self._refresh_task is not None and not self._refresh_task.done():
            # One fetch at a time; look again once this one is over
            self._schedule_refresh()
            return
        self._background_task = asyncio.ensure_future(self._background_refresh())

    async def _background_refresh(self) -> None:
        try:
            await self.refresh()
        except ControllerDestroyedError:
            pass
        except Exception as e:
            log.error("Failed to refresh display state: %s", e)

    async def refresh(self) -> DisplayState:
        """Fetch the current state, joining a fetch that is already running.

        On failure the previous snapshot is kept and the error is raised.
        """
        self._check_alive()
        if self._refresh_task is None or self._refresh_task.done():
            self._refresh_task = asyncio.ensure_future(self._fetch_state())
        return await asyncio.shield(self._refresh_task)

    async def _fetch_state(self) -> DisplayState:
        previous = self._state
        self._state = ControllerState.REFRESHING
        try:
            snapshot = await self._service.get_current_state()
        except BaseException:
            if not self._destroyed:
                self._state = previous
            raise

        if self._destroyed:
            log.debug("Discarding display state fetched after teardown")
            raise ControllerDestroyedError("Display state controller has been destroyed")

        self._snapshot = snapshot
        self._state = ControllerState.READY
        log.info(
            "Display state updated (serial %d, %d display(s))",
            snapshot.serial, len(snapshot.displays),
        )
        self._notify()
        return snapshot

    # ── Apply ────────────────────────────────────────────────────────

    async def apply(
        self,
        logical_monitors: Iterable[LogicalMonitor],
        properties: Mapping[str, Value],
        method: ApplyMethod = ApplyMethod.NORMAL,
    ) -> bool:
        """Apply a layout, then settle and refresh.

        Returns False without calling the service when there is no state
        yet.  Raises ``BusyError`` if another apply is in flight; an error
        from the service is raised after the settle delay and refresh.
        """
        self._check_alive()
        if self._apply_lock.locked():
            raise BusyError("A display configuration is already being applied")

        snapshot = self._snapshot
        if snapshot is None:
            log.warning("No display state yet, not applying configuration")
            return False

        logical_monitors = list(logical_monitors)
        error: Exception | None = None
        async with self._apply_lock:
            self._scheduler.cancel(self._debounce_handle)
            self._debounce_handle = None
            try:
                await self._service.apply_monitors_config(
                    snapshot.serial, method, logical_monitors, dict(properties),
                )
                log.info("Applied monitors config (%d logical monitor(s))", len(logical_monitors))
            except Exception as e:
                log.error("Failed to apply monitors config: %s", e)
                error = e

            if not self._destroyed:
                try:
                    await self._scheduler.sleep(self._settle_s)
                except asyncio.CancelledError:
                    if not self._destroyed:
                        raise

            if not self._destroyed:
                try:
                    await self.refresh()
                except Exception as e:
                    log.error("Failed to refresh display state after apply: %s", e)

        if error is not None:
            raise error
        if self._destroyed:
            raise ControllerDestroyedError("Display state controller destroyed while applying")
        return True
