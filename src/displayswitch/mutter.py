"""Mutter DisplayConfig D-Bus backend."""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Callable, Mapping, Sequence

import gi
gi.require_version("Gio", "2.0")
from gi.repository import Gio, GLib

from .errors import TransportError
from .models import ApplyMethod, LogicalMonitor, Value
from .service import DisplayConfigService
from .state import DisplayState

log = logging.getLogger(__name__)

BUS_NAME = "org.gnome.Mutter.DisplayConfig"
OBJECT_PATH = "/org/gnome/Mutter/DisplayConfig"
INTERFACE = "org.gnome.Mutter.DisplayConfig"

APPLY_SIGNATURE = "(uua(iiduba(ssa{sv}))a{sv})"


def pack_value(value: Value) -> GLib.Variant:
    """Wrap a property value in a typed variant for an a{sv} map."""
    if isinstance(value, GLib.Variant):
        return value
    if isinstance(value, bool):
        return GLib.Variant.new_boolean(value)
    if isinstance(value, int):
        return GLib.Variant.new_uint32(value) if value >= 0 else GLib.Variant.new_int32(value)
    if isinstance(value, float):
        return GLib.Variant.new_double(value)
    if isinstance(value, str):
        return GLib.Variant.new_string(value)
    raise TypeError(f"Cannot pack property value of type {type(value).__name__}")


def pack_props(props: Mapping[str, Value]) -> dict[str, GLib.Variant]:
    return {k: pack_value(v) for k, v in props.items()}


def build_apply_parameters(
    serial: int,
    method: ApplyMethod,
    logical_monitors: Sequence[LogicalMonitor],
    properties: Mapping[str, Value],
) -> GLib.Variant:
    monitors = [
        (
            lm.x, lm.y, lm.scale, int(lm.transform), lm.primary,
            [(a.connector, a.mode_id, pack_props(a.props)) for a in lm.assignments],
        )
        for lm in logical_monitors
    ]
    return GLib.Variant(APPLY_SIGNATURE, (serial, int(method), monitors, pack_props(properties)))


class MutterDisplayConfig(DisplayConfigService):
    """Talks to ``org.gnome.Mutter.DisplayConfig`` on the session bus.

    Calls block in the default executor.  Signals are dispatched by a GLib
    main loop in a background thread and handed to the asyncio loop.
    """

    def __init__(self) -> None:
        self._proxy: Gio.DBusProxy | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._glib_loop: GLib.MainLoop | None = None
        self._signal_id: int | None = None
        self._callbacks: dict[int, Callable[[], None]] = {}
        self._next_handler_id = 1

    async def connect(self) -> None:
        """Create the proxy and start dispatching signals."""
        self._loop = asyncio.get_event_loop()

        def _new_proxy() -> Gio.DBusProxy:
            return Gio.DBusProxy.new_for_bus_sync(
                Gio.BusType.SESSION,
                Gio.DBusProxyFlags.NONE,
                None,
                BUS_NAME,
                OBJECT_PATH,
                INTERFACE,
                None,
            )

        try:
            self._proxy = await self._loop.run_in_executor(None, _new_proxy)
        except GLib.Error as e:
            raise TransportError(f"Cannot connect to {BUS_NAME}: {e.message}") from e

        self._signal_id = self._proxy.connect("g-signal", self._on_g_signal)
        self._glib_loop = GLib.MainLoop.new(GLib.MainContext.default(), False)
        threading.Thread(target=self._glib_loop.run, daemon=True, name="glib-mainloop").start()
        log.info("Connected to %s", BUS_NAME)

    def close(self) -> None:
        if self._proxy is not None and self._signal_id is not None:
            self._proxy.disconnect(self._signal_id)
            self._signal_id = None
        if self._glib_loop is not None:
            self._glib_loop.quit()
            self._glib_loop = None
        self._proxy = None
        self._callbacks.clear()

    def _on_g_signal(self, _proxy, _sender, signal_name, _params) -> None:
        # Runs on the GLib thread
        if signal_name != "MonitorsChanged" or self._loop is None:
            return
        self._loop.call_soon_threadsafe(self._emit_monitors_changed)

    def _emit_monitors_changed(self) -> None:
        log.debug("MonitorsChanged")
        for callback in list(self._callbacks.values()):
            callback()

    async def _call(self, method: str, parameters: GLib.Variant | None) -> GLib.Variant:
        if self._proxy is None:
            raise TransportError("D-Bus proxy is not initialized")
        proxy = self._proxy

        def _call_sync() -> GLib.Variant:
            return proxy.call_sync(method, parameters, Gio.DBusCallFlags.NONE, -1, None)

        try:
            return await asyncio.get_event_loop().run_in_executor(None, _call_sync)
        except GLib.Error as e:
            raise TransportError(f"{method} failed: {e.message}") from e

    # ── DisplayConfigService ────────────────────────────────────────

    async def get_current_state(self) -> DisplayState:
        reply = await self._call("GetCurrentState", None)
        return DisplayState.from_reply(reply.unpack())

    async def apply_monitors_config(
        self,
        serial: int,
        method: ApplyMethod,
        logical_monitors: Sequence[LogicalMonitor],
        properties: Mapping[str, Value],
    ) -> None:
        parameters = build_apply_parameters(serial, method, logical_monitors, properties)
        await self._call("ApplyMonitorsConfig", parameters)

    def connect_monitors_changed(self, callback: Callable[[], None]) -> int:
        handler_id = self._next_handler_id
        self._next_handler_id += 1
        self._callbacks[handler_id] = callback
        return handler_id

    def disconnect(self, handler_id: int) -> None:
        self._callbacks.pop(handler_id, None)
