"""Boundary of the display configuration service."""

from __future__ import annotations

from typing import Callable, Mapping, Sequence

from .models import ApplyMethod, LogicalMonitor, Value
from .state import DisplayState


class DisplayConfigService:
    """Fetches and applies monitor state; emits ``MonitorsChanged``.

    Backends raise ``TransportError`` when a call fails.
    """

    async def connect(self) -> None:
        pass

    def close(self) -> None:
        pass

    async def get_current_state(self) -> DisplayState:
        raise NotImplementedError

    async def apply_monitors_config(
        self,
        serial: int,
        method: ApplyMethod,
        logical_monitors: Sequence[LogicalMonitor],
        properties: Mapping[str, Value],
    ) -> None:
        raise NotImplementedError

    def connect_monitors_changed(self, callback: Callable[[], None]) -> int:
        """Register *callback*; returns a handler id for ``disconnect``."""
        raise NotImplementedError

    def disconnect(self, handler_id: int) -> None:
        raise NotImplementedError
