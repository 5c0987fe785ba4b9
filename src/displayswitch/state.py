"""Live display state as reported by ``GetCurrentState``."""

from __future__ import annotations

from dataclasses import dataclass, field

from .fingerprint import canonicalize
from .models import (
    Config,
    LogicalMonitor,
    MonitorAssignment,
    MonitorMode,
    PhysicalDisplay,
    Transform,
    Value,
)


def _display_from_reply(monitor) -> tuple[tuple[str, ...], PhysicalDisplay]:
    """Parse one ``((ssss) a(siiddada{sv}) a{sv})`` monitor entry."""
    monitor_id, modes, props = monitor
    monitor_id = tuple(str(v) for v in monitor_id)
    padded = monitor_id + ("",) * (4 - len(monitor_id))
    connector, vendor, product, serial = padded[:4]

    parsed_modes: list[MonitorMode] = []
    current_mode_id = None
    for mode in modes:
        mode_id, width, height, refresh = mode[:4]
        mode_props = mode[-1] if isinstance(mode[-1], dict) else {}
        is_current = bool(mode_props.get("is-current", False))
        parsed_modes.append(MonitorMode(str(mode_id), int(width), int(height), float(refresh), is_current))
        if is_current:
            current_mode_id = str(mode_id)

    extra: dict[str, Value] = {}
    if "is-underscanning" in props:
        extra["underscanning"] = bool(props["is-underscanning"])
    if "color-mode" in props:
        extra["color-mode"] = int(props["color-mode"])

    display = PhysicalDisplay(
        connector=connector,
        display_name=str(props.get("display-name", "")),
        vendor=vendor or str(props.get("vendor", "")),
        product=product or str(props.get("product", "")),
        serial=serial or str(props.get("serial", "")),
        current_mode_id=current_mode_id,
        modes=parsed_modes,
        extra_props=extra,
    )
    return monitor_id, display


@dataclass
class LiveLogicalMonitor:
    x: int
    y: int
    scale: float
    transform: Transform
    primary: bool
    monitor_ids: list[tuple[str, ...]] = field(default_factory=list)


@dataclass
class DisplayState:
    """Snapshot of one ``GetCurrentState`` reply. Replaced, never edited."""

    serial: int
    displays: list[PhysicalDisplay] = field(default_factory=list)
    display_ids: list[tuple[str, ...]] = field(default_factory=list)
    logical_monitors: list[LiveLogicalMonitor] = field(default_factory=list)
    properties: dict[str, Value] = field(default_factory=dict)

    @classmethod
    def from_reply(cls, reply) -> DisplayState:
        """Build from the unpacked ``(ua((ssss)a(siiddada{sv})a{sv})a(iiduba(ssss)a{sv})a{sv})`` reply."""
        serial, monitors, logical_monitors, properties = reply
        display_ids: list[tuple[str, ...]] = []
        displays: list[PhysicalDisplay] = []
        for monitor in monitors:
            monitor_id, display = _display_from_reply(monitor)
            display_ids.append(monitor_id)
            displays.append(display)

        lms = []
        for lm in logical_monitors:
            x, y, scale, transform, primary, ids = lm[:6]
            lms.append(LiveLogicalMonitor(
                x=int(x),
                y=int(y),
                scale=float(scale),
                transform=Transform(int(transform)),
                primary=bool(primary),
                monitor_ids=[tuple(str(v) for v in i) for i in ids],
            ))

        return cls(
            serial=int(serial),
            displays=displays,
            display_ids=display_ids,
            logical_monitors=lms,
            properties=dict(properties or {}),
        )

    def physical_displays(self) -> list[PhysicalDisplay]:
        return list(self.displays)

    def _display_for_id(self, monitor_id: tuple[str, ...]) -> PhysicalDisplay | None:
        for known_id, display in zip(self.display_ids, self.displays):
            if known_id == monitor_id:
                return display
        return None

    def current_logical_monitors(self) -> list[LogicalMonitor]:
        """Logical monitors with assignments built from each display's current mode."""
        result = []
        for lm in self.logical_monitors:
            assignments = []
            for monitor_id in lm.monitor_ids:
                display = self._display_for_id(monitor_id)
                if display is None:
                    continue
                assignments.append(MonitorAssignment(
                    display.connector, display.current_mode_id or "", dict(display.extra_props),
                ))
            result.append(LogicalMonitor(
                x=lm.x,
                y=lm.y,
                scale=lm.scale,
                transform=lm.transform,
                primary=lm.primary,
                assignments=tuple(assignments),
            ))
        return result

    def config_properties(self) -> dict[str, Value]:
        """Global properties worth saving: only layout-mode, and only if changeable."""
        props: dict[str, Value] = {}
        if self.properties.get("supports-changing-layout-mode") is True:
            layout_mode = self.properties.get("layout-mode")
            if layout_mode is not None:
                props["layout-mode"] = int(layout_mode)
        return props

    def monitors_config(self, name: str = "") -> Config:
        """Snapshot the live layout as a config."""
        return Config.create(
            name,
            canonicalize(self.current_logical_monitors()),
            self.config_properties(),
            [d.record() for d in self.displays],
        )
