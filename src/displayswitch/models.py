"""Data models: display records, logical monitors, saved configs."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import IntEnum
from typing import Union

# a{sv} values as they come out of an unpacked variant
Value = Union[bool, int, float, str]


# ── Enums ────────────────────────────────────────────────────────────────

class Transform(IntEnum):
    NORMAL = 0
    ROTATE_90 = 1
    ROTATE_180 = 2
    ROTATE_270 = 3
    FLIPPED = 4
    FLIPPED_90 = 5
    FLIPPED_180 = 6
    FLIPPED_270 = 7


class ApplyMethod(IntEnum):
    NORMAL = 1
    PROMPT = 2


# ── Live hardware ────────────────────────────────────────────────────────

@dataclass(frozen=True)
class MonitorMode:
    id: str
    width: int
    height: int
    refresh_hz: float
    is_current: bool = False


@dataclass
class PhysicalDisplay:
    """One connected monitor as reported by the display service."""

    connector: str              # e.g. "DP-1", "HDMI-1"
    display_name: str = ""      # e.g. "LG Electronics 27\""
    vendor: str = ""
    product: str = ""
    serial: str = ""
    current_mode_id: str | None = None
    modes: list[MonitorMode] = field(default_factory=list)
    # Per-display settings re-applied with the layout (underscanning, color-mode)
    extra_props: dict[str, Value] = field(default_factory=dict)

    def record(self) -> ModernDisplay:
        """Identity record in the current (2-field) format."""
        return ModernDisplay(self.connector, self.display_name)


# ── Saved display identity records ───────────────────────────────────────

@dataclass(frozen=True)
class ModernDisplay:
    connector: str
    display_name: str

    @property
    def identity_name(self) -> str:
        return self.display_name

    def to_tuple(self) -> tuple[str, str]:
        return (self.connector, self.display_name)


@dataclass(frozen=True)
class LegacyDisplay:
    """Record written by older versions: (connector, vendor, product, serial)."""

    connector: str
    vendor: str = ""
    product: str = ""
    serial: str = ""

    @property
    def identity_name(self) -> str:
        """First non-empty of vendor, product, serial."""
        return self.vendor or self.product or self.serial or ""

    def to_tuple(self) -> tuple[str, str, str, str]:
        return (self.connector, self.vendor, self.product, self.serial)


DisplayRecord = Union[ModernDisplay, LegacyDisplay]


def display_record_from_tuple(t) -> DisplayRecord:
    """Build a record from its 2-field or 4-field wire form."""
    items = [str(v) for v in t]
    if len(items) == 2:
        return ModernDisplay(*items)
    if len(items) == 4:
        return LegacyDisplay(*items)
    raise ValueError(f"Physical display record must have 2 or 4 fields, got {len(items)}")


# ── Layout ───────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class MonitorAssignment:
    connector: str
    mode_id: str
    props: dict[str, Value] = field(default_factory=dict)

    def to_tuple(self) -> tuple:
        return (self.connector, self.mode_id, dict(self.props))

    @classmethod
    def from_tuple(cls, t) -> MonitorAssignment:
        connector, mode_id, props = t
        return cls(str(connector), str(mode_id), dict(props or {}))


@dataclass(frozen=True)
class LogicalMonitor:
    x: int = 0
    y: int = 0
    scale: float = 1.0
    transform: Transform = Transform.NORMAL
    primary: bool = False
    assignments: tuple[MonitorAssignment, ...] = ()

    @property
    def geometry(self) -> tuple[int, int, float, int, bool]:
        return (self.x, self.y, self.scale, int(self.transform), self.primary)

    def with_assignments(self, assignments) -> LogicalMonitor:
        return replace(self, assignments=tuple(assignments))

    def to_tuple(self) -> tuple:
        return (
            self.x, self.y, self.scale, int(self.transform), self.primary,
            [a.to_tuple() for a in self.assignments],
        )

    @classmethod
    def from_tuple(cls, t) -> LogicalMonitor:
        x, y, scale, transform, primary, assignments = t
        return cls(
            x=int(x),
            y=int(y),
            scale=float(scale),
            transform=Transform(int(transform)),
            primary=bool(primary),
            assignments=tuple(MonitorAssignment.from_tuple(a) for a in assignments),
        )


# ── Config ───────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Config:
    """A named, saved layout.

    Never mutated: edits produce a new instance through ``create``,
    ``renamed`` or ``rehashed`` so ``hash`` always matches the content.
    """

    name: str
    hash: int
    logical_monitors: tuple[LogicalMonitor, ...] = ()
    properties: dict[str, Value] = field(default_factory=dict)
    physical_displays: tuple[DisplayRecord, ...] = ()

    @classmethod
    def create(cls, name, logical_monitors, properties, physical_displays) -> Config:
        from .fingerprint import compute_hash

        logical_monitors = tuple(logical_monitors)
        physical_displays = tuple(physical_displays)
        properties = dict(properties)
        return cls(
            name=name,
            hash=compute_hash(logical_monitors, properties, physical_displays),
            logical_monitors=logical_monitors,
            properties=properties,
            physical_displays=physical_displays,
        )

    def renamed(self, name: str) -> Config:
        return replace(self, name=name)

    def rehashed(self) -> Config:
        return Config.create(
            self.name, self.logical_monitors, self.properties, self.physical_displays,
        )

    def to_tuple(self) -> tuple:
        """Wire layout ``(s u a(iiduba(ssa{sv})) a{sv} a(ss)|a(ssss))``."""
        return (
            self.name,
            self.hash,
            [lm.to_tuple() for lm in self.logical_monitors],
            dict(self.properties),
            [d.to_tuple() for d in self.physical_displays],
        )

    @classmethod
    def from_tuple(cls, t) -> Config:
        """Parse a wire tuple. The stored hash is discarded and recomputed."""
        name, _hash, logical_monitors, properties, physical_displays = t
        return cls.create(
            str(name),
            [LogicalMonitor.from_tuple(lm) for lm in logical_monitors],
            dict(properties or {}),
            [display_record_from_tuple(d) for d in physical_displays],
        )
