"""Canonical encoding and hashing of monitor layouts.

The encoding mirrors the typed-tuple layout
``(a(iiduba(ssa{sv})) a{sv} a(display))`` as text, with two normalizations
applied first:

* logical monitors are sorted by ``(x, y)``, primary last on ties, and the
  assignments of each logical monitor by ``(connector, mode id)``;
* connector names are resolved to the physical identity of the display
  recorded on that connector, so re-plugging a monitor into another port
  does not change the hash.  Connectors with no recorded identity are
  encoded by name.

Doubles are written with ``float.hex`` and integers with ``int.__str__``,
neither of which depends on the locale.  The text is hashed with the
GLib ``g_str_hash`` (djb2) function.
"""

from __future__ import annotations

import json
from typing import Iterable, Mapping

from .models import (
    DisplayRecord,
    LegacyDisplay,
    LogicalMonitor,
    MonitorAssignment,
    Value,
)

ENCODING_VERSION = 1

_UINT32_MASK = 0xFFFFFFFF


def str_hash(data: bytes) -> int:
    """djb2 over signed chars, truncated to uint32 (GLib ``g_str_hash``)."""
    h = 5381
    for byte in data:
        if byte >= 0x80:
            byte -= 0x100
        h = ((h << 5) + h + byte) & _UINT32_MASK
    return h


def _identity_key(record: DisplayRecord) -> str:
    """Connector-free text for a display record, or '' if it has no identity."""
    if isinstance(record, LegacyDisplay):
        if not record.identity_name:
            return ""
        return "legacy:" + "\x1f".join((record.vendor, record.product, record.serial))
    if not record.display_name:
        return ""
    return "name:" + record.display_name


def connector_identities(physical_displays: Iterable[DisplayRecord]) -> dict[str, str]:
    """Map each connector to the identity key of the display recorded on it."""
    identities: dict[str, str] = {}
    for record in physical_displays:
        key = _identity_key(record)
        if key:
            identities.setdefault(record.connector, key)
    return identities


def _resolve(connector: str, identities: Mapping[str, str]) -> str:
    return identities.get(connector) or "connector:" + connector


# ── Canonical ordering ──────────────────────────────────────────────────

def _assignment_key(a: MonitorAssignment, identities: Mapping[str, str]) -> tuple:
    return (_resolve(a.connector, identities), a.mode_id, _encode_props(a.props))


def canonicalize(
    logical_monitors: Iterable[LogicalMonitor],
    physical_displays: Iterable[DisplayRecord] = (),
) -> list[LogicalMonitor]:
    """Return logical monitors in hashing order with sorted assignments."""
    identities = connector_identities(physical_displays)
    result = [
        lm.with_assignments(sorted(lm.assignments, key=lambda a: _assignment_key(a, identities)))
        for lm in logical_monitors
    ]
    result.sort(key=lambda lm: (lm.x, lm.y, lm.primary, _encode_logical_monitor(lm, identities)))
    return result


# ── Encoding ────────────────────────────────────────────────────────────

def _encode_str(s: str) -> str:
    return json.dumps(s, ensure_ascii=False)


def _encode_value(v: Value) -> str:
    # bool first: bool is an int subclass
    if isinstance(v, bool):
        return "<b " + ("true" if v else "false") + ">"
    if isinstance(v, int):
        return ("<u " if v >= 0 else "<i ") + str(v) + ">"
    if isinstance(v, float):
        return "<d " + v.hex() + ">"
    if isinstance(v, str):
        return "<s " + _encode_str(v) + ">"
    raise TypeError(f"Unsupported property value type: {type(v).__name__}")


def _encode_props(props: Mapping[str, Value]) -> str:
    items = (f"{_encode_str(k)}: {_encode_value(props[k])}" for k in sorted(props))
    return "{" + ", ".join(items) + "}"


def _encode_assignment(a: MonitorAssignment, identities: Mapping[str, str]) -> str:
    return (
        f"({_encode_str(_resolve(a.connector, identities))}, "
        f"{_encode_str(a.mode_id)}, {_encode_props(a.props)})"
    )


def _encode_logical_monitor(lm: LogicalMonitor, identities: Mapping[str, str]) -> str:
    assignments = ", ".join(_encode_assignment(a, identities) for a in lm.assignments)
    return (
        f"({lm.x}, {lm.y}, {float(lm.scale).hex()}, {int(lm.transform)}, "
        f"{'true' if lm.primary else 'false'}, [{assignments}])"
    )


def _encode_display(record: DisplayRecord) -> str:
    key = _identity_key(record)
    if key:
        return _encode_str(key)
    return _encode_str("connector:" + record.connector)


def encode(
    logical_monitors: Iterable[LogicalMonitor],
    properties: Mapping[str, Value],
    physical_displays: Iterable[DisplayRecord],
) -> bytes:
    """Canonical byte encoding of a layout."""
    physical_displays = list(physical_displays)
    identities = connector_identities(physical_displays)
    monitors = canonicalize(logical_monitors, physical_displays)
    lms = ", ".join(_encode_logical_monitor(lm, identities) for lm in monitors)
    displays = ", ".join(sorted(_encode_display(d) for d in physical_displays))
    text = f"v{ENCODING_VERSION} ([{lms}], {_encode_props(properties)}, [{displays}])"
    return text.encode("utf-8")


def compute_hash(
    logical_monitors: Iterable[LogicalMonitor],
    properties: Mapping[str, Value],
    physical_displays: Iterable[DisplayRecord],
) -> int:
    """Deterministic uint32 fingerprint of a layout."""
    return str_hash(encode(logical_monitors, properties, physical_displays))
