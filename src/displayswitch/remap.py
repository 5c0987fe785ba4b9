"""Rewrite a saved layout onto the connectors that are live right now."""

from __future__ import annotations

import logging
from typing import Iterable, Sequence

from .identity import same_display
from .models import DisplayRecord, LogicalMonitor, MonitorAssignment, PhysicalDisplay

log = logging.getLogger(__name__)


def find_duplicate_names(live_displays: Iterable[PhysicalDisplay]) -> list[str]:
    """Display names reported by more than one live display."""
    seen: set[str] = set()
    duplicates: list[str] = []
    for display in live_displays:
        name = display.display_name
        if name and name in seen and name not in duplicates:
            duplicates.append(name)
        seen.add(name)
    return duplicates


def build_connector_map(
    saved_displays: Iterable[DisplayRecord],
    live_displays: Sequence[PhysicalDisplay],
) -> dict[str, str]:
    """Map saved connector -> live connector by physical identity.

    Records with no identity, and displays that are not connected now, map
    to themselves.  When several live displays share a name the first one
    wins.
    """
    for name in find_duplicate_names(live_displays):
        log.warning(
            'Duplicate display name "%s" among connected displays, connector remapping may be unreliable',
            name,
        )

    live_records = [d.record() for d in live_displays]
    connector_map: dict[str, str] = {}
    for saved in saved_displays:
        if not saved.identity_name:
            connector_map[saved.connector] = saved.connector
            continue

        match = next((live for live in live_records if same_display(saved, live)), None)
        if match is not None:
            log.debug('Mapped %s ("%s") -> %s', saved.connector, saved.identity_name, match.connector)
            connector_map[saved.connector] = match.connector
        else:
            log.warning('No connected display matches %s ("%s")', saved.connector, saved.identity_name)
            connector_map[saved.connector] = saved.connector
    return connector_map


def _remap_assignment(
    assignment: MonitorAssignment,
    connector_map: dict[str, str],
    live_by_connector: dict[str, PhysicalDisplay],
) -> MonitorAssignment:
    connector = connector_map.get(assignment.connector, assignment.connector)
    live = live_by_connector.get(connector)
    if live is None:
        # Not connected: nothing to validate the mode against
        return MonitorAssignment(connector, assignment.mode_id, dict(assignment.props))

    props = dict(live.extra_props)
    props.update(assignment.props)
    return MonitorAssignment(connector, live.current_mode_id or assignment.mode_id, props)


def remap_connectors(
    saved_logical_monitors: Iterable[LogicalMonitor],
    saved_displays: Iterable[DisplayRecord],
    live_displays: Sequence[PhysicalDisplay],
) -> list[LogicalMonitor]:
    """Return the saved logical monitors rewritten for the live connectors.

    Geometry is kept as saved.  Assignments on a connected display take the
    display's current mode and its live props as defaults under the saved
    props.
    """
    connector_map = build_connector_map(saved_displays, live_displays)
    live_by_connector: dict[str, PhysicalDisplay] = {}
    for display in live_displays:
        live_by_connector.setdefault(display.connector, display)

    return [
        lm.with_assignments(
            _remap_assignment(a, connector_map, live_by_connector) for a in lm.assignments
        )
        for lm in saved_logical_monitors
    ]
