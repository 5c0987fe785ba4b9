"""Structural comparison of layouts, ignoring connector names."""

from __future__ import annotations

from typing import Iterable

from .identity import same_display
from .models import Config, DisplayRecord


def displays_present(saved: Iterable[DisplayRecord], live: Iterable[DisplayRecord]) -> bool:
    """True if every saved display has a match among the live ones."""
    live = list(live)
    return all(any(same_display(s, d) for d in live) for s in saved)


def same_physical_setup(a: Config, b: Config) -> bool:
    """True if both configs describe the same displays in the same arrangement.

    The display check is existential, not a bijection: with duplicate
    display names two different sets of the same size can pass.  Only the
    geometry of each logical monitor is compared, never its assignments.
    """
    if len(a.physical_displays) != len(b.physical_displays):
        return False
    if not displays_present(a.physical_displays, b.physical_displays):
        return False

    if len(a.logical_monitors) != len(b.logical_monitors):
        return False

    def by_position(lm):
        return (lm.x, lm.y)

    sorted_a = sorted(a.logical_monitors, key=by_position)
    sorted_b = sorted(b.logical_monitors, key=by_position)
    return all(lm_a.geometry == lm_b.geometry for lm_a, lm_b in zip(sorted_a, sorted_b))
