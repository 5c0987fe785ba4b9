"""Physical display identity across record formats."""

from __future__ import annotations

from .models import DisplayRecord, LegacyDisplay, ModernDisplay


def same_display(a: DisplayRecord, b: DisplayRecord) -> bool:
    """True if two records describe the same piece of hardware.

    The connector is never part of identity.  Modern records compare by
    display name, legacy records by (vendor, product, serial), and a mixed
    pair by the display name against the first non-empty legacy field.
    Two records with no identity at all compare equal.
    """
    if isinstance(a, ModernDisplay) and isinstance(b, ModernDisplay):
        return a.display_name == b.display_name
    if isinstance(a, LegacyDisplay) and isinstance(b, LegacyDisplay):
        return (a.vendor, a.product, a.serial) == (b.vendor, b.product, b.serial)
    return a.identity_name == b.identity_name
