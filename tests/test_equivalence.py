"""Tests for connector-independent config comparison."""

import random

from displayswitch.equivalence import displays_present, same_physical_setup
from displayswitch.models import (
    Config,
    LegacyDisplay,
    LogicalMonitor,
    ModernDisplay,
    MonitorAssignment,
    Transform,
)


def _config(lms, displays, name="test"):
    return Config.create(name, lms, {}, displays)


def _three_monitor_config():
    lms = [
        LogicalMonitor(0, 0, 1.0, Transform.NORMAL, True, (MonitorAssignment("DP-1", "a", {}),)),
        LogicalMonitor(2560, 0, 1.0, Transform.NORMAL, False, (MonitorAssignment("HDMI-1", "b", {}),)),
        LogicalMonitor(4480, 0, 1.5, Transform.ROTATE_270, False, (MonitorAssignment("DP-2", "c", {}),)),
    ]
    displays = [
        ModernDisplay("DP-1", "LG Monitor"),
        ModernDisplay("HDMI-1", "Dell Monitor"),
        ModernDisplay("DP-2", "BenQ Monitor"),
    ]
    return lms, displays


class TestSamePhysicalSetup:

    def test_reflexive_after_shuffle(self):
        lms, displays = _three_monitor_config()
        original = _config(lms, displays)
        rng = random.Random(7)
        for _ in range(10):
            shuffled_lms = list(lms)
            shuffled_displays = list(displays)
            rng.shuffle(shuffled_lms)
            rng.shuffle(shuffled_displays)
            assert same_physical_setup(original, _config(shuffled_lms, shuffled_displays))

    def test_connector_names_ignored(self):
        lms, displays = _three_monitor_config()
        other_displays = [
            ModernDisplay("HDMI-2", "Dell Monitor"),
            ModernDisplay("DP-3", "LG Monitor"),
            ModernDisplay("DP-4", "BenQ Monitor"),
        ]
        assert same_physical_setup(_config(lms, displays), _config(lms, other_displays))

    def test_assignments_not_compared(self):
        lms, displays = _three_monitor_config()
        other_lms = [lm.with_assignments([MonitorAssignment("X", "other-mode", {"k": 1})]) for lm in lms]
        assert same_physical_setup(_config(lms, displays), _config(other_lms, displays))

    def test_display_count_differs(self):
        lms, displays = _three_monitor_config()
        assert not same_physical_setup(_config(lms, displays), _config(lms, displays[:2]))

    def test_unknown_display(self):
        lms, displays = _three_monitor_config()
        other = displays[:2] + [ModernDisplay("DP-2", "Samsung Monitor")]
        assert not same_physical_setup(_config(lms, displays), _config(lms, other))

    def test_logical_monitor_count_differs(self):
        lms, displays = _three_monitor_config()
        assert not same_physical_setup(_config(lms, displays), _config(lms[:2], displays))

    def test_each_geometry_field_compared(self):
        lms, displays = _three_monitor_config()
        base = _config(lms, displays)
        last = lms[2]
        variants = [
            LogicalMonitor(4481, 0, last.scale, last.transform, last.primary, last.assignments),
            LogicalMonitor(4480, 1, last.scale, last.transform, last.primary, last.assignments),
            LogicalMonitor(4480, 0, 2.0, last.transform, last.primary, last.assignments),
            LogicalMonitor(4480, 0, last.scale, Transform.NORMAL, last.primary, last.assignments),
            LogicalMonitor(4480, 0, last.scale, last.transform, True, last.assignments),
        ]
        for variant in variants:
            assert not same_physical_setup(base, _config(lms[:2] + [variant], displays))

    def test_legacy_records_match_modern(self):
        lms, displays = _three_monitor_config()
        legacy = [LegacyDisplay(d.connector, d.display_name, "", "") for d in displays]
        assert same_physical_setup(_config(lms, legacy), _config(lms, displays))

    def test_duplicate_names_are_not_a_bijection(self):
        # Known limitation: {A, A} is accepted against {A, B}
        lms, _displays = _three_monitor_config()
        a = _config(lms[:2], [ModernDisplay("DP-1", "LG Monitor"), ModernDisplay("DP-2", "LG Monitor")])
        b = _config(lms[:2], [ModernDisplay("DP-1", "LG Monitor"), ModernDisplay("DP-2", "Dell Monitor")])
        assert same_physical_setup(a, b)
        assert not same_physical_setup(b, a)


class TestDisplaysPresent:

    def test_subset_present(self):
        saved = [ModernDisplay("DP-1", "LG Monitor")]
        live = [ModernDisplay("DP-5", "LG Monitor"), ModernDisplay("HDMI-1", "Dell Monitor")]
        assert displays_present(saved, live)

    def test_missing(self):
        saved = [ModernDisplay("DP-1", "LG Monitor"), ModernDisplay("DP-2", "BenQ Monitor")]
        live = [ModernDisplay("DP-1", "LG Monitor")]
        assert not displays_present(saved, live)
