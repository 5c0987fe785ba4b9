"""Tests for the command line and the switcher daemon."""

import asyncio
import time

import pytest

from fakes import FakeDisplayConfigService

from displayswitch import daemon
from displayswitch.daemon import SwitcherDaemon, build_parser, main
from displayswitch.models import Config, LogicalMonitor
from displayswitch.state import DisplayState
from displayswitch.store import ConfigStore


def _stacked(side_by_side):
    desk = DisplayState.from_reply(side_by_side).monitors_config("Stacked")
    lg_lm, dell_lm = sorted(desk.logical_monitors, key=lambda lm: lm.x)
    return Config.create("Stacked", [
        LogicalMonitor(0, 1080, lg_lm.scale, lg_lm.transform, True, lg_lm.assignments),
        LogicalMonitor(0, 0, dell_lm.scale, dell_lm.transform, False, dell_lm.assignments),
    ], desk.properties, desk.physical_displays)


@pytest.fixture
def fake_service(monkeypatch, side_by_side):
    service = FakeDisplayConfigService(side_by_side)
    monkeypatch.setattr(daemon, "_create_service", lambda: service)
    return service


class TestParser:

    def test_apply_with_prompt(self):
        args = build_parser().parse_args(["apply", "Desk", "--prompt"])
        assert args.command == "apply"
        assert args.name == "Desk"
        assert args.prompt is True

    def test_rename(self):
        args = build_parser().parse_args(["rename", "Desk", "Couch"])
        assert (args.old, args.new) == ("Desk", "Couch")

    def test_command_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


class TestCommands:

    def test_list_empty(self, fake_service, capsys):
        assert main(["list"]) == 0
        assert "No configurations saved." in capsys.readouterr().out

    def test_save_then_list(self, fake_service, capsys):
        assert main(["save", "Desk"]) == 0
        assert main(["list"]) == 0
        out = capsys.readouterr().out
        assert "Saved Desk" in out
        assert "* Desk" in out
        assert [c.name for c in ConfigStore().load()] == ["Desk"]

    def test_list_marks_unavailable(self, fake_service, side_by_side, capsys):
        from displayswitch.models import ModernDisplay, MonitorAssignment, Transform

        laptop = Config.create(
            "Laptop",
            [LogicalMonitor(0, 0, 1.0, Transform.NORMAL, True, (MonitorAssignment("eDP-1", "m", {}),))],
            {},
            [ModernDisplay("eDP-1", "Built-in display")],
        )
        ConfigStore().save([_stacked(side_by_side), laptop])
        assert main(["list"]) == 0
        out = capsys.readouterr().out
        assert "  Stacked" in out
        assert "- Laptop" in out

    def test_rename_and_delete(self, fake_service):
        assert main(["save", "Desk"]) == 0
        assert main(["rename", "Desk", "Home"]) == 0
        assert [c.name for c in ConfigStore().load()] == ["Home"]
        assert main(["delete", "Home"]) == 0
        assert ConfigStore().load() == []

    def test_unknown_name_fails(self, fake_service):
        assert main(["apply", "Nowhere"]) == 1
        assert fake_service.apply_calls == []

    def test_apply_failure_exit_code(self, fake_service, side_by_side):
        from fakes import transport_error

        ConfigStore().save([_stacked(side_by_side)])
        fake_service.apply_error = transport_error("denied")
        assert main(["apply", "Stacked"]) == 1

    def test_config_dir_option(self, fake_service, tmp_path):
        target = tmp_path / "elsewhere"
        assert main(["--config-dir", str(target), "save", "Desk"]) == 0
        assert (target / "configs.json").exists()

    def test_unavailable_state_fails(self, fake_service):
        from fakes import transport_error

        fake_service.fetch_error = transport_error("no bus")
        assert main(["list"]) == 1

    def test_show(self, fake_service, side_by_side, capsys):
        from displayswitch.models import LegacyDisplay

        stacked = _stacked(side_by_side)
        legacy = Config.create("Old", stacked.logical_monitors, {}, [
            LegacyDisplay("DP-1", "GSM", "27GL850", "0x1"),
            LegacyDisplay("HDMI-1", "DEL", "U2720Q", "123"),
        ])
        ConfigStore().save([stacked, legacy])

        assert main(["show", "Stacked"]) == 0
        out = capsys.readouterr().out
        assert "  layout-mode: 1" in out
        assert "  monitor at 0,1080 scale 1 normal primary" in out
        assert "  monitor at 0,0 scale 1 normal\n" in out
        assert "    DP-1 2560x1440@59.951" in out
        assert "  display HDMI-1: 'Dell Monitor'" in out

        assert main(["show", "Old"]) == 0
        out = capsys.readouterr().out
        assert "display DP-1: vendor='GSM' product='27GL850' serial='0x1' (legacy)" in out

    def test_show_unknown_name(self, fake_service):
        assert main(["show", "Nowhere"]) == 1

    def test_missing_pygobject_is_reported(self, monkeypatch, caplog):
        import sys

        monkeypatch.setitem(sys.modules, "displayswitch.mutter", None)
        assert main(["list"]) == 1
        assert "displayswitch[mutter]" in caplog.text


class TestSwitcherDaemon:

    @pytest.mark.asyncio
    async def test_loads_last_config_at_startup(self, service, store, side_by_side):
        store.save([_stacked(side_by_side)])
        switcher_daemon = SwitcherDaemon(service, store)
        task = asyncio.ensure_future(switcher_daemon.run())

        deadline = time.monotonic() + 2.0
        while not service.apply_calls:
            assert time.monotonic() < deadline, "default configuration was not applied"
            await asyncio.sleep(0.01)

        switcher_daemon.stop()
        await asyncio.wait_for(task, timeout=1.0)
        await asyncio.sleep(0.01)

        ((_serial, _method, lms, _props),) = service.apply_calls
        assert sorted((lm.x, lm.y) for lm in lms) == [(0, 0), (0, 1080)]
        assert service.subscriber_count == 0

    @pytest.mark.asyncio
    async def test_stop_without_configs(self, service, store):
        switcher_daemon = SwitcherDaemon(service, store)
        task = asyncio.ensure_future(switcher_daemon.run())
        await asyncio.sleep(0.05)
        switcher_daemon.stop()
        await asyncio.wait_for(task, timeout=1.0)
        assert service.apply_calls == []
        assert service.fetch_count == 1

    @pytest.mark.asyncio
    async def test_state_changes_share_one_default_load(self, service, store, side_by_side):
        store.save([_stacked(side_by_side)])
        switcher_daemon = SwitcherDaemon(service, store)
        await switcher_daemon._controller.start()

        switcher_daemon._on_state_changed()
        first = switcher_daemon._default_task
        switcher_daemon._on_state_changed()

        assert first is not None
        assert switcher_daemon._default_task is first
        deadline = time.monotonic() + 1.0
        while not service.apply_calls:
            assert time.monotonic() < deadline, "default configuration was not applied"
            await asyncio.sleep(0.01)
        switcher_daemon._controller.destroy()
        await asyncio.wait_for(first, timeout=1.0)
        assert len(service.apply_calls) == 1
