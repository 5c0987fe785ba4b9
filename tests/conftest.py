"""Shared pytest fixtures for displayswitch."""

import pytest

from fakes import FakeDisplayConfigService, logical, monitor, reply

from displayswitch.controller import DisplayStateController
from displayswitch.store import ConfigStore


# =============================================================================
# Live state
# =============================================================================

@pytest.fixture
def lg():
    return monitor("DP-1", "LG Monitor", mode_id="2560x1440@59.951", width=2560, height=1440)


@pytest.fixture
def dell():
    return monitor("HDMI-1", "Dell Monitor")


@pytest.fixture
def side_by_side(lg, dell):
    """LG on the left (primary), Dell to its right."""
    return reply(
        [lg, dell],
        [logical(0, 0, lg, primary=True), logical(2560, 0, dell)],
        properties={"supports-changing-layout-mode": True, "layout-mode": 1},
    )


@pytest.fixture
def service(side_by_side):
    return FakeDisplayConfigService(side_by_side)


# =============================================================================
# Controller and store
# =============================================================================

@pytest.fixture
def fast_controller(service):
    """Controller with short timers so tests do not wait on real delays."""
    controller = DisplayStateController(service, debounce_ms=50, settle_ms=20)
    yield controller
    controller.destroy()


@pytest.fixture
def store(tmp_path):
    return ConfigStore(tmp_path / "configs.json")


@pytest.fixture(autouse=True)
def isolated_config_dir(tmp_path, monkeypatch):
    monkeypatch.setenv("DISPLAYSWITCH_CONFIG_DIR", str(tmp_path / "config"))
