"""Saved-config selection: which configs fit, which is active, apply/cycle/save."""

from __future__ import annotations

import logging

from .controller import DisplayStateController
from .equivalence import displays_present, same_physical_setup
from .errors import ApplyConfigError, BusyError, ControllerDestroyedError
from .models import ApplyMethod, Config, MonitorAssignment
from .store import ConfigStore

log = logging.getLogger(__name__)

COLOR_MODE = "color-mode"


def _hash_match(candidate: Config, current: Config) -> bool:
    """Hash equality confirmed by the physical setup check."""
    if candidate.hash != current.hash:
        return False
    if same_physical_setup(candidate, current):
        return True
    log.warning(
        'Hash collision: "%s" has hash %d but describes a different physical setup',
        candidate.name, candidate.hash,
    )
    return False


def _without_color_mode(config: Config) -> Config:
    lms = [
        lm.with_assignments(
            MonitorAssignment(a.connector, a.mode_id, {k: v for k, v in a.props.items() if k != COLOR_MODE})
            for a in lm.assignments
        )
        for lm in config.logical_monitors
    ]
    return Config.create(config.name, lms, config.properties, config.physical_displays)


class DisplaySwitcher:
    """Matches saved configs against the live state and applies them."""

    def __init__(self, controller: DisplayStateController, store: ConfigStore) -> None:
        self._controller = controller
        self._store = store
        self._configs: list[Config] = store.load()
        self._default_loaded = False

    @property
    def configs(self) -> list[Config]:
        return list(self._configs)

    def reload(self) -> None:
        """Re-read the store (called when it changes on disk)."""
        self._configs = self._store.load()

    def find(self, name: str) -> int | None:
        for i, config in enumerate(self._configs):
            if config.name == name:
                return i
        return None

    # ── Matching ────────────────────────────────────────────────────

    def available_configs(self) -> list[Config]:
        """Configs whose displays are all connected, whatever the connector."""
        if not self._controller.has_state():
            return []
        live = [d.record() for d in self._controller.physical_displays()]
        return [c for c in self._configs if displays_present(c.physical_displays, live)]

    def matches_current(self, config: Config, current: Config) -> bool:
        """True if *config* is the layout currently on screen.

        A direct hash match must pass the physical setup check; a collision
        is rejected outright.  Otherwise the config is remapped onto the
        live connectors and compared again.
        """
        if config.hash == current.hash:
            return _hash_match(config, current)
        remapped = Config.create(
            config.name,
            self._controller.remap(config),
            config.properties,
            current.physical_displays,
        )
        return _hash_match(remapped, current)

    def active_config(self) -> Config | None:
        """The saved config matching the live layout, if any."""
        current = self._controller.current_config()
        if current is None:
            return None

        for config in self.available_configs():
            if self.matches_current(config, current):
                config = self._upgrade_color_mode(config, current)
                self._remember(config)
                return config
        return None

    def _upgrade_color_mode(self, config: Config, current: Config) -> Config:
        """Replace a config saved before displays reported color-mode.

        If *config* only differs from the live layout by the color-mode
        props, it is overwritten with the live layout under the same name
        so later lookups match on the hash alone.
        """
        if config.hash == current.hash:
            return config
        stripped = _without_color_mode(current)
        if stripped.hash == current.hash or not _hash_match(config, stripped):
            return config
        upgraded = current.renamed(config.name)
        self._configs[self._configs.index(config)] = upgraded
        self._store.save(self._configs)
        log.info('Upgraded configuration "%s" with color-mode', config.name)
        return upgraded

    def _remember(self, config: Config) -> None:
        self._store.last_applied_index = self._configs.index(config)

    # ── Actions ─────────────────────────────────────────────────────

    async def apply_config(self, config: Config, *, prompt: bool = False) -> bool:
        """Remap *config* onto the live connectors and apply it."""
        method = ApplyMethod.PROMPT if prompt else ApplyMethod.NORMAL
        try:
            applied = await self._controller.apply(
                self._controller.remap(config), config.properties, method,
            )
        except (BusyError, ControllerDestroyedError):
            raise
        except Exception as e:
            log.error('Failed to apply "%s": %s', config.name, e)
            raise ApplyConfigError(config.name, str(e)) from e
        if applied:
            log.info('Applied configuration "%s"', config.name)
        return applied

    async def cycle(self, forward: bool = True) -> Config | None:
        """Apply the next (or previous) available config, wrapping around."""
        active = self.active_config()
        available = self.available_configs()
        if not available:
            return None

        if active is None or active not in available:
            target = available[0]
        else:
            step = 1 if forward else -1
            target = available[(available.index(active) + step) % len(available)]

        await self.apply_config(target)
        return target

    async def load_default(self) -> Config | None:
        """Re-apply the last used config once, when it fits the displays."""
        if self._default_loaded or not self._controller.has_state():
            return None
        available = self.available_configs()
        if not available:
            return None
        self._default_loaded = True

        index = self._store.last_applied_index
        if index >= len(self._configs) or self._configs[index] not in available:
            return None
        config = self._configs[index]
        log.info('Loading default configuration "%s"', config.name)
        await self.apply_config(config)
        return config

    def save_current(self, name: str) -> Config | None:
        """Save the live layout under *name*.

        A saved config with the same physical setup is replaced; otherwise
        the new one is appended.
        """
        if not name:
            raise ValueError("Configuration name must not be empty")
        current = self._controller.current_config(name)
        if current is None:
            return None

        for i, config in enumerate(self._configs):
            if same_physical_setup(config, current):
                log.info('Replacing configuration "%s" with "%s"', config.name, name)
                self._configs[i] = current
                break
        else:
            self._configs.append(current)
        self._store.save(self._configs)
        return current

    def rename(self, index: int, name: str) -> Config:
        if not name:
            raise ValueError("Configuration name must not be empty")
        self._configs[index] = self._configs[index].renamed(name)
        self._store.save(self._configs)
        return self._configs[index]

    def delete(self, index: int) -> Config:
        removed = self._configs.pop(index)
        self._store.save(self._configs)
        return removed
