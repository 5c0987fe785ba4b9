"""Exceptions raised by displayswitch."""

from __future__ import annotations


class DisplaySwitchError(Exception):
    """Base class for displayswitch errors."""


class TransportError(DisplaySwitchError):
    """A call to the display configuration service failed."""


class BusyError(DisplaySwitchError):
    """A configuration is already being applied."""


class ControllerDestroyedError(DisplaySwitchError):
    """The display state controller has been torn down."""


class ApplyConfigError(TransportError):
    """Applying a saved configuration failed."""

    def __init__(self, config_name: str, message: str) -> None:
        super().__init__(f'Failed to apply "{config_name}": {message}')
        self.config_name = config_name
