"""Command line entry point and the long-running switcher daemon."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import signal
import sys

from .controller import DisplayStateController
from .errors import DisplaySwitchError
from .models import DisplayRecord, LegacyDisplay, Transform
from .service import DisplayConfigService
from .store import ConfigStore
from .switcher import DisplaySwitcher

log = logging.getLogger(__name__)

STORE_POLL_S = 2.0


def _create_service() -> DisplayConfigService:
    # Imported lazily: only the D-Bus backend needs PyGObject
    try:
        from .mutter import MutterDisplayConfig
    except ImportError as e:
        raise DisplaySwitchError(
            f"The Mutter backend needs PyGObject (pip install 'displayswitch[mutter]'): {e}"
        ) from e
    return MutterDisplayConfig()


class SwitcherDaemon:
    """Follows display and config changes and keeps the active config logged."""

    def __init__(self, service: DisplayConfigService, store: ConfigStore) -> None:
        self._service = service
        self._store = store
        self._controller = DisplayStateController(service)
        self._switcher = DisplaySwitcher(self._controller, store)
        self._last_active: str | None = None
        self._default_task: asyncio.Future | None = None
        self._stopped = asyncio.Event()

    @property
    def switcher(self) -> DisplaySwitcher:
        return self._switcher

    def stop(self) -> None:
        self._stopped.set()

    def _on_state_changed(self) -> None:
        active = self._switcher.active_config()
        name = active.name if active else None
        if name != self._last_active:
            log.info("Active configuration: %s", name or "(none)")
            self._last_active = name
        if self._default_task is None or self._default_task.done():
            self._default_task = asyncio.ensure_future(self._load_default())

    async def _load_default(self) -> None:
        try:
            await self._switcher.load_default()
        except DisplaySwitchError as e:
            log.error("Failed to load default configuration: %s", e)

    def _on_configs_changed(self) -> None:
        self._switcher.reload()
        self._on_state_changed()

    async def run(self) -> None:
        log.info("Starting displayswitch daemon")
        self._controller.add_observer(self._on_state_changed)
        self._store.add_observer(self._on_configs_changed)
        watcher = asyncio.ensure_future(self._store.watch(STORE_POLL_S))
        try:
            await self._controller.start()
            await self._stopped.wait()
        finally:
            watcher.cancel()
            self._controller.destroy()
            log.info("Daemon stopped")


# ── CLI ─────────────────────────────────────────────────────────────────

async def _with_switcher(action):
    service = _create_service()
    await service.connect()
    controller = DisplayStateController(service)
    try:
        await controller.start()
        switcher = DisplaySwitcher(controller, ConfigStore())
        return await action(switcher)
    finally:
        controller.destroy()
        service.close()


def _require_index(switcher: DisplaySwitcher, name: str) -> int:
    index = switcher.find(name)
    if index is None:
        raise DisplaySwitchError(f'No configuration named "{name}"')
    return index


async def _cmd_list(switcher: DisplaySwitcher, args) -> int:
    available = switcher.available_configs()
    active = switcher.active_config()
    if not switcher.configs:
        print("No configurations saved.")
    for config in switcher.configs:
        marker = "*" if config == active else (" " if config in available else "-")
        print(f"{marker} {config.name}")
    return 0


def _describe_record(record: DisplayRecord) -> str:
    if isinstance(record, LegacyDisplay):
        return f"vendor={record.vendor!r} product={record.product!r} serial={record.serial!r} (legacy)"
    return repr(record.display_name)


async def _cmd_show(switcher: DisplaySwitcher, args) -> int:
    config = switcher.configs[_require_index(switcher, args.name)]
    print(config.name)
    print(f"  hash: {config.hash:#010x}")
    for key, value in sorted(config.properties.items()):
        print(f"  {key}: {value}")
    for lm in config.logical_monitors:
        primary = " primary" if lm.primary else ""
        transform = Transform(int(lm.transform)).name.lower()
        print(f"  monitor at {lm.x},{lm.y} scale {lm.scale:g} {transform}{primary}")
        for a in lm.assignments:
            props = "".join(f" {k}={v}" for k, v in sorted(a.props.items()))
            print(f"    {a.connector} {a.mode_id}{props}")
    for record in config.physical_displays:
        print(f"  display {record.connector}: {_describe_record(record)}")
    return 0


async def _cmd_save(switcher: DisplaySwitcher, args) -> int:
    config = switcher.save_current(args.name)
    if config is None:
        raise DisplaySwitchError("Display state is not available")
    print(f"Saved {config.name}")
    return 0


async def _cmd_apply(switcher: DisplaySwitcher, args) -> int:
    config = switcher.configs[_require_index(switcher, args.name)]
    await switcher.apply_config(config, prompt=args.prompt)
    return 0


async def _cmd_cycle(switcher: DisplaySwitcher, args) -> int:
    config = await switcher.cycle(forward=args.command == "next")
    if config is None:
        print("No configurations saved for this display setup.")
    else:
        print(config.name)
    return 0


async def _cmd_rename(switcher: DisplaySwitcher, args) -> int:
    switcher.rename(_require_index(switcher, args.old), args.new)
    return 0


async def _cmd_delete(switcher: DisplaySwitcher, args) -> int:
    switcher.delete(_require_index(switcher, args.name))
    return 0


COMMANDS = {
    "list": _cmd_list,
    "show": _cmd_show,
    "save": _cmd_save,
    "apply": _cmd_apply,
    "next": _cmd_cycle,
    "previous": _cmd_cycle,
    "rename": _cmd_rename,
    "delete": _cmd_delete,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="displayswitch",
        description="Save and re-apply multi-monitor layouts.",
    )
    parser.add_argument("--config-dir", help="Directory holding configs.json")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("list", help="List saved configurations (* active, - not available)")
    p = sub.add_parser("show", help="Show the layout stored in a configuration")
    p.add_argument("name")
    p = sub.add_parser("save", help="Save the current layout")
    p.add_argument("name")
    p = sub.add_parser("apply", help="Apply a saved configuration")
    p.add_argument("name")
    p.add_argument("--prompt", action="store_true", help="Ask the compositor to confirm the change")
    sub.add_parser("next", help="Apply the next available configuration")
    sub.add_parser("previous", help="Apply the previous available configuration")
    p = sub.add_parser("rename", help="Rename a configuration")
    p.add_argument("old")
    p.add_argument("new")
    p = sub.add_parser("delete", help="Delete a configuration")
    p.add_argument("name")
    sub.add_parser("daemon", help="Run in the background and load the last configuration")
    return parser


async def _run_daemon() -> None:
    service = _create_service()
    await service.connect()
    daemon = SwitcherDaemon(service, ConfigStore())
    loop = asyncio.get_event_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, daemon.stop)
    try:
        await daemon.run()
    finally:
        service.close()


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [displayswitch] %(levelname)s %(message)s",
    )
    if args.config_dir:
        os.environ["DISPLAYSWITCH_CONFIG_DIR"] = args.config_dir

    try:
        if args.command == "daemon":
            asyncio.run(_run_daemon())
            return 0
        handler = COMMANDS[args.command]
        return asyncio.run(_with_switcher(lambda switcher: handler(switcher, args)))
    except DisplaySwitchError as e:
        log.error("%s", e)
        return 1
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
