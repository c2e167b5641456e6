"""Service entry point — wires the detectors and keeps the inventory live."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path

from loguru import logger

from genyinfo.config import Config, get_config
from genyinfo.context import AppContext
from genyinfo.core.fswatch import LocalWatchClient
from genyinfo.core.orchestrator import GenymotionInfoService
from genyinfo.core.watch_manager import WatchSubscriptionManager
from genyinfo.exceptions import ConfigError
from genyinfo.logger import setup_logger
from genyinfo.models.state import StateDiff


def create_context(config: Config | None = None) -> AppContext:
    """Wire all services and return an AppContext."""
    config = config or get_config()

    # Watches
    watch_client = LocalWatchClient()
    watch_manager = WatchSubscriptionManager(watch_client)

    # Detection
    info_service = GenymotionInfoService(config, watch_manager)

    return AppContext(
        config=config,
        watch_client=watch_client,
        watch_manager=watch_manager,
        info_service=info_service,
    )


def _log_diff(diff: StateDiff) -> None:
    for name, (_, new) in diff.changes.items():
        if name == "emulators":
            names = ", ".join(emu.name for emu in new) or "none"
            logger.info(f"[v{diff.version}] emulators: {names}")
        elif name == "provider":
            logger.info(f"[v{diff.version}] virtualbox: {new.record.install_path if new else None}")
        else:
            logger.info(f"[v{diff.version}] {name}: {new}")


async def serve(ctx: AppContext, once: bool = False) -> None:
    """Activate the service; run until cancelled unless ``once``."""
    ctx.info_service.subscribe(_log_diff)
    try:
        await ctx.info_service.activate()
        if once:
            print(json.dumps(ctx.info_service.state.to_dict(), indent=2))
            return
        await asyncio.Event().wait()
    finally:
        await ctx.close()


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Detect Genymotion and VirtualBox and track Genymotion emulators."
    )
    parser.add_argument("--config-dir", type=Path, help="Directory holding config.json")
    parser.add_argument("--once", action="store_true", help="Print the detected state and exit")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args(argv)

    config = Config(args.config_dir) if args.config_dir else get_config()
    setup_logger(config.data_dir / "logs", "DEBUG" if args.verbose else config.log_level)

    try:
        asyncio.run(serve(create_context(config), once=args.once))
    except ConfigError as e:
        logger.error(f"Invalid configuration: {e}")
        return 2
    except KeyboardInterrupt:
        pass
    return 0


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
