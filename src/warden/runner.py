"""
Long-running warden process: config watch and heartbeat in one event loop.

Usage:
    python -m warden.runner [--config PATH] [--no-watch] [--no-heartbeat] [--verbose]

This is what `warden daemon:start` spawns in the background.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import signal
import sys

from warden.config.app import WardenConfig, load_config
from warden.errors import WardenError
from warden.heartbeat import HeartbeatMonitor
from warden.sync.config import ConfigSyncEngine
from warden.utils.logging import setup_file_logging
from warden.utils.paths import get_daemon_log_file

logger = logging.getLogger(__name__)


class WardenRunner:
    """Runs ConfigSyncEngine.watch and HeartbeatMonitor.run_forever concurrently."""

    def __init__(
        self,
        config: WardenConfig,
        watch: bool = True,
        heartbeat: bool = True,
        sync_engine: ConfigSyncEngine | None = None,
        monitor: HeartbeatMonitor | None = None,
    ):
        self.config = config
        self.sync_engine = (sync_engine or ConfigSyncEngine(config)) if watch else None
        self.monitor = (monitor or HeartbeatMonitor(config)) if heartbeat else None

    def _setup_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            try:
                loop.add_signal_handler(sig, self.stop)
            except (NotImplementedError, RuntimeError):
                # Windows event loops have no signal handler support
                pass

    def stop(self) -> None:
        logger.info("Shutdown requested")
        if self.sync_engine is not None:
            self.sync_engine.stop()
        if self.monitor is not None:
            self.monitor.stop()

    async def run(self) -> None:
        """
        Run until both loops stop.

        Raises:
            ConfigNotFoundError: If watching is enabled and the managed copy is missing
        """
        self._setup_signal_handlers()
        tasks: list[asyncio.Task[None]] = []
        if self.sync_engine is not None:
            tasks.append(asyncio.create_task(self.sync_engine.watch(), name="config-watch"))
        if self.monitor is not None:
            tasks.append(asyncio.create_task(self.monitor.run_forever(), name="heartbeat"))
        if not tasks:
            return

        try:
            await asyncio.gather(*tasks)
        except Exception:
            self.stop()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise


def main(argv: list[str] | None = None) -> None:
    """Entry point for the background process."""
    parser = argparse.ArgumentParser(description="Warden watch + heartbeat runner")
    parser.add_argument("--config", help="Path to warden config file", default=None)
    parser.add_argument("--no-watch", action="store_true", help="Disable config watching")
    parser.add_argument("--no-heartbeat", action="store_true", help="Disable the heartbeat loop")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    args = parser.parse_args(argv)

    try:
        config = load_config(args.config)
    except WardenError as e:
        setup_file_logging(verbose=args.verbose)
        logger.error(str(e))
        sys.exit(1)

    # The daemon's stdout is already redirected into the daemon log
    log_file = config.log_file_path
    daemonized = os.environ.get("WARDEN_DAEMON") == "1"
    setup_file_logging(
        log_file,
        config.logging.level,
        verbose=args.verbose,
        mirror_stdout=not (daemonized and log_file == get_daemon_log_file()),
    )

    runner = WardenRunner(config, watch=not args.no_watch, heartbeat=not args.no_heartbeat)
    try:
        asyncio.run(runner.run())
    except WardenError as e:
        logger.error(str(e))
        sys.exit(1)


if __name__ == "__main__":
    main()
