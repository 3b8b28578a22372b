"""Entry point for the standalone lb-ipam agent."""

from __future__ import annotations

import argparse
import logging
import signal
import sys
from pathlib import Path
from threading import Event

from oslo_config import cfg

from . import opts
from .config import AgentConfig, load_config
from .dispatcher import EventDispatcher
from .events import PoolUpdate
from .watchers import FilePoolWatcher

LOG = logging.getLogger(__name__)


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    )


def _apply_oslo_config(config: AgentConfig, path: Path) -> None:
    conf = opts.register_opts(cfg.ConfigOpts())
    conf(args=[], default_config_files=[str(path)])
    config.controller = opts.controller_config_from_conf(conf, base=config.controller)
    pool_ips = opts.pool_ips_from_conf(conf)
    if pool_ips:
        config.pool_ips = pool_ips


def main(argv: list[str] | None = None, stop_event: Event | None = None) -> int:
    parser = argparse.ArgumentParser(description="Run the lb-ipam agent")
    parser.add_argument(
        "--config",
        type=Path,
        default=Path("/etc/lb-ipam/agent.yaml"),
        help="Path to the agent configuration file",
    )
    parser.add_argument(
        "--oslo-config-file",
        type=Path,
        default=None,
        help="Optional oslo.config file overriding controller and pool options",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    args = parser.parse_args(argv)
    _setup_logging(args.verbose)

    config = load_config(args.config)
    if args.oslo_config_file is not None:
        _apply_oslo_config(config, args.oslo_config_file)

    node_pool = config.node_pool.build_node_pool(config.controller.annotation_key)
    controller = config.controller.build_controller(node_pool)
    dispatcher = EventDispatcher(controller)

    if config.pool_ips:
        dispatcher.handle(PoolUpdate(list(config.pool_ips)))

    if stop_event is None:
        stop_event = Event()

    watchers = []
    for watcher_cfg in config.watchers:
        if watcher_cfg.type == "file":
            watcher = FilePoolWatcher(
                dispatcher=dispatcher,
                path=watcher_cfg.path,
                interval=watcher_cfg.interval,
                stop_event=stop_event,
                resync_interval=watcher_cfg.resync_interval,
            )
        else:
            raise ValueError(f"unsupported watcher type '{watcher_cfg.type}'")
        # Perform an initial poll so we react immediately
        try:
            watcher.poll()
        except Exception:  # pragma: no cover - logged inside dispatcher
            LOG.exception("initial poll failed for watcher %s", watcher_cfg.path)
        watcher.start()
        watchers.append(watcher)

    if not watchers and not controller.is_synced:
        LOG.warning("no pool IPs or watchers configured; agent will idle")

    def _shutdown(signum, frame):  # pragma: no cover - signal handler
        LOG.info("received signal %s, shutting down", signum)
        stop_event.set()

    signal.signal(signal.SIGINT, _shutdown)
    signal.signal(signal.SIGTERM, _shutdown)

    try:
        while not stop_event.is_set():
            stop_event.wait(1.0)
    except KeyboardInterrupt:  # pragma: no cover - fallback if signal not set
        stop_event.set()

    for watcher in watchers:
        watcher.join()

    LOG.info("lb-ipam agent stopped")
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
