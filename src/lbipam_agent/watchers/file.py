"""File-based pool watcher."""

from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from threading import Event, Thread
from typing import Callable, List, Optional

import yaml

from ..dispatcher import EventDispatcher
from ..events import PoolUpdate
from .utils import extract_ips

LOG = logging.getLogger(__name__)

YAML_SUFFIXES = (".yaml", ".yml")


class FilePoolWatcher(Thread):
    """Poll a pool file and publish :class:`PoolUpdate` events.

    An update is published whenever the normalised IP list changes.  When
    ``resync_interval`` is set the current list is also re-published once
    that many seconds have passed since the last update, which rebuilds the
    controller's accounting from node state even if the pool is unchanged.
    """

    def __init__(
        self,
        dispatcher: EventDispatcher,
        path: Path,
        interval: float,
        stop_event: Event,
        resync_interval: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        super().__init__(daemon=True)
        self._dispatcher = dispatcher
        self._path = Path(path)
        self._interval = interval
        self._stop_event = stop_event
        self._resync_interval = resync_interval
        self._clock = clock
        self._state: Optional[List[str]] = None
        self._last_update: Optional[float] = None

    def run(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.poll()
            except Exception:  # pragma: no cover - logged below
                LOG.exception("pool watcher encountered an error")
            self._stop_event.wait(self._interval)

    def _load(self):
        text = self._path.read_text()
        if self._path.suffix in YAML_SUFFIXES:
            return yaml.safe_load(text)
        return json.loads(text)

    def _resync_due(self) -> bool:
        if self._resync_interval is None or self._last_update is None:
            return False
        return self._clock() - self._last_update >= self._resync_interval

    def poll(self) -> bool:
        """Read the pool file once; returns ``True`` if an update was published."""

        if not self._path.exists():
            LOG.debug("pool file %s does not exist yet", self._path)
            return False

        try:
            payload = self._load()
        except (json.JSONDecodeError, yaml.YAMLError) as exc:
            LOG.warning("failed to parse pool file %s: %s", self._path, exc)
            return False

        try:
            desired = extract_ips(payload)
        except ValueError as exc:
            LOG.warning("invalid pool file %s: %s", self._path, exc)
            return False

        if desired == self._state and not self._resync_due():
            return False

        if desired != self._state:
            LOG.info("pool file %s now lists %d IPs", self._path, len(desired))
        else:
            LOG.debug("periodic resync of %d pool IPs", len(desired))

        self._dispatcher.handle(PoolUpdate(desired))
        self._state = desired
        self._last_update = self._clock()
        return True
