"""Watch subsystem: dependency discovery, one watcher per entry, debounced rebuilds."""

from __future__ import annotations

import asyncio
import os
from typing import Awaitable, Callable, Dict, List, Optional, Sequence

from jspipe import log
from jspipe.config.flags import BuildFlags
from jspipe.config.limits import WATCH_DEBOUNCE_DELAY, WATCH_POLL_INTERVAL
from jspipe.engines.base import BundlingEngine
from jspipe.engines.plugins import DownlevelTransformPlugin
from jspipe.exceptions import DependencyDiscoveryFailed
from jspipe.targets import TargetOptions
from jspipe.utils.debounce import Debouncer


class PollingFileWatcher:
    """Polling-based watcher over a fixed list of files.

    Compares mtimes every *interval* seconds on the running event loop and
    calls ``on_change(path)`` for each file that changed, appeared or vanished.
    """

    def __init__(self, paths: Sequence[str], on_change: Callable[[str], None],
                 interval: float = WATCH_POLL_INTERVAL):
        self._paths = [os.path.abspath(p) for p in paths]
        self._on_change = on_change
        self._interval = interval
        self._mtimes: Dict[str, Optional[float]] = {}
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def paths(self) -> List[str]:
        return list(self._paths)

    def start(self) -> None:
        if self.running:
            return
        # Initial scan to populate mtimes
        self._mtimes = {p: self._mtime(p) for p in self._paths}
        self._task = asyncio.ensure_future(self._run())

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
        self._task = None

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                self.scan()
            except Exception as e:
                log.error(f"[WATCH] scan error: {e}")

    @staticmethod
    def _mtime(path: str) -> Optional[float]:
        try:
            return os.stat(path).st_mtime
        except OSError:
            return None

    def scan(self) -> List[str]:
        """Compare current mtimes with stored ones; report and return changed paths."""
        changed = []
        for path in self._paths:
            mtime = self._mtime(path)
            if mtime != self._mtimes.get(path):
                self._mtimes[path] = mtime
                changed.append(path)
        for path in changed:
            self._on_change(path)
        return changed


WatcherFactory = Callable[[Sequence[str], Callable[[str], None]], PollingFileWatcher]


class WatchSubsystem:
    """Registers at most one watcher + debouncer per watch key (entry point)."""

    def __init__(self, engine: BundlingEngine, flags: BuildFlags,
                 debounce_delay: float = WATCH_DEBOUNCE_DELAY,
                 watcher_factory: WatcherFactory = PollingFileWatcher):
        self.engine = engine
        self.flags = flags
        self.debounce_delay = debounce_delay
        self.watcher_factory = watcher_factory
        self._watchers: Dict[str, PollingFileWatcher] = {}
        self._debouncers: Dict[str, Debouncer] = {}

    async def get_dependencies(self, entry_point: str, options: TargetOptions) -> List[str]:
        """Transitive input files of *entry_point*, using the build's transform plugin."""
        caller = "minified" if options.minify else "unminified"
        plugins = [DownlevelTransformPlugin(caller, enable_cache=True, defines=self.flags.defines)]
        try:
            return list(await self.engine.metafile_inputs(entry_point, plugins))
        except Exception as err:
            raise DependencyDiscoveryFailed(entry_point, str(err)) from err

    def register(self, key: str, deps: Sequence[str],
                 callback: Callable[[], Awaitable[None]]) -> bool:
        """Watch *deps* and run *callback* debounced on change.

        Returns False without registering anything when *key* is already watched.
        """
        if key in self._watchers:
            log.debug(f"[WATCH] {key} is already watched")
            return False
        debouncer = Debouncer(callback, self.debounce_delay, name=key)

        def on_change(path: str) -> None:
            log.info(f"[WATCH] {path} changed, rebuilding {key}")
            debouncer.trigger()

        watcher = self.watcher_factory(list(deps), on_change)
        self._debouncers[key] = debouncer
        self._watchers[key] = watcher
        watcher.start()
        log.info(f"[WATCH] Watching {len(deps)} file(s) for {key}")
        return True

    def is_watched(self, key: str) -> bool:
        return key in self._watchers

    def debouncer(self, key: str) -> Optional[Debouncer]:
        return self._debouncers.get(key)

    def close(self) -> None:
        """Stop every watcher and drop pending debounced runs."""
        for watcher in self._watchers.values():
            watcher.stop()
        for debouncer in self._debouncers.values():
            debouncer.cancel()
        self._watchers.clear()
        self._debouncers.clear()
