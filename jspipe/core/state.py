"""Process-scoped pipeline state.

Passed by reference into the Orchestrator so every test (or embedding
process) can start from a fresh instance instead of module globals.
"""

from __future__ import annotations

import asyncio
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, Optional, Set

from jspipe.engines.base import BuildResult


class NameCache:
    """Rename cache shared by every minification in one process.

    ``props`` persists so a property is mangled identically in every bundle;
    ``vars`` is reset before each minification so local names never leak
    between independently minified bundles.

    Hold ``session`` from ``begin_minification`` through ``update``: two
    compressors working from one snapshot would pick conflicting renames.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self.session = asyncio.Lock()
        self._data: Dict[str, Any] = {"vars": {}, "props": {}}

    def begin_minification(self) -> Dict[str, Any]:
        """Reset the variable sub-cache and return a snapshot to hand to the compressor."""
        with self._lock:
            self._data["vars"] = {}
            return {"vars": {}, "props": _deep_copy(self._data.get("props", {}))}

    def update(self, cache: Dict[str, Any]) -> None:
        """Merge a compressor's returned cache; property renames accumulate."""
        with self._lock:
            props = cache.get("props") or {}
            mine = self._data.setdefault("props", {})
            mine.setdefault("props", {}).update((props.get("props") or {}))
            self._data["vars"] = _deep_copy(cache.get("vars") or {})

    @property
    def props(self) -> Dict[str, str]:
        with self._lock:
            return dict(self._data.get("props", {}).get("props", {}))

    @property
    def vars(self) -> Dict[str, str]:
        with self._lock:
            return dict(self._data.get("vars", {}).get("props", {}))


def _deep_copy(d: Dict[str, Any]) -> Dict[str, Any]:
    return {k: dict(v) if isinstance(v, dict) else v for k, v in d.items()}


class WatchedEntrySet:
    """Entry points under a watch-triggered pipeline; check-and-set is atomic."""

    def __init__(self):
        self._lock = threading.Lock()
        self._entries: Set[str] = set()

    def add_if_absent(self, entry_point: str) -> bool:
        """Add *entry_point*; False when it was already present."""
        with self._lock:
            if entry_point in self._entries:
                return False
            self._entries.add(entry_point)
            return True

    def discard(self, entry_point: str) -> None:
        with self._lock:
            self._entries.discard(entry_point)

    def __contains__(self, entry_point: str) -> bool:
        with self._lock:
            return entry_point in self._entries

    def __iter__(self) -> Iterator[str]:
        with self._lock:
            return iter(sorted(self._entries))

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


@dataclass
class RebuildState:
    """``NotBuilt`` while ``handle`` is None, ``Built(handle)`` afterwards."""

    handle: Optional[BuildResult] = None
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)

    @property
    def built(self) -> bool:
        return self.handle is not None


class RebuildStates:
    def __init__(self):
        self._states: Dict[str, RebuildState] = {}
        self._guard = threading.Lock()

    def for_entry(self, entry_point: str) -> RebuildState:
        with self._guard:
            state = self._states.get(entry_point)
            if state is None:
                state = self._states[entry_point] = RebuildState()
            return state

    def __contains__(self, entry_point: str) -> bool:
        with self._guard:
            state = self._states.get(entry_point)
            return state is not None and state.built


@dataclass
class PipelineState:
    name_cache: NameCache = field(default_factory=NameCache)
    watched_entries: WatchedEntrySet = field(default_factory=WatchedEntrySet)
    rebuilds: RebuildStates = field(default_factory=RebuildStates)
