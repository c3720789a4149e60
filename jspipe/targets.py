"""Build targets and the read-only registry they are looked up in."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from jspipe.config import paths as _paths
from jspipe.exceptions import ConfigError, TargetNotFound


class _FrozenModel(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore", arbitrary_types_allowed=True)


class TargetOptions(_FrozenModel):
    """Per-target configuration bag, overridable per call."""

    wrapper: Optional[str] = None
    minified_name: Optional[str] = None
    alias_name: Optional[str] = None
    to_name: Optional[str] = None
    output_format: str = Field("iife", pattern="^(iife|esm|cjs)$")
    external_dependencies: List[str] = Field(default_factory=list)
    remap_dependencies: Dict[str, str] = Field(default_factory=dict)
    watch: bool = False
    minify: bool = False
    npm: bool = False
    name: Optional[str] = None
    continue_on_error: bool = False
    include_runtime_config: bool = False
    skip_when_minified: bool = False
    on_watch_build: Optional[Callable[[Any], None]] = Field(None, exclude=True)

    def merged(self, overrides: Optional[Mapping[str, Any]] = None) -> "TargetOptions":
        """Return a copy with *overrides* applied; call-level values win."""
        if not overrides:
            return self
        data = self.model_dump()
        data["on_watch_build"] = self.on_watch_build
        data.update(overrides)
        return TargetOptions.model_validate(data)


class BuildTarget(_FrozenModel):
    name: str
    src_dir: str
    src_filename: str
    dest_dir: str
    minified_dest_dir: str
    options: TargetOptions = Field(default_factory=TargetOptions)

    @property
    def entry_point(self) -> str:
        return str(Path(self.src_dir) / self.src_filename)


class TargetRegistry(Mapping[str, BuildTarget]):
    """Read-only mapping from target name to BuildTarget."""

    def __init__(self, targets: Optional[Mapping[str, BuildTarget]] = None,
                 core_runtime: Optional[str] = None):
        self._targets: Dict[str, BuildTarget] = dict(targets or {})
        if core_runtime is not None and core_runtime not in self._targets:
            raise ConfigError(f"core runtime {core_runtime!r} is not a registered target")
        self.core_runtime = core_runtime

    def __getitem__(self, name: str) -> BuildTarget:
        try:
            return self._targets[name]
        except KeyError:
            raise TargetNotFound(name) from None

    def __iter__(self) -> Iterator[str]:
        return iter(self._targets)

    def __len__(self) -> int:
        return len(self._targets)

    def lookup(self, name: str) -> Optional[BuildTarget]:
        return self._targets.get(name)

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "TargetRegistry":
        """Build a registry from ``{"targets": {name: {...}}, "core_runtime": name}``.

        A bare ``{name: {...}}`` mapping is accepted too.
        """
        entries = raw.get("targets", raw) if isinstance(raw, Mapping) else None
        if not isinstance(entries, Mapping):
            raise ConfigError("target registry must be a mapping of name to target")
        targets = {}
        for name, spec in entries.items():
            if name == "core_runtime":
                continue
            try:
                targets[name] = BuildTarget.model_validate({"name": name, **spec})
            except (ValidationError, TypeError) as e:
                raise ConfigError(f"invalid target {name!r}: {e}") from e
        core = raw.get("core_runtime") if "targets" in raw else None
        return cls(targets, core_runtime=core)

    @classmethod
    def from_file(cls, path: Optional[Path] = None) -> "TargetRegistry":
        path = path or _paths.TARGETS_FILE
        try:
            raw = json.loads(Path(path).read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigError(f"cannot load target registry {path}: {e}") from e
        return cls.from_dict(raw)
