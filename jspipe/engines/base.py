"""Contracts of the external tools the pipeline drives.

The pipeline only depends on these interfaces; the esbuild, terser and
closure-compiler adapters in this package implement them by spawning the
tools, tests implement them in memory.
"""

from __future__ import annotations

import abc
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence


@dataclass(frozen=True)
class Resolution:
    """Where a module request resolves to, and whether it stays external."""

    path: str
    external: bool = False


class ResolveStrategy(abc.ABC):
    """Resolve-interception hook consulted by the engine for every module request."""

    name: str = "resolver"

    @abc.abstractmethod
    def resolve(self, request_path: str) -> Optional[Resolution]:
        """Return a Resolution, or None to leave the request to the next strategy."""

    def known_requests(self) -> Sequence[str]:
        """Requests this strategy can ever match (lets CLI engines precompute aliases)."""
        return ()


class TransformPlugin(abc.ABC):
    """Per-module source transform run by the engine; opaque to the pipeline."""

    name: str = "transform"

    def cli_args(self) -> List[str]:
        return []


@dataclass(frozen=True)
class BundleRequest:
    entry_point: str
    outfile: str
    bundle: bool = True
    sourcemap: bool = True
    resolvers: Sequence[ResolveStrategy] = ()
    plugins: Sequence[TransformPlugin] = ()
    format: str = "iife"
    banner: str = ""
    footer: str = ""
    target: str = "es5"
    external: Sequence[str] = ()
    incremental: bool = False
    defines: Dict[str, str] = field(default_factory=dict)
    write: bool = False


@dataclass(frozen=True)
class OutputFile:
    path: str
    text: str


@dataclass
class BuildResult:
    """In-memory outputs of one build, plus the handle for rebuilding it."""

    output_files: List[OutputFile]
    rebuild_fn: Optional[Callable[[], Awaitable["BuildResult"]]] = None

    @property
    def incremental(self) -> bool:
        return self.rebuild_fn is not None

    async def rebuild(self) -> "BuildResult":
        if self.rebuild_fn is None:
            raise RuntimeError("build was not started in incremental mode")
        return await self.rebuild_fn()

    def code_and_map(self):
        """Split outputs into ``(code, map)`` by the ``.map`` suffix."""
        code = next((f.text for f in self.output_files if not f.path.endswith(".map")), None)
        smap = next((f.text for f in self.output_files if f.path.endswith(".map")), None)
        if code is None or smap is None:
            raise ValueError("build produced no code/map pair")
        return code, smap


class BundlingEngine(abc.ABC):
    @abc.abstractmethod
    async def build(self, request: BundleRequest) -> BuildResult:
        """Bundle ``request.entry_point``; incremental requests get a rebuild handle."""

    @abc.abstractmethod
    async def metafile_inputs(self, entry_point: str,
                              plugins: Sequence[TransformPlugin] = ()) -> List[str]:
        """Transitive input files of *entry_point* (metadata-only build)."""


@dataclass(frozen=True)
class CompressRequest:
    code: str
    filename: str
    property_regex: str
    keep_quoted: str = "strict"
    passes: int = 3
    beautify: bool = False
    keep_quoted_props: bool = True
    module: bool = False
    name_cache: Dict[str, Any] = field(default_factory=dict)


@dataclass
class CompressResult:
    """Compressor output. ``map`` references ``CompressRequest.filename`` as its source."""

    code: Optional[str]
    map: Optional[str]
    name_cache: Dict[str, Any] = field(default_factory=dict)


class Compressor(abc.ABC):
    @abc.abstractmethod
    async def minify(self, request: CompressRequest) -> CompressResult:
        """Compress ``request.code``; the returned name cache supersedes the request's."""


class LegacyCompiler(abc.ABC):
    """Whole-program optimizer writing ``<dest_dir>/<dest_name>`` and its ``.map``."""

    @abc.abstractmethod
    async def compile(self, entry_point: str, dest_dir: str, dest_name: str, options) -> None:
        ...


@dataclass(frozen=True)
class CompiledArtifact:
    """Code plus its JSON sourcemap; each stage returns a new one."""

    code: str
    map: str
