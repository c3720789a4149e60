"""Test configuration: isolated JSPIPE_HOME, in-memory tool fakes.

Sections:
  1. Config isolation: ConfigManager.BASE_DIR → tmp dir, no CLI overrides
  2. Fakes: bundling engine, compressor, legacy optimizer, file watcher
  3. Workspace: a source tree plus registry to build from
"""
from __future__ import annotations

import asyncio
import json
import os
import re
from pathlib import Path
from typing import Dict, List, Optional

import pytest

from jspipe.config.flags import BuildFlags
from jspipe.config.limits import CONTENTS_PLACEHOLDER
from jspipe.engines.base import (
    BuildResult,
    BundleRequest,
    BundlingEngine,
    CompressRequest,
    CompressResult,
    Compressor,
    LegacyCompiler,
    OutputFile,
)
from jspipe.exceptions import EngineError
from jspipe.sourcemap.concat import ConcatBundle
from jspipe.targets import BuildTarget, TargetOptions, TargetRegistry


# ---------------------------------------------------------------------------
# 1. Config isolation
# ---------------------------------------------------------------------------
@pytest.fixture(autouse=True)
def jspipe_home(tmp_path, monkeypatch):
    """Point ConfigManager at a per-test directory."""
    from jspipe import config_manager

    home = tmp_path / "jspipe-home"
    home.mkdir()
    monkeypatch.setattr(config_manager.ConfigManager, "BASE_DIR", home)
    for key in list(os.environ):
        if key.startswith("JSPIPE_BUILD_") or key.startswith("JSPIPE_TOOLS_"):
            monkeypatch.delenv(key)
    config_manager.clear_cli_overrides()
    yield home
    config_manager.clear_cli_overrides()


# ---------------------------------------------------------------------------
# 2. Fakes
# ---------------------------------------------------------------------------
class FakeEngine(BundlingEngine):
    """Bundles by concatenating banner + entry source + footer.

    The map is a real line-level map of the entry source, with the source
    path relative to the output directory the way esbuild writes it.
    """

    def __init__(self, fail: Optional[str] = None, deps: Optional[Dict[str, List[str]]] = None,
                 deps_error: Optional[str] = None):
        self.fail = fail
        self.deps = deps or {}
        self.deps_error = deps_error
        self.requests: List[BundleRequest] = []
        self.rebuilds: List[str] = []
        self.metafile_calls: List[tuple] = []

    def _make(self, request: BundleRequest) -> BuildResult:
        if self.fail:
            raise EngineError("esbuild", 1, f"{self.fail}\n    at build (node_modules/esbuild/lib/main.js:1:1)")
        source = Path(request.entry_point).read_text(encoding="utf-8")
        rel = os.path.relpath(request.entry_point, os.path.dirname(request.outfile) or ".")
        bundle = ConcatBundle(separator="")
        bundle.append(request.banner)
        bundle.add_source(source, filename=rel.replace(os.sep, "/"), original=source)
        bundle.append(request.footer)
        name = os.path.basename(request.outfile)
        smap = bundle.generate_map(file=name)
        outputs = [
            OutputFile(request.outfile, bundle.to_string()),
            OutputFile(f"{request.outfile}.map", smap.to_json()),
        ]

        async def rebuild() -> BuildResult:
            self.rebuilds.append(request.entry_point)
            return self._make(request)

        return BuildResult(outputs, rebuild if request.incremental else None)

    async def build(self, request: BundleRequest) -> BuildResult:
        self.requests.append(request)
        return self._make(request)

    async def metafile_inputs(self, entry_point, plugins=()):
        self.metafile_calls.append((entry_point, tuple(plugins)))
        if self.deps_error:
            raise EngineError("esbuild", 1, self.deps_error)
        return self.deps.get(entry_point, [entry_point])


_PRIVATE = re.compile(r"\b\w+_PRIVATE_\b")


class FakeCompressor(Compressor):
    """Mangles ``*_PRIVATE_`` identifiers through the name cache; keeps lines."""

    def __init__(self, return_code: bool = True):
        self.return_code = return_code
        self.requests: List[CompressRequest] = []
        self.incoming_vars: List[dict] = []

    async def minify(self, request: CompressRequest) -> CompressResult:
        # Yield like a subprocess would, so concurrent minifications interleave.
        await asyncio.sleep(0.005)
        self.requests.append(request)
        cache = json.loads(json.dumps(request.name_cache))
        self.incoming_vars.append(dict(cache.get("vars", {}).get("props", {})))
        props = cache.setdefault("props", {}).setdefault("props", {})

        def mangle(match):
            key = f"${match.group(0)}"
            if key not in props:
                props[key] = f"p{len(props)}"
            return props[key]

        code = _PRIVATE.sub(mangle, request.code)
        cache["vars"] = {"props": {f"$local{len(self.requests)}": "a"}}
        bundle = ConcatBundle()
        bundle.add_source(code, filename=request.filename)
        smap = bundle.generate_map(file=f"{request.filename}.min.js", include_content=False)
        return CompressResult(code=code if self.return_code else None, map=smap.to_json(),
                              name_cache=cache)


class FakeLegacyCompiler(LegacyCompiler):
    """Writes ``wrapper(entry source)`` plus a line-level map."""

    def __init__(self, fail: Optional[str] = None):
        self.fail = fail
        self.calls: List[tuple] = []

    async def compile(self, entry_point, dest_dir, dest_name, options) -> None:
        self.calls.append((entry_point, dest_dir, dest_name))
        if self.fail:
            raise EngineError("closure-compiler", 1, self.fail)
        source = Path(entry_point).read_text(encoding="utf-8").strip()
        head, _, tail = (options.wrapper or CONTENTS_PLACEHOLDER).partition(CONTENTS_PLACEHOLDER)
        bundle = ConcatBundle(separator="")
        bundle.append(head)
        bundle.add_source(source, filename=os.path.basename(entry_point), original=source)
        bundle.append(tail)
        os.makedirs(dest_dir, exist_ok=True)
        dest = Path(dest_dir) / dest_name
        dest.write_text(bundle.to_string(), encoding="utf-8")
        smap = bundle.generate_map(file=dest_name).to_dict()
        smap["sourceRoot"] = "/"
        Path(f"{dest}.map").write_text(json.dumps(smap), encoding="utf-8")


class FakeWatcher:
    """Stands in for PollingFileWatcher; tests call ``fire()`` to simulate events."""

    def __init__(self, paths, on_change):
        self.paths = list(paths)
        self.on_change = on_change
        self.started = False
        self.stopped = False

    def start(self):
        self.started = True

    def stop(self):
        self.stopped = True

    def fire(self, path: Optional[str] = None):
        self.on_change(path or self.paths[0])


class WatcherFactory:
    def __init__(self):
        self.watchers: List[FakeWatcher] = []

    def __call__(self, paths, on_change):
        watcher = FakeWatcher(paths, on_change)
        self.watchers.append(watcher)
        return watcher


@pytest.fixture
def engine():
    return FakeEngine()


@pytest.fixture
def compressor():
    return FakeCompressor()


@pytest.fixture
def legacy_compiler():
    return FakeLegacyCompiler()


@pytest.fixture
def watcher_factory():
    return WatcherFactory()


@pytest.fixture
def flags():
    return BuildFlags(define_experiment_constant="ESBUILD_COMPILATION")


# ---------------------------------------------------------------------------
# 3. Workspace
# ---------------------------------------------------------------------------
@pytest.fixture
def workspace(tmp_path):
    """``src/`` with a few entry points and a registry pointing into ``dist/``."""
    root = tmp_path / "ws"
    src = root / "src"
    src.mkdir(parents=True)
    (src / "alpha.js").write_text("var alpha_PRIVATE_ = 1;\nconsole.log(alpha_PRIVATE_);\n")
    (src / "beta.js").write_text("var shared_PRIVATE_ = 2;\nconsole.log('beta');\n")
    (src / "gamma.js").write_text("var shared_PRIVATE_ = 3;\nconsole.log('gamma');\n")
    (src / "runtime.js").write_text("console.log('runtime');\n")
    targets = {}
    for name in ("alpha", "beta", "gamma", "runtime"):
        targets[f"{name}.js"] = BuildTarget(
            name=f"{name}.js",
            src_dir=str(src),
            src_filename=f"{name}.js",
            dest_dir=str(root / "dist"),
            minified_dest_dir=str(root / "dist-min"),
            options=TargetOptions(minified_name=f"{name}.min.js"),
        )
    registry = TargetRegistry(targets, core_runtime="runtime.js")
    return root, registry
