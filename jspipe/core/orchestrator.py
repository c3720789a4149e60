"""Maps target names to builds and fans many of them out concurrently."""

from __future__ import annotations

import asyncio
import os
import time
from typing import Any, List, Mapping, Optional, Sequence

from jspipe import log
from jspipe.auxiliary import AuxiliaryBundles
from jspipe.config.flags import BuildFlags
from jspipe.core.bundler import BundlerStage
from jspipe.core.legacy import LegacyStage
from jspipe.core.minifier import Minifier
from jspipe.core.splicer import WrapperSplicer
from jspipe.core.state import PipelineState
from jspipe.core.watch import WatchSubsystem
from jspipe.engines.base import BundlingEngine, Compressor, LegacyCompiler
from jspipe.exceptions import DependencyDiscoveryFailed
from jspipe.targets import TargetOptions, TargetRegistry
from jspipe.utils.log import end_build_step


class Orchestrator:
    """Entry point of the pipeline.

    All process-scoped state (name cache, watched entries, rebuild handles)
    lives in ``state``; two orchestrators sharing one state object behave as
    one process.
    """

    def __init__(self, registry: TargetRegistry, flags: BuildFlags, engine: BundlingEngine,
                 compressor: Compressor, legacy_compiler: Optional[LegacyCompiler] = None,
                 state: Optional[PipelineState] = None,
                 auxiliary: Optional[AuxiliaryBundles] = None,
                 watch: Optional[WatchSubsystem] = None,
                 configs_dir=None):
        self.registry = registry
        self.flags = flags
        self.state = state or PipelineState()
        self.auxiliary = auxiliary or AuxiliaryBundles()
        self.watch = watch or WatchSubsystem(engine, flags)
        minifier = Minifier(compressor, self.state.name_cache, flags)
        self.bundler = BundlerStage(engine, minifier, flags, self.state, self.auxiliary,
                                    configs_dir=configs_dir)
        self.legacy = (LegacyStage(legacy_compiler, WrapperSplicer(self.auxiliary, flags), flags)
                       if legacy_compiler is not None else None)

    def uses_legacy_path(self, options: TargetOptions) -> bool:
        return options.minify and self.flags.use_legacy_compiler and self.legacy is not None

    async def do_build_js(self, name: str, extra_options: Optional[Mapping[str, Any]] = None) -> None:
        """Build registry target *name*; raises TargetNotFound for unknown names."""
        extra_options = dict(extra_options or {})
        target = self.registry[name]
        options = target.options.merged(extra_options)
        dest_dir = target.minified_dest_dir if extra_options.get("minify") else target.dest_dir
        await self.compile_js(target.src_dir, target.src_filename, dest_dir, options)

    async def compile_js(self, src_dir: str, src_filename: str, dest_dir: str,
                         options: Optional[TargetOptions] = None) -> None:
        """Bundle (max) or compile (min) one entry point.

        A watched build registers one watcher for the entry point's
        dependencies; any later request for a watched entry returns at once.
        """
        options = options or TargetOptions()
        entry_point = os.path.join(src_dir, src_filename)
        if entry_point in self.state.watched_entries:
            return

        async def run(opts: TargetOptions) -> None:
            if self.uses_legacy_path(opts):
                build = self.legacy.compile_minified(src_dir, src_filename, dest_dir, opts)
            else:
                build = self.bundler.bundle(src_dir, src_filename, dest_dir, opts)
            build = asyncio.ensure_future(build)
            if opts.on_watch_build:
                opts.on_watch_build(build)
            await build

        if options.watch:
            if not self.state.watched_entries.add_if_absent(entry_point):
                return
            try:
                deps = await self.watch.get_dependencies(entry_point, options)
            except DependencyDiscoveryFailed:
                self.state.watched_entries.discard(entry_point)
                raise
            rebuild_options = options.merged({"continue_on_error": True})

            async def on_change() -> None:
                await run(rebuild_options)

            self.watch.register(entry_point, deps, on_change)

        await run(options)

    async def build_many(self, names: Sequence[str], options: Optional[Mapping[str, Any]] = None,
                         fail_fast: bool = True) -> List[BaseException]:
        """Build *names* concurrently.

        With ``fail_fast`` the first failure propagates; otherwise every build
        runs to completion and the failures are returned.
        """
        builds = [self.do_build_js(name, options) for name in names]
        if fail_fast:
            await asyncio.gather(*builds)
            return []
        results = await asyncio.gather(*builds, return_exceptions=True)
        failures = [r for r in results if isinstance(r, BaseException)]
        for name, result in zip(names, results):
            if isinstance(result, BaseException):
                log.error(f"[BUNDLE] {name} failed: {result}")
        return failures

    async def compile_core_runtime(self, options: Optional[Mapping[str, Any]] = None) -> None:
        if self.registry.core_runtime is None:
            log.warning("[BUNDLE] No core runtime target is registered")
            return
        await self.do_build_js(self.registry.core_runtime, options)

    async def compile_all_js(self, options: Optional[Mapping[str, Any]] = None) -> None:
        """Build every registered target, the core runtime last."""
        options = dict(options or {})
        minify = bool(options.get("minify"))
        if minify:
            engine = "the legacy optimizer" if self.flags.use_legacy_compiler else "the compressor"
            log.info(f"Minifying JS with {engine}...")
        else:
            log.info("Compiling JS with the bundling engine...")
        start_time = time.monotonic()
        names = [
            name for name, target in self.registry.items()
            if name != self.registry.core_runtime
            and not (minify and target.options.skip_when_minified)
        ]
        await self.build_many(names, options)
        await self.compile_core_runtime(options)
        end_build_step("Minified" if minify else "Compiled", "all runtime targets", start_time)

    def close(self) -> None:
        self.watch.close()
