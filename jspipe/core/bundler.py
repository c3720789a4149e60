"""Bundling with the external engine, plus the downstream minify/write chain."""

from __future__ import annotations

import asyncio
import os
import re
import time
from typing import Awaitable, Callable, Dict, List

from jspipe import log, naming, wrappers
from jspipe.auxiliary import AuxiliaryBundles
from jspipe.config.flags import BuildFlags
from jspipe.core.minifier import Minifier
from jspipe.core.state import PipelineState
from jspipe.engines.base import BundleRequest, BundlingEngine, ResolveStrategy, TransformPlugin
from jspipe.engines.plugins import DownlevelTransformPlugin, PassThrough, RemapDependencies
from jspipe.exceptions import BundleFailed
from jspipe.prepend import runtime_config_banner
from jspipe.sourcemap.composer import massage
from jspipe.targets import TargetOptions
from jspipe.utils.fsio import copy_file, output_pair
from jspipe.utils.log import end_build_step

# Node-style stack frames: everything from the first "    at" line on.
_STACK_FRAMES = re.compile(r"\n?    at [\s\S]*")


def strip_stack(message: str) -> str:
    return _STACK_FRAMES.sub("", message).strip()


def handle_bundle_error(err: BaseException, continue_on_error: bool, dest_filename: str) -> None:
    """Log a failed build; raise BundleFailed unless the caller continues on error."""
    message = strip_stack(str(err) or repr(err))
    log.error(f"[BUNDLE] ERROR: {message}")
    if continue_on_error:
        log.error(f"[BUNDLE] ERROR: Could not compile {dest_filename}")
        return
    raise BundleFailed(dest_filename, message) from err


class BundlerStage:
    """Runs the engine for an entry point and writes code + map.

    The first build of an entry point in watch mode keeps the engine's
    incremental handle; every later build of that entry point rebuilds
    through it instead of re-specifying the build.
    """

    def __init__(self, engine: BundlingEngine, minifier: Minifier, flags: BuildFlags,
                 state: PipelineState, auxiliary: AuxiliaryBundles, configs_dir=None):
        self.engine = engine
        self.minifier = minifier
        self.flags = flags
        self.state = state
        self.auxiliary = auxiliary
        self.configs_dir = configs_dir
        self._watch_rebuilders: Dict[str, Callable[[], Awaitable[None]]] = {}

    def transform_plugins(self, options: TargetOptions) -> List[TransformPlugin]:
        caller = "minified" if options.minify else "unminified"
        return [DownlevelTransformPlugin(caller, enable_cache=True, defines=self.flags.defines)]

    def resolvers(self, options: TargetOptions) -> List[ResolveStrategy]:
        if options.remap_dependencies:
            return [RemapDependencies(options.remap_dependencies, options.external_dependencies)]
        return [PassThrough()]

    async def build_request(self, entry_point: str, src_filename: str, dest_file: str,
                            options: TargetOptions) -> BundleRequest:
        dest_filename = os.path.basename(dest_file)
        banner, footer = wrappers.split(options.wrapper)
        config = runtime_config_banner(dest_filename, options, self.flags, self.configs_dir)
        compiled_file = await self.auxiliary.compiled_content(src_filename)
        return BundleRequest(
            entry_point=entry_point,
            outfile=dest_file,
            bundle=True,
            sourcemap=True,
            resolvers=tuple(self.resolvers(options)),
            plugins=tuple(self.transform_plugins(options)),
            format=options.output_format,
            banner=config + banner + compiled_file,
            footer=footer,
            # For es5 builds, ensure engine-injected code is transpiled.
            target="es6" if self.flags.esm else "es5",
            incremental=options.watch,
            external=tuple(options.external_dependencies),
            defines=dict(self.flags.defines),
            write=False,
        )

    def is_watched(self, entry_point: str) -> bool:
        return entry_point in self._watch_rebuilders

    async def bundle(self, src_dir: str, src_filename: str, dest_dir: str,
                     options: TargetOptions) -> None:
        start_time = time.monotonic()
        entry_point = os.path.join(src_dir, src_filename)
        dest_filename = naming.dest_filename(src_filename, options, self.flags.esm)
        dest_file = os.path.join(dest_dir, dest_filename)

        rebuilder = self._watch_rebuilders.get(entry_point)
        if rebuilder is not None:
            return await rebuilder()

        request = await self.build_request(entry_point, src_filename, dest_file, options)
        rebuild_state = self.state.rebuilds.for_entry(entry_point)

        async def build(started: float) -> None:
            async with rebuild_state.lock:
                if rebuild_state.handle is None:
                    result = await self.engine.build(request)
                    if result.incremental:
                        rebuild_state.handle = result
                else:
                    result = await rebuild_state.handle.rebuild()
                    rebuild_state.handle = result
                code, smap = result.code_and_map()
                if options.minify:
                    artifact = await self.minifier.minify(code, smap, dest_filename)
                    code, smap = artifact.code, massage(artifact.map, options, self.flags)
                await output_pair(dest_file, code, smap)
            await self.finish_bundle(dest_dir, dest_filename, options, started)

        continue_on_error = options.continue_on_error or options.watch

        async def guarded_build(started: float) -> None:
            try:
                await build(started)
            except Exception as err:
                handle_bundle_error(err, continue_on_error, dest_filename)

        await guarded_build(start_time)

        if options.watch:
            async def rebuild() -> None:
                await guarded_build(time.monotonic())

            self._watch_rebuilders[entry_point] = rebuild

    async def finish_bundle(self, dest_dir: str, dest_filename: str, options: TargetOptions,
                            start_time: float) -> None:
        """Copy the output under its alias (if any) and log the timing."""
        log_prefix = "Minified" if options.minify else "Compiled"
        if options.alias_name:
            alias = naming.alias_filename(options.alias_name, options.minify, self.flags.esm)
            await asyncio.to_thread(copy_file, os.path.join(dest_dir, dest_filename),
                                    os.path.join(dest_dir, alias))
            end_build_step(log_prefix, f"{dest_filename} → {alias}", start_time)
            return
        logging_name = dest_filename
        if options.npm and options.name and not dest_filename.startswith(options.name):
            logging_name = f"{options.name} → {dest_filename}"
        end_build_step(log_prefix, logging_name, start_time)
