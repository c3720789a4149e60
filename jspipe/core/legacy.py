"""Minified builds through the whole-program optimizer."""

from __future__ import annotations

import asyncio
import os
import time

from jspipe import log, naming
from jspipe.config.flags import BuildFlags
from jspipe.core.splicer import WrapperSplicer
from jspipe.engines.base import LegacyCompiler
from jspipe.exceptions import BundleFailed
from jspipe.targets import TargetOptions
from jspipe.utils.fsio import copy_file
from jspipe.utils.log import end_build_step


class LegacyStage:
    def __init__(self, compiler: LegacyCompiler, splicer: WrapperSplicer, flags: BuildFlags):
        self.compiler = compiler
        self.splicer = splicer
        self.flags = flags

    async def compile_minified(self, src_dir: str, src_filename: str, dest_dir: str,
                               options: TargetOptions) -> None:
        """Optimize, splice auxiliary bundles into the wrapper, then alias.

        A failed compile in watch mode is logged and leaves the previous
        outputs in place; otherwise it is raised as BundleFailed.
        """
        start_time = time.monotonic()
        entry_point = os.path.join(src_dir, src_filename)
        if not options.minified_name:
            raise ValueError(f"target for {src_filename} has no minified_name")
        minified_name = naming.maybe_to_esm_name(options.minified_name, self.flags.esm)

        dest_path = os.path.join(dest_dir, minified_name)
        try:
            await self.compiler.compile(entry_point, dest_dir, minified_name, options)
            await self.splicer.combine_with_compiled_file(src_filename, dest_path, options.wrapper)
        except Exception as err:
            log.error(f"[MINIFY] ERROR: {err}")
            if options.watch or options.continue_on_error:
                return
            raise BundleFailed(minified_name, str(err)) from err

        name = minified_name
        if options.alias_name:
            alias = naming.maybe_to_esm_name(options.alias_name, self.flags.esm)
            await asyncio.to_thread(copy_file, dest_path, os.path.join(dest_dir, alias))
            name += f" → {alias}"
        end_build_step("Minified", name, start_time)
