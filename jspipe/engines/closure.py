"""closure-compiler as the legacy whole-program optimizer."""

from __future__ import annotations

import os
from typing import List, Optional, Sequence

from jspipe import wrappers
from jspipe.config.limits import CONTENTS_PLACEHOLDER
from jspipe.engines.base import LegacyCompiler
from jspipe.utils.proc import find_node_bin, run_tool

DEFAULT_SOURCES = ("src/**.js", "extensions/**.js", "third_party/**.js")


class ClosureCompiler(LegacyCompiler):
    def __init__(self, binary: Optional[str] = None, sources: Sequence[str] = DEFAULT_SOURCES,
                 esm: bool = False, cwd: Optional[str] = None):
        self._binary = binary
        self._sources = tuple(sources)
        self._esm = esm
        self._cwd = cwd

    @property
    def binary(self) -> str:
        if self._binary is None:
            self._binary = find_node_bin("google-closure-compiler")
        return self._binary

    def command(self, entry_point: str, dest_dir: str, dest_name: str, options) -> List[str]:
        dest = os.path.join(dest_dir, dest_name)
        wrapper = (options.wrapper or wrappers.NONE).replace(CONTENTS_PLACEHOLDER, "%output%")
        argv = [
            self.binary,
            "--compilation_level=ADVANCED",
            "--dependency_mode=PRUNE",
            f"--entry_point={entry_point}",
            f"--js={entry_point}",
        ]
        argv += [f"--js={pattern}" for pattern in self._sources]
        argv += [
            f"--js_output_file={dest}",
            f"--create_source_map={dest}.map",
            "--source_map_include_content",
            f"--output_wrapper={wrapper}",
            f"--language_out={'ECMASCRIPT_2015' if self._esm else 'ECMASCRIPT5'}",
        ]
        return argv

    async def compile(self, entry_point: str, dest_dir: str, dest_name: str, options) -> None:
        os.makedirs(dest_dir, exist_ok=True)
        await run_tool(self.command(entry_point, dest_dir, dest_name, options),
                       tool="closure-compiler", cwd=self._cwd)
