"""terser driven through its command line."""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import List, Optional

from jspipe.engines.base import CompressRequest, CompressResult, Compressor
from jspipe.utils.proc import find_node_bin, run_tool

_NAME_CACHE_FILE = "name-cache.json"


def _flag(value: bool) -> str:
    return "true" if value else "false"


class TerserCompressor(Compressor):
    """Runs terser in a scratch directory.

    The name cache round-trips through terser's ``--name-cache`` file, so the
    caller's in-memory cache stays the single source of truth between calls.
    """

    def __init__(self, binary: Optional[str] = None):
        self._binary = binary

    @property
    def binary(self) -> str:
        if self._binary is None:
            self._binary = find_node_bin("terser")
        return self._binary

    @staticmethod
    def output_name(filename: str) -> str:
        return f"{filename}.min.js"

    def command(self, request: CompressRequest) -> List[str]:
        filename = os.path.basename(request.filename)
        argv = [
            self.binary, filename,
            "--compress", f"passes={request.passes}",
            "--mangle",
            "--mangle-props", f"regex=/{request.property_regex}/,keep_quoted={request.keep_quoted}",
            "--format", f"beautify={_flag(request.beautify)},keep_quoted_props={_flag(request.keep_quoted_props)}",
            "--name-cache", _NAME_CACHE_FILE,
            "--source-map",
            "--output", self.output_name(filename),
        ]
        if request.module:
            argv.append("--module")
        return argv

    async def minify(self, request: CompressRequest) -> CompressResult:
        filename = os.path.basename(request.filename)
        with tempfile.TemporaryDirectory(prefix="jspipe-terser-") as tmp:
            work = Path(tmp)
            (work / filename).write_text(request.code, encoding="utf-8")
            (work / _NAME_CACHE_FILE).write_text(json.dumps(request.name_cache), encoding="utf-8")
            await run_tool(self.command(request), tool="terser", cwd=tmp)
            out = work / self.output_name(filename)
            code = out.read_text(encoding="utf-8") if out.exists() else None
            map_path = Path(f"{out}.map")
            smap = map_path.read_text(encoding="utf-8") if map_path.exists() else None
            cache = json.loads((work / _NAME_CACHE_FILE).read_text(encoding="utf-8") or "{}")
        return CompressResult(code=code, map=smap, name_cache=cache)
