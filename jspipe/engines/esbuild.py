"""esbuild driven through its command line."""

from __future__ import annotations

import functools
import json
import os
import re
import secrets
import tempfile
from pathlib import Path
from typing import List, Optional, Sequence

from jspipe.engines.base import BuildResult, BundleRequest, BundlingEngine, OutputFile, TransformPlugin
from jspipe.engines.plugins import resolve_request
from jspipe.utils.proc import find_node_bin, run_tool

# Metafile inputs from plugin namespaces, e.g. "(disabled):fs".
_NAMESPACED = re.compile(r"^\(?[a-z-]+\)?:")


class EsbuildEngine(BundlingEngine):
    """Bundles with the esbuild CLI.

    Resolve strategies are compiled into ``--alias`` flags, transform plugins
    contribute their own flags. The CLI has no in-process rebuild context, so
    an incremental handle re-runs the frozen command line of the first build.
    """

    def __init__(self, binary: Optional[str] = None, cwd: Optional[str] = None):
        self._binary = binary
        self._cwd = cwd

    @property
    def binary(self) -> str:
        if self._binary is None:
            self._binary = find_node_bin("esbuild")
        return self._binary

    def command(self, request: BundleRequest, outfile: str) -> List[str]:
        argv = [self.binary, request.entry_point]
        if request.bundle:
            argv.append("--bundle")
        if request.sourcemap:
            argv.append("--sourcemap")
        argv += [
            f"--outfile={outfile}",
            f"--format={request.format}",
            f"--target={request.target}",
            "--log-level=error",
        ]
        if request.banner:
            argv.append(f"--banner:js={request.banner}")
        if request.footer:
            argv.append(f"--footer:js={request.footer}")
        for key, value in sorted(request.defines.items()):
            argv.append(f"--define:{key}={value}")
        external = list(request.external)
        requests = dict.fromkeys(dep for s in request.resolvers for dep in s.known_requests())
        for dep in requests:
            hit = resolve_request(request.resolvers, dep)
            if hit is None:
                continue
            argv.append(f"--alias:{dep}={hit.path}")
            if hit.external and hit.path not in external:
                external.append(hit.path)
        argv += [f"--external:{dep}" for dep in external]
        for plugin in request.plugins:
            argv += plugin.cli_args()
        return argv

    async def build(self, request: BundleRequest) -> BuildResult:
        dest_dir = os.path.dirname(request.outfile) or "."
        os.makedirs(dest_dir, exist_ok=True)
        # Staged next to the real output so source paths come out relative to it.
        staging = os.path.join(dest_dir, f".{Path(request.outfile).stem}.{secrets.token_hex(4)}.tmp.js")
        argv = self.command(request, staging)
        return await self._execute(argv, staging, request)

    async def _execute(self, argv: List[str], staging: str, request: BundleRequest) -> BuildResult:
        final_name = os.path.basename(request.outfile)
        try:
            await run_tool(argv, tool="esbuild", cwd=self._cwd)
            code = Path(staging).read_text(encoding="utf-8")
            smap = json.loads(Path(f"{staging}.map").read_text(encoding="utf-8"))
        finally:
            for leftover in (staging, f"{staging}.map"):
                try:
                    os.unlink(leftover)
                except OSError:
                    pass
        code = code.replace(f"sourceMappingURL={os.path.basename(staging)}.map",
                            f"sourceMappingURL={final_name}.map")
        smap["file"] = final_name
        outputs = [
            OutputFile(request.outfile, code),
            OutputFile(f"{request.outfile}.map", json.dumps(smap, ensure_ascii=False)),
        ]
        if request.write:
            for out in outputs:
                Path(out.path).write_text(out.text, encoding="utf-8")
        rebuild = functools.partial(self._execute, argv, staging, request) if request.incremental else None
        return BuildResult(output_files=outputs, rebuild_fn=rebuild)

    async def metafile_inputs(self, entry_point: str,
                              plugins: Sequence[TransformPlugin] = ()) -> List[str]:
        cwd = self._cwd or os.getcwd()
        with tempfile.TemporaryDirectory(prefix="jspipe-meta-") as tmp:
            meta = os.path.join(tmp, "meta.json")
            argv = [
                self.binary, entry_point, "--bundle",
                f"--metafile={meta}", f"--outfile={os.path.join(tmp, 'out.js')}",
                "--log-level=error",
            ]
            for plugin in plugins:
                argv += plugin.cli_args()
            await run_tool(argv, tool="esbuild", cwd=self._cwd)
            inputs = json.loads(Path(meta).read_text(encoding="utf-8")).get("inputs", {})
        return [os.path.normpath(os.path.join(cwd, key)) for key in inputs if not _NAMESPACED.match(key)]
