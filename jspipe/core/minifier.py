"""Minification with a cross-bundle property rename cache."""

from __future__ import annotations

import json
import time
from typing import Optional

from jspipe import log
from jspipe.config.flags import BuildFlags
from jspipe.config.limits import COMPRESS_PASSES, PRIVATE_PROPERTY_REGEX
from jspipe.core.state import NameCache
from jspipe.engines.base import CompiledArtifact, CompressRequest, Compressor
from jspipe.sourcemap.composer import compose

_INTERMEDIATE_NAME = "bundle.js"


class Minifier:
    def __init__(self, compressor: Compressor, name_cache: NameCache, flags: BuildFlags,
                 passes: int = COMPRESS_PASSES, property_regex: str = PRIVATE_PROPERTY_REGEX):
        self.compressor = compressor
        self.name_cache = name_cache
        self.flags = flags
        self.passes = passes
        self.property_regex = property_regex

    async def minify(self, code: str, map_json: str, filename: Optional[str] = None) -> CompiledArtifact:
        """Compress *code* and compose the compressor's map with *map_json*.

        Never raises on empty compressor output: the code is then ``""``.
        """
        start = time.monotonic()
        input_map = json.loads(map_json) if isinstance(map_json, str) else map_json
        intermediate = filename or input_map.get("file") or _INTERMEDIATE_NAME
        intermediate = intermediate.rsplit("/", 1)[-1]
        async with self.name_cache.session:
            request = CompressRequest(
                code=code,
                filename=intermediate,
                property_regex=self.property_regex,
                keep_quoted="strict",
                passes=self.passes,
                beautify=self.flags.pretty_print,
                keep_quoted_props=True,
                module=self.flags.esm,
                # Local variable names must not be reused between binaries.
                name_cache=self.name_cache.begin_minification(),
            )
            result = await self.compressor.minify(request)
            self.name_cache.update(result.name_cache or {})
        out_code = result.code or ""
        if not result.map:
            log.warning(f"[MINIFY] {intermediate}: compressor returned no sourcemap")
            return CompiledArtifact(code=out_code, map=json.dumps({
                "version": 3, "file": intermediate, "sources": [], "names": [], "mappings": "",
            }))
        composed = compose(
            result.map,
            lambda source: input_map if source == intermediate else None,
            exclude_content=not self.flags.full_sourcemaps,
        )
        composed.file = intermediate
        log.debug(f"[MINIFY] {intermediate}: {len(code)} → {len(out_code)} chars in {time.monotonic() - start:.2f}s")
        return CompiledArtifact(code=out_code, map=composed.to_json())
