"""Splicing auxiliary bundles inside the wrapper of an already-built file."""

from __future__ import annotations

import asyncio
import json
import os
from pathlib import Path
from typing import Optional, Sequence, Tuple

from jspipe import log, naming, wrappers
from jspipe.auxiliary import AuxiliaryBundles
from jspipe.config.flags import BuildFlags
from jspipe.config.limits import CONTENTS_PLACEHOLDER, MODULE_SEPARATOR
from jspipe.engines.base import CompiledArtifact
from jspipe.exceptions import SpliceLayoutError
from jspipe.sourcemap.composer import compose
from jspipe.sourcemap.concat import ConcatBundle
from jspipe.utils.fsio import write_pair


def find_insertion_point(wrapped_text: str, wrapper_template: str) -> int:
    """Offset just past the ``{`` that opens the wrapping function's body.

    The wrapper may have been minified further, so the brace is not assumed to
    sit at a fixed offset: the search runs backwards through *wrapped_text*
    from where the contents placeholder sits in *wrapper_template*. Assumes the
    wrapper has at least one literal ``{`` before the placeholder.
    """
    wrapper_index = wrapper_template.find(CONTENTS_PLACEHOLDER)
    if wrapper_index < 0:
        raise SpliceLayoutError("wrapper template has no contents placeholder")
    brace = wrapped_text.rfind("{", 0, wrapper_index + 1)
    if brace < 0:
        raise SpliceLayoutError(
            f"no '{{' precedes offset {wrapper_index} of the wrapped output; "
            "cannot locate the wrapper body")
    return brace + 1


def splice(dest_content: str, dest_map: str, dest_name: str, wrapper: str,
           auxiliary: Sequence[Tuple[str, str]], full_sourcemaps: bool = False) -> CompiledArtifact:
    """Insert each ``(name, content)`` of *auxiliary* at the start of the wrapper body."""
    smap = json.loads(dest_map) if isinstance(dest_map, str) else dict(dest_map)
    source_root = smap.pop("sourceRoot", None)

    index = find_insertion_point(dest_content, wrapper)
    bundle = ConcatBundle(separator="\n")
    bundle.add_snip(dest_content, 0, index, dest_name)
    for name, content in auxiliary:
        bundle.add_source(content, filename=name)
        bundle.append(MODULE_SEPARATOR)
    bundle.add_snip(dest_content, index, len(dest_content), dest_name)

    bundled_map = bundle.generate_map(file=dest_name, hires=True)
    remapped = compose(
        bundled_map,
        lambda source: smap if source == dest_name else None,
        exclude_content=not full_sourcemaps,
    )
    remapped.source_root = source_root
    return CompiledArtifact(code=bundle.to_string(), map=remapped.to_json())


class WrapperSplicer:
    def __init__(self, auxiliary: AuxiliaryBundles, flags: BuildFlags):
        self.auxiliary = auxiliary
        self.flags = flags

    async def combine_with_compiled_file(self, src_filename: str, dest_file_path: str,
                                         wrapper: Optional[str]) -> bool:
        """Splice *src_filename*'s auxiliary bundles into the written output.

        Returns False (and touches nothing) when there are none.
        """
        if not self.auxiliary.has(src_filename):
            return False
        await asyncio.to_thread(self._combine, src_filename, dest_file_path, wrapper)
        return True

    def _combine(self, src_filename: str, dest_file_path: str, wrapper: Optional[str]) -> None:
        dest_name = os.path.basename(dest_file_path)
        content = Path(dest_file_path).read_text(encoding="utf-8")
        smap = Path(naming.map_filename(dest_file_path)).read_text(encoding="utf-8")
        aux = [(name, self.auxiliary.read(name)) for name in self.auxiliary.files_for(src_filename)]
        artifact = splice(content, smap, dest_name, wrapper if wrapper is not None else wrappers.NONE,
                          aux, full_sourcemaps=self.flags.full_sourcemaps)
        write_pair(dest_file_path, artifact.code, artifact.map)
        log.info(f"[SPLICE] {dest_name}: inserted {len(aux)} auxiliary bundle(s)")
