"""Sourcemap composition across successive transform stages.

``compose`` traces every segment of the outermost map back through the maps
that a *loader* returns for its sources, the same way ``@ampproject/remapping``
does; ``massage`` is the one-time normalization applied at the end of a chain.
"""

from __future__ import annotations

import json
import posixpath
from bisect import bisect_left, bisect_right
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from jspipe.sourcemap.model import SourceMap
from jspipe.sourcemap.vlq import Segment

MapLike = Union[str, bytes, Dict[str, Any], SourceMap]
Loader = Callable[[str], Optional[MapLike]]

_MAX_DEPTH = 32
_SOURCELESS = object()


class _OriginalSource:
    __slots__ = ("name", "content")

    def __init__(self, name: str, content: Optional[str]):
        self.name = name
        self.content = content


class _MapNode:
    __slots__ = ("map", "children", "_columns")

    def __init__(self, smap: SourceMap, children: list):
        self.map = smap
        self.children = children
        self._columns: Dict[int, List[int]] = {}

    def lookup(self, line: int, column: int) -> Optional[Segment]:
        """Greatest-lower-bound segment for (line, column), first of equal columns."""
        if line < 0 or line >= len(self.map.mappings):
            return None
        segments = self.map.mappings[line]
        if not segments:
            return None
        cols = self._columns.get(line)
        if cols is None:
            cols = self._columns[line] = [s[0] for s in segments]
        i = bisect_right(cols, column) - 1
        if i < 0:
            return None
        return segments[bisect_left(cols, cols[i])]


def _source_path(smap: SourceMap, source: Optional[str], parent: str) -> str:
    source = source or ""
    if smap.source_root:
        source = smap.source_root.rstrip("/") + "/" + source
    parent_dir = posixpath.dirname(parent)
    if parent_dir and not posixpath.isabs(source) and "://" not in source:
        source = posixpath.normpath(posixpath.join(parent_dir, source))
    return source


def _build_tree(smap: SourceMap, loader: Loader, parent: str, depth: int) -> _MapNode:
    if depth > _MAX_DEPTH:
        raise ValueError(f"sourcemap chain deeper than {_MAX_DEPTH} (loader cycle?)")
    children = []
    for i, source in enumerate(smap.sources):
        path = _source_path(smap, source, parent)
        child_raw = loader(path)
        if child_raw is None:
            content = None
            if smap.sources_content is not None and i < len(smap.sources_content):
                content = smap.sources_content[i]
            children.append(_OriginalSource(path, content))
        else:
            children.append(_build_tree(SourceMap.from_json(child_raw), loader, path, depth + 1))
    return _MapNode(smap, children)


def _trace(node, line: int, column: int, name: Optional[str]):
    """Follow one position down to an original source.

    Returns ``(source, line, column, name)``, ``_SOURCELESS`` or ``None``.
    """
    while isinstance(node, _MapNode):
        seg = node.lookup(line, column)
        if seg is None:
            return None
        if len(seg) == 1:
            return _SOURCELESS
        if len(seg) == 5:
            name = node.map.names[seg[4]]
        node, line, column = node.children[seg[1]], seg[2], seg[3]
    return node, line, column, name


def compose(raw_map: MapLike, loader: Loader, exclude_content: bool = False) -> SourceMap:
    """Compose *raw_map* with the maps *loader* returns for its sources.

    *loader* receives each source path and returns that file's own map, or
    ``None`` when the path is an original source. Positions that do not trace
    back to a source are dropped. The result has no ``sourceRoot``.
    """
    root_map = SourceMap.from_json(raw_map)
    root = _build_tree(root_map, loader, "", 0)

    sources: List[_OriginalSource] = []
    source_index: Dict[Tuple[str, Optional[str]], int] = {}
    names: List[str] = []
    name_index: Dict[str, int] = {}
    out_lines: List[List[Segment]] = []

    for line_no, segments in enumerate(root_map.mappings):
        out: List[Segment] = []
        for seg in segments:
            if len(seg) == 1:
                traced = _SOURCELESS
            else:
                seg_name = root_map.names[seg[4]] if len(seg) == 5 else None
                traced = _trace(root.children[seg[1]], seg[2], seg[3], seg_name)
            if traced is None:
                continue
            if traced is _SOURCELESS:
                if not out or len(out[-1]) == 1:
                    continue
                out.append((seg[0],))
                continue
            source, orig_line, orig_col, name = traced
            key = (source.name, source.content)
            si = source_index.get(key)
            if si is None:
                si = source_index[key] = len(sources)
                sources.append(source)
            new: Segment = (seg[0], si, orig_line, orig_col)
            if name is not None:
                ni = name_index.get(name)
                if ni is None:
                    ni = name_index[name] = len(names)
                    names.append(name)
                new += (ni,)
            if out and len(out[-1]) > 1 and out[-1][1:] == new[1:]:
                continue
            out.append(new)
        out_lines.append(out)

    return SourceMap(
        mappings=out_lines,
        sources=[s.name for s in sources],
        sources_content=None if exclude_content else [s.content for s in sources],
        names=names,
        file=root_map.file,
    )


def get_source_root(options, flags) -> str:
    """Root every final map's sources are resolved against."""
    if flags.fortesting or not flags.source_root_url:
        return "/"
    return f"{flags.source_root_url.rstrip('/')}/{flags.version}/"


def massage(map_json: MapLike, options, flags) -> str:
    """Normalize a finished map: source paths, ``sourceRoot``, ``file``, content."""
    if isinstance(map_json, SourceMap):
        data = map_json.to_dict()
    elif isinstance(map_json, (str, bytes)):
        data = json.loads(map_json)
    else:
        data = dict(map_json)
    data["sources"] = [
        s[len("../"):] if isinstance(s, str) and s.startswith("../") else s
        for s in data.get("sources", [])
    ]
    data["sourceRoot"] = get_source_root(options, flags)
    if data.get("file"):
        data["file"] = posixpath.basename(data["file"])
    if not flags.full_sourcemaps:
        data.pop("sourcesContent", None)
    return json.dumps(data, ensure_ascii=False, separators=(",", ":"))
