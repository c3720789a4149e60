"""In-memory sourcemap (revision 3) document."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from jspipe.sourcemap.vlq import Mappings, decode_mappings, encode_mappings


@dataclass
class SourceMap:
    mappings: Mappings
    sources: List[Optional[str]]
    sources_content: Optional[List[Optional[str]]] = None
    names: List[str] = field(default_factory=list)
    file: Optional[str] = None
    source_root: Optional[str] = None
    version: int = 3

    @classmethod
    def from_json(cls, raw: Union[str, bytes, Dict[str, Any], "SourceMap"]) -> "SourceMap":
        if isinstance(raw, SourceMap):
            return raw
        data = json.loads(raw) if isinstance(raw, (str, bytes)) else raw
        if not isinstance(data, dict):
            raise ValueError("sourcemap must be a JSON object")
        if data.get("version", 3) != 3:
            raise ValueError(f"unsupported sourcemap version {data.get('version')}")
        if "sections" in data:
            raise ValueError("indexed sourcemaps are not supported")
        mappings = data.get("mappings", "")
        return cls(
            mappings=decode_mappings(mappings) if isinstance(mappings, str) else [list(map(tuple, l)) for l in mappings],
            sources=list(data.get("sources", [])),
            sources_content=list(data["sourcesContent"]) if data.get("sourcesContent") is not None else None,
            names=list(data.get("names", [])),
            file=data.get("file"),
            source_root=data.get("sourceRoot"),
        )

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"version": self.version}
        if self.file is not None:
            out["file"] = self.file
        if self.source_root is not None:
            out["sourceRoot"] = self.source_root
        out["sources"] = list(self.sources)
        if self.sources_content is not None:
            out["sourcesContent"] = list(self.sources_content)
        out["names"] = list(self.names)
        out["mappings"] = encode_mappings(self.mappings)
        return out

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False, separators=(",", ":"))

    def __str__(self) -> str:
        return self.to_json()
