"""Concatenation of text pieces with a generated sourcemap.

Modelled on ``MagicString.Bundle``: each piece is either a slice of a named
original file (mapped) or literal text (unmapped). Pieces after the first are
preceded by their separator, which defaults to the bundle's.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional

from jspipe.sourcemap.model import SourceMap
from jspipe.sourcemap.vlq import Segment


@dataclass(frozen=True)
class _Piece:
    content: str
    filename: Optional[str]
    original: Optional[str]
    offset: int
    separator: Optional[str]


def _position_of(text: str, offset: int):
    line = text.count("\n", 0, offset)
    col = offset - (text.rfind("\n", 0, offset) + 1)
    return line, col


class ConcatBundle:
    def __init__(self, separator: str = "\n"):
        self.separator = separator
        self._pieces: List[_Piece] = []

    def add_source(self, content: str, filename: Optional[str] = None,
                   original: Optional[str] = None, offset: int = 0,
                   separator: Optional[str] = None) -> "ConcatBundle":
        """Add *content*; when *original* is given, content starts at *offset* in it."""
        if original is not None and original[offset:offset + len(content)] != content:
            raise ValueError(f"content is not a slice of {filename} at offset {offset}")
        self._pieces.append(_Piece(content, filename, original, offset, separator))
        return self

    def add_snip(self, original: str, start: int, end: int, filename: str) -> "ConcatBundle":
        """Add ``original[start:end]`` mapped back to *filename*."""
        return self.add_source(original[start:end], filename=filename, original=original, offset=start)

    def append(self, text: str) -> "ConcatBundle":
        """Append unmapped text directly after the previous piece."""
        self._pieces.append(_Piece(text, None, None, 0, ""))
        return self

    def _separator_for(self, index: int, piece: _Piece) -> str:
        if index == 0:
            return ""
        return self.separator if piece.separator is None else piece.separator

    def to_string(self) -> str:
        return "".join(self._separator_for(i, p) + p.content for i, p in enumerate(self._pieces))

    def __str__(self) -> str:
        return self.to_string()

    def generate_map(self, file: Optional[str] = None, hires: bool = False,
                     include_content: bool = True) -> SourceMap:
        sources: List[str] = []
        contents: List[Optional[str]] = []
        index: Dict[str, int] = {}
        lines: List[List[Segment]] = [[]]
        gen_col = 0

        def advance_unmapped(text: str):
            nonlocal gen_col
            for ch in text:
                if ch == "\n":
                    lines.append([])
                    gen_col = 0
                else:
                    gen_col += 1

        for i, piece in enumerate(self._pieces):
            advance_unmapped(self._separator_for(i, piece))
            if piece.filename is None:
                advance_unmapped(piece.content)
                continue
            si = index.get(piece.filename)
            if si is None:
                si = index[piece.filename] = len(sources)
                sources.append(piece.filename)
                contents.append(piece.original if piece.original is not None else piece.content)
            if piece.original is not None:
                orig_line, orig_col = _position_of(piece.original, piece.offset)
            else:
                orig_line, orig_col = 0, 0
            line_start = True
            for ch in piece.content:
                if ch == "\n":
                    lines.append([])
                    gen_col = 0
                    orig_line += 1
                    orig_col = 0
                    line_start = True
                    continue
                if hires or line_start:
                    lines[-1].append((gen_col, si, orig_line, orig_col))
                line_start = False
                gen_col += 1
                orig_col += 1

        return SourceMap(
            mappings=lines,
            sources=sources,
            sources_content=contents if include_content else None,
            names=[],
            file=file,
        )
