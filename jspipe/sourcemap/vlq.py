"""Base64 VLQ coding of sourcemap ``mappings`` strings.

Decoded mappings are a list of generated lines, each a list of segments.
A segment is a tuple of absolute values: ``(gen_col,)``,
``(gen_col, source, orig_line, orig_col)`` or the same plus ``name``.
"""

from __future__ import annotations

from typing import List, Sequence, Tuple

Segment = Tuple[int, ...]
Mappings = List[List[Segment]]

_B64 = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789+/"
_B64_INDEX = {c: i for i, c in enumerate(_B64)}

_SHIFT = 5
_CONTINUATION = 1 << _SHIFT
_MASK = _CONTINUATION - 1


def encode_value(value: int) -> str:
    vlq = (-value << 1) | 1 if value < 0 else value << 1
    out = []
    while True:
        digit = vlq & _MASK
        vlq >>= _SHIFT
        if vlq:
            digit |= _CONTINUATION
        out.append(_B64[digit])
        if not vlq:
            return "".join(out)


def _decode_segment(text: str) -> List[int]:
    values = []
    shift = 0
    acc = 0
    for ch in text:
        try:
            digit = _B64_INDEX[ch]
        except KeyError:
            raise ValueError(f"invalid base64 VLQ character {ch!r}") from None
        acc += (digit & _MASK) << shift
        if digit & _CONTINUATION:
            shift += _SHIFT
            continue
        negative = acc & 1
        acc >>= 1
        values.append(-acc if negative else acc)
        acc = shift = 0
    if shift:
        raise ValueError(f"truncated VLQ segment {text!r}")
    return values


def decode_mappings(mappings: str) -> Mappings:
    lines: Mappings = []
    source = orig_line = orig_col = name = 0
    for line_text in mappings.split(";"):
        line: List[Segment] = []
        gen_col = 0
        for seg_text in line_text.split(","):
            if not seg_text:
                continue
            fields = _decode_segment(seg_text)
            if len(fields) not in (1, 4, 5):
                raise ValueError(f"segment {seg_text!r} has {len(fields)} fields")
            gen_col += fields[0]
            if len(fields) == 1:
                line.append((gen_col,))
                continue
            source += fields[1]
            orig_line += fields[2]
            orig_col += fields[3]
            if len(fields) == 5:
                name += fields[4]
                line.append((gen_col, source, orig_line, orig_col, name))
            else:
                line.append((gen_col, source, orig_line, orig_col))
        line.sort(key=lambda s: s[0])
        lines.append(line)
    return lines


def encode_mappings(lines: Sequence[Sequence[Segment]]) -> str:
    out_lines = []
    source = orig_line = orig_col = name = 0
    for line in lines:
        gen_col = 0
        parts = []
        for seg in line:
            text = encode_value(seg[0] - gen_col)
            gen_col = seg[0]
            if len(seg) >= 4:
                text += encode_value(seg[1] - source)
                text += encode_value(seg[2] - orig_line)
                text += encode_value(seg[3] - orig_col)
                source, orig_line, orig_col = seg[1], seg[2], seg[3]
                if len(seg) == 5:
                    text += encode_value(seg[4] - name)
                    name = seg[4]
            parts.append(text)
        out_lines.append(",".join(parts))
    return ";".join(out_lines)
