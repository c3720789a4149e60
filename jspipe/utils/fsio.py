"""Output writes: code and sourcemap land together or not at all."""

from __future__ import annotations

import asyncio
import os
import shutil
import tempfile
from pathlib import Path
from typing import List

from jspipe.naming import map_filename


def _stage(path: Path, text: str) -> str:
    fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    with os.fdopen(fd, "w", encoding="utf-8") as f:
        f.write(text)
    return tmp


def write_pair(dest_file: str, code: str, smap: str) -> None:
    """Write ``dest_file`` and ``dest_file.map``.

    Both files are staged before either is moved into place; a failure while
    staging leaves any previous pair untouched.
    """
    dest = Path(dest_file)
    dest.parent.mkdir(parents=True, exist_ok=True)
    staged: List[str] = []
    try:
        staged.append(_stage(dest, code))
        staged.append(_stage(Path(map_filename(str(dest))), smap))
    except Exception:
        for tmp in staged:
            try:
                os.unlink(tmp)
            except OSError:
                pass
        raise
    os.replace(staged[0], dest)
    os.replace(staged[1], map_filename(str(dest)))


async def output_pair(dest_file: str, code: str, smap: str) -> None:
    await asyncio.to_thread(write_pair, dest_file, code, smap)


def copy_file(src: str, dst: str) -> None:
    Path(dst).parent.mkdir(parents=True, exist_ok=True)
    shutil.copyfile(src, dst)
