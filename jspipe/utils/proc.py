"""Spawning external command-line tools from the event loop."""

from __future__ import annotations

import asyncio
import os
import shutil
from pathlib import Path
from typing import Optional, Sequence, Tuple

from jspipe import log
from jspipe.config import paths as _paths
from jspipe.config_manager import ConfigManager
from jspipe.exceptions import EngineError


def find_node_bin(name: str, root: Optional[Path] = None) -> str:
    """Locate a node tool: ``tools.<name>`` config, ``node_modules/.bin``, then PATH."""
    configured = ConfigManager.resolve("tools", name)
    if configured:
        return str(configured)
    bin_name = f"{name}.cmd" if os.name == "nt" else name
    local = (root or _paths.ROOT_DIR) / "node_modules" / ".bin" / bin_name
    if local.exists():
        return str(local)
    return shutil.which(name) or name


async def run_tool(argv: Sequence[str], tool: Optional[str] = None,
                   cwd: Optional[str] = None) -> Tuple[str, str]:
    """Run *argv* to completion, returning ``(stdout, stderr)``.

    Raises EngineError when the tool cannot be started or exits non-zero.
    """
    tool = tool or Path(argv[0]).name
    log.debug(f"[PROC] {' '.join(str(a) for a in argv)[:500]}")
    try:
        proc = await asyncio.create_subprocess_exec(
            *[str(a) for a in argv],
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=cwd,
        )
    except FileNotFoundError as e:
        raise EngineError(tool, 127, f"{argv[0]} not found") from e
    out, err = await proc.communicate()
    stdout = out.decode("utf-8", errors="replace")
    stderr = err.decode("utf-8", errors="replace")
    if proc.returncode != 0:
        raise EngineError(tool, proc.returncode, stderr or stdout)
    return stdout, stderr
