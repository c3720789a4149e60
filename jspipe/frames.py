"""Copies third-party frame HTML into ``dist.3p``."""

from __future__ import annotations

import asyncio
import os
import re
import shutil
import time
from pathlib import Path
from typing import Any, Mapping, NamedTuple, Optional, Sequence

from jspipe import log
from jspipe.config import paths as _paths
from jspipe.config.flags import BuildFlags
from jspipe.core.watch import WatchSubsystem
from jspipe.utils.log import end_build_step

_INTEGRATION_REF = re.compile(r"\./integration\.js")


class Frame(NamedTuple):
    max: str
    min: str


THIRD_PARTY_FRAMES = (Frame("3p/frame.max.html", "frame.html"),)


def frame_dest_dir(minify: bool, flags: BuildFlags, dist_dir: Optional[Path] = None) -> Path:
    dist_dir = Path(dist_dir or _paths.DIST_3P_DIR)
    return dist_dir / (flags.version if minify else "current")


def integration_url(flags: BuildFlags) -> str:
    # Tests serve frames without a versioned path.
    if flags.fortesting:
        return "./f.js"
    return f"https://{flags.hostname_3p}/{flags.version}/f.js"


def bootstrap_frame(frame: Frame, minify: bool, flags: BuildFlags,
                    dist_dir: Optional[Path] = None) -> Path:
    """Write one frame; returns the written path."""
    dist_dir = Path(dist_dir or _paths.DIST_3P_DIR)
    dest_dir = frame_dest_dir(minify, flags, dist_dir)
    dest_dir.mkdir(parents=True, exist_ok=True)
    if not minify:
        dest = dest_dir / os.path.basename(frame.max)
        shutil.copyfile(frame.max, dest)
        return dest

    url = integration_url(flags)
    html = Path(frame.max).read_text(encoding="utf-8")
    dest = dest_dir / frame.min
    dest.write_text(_INTEGRATION_REF.sub(lambda _: url, html), encoding="utf-8")

    latest = dist_dir / "current-min"
    if latest.is_symlink() or latest.exists():
        latest.unlink()
    latest.symlink_to(f"./{flags.version}", target_is_directory=True)
    return dest


async def bootstrap_third_party_frames(frames: Sequence[Frame] = THIRD_PARTY_FRAMES,
                                       options: Optional[Mapping[str, Any]] = None,
                                       flags: Optional[BuildFlags] = None,
                                       watch: Optional[WatchSubsystem] = None,
                                       dist_dir: Optional[Path] = None) -> None:
    options = dict(options or {})
    flags = flags or BuildFlags()
    minify = bool(options.get("minify"))
    start_time = time.monotonic()

    if options.get("watch"):
        if watch is None:
            raise ValueError("watching frames needs a WatchSubsystem")
        for frame in frames:
            async def rebuild(frame: Frame = frame) -> None:
                await asyncio.to_thread(bootstrap_frame, frame, minify, flags, dist_dir)
                log.info(f"[WATCH] Rebuilt frame {frame.min}")

            watch.register(os.path.abspath(frame.max), [frame.max], rebuild)

    await asyncio.gather(*(
        asyncio.to_thread(bootstrap_frame, frame, minify, flags, dist_dir) for frame in frames
    ))
    end_build_step("Bootstrapped 3p frames into",
                   f"dist.3p/{flags.version if minify else 'current'}/", start_time)
