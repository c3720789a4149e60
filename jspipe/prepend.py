"""Build-time runtime configuration injected at the top of a bundle."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

from jspipe import log
from jspipe.config import paths as _paths
from jspipe.config.flags import BuildFlags
from jspipe.targets import TargetOptions


def config_path(flags: BuildFlags, configs_dir: Optional[Path] = None) -> Path:
    return Path(configs_dir or _paths.GLOBAL_CONFIGS_DIR) / f"{flags.config}-config.json"


def runtime_config_banner(dest_filename: str, options: TargetOptions, flags: BuildFlags,
                          configs_dir: Optional[Path] = None) -> str:
    """Text assigning the runtime config, or ``""`` for targets that take none."""
    if not options.include_runtime_config:
        return ""
    path = config_path(flags, configs_dir)
    try:
        config = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        log.warning(f"[CONFIG] No {flags.config} runtime config at {path}; {dest_filename} gets none")
        return ""
    if flags.fortesting:
        config["test"] = True
    config.setdefault("v", flags.version)
    payload = json.dumps(config, separators=(",", ":"), sort_keys=True)
    return f"self.JSPIPE_CONFIG||(self.JSPIPE_CONFIG={payload});/*JSPIPE_CONFIG*/"
