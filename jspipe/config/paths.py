"""Filesystem path constants."""

from __future__ import annotations

import os as _os
from pathlib import Path

ROOT_DIR = Path(_os.environ.get("JSPIPE_ROOT", "") or _os.getcwd())
DATA_DIR = Path(_os.environ.get("JSPIPE_HOME", "") or Path.home() / ".jspipe")
TARGETS_FILE = ROOT_DIR / "build-system" / "targets.json"
GLOBAL_CONFIGS_DIR = ROOT_DIR / "build-system" / "global-configs"
EXPERIMENTS_FILE = GLOBAL_CONFIGS_DIR / "experiments-const.json"
DIST_3P_DIR = ROOT_DIR / "dist.3p"
