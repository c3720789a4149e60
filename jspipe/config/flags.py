"""Process-wide build flags (the switches a build task is started with)."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from jspipe.config import limits as _limits
from jspipe.config import paths as _paths
from jspipe.config_manager import ConfigManager
from jspipe import log


class BuildFlags(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    esm: bool = Field(False, description="Emit ECMAScript-module outputs (.mjs, es6 target)")
    full_sourcemaps: bool = Field(False, description="Keep sourcesContent in final maps")
    pretty_print: bool = False
    define_experiment_constant: Optional[str] = None
    fortesting: bool = False
    config: str = Field("prod", pattern="^(prod|canary)$")
    version: str = "0000000000000"
    hostname_3p: str = _limits.DEFAULT_HOSTNAME_3P
    source_root_url: str = ""
    defines: Dict[str, str] = Field(default_factory=dict)

    @field_validator("version", mode="before")
    @classmethod
    def _version_as_text(cls, v):
        # JSPIPE_BUILD_VERSION=2101010000000 arrives JSON-parsed as an int.
        return str(v) if isinstance(v, int) and not isinstance(v, bool) else v

    @property
    def use_legacy_compiler(self) -> bool:
        """Minified builds go through the legacy optimizer unless opted out."""
        return self.define_experiment_constant != _limits.ESBUILD_COMPILATION

    @classmethod
    def load(cls, **overrides) -> "BuildFlags":
        """Resolve every flag through ConfigManager, then apply *overrides*."""
        values = ConfigManager.resolve_section("build", [k for k in cls.model_fields if k != "defines"])
        values["defines"] = load_experiment_defines()
        values.update(overrides)
        return cls.model_validate(values)


def load_experiment_defines(path: Optional[Path] = None) -> Dict[str, str]:
    """Read the compile-time experiment constants, as esbuild ``--define`` values."""
    path = path or _paths.EXPERIMENTS_FILE
    if not path.exists():
        return {}
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        log.warning(f"[CONFIG] Cannot read experiment constants {path}: {e}")
        return {}
    return {k: v if isinstance(v, str) else json.dumps(v) for k, v in raw.items()}
