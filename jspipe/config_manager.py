"""Named JSON configs for jspipe (``build``, ``tools``, ...).

A value is looked up, in order, in CLI overrides, ``JSPIPE_<NAME>_<KEY>``
environment variables, ``$JSPIPE_HOME/<name>.json``, then the caller's default.
"""

import json
import logging
import os
import tempfile
from typing import Any, Dict, Iterable

from jspipe.config.paths import DATA_DIR

log = logging.getLogger(__name__)

ENV_PREFIX = "JSPIPE"

# Runtime CLI overrides keyed "<name>.<key>" (populated by entry points)
_cli_overrides: Dict[str, Any] = {}


def set_cli_overrides(overrides: dict) -> None:
    """Set CLI argument overrides (called at startup)."""
    _cli_overrides.update(overrides)


def clear_cli_overrides() -> None:
    _cli_overrides.clear()


def env_key(name: str, key: str) -> str:
    return f"{ENV_PREFIX}_{name.upper()}_{key.upper()}"


def _parse_env_value(raw: str) -> Any:
    # Only JSON-looking values are parsed; JSPIPE_BUILD_CONFIG=canary stays a string.
    first = raw[:1]
    if first in ("{", "[", '"') or first.lstrip("-").isdigit() or raw in ("true", "false", "null"):
        try:
            return json.loads(raw)
        except ValueError:
            pass
    return raw


class ConfigManager:
    BASE_DIR = DATA_DIR

    @classmethod
    def path(cls, name: str):
        return cls.BASE_DIR / f"{name}.json"

    @classmethod
    def load(cls, name: str, defaults: dict = None) -> dict:
        """Contents of ``<name>.json`` over *defaults*; unreadable files count as empty."""
        path = cls.path(name)
        config: dict = {}
        if path.exists():
            try:
                with open(path, encoding="utf-8") as f:
                    config = json.load(f)
            except json.JSONDecodeError as e:
                log.warning("[CONFIG] Corrupt JSON in %s: %s; using defaults", path, e)
            except OSError as e:
                log.warning("[CONFIG] Cannot read %s: %s; using defaults", path, e)
        return {**(defaults or {}), **config}

    @classmethod
    def save(cls, name: str, config: dict) -> None:
        """Write ``<name>.json`` atomically (tempfile + fsync + rename)."""
        cls.BASE_DIR.mkdir(parents=True, exist_ok=True)
        tmp_fd, tmp_path = tempfile.mkstemp(dir=cls.BASE_DIR, suffix=".tmp")
        try:
            with os.fdopen(tmp_fd, "w", encoding="utf-8") as f:
                json.dump(config, f, indent=2, ensure_ascii=False)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, cls.path(name))
        except Exception:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise

    @classmethod
    def resolve(cls, name: str, key: str, default=None, _file: dict = None):
        cli_key = f"{name}.{key}"
        if cli_key in _cli_overrides:
            return _cli_overrides[cli_key]

        raw = os.environ.get(env_key(name, key))
        if raw is not None:
            return _parse_env_value(raw)

        config = cls.load(name) if _file is None else _file
        return config.get(key, default)

    @classmethod
    def resolve_section(cls, name: str, keys: Iterable[str]) -> Dict[str, Any]:
        """Resolved values of *keys* in one config, omitting keys set nowhere."""
        file_config = cls.load(name)
        missing = object()
        resolved = {}
        for key in keys:
            value = cls.resolve(name, key, missing, _file=file_config)
            if value is not missing and value is not None:
                resolved[key] = value
        return resolved

    @classmethod
    def set(cls, name: str, key: str, value) -> None:
        config = cls.load(name)
        config[key] = value
        cls.save(name, config)

    @classmethod
    def exists(cls, name: str) -> bool:
        return cls.path(name).exists()
