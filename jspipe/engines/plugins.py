"""Transform plugins and resolve strategies handed to the bundling engine."""

from __future__ import annotations

from typing import Dict, List, Mapping, Optional, Sequence

from jspipe.engines.base import Resolution, ResolveStrategy, TransformPlugin


class DownlevelTransformPlugin(TransformPlugin):
    """Syntax downleveling applied to every module.

    *caller* distinguishes the minified and unminified transform presets;
    *defines* are the compile-time constants substituted while transforming.
    """

    name = "downlevel"

    def __init__(self, caller: str, enable_cache: bool = True,
                 defines: Optional[Mapping[str, str]] = None):
        if caller not in ("minified", "unminified"):
            raise ValueError(f"unknown transform caller {caller!r}")
        self.caller = caller
        self.enable_cache = enable_cache
        self.defines: Dict[str, str] = dict(defines or {})

    def cli_args(self) -> List[str]:
        args = [f"--define:{k}={v}" for k, v in sorted(self.defines.items())]
        if self.caller == "minified":
            args.append("--drop:debugger")
        return args

    def __repr__(self) -> str:
        return f"DownlevelTransformPlugin(caller={self.caller!r})"


class RemapDependencies(ResolveStrategy):
    """Redirects module requests through a remap table.

    A redirect to a module that is also declared external stays external.
    """

    name = "remap-dependencies"

    def __init__(self, remap: Mapping[str, str], external: Sequence[str] = ()):
        self._remap = dict(remap)
        self._external = frozenset(external)

    def resolve(self, request_path: str) -> Optional[Resolution]:
        target = self._remap.get(request_path)
        if not target:
            return None
        return Resolution(path=target, external=target in self._external)

    def known_requests(self) -> Sequence[str]:
        return tuple(self._remap)


class PassThrough(ResolveStrategy):
    name = "pass-through"

    def resolve(self, request_path: str) -> Optional[Resolution]:
        return None


def resolve_request(resolvers: Sequence[ResolveStrategy], request_path: str) -> Optional[Resolution]:
    """First match across *resolvers* in order."""
    for strategy in resolvers:
        hit = strategy.resolve(request_path)
        if hit is not None:
            return hit
    return None
