"""Output file naming: ESM suffix variants, alias names, destination names."""

from __future__ import annotations

import re

from jspipe.targets import TargetOptions

_JS_SUFFIX = re.compile(r"\.js$")


def to_esm_name(name: str) -> str:
    return _JS_SUFFIX.sub(".mjs", name)


def maybe_to_npm_esm_name(name: str, esm: bool) -> str:
    return _JS_SUFFIX.sub(".module.js", name) if esm else name


def maybe_to_esm_name(name: str, esm: bool) -> str:
    # Npm esm names occur at an earlier stage.
    if ".module" in name:
        return name
    return to_esm_name(name) if esm else name


def dest_filename(src_filename: str, options: TargetOptions, esm: bool) -> str:
    """Name of the code file a build of *src_filename* writes."""
    if options.minify:
        if not options.minified_name:
            raise ValueError(f"minified build of {src_filename} has no minified_name")
        filename = options.minified_name
    else:
        filename = options.to_name or src_filename
    if options.npm:
        filename = maybe_to_npm_esm_name(filename, esm)
    return maybe_to_esm_name(filename, esm)


def alias_filename(alias_name: str, minify: bool, esm: bool) -> str:
    """Name of the copy written next to the output under the target's alias.

    Unminified aliases get the ``.max.js`` suffix.
    """
    if not minify:
        alias_name = _JS_SUFFIX.sub(".max.js", alias_name)
    return maybe_to_esm_name(alias_name, esm)


def map_filename(filename: str) -> str:
    return f"{filename}.map"
