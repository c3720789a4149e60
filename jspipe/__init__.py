"""jspipe: incremental JavaScript bundling, minification and sourcemap composition."""

import logging

try:
    from importlib.metadata import version as _pkg_version

    __version__ = _pkg_version("jspipe")
except Exception:
    __version__ = "0.0.0-dev"  # package metadata missing (source checkout)

log = logging.getLogger("jspipe")
log.addHandler(logging.NullHandler())  # Prevent "No handlers" warning at import
