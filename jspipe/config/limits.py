"""Numeric limits, tokens and tuned defaults."""

from __future__ import annotations

import os as _os

# Seconds a burst of filesystem events is collapsed into before one rebuild.
WATCH_DEBOUNCE_DELAY = float(_os.environ.get("JSPIPE_WATCH_DEBOUNCE", "1.0"))
WATCH_POLL_INTERVAL = float(_os.environ.get("JSPIPE_WATCH_POLL", "0.25"))

# Settled on this count by incrementing it until there was no more effect on
# minification quality.
COMPRESS_PASSES = 3

PRIVATE_PROPERTY_REGEX = "_PRIVATE_$"

CONTENTS_PLACEHOLDER = "<%= contents %>"

# Joins auxiliary bundles spliced into a wrapper.
MODULE_SEPARATOR = ";"

ESBUILD_COMPILATION = "ESBUILD_COMPILATION"

DEFAULT_HOSTNAME_3P = "3p.jspipe.dev"
