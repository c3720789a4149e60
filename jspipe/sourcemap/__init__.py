"""Sourcemap decoding, composition and generation."""

from jspipe.sourcemap.composer import compose, get_source_root, massage  # noqa: F401
from jspipe.sourcemap.concat import ConcatBundle  # noqa: F401
from jspipe.sourcemap.model import SourceMap  # noqa: F401
