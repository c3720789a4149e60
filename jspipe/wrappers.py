"""Wrapper templates a bundle is embedded in.

Each template holds exactly one ``<%= contents %>`` placeholder.
"""

from __future__ import annotations

from jspipe.config.limits import CONTENTS_PLACEHOLDER
from jspipe.exceptions import ConfigError

NONE = CONTENTS_PLACEHOLDER

MAIN_BINARY = (
    "var global=self;self.JSPIPE=self.JSPIPE||[];"
    "try{(function(_){\n" + CONTENTS_PLACEHOLDER + "\n})(self.JSPIPE._=self.JSPIPE._||{})}"
    "catch(e){setTimeout(function(){var s=document.body.style;s.opacity=1;"
    "s.visibility='visible';s.animation='none';s.WebkitAnimation='none;'},1000);throw e};"
)


def extension(name: str, version: str, latest: bool = True, priority: str = "") -> str:
    """Wrapper registering an extension bundle with the runtime's queue."""
    priority_entry = f'p:"{priority}",' if priority else ""
    return (
        "(self.JSPIPE=self.JSPIPE||[]).push({"
        f'n:"{name}",{priority_entry}ev:"{version}",l:{"true" if latest else "false"},'
        "f:(function(JSPIPE,_){\n" + CONTENTS_PLACEHOLDER + "\n})});"
    )


def split(wrapper: str = None):
    """Split a wrapper into ``(banner, footer)`` around its placeholder."""
    wrapper = wrapper if wrapper is not None else NONE
    start = wrapper.find(CONTENTS_PLACEHOLDER)
    if start < 0:
        raise ConfigError("wrapper template has no contents placeholder")
    return wrapper[:start], wrapper[start + len(CONTENTS_PLACEHOLDER):]
