"""Pre-built third-party scripts that must run inside a target's wrapper."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence

from jspipe.config import paths as _paths

# Source filename → pre-built files executed ahead of the module body.
AUXILIARY_BUNDLE_MAP: Dict[str, List[str]] = {
    "amp-inputmask.js": ["third_party/inputmask/bundle.js"],
    "amp-date-picker.js": ["third_party/react-dates/bundle.js"],
    "amp-shadow-dom-polyfill.js": [
        "node_modules/@webcomponents/webcomponentsjs/bundles/webcomponents-sd.install.js",
    ],
}


class AuxiliaryBundles:
    """Lookup of auxiliary files per source filename, resolved against *root*."""

    def __init__(self, table: Optional[Mapping[str, Sequence[str]]] = None,
                 root: Optional[Path] = None):
        self._table = {k: list(v) for k, v in (AUXILIARY_BUNDLE_MAP if table is None else table).items()}
        self._root = Path(root) if root is not None else _paths.ROOT_DIR

    def files_for(self, src_filename: str) -> List[str]:
        """Table entries for *src_filename* as given (used as map source names)."""
        return list(self._table.get(src_filename, []))

    def path(self, name: str) -> Path:
        return self._root / name

    def has(self, src_filename: str) -> bool:
        return bool(self._table.get(src_filename))

    def read(self, name: str) -> str:
        return self.path(name).read_text(encoding="utf-8")

    async def compiled_content(self, src_filename: str) -> str:
        """Joined content of the auxiliary files, or ``""`` when there are none."""
        files = self.files_for(src_filename)
        if not files:
            return ""
        contents = await asyncio.gather(*(asyncio.to_thread(self.read, f) for f in files))
        return "\n".join(contents)
