"""Inline client script bundles, rebuilt when their source directories change."""

import logging
from enum import Enum
from pathlib import Path

from mosswiki.core.cache import StampedCache, newest_mtime

logger = logging.getLogger(__name__)


class ScriptKind(str, Enum):
    ENCRYPTED_NOTE = "encrypted-note"
    MERMAID = "mermaid"
    CALLOUTS = "callouts"

    @property
    def filename(self) -> str:
        return f"{self.value}.inline.js"


def needed_scripts(html: str, encrypted: bool = False) -> set[ScriptKind]:
    """Work out which inline scripts a rendered page uses."""
    needs: set[ScriptKind] = set()
    if encrypted or 'class="encrypted-note"' in html:
        needs.add(ScriptKind.ENCRYPTED_NOTE)
    if 'class="mermaid"' in html:
        needs.add(ScriptKind.MERMAID)
    if 'class="callout' in html:
        needs.add(ScriptKind.CALLOUTS)
    return needs


class BundleCache:
    """Compiled script per ScriptKind, keyed by one directory-wide stamp.

    The stamp is the newest file mtime across `source_dirs` (not recursive).
    Kinds without a source file are simply absent from the bundle set.
    """

    def __init__(self, scripts_dir: Path, extra_dirs: list[Path] | None = None):
        self.scripts_dir = Path(scripts_dir)
        self.source_dirs = [self.scripts_dir, *(extra_dirs or [])]
        self._cache: StampedCache[dict[ScriptKind, str]] = StampedCache()

    def newest_source_mtime(self) -> float:
        return max(newest_mtime(d, recursive=False) for d in self.source_dirs)

    def compile(self, path: Path) -> str:
        """Produce the inline form of one script.

        Scripts are shipped ready to inline; compilation is a read.
        """
        return path.read_text(encoding="utf-8").strip()

    def build_all(self) -> tuple[dict[ScriptKind, str], float]:
        # Stamp first: an edit landing mid-build leaves the result stale.
        stamp = self.newest_source_mtime()
        bundles: dict[ScriptKind, str] = {}
        for kind in ScriptKind:
            path = self.scripts_dir / kind.filename
            if not path.is_file():
                logger.debug("No source for %s script at %s", kind.value, path)
                continue
            bundles[kind] = self.compile(path)
        return bundles, stamp

    def bundles(self) -> dict[ScriptKind, str]:
        return self._cache.get_or_build(self.newest_source_mtime(), self.build_all)

    def inline_scripts(self, needs: set[ScriptKind]) -> dict[str, str]:
        """Return script source for each needed kind that exists.

        Build failures are logged and yield no scripts.
        """
        try:
            bundles = self.bundles()
        except OSError:
            logger.exception("Failed to build inline scripts")
            return {}
        return {kind.value: bundles[kind] for kind in needs if kind in bundles}
