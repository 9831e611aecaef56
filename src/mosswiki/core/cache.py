"""On-disk page cache, freshness checks and stamped in-memory caches.

A cached artifact is fresh when its mtime is at least the mtime of its
source and of every auxiliary dependency. Dependencies that are content
hashes rather than files are turned into mtimes through marker files whose
mtime changes only when the stored hash does.
"""

import logging
import os
import sys
import tempfile
import threading
from collections.abc import Iterable
from pathlib import Path
from typing import Callable, Generic, TypeVar

logger = logging.getLogger(__name__)

EPOCH = 0.0
PACKAGE_ROOT = Path(__file__).resolve().parent.parent

T = TypeVar("T")


def cache_path(cache_root: Path, slug: str) -> Path:
    """Return `<cache_root>/<slug-dir>/<slug-basename>.html`."""
    slug_path = Path(slug)
    return cache_root / slug_path.parent / f"{slug_path.name or slug}.html"


def ensure_cache_root(cache_root: Path) -> None:
    cache_root.mkdir(parents=True, exist_ok=True)


def file_mtime(path: Path) -> float:
    """Modification time of a file, or EPOCH if it cannot be read."""
    try:
        return path.stat().st_mtime
    except OSError:
        return EPOCH


def is_fresh(source_path: Path, cached_path: Path, auxiliary_mtimes: Iterable[float] = ()) -> bool:
    """Whether a cached artifact can be reused.

    True iff both files exist and the cache mtime is not older than the
    source or any auxiliary dependency.
    """
    try:
        source_mtime = source_path.stat().st_mtime
        cache_mtime = cached_path.stat().st_mtime
    except OSError:
        return False
    newest_dependency = max(auxiliary_mtimes, default=EPOCH)
    return cache_mtime >= source_mtime and cache_mtime >= newest_dependency


def atomic_write(path: Path, text: str) -> None:
    """Replace a file's content without exposing a partial write."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def read_cache(path: Path) -> str:
    return path.read_text(encoding="utf-8")


def write_cache(path: Path, html: str) -> None:
    atomic_write(path, html)


def newest_mtime(directory: Path, suffixes: Iterable[str] | None = None, recursive: bool = True) -> float:
    """Newest mtime among files under a directory, optionally by suffix.

    A missing directory yields EPOCH.
    """
    if not directory.is_dir():
        return EPOCH
    wanted = set(suffixes) if suffixes is not None else None
    candidates = directory.rglob("*") if recursive else directory.iterdir()
    newest = EPOCH
    for path in candidates:
        if wanted is not None and path.suffix not in wanted:
            continue
        try:
            stat = path.stat()
        except OSError:
            continue
        if path.is_file() and stat.st_mtime > newest:
            newest = stat.st_mtime
    return newest


def package_mtime() -> float:
    """Newest mtime of the installed code, so a redeploy busts every cache.

    Covers this package's modules and, when frozen, the executable itself.
    """
    newest = newest_mtime(PACKAGE_ROOT, {".py"})
    if getattr(sys, "frozen", False):
        newest = max(newest, file_mtime(Path(sys.executable)))
    return newest


def hash_marker_path(cache_root: Path, name: str) -> Path:
    return cache_root / f".{name}_hash"


def hash_marker_mtime(cache_root: Path, name: str, digest: str) -> float:
    """Record a content hash in a marker file and return the marker's mtime.

    The marker is rewritten only when the stored hash differs, so its mtime
    is the moment that hash value last changed. Concurrent writers store the
    same content, so an atomic replace is enough.
    """
    marker = hash_marker_path(cache_root, name)
    try:
        existing = marker.read_text(encoding="utf-8").strip()
    except FileNotFoundError:
        existing = None
    if existing != digest:
        logger.info("Dependency %s changed, writing marker %s", name, marker)
        atomic_write(marker, digest)
    return marker.stat().st_mtime


class StampedCache(Generic[T]):
    """Single-value cache whose stores never move backwards in freshness.

    Each value carries the stamp (newest source mtime) it was built from. A
    lookup hits when the stored stamp is at least the current one; a store
    only replaces the value when its stamp is at least the stored stamp, so
    a slow build of older sources cannot clobber a newer one.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._value: T | None = None
        self._stamp: float | None = None

    @property
    def stamp(self) -> float | None:
        with self._lock:
            return self._stamp

    def get(self, current_stamp: float) -> T | None:
        with self._lock:
            if self._stamp is not None and self._stamp >= current_stamp:
                return self._value
            return None

    def put(self, value: T, stamp: float) -> T:
        """Store value unless a fresher one is already cached.

        Returns whichever value the cache holds afterwards.
        """
        with self._lock:
            if self._stamp is None or stamp >= self._stamp:
                self._value = value
                self._stamp = stamp
            return self._value  # type: ignore[return-value]

    def get_or_build(self, current_stamp: float, build: Callable[[], tuple[T, float]]) -> T:
        """Return the cached value if fresh, otherwise build and store it.

        The build runs outside the lock.
        """
        hit = self.get(current_stamp)
        if hit is not None:
            return hit
        value, stamp = build()
        return self.put(value, stamp)

    def clear(self) -> None:
        with self._lock:
            self._value = None
            self._stamp = None
