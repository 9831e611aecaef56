"""Render engine: resolves slugs, runs the plugin chain and manages the page cache."""

import json
import logging
import os
from pathlib import Path

from mosswiki.config import Settings, theme_hash
from mosswiki.core import cache
from mosswiki.core.exceptions import (
    FrontmatterParseError,
    PageFilteredError,
    PageNotFoundError,
)
from mosswiki.core.models import (
    Backlink,
    ContentIndexEntry,
    Page,
    RenderedPage,
    humanize_segment,
    slug_from_path,
)
from mosswiki.core.parser import extract_links
from mosswiki.core.plugins import (
    DraftFilter,
    EncryptionCache,
    ExplicitPublishFilter,
    Filter,
    PluginRegistry,
)
from mosswiki.core.styles import STYLE_SUFFIXES

logger = logging.getLogger(__name__)

CONTENT_INDEX_NAME = "contentIndex.json"


def default_filters(settings: Settings) -> list[Filter]:
    filters: list[Filter] = [DraftFilter()]
    if settings.explicit_publish:
        filters.append(ExplicitPublishFilter())
    return filters


def backlink_targets(slug: str) -> set[str]:
    """Link targets that resolve to the page at slug."""
    targets = {slug}
    if slug.endswith("/index"):
        targets.add(slug.removesuffix("/index"))
    if slug == "index":
        targets.add(".")
    return targets


class Engine:
    """Renders markdown pages on demand with an mtime-validated disk cache.

    Every render re-reads the source and runs the whole plugin chain so the
    metadata always reflects the current file; a fresh cache entry only
    replaces the rendered HTML.
    """

    def __init__(
        self,
        settings: Settings,
        registry: PluginRegistry | None = None,
        encryption_cache: EncryptionCache | None = None,
    ):
        self.settings = settings
        self.content_root = Path(settings.content_dir).resolve()
        self.cache_root = Path(settings.cache_dir).resolve()
        self.ignore_patterns = set(settings.ignore_patterns)
        if registry is None:
            registry = PluginRegistry.bare_minimum(
                page_exists=self.page_exists,
                encryption_cache=encryption_cache,
            ).with_filters(default_filters(settings))
        self.registry = registry
        self._index_cache: cache.StampedCache[dict[str, ContentIndexEntry]] = cache.StampedCache()
        cache.ensure_cache_root(self.cache_root)

    # ---------- path resolution ----------

    def source_path_for(self, slug: str) -> Path:
        path = self.content_root / slug
        if path.suffix != ".md":
            path = path.with_name(path.name + ".md")
        return path

    def cache_path_for(self, slug: str) -> Path:
        return cache.cache_path(self.cache_root, slug)

    def is_ignored_path(self, path: Path) -> bool:
        """True if any segment of the path below the content root is ignored.

        Paths outside the content root count as ignored.
        """
        try:
            rel = Path(os.path.normpath(path)).relative_to(self.content_root)
        except ValueError:
            return True
        return any(part in self.ignore_patterns for part in rel.parts)

    def is_ignored_slug(self, slug: str) -> bool:
        return self.is_ignored_path(self.source_path_for(slug))

    def page_exists(self, slug: str) -> bool:
        """Check if a source markdown file exists for the slug.

        Cached HTML without a source is treated as missing.
        """
        if self.is_ignored_slug(slug):
            return False
        return self.source_path_for(slug).is_file()

    # ---------- freshness ----------

    def dependency_mtimes(self) -> dict[str, float]:
        """Auxiliary stamps every cached page must be at least as new as."""
        try:
            theme_mtime = cache.hash_marker_mtime(
                self.cache_root, "theme", theme_hash(self.settings.theme)
            )
        except OSError:
            logger.warning("Could not update theme hash marker", exc_info=True)
            theme_mtime = cache.EPOCH
        return {
            "styles": cache.newest_mtime(Path(self.settings.styles_dir), STYLE_SUFFIXES),
            "package": cache.package_mtime(),
            "config": cache.file_mtime(Path(self.settings.config_file)),
            "theme": theme_mtime,
        }

    def cache_is_fresh(self, slug: str) -> bool:
        source_path = self.source_path_for(slug)
        cache_path = self.cache_path_for(slug)
        return cache.is_fresh(source_path, cache_path, self.dependency_mtimes().values())

    # ---------- rendering ----------

    def load_page(self, slug: str, path: Path) -> Page:
        """Read the source file for a slug.

        Raises:
            PageNotFoundError: Ignored slug, missing file or blank content.
            OSError: The file exists but could not be read.
        """
        if self.is_ignored_slug(slug):
            raise PageNotFoundError(slug, "slug is ignored by configuration")
        if not path.is_file():
            raise PageNotFoundError(slug, "missing markdown")

        content = path.read_text(encoding="utf-8")
        if not content.strip():
            raise PageNotFoundError(slug, "empty markdown")
        return Page(slug=slug, source_path=path, content=content)

    def render_page(self, slug: str) -> RenderedPage:
        """Render a page, reusing cached HTML when it is still fresh.

        Raises:
            PageNotFoundError: No servable source for the slug.
            PageFilteredError: A filter (e.g. drafts) excluded the page.
            MossWikiError: Frontmatter or encryption failures.
        """
        if self.is_ignored_slug(slug):
            raise PageNotFoundError(slug, "slug is ignored by configuration")

        source_path = self.source_path_for(slug)
        cache_path = self.cache_path_for(slug)
        use_cache = self.cache_is_fresh(slug)

        page = self.load_page(slug, source_path)
        page = self.registry.transform(page)

        if use_cache:
            try:
                page.html = cache.read_cache(cache_path)
                logger.debug("Cache hit for %s", slug)
            except OSError:
                logger.warning("Failed to read cache for %s", slug, exc_info=True)
                use_cache = False

        rendered = RenderedPage.from_page(page, cached=use_cache)

        if not use_cache:
            try:
                cache.write_cache(cache_path, rendered.html)
            except OSError:
                logger.warning("Failed to write cache for %s", slug, exc_info=True)

        return rendered

    # ---------- batch ----------

    def iter_source_files(self):
        """Yield markdown files under the content root, skipping ignored paths."""
        for dirpath, dirnames, filenames in os.walk(self.content_root):
            base = Path(dirpath)
            dirnames[:] = sorted(d for d in dirnames if not self.is_ignored_path(base / d))
            for filename in sorted(filenames):
                path = base / filename
                if path.suffix == ".md" and not self.is_ignored_path(path):
                    yield path

    def prebuild_all(self) -> list[str]:
        """Render every page into the cache and return the rendered slugs.

        Filtered pages are skipped. A page with broken frontmatter is logged
        and skipped without affecting its siblings; any other error aborts
        the batch. The content index is rewritten afterwards.
        """
        slugs = []
        for path in self.iter_source_files():
            slug = slug_from_path(path, self.content_root)
            try:
                self.render_page(slug)
            except PageFilteredError:
                logger.debug("Skipping filtered page %s", slug)
                continue
            except PageNotFoundError:
                logger.debug("Skipping empty page %s", slug)
                continue
            except FrontmatterParseError:
                logger.exception("Skipping page with invalid frontmatter: %s", slug)
                continue
            slugs.append(slug)
        logger.info("Prebuilt %d pages into %s", len(slugs), self.cache_root)

        try:
            self.write_content_index()
        except OSError:
            logger.warning("Failed to write content index", exc_info=True)
        return slugs

    def cached_slugs(self) -> list[str]:
        """List slugs that currently have a cached HTML file."""
        slugs = []
        for path in sorted(self.cache_root.rglob("*.html")):
            rel = path.relative_to(self.cache_root)
            if any(part.startswith(".") for part in rel.parts):
                continue
            slugs.append(rel.with_suffix("").as_posix() or "index")
        return slugs

    # ---------- content index ----------

    def content_index_path(self) -> Path:
        return self.cache_root / CONTENT_INDEX_NAME

    def index_entry(self, path: Path) -> ContentIndexEntry | None:
        """Index one source file from its frontmatter alone.

        Returns None for blank pages and pages the filters exclude.
        """
        content = path.read_text(encoding="utf-8")
        if not content.strip():
            return None

        slug = slug_from_path(path, self.content_root)
        page = self.registry.transformers[0].transform(
            Page(slug=slug, source_path=path, content=content)
        )
        if not self.registry.allow(page):
            return None

        links = extract_links(page.content)
        return ContentIndexEntry(
            slug=slug,
            file_path=path.relative_to(self.content_root).as_posix(),
            title=page.meta.title or humanize_segment(slug.removesuffix("/index")),
            links=links or None,
            tags=page.meta.tags,
        )

    def build_content_index(self) -> dict[str, ContentIndexEntry]:
        """Index every servable page, keyed and sorted by slug."""
        entries: dict[str, ContentIndexEntry] = {}
        for path in self.iter_source_files():
            try:
                entry = self.index_entry(path)
            except FrontmatterParseError:
                logger.exception("Leaving page with invalid frontmatter out of the index: %s", path)
                continue
            if entry is not None:
                entries[entry.slug] = entry
        return dict(sorted(entries.items()))

    def content_stamp(self) -> float:
        """Newest mtime across the content tree, directories included.

        Directory mtimes move when a page is added, removed or renamed.
        """
        newest = cache.file_mtime(self.content_root)
        for dirpath, dirnames, filenames in os.walk(self.content_root):
            base = Path(dirpath)
            for name in (*dirnames, *filenames):
                newest = max(newest, cache.file_mtime(base / name))
        return newest

    def content_index(self) -> dict[str, ContentIndexEntry]:
        """The content index, rebuilt only when the content tree changes."""

        def build():
            stamp = self.content_stamp()
            return self.build_content_index(), stamp

        return self._index_cache.get_or_build(self.content_stamp(), build)

    def write_content_index(self, entries: dict[str, ContentIndexEntry] | None = None) -> Path:
        if entries is None:
            entries = self.content_index()
        data = {
            slug: entry.model_dump(by_alias=True, exclude_none=True)
            for slug, entry in entries.items()
        }
        path = self.content_index_path()
        cache.atomic_write(path, json.dumps(data, ensure_ascii=False))
        logger.debug("Wrote content index with %d entries to %s", len(data), path)
        return path

    def backlinks(
        self,
        slug: str,
        index: dict[str, ContentIndexEntry] | None = None,
    ) -> list[Backlink]:
        """Pages that link to slug, sorted by title."""
        if index is None:
            index = self.content_index()
        targets = backlink_targets(slug)

        items = []
        for source_slug, entry in index.items():
            if source_slug == slug or not entry.links:
                continue
            if targets.isdisjoint(entry.links):
                continue
            shown = source_slug.removesuffix("/index")
            href = "/" if shown == "index" else f"/{shown}"
            items.append(Backlink(title=entry.title or humanize_segment(shown), slug=shown, href=href))
        items.sort(key=lambda item: item.title.casefold())
        return items
