"""Render pipeline plugins."""

from typing import Callable

from mosswiki.core.exceptions import PageFilteredError
from mosswiki.core.models import Page
from mosswiki.core.plugins.base import Filter, Transformer
from mosswiki.core.plugins.encryption import EncryptContent, EncryptionCache
from mosswiki.core.plugins.frontmatter import DraftFilter, ExplicitPublishFilter, FrontMatter
from mosswiki.core.plugins.markdown import MarkdownRenderer

__all__ = [
    "DraftFilter",
    "EncryptContent",
    "EncryptionCache",
    "ExplicitPublishFilter",
    "Filter",
    "FrontMatter",
    "MarkdownRenderer",
    "PluginRegistry",
    "Transformer",
]


class PluginRegistry:
    """Ordered transformer chain with a filter gate after frontmatter parsing.

    The first transformer must be FrontMatter: filters only ever see parsed
    metadata, and a rejected page never reaches the later stages.
    """

    def __init__(self, transformers: list[Transformer], filters: list[Filter] | None = None):
        if not transformers or not isinstance(transformers[0], FrontMatter):
            raise ValueError("FrontMatter must be the first transformer")
        self.transformers = transformers
        self.filters = filters or []

    @classmethod
    def bare_minimum(
        cls,
        page_exists: Callable[[str], bool] | None = None,
        encryption_cache: EncryptionCache | None = None,
    ) -> "PluginRegistry":
        return cls(
            [
                FrontMatter(),
                MarkdownRenderer(page_exists=page_exists),
                EncryptContent(cache=encryption_cache),
            ]
        )

    def with_filters(self, filters: list[Filter]) -> "PluginRegistry":
        self.filters = filters
        return self

    def rejecting_filter(self, page: Page) -> Filter | None:
        """Return the first filter that excludes the page, if any."""
        for page_filter in self.filters:
            if not page_filter.include(page):
                return page_filter
        return None

    def allow(self, page: Page) -> bool:
        return self.rejecting_filter(page) is None

    def transform(self, page: Page) -> Page:
        """Run the full chain.

        Raises:
            PageFilteredError: A filter excluded the page.
            MossWikiError: A stage failed.
        """
        frontmatter, *later = self.transformers
        page = frontmatter.transform(page)

        rejected = self.rejecting_filter(page)
        if rejected is not None:
            raise PageFilteredError(page.slug, rejected.name)

        for transformer in later:
            page = transformer.transform(page)
        return page
