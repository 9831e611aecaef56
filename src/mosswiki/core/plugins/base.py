"""Plugin interfaces for the render pipeline."""

from abc import ABC, abstractmethod

from mosswiki.core.models import Page


class Transformer(ABC):
    """A pipeline stage mapping a Page to a Page."""

    @abstractmethod
    def transform(self, page: Page) -> Page:
        """Transform the page. Raise a MossWikiError to abort the render."""
        ...


class Filter(ABC):
    """A predicate over parsed page metadata."""

    name: str = "filter"

    @abstractmethod
    def include(self, page: Page) -> bool:
        """Return False to exclude the page from rendering and listings."""
        ...
