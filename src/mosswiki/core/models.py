"""Data models for MossWiki."""

from datetime import datetime
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

NO_CONTENT_HTML = "<p>No content</p>"


class PageMetadata(BaseModel):
    """Structured subset of a page's frontmatter."""

    title: str | None = None
    description: str | None = None
    created: datetime | None = None
    updated: datetime | None = None
    tags: list[str] | None = None
    word_count: int | None = None
    encrypted: bool | None = None
    password: str | None = None
    draft: bool | None = None
    publish: bool | None = None


class Page(BaseModel):
    """A page travelling through the transformer chain.

    Created once per render and owned by that render only.
    """

    slug: str
    source_path: Path
    content: str
    html: str | None = None
    frontmatter: dict[str, Any] = Field(default_factory=dict)
    meta: PageMetadata = Field(default_factory=PageMetadata)


class RenderedPage(BaseModel):
    """Final render result handed to the web layer."""

    slug: str
    html: str
    frontmatter: dict[str, Any] = Field(default_factory=dict)
    meta: PageMetadata = Field(default_factory=PageMetadata)
    cached: bool | None = None

    @classmethod
    def from_page(cls, page: Page, cached: bool | None = None) -> "RenderedPage":
        return cls(
            slug=page.slug,
            html=page.html if page.html is not None else NO_CONTENT_HTML,
            frontmatter=page.frontmatter,
            meta=page.meta,
            cached=cached,
        )

    @property
    def title(self) -> str:
        """Return title from metadata or derive from the slug."""
        if self.meta.title:
            return self.meta.title
        return humanize_segment(self.slug)

    def context(self) -> dict[str, Any]:
        """Flattened view for template rendering."""
        data = self.meta.model_dump(exclude_none=True, exclude={"password"})
        data.update(
            slug=self.slug,
            title=self.title,
            html=self.html,
            frontmatter={k: v for k, v in self.frontmatter.items() if k != "password"},
        )
        if self.cached is not None:
            data["cached"] = self.cached
        return data


class ContentIndexEntry(BaseModel):
    """One page in the site-wide content index."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    slug: str
    file_path: str
    title: str | None = None
    links: list[str] | None = None
    tags: list[str] | None = None


class Backlink(BaseModel):
    """A page that links to the page being viewed."""

    title: str
    slug: str
    href: str


def humanize_segment(slug: str) -> str:
    """Readable title from the last slug segment."""
    return slug.rsplit("/", 1)[-1].replace("-", " ").replace("_", " ")


def slug_from_path(path: Path, content_root: Path) -> str:
    """Derive a slug from a markdown file path relative to the content root."""
    try:
        rel = path.relative_to(content_root)
    except ValueError:
        return "index"
    return rel.with_suffix("").as_posix()
