"""Exceptions raised by the render pipeline."""


class MossWikiError(Exception):
    """Base class for render pipeline errors."""


class PageNotFoundError(MossWikiError):
    """No servable source exists for the slug (missing, empty or ignored)."""

    def __init__(self, slug: str, reason: str = "missing markdown"):
        self.slug = slug
        self.reason = reason
        super().__init__(f"{reason} for slug {slug}")


class PageFilteredError(MossWikiError):
    """A filter excluded the page. Batch callers skip it instead of failing."""

    def __init__(self, slug: str, filter_name: str):
        self.slug = slug
        self.filter_name = filter_name
        super().__init__(f"page filtered out by {filter_name}: {slug}")


class FrontmatterParseError(MossWikiError):
    """The frontmatter block is not a valid YAML mapping."""

    def __init__(self, slug: str, detail: str):
        self.slug = slug
        super().__init__(f"parsing frontmatter for {slug}: {detail}")


class EncryptionError(MossWikiError):
    """Encrypting a protected page failed."""
