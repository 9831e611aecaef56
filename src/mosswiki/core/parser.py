"""Markdown parser with wiki link support."""

import re
from typing import Callable
from xml.etree.ElementTree import Element

from markdown import Markdown
from markdown.extensions import Extension
from markdown.inlinepatterns import InlineProcessor, SimpleTagInlineProcessor


# Pattern for wiki links: [[Target]] or [[Target|Display Text]]
WIKI_LINK_PATTERN = r"\[\[([^\]|]+)(?:\|([^\]]+))?\]\]"

# Pattern for strikethrough: ~~text~~
# Group 2 must contain the text (SimpleTagInlineProcessor expectation)
STRIKETHROUGH_PATTERN = r"(~~)(.*?)~~"


def wiki_target_to_slug(target: str) -> str:
    """Convert a wiki link target to a slug."""
    target = target.strip().split("#", 1)[0].strip()
    target = target.removesuffix(".md")
    return target.replace(" ", "-")


class StrikethroughExtension(Extension):
    """Markdown extension for ~~strikethrough~~ text."""

    def extendMarkdown(self, md: Markdown) -> None:
        """Add strikethrough pattern to markdown parser."""
        md.inlinePatterns.register(
            SimpleTagInlineProcessor(STRIKETHROUGH_PATTERN, "del"),
            "strikethrough",
            50,
        )


class WikiLinkInlineProcessor(InlineProcessor):
    """Inline processor for wiki links."""

    def __init__(self, pattern: str, md: Markdown, page_exists: Callable[[str], bool]):
        super().__init__(pattern, md)
        self.page_exists = page_exists

    def handleMatch(self, m: re.Match, data: str) -> tuple[Element | None, int, int]:
        """Convert wiki link match to HTML anchor element."""
        target = m.group(1).strip()
        display_text = m.group(2)
        if display_text:
            display_text = display_text.strip()
        else:
            display_text = target

        slug = wiki_target_to_slug(target)
        el = Element("a")
        el.text = display_text
        el.set("href", f"/{slug}")
        el.set("data-slug", slug)

        if self.page_exists(slug):
            el.set("class", "internal wiki-link")
        else:
            el.set("class", "internal wiki-link wiki-link-missing")

        return el, m.start(0), m.end(0)


class WikiLinkExtension(Extension):
    """Markdown extension for wiki links."""

    def __init__(self, page_exists: Callable[[str], bool] | None = None, **kwargs):
        self.page_exists = page_exists or (lambda x: True)
        super().__init__(**kwargs)

    def extendMarkdown(self, md: Markdown) -> None:
        """Add wiki link pattern to markdown parser."""
        wiki_link_processor = WikiLinkInlineProcessor(
            WIKI_LINK_PATTERN,
            md,
            self.page_exists,
        )
        md.inlinePatterns.register(wiki_link_processor, "wiki_link", 75)


def create_parser(page_exists: Callable[[str], bool] | None = None) -> Markdown:
    """Create a Markdown parser with wiki link support.

    Raw HTML in the source passes through untouched, which the callout and
    mermaid rewrites rely on.

    Args:
        page_exists: Callback to check if a slug exists.
                    Used to style missing page links differently.

    Returns:
        Configured Markdown parser instance.
    """
    return Markdown(
        extensions=[
            # Core formatting
            "extra",  # Includes: abbreviations, attr_list, def_list, fenced_code, footnotes, md_in_html, tables
            "sane_lists",  # Better list handling
            "toc",  # Heading anchors
            # PyMdown extensions
            "pymdownx.tasklist",  # Task lists with checkboxes
            "pymdownx.magiclink",  # Bare URL autolinks
            # Custom extensions
            StrikethroughExtension(),  # ~~strikethrough~~
            WikiLinkExtension(page_exists=page_exists),  # [[WikiLinks]]
        ]
    )


def render_markdown(
    content: str,
    page_exists: Callable[[str], bool] | None = None,
) -> str:
    """Convert markdown (with wiki links) to HTML.

    A fresh parser is built per call; Markdown instances are not thread safe.
    """
    parser = create_parser(page_exists)
    return parser.convert(content)


def extract_wiki_links(content: str) -> list[str]:
    """Extract the slugs of all wiki links in content."""
    matches = re.findall(WIKI_LINK_PATTERN, content)
    return [wiki_target_to_slug(m[0]) for m in matches]


# Pattern for markdown links: [text](target), not images
MARKDOWN_LINK_PATTERN = r"(?<!!)\[[^\]]*\]\(([^)\s]+)[^)]*\)"


def clean_link_target(target: str) -> str:
    """Normalize a link target to the slug it points at.

    `./notes/page.md#intro` and `notes/page/index.html` both become
    `notes/page`; a link to the site root becomes `.`.
    """
    cleaned = target.split("#", 1)[0].strip().strip(".").strip("/")
    for suffix in (".md", ".html"):
        if cleaned.endswith(suffix):
            cleaned = cleaned[: -len(suffix)]
            break
    cleaned = cleaned.removesuffix("/index")
    return cleaned or "."


def extract_links(content: str) -> list[str]:
    """Slugs of all internal links in content, sorted and de-duplicated.

    Covers wiki links and relative markdown links; absolute http(s) URLs
    are skipped.
    """
    links = {clean_link_target(slug) for slug in extract_wiki_links(content) if slug}
    for target in re.findall(MARKDOWN_LINK_PATTERN, content):
        if target.startswith(("http://", "https://", "mailto:", "#")):
            continue
        links.add(clean_link_target(target))
    return sorted(links)
