"""Markdown to HTML stage."""

from typing import Callable

from mosswiki.core.models import Page
from mosswiki.core.parser import render_markdown
from mosswiki.core.plugins.base import Transformer
from mosswiki.core.plugins.callouts import rewrite_callouts
from mosswiki.core.plugins.emoji import rewrite_emojis
from mosswiki.core.plugins.mermaid import rewrite_mermaid


class MarkdownRenderer(Transformer):
    """Render page content to HTML.

    Source rewrites run in a fixed order before conversion: callouts,
    emoji shortcodes, then mermaid fences.
    """

    def __init__(self, page_exists: Callable[[str], bool] | None = None):
        self.page_exists = page_exists

    def render(self, text: str) -> str:
        return render_markdown(text, page_exists=self.page_exists)

    def transform(self, page: Page) -> Page:
        source = rewrite_callouts(page.content, self.render)
        source = rewrite_emojis(source)
        source = rewrite_mermaid(source)
        page.html = self.render(source)
        return page
