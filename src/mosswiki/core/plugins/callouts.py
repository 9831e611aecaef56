"""Obsidian-style callout blocks.

    > [!warning]- Optional title
    > Body in *markdown*

becomes a raw HTML block that the markdown stage passes through.
"""

import html
import re
from typing import Callable

CALLOUT_RE = re.compile(
    r"^\s*>\s*\[!(?P<kind>[\w-]+)(?:\|(?P<meta>[^\]]+))?\](?P<collapse>[+-]?)"
    r"(?:\s+(?P<title>.*))?$",
    re.IGNORECASE,
)

CALLOUT_ALIASES = {
    "note": "note",
    "abstract": "abstract",
    "summary": "abstract",
    "tldr": "abstract",
    "info": "info",
    "todo": "todo",
    "tip": "tip",
    "hint": "tip",
    "important": "tip",
    "success": "success",
    "check": "success",
    "done": "success",
    "question": "question",
    "help": "question",
    "faq": "question",
    "warning": "warning",
    "attention": "warning",
    "caution": "warning",
    "failure": "failure",
    "missing": "failure",
    "fail": "failure",
    "danger": "danger",
    "error": "danger",
    "bug": "bug",
    "example": "example",
    "quote": "quote",
    "cite": "quote",
}


def canonical_kind(kind: str) -> str:
    key = kind.lower()
    return CALLOUT_ALIASES.get(key, key)


def _default_title(kind: str) -> str:
    return kind[:1].upper() + kind[1:] if kind else "Note"


def _unwrap_paragraph(fragment: str) -> str:
    fragment = fragment.strip()
    if fragment.startswith("<p>") and fragment.endswith("</p>") and fragment.count("<p>") == 1:
        return fragment[3:-4]
    return fragment


def _render_callout(match: re.Match, body_md: str, render: Callable[[str], str]) -> str:
    kind_raw = match.group("kind")
    kind = canonical_kind(kind_raw)
    meta = (match.group("meta") or "").strip()
    collapse = match.group("collapse") or ""
    title = (match.group("title") or "").strip() or _default_title(kind_raw.lower())

    collapsible = collapse in ("+", "-")
    collapsed = collapse == "-"

    classes = ["callout", kind]
    if collapsible:
        classes.append("is-collapsible")
    if collapsed:
        classes.append("is-collapsed")

    parts = [
        f'<div class="{" ".join(classes)}" data-callout="{html.escape(kind)}" '
        f'data-callout-fold="{"true" if collapsed else "false"}" '
        f'data-callout-metadata="{html.escape(meta)}">',
        '<div class="callout-title">',
        '<div class="callout-icon"></div>',
        f'<div class="callout-title-inner">{_unwrap_paragraph(render(title))}</div>',
    ]
    if collapsible:
        parts.append('<div class="fold-callout-icon"></div>')
    parts.append("</div>")
    parts.append('<div class="callout-content"><div class="callout-content-inner">')
    parts.append(render(body_md))
    parts.append("</div></div></div>")
    return "".join(parts)


def rewrite_callouts(text: str, render: Callable[[str], str]) -> str:
    """Replace callout blockquotes with HTML.

    Args:
        text: Markdown source.
        render: Converts a markdown fragment (title or body) to HTML.
    """
    out: list[str] = []
    lines = text.splitlines()
    i = 0
    while i < len(lines):
        match = CALLOUT_RE.match(lines[i])
        if match is None:
            out.append(lines[i])
            i += 1
            continue

        i += 1
        body: list[str] = []
        while i < len(lines) and lines[i].lstrip().startswith(">"):
            body.append(lines[i].lstrip().lstrip(">").lstrip(" "))
            i += 1

        # Raw HTML blocks need blank lines around them to stay unwrapped.
        if out and out[-1].strip():
            out.append("")
        out.append(_render_callout(match, "\n".join(body) + "\n", render))
        out.append("")

    result = "\n".join(out)
    return result + "\n" if result else result
