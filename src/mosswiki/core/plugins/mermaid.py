"""Rewrite ```mermaid fences into the markup the client mermaid script expands."""

import html
import re

MERMAID_START_RE = re.compile(r"^```mermaid\s*$", re.IGNORECASE)
FENCE_END_RE = re.compile(r"^```+\s*$")

EXPAND_BUTTON = (
    '<button class="expand-button" aria-label="Expand mermaid diagram" '
    'data-view-component="true">'
    '<svg width="16" height="16" viewBox="0 0 16 16" fill="currentColor">'
    '<path fill-rule="evenodd" d="M3.72 3.72a.75.75 0 011.06 1.06L2.56 7h10.88l'
    "-2.22-2.22a.75.75 0 011.06-1.06l3.5 3.5a.75.75 0 010 1.06l-3.5 3.5a.75.75 0 11"
    "-1.06-1.06l2.22-2.22H2.56l2.22 2.22a.75.75 0 11-1.06 1.06l-3.5-3.5a.75.75 0 010"
    '-1.06l3.5-3.5z"></path></svg></button>'
)

CONTAINER = (
    '<div id="mermaid-container" role="dialog"><div id="mermaid-space">'
    '<div class="mermaid-content"></div></div></div>'
)


def mermaid_block(source: str) -> str:
    escaped = html.escape(source)
    return (
        '<pre class="mermaid-block">'
        + EXPAND_BUTTON
        + f'<code class="mermaid" data-clipboard="{escaped}">{escaped}</code>'
        + CONTAINER
        + "</pre>"
    )


def rewrite_mermaid(text: str) -> str:
    """Replace mermaid fences. An unterminated fence runs to end of input."""
    out: list[str] = []
    lines = text.splitlines()
    i = 0
    while i < len(lines):
        if not MERMAID_START_RE.match(lines[i]):
            out.append(lines[i])
            i += 1
            continue

        i += 1
        body: list[str] = []
        while i < len(lines):
            if FENCE_END_RE.match(lines[i]):
                i += 1
                break
            body.append(lines[i] + "\n")
            i += 1

        if out and out[-1].strip():
            out.append("")
        out.append(mermaid_block("".join(body)))
        out.append("")

    result = "\n".join(out)
    return result + "\n" if result else result
