"""Gemoji shortcode substitution (`:tada:` becomes the Unicode glyph)."""

import re

from pymdownx import gemoji_db

SHORTCODE_RE = re.compile(r":([a-z0-9_+\-]+):")


def lookup_emoji(code: str) -> str | None:
    """Return the Unicode emoji for a shortcode name, or None if unknown."""
    key = f":{code}:"
    key = gemoji_db.aliases.get(key, key)
    entry = gemoji_db.emoji.get(key)
    if entry is None:
        return None
    codepoints = entry.get("unicode_alt") or entry.get("unicode")
    if not codepoints:
        # Custom GitHub-only images such as :octocat:
        return None
    return "".join(chr(int(cp, 16)) for cp in codepoints.split("-"))


def rewrite_emojis(text: str) -> str:
    """Replace known shortcodes; unknown ones are left as written."""

    def replace(m: re.Match) -> str:
        return lookup_emoji(m.group(1)) or m.group(0)

    return SHORTCODE_RE.sub(replace, text)
