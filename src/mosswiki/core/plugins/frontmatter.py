"""YAML frontmatter parsing and metadata filters."""

from datetime import date, datetime, timezone
from typing import Any

import yaml

from mosswiki.core.exceptions import FrontmatterParseError
from mosswiki.core.models import Page, PageMetadata
from mosswiki.core.plugins.base import Filter, Transformer

DELIMITER = "---"


def split_frontmatter(content: str) -> tuple[str, str] | None:
    """Split content into (yaml_block, body).

    Returns None when the first line is not exactly the delimiter. An
    unterminated block swallows the rest of the content.
    """
    lines = content.splitlines()
    if not lines or lines[0] != DELIMITER:
        return None

    block: list[str] = []
    rest = iter(lines[1:])
    for line in rest:
        if line.strip() == DELIMITER:
            break
        block.append(line)
    return "\n".join(block), "\n".join(rest)


def as_datetime(value: Any) -> datetime | None:
    """Interpret an RFC3339 timestamp. YAML may have already parsed it."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.strip())
        except ValueError:
            return None
    else:
        # Bare dates carry no time of day and are not RFC3339 timestamps.
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def as_string_list(value: Any) -> list[str] | None:
    if not isinstance(value, list):
        return None
    return [v for v in value if isinstance(v, str)]


def _as_str(value: Any) -> str | None:
    return value if isinstance(value, str) else None


def _as_bool(value: Any) -> bool | None:
    return value if isinstance(value, bool) else None


def _as_int(value: Any) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value


def as_password(value: Any) -> str | None:
    """Keep any scalar password as text; YAML turns `1234` into an int."""
    if value is None:
        return None
    if isinstance(value, (dict, list)):
        raise TypeError(f"password must be a scalar, got {type(value).__name__}")
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def metadata_from_frontmatter(data: dict[str, Any]) -> PageMetadata:
    """Pick the known keys out of a raw frontmatter mapping.

    Values of the wrong type are ignored rather than rejected, except a
    password that is a mapping or list, which raises TypeError.
    """
    return PageMetadata(
        title=_as_str(data.get("title")),
        description=_as_str(data.get("description")),
        created=as_datetime(data.get("created")),
        updated=as_datetime(data.get("updated")),
        tags=as_string_list(data.get("tags")),
        word_count=_as_int(data.get("word_count")),
        encrypted=_as_bool(data.get("encrypted")),
        password=as_password(data.get("password")),
        draft=_as_bool(data.get("draft")),
        publish=_as_bool(data.get("publish")),
    )


def _plain(value: Any) -> Any:
    """Make YAML values safe to hand to templates and JSON encoders."""
    if isinstance(value, dict):
        return {str(k): _plain(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_plain(v) for v in value]
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


class FrontMatter(Transformer):
    """Strip a leading YAML block and populate page metadata from it."""

    def transform(self, page: Page) -> Page:
        parts = split_frontmatter(page.content)
        if parts is None:
            return page

        block, body = parts
        if block.strip():
            try:
                parsed = yaml.safe_load(block)
            except yaml.YAMLError as e:
                raise FrontmatterParseError(page.slug, str(e)) from e
            if parsed is None:
                parsed = {}
            if not isinstance(parsed, dict):
                raise FrontmatterParseError(
                    page.slug, f"expected a mapping, got {type(parsed).__name__}"
                )
            try:
                page.meta = metadata_from_frontmatter(parsed)
            except TypeError as e:
                raise FrontmatterParseError(page.slug, str(e)) from e
            page.frontmatter = _plain(parsed)
            if "password" in page.frontmatter:
                page.frontmatter["password"] = ""

        page.content = body
        return page


class DraftFilter(Filter):
    """Exclude pages marked `draft: true`."""

    name = "draft"

    def include(self, page: Page) -> bool:
        return page.meta.draft is not True


class ExplicitPublishFilter(Filter):
    """Only include pages that opt in with `publish: true`."""

    name = "explicit-publish"

    def include(self, page: Page) -> bool:
        return page.meta.publish is True
