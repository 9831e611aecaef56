"""Unit tests for frontmatter parsing, metadata filters and the plugin registry."""

from datetime import datetime, timezone

import pytest
import yaml

from mosswiki.core.exceptions import FrontmatterParseError, PageFilteredError
from mosswiki.core.models import Page
from mosswiki.core.plugins import PluginRegistry
from mosswiki.core.plugins.base import Transformer
from mosswiki.core.plugins.frontmatter import (
    DraftFilter,
    ExplicitPublishFilter,
    FrontMatter,
    as_datetime,
    split_frontmatter,
)
from mosswiki.core.plugins.markdown import MarkdownRenderer


def make_page(content: str, slug: str = "note") -> Page:
    return Page(slug=slug, source_path=f"{slug}.md", content=content)


# ============================================================
# Splitting
# ============================================================


class TestSplitFrontmatter:
    def test_no_delimiter(self):
        assert split_frontmatter("# Title\n---\nx") is None

    def test_delimiter_must_be_exact_first_line(self):
        assert split_frontmatter(" ---\ntitle: x\n---\n") is None
        assert split_frontmatter("--- \ntitle: x\n---\n") is None

    def test_closing_delimiter_may_be_padded(self):
        block, body = split_frontmatter("---\ntitle: x\n  ---  \nBody")
        assert block == "title: x"
        assert body == "Body"

    def test_unterminated_block(self):
        block, body = split_frontmatter("---\ntitle: x\nmore: y")
        assert block == "title: x\nmore: y"
        assert body == ""


# ============================================================
# FrontMatter transformer
# ============================================================


class TestFrontMatter:
    def test_no_frontmatter_passes_through(self):
        content = "# Just a heading\n\nSome text."
        page = FrontMatter().transform(make_page(content))
        assert page.content == content
        assert page.frontmatter == {}
        assert page.meta.model_dump(exclude_none=True) == {}

    def test_valid_frontmatter(self):
        content = "---\ntitle: Hello\ntags:\n  - python\n---\n# Body"
        page = FrontMatter().transform(make_page(content))
        assert page.meta.title == "Hello"
        assert page.meta.tags == ["python"]
        assert page.content == "# Body"

    def test_extra_keys_preserved_in_raw_mapping(self):
        content = "---\ntitle: Test\nstatus: draft\nauthor: alice\n---\nBody"
        page = FrontMatter().transform(make_page(content))
        assert page.frontmatter["status"] == "draft"
        assert page.frontmatter["author"] == "alice"
        assert page.content == "Body"

    def test_empty_block_strips_delimiters(self):
        page = FrontMatter().transform(make_page("---\n---\nBody text"))
        assert page.content == "Body text"
        assert page.meta.title is None

    def test_malformed_yaml_is_an_error(self):
        with pytest.raises(FrontmatterParseError):
            FrontMatter().transform(make_page("---\ntitle: [unclosed\n---\nBody"))

    def test_non_mapping_is_an_error(self):
        with pytest.raises(FrontmatterParseError):
            FrontMatter().transform(make_page("---\n- a\n- b\n---\nBody"))

    def test_timestamps(self):
        content = (
            "---\ncreated: 2024-03-01T10:00:00Z\n"
            "updated: '2024-03-02T12:30:00+02:00'\n---\nBody"
        )
        page = FrontMatter().transform(make_page(content))
        assert page.meta.created == datetime(2024, 3, 1, 10, 0, tzinfo=timezone.utc)
        assert page.meta.updated == datetime(2024, 3, 2, 10, 30, tzinfo=timezone.utc)

    def test_wrong_types_are_ignored(self):
        content = "---\ntitle: 42\ntags: solo\ndraft: maybe\ncreated: soon\n---\nBody"
        page = FrontMatter().transform(make_page(content))
        assert page.meta.title is None
        assert page.meta.tags is None
        assert page.meta.draft is None
        assert page.meta.created is None

    def test_non_string_tags_dropped(self):
        page = FrontMatter().transform(make_page("---\ntags: [a, 1, b]\n---\nx"))
        assert page.meta.tags == ["a", "b"]

    def test_structured_fields_round_trip(self):
        fields = {
            "title": "Round Trip",
            "description": "A page",
            "tags": ["a", "b"],
            "created": datetime(2023, 5, 6, 7, 8, 9, tzinfo=timezone.utc),
            "updated": datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc),
        }
        content = f"---\n{yaml.safe_dump(fields)}---\nBody"
        first = FrontMatter().transform(make_page(content))

        dumped = first.meta.model_dump(
            include={"title", "description", "tags", "created", "updated"}
        )
        second = FrontMatter().transform(make_page(f"---\n{yaml.safe_dump(dumped)}---\nBody"))
        assert second.meta == first.meta
        assert second.meta.model_dump(include=set(fields)) == fields


class TestPasswordField:
    @pytest.mark.parametrize(
        "raw, expected",
        [("1234", "1234"), ("true", "True"), ("12.5", "12.5"), ("'s3cret'", "s3cret")],
    )
    def test_scalars_kept_as_text(self, raw, expected):
        page = FrontMatter().transform(make_page(f"---\npassword: {raw}\n---\nBody"))
        assert page.meta.password == expected

    def test_raw_value_is_blanked(self):
        page = FrontMatter().transform(make_page("---\npassword: 1234\n---\nBody"))
        assert page.frontmatter["password"] == ""

    def test_null_means_unprotected(self):
        page = FrontMatter().transform(make_page("---\npassword:\n---\nBody"))
        assert page.meta.password is None

    def test_container_is_an_error(self):
        with pytest.raises(FrontmatterParseError):
            FrontMatter().transform(make_page("---\npassword: [a, b]\n---\nBody"))


class TestAsDatetime:
    def test_naive_assumed_utc(self):
        assert as_datetime("2024-01-01T00:00:00") == datetime(2024, 1, 1, tzinfo=timezone.utc)

    def test_bare_date_rejected(self):
        from datetime import date

        assert as_datetime(date(2024, 1, 1)) is None


# ============================================================
# Filters
# ============================================================


class TestFilters:
    def test_draft_true_excluded(self):
        page = FrontMatter().transform(make_page("---\ndraft: true\n---\nx"))
        assert DraftFilter().include(page) is False

    def test_draft_false_or_absent_included(self):
        assert DraftFilter().include(FrontMatter().transform(make_page("---\ndraft: false\n---\nx")))
        assert DraftFilter().include(FrontMatter().transform(make_page("no frontmatter")))

    def test_explicit_publish(self):
        published = FrontMatter().transform(make_page("---\npublish: true\n---\nx"))
        unmarked = FrontMatter().transform(make_page("x"))
        assert ExplicitPublishFilter().include(published)
        assert not ExplicitPublishFilter().include(unmarked)


# ============================================================
# Registry ordering
# ============================================================


class RecordingStage(Transformer):
    def __init__(self):
        self.calls = 0

    def transform(self, page):
        self.calls += 1
        return page


class TestPluginRegistry:
    def test_frontmatter_must_come_first(self):
        with pytest.raises(ValueError):
            PluginRegistry([MarkdownRenderer(), FrontMatter()])

    def test_filtered_page_skips_later_stages(self):
        stage = RecordingStage()
        registry = PluginRegistry([FrontMatter(), stage], [DraftFilter()])
        with pytest.raises(PageFilteredError) as exc_info:
            registry.transform(make_page("---\ndraft: true\n---\nx", slug="secret"))
        assert exc_info.value.slug == "secret"
        assert exc_info.value.filter_name == "draft"
        assert stage.calls == 0

    def test_filters_see_parsed_metadata(self):
        seen = []

        class Spy(DraftFilter):
            def include(self, page):
                seen.append(page.meta.title)
                return True

        registry = PluginRegistry([FrontMatter()], [Spy()])
        registry.transform(make_page("---\ntitle: Parsed\n---\nx"))
        assert seen == ["Parsed"]

    def test_full_chain(self):
        registry = PluginRegistry.bare_minimum()
        page = registry.transform(make_page("---\ntitle: Hi\n---\n**bold**"))
        assert page.meta.title == "Hi"
        assert "<strong>bold</strong>" in page.html
