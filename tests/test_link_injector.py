"""Test link_injector - Content Architect."""
from __future__ import annotations

import pytest

from content_architect.link_injector import (
    StaticWorksSource,
    extract_title_keyword,
    find_unlinked,
    inject_external_links,
    inject_internal_links,
    resolve_external_url,
    sort_recent,
)
from content_architect.models import PublishedWork


# ===================================================================
# Internal links
# ===================================================================

@pytest.mark.unit
class TestExtractTitleKeyword:

    def test_longest_non_stopword(self):
        assert extract_title_keyword("How to Grow Tomatoes") == "tomatoes"

    def test_stopwords_skipped(self):
        assert extract_title_keyword("The Ultimate Guide to Composting") == "composting"

    def test_short_words_ignored(self):
        assert extract_title_keyword("A to Z of it") == ""


@pytest.mark.unit
class TestFindUnlinked:

    def test_skips_existing_anchor(self):
        content = '<p><a href="/x">worm farming</a> and worm farming</p>'
        start, end = find_unlinked(content, "Worm Farming")
        assert start > content.index("</a>")
        assert content[start:end] == "worm farming"

    def test_skips_tag_attributes(self):
        assert find_unlinked('<img alt="worm farming"/><p>nothing</p>', "worm farming") is None


@pytest.mark.unit
class TestInjectInternalLinks:

    def test_links_matching_titles(self, published_works):
        content = "<p>Read about garden soil basics and Worm Farming today.</p>"
        result = inject_internal_links(content, published_works, max_links=3)
        assert '<a href="https://blog.example.com/worms">Worm Farming</a>' in result.content
        assert '<a href="https://blog.example.com/soil">garden soil basics</a>' in result.content
        assert result.links_added == 2
        assert [c.target_url for c in result.candidates] == [
            "https://blog.example.com/worms",
            "https://blog.example.com/soil",
        ]

    def test_keyword_fallback(self):
        works = [PublishedWork(title="The Ultimate Guide to Composting", url="https://blog.example.com/c")]
        result = inject_internal_links("<p>Home composting is easy.</p>", works)
        assert '<a href="https://blog.example.com/c">composting</a>' in result.content

    def test_one_link_per_work(self):
        works = [PublishedWork(title="Worm Farming", url="https://blog.example.com/worms")]
        content = "<p>Worm farming here. Worm farming there.</p>"
        result = inject_internal_links(content, works)
        assert result.content.count("<a ") == 1
        assert result.content.endswith("Worm farming there.</p>")

    def test_cap_respected(self, published_works):
        content = "<p>garden soil basics, worm farming, tumbler reviews</p>"
        result = inject_internal_links(content, published_works, max_links=1)
        assert result.links_added == 1
        assert "https://blog.example.com/worms" in result.content

    def test_zero_cap_is_noop(self, published_works):
        content = "<p>worm farming</p>"
        assert inject_internal_links(content, published_works, max_links=0).content == content

    def test_no_match_unchanged(self, published_works):
        content = "<p>Nothing relevant.</p>"
        result = inject_internal_links(content, published_works)
        assert result.content == content
        assert result.links_added == 0


@pytest.mark.unit
class TestWorksSource:

    def test_sort_recent(self, published_works):
        undated = PublishedWork(title="Old", url="https://blog.example.com/old")
        ordered = sort_recent([undated] + published_works)
        assert [w.title for w in ordered] == ["Worm Farming", "Tumbler Reviews", "Garden Soil Basics", "Old"]

    @pytest.mark.asyncio
    async def test_static_source_limit(self, published_works):
        works = await StaticWorksSource(published_works).recent_works(2)
        assert [w.title for w in works] == ["Worm Farming", "Tumbler Reviews"]


# ===================================================================
# External links
# ===================================================================

@pytest.mark.unit
class TestResolveExternalUrl:

    def test_wikipedia_trigger(self):
        assert resolve_external_url("history of composting") == "https://en.wikipedia.org/wiki/History_Of_Composting"

    def test_github_trigger(self):
        assert resolve_external_url("source code for requests") == "https://github.com/search?q=source+code+for+requests"

    def test_mdn_trigger(self):
        assert resolve_external_url("CSS grid layout") == "https://developer.mozilla.org/en-US/docs/css/grid/layout"

    def test_w3schools_trigger(self):
        assert resolve_external_url("python tutorial") == "https://www.w3schools.com/python_tutorial.asp"

    def test_domain_fallback(self):
        assert resolve_external_url("research on compost tumblers") == (
            "https://scholar.google.com/scholar?q=research+on+compost+tumblers"
        )

    def test_encyclopedia_fallback(self):
        assert resolve_external_url("compost tea") == "https://en.wikipedia.org/wiki/Compost_Tea"


@pytest.mark.unit
class TestInjectExternalLinks:

    def test_placeholders_replaced(self, sample_article):
        result = inject_external_links(sample_article, max_links=3)
        assert "[LINK" not in result.content
        assert result.links_added == 2
        assert (
            '<a href="https://en.wikipedia.org/wiki/History_Of_Composting" target="_blank" '
            'rel="noopener noreferrer">history of composting</a>'
        ) in result.content

    def test_cap_turns_extras_into_text(self, sample_article):
        result = inject_external_links(sample_article, max_links=1)
        assert result.links_added == 1
        assert "[LINK" not in result.content
        assert "small yards research on compost tumblers.</p>" in result.content

    def test_case_insensitive_marker(self):
        result = inject_external_links("<p>Soil [link: history of soil]</p>")
        assert result.links_added == 1
        assert "History_Of_Soil" in result.content

    def test_description_escaped(self):
        result = inject_external_links("<p>[LINK: history of R&D]</p>")
        assert ">history of R&amp;D</a>" in result.content

    def test_no_placeholders(self):
        result = inject_external_links("<p>plain</p>")
        assert result.content == "<p>plain</p>"
        assert result.candidates == []

    def test_five_placeholders_three_allowed(self):
        descriptions = [
            "history of composting",
            "github compost sensor",
            "soil science basics",
            "worm farming guide",
            "leaf mold research",
        ]
        content = "".join(f"<p>Point {i} [LINK: {d}]</p>" for i, d in enumerate(descriptions))
        result = inject_external_links(content, max_links=3)
        assert result.links_added == 3
        assert result.content.count("<a ") == 3
        assert "[LINK" not in result.content
        assert result.content.count("worm farming guide") == 1
        assert result.content.count("leaf mold research") == 1
        assert "<p>Point 3 worm farming guide</p>" in result.content
        assert "<p>Point 4 leaf mold research</p>" in result.content
        assert [c.anchor_text for c in result.candidates] == descriptions[:3]

    def test_empty_placeholders_removed(self):
        result = inject_external_links("<p>One[LINK:] two[LINK: ] three [LINK: history of tea]</p>")
        assert result.content.count("<a ") == 1
        assert "[LINK" not in result.content
        assert result.links_added == 1
        assert result.content.startswith("<p>One two three <a ")

    def test_empty_placeholders_do_not_use_cap(self):
        result = inject_external_links("<p>[LINK:][LINK: history of tea]</p>", max_links=1)
        assert result.links_added == 1
        assert "History_Of_Tea" in result.content
