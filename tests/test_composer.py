"""Test composer - Content Architect."""
from __future__ import annotations

import pytest

from content_architect.composer import (
    DEFAULT_CONTENT_PROMPT,
    FORMATTING_REQUIREMENTS,
    ContentComposer,
    build_content_prompt,
    clean_markdown_artifacts,
    outline_as_text,
    substitute_placeholders,
)
from content_architect.config import ArchitectConfig
from content_architect.errors import ProviderError, TransportError
from content_architect.text_providers import NullResearcher
from tests.conftest import FakeImageSearch, FakeResearcher, FakeTextGenerator

OUTLINE = ["Introduction", "Choosing a Bin", "Conclusion"]


# ===================================================================
# Prompt building
# ===================================================================

@pytest.mark.unit
class TestPromptBuilding:

    def test_outline_as_text(self):
        assert outline_as_text(OUTLINE) == "1. Introduction\n2. Choosing a Bin\n3. Conclusion"

    def test_both_placeholder_forms_substituted(self):
        template = "A {primary_keyword} / B {$primary_keyword} / C {outline}"
        prompt = substitute_placeholders(template, {"primary_keyword": "tea", "outline": "1. X"})
        assert prompt == "A tea / B tea / C 1. X"

    def test_unknown_placeholders_left_alone(self):
        assert substitute_placeholders("{other}", {"primary_keyword": "tea"}) == "{other}"

    def test_blank_template_uses_default(self):
        prompt = build_content_prompt("   ", {"primary_keyword": "tea"})
        assert prompt.startswith(DEFAULT_CONTENT_PROMPT.split("{")[0])
        assert '"tea"' in prompt

    def test_formatting_requirements_always_appended(self):
        prompt = build_content_prompt("Custom {primary_keyword}", {"primary_keyword": "tea"})
        assert prompt == "Custom tea" + FORMATTING_REQUIREMENTS

    def test_default_prompt_has_every_placeholder(self):
        for name in ("primary_keyword", "outline", "research_context", "formatted_images"):
            assert "{" + name + "}" in DEFAULT_CONTENT_PROMPT


@pytest.mark.unit
class TestCleanMarkdownArtifacts:

    def test_fenced_html_unwrapped(self):
        assert clean_markdown_artifacts("```html\n<p>Hello</p>\n```") == "<p>Hello</p>"

    def test_stray_backticks_removed(self):
        assert clean_markdown_artifacts("<p>use `pip`</p>") == "<p>use pip</p>"

    def test_only_fences_becomes_empty(self):
        assert clean_markdown_artifacts("```\n```") == ""


# ===================================================================
# ContentComposer
# ===================================================================

def _composer(config, text, images=None, researcher=None):
    return ContentComposer(config, text, images or FakeImageSearch(), researcher or NullResearcher())


@pytest.mark.unit
class TestContentComposer:

    @pytest.mark.asyncio
    async def test_compose_happy_path(self, config):
        text = FakeTextGenerator(["```html\n<h2>Introduction</h2><p>Body</p>\n```"])
        result = await _composer(config, text).compose(OUTLINE, "home composting")
        assert result.ok
        composition = result.value
        assert composition.content == "<h2>Introduction</h2><p>Body</p>"
        assert composition.warnings == []
        assert composition.research_context == ""
        assert "Available images:" in composition.formatted_images
        assert "2. Choosing a Bin" in text.prompts[0]
        assert text.prompts[0].endswith(FORMATTING_REQUIREMENTS)

    @pytest.mark.asyncio
    async def test_research_context_wrapped(self, config):
        text = FakeTextGenerator(["<p>Body</p>"])
        researcher = FakeResearcher(text="Compost needs air.")
        result = await _composer(config, text, researcher=researcher).compose(OUTLINE, "home composting")
        assert "Based on current research:\nCompost needs air." in result.value.research_context
        assert "Compost needs air." in text.prompts[0]
        assert "home composting" in researcher.queries[0]

    @pytest.mark.asyncio
    async def test_research_failure_is_warning(self, config):
        text = FakeTextGenerator(["<p>Body</p>"])
        researcher = FakeResearcher(error=TransportError("timed out", source="perplexity"))
        result = await _composer(config, text, researcher=researcher).compose(OUTLINE, "home composting")
        assert result.ok
        assert result.value.warnings == ["Research failed: perplexity: timed out"]

    @pytest.mark.asyncio
    async def test_image_listing_failure_is_warning(self, config):
        text = FakeTextGenerator(["<p>Body</p>"])
        images = FakeImageSearch(failing={"home composting"})
        result = await _composer(config, text, images=images).compose(OUTLINE, "home composting")
        assert result.ok
        assert result.value.formatted_images == "No images available"
        assert result.value.warnings[0].startswith("Prompt image search failed:")

    @pytest.mark.asyncio
    async def test_text_failure_is_fatal(self, config):
        text = FakeTextGenerator([ProviderError("quota exceeded")])
        result = await _composer(config, text).compose(OUTLINE, "home composting")
        assert not result.ok
        assert result.error_kind == "provider"

    @pytest.mark.asyncio
    async def test_empty_article_is_failure(self, config):
        text = FakeTextGenerator(["```\n```"])
        result = await _composer(config, text).compose(OUTLINE, "home composting")
        assert not result.ok
        assert result.error.source == "composer"

    @pytest.mark.asyncio
    async def test_custom_prompt_used(self, tmp_path):
        config = ArchitectConfig(
            custom_content_prompt="Write about {$primary_keyword} following:\n{outline}",
            media_dir=str(tmp_path),
        )
        text = FakeTextGenerator(["<p>Body</p>"])
        await _composer(config, text).compose(OUTLINE, "home composting")
        assert text.prompts[0].startswith("Write about home composting following:\n1. Introduction")
        assert "Act as an expert web content creator" not in text.prompts[0]
