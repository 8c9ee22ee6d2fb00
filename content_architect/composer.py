"""
Content composition for Content Architect.

Builds the article-generation prompt from the configured custom template or
the built-in default, substitutes ``{name}`` / ``{$name}`` placeholders,
always appends the formatting requirements block, calls the text capability
for the full HTML body and strips known formatting artifacts.

Placeholders:
    {primary_keyword}    the topic
    {research_context}   research capability output, or "" when unconfigured
    {formatted_images}   listing of candidate images from one exploratory search
    {outline}            numbered outline headings

Generated HTML is not re-validated for tag balance; malformed markup from the
generator passes through unchanged.
"""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from content_architect.config import ArchitectConfig
from content_architect.errors import CapabilityResult, ProviderError
from content_architect.image_providers import ImageSearchProvider, format_images_for_prompt
from content_architect.text_providers import Researcher, TextGenerator

logger = logging.getLogger("content_architect.composer")

MAX_TOKENS_CONTENT = 3000
CONTENT_TEMPERATURE = 0.7
PROMPT_IMAGE_COUNT = 3

DEFAULT_CONTENT_PROMPT = """\
Act as an expert web content creator and SEO specialist. Write a polished, comprehensive, \
well-structured blog article about "{primary_keyword}", using the research context below \
where it is available.

1. Structure & HTML Formatting
- Use <h2> for primary section titles and <h3> for sub-section titles.
- Break the content into short, easy-to-read paragraphs using <p> tags.
- Convert lists of items, such as benefits or challenges, into <ul> and <li> lists.

2. Outline
Follow this outline, one <h2> section per heading:
{outline}

3. Media Integration
- Where an available image fits a section, include it as an <img> tag with a descriptive alt attribute.

4. Authoritative Sourcing
- Identify the key statistical and factual claims in the text.
- Where a claim needs a supporting source, insert a placeholder of the form \
[LINK: short description of the source] right after it. Use at most five placeholders.

5. Tone and Flow
- Write in a clear, engaging, expert voice that reads like a polished blog post.

### Research Context
{research_context}

### Available Images
{formatted_images}
"""

FORMATTING_REQUIREMENTS = """

FORMATTING REQUIREMENTS - VERY IMPORTANT:
- Use ONLY clean HTML tags: <h2>, <h3>, <p>, <ul>, <li>, <strong>, <em>, <a>, <img>
- DO NOT use markdown syntax like ```html or ```
- DO NOT use code blocks or backticks
- DO NOT wrap the content in any formatting
- End with the last </p> tag
- Return only raw HTML content
- **CRITICAL:** Never use <code> tags in your response - use <strong> for emphasis instead


Return ONLY the clean HTML content. Start immediately with HTML tags, no markdown \
formatting. And make sure it looks like a complete modern blog post."""

RESEARCH_QUERY_TEMPLATE = (
    "Research comprehensive information about '{topic}'. Include current trends, "
    "statistics, best practices, expert opinions, and recent developments. Focus on "
    "factual, up-to-date information that would be valuable for a blog post. Also "
    "find relevant YouTube video links, infographics, charts, and visual content "
    "related to this topic."
)

PLACEHOLDER_NAMES = ("primary_keyword", "research_context", "formatted_images", "outline")


@dataclass
class Composition:
    """Output of :meth:`ContentComposer.compose`."""

    content: str
    prompt: str
    research_context: str = ""
    formatted_images: str = ""
    warnings: List[str] = field(default_factory=list)


def outline_as_text(outline: Sequence[str]) -> str:
    """Numbered outline, one heading per line."""
    return "\n".join(f"{i}. {heading}" for i, heading in enumerate(outline, start=1))


def substitute_placeholders(template: str, values: Dict[str, str]) -> str:
    """Replace both ``{name}`` and ``{$name}`` forms for every known placeholder."""
    prompt = template
    for name in PLACEHOLDER_NAMES:
        value = values.get(name, "")
        prompt = prompt.replace("{" + name + "}", value)
        prompt = prompt.replace("{$" + name + "}", value)
    return prompt


def build_content_prompt(template: Optional[str], values: Dict[str, str]) -> str:
    """Substitute placeholders, then append the non-overridable formatting block."""
    base = template if template and template.strip() else DEFAULT_CONTENT_PROMPT
    return substitute_placeholders(base, values) + FORMATTING_REQUIREMENTS


def clean_markdown_artifacts(content: str) -> str:
    """Remove code-fence markers and stray backticks from generated HTML."""
    content = re.sub(r"```html\s*", "", content, flags=re.IGNORECASE)
    content = re.sub(r"```\s*$", "", content)
    content = content.replace("```", "")
    content = content.replace("`", "")
    return content.strip()


class ContentComposer:
    """Generates the full article body for a keyword and outline."""

    def __init__(
        self,
        config: ArchitectConfig,
        text_generator: TextGenerator,
        image_search: ImageSearchProvider,
        researcher: Researcher,
    ):
        self._config = config
        self._text = text_generator
        self._images = image_search
        self._researcher = researcher

    async def gather_research(self, primary_keyword: str) -> CapabilityResult[str]:
        """Research context block, empty when the capability is unconfigured."""
        if not self._researcher.configured:
            logger.info("Research capability not configured, skipping research step")
            return CapabilityResult.success("")

        result = await self._researcher.research(RESEARCH_QUERY_TEMPLATE.format(topic=primary_keyword))
        if not result.ok:
            return result
        if not (result.value or "").strip():
            return CapabilityResult.success("")
        return CapabilityResult.success(f"\n\nBased on current research:\n{result.value}\n\n")

    async def gather_image_listing(self, primary_keyword: str) -> CapabilityResult[str]:
        """One exploratory image search rendered for the prompt."""
        result = await self._images.search_images(primary_keyword, PROMPT_IMAGE_COUNT)
        if not result.ok:
            return CapabilityResult(value=format_images_for_prompt(None), error=result.error)
        return CapabilityResult.success(format_images_for_prompt(result.value))

    async def compose(
        self,
        outline: Sequence[str],
        primary_keyword: str,
        keywords: Sequence[str] = (),
    ) -> CapabilityResult[Composition]:
        """
        Generate the article HTML.

        Research and image-listing failures are downgraded to warnings; a
        text-generation failure or an empty cleaned body is a failed result.
        """
        logger.info("CONTENT: keyword='%s' outline=%d headings", primary_keyword, len(outline))
        start_time = time.monotonic()
        warnings: List[str] = []

        research = await self.gather_research(primary_keyword)
        research_context = research.unwrap_or("")
        if not research.ok:
            warnings.append(f"Research failed: {research.error.describe()}")

        images = await self.gather_image_listing(primary_keyword)
        formatted_images = images.value or format_images_for_prompt(None)
        if not images.ok:
            warnings.append(f"Prompt image search failed: {images.error.describe()}")

        template = self._config.custom_content_prompt
        if template.strip():
            logger.info("Using custom content prompt from settings")
        prompt = build_content_prompt(template, {
            "primary_keyword": primary_keyword,
            "research_context": research_context,
            "formatted_images": formatted_images,
            "outline": outline_as_text(outline),
        })
        logger.debug("Content prompt (%d chars): %s...", len(prompt), prompt[:500])

        result = await self._text.generate_text(
            prompt, max_tokens=MAX_TOKENS_CONTENT, temperature=CONTENT_TEMPERATURE,
        )
        if not result.ok:
            return CapabilityResult.failure(result.error)

        content = clean_markdown_artifacts(result.value or "")
        if not content:
            return CapabilityResult.failure(
                ProviderError("Content generation returned an empty article", source="composer")
            )

        logger.info(
            "CONTENT complete in %.1fs: %d chars, %d warning(s)",
            time.monotonic() - start_time, len(content), len(warnings),
        )
        return CapabilityResult.success(Composition(
            content=content,
            prompt=prompt,
            research_context=research_context,
            formatted_images=formatted_images,
            warnings=warnings,
        ))
