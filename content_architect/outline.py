"""
Outline generation for Content Architect.

Asks the text capability for six numbered section headings about the primary
keyword and parses the loosely structured reply into an ordered list. When
parsing yields nothing (malformed or refused generation) a templated
six-heading outline is substituted, so the output is never empty.
"""

from __future__ import annotations

import logging
import re
import time
from typing import List, Sequence

from content_architect.errors import CapabilityResult, ParseError
from content_architect.text_providers import TextGenerator

logger = logging.getLogger("content_architect.outline")

MAX_TOKENS_OUTLINE = 1000
OUTLINE_TEMPERATURE = 0.6

FALLBACK_SECTIONS = (
    "Introduction to {topic}",
    "Understanding the Basics of {topic}",
    "Key Benefits and Applications of {topic}",
    "Best Practices and Implementation of {topic}",
    "Common Challenges and Solutions in {topic}",
    "Future Outlook and Conclusion for {topic}",
)

# "1.", "2)", "- ", "* " and "#"-style markers at the start of a line
_ORDINAL_RE = re.compile(r"^(?:\d+\s*[.)]\s*|[-*•]\s+|#+\s*)")


def build_outline_prompt(topic: str) -> str:
    """Prompt requesting a numbered outline strictly about *topic*."""
    return (
        f"Create a detailed blog post outline for the topic: '{topic}'\n\n"
        f"The outline should include:\n"
        f"- An engaging introduction about {topic}\n"
        f"- 4-6 main section headings that would work as H2 tags, all directly related to {topic}\n"
        f"- A strong conclusion about {topic}\n\n"
        f"IMPORTANT: Every section must be directly related to '{topic}'. "
        f"Stay focused on this exact topic.\n\n"
        f"Format as a simple numbered list:\n"
        f"1. Introduction\n"
        f"2. [Main section 1 about {topic}]\n"
        f"3. [Main section 2 about {topic}]\n"
        f"4. [Main section 3 about {topic}]\n"
        f"5. [Main section 4 about {topic}]\n"
        f"6. Conclusion\n\n"
        f"Write only the outline headings about '{topic}', no explanations or additional text."
    )


def parse_outline(raw: str) -> List[str]:
    """
    Parse a numbered-list reply into headings.

    Leading ordinal/bullet markers and bracket characters are stripped, blank
    lines dropped. Raises ParseError when nothing usable remains, or when the
    reply is a single unmarked line (a prose sentence, not a list).
    """
    headings: List[str] = []
    marked = 0
    for line in (raw or "").splitlines():
        line = line.strip()
        if not line:
            continue
        heading, replaced = _ORDINAL_RE.subn("", line, count=1)
        marked += replaced
        heading = heading.strip().strip("[]").strip()
        heading = heading.strip("*").strip()
        if heading:
            headings.append(heading)

    if not headings:
        raise ParseError("Outline response contained no headings", source="outline")
    if len(headings) == 1 and not marked:
        raise ParseError(
            f"Outline response is not a list: {headings[0][:80]!r}", source="outline",
        )
    return headings


def fallback_outline(topic: str) -> List[str]:
    """Six canned headings interpolating the hyphen-normalized topic."""
    normalized = " ".join(topic.replace("-", " ").split())
    return [section.format(topic=normalized) for section in FALLBACK_SECTIONS]


class OutlineGenerator:
    """Produces the ordered section headings for an article."""

    def __init__(self, text_generator: TextGenerator):
        self._text = text_generator

    async def generate(self, title: str, keywords: Sequence[str]) -> CapabilityResult[List[str]]:
        """
        Generate an outline for the primary keyword (``keywords[0]``).

        Capability failures are returned as failed results (fatal for the
        job). Parse failures fall back to the templated outline.
        """
        primary = keywords[0] if keywords else title
        logger.info("OUTLINE: title='%s' keyword='%s'", title, primary)
        start_time = time.monotonic()

        result = await self._text.generate_text(
            build_outline_prompt(primary),
            max_tokens=MAX_TOKENS_OUTLINE,
            temperature=OUTLINE_TEMPERATURE,
        )
        if not result.ok:
            return CapabilityResult.failure(result.error)

        try:
            headings = parse_outline(result.value or "")
        except ParseError as exc:
            logger.warning("%s; using fallback outline", exc.describe())
            headings = fallback_outline(primary)

        logger.info(
            "OUTLINE complete in %.1fs: %d headings",
            time.monotonic() - start_time, len(headings),
        )
        return CapabilityResult.success(headings)
