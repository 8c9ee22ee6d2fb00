"""
Keyword/title derivation for Content Architect.

Turns a raw topic into the primary keyword, an SEO-styled title and a
URL-safe slug. Pure functions, no I/O. The only nondeterminism is the title
prefix, drawn from the fixed ``TITLE_PREFIXES`` set.
"""

from __future__ import annotations

import random
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from content_architect.errors import ValidationError

TITLE_PREFIXES = (
    "The Ultimate Guide to",
    "Complete Guide to",
    "Everything You Need to Know About",
    "Comprehensive Overview of",
    "Understanding",
)

# Topics containing these already read as instructional phrases
INSTRUCTIONAL_MARKERS = ("how to", "guide to", "everything")

# Topics containing these get a year suffix in the title
YEAR_SUFFIX_MARKERS = ("guide", "tips")

_YEAR_RE = re.compile(r"\d{4}")


@dataclass
class KeywordSet:
    """Output of :func:`derive_keywords`."""

    primary_keyword: str
    title: str
    slug: str
    keywords: List[str] = field(default_factory=list)


def _current_year() -> int:
    return datetime.now().year


def normalize_keyword(topic: str) -> str:
    """Hyphens to spaces, whitespace collapsed."""
    return " ".join(topic.replace("-", " ").split())


def display_keyword(topic: str) -> str:
    """Normalized keyword, title-cased word by word."""
    return " ".join(word[:1].upper() + word[1:] for word in normalize_keyword(topic).split())


def generate_slug(topic: str, year: Optional[int] = None) -> str:
    """Lowercase, hyphen-joined slug that always carries a four-digit year."""
    slug = topic.lower().strip()
    slug = re.sub(r"[^a-z0-9\s-]", "", slug)
    slug = re.sub(r"[\s_-]+", "-", slug)
    slug = slug.strip("-")

    if not _YEAR_RE.search(slug):
        suffix = str(year or _current_year())
        slug = f"{slug}-{suffix}" if slug else suffix
    return slug


def generate_title(
    topic: str,
    rng: Optional[random.Random] = None,
    year: Optional[int] = None,
) -> str:
    """Build a compelling title around the topic, keeping its meaning intact."""
    title = display_keyword(topic)
    lowered = topic.lower()

    if not _YEAR_RE.search(lowered) and any(m in lowered for m in YEAR_SUFFIX_MARKERS):
        title = f"{title} {year or _current_year()}"

    if not any(m in lowered for m in INSTRUCTIONAL_MARKERS):
        chooser = rng or random
        title = f"{chooser.choice(TITLE_PREFIXES)} {title}"

    return title


def derive_keywords(
    topic: str,
    rng: Optional[random.Random] = None,
    year: Optional[int] = None,
) -> KeywordSet:
    """Derive the primary keyword, title and slug for a topic."""
    cleaned = topic.strip() if topic else ""
    if not cleaned:
        raise ValidationError("Topic is required", source="keywords")

    return KeywordSet(
        primary_keyword=cleaned,
        title=generate_title(cleaned, rng=rng, year=year),
        slug=generate_slug(cleaned, year=year),
        keywords=[cleaned],
    )
