"""
Link Injector for Content Architect.

Two passes over generated HTML, always in this order:

    internal  mention of an existing published work's title (or its most
              distinctive title word) is wrapped once in an anchor to it
    external  every ``[LINK: description]`` placeholder the generator left is
              resolved to an authority URL, up to the configured maximum;
              the rest collapse to their bare description text

Matching is literal and case-insensitive. Text already inside an anchor, and
anything inside a tag's markup, is never touched. No AI calls, no network:
the works pool is supplied by a :class:`PublishedWorksSource`.

Usage:
    from content_architect.link_injector import inject_internal_links, inject_external_links

    result = inject_internal_links(html, works, max_links=3)
    result = inject_external_links(result.content, max_links=3)
"""

from __future__ import annotations

import html
import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional, Protocol, Sequence, Tuple
from urllib.parse import quote, quote_plus

from content_architect.models import LinkCandidate, LinkKind, PublishedWork

logger = logging.getLogger("content_architect.link_injector")

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

MAX_WORKS_SCANNED = 50
MIN_PATTERN_LENGTH = 3
MIN_KEYWORD_LENGTH = 4

TITLE_STOPWORDS = frozenset({
    "the", "and", "or", "but", "in", "on", "at", "to", "for", "of", "with", "by",
    "how", "what", "why", "when", "where", "who", "guide", "ultimate", "complete", "best",
})

# (name, base_url, trigger phrases), checked in order
AUTHORITY_SOURCES: Tuple[Tuple[str, str, Tuple[str, ...]], ...] = (
    ("wikipedia", "https://en.wikipedia.org/wiki/",
     ("definition", "history", "overview", "about", "what is")),
    ("github", "https://github.com/search?q=",
     ("code", "repository", "github", "source", "development")),
    ("mdn", "https://developer.mozilla.org/en-US/docs/",
     ("javascript", "css", "html", "web", "browser")),
    ("w3schools", "https://www.w3schools.com/",
     ("tutorial", "learn", "programming", "web development")),
)

# (topic word, url template); ``{q}`` is the url-encoded description
DOMAIN_FALLBACKS: Tuple[Tuple[str, str], ...] = (
    ("research", "https://scholar.google.com/scholar?q={q}"),
    ("news", "https://news.google.com/search?q={q}"),
    ("health", "https://www.who.int/news-room/fact-sheets"),
    ("technology", "https://techcrunch.com/search/{q}"),
    ("business", "https://www.businessinsider.com/search?q={q}"),
    ("education", "https://www.edx.org/search?q={q}"),
)

LINK_PLACEHOLDER_RE = re.compile(r"\[LINK:\s*([^\]]*)\]", re.IGNORECASE)

# Spans that must never receive an injected anchor: whole anchors, then any tag
_ANCHOR_RE = re.compile(r"<a\b[^>]*>.*?</a\s*>", re.IGNORECASE | re.DOTALL)
_TAG_RE = re.compile(r"<[^>]*>")


# ---------------------------------------------------------------------------
# Data Classes
# ---------------------------------------------------------------------------


@dataclass
class LinkInjectionResult:
    """Rewritten content plus the candidates considered by one pass."""

    content: str
    candidates: List[LinkCandidate] = field(default_factory=list)

    @property
    def links_added(self) -> int:
        return sum(1 for c in self.candidates if c.resolved)


class PublishedWorksSource(Protocol):
    """Anything that can list recent published works, newest first."""

    async def recent_works(self, limit: int = MAX_WORKS_SCANNED) -> List[PublishedWork]:
        ...


class StaticWorksSource:
    """In-memory works pool."""

    def __init__(self, works: Optional[Sequence[PublishedWork]] = None):
        self._works = list(works or [])

    async def recent_works(self, limit: int = MAX_WORKS_SCANNED) -> List[PublishedWork]:
        return sort_recent(self._works)[:limit]


def sort_recent(works: Sequence[PublishedWork]) -> List[PublishedWork]:
    """Newest first by ``published_at``; undated works keep their order, last."""
    dated = [w for w in works if w.published_at]
    undated = [w for w in works if not w.published_at]
    return sorted(dated, key=lambda w: w.published_at, reverse=True) + undated


# ---------------------------------------------------------------------------
# Internal links
# ---------------------------------------------------------------------------


def extract_title_keyword(title: str) -> str:
    """Longest stopword-filtered word of *title*, at least 4 chars, or ''."""
    longest = ""
    for word in title.lower().split(" "):
        if word in TITLE_STOPWORDS:
            continue
        if len(word) > len(longest) and len(word) >= MIN_KEYWORD_LENGTH:
            longest = word
    return longest


def _protected_spans(content: str) -> List[Tuple[int, int]]:
    spans = [m.span() for m in _ANCHOR_RE.finditer(content)]
    spans.extend(m.span() for m in _TAG_RE.finditer(content))
    return spans


def find_unlinked(content: str, pattern: str) -> Optional[Tuple[int, int]]:
    """
    Span of the first case-insensitive occurrence of *pattern* that is not
    inside an existing anchor or inside tag markup, or None.
    """
    spans = _protected_spans(content)
    for match in re.finditer(re.escape(pattern), content, re.IGNORECASE):
        start, end = match.span()
        if any(s < end and start < e for s, e in spans):
            continue
        return start, end
    return None


def inject_internal_links(
    content: str,
    works: Sequence[PublishedWork],
    max_links: int = 3,
) -> LinkInjectionResult:
    """
    Wrap at most one mention per published work in an anchor to it.

    Works are scanned newest first (at most 50). For each work the full title
    is tried, then its distinctive keyword; the first hit wins and the scan
    moves on to the next work. Stops at *max_links*.
    """
    if max_links <= 0 or not works or not content:
        return LinkInjectionResult(content=content)

    candidates: List[LinkCandidate] = []
    added = 0

    for work in sort_recent(works)[:MAX_WORKS_SCANNED]:
        if added >= max_links:
            break
        if not work.url or not work.title:
            continue

        for pattern in (work.title, extract_title_keyword(work.title)):
            if not pattern or len(pattern) < MIN_PATTERN_LENGTH:
                continue
            span = find_unlinked(content, pattern)
            if span is None:
                continue

            start, end = span
            matched = content[start:end]
            anchor = f'<a href="{html.escape(work.url, quote=True)}">{matched}</a>'
            content = content[:start] + anchor + content[end:]
            candidates.append(LinkCandidate(
                anchor_text=matched,
                target_url=work.url,
                kind=LinkKind.INTERNAL.value,
                resolved=True,
            ))
            added += 1
            logger.debug("Internal link: '%s' -> %s", matched, work.url)
            break

    logger.info("Injected %d internal link(s)", added)
    return LinkInjectionResult(content=content, candidates=candidates)


# ---------------------------------------------------------------------------
# External links
# ---------------------------------------------------------------------------


def _ucwords(text: str) -> str:
    return " ".join(word[:1].upper() + word[1:] for word in text.split(" "))


def _wikipedia_url(description: str) -> str:
    return "https://en.wikipedia.org/wiki/" + quote(_ucwords(description).replace(" ", "_"), safe="_")


def build_source_url(source: str, description: str, base_url: str) -> str:
    """Authority URL for *description* on the named source."""
    if source == "wikipedia":
        return _wikipedia_url(description)
    if source == "github":
        return base_url + quote_plus(description)
    if source == "mdn":
        return base_url + quote(description.lower().replace(" ", "/"), safe="/")
    if source == "w3schools":
        return base_url + quote(description.lower().replace(" ", "_"), safe="_") + ".asp"
    return base_url


def resolve_external_url(description: str) -> str:
    """
    Map a placeholder description to an authority URL.

    Authority rules first, then the topic-word domain map, then an
    encyclopedia article named after the description.
    """
    lowered = description.lower()

    for source, base_url, triggers in AUTHORITY_SOURCES:
        if any(trigger in lowered for trigger in triggers):
            return build_source_url(source, description, base_url)

    for topic, template in DOMAIN_FALLBACKS:
        if topic in lowered:
            return template.format(q=quote_plus(description))

    return _wikipedia_url(description)


def inject_external_links(content: str, max_links: int = 3) -> LinkInjectionResult:
    """
    Replace ``[LINK: description]`` placeholders, in order of appearance.

    The first *max_links* become external anchors opening in a new tab; any
    beyond that become plain description text. A placeholder with no
    description is removed. No placeholder survives.
    """
    if not content:
        return LinkInjectionResult(content=content)

    candidates: List[LinkCandidate] = []

    def _replace(match: "re.Match[str]") -> str:
        description = match.group(1).strip()
        if not description:
            return ""
        if len(candidates) >= max_links or max_links <= 0:
            return description
        url = resolve_external_url(description)
        candidates.append(LinkCandidate(
            anchor_text=description,
            target_url=url,
            kind=LinkKind.EXTERNAL.value,
            resolved=True,
        ))
        return (
            f'<a href="{html.escape(url, quote=True)}" target="_blank" '
            f'rel="noopener noreferrer">{html.escape(description)}</a>'
        )

    rewritten = LINK_PLACEHOLDER_RE.sub(_replace, content)
    logger.info("Injected %d external link(s)", len(candidates))
    return LinkInjectionResult(content=rewritten, candidates=candidates)
