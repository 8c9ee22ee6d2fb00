"""
Media Sourcer for Content Architect.

Finds, downloads and places images for an article:

    get_featured_image    one search for the primary keyword, top hit stored
    get_content_images    one search for each of the first capped headings
    insert_images_into_content
                          places content images after successive <h2> sections

Every failure here is non-fatal. A heading whose search or download fails
keeps no image and is reported; later headings are not tried in its place.
"""

from __future__ import annotations

import html
import logging
import re
from typing import List, Optional, Sequence, Tuple

from content_architect.errors import CapabilityResult, ProviderError
from content_architect.image_providers import ImageHit, ImageSearchProvider
from content_architect.models import FEATURED_PLACEMENT, ImageAsset
from content_architect.storage import MediaStore

logger = logging.getLogger("content_architect.media")

DEFAULT_MAX_CONTENT_IMAGES = 2
SEARCH_TERM_WORDS = 3

SEARCH_STOPWORDS = frozenset({
    "the", "and", "or", "but", "in", "on", "at", "to", "for", "of", "with", "by",
    "how", "what", "why", "when", "where", "who",
})

_TAG_RE = re.compile(r"<[^>]+>")
_H2_SPLIT_RE = re.compile(r"(<h2[^>]*>.*?</h2>)", re.IGNORECASE)
_H2_RE = re.compile(r"<h2[^>]*>.*?</h2>", re.IGNORECASE)


def strip_tags(text: str) -> str:
    return _TAG_RE.sub("", text)


def extract_image_search_term(heading: str) -> str:
    """First three meaningful words of the tag-stripped heading."""
    words = [w for w in strip_tags(heading).lower().split() if w not in SEARCH_STOPWORDS]
    return " ".join(words[:SEARCH_TERM_WORDS])


def figure_html(asset: ImageAsset) -> str:
    """Block-editor figure markup for a placed image."""
    src = asset.public_url or asset.source_url
    parts = [
        '<figure class="wp-block-image size-large">',
        f'<img src="{html.escape(src, quote=True)}" alt="{html.escape(asset.alt_text, quote=True)}"/>',
    ]
    if asset.attribution:
        parts.append(f"<figcaption>{html.escape(asset.attribution)}</figcaption>")
    parts.append("</figure>")
    return "".join(parts)


def insert_images_into_content(content: str, images: Sequence[ImageAsset]) -> str:
    """
    Place each image after the section that follows an <h2> heading.

    Images go in order, one per heading, until either runs out. Content with
    no <h2> headings is returned unchanged.
    """
    if not images:
        return content

    sections = _H2_SPLIT_RE.split(content)
    out: List[str] = []
    image_index = 0
    i = 0
    while i < len(sections):
        section = sections[i]
        out.append(section)
        if _H2_RE.fullmatch(section) and image_index < len(images):
            if i + 1 < len(sections):
                out.append(sections[i + 1])
                i += 1
            image = images[image_index]
            out.append("\n\n" + (image.html or figure_html(image)) + "\n\n")
            image_index += 1
        i += 1
    return "".join(out)


class MediaSourcer:
    """Image search plus durable storage for one job."""

    def __init__(self, image_search: ImageSearchProvider, media_store: MediaStore):
        self._search = image_search
        self._store = media_store

    async def _fetch_top_hit(self, query: str) -> CapabilityResult[Tuple[ImageHit, ImageAsset]]:
        result = await self._search.search_images(query, 1)
        if not result.ok:
            return CapabilityResult.failure(result.error)
        if not result.value:
            return CapabilityResult.failure(
                ProviderError(f"No images found for '{query}'", source=self._search.name)
            )

        hit = result.value[0]
        stored = await self._store.store(hit.remote_url)
        if not stored.ok:
            return CapabilityResult.failure(stored.error)

        media = stored.value
        asset = ImageAsset(
            provider=hit.provider,
            source_url=hit.remote_url,
            local_ref=media.local_ref,
            alt_text=hit.alt,
            attribution=hit.attribution,
            public_url=media.public_url,
            width=media.width,
            height=media.height,
        )
        return CapabilityResult.success((hit, asset))

    async def get_featured_image(self, keyword: str, alt_text: str) -> CapabilityResult[ImageAsset]:
        """Search for *keyword*, store the top result as the featured image."""
        result = await self._fetch_top_hit(keyword)
        if not result.ok:
            logger.warning("Featured image for '%s' failed: %s", keyword, result.error.describe())
            return CapabilityResult.failure(result.error)

        _, asset = result.value
        asset.alt_text = alt_text
        asset.placement = FEATURED_PLACEMENT
        asset.html = figure_html(asset)
        logger.info("Featured image: %s (%s)", asset.local_ref, asset.provider)
        return CapabilityResult.success(asset)

    async def get_content_images(
        self,
        outline: Sequence[str],
        max_images: int = DEFAULT_MAX_CONTENT_IMAGES,
    ) -> Tuple[List[ImageAsset], List[str]]:
        """
        One image per heading for the first *max_images* headings that yield
        a search term. Each heading gets exactly one search; a failed heading
        leaves its slot empty.

        Returns ``(images, errors)``. Per-heading failures are folded into a
        single "Content images failed" entry, so *errors* holds at most one
        string.
        """
        images: List[ImageAsset] = []
        failures: List[str] = []
        if max_images <= 0:
            return images, []

        targets = [(heading, extract_image_search_term(heading)) for heading in outline]
        targets = [(heading, term) for heading, term in targets if term][:max_images]

        for heading, term in targets:
            result = await self._fetch_top_hit(term)
            if not result.ok:
                failure = f"'{strip_tags(heading)}': {result.error.describe()}"
                logger.warning("Content image failed for %s", failure)
                failures.append(failure)
                continue

            _, asset = result.value
            asset.alt_text = strip_tags(heading)
            asset.placement = heading
            asset.html = figure_html(asset)
            images.append(asset)

        logger.info("Content images: %d placed, %d failed", len(images), len(failures))
        if not failures:
            return images, []
        return images, ["Content images failed: " + "; ".join(failures)]

    async def source_all(
        self,
        keyword: str,
        title: str,
        outline: Sequence[str],
        max_images: int = DEFAULT_MAX_CONTENT_IMAGES,
    ) -> Tuple[Optional[ImageAsset], List[ImageAsset], List[str]]:
        """Featured image then content images; collects every failure message."""
        errors: List[str] = []
        featured = await self.get_featured_image(keyword, title)
        if not featured.ok:
            errors.append(f"Featured image failed: {featured.error.describe()}")

        images, image_errors = await self.get_content_images(outline, max_images)
        errors.extend(image_errors)
        return featured.value if featured.ok else None, images, errors
