"""
Image-search capability for Content Architect.

Uniform contract:
    search_images(query, count) -> CapabilityResult[list[ImageHit]]

Backends (selected by the ``image_provider`` setting):
    PexelsImageSearch    https://api.pexels.com/v1/search
    UnsplashImageSearch  https://api.unsplash.com/search/photos

Both request landscape orientation. An empty result list is a successful
search; callers decide whether that matters.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional

import aiohttp

from content_architect.config import ArchitectConfig
from content_architect.errors import (
    ArchitectError,
    CapabilityResult,
    ConfigurationError,
    ProviderError,
    TransportError,
)

logger = logging.getLogger("content_architect.image_providers")

PEXELS_SEARCH_URL = "https://api.pexels.com/v1/search"
UNSPLASH_SEARCH_URL = "https://api.unsplash.com/search/photos"

SEARCH_TIMEOUT_SECONDS = 30


@dataclass
class ImageHit:
    """One search result, normalized across providers."""

    provider: str
    remote_url: str
    alt: str = ""
    photographer: str = ""
    page_url: str = ""

    @property
    def attribution(self) -> str:
        """Attribution line following each provider's convention."""
        if not self.photographer:
            return ""
        if self.provider == "unsplash":
            return f"Photo by {self.photographer} on Unsplash"
        return f"Photo by {self.photographer} from Pexels"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class ImageSearchProvider:
    """Base class: subclasses implement :meth:`_request` and :meth:`_parse`."""

    name = "images"
    search_url = ""

    def __init__(self, api_key: str, timeout: float = SEARCH_TIMEOUT_SECONDS):
        self.api_key = api_key
        self.timeout = timeout

    async def search_images(self, query: str, count: int = 5) -> CapabilityResult[List[ImageHit]]:
        """Search for up to *count* images matching *query*."""
        if not self.api_key:
            return CapabilityResult.failure(
                ConfigurationError(f"{self.name.title()} API key is required", source=self.name)
            )

        start_time = time.monotonic()
        try:
            data = await self._get(query, count)
            hits = self._parse(data)[:count]
        except ArchitectError as exc:
            logger.warning(
                "%s search '%s' failed after %.1fs: %s",
                self.name, query, time.monotonic() - start_time, exc.describe(),
            )
            return CapabilityResult.failure(exc)

        logger.info(
            "%s search '%s' returned %d image(s) in %.1fs",
            self.name, query, len(hits), time.monotonic() - start_time,
        )
        return CapabilityResult.success(hits)

    def _headers(self) -> Dict[str, str]:
        raise NotImplementedError

    def _parse(self, data: Any) -> List[ImageHit]:
        raise NotImplementedError

    async def _get(self, query: str, count: int) -> Any:
        params = {"query": query, "per_page": str(count), "orientation": "landscape"}
        try:
            async with aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            ) as session:
                async with session.get(self.search_url, headers=self._headers(), params=params) as resp:
                    status = resp.status
                    try:
                        data = await resp.json(content_type=None)
                    except ValueError:
                        data = None
        except asyncio.TimeoutError:
            raise TransportError(f"Image search timed out after {self.timeout}s", source=self.name)
        except aiohttp.ClientError as exc:
            raise TransportError(f"{type(exc).__name__}: {exc}", source=self.name)

        if status >= 400:
            raise ProviderError(
                f"HTTP {status} from {self.name}",
                source=self.name,
                response_body=str(data)[:500] if data is not None else "",
            )
        if not isinstance(data, dict):
            raise ProviderError("Image search response is not a JSON object", source=self.name)
        return data


class PexelsImageSearch(ImageSearchProvider):
    name = "pexels"
    search_url = PEXELS_SEARCH_URL

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": self.api_key}

    def _parse(self, data: Any) -> List[ImageHit]:
        hits: List[ImageHit] = []
        for photo in data.get("photos") or []:
            url = (photo.get("src") or {}).get("large")
            if not url:
                continue
            hits.append(ImageHit(
                provider=self.name,
                remote_url=url,
                alt=photo.get("alt") or "Image",
                photographer=photo.get("photographer") or "",
                page_url=photo.get("url") or "",
            ))
        return hits


class UnsplashImageSearch(ImageSearchProvider):
    name = "unsplash"
    search_url = UNSPLASH_SEARCH_URL

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Client-ID {self.api_key}"}

    def _parse(self, data: Any) -> List[ImageHit]:
        hits: List[ImageHit] = []
        for photo in data.get("results") or []:
            url = (photo.get("urls") or {}).get("regular")
            if not url:
                continue
            hits.append(ImageHit(
                provider=self.name,
                remote_url=url,
                alt=photo.get("alt_description") or "Image",
                photographer=(photo.get("user") or {}).get("name") or "",
                page_url=(photo.get("links") or {}).get("html") or "",
            ))
        return hits


def build_image_search(config: ArchitectConfig) -> ImageSearchProvider:
    """Return the backend selected by ``image_provider``."""
    if config.image_provider == "unsplash":
        return UnsplashImageSearch(config.unsplash_api_key)
    return PexelsImageSearch(config.pexels_api_key)


def format_images_for_prompt(hits: Optional[List[ImageHit]]) -> str:
    """Render search results as a numbered listing for a generation prompt."""
    if not hits:
        return "No images available"

    lines = ["Available images:"]
    for index, hit in enumerate(hits, start=1):
        lines.append(f"{index}. URL: {hit.remote_url}")
        lines.append(f"   Description: {hit.alt or 'Image'}")
        lines.append(f"   Photographer: {hit.photographer or 'Unknown'}")
        lines.append("")
    return "\n".join(lines)
