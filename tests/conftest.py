"""
Shared fixtures for the Content Architect test suite.

Provides fake capabilities, a temp media directory and a canned config so
that all tests run WITHOUT any external services.
"""

import io
from typing import List, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest
from PIL import Image

from content_architect.config import ArchitectConfig
from content_architect.errors import CapabilityResult, ProviderError
from content_architect.image_providers import ImageHit, ImageSearchProvider
from content_architect.models import PublishedWork
from content_architect.storage import MediaStore, StoredMedia
from content_architect.text_providers import NullResearcher, Researcher, TextGenerator


# ---------------------------------------------------------------------------
# Image bytes
# ---------------------------------------------------------------------------

def make_png(width: int = 8, height: int = 6, color=(200, 30, 30)) -> bytes:
    """Tiny valid PNG payload."""
    buf = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def png_bytes():
    return make_png()


# ---------------------------------------------------------------------------
# Config fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def config(tmp_path):
    """Config with fake keys, media under tmp_path and no publishing target."""
    return ArchitectConfig(
        anthropic_api_key="sk-test-key",
        pexels_api_key="pexels-test-key",
        media_dir=str(tmp_path / "media"),
    )


@pytest.fixture
def publishing_config(tmp_path):
    return ArchitectConfig(
        anthropic_api_key="sk-test-key",
        pexels_api_key="pexels-test-key",
        media_dir=str(tmp_path / "media"),
        wp_url="https://blog.example.com",
        wp_user="editor",
        wp_app_password="abcd efgh ijkl mnop",
    )


# ---------------------------------------------------------------------------
# Fake capabilities
# ---------------------------------------------------------------------------

class FakeTextGenerator(TextGenerator):
    """Returns queued responses in order; an ArchitectError in the queue is raised."""

    name = "fake-text"

    def __init__(self, responses=None):
        self.responses = list(responses or [])
        self.prompts: List[str] = []

    async def _generate(self, prompt, max_tokens, temperature):
        self.prompts.append(prompt)
        if not self.responses:
            raise ProviderError("No canned response left")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class FakeImageSearch(ImageSearchProvider):
    """Image search answering from a query -> hits map; failing queries return errors."""

    name = "pexels"

    def __init__(self, hits=None, failing=(), default_hits=None):
        super().__init__(api_key="fake")
        self.hits = dict(hits or {})
        self.failing = set(failing)
        self.default_hits = default_hits
        self.queries: List[str] = []

    async def search_images(self, query, count=5):
        self.queries.append(query)
        if query in self.failing:
            return CapabilityResult.failure(ProviderError(f"search for '{query}' failed", source=self.name))
        if query in self.hits:
            return CapabilityResult.success(self.hits[query][:count])
        if self.default_hits is not None:
            return CapabilityResult.success(self.default_hits[:count])
        return CapabilityResult.success([
            ImageHit(
                provider="pexels",
                remote_url=f"https://images.example.com/{query.replace(' ', '-')}.png",
                alt=f"{query} photo",
                photographer="Jane Doe",
                page_url="https://www.pexels.com/photo/1",
            )
        ][:count])


class FakeResearcher(Researcher):
    name = "fake-research"

    def __init__(self, text="", error: Optional[Exception] = None):
        self.text = text
        self.error = error
        self.queries: List[str] = []

    async def research(self, query):
        self.queries.append(query)
        if self.error is not None:
            return CapabilityResult.failure(self.error)
        return CapabilityResult.success(self.text)


class FakeMediaStore(MediaStore):
    """MediaStore whose downloads return canned PNG bytes instead of hitting the network."""

    def __init__(self, media_dir, base_url="", failing_urls=()):
        super().__init__(media_dir, base_url=base_url)
        self.failing_urls = set(failing_urls)
        self.downloaded: List[str] = []

    async def download(self, url):
        self.downloaded.append(url)
        if url in self.failing_urls:
            raise ProviderError(f"Empty download from {url}", source="storage")
        return make_png(color=(len(url) % 255, 10, 10))


@pytest.fixture
def fake_text():
    return FakeTextGenerator()


@pytest.fixture
def fake_search():
    return FakeImageSearch()


@pytest.fixture
def null_researcher():
    return NullResearcher()


@pytest.fixture
def fake_store(tmp_path):
    return FakeMediaStore(tmp_path / "media")


# ---------------------------------------------------------------------------
# Content fixtures
# ---------------------------------------------------------------------------

SAMPLE_OUTLINE_REPLY = """1. Introduction
2. What Home Composting Is
3. Choosing a Compost Bin
4. Balancing Greens and Browns
5. Troubleshooting Smells
6. Conclusion"""

SAMPLE_ARTICLE = (
    "<h2>Introduction</h2><p>Home composting turns scraps into soil. "
    "It is a simple garden habit [LINK: history of composting].</p>"
    "<h2>Choosing a Compost Bin</h2><p>A tumbler suits small yards "
    "[LINK: research on compost tumblers].</p>"
    "<h2>Conclusion</h2><p>Start small and keep going.</p>"
)


@pytest.fixture
def sample_article():
    return SAMPLE_ARTICLE


@pytest.fixture
def published_works():
    return [
        PublishedWork(title="Garden Soil Basics", url="https://blog.example.com/soil", published_at="2026-01-05"),
        PublishedWork(title="Worm Farming", url="https://blog.example.com/worms", published_at="2026-03-01"),
        PublishedWork(title="Tumbler Reviews", url="https://blog.example.com/tumblers", published_at="2026-02-01"),
    ]


@pytest.fixture
def stored_media(tmp_path, png_bytes):
    """A real image stored in tmp media dir."""
    store = MediaStore(tmp_path / "media")
    media: StoredMedia = store.save_bytes(png_bytes, source_url="https://images.example.com/a.png")
    return store, media


# ---------------------------------------------------------------------------
# aiohttp mocks
# ---------------------------------------------------------------------------

def mock_response(status=200, json_data=None, text="", read=b"", headers=None):
    """Async context manager yielding a fake aiohttp response."""
    resp = MagicMock()
    resp.status = status
    resp.json = AsyncMock(return_value=json_data)
    resp.text = AsyncMock(return_value=text)
    resp.read = AsyncMock(return_value=read)
    resp.headers = headers or {}
    cm = MagicMock()
    cm.__aenter__ = AsyncMock(return_value=resp)
    cm.__aexit__ = AsyncMock(return_value=False)
    return cm


def mock_session(*responses):
    """Fake aiohttp.ClientSession answering get/post/request with *responses* in order."""
    session = MagicMock()
    session.closed = False
    session.get = MagicMock(side_effect=list(responses))
    session.post = MagicMock(side_effect=list(responses))
    session.request = MagicMock(side_effect=list(responses))
    session.close = AsyncMock()
    session.__aenter__ = AsyncMock(return_value=session)
    session.__aexit__ = AsyncMock(return_value=False)
    return session
