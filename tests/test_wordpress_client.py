"""Test wordpress_client - Content Architect."""
from __future__ import annotations

import base64
from unittest.mock import AsyncMock, patch

import pytest

from content_architect.wordpress_client import (
    AuthenticationError,
    NotFoundError,
    PublishError,
    SiteNotConfiguredError,
    SiteTarget,
    WordPressClient,
)
from tests.conftest import mock_response, mock_session

TARGET = SiteTarget(url="https://blog.example.com/", wp_user="editor", app_password="abcd efgh")


def _client(*responses):
    client = WordPressClient(TARGET)
    client._session = mock_session(*responses)
    return client


# ===================================================================
# SiteTarget
# ===================================================================

@pytest.mark.unit
class TestSiteTarget:

    def test_api_url(self):
        assert TARGET.api_url == "https://blog.example.com/wp-json/wp/v2"

    def test_auth_header(self):
        encoded = base64.b64encode(b"editor:abcd efgh").decode()
        assert TARGET.auth_header == f"Basic {encoded}"

    def test_unconfigured(self):
        target = SiteTarget(url="https://blog.example.com")
        assert not target.is_configured
        assert target.auth_header == ""


# ===================================================================
# Requests
# ===================================================================

@pytest.mark.unit
class TestRequests:

    @pytest.mark.asyncio
    async def test_not_configured(self):
        client = WordPressClient(SiteTarget(url=""))
        with pytest.raises(SiteNotConfiguredError):
            await client.create_post("T", "C")

    @pytest.mark.asyncio
    async def test_create_post(self):
        client = _client(mock_response(201, json_data={"id": 9, "link": "https://blog.example.com/?p=9"}))
        post = await client.create_post("Title", "<p>Body</p>", status="draft", slug="title-2026", excerpt="Ex")
        assert post["id"] == 9
        method, url = client._session.request.call_args.args
        assert (method, url) == ("POST", "https://blog.example.com/wp-json/wp/v2/posts")
        assert client._session.request.call_args.kwargs["json"] == {
            "title": "Title", "content": "<p>Body</p>", "status": "draft", "slug": "title-2026", "excerpt": "Ex",
        }

    @pytest.mark.asyncio
    async def test_auth_failure(self):
        client = _client(mock_response(401, json_data={"code": "rest_not_logged_in"}))
        with pytest.raises(AuthenticationError) as exc_info:
            await client.get_post(1)
        assert exc_info.value.status_code == 401
        assert exc_info.value.kind == "publish"

    @pytest.mark.asyncio
    async def test_not_found(self):
        client = _client(mock_response(404, json_data={"code": "rest_post_invalid_id"}))
        with pytest.raises(NotFoundError):
            await client.update_post(999, title="x")

    @pytest.mark.asyncio
    async def test_retries_transient_errors(self):
        client = _client(
            mock_response(503, json_data={}),
            mock_response(200, json_data={"id": 5}),
        )
        with patch("content_architect.wordpress_client.asyncio.sleep", new=AsyncMock()) as sleep:
            post = await client.get_post(5)
        assert post == {"id": 5}
        sleep.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_gives_up_after_retries(self):
        client = _client(*[mock_response(500, json_data={"message": "boom"}) for _ in range(3)])
        with patch("content_architect.wordpress_client.asyncio.sleep", new=AsyncMock()):
            with pytest.raises(PublishError, match="HTTP 500"):
                await client.get_post(5)
        assert client._session.request.call_count == 3


# ===================================================================
# Higher-level operations
# ===================================================================

@pytest.mark.unit
class TestOperations:

    @pytest.mark.asyncio
    async def test_list_published_works(self):
        posts = [
            {"id": 1, "title": {"rendered": "Worms &amp; Soil"}, "link": "https://blog.example.com/w", "date": "2026-03-01"},
            {"id": 2, "title": {"rendered": ""}, "link": "https://blog.example.com/x"},
        ]
        client = _client(mock_response(200, json_data=posts))
        works = await client.recent_works(50)
        assert len(works) == 1
        assert works[0].title == "Worms & Soil"
        assert works[0].work_id == 1
        params = client._session.request.call_args.kwargs["params"]
        assert params["per_page"] == 50
        assert params["status"] == "publish"

    @pytest.mark.asyncio
    async def test_upload_media(self, tmp_path, png_bytes):
        path = tmp_path / "image.png"
        path.write_bytes(png_bytes)
        client = _client(
            mock_response(201, json_data={"id": 77, "source_url": "https://blog.example.com/image.png"}),
            mock_response(200, json_data={"id": 77}),
        )
        media = await client.upload_media(path, alt_text="Alt", caption="Photo by Jane")
        assert media["id"] == 77
        first, second = client._session.request.call_args_list
        assert first.kwargs["data"] == png_bytes
        assert first.kwargs["headers"]["Content-Type"] == "image/png"
        assert second.args[1].endswith("/media/77")
        assert second.kwargs["json"] == {"alt_text": "Alt", "caption": "Photo by Jane"}

    @pytest.mark.asyncio
    async def test_upload_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            await _client().upload_media(tmp_path / "nope.png")

    @pytest.mark.asyncio
    async def test_set_featured_image_and_meta(self):
        client = _client(mock_response(200, json_data={"id": 3}), mock_response(200, json_data={"id": 3}))
        await client.set_featured_image(3, 77)
        await client.update_meta(3, {"_aca_generated": True})
        calls = client._session.request.call_args_list
        assert calls[0].kwargs["json"] == {"featured_media": 77}
        assert calls[1].kwargs["json"] == {"meta": {"_aca_generated": True}}

    @pytest.mark.asyncio
    async def test_close(self):
        client = _client()
        session = client._session
        await client.close()
        session.close.assert_awaited_once()
        assert client._session is None
