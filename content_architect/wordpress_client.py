"""
WordPress REST API client for Content Architect.

The publishing target of ``apply_generation`` and the source of published
works for internal linking. Talks to ``<wp_url>/wp-json/wp/v2`` with an
application password over Basic auth.

Usage:
    from content_architect.wordpress_client import WordPressClient

    client = WordPressClient.from_config(config)
    post = await client.create_post("Title", "<p>Body</p>", status="draft")
    media = await client.upload_media("data/media/ab12.jpg", alt_text="Compost bin")
    await client.set_featured_image(post["id"], media["id"])
    works = client.recent_works_sync(50)
"""

from __future__ import annotations

import asyncio
import base64
import concurrent.futures
import html
import json
import logging
import mimetypes
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Coroutine, Dict, List, Optional, Tuple, Union

import aiohttp

from content_architect.config import ArchitectConfig
from content_architect.errors import ArchitectError
from content_architect.models import PublishedWork

logger = logging.getLogger("content_architect.wordpress_client")

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

MAX_RETRIES = 2
RETRY_BASE_DELAY = 1.0  # seconds
RETRY_STATUS_CODES = {429, 500, 502, 503, 504}

WP_MAX_PER_PAGE = 100
REQUEST_TIMEOUT_SECONDS = 30


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class PublishError(ArchitectError):
    """Base exception for WordPress API errors."""

    kind = "publish"

    def __init__(self, message: str, *, source: str = "wordpress", status_code: int = 0, response_body: str = ""):
        self.status_code = status_code
        self.response_body = response_body
        super().__init__(message, source=source)


class AuthenticationError(PublishError):
    """Raised on 401/403 responses."""


class NotFoundError(PublishError):
    """Raised on 404 responses."""


class RateLimitError(PublishError):
    """Raised on 429 responses after all retries exhausted."""


class SiteNotConfiguredError(PublishError):
    """Raised when the site URL or credentials are missing."""


# ---------------------------------------------------------------------------
# Site target
# ---------------------------------------------------------------------------


@dataclass
class SiteTarget:
    """WordPress site address and credentials."""

    url: str
    wp_user: str = ""
    app_password: str = ""

    @property
    def api_url(self) -> str:
        """WP REST API v2 base URL."""
        return f"{self.url.rstrip('/')}/wp-json/wp/v2"

    @property
    def auth_header(self) -> str:
        """Base64-encoded Basic auth header value."""
        if not self.wp_user or not self.app_password:
            return ""
        credentials = f"{self.wp_user}:{self.app_password}"
        encoded = base64.b64encode(credentials.encode("utf-8")).decode("utf-8")
        return f"Basic {encoded}"

    @property
    def is_configured(self) -> bool:
        return bool(self.url and self.wp_user and self.app_password)

    def __repr__(self) -> str:
        configured = "configured" if self.is_configured else "no-creds"
        return f"SiteTarget({self.url!r}, {configured})"


def _run_sync(coro: Coroutine) -> Any:
    """Run an async coroutine synchronously, handling nested event loops."""
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        loop = None

    if loop and loop.is_running():
        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
            return pool.submit(asyncio.run, coro).result()
    return asyncio.run(coro)


# ---------------------------------------------------------------------------
# WordPressClient
# ---------------------------------------------------------------------------


class WordPressClient:
    """
    Async WordPress REST API client for a single site.

    Public methods come in async (default) and ``_sync`` variants.

    Parameters
    ----------
    target : SiteTarget
        Site URL and credentials.
    timeout : int
        Request timeout in seconds. Default 30.
    """

    def __init__(self, target: SiteTarget, timeout: int = REQUEST_TIMEOUT_SECONDS):
        self.target = target
        self.timeout = timeout
        self._session: Optional[aiohttp.ClientSession] = None

    @classmethod
    def from_config(cls, config: ArchitectConfig) -> "WordPressClient":
        return cls(SiteTarget(url=config.wp_url, wp_user=config.wp_user, app_password=config.wp_app_password))

    # -- Session management -------------------------------------------------

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create the aiohttp session."""
        if self._session is None or self._session.closed:
            headers = {
                "User-Agent": "ContentArchitect/1.0",
                "Accept": "application/json",
            }
            if self.target.auth_header:
                headers["Authorization"] = self.target.auth_header
            self._session = aiohttp.ClientSession(
                headers=headers,
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            )
        return self._session

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    # -- Core HTTP ------------------------------------------------------------

    async def _request(
        self,
        method: str,
        endpoint: str,
        *,
        json_data: Optional[Dict[str, Any]] = None,
        data: Optional[Any] = None,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Tuple[int, Any]:
        """
        Make an HTTP request, retrying transient failures with backoff.

        Raises
        ------
        SiteNotConfiguredError
            When URL or credentials are missing.
        AuthenticationError
            On 401 or 403 responses.
        NotFoundError
            On 404 responses.
        RateLimitError
            On 429 after all retries exhausted.
        PublishError
            On other non-2xx responses and network failures.
        """
        if not self.target.is_configured:
            raise SiteNotConfiguredError(
                "WordPress publishing target is not configured "
                "(set wp_url, wp_user and wp_app_password)"
            )

        url = f"{self.target.api_url}/{endpoint}"
        session = await self._get_session()

        kwargs: Dict[str, Any] = {}
        if json_data is not None:
            kwargs["json"] = json_data
        if data is not None:
            kwargs["data"] = data
        if headers is not None:
            kwargs["headers"] = headers
        if params is not None:
            kwargs["params"] = {k: v for k, v in params.items() if v is not None}

        for attempt in range(MAX_RETRIES + 1):
            logger.debug("API %s %s (attempt %d/%d)", method.upper(), url, attempt + 1, MAX_RETRIES + 1)
            try:
                async with session.request(method, url, **kwargs) as resp:
                    status = resp.status
                    try:
                        body = await resp.json(content_type=None)
                    except (json.JSONDecodeError, ValueError):
                        body = await resp.text()
                    retry_after = resp.headers.get("Retry-After")
            except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
                if attempt < MAX_RETRIES:
                    delay = RETRY_BASE_DELAY * (2 ** attempt)
                    logger.warning(
                        "Network error on %s (%s), retrying in %.1fs: %s",
                        url, type(exc).__name__, delay, exc,
                    )
                    await asyncio.sleep(delay)
                    continue
                raise PublishError(f"Network error after {MAX_RETRIES} retries for {url}: {exc}") from exc

            if status in (401, 403):
                raise AuthenticationError(
                    f"Authentication failed for {self.target.url}: HTTP {status}",
                    status_code=status,
                    response_body=str(body),
                )
            if status == 404:
                raise NotFoundError(f"Resource not found: {url}", status_code=404, response_body=str(body))

            if status in RETRY_STATUS_CODES and attempt < MAX_RETRIES:
                delay = RETRY_BASE_DELAY * (2 ** attempt)
                if retry_after:
                    try:
                        delay = max(delay, float(retry_after))
                    except ValueError:
                        pass
                logger.warning("Retryable error %d from %s, retrying in %.1fs", status, url, delay)
                await asyncio.sleep(delay)
                continue

            if status == 429:
                raise RateLimitError(
                    f"Rate limited by {self.target.url} after {MAX_RETRIES} retries",
                    status_code=429,
                    response_body=str(body),
                )
            if status >= 400:
                message = body.get("message", str(body)) if isinstance(body, dict) else body
                raise PublishError(
                    f"HTTP {status} from {self.target.url}: {message}",
                    status_code=status,
                    response_body=str(body),
                )
            return status, body

        raise PublishError(f"Request to {url} failed after {MAX_RETRIES} retries")

    # -----------------------------------------------------------------------
    # Posts
    # -----------------------------------------------------------------------

    async def create_post(
        self,
        title: str,
        content: str,
        status: str = "draft",
        slug: Optional[str] = None,
        excerpt: Optional[str] = None,
        meta: Optional[Dict[str, Any]] = None,
        featured_media: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        Create a new post.

        Returns the full post object, including ``id`` and ``link``.
        """
        payload: Dict[str, Any] = {"title": title, "content": content, "status": status}
        if slug:
            payload["slug"] = slug
        if excerpt:
            payload["excerpt"] = excerpt
        if meta:
            payload["meta"] = meta
        if featured_media is not None:
            payload["featured_media"] = featured_media

        _, result = await self._request("POST", "posts", json_data=payload)
        logger.info("Created post %s: %s (status=%s)", result.get("id"), title[:60], status)
        return result

    async def update_post(self, post_id: int, **fields: Any) -> Dict[str, Any]:
        """Update any writable fields of an existing post."""
        _, result = await self._request("POST", f"posts/{post_id}", json_data=fields)
        logger.info("Updated post %d: fields=%s", post_id, list(fields.keys()))
        return result

    async def get_post(self, post_id: int) -> Dict[str, Any]:
        _, result = await self._request("GET", f"posts/{post_id}")
        return result

    async def list_posts(
        self,
        per_page: int = 10,
        page: int = 1,
        status: str = "publish",
        orderby: str = "date",
        order: str = "desc",
    ) -> List[Dict[str, Any]]:
        """List posts, newest first by default."""
        params = {
            "per_page": min(per_page, WP_MAX_PER_PAGE),
            "page": page,
            "status": status,
            "orderby": orderby,
            "order": order,
        }
        _, result = await self._request("GET", "posts", params=params)
        return result if isinstance(result, list) else []

    async def update_meta(self, post_id: int, meta: Dict[str, Any]) -> Dict[str, Any]:
        """Write post meta fields (they must be registered with ``show_in_rest``)."""
        return await self.update_post(post_id, meta=meta)

    # -----------------------------------------------------------------------
    # Media
    # -----------------------------------------------------------------------

    async def upload_media(
        self,
        file_path: Union[str, Path],
        alt_text: Optional[str] = None,
        caption: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Upload a local file to the media library.

        Returns the media object (``id``, ``source_url``, ...). Raises
        FileNotFoundError when *file_path* does not exist.
        """
        file_path = Path(file_path)
        if not file_path.exists():
            raise FileNotFoundError(f"Media file not found: {file_path}")

        mime_type, _ = mimetypes.guess_type(str(file_path))
        upload_headers = {
            "Content-Type": mime_type or "application/octet-stream",
            "Content-Disposition": f'attachment; filename="{file_path.name}"',
        }
        _, result = await self._request("POST", "media", data=file_path.read_bytes(), headers=upload_headers)

        media_id = result.get("id")
        logger.info("Uploaded media %s: id=%s url=%s", file_path.name, media_id, result.get("source_url", ""))

        update_fields: Dict[str, Any] = {}
        if alt_text is not None:
            update_fields["alt_text"] = alt_text
        if caption is not None:
            update_fields["caption"] = caption
        if update_fields and media_id:
            await self._request("POST", f"media/{media_id}", json_data=update_fields)
        return result

    async def set_featured_image(self, post_id: int, media_id: int) -> Dict[str, Any]:
        """Set *media_id* as the featured image of *post_id*."""
        result = await self.update_post(post_id, featured_media=media_id)
        logger.info("Set featured image %d on post %d", media_id, post_id)
        return result

    # -----------------------------------------------------------------------
    # Published works
    # -----------------------------------------------------------------------

    async def list_published_works(self, limit: int = 50) -> List[PublishedWork]:
        """Most recent published posts as link targets, newest first."""
        posts = await self.list_posts(per_page=limit, status="publish", orderby="date", order="desc")
        works: List[PublishedWork] = []
        for post in posts:
            title = post.get("title")
            if isinstance(title, dict):
                title = title.get("rendered", "")
            link = post.get("link") or ""
            if not title or not link:
                continue
            works.append(PublishedWork(
                title=html.unescape(str(title)),
                url=link,
                published_at=post.get("date") or "",
                work_id=post.get("id"),
            ))
        logger.debug("Loaded %d published work(s)", len(works))
        return works

    async def recent_works(self, limit: int = 50) -> List[PublishedWork]:
        return await self.list_published_works(limit)

    # -----------------------------------------------------------------------
    # Sync wrappers
    # -----------------------------------------------------------------------

    def create_post_sync(self, title: str, content: str, status: str = "draft", **kwargs: Any) -> Dict[str, Any]:
        """Synchronous wrapper for create_post()."""
        return _run_sync(self._closing(self.create_post(title, content, status=status, **kwargs)))

    def update_post_sync(self, post_id: int, **fields: Any) -> Dict[str, Any]:
        """Synchronous wrapper for update_post()."""
        return _run_sync(self._closing(self.update_post(post_id, **fields)))

    def recent_works_sync(self, limit: int = 50) -> List[PublishedWork]:
        """Synchronous wrapper for recent_works()."""
        return _run_sync(self._closing(self.recent_works(limit)))

    async def _closing(self, coro: Coroutine) -> Any:
        # The session is bound to the loop that created it
        try:
            return await coro
        finally:
            await self.close()

    def __repr__(self) -> str:
        return f"WordPressClient({self.target!r})"
