"""
Durable media storage for Content Architect.

Downloads a remote image, verifies it with Pillow and writes it into the
configured media directory under a content-hash filename, so the same image
fetched twice lands in the same file. Writes are atomic (tmp file, then
replace).

Usage:
    from content_architect.storage import MediaStore

    store = MediaStore.from_config(config)
    result = await store.store("https://images.pexels.com/photos/1/a.jpeg")
    if result.ok:
        print(result.value.local_ref, result.value.public_url)
"""

from __future__ import annotations

import asyncio
import hashlib
import io
import logging
import os
import time
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Union

import aiohttp
from PIL import Image, UnidentifiedImageError

from content_architect.config import ArchitectConfig
from content_architect.errors import ArchitectError, CapabilityResult, ProviderError, TransportError

logger = logging.getLogger("content_architect.storage")

DOWNLOAD_TIMEOUT_SECONDS = 30
MAX_IMAGE_BYTES = 20 * 1024 * 1024

# Pillow format name -> file extension
FORMAT_EXTENSIONS = {
    "JPEG": "jpg",
    "PNG": "png",
    "GIF": "gif",
    "WEBP": "webp",
    "BMP": "bmp",
    "TIFF": "tif",
}


@dataclass
class StoredMedia:
    """Handle to an image persisted in the media directory."""

    local_ref: str
    path: str
    public_url: str
    source_url: str
    width: int
    height: int
    content_type: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _atomic_write(path: Path, data: bytes) -> None:
    """Write *data* to *path* through a temporary sibling file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    try:
        with open(tmp, "wb") as fh:
            fh.write(data)
        os.replace(str(tmp), str(path))
    except OSError:
        try:
            tmp.unlink(missing_ok=True)
        except OSError:
            pass
        raise


def inspect_image(data: bytes) -> Dict[str, Any]:
    """
    Verify *data* decodes as an image.

    Returns format, extension, width and height; raises ProviderError when
    Pillow cannot identify the payload.
    """
    try:
        with Image.open(io.BytesIO(data)) as img:
            fmt = img.format or ""
            width, height = img.size
            img.verify()
    except (UnidentifiedImageError, OSError, SyntaxError) as exc:
        raise ProviderError(f"Downloaded file is not a valid image: {exc}", source="storage")

    return {
        "format": fmt,
        "extension": FORMAT_EXTENSIONS.get(fmt, fmt.lower() or "img"),
        "width": width,
        "height": height,
        "content_type": Image.MIME.get(fmt, "application/octet-stream"),
    }


class MediaStore:
    """Content-addressed image store on the local filesystem."""

    def __init__(
        self,
        media_dir: Union[str, Path],
        base_url: str = "",
        timeout: float = DOWNLOAD_TIMEOUT_SECONDS,
    ):
        self.media_dir = Path(media_dir)
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    @classmethod
    def from_config(cls, config: ArchitectConfig) -> "MediaStore":
        return cls(config.media_dir, base_url=config.media_base_url)

    def path_for(self, local_ref: str) -> Path:
        return self.media_dir / local_ref

    def public_url_for(self, local_ref: str, source_url: str = "") -> str:
        """Public URL under ``media_base_url``, or *source_url* when unset."""
        if self.base_url:
            return f"{self.base_url}/{local_ref}"
        return source_url

    async def download(self, url: str) -> bytes:
        """Fetch the raw bytes of *url*."""
        try:
            async with aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            ) as session:
                async with session.get(url) as resp:
                    if resp.status >= 400:
                        raise TransportError(
                            f"HTTP {resp.status} downloading {url}",
                            source="storage",
                            status_code=resp.status,
                        )
                    data = await resp.read()
        except asyncio.TimeoutError:
            raise TransportError(f"Download timed out after {self.timeout}s: {url}", source="storage")
        except aiohttp.ClientError as exc:
            raise TransportError(f"{type(exc).__name__}: {exc}", source="storage")

        if not data:
            raise ProviderError(f"Empty download from {url}", source="storage")
        if len(data) > MAX_IMAGE_BYTES:
            raise ProviderError(
                f"Image too large ({len(data)} bytes, max {MAX_IMAGE_BYTES}): {url}",
                source="storage",
            )
        return data

    def save_bytes(self, data: bytes, source_url: str = "") -> StoredMedia:
        """Verify and persist already-downloaded image bytes."""
        info = inspect_image(data)
        digest = hashlib.sha256(data).hexdigest()[:24]
        local_ref = f"{digest}.{info['extension']}"
        path = self.path_for(local_ref)

        if path.exists():
            logger.debug("Media %s already stored", local_ref)
        else:
            _atomic_write(path, data)
            logger.info("Stored media %s (%dx%d, %d bytes)", local_ref, info["width"], info["height"], len(data))

        return StoredMedia(
            local_ref=local_ref,
            path=str(path),
            public_url=self.public_url_for(local_ref, source_url),
            source_url=source_url,
            width=info["width"],
            height=info["height"],
            content_type=info["content_type"],
        )

    async def store(self, url: str) -> CapabilityResult[StoredMedia]:
        """Download *url* into durable storage."""
        start_time = time.monotonic()
        try:
            data = await self.download(url)
            stored = self.save_bytes(data, source_url=url)
        except ArchitectError as exc:
            logger.warning(
                "Storing %s failed after %.1fs: %s", url, time.monotonic() - start_time, exc.describe(),
            )
            return CapabilityResult.failure(exc)
        except OSError as exc:
            logger.warning("Writing media for %s failed: %s", url, exc)
            return CapabilityResult.failure(ProviderError(f"Could not write media file: {exc}", source="storage"))
        return CapabilityResult.success(stored)

    def read_bytes(self, local_ref: str) -> Optional[bytes]:
        """Stored bytes for *local_ref*, or None when missing."""
        path = self.path_for(local_ref)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            return None
