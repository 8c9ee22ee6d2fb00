"""
Boundary operations for Content Architect.

    start_generation(topic, identity)  run the pipeline; on success cache the
                                       job under a fresh token
    apply_generation(token, target)    claim a cached job and publish it to
                                       WordPress

Both return plain dicts shaped for the HTTP and CLI surfaces:

    start -> {"success", "data", "errors", "token"}
    apply -> {"success", "message", "errors", ...}

A token is consumed at most once. Apply claims the entry atomically before
its first await, so an overlapping apply of the same token sees it as not
found. A rejected or failed apply restores the entry for a retry. Once the
post exists, failures setting its featured image or meta are warnings and
the token is still consumed.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from content_architect.cache import JobCache, make_token
from content_architect.config import ArchitectConfig
from content_architect.errors import ArchitectError, ValidationError
from content_architect.models import GenerationJob
from content_architect.pipeline import ArticlePipeline, _run_sync, build_pipeline
from content_architect.storage import MediaStore
from content_architect.wordpress_client import WordPressClient

logger = logging.getLogger("content_architect.service")

NEW_POST_TARGET = 0

META_GENERATED = "_aca_generated"
META_PRIMARY_KEYWORD = "_aca_primary_keyword"
META_KEYWORDS = "_aca_keywords"
META_GENERATION_DATE = "_aca_generation_date"


def generation_meta(job: GenerationJob, now: Optional[datetime] = None) -> Dict[str, Any]:
    """Post meta recording that (and when) a post was generated."""
    return {
        META_GENERATED: True,
        META_PRIMARY_KEYWORD: job.primary_keyword,
        META_KEYWORDS: ", ".join(job.keywords),
        META_GENERATION_DATE: (now or datetime.now()).strftime("%Y-%m-%d %H:%M:%S"),
    }


def _failure(errors: List[str], message: str = "", kind: str = "") -> Dict[str, Any]:
    result: Dict[str, Any] = {"success": False, "message": message, "errors": errors}
    if kind:
        result["error_kind"] = kind
    return result


def _warn(warnings: List[str], message: str) -> None:
    logger.warning("%s", message)
    warnings.append(message)


class ArchitectService:
    """
    Generation and publishing entry points bound to one configuration.

    Parameters
    ----------
    config : ArchitectConfig
        Settings for every job started through this service.
    cache : JobCache, optional
        Result cache; defaults to one honoring ``cache_ttl_seconds`` and
        ``cache_path``.
    pipeline_factory : callable, optional
        ``config -> ArticlePipeline``; defaults to :func:`build_pipeline`.
    publisher_factory : callable, optional
        ``config -> WordPressClient``; defaults to ``WordPressClient.from_config``.
    """

    def __init__(
        self,
        config: ArchitectConfig,
        cache: Optional[JobCache] = None,
        pipeline_factory: Optional[Callable[[ArchitectConfig], ArticlePipeline]] = None,
        publisher_factory: Optional[Callable[[ArchitectConfig], WordPressClient]] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config
        self.cache = cache or JobCache(
            ttl_seconds=config.cache_ttl_seconds,
            path=config.cache_path or None,
        )
        self._pipeline_factory = pipeline_factory or build_pipeline
        self._publisher_factory = publisher_factory or WordPressClient.from_config
        self._clock = clock

    # ------------------------------------------------------------------
    # start_generation
    # ------------------------------------------------------------------

    async def start_generation(self, topic: str, identity: str = "anonymous") -> Dict[str, Any]:
        """Run the full pipeline for *topic*; cache the job when it succeeds."""
        if not topic or not topic.strip():
            return {"success": False, "data": {}, "errors": ["Topic is required"], "token": None}

        pipeline = self._pipeline_factory(self.config)
        try:
            job = await pipeline.run(topic.strip())
        finally:
            await pipeline.close()

        if not job.succeeded:
            return {"success": False, "data": job.to_dict(), "errors": list(job.errors), "token": None}

        token = make_token(identity or "anonymous", self._clock())
        self.cache.put(token, job)
        return {"success": True, "data": job.to_dict(), "errors": list(job.errors), "token": token}

    def start_generation_sync(self, topic: str, identity: str = "anonymous") -> Dict[str, Any]:
        """Synchronous wrapper for start_generation()."""
        return _run_sync(self.start_generation(topic, identity))

    # ------------------------------------------------------------------
    # apply_generation
    # ------------------------------------------------------------------

    def _claim_job(self, token: str) -> GenerationJob:
        if not token:
            raise ValidationError("Token is required", source="apply")
        job = self.cache.claim(token)
        if job is None:
            raise ValidationError("Generated content not found or expired", source="apply")
        if not job.title or not job.content:
            self.cache.restore(token)
            raise ValidationError("Generated content is incomplete", source="apply")
        return job

    async def apply_generation(self, token: str, target: int = NEW_POST_TARGET) -> Dict[str, Any]:
        """
        Publish the cached job behind *token*.

        ``target`` 0 creates a new post (draft when ``auto_save_draft``,
        published otherwise); a positive id updates that post and keeps it a
        draft. Without publishing credentials a target of 0 just hands the
        content back.

        The cache entry is claimed before anything is awaited, so concurrent
        applies of one token publish once. A rejected or failed apply puts
        the entry back for a retry.
        """
        try:
            job = self._claim_job(token)
        except ValidationError as exc:
            logger.warning("Apply rejected: %s", exc.describe())
            return _failure([exc.message], kind=exc.kind)

        if not isinstance(target, int) or target < 0:
            self.cache.restore(token)
            exc = ValidationError(f"Invalid target post id: {target!r}", source="apply")
            logger.warning("Apply rejected: %s", exc.describe())
            return _failure([exc.message], kind=exc.kind)

        if not self.config.publishing_enabled:
            if target != NEW_POST_TARGET:
                self.cache.restore(token)
                return _failure(
                    ["WordPress publishing target is not configured"], kind="configuration",
                )
            self.cache.consume(token)
            logger.info("Apply %s: no publishing target, content handed back", token)
            return {
                "success": True,
                "message": "Content ready for new post",
                "errors": [],
                "data": job.to_dict(),
            }

        client = self._publisher_factory(self.config)
        try:
            result = await self._publish(client, job, target)
        except ArchitectError as exc:
            self.cache.restore(token)
            logger.error("Apply %s failed: %s", token, exc.describe())
            return _failure([exc.describe()], kind=exc.kind)
        finally:
            await client.close()

        self.cache.consume(token)
        return result

    async def _publish(self, client: WordPressClient, job: GenerationJob, target: int) -> Dict[str, Any]:
        warnings: List[str] = []
        media_id = await self._upload_featured(client, job, warnings)

        if target == NEW_POST_TARGET:
            status = "draft" if self.config.auto_save_draft else "publish"
            post = await client.create_post(
                job.title, job.content, status=status, slug=job.slug, excerpt=job.excerpt,
            )
            post_id = int(post.get("id") or 0)
            message = "Post created successfully"
        else:
            post = await client.update_post(
                target, title=job.title, content=job.content, excerpt=job.excerpt, status="draft",
            )
            post_id = target
            message = "Content applied successfully"

        # post exists; follow-up failures are warnings
        if media_id:
            try:
                await client.set_featured_image(post_id, media_id)
            except ArchitectError as exc:
                _warn(warnings, f"Featured image not set on post {post_id}: {exc.describe()}")
        try:
            await client.update_meta(post_id, generation_meta(job))
        except ArchitectError as exc:
            _warn(warnings, f"Generation meta not saved on post {post_id}: {exc.describe()}")

        logger.info("Applied job %s to post %d (%s)", job.job_id[:8], post_id, message)
        return {
            "success": True,
            "message": message,
            "errors": warnings,
            "post_id": post_id,
            "link": post.get("link", ""),
            "featured_media": media_id,
        }

    async def _upload_featured(
        self, client: WordPressClient, job: GenerationJob, warnings: List[str],
    ) -> Optional[int]:
        asset = job.featured_image
        if asset is None:
            return None
        path = MediaStore.from_config(self.config).path_for(asset.local_ref)
        try:
            media = await client.upload_media(path, alt_text=asset.alt_text, caption=asset.attribution)
        except FileNotFoundError:
            _warn(warnings, f"Featured image file missing: {path}")
            return None
        return media.get("id")

    def apply_generation_sync(self, token: str, target: int = NEW_POST_TARGET) -> Dict[str, Any]:
        """Synchronous wrapper for apply_generation()."""
        return _run_sync(self.apply_generation(token, target))
