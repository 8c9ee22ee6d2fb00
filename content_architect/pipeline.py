"""
Pipeline Orchestrator for Content Architect.

Runs one topic through every generation stage, strictly in order:

    pending             keyword, title and slug derivation
    composing_outline   section headings via the text capability
    composing_content   full HTML body via the text capability
    injecting_links     internal links, then external placeholders
    sourcing_media      featured image, content images, in-body placement
    success | failed

Outline and content failures are fatal: the job ends ``failed`` with the
error appended and whatever was gathered before the failure kept for
diagnostics. Link and media failures are appended to ``errors`` and the job
carries on.

Usage:
    from content_architect.config import ArchitectConfig
    from content_architect.pipeline import build_pipeline

    pipeline = build_pipeline(ArchitectConfig.from_env())
    job = await pipeline.run("home composting")
    job = pipeline.run_sync("home composting")
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import logging
import random
import re
import time
from datetime import datetime, timezone
from typing import Any, Callable, Coroutine, Dict, Optional

from content_architect.composer import ContentComposer
from content_architect.config import ArchitectConfig
from content_architect.errors import ArchitectError
from content_architect.image_providers import ImageSearchProvider, build_image_search
from content_architect.keywords import derive_keywords, normalize_keyword
from content_architect.link_injector import (
    MAX_WORKS_SCANNED,
    PublishedWorksSource,
    StaticWorksSource,
    inject_external_links,
    inject_internal_links,
)
from content_architect.media import MediaSourcer, insert_images_into_content
from content_architect.models import GenerationJob, JobStatus, PipelineStage, STAGE_ORDER
from content_architect.outline import OutlineGenerator
from content_architect.storage import MediaStore
from content_architect.text_providers import Researcher, TextGenerator, build_researcher, build_text_generator
from content_architect.wordpress_client import WordPressClient

logger = logging.getLogger("content_architect.pipeline")

EXCERPT_MAX_CHARS = 150
EXCERPT_KEYWORD_ROOM = 120

_TAG_RE = re.compile(r"<[^>]+>")
_FIGURE_RE = re.compile(r"<figure\b.*?</figure>", re.IGNORECASE | re.DOTALL)


def _now_iso() -> str:
    """Return the current UTC timestamp in ISO 8601 format."""
    return datetime.now(timezone.utc).isoformat()


def _run_sync(coro: Coroutine) -> Any:
    """Run an async coroutine synchronously, handling nested event loops."""
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        loop = None

    if loop and loop.is_running():
        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
            future = pool.submit(asyncio.run, coro)
            return future.result()
    return asyncio.run(coro)


def generate_excerpt(content: str, primary_keyword: str) -> str:
    """
    Summary built from the leading sentences of the article text.

    Sentences (split on '.') are added while the running excerpt stays under
    150 characters. When the keyword does not appear and there is room, a
    short "Learn more about ..." sentence naming it is appended.
    """
    plain = _TAG_RE.sub("", _FIGURE_RE.sub("", content))
    excerpt = ""
    for sentence in plain.split("."):
        sentence = sentence.strip()
        if not sentence:
            continue
        if len(excerpt + sentence) < EXCERPT_MAX_CHARS:
            excerpt += sentence + ". "
        else:
            break

    excerpt = excerpt.strip()
    if excerpt and primary_keyword.lower() not in excerpt.lower():
        if len(excerpt) < EXCERPT_KEYWORD_ROOM:
            excerpt += f" Learn more about {normalize_keyword(primary_keyword)}."
    return excerpt.strip()


class ArticlePipeline:
    """
    Topic-to-article generation for one configuration.

    Every collaborator is passed in; ``build_pipeline`` wires the defaults
    from an :class:`ArchitectConfig`.
    """

    def __init__(
        self,
        config: ArchitectConfig,
        text_generator: TextGenerator,
        image_search: ImageSearchProvider,
        researcher: Researcher,
        media_store: MediaStore,
        works_source: Optional[PublishedWorksSource] = None,
        rng: Optional[random.Random] = None,
    ):
        self.config = config
        self.works_source: PublishedWorksSource = works_source or StaticWorksSource()
        self._rng = rng
        self._outline = OutlineGenerator(text_generator)
        self._composer = ContentComposer(config, text_generator, image_search, researcher)
        self._media = MediaSourcer(image_search, media_store)
        self._stage_map: Dict[PipelineStage, Callable[[GenerationJob], Coroutine[Any, Any, bool]]] = {
            PipelineStage.PENDING: self._stage_keywords,
            PipelineStage.COMPOSING_OUTLINE: self._stage_outline,
            PipelineStage.COMPOSING_CONTENT: self._stage_content,
            PipelineStage.INJECTING_LINKS: self._stage_links,
            PipelineStage.SOURCING_MEDIA: self._stage_media,
        }

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def run(self, topic: str) -> GenerationJob:
        """Execute every stage for *topic* and return the finished job."""
        job = GenerationJob(topic=topic)
        logger.info("Job %s started for topic '%s'", job.job_id[:8], topic)
        start_time = time.monotonic()

        for stage in STAGE_ORDER:
            self._advance(job, stage)
            stage_start = time.monotonic()
            ok = await self._stage_map[stage](job)
            logger.info(
                "Job %s stage %s finished in %.1fs",
                job.job_id[:8], stage.value, time.monotonic() - stage_start,
            )
            if not ok:
                self._finish(job, JobStatus.FAILED)
                logger.error(
                    "Job %s FAILED at stage %s: %s",
                    job.job_id[:8], stage.value, "; ".join(job.errors),
                )
                return job

        job.excerpt = generate_excerpt(job.content, job.primary_keyword)
        self._finish(job, JobStatus.SUCCESS)
        logger.info(
            "Job %s COMPLETED in %.1fs: title='%s' %d chars, %d+%d links, %d image(s), %d warning(s)",
            job.job_id[:8],
            time.monotonic() - start_time,
            job.title,
            len(job.content),
            job.internal_links_added,
            job.external_links_added,
            len(job.content_images) + (1 if job.featured_image else 0),
            len(job.errors),
        )
        return job

    def run_sync(self, topic: str) -> GenerationJob:
        return _run_sync(self._run_and_close(topic))

    async def _run_and_close(self, topic: str) -> GenerationJob:
        try:
            return await self.run(topic)
        finally:
            await self.close()

    async def close(self) -> None:
        """Release the works source's HTTP session, if it holds one."""
        close = getattr(self.works_source, "close", None)
        if close is not None:
            await close()

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    @staticmethod
    def _advance(job: GenerationJob, stage: PipelineStage) -> None:
        current = STAGE_ORDER.index(PipelineStage(job.stage))
        target = STAGE_ORDER.index(stage)
        if target < current:
            raise RuntimeError(f"Illegal stage transition {job.stage} -> {stage.value}")
        job.stage = stage.value
        logger.debug("Job %s -> %s", job.job_id[:8], stage.value)

    @staticmethod
    def _finish(job: GenerationJob, status: JobStatus) -> None:
        job.status = status.value
        job.stage = (PipelineStage.SUCCESS if status == JobStatus.SUCCESS else PipelineStage.FAILED).value
        job.completed_at = _now_iso()

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    async def _stage_keywords(self, job: GenerationJob) -> bool:
        try:
            derived = derive_keywords(job.topic, rng=self._rng)
        except ArchitectError as exc:
            job.add_error(exc.describe())
            return False
        job.primary_keyword = derived.primary_keyword
        job.keywords = list(derived.keywords)
        job.title = derived.title
        job.slug = derived.slug
        logger.info("Title: '%s' slug: %s", job.title, job.slug)
        return True

    async def _stage_outline(self, job: GenerationJob) -> bool:
        result = await self._outline.generate(job.title, job.keywords)
        if not result.ok:
            job.add_error(f"Failed to generate outline: {result.error.describe()}")
            return False
        job.outline = list(result.value)
        try:
            items = job.outline_items
        except ValueError as exc:
            job.add_error(f"Failed to generate outline: {exc}")
            return False
        for item in items:
            logger.debug("Outline %d: %s", item.position, item.heading)
        return True

    async def _stage_content(self, job: GenerationJob) -> bool:
        result = await self._composer.compose(job.outline, job.primary_keyword, job.keywords)
        if not result.ok:
            job.add_error(f"Failed to generate content: {result.error.describe()}")
            return False
        composition = result.value
        for warning in composition.warnings:
            job.add_error(warning)
        job.content = composition.content
        return True

    async def _stage_links(self, job: GenerationJob) -> bool:
        if self.config.max_internal_links > 0:
            try:
                works = await self.works_source.recent_works(MAX_WORKS_SCANNED)
            except ArchitectError as exc:
                job.add_error(f"Internal linking skipped: {exc.describe()}")
                logger.warning("Could not load published works: %s", exc.describe())
            else:
                internal = inject_internal_links(job.content, works, self.config.max_internal_links)
                job.content = internal.content
                job.internal_links_added = internal.links_added

        external = inject_external_links(job.content, self.config.max_external_links)
        job.content = external.content
        job.external_links_added = external.links_added
        return True

    async def _stage_media(self, job: GenerationJob) -> bool:
        featured, images, errors = await self._media.source_all(
            job.primary_keyword, job.title, job.outline, self.config.max_content_images,
        )
        for message in errors:
            job.add_error(message)
        job.featured_image = featured
        job.content_images = images
        if images:
            job.content = insert_images_into_content(job.content, images)
        return True


def build_pipeline(
    config: ArchitectConfig,
    works_source: Optional[PublishedWorksSource] = None,
    rng: Optional[random.Random] = None,
) -> ArticlePipeline:
    """
    Wire an :class:`ArticlePipeline` from *config*.

    Published works come from WordPress when publishing credentials are
    configured, otherwise the internal pass has an empty pool.
    """
    if works_source is None and config.publishing_enabled:
        works_source = WordPressClient.from_config(config)

    return ArticlePipeline(
        config=config,
        text_generator=build_text_generator(config),
        image_search=build_image_search(config),
        researcher=build_researcher(config),
        media_store=MediaStore.from_config(config),
        works_source=works_source,
        rng=rng,
    )
