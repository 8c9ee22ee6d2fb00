"""
Content Architect
=================

Topic-to-article generation: keyword/title derivation, AI outline and body,
internal and external link injection, stock-image sourcing, and publishing
to WordPress through a short-lived token.

Usage:
    from content_architect import ArchitectConfig, ArchitectService

    service = ArchitectService(ArchitectConfig.from_env())
    result = service.start_generation_sync("home composting", identity="alice")
    service.apply_generation_sync(result["token"], target=0)
"""

from __future__ import annotations

import logging

__version__ = "1.0.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logger = logging.getLogger("content_architect")

if not logger.handlers:
    _handler = logging.StreamHandler()
    _handler.setFormatter(
        logging.Formatter(
            "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    logger.addHandler(_handler)
    logger.setLevel(logging.INFO)

from content_architect.config import ArchitectConfig  # noqa: E402
from content_architect.errors import (  # noqa: E402
    ArchitectError,
    CapabilityResult,
    ConfigurationError,
    ParseError,
    ProviderError,
    TransportError,
    ValidationError,
)
from content_architect.models import GenerationJob, ImageAsset, JobStatus, PipelineStage  # noqa: E402
from content_architect.pipeline import ArticlePipeline, build_pipeline  # noqa: E402
from content_architect.service import ArchitectService  # noqa: E402

__all__ = [
    "ArchitectConfig",
    "ArchitectError",
    "ArchitectService",
    "ArticlePipeline",
    "CapabilityResult",
    "ConfigurationError",
    "GenerationJob",
    "ImageAsset",
    "JobStatus",
    "ParseError",
    "PipelineStage",
    "ProviderError",
    "TransportError",
    "ValidationError",
    "build_pipeline",
]
