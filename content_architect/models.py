"""
Data model for Content Architect generation jobs.

A ``GenerationJob`` is created when a topic is submitted, mutated in place by
each pipeline stage, and on success serialized into the result cache. Fields
are only ever appended stage by stage, never retracted.
"""

from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

FEATURED_PLACEMENT = "featured"


def _now_iso() -> str:
    """Return the current UTC timestamp in ISO 8601 format."""
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class JobStatus(str, Enum):
    """Externally visible outcome of a job."""
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"


class PipelineStage(str, Enum):
    """Ordered states of the pipeline state machine."""
    PENDING = "pending"
    COMPOSING_OUTLINE = "composing_outline"
    COMPOSING_CONTENT = "composing_content"
    INJECTING_LINKS = "injecting_links"
    SOURCING_MEDIA = "sourcing_media"
    SUCCESS = "success"
    FAILED = "failed"


# Forward-only execution order (terminal states excluded)
STAGE_ORDER: List[PipelineStage] = [
    PipelineStage.PENDING,
    PipelineStage.COMPOSING_OUTLINE,
    PipelineStage.COMPOSING_CONTENT,
    PipelineStage.INJECTING_LINKS,
    PipelineStage.SOURCING_MEDIA,
]

TERMINAL_STAGES = (PipelineStage.SUCCESS, PipelineStage.FAILED)


class LinkKind(str, Enum):
    INTERNAL = "internal"
    EXTERNAL = "external"


# ---------------------------------------------------------------------------
# Data Classes
# ---------------------------------------------------------------------------


@dataclass
class OutlineItem:
    """A heading plus its ordinal position in the outline."""

    heading: str
    position: int

    def __post_init__(self) -> None:
        if not self.heading.strip():
            raise ValueError("Outline heading cannot be empty")


@dataclass
class ImageAsset:
    """An image that was searched, downloaded and placed."""

    provider: str
    source_url: str
    local_ref: str
    alt_text: str
    attribution: str = ""
    placement: str = FEATURED_PLACEMENT
    public_url: str = ""
    width: Optional[int] = None
    height: Optional[int] = None
    html: str = ""

    @property
    def is_featured(self) -> bool:
        return self.placement == FEATURED_PLACEMENT

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> ImageAsset:
        known = {f.name for f in cls.__dataclass_fields__.values()}
        return cls(**{k: v for k, v in data.items() if k in known})


@dataclass
class LinkCandidate:
    """A hyperlink the link injector considered."""

    anchor_text: str
    target_url: str
    kind: str = LinkKind.INTERNAL.value
    resolved: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class PublishedWork:
    """An existing published article eligible as an internal link target."""

    title: str
    url: str
    published_at: str = ""
    work_id: Optional[int] = None


@dataclass
class GenerationJob:
    """Complete state for one topic-to-article generation."""

    topic: str
    job_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    primary_keyword: str = ""
    title: str = ""
    slug: str = ""
    outline: List[str] = field(default_factory=list)
    content: str = ""
    excerpt: str = ""
    keywords: List[str] = field(default_factory=list)
    featured_image: Optional[ImageAsset] = None
    content_images: List[ImageAsset] = field(default_factory=list)
    status: str = JobStatus.PENDING.value
    stage: str = PipelineStage.PENDING.value
    errors: List[str] = field(default_factory=list)

    # Bookkeeping
    internal_links_added: int = 0
    external_links_added: int = 0
    created_at: str = field(default_factory=_now_iso)
    completed_at: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status == JobStatus.SUCCESS.value

    @property
    def outline_items(self) -> List[OutlineItem]:
        return [OutlineItem(heading=h, position=i + 1) for i, h in enumerate(self.outline)]

    def add_error(self, message: str) -> None:
        self.errors.append(message)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["featured_image"] = self.featured_image.to_dict() if self.featured_image else None
        data["content_images"] = [img.to_dict() for img in self.content_images]
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> GenerationJob:
        known = {f.name for f in cls.__dataclass_fields__.values()}
        filtered = {k: v for k, v in data.items() if k in known}
        featured = filtered.get("featured_image")
        if isinstance(featured, dict):
            filtered["featured_image"] = ImageAsset.from_dict(featured)
        filtered["content_images"] = [
            ImageAsset.from_dict(img) if isinstance(img, dict) else img
            for img in filtered.get("content_images", [])
        ]
        return cls(**filtered)
