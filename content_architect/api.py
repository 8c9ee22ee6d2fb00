"""
Content Architect API Server
============================

FastAPI surface over the two boundary operations. Authentication is left to
whatever sits in front of this server; ``identity`` is taken as given.

Routes:
    GET  /health           configuration summary and cache size
    POST /generate         {"topic", "identity"} -> token + generated job
    POST /apply            {"token", "target"}   -> publish result
    GET  /prompt/default   built-in content prompt and its placeholders

Run directly:
    python -m content_architect.api
    uvicorn content_architect.api:app --host 0.0.0.0 --port 8770

Settings come from ``ACA_*`` environment variables, or from the JSON file
named by ``ACA_SETTINGS_FILE``. Port via ``ACA_API_PORT`` (default 8770).
"""

from __future__ import annotations

import logging
import os
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from pydantic import BaseModel, Field

from content_architect.composer import DEFAULT_CONTENT_PROMPT, FORMATTING_REQUIREMENTS, PLACEHOLDER_NAMES
from content_architect.config import ArchitectConfig
from content_architect.service import ArchitectService

logger = logging.getLogger("content_architect.api")

API_PORT = int(os.getenv("ACA_API_PORT", "8770"))
SETTINGS_FILE_ENV = "ACA_SETTINGS_FILE"


# ---------------------------------------------------------------------------
# Pydantic Models
# ---------------------------------------------------------------------------


class GenerateRequest(BaseModel):
    topic: str = Field(..., min_length=1)
    identity: str = "anonymous"


class ApplyRequest(BaseModel):
    token: str = Field(..., min_length=1)
    target: int = Field(0, ge=0)


class StatusResponse(BaseModel):
    status: str
    timestamp: str
    subsystems: Dict[str, str] = Field(default_factory=dict)
    version: str = "1.0.0"


class GenerateResponse(BaseModel):
    success: bool
    token: Optional[str] = None
    data: Dict[str, Any] = Field(default_factory=dict)
    errors: List[str] = Field(default_factory=list)


class ApplyResponse(BaseModel):
    success: bool
    message: str = ""
    errors: List[str] = Field(default_factory=list)
    post_id: Optional[int] = None
    link: str = ""
    data: Optional[Dict[str, Any]] = None


# ---------------------------------------------------------------------------
# Application State
# ---------------------------------------------------------------------------


class AppState:
    """Holds the service every request is routed to."""

    def __init__(self, service: Optional[ArchitectService] = None) -> None:
        self.service = service
        self.start_time: float = 0.0


def load_config() -> ArchitectConfig:
    settings_file = os.getenv(SETTINGS_FILE_ENV)
    if settings_file:
        return ArchitectConfig.from_file(Path(settings_file))
    return ArchitectConfig.from_env()


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def get_state(request: Request) -> AppState:
    return request.app.state.architect


def get_service(state: AppState = Depends(get_state)) -> ArchitectService:
    if state.service is None:
        raise HTTPException(503, "Service not initialized")
    return state.service


# ---------------------------------------------------------------------------
# App factory
# ---------------------------------------------------------------------------


def create_app(service: Optional[ArchitectService] = None) -> FastAPI:
    """Build the FastAPI app; *service* is created from settings on startup when omitted."""
    app_state = AppState(service)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app_state.start_time = time.monotonic()
        if app_state.service is None:
            app_state.service = ArchitectService(load_config())
        cfg = app_state.service.config
        logger.info(
            "Content Architect API ready (text=%s images=%s research=%s publishing=%s)",
            cfg.text_provider, cfg.image_provider, cfg.research_enabled, cfg.publishing_enabled,
        )
        yield
        logger.info("Content Architect API shutting down")

    app = FastAPI(
        title="Content Architect API",
        description="Topic-to-article generation with links and sourced images.",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.architect = app_state

    @app.get("/health", response_model=StatusResponse, tags=["Health"])
    async def health(state: AppState = Depends(get_state)):
        """Server health check with configuration summary."""
        subs: Dict[str, str] = {}
        if state.service is not None:
            cfg = state.service.config
            subs["text_provider"] = cfg.text_provider
            subs["image_provider"] = cfg.image_provider
            subs["research"] = "enabled" if cfg.research_enabled else "disabled"
            subs["publishing"] = "configured" if cfg.publishing_enabled else "unconfigured"
            subs["cache_entries"] = str(len(state.service.cache))
        uptime = time.monotonic() - state.start_time if state.start_time else 0
        subs["uptime_seconds"] = f"{uptime:.0f}"
        status = "ok" if state.service is not None else "starting"
        return StatusResponse(status=status, timestamp=_now_iso(), subsystems=subs)

    @app.post("/generate", response_model=GenerateResponse, tags=["Generation"])
    async def generate(req: GenerateRequest, service: ArchitectService = Depends(get_service)):
        """Run the generation pipeline and cache the result under a token."""
        if not req.topic.strip():
            raise HTTPException(400, "Topic is required")
        result = await service.start_generation(req.topic, req.identity)
        if not result["success"]:
            raise HTTPException(502, {"errors": result["errors"], "data": result["data"]})
        return GenerateResponse(**result)

    @app.post("/apply", response_model=ApplyResponse, tags=["Generation"])
    async def apply(req: ApplyRequest, service: ArchitectService = Depends(get_service)):
        """Publish a cached generation to WordPress."""
        result = await service.apply_generation(req.token, req.target)
        if not result["success"]:
            detail = "; ".join(result["errors"]) or "Apply failed"
            kind = result.get("error_kind", "")
            if kind == "validation":
                raise HTTPException(404 if "not found" in detail else 400, detail)
            if kind == "configuration":
                raise HTTPException(400, detail)
            raise HTTPException(502, detail)
        return ApplyResponse(**{k: v for k, v in result.items() if k in ApplyResponse.model_fields})

    @app.get("/prompt/default", tags=["Generation"])
    async def default_prompt():
        """The built-in content prompt, for use as a starting point for custom prompts."""
        return {
            "prompt": DEFAULT_CONTENT_PROMPT,
            "formatting_requirements": FORMATTING_REQUIREMENTS,
            "placeholders": [f"{{{name}}}" for name in PLACEHOLDER_NAMES],
        }

    return app


app = create_app()


# ===================================================================
# Entry Point
# ===================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "content_architect.api:app",
        host="0.0.0.0",
        port=API_PORT,
        reload=False,
        log_level="info",
    )
