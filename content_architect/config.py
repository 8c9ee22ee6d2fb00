"""
Configuration for Content Architect.

A flat key/value mapping, read-only to the pipeline. One ``ArchitectConfig``
is built per job and threaded through every component entry point.

Sources (later wins):
    - dataclass defaults
    - a JSON settings file (``from_file``)
    - environment variables ``ACA_<KEY>`` (``from_env``)
    - an explicit mapping (``from_mapping``)

Documented keys:
    text_provider            anthropic | gemini
    anthropic_api_key        Claude API key (falls back to ANTHROPIC_API_KEY)
    gemini_api_key           Google Gemini API key
    text_model               model override for the selected text provider
    pexels_api_key           Pexels API key
    unsplash_api_key         Unsplash access key
    perplexity_api_key       optional research capability
    image_provider           pexels | unsplash
    max_internal_links       default 3
    max_external_links       default 3
    max_content_images       default 2
    auto_save_draft          default true
    custom_content_prompt    optional prompt template
    media_dir                durable image storage directory
    media_base_url           public base URL for stored media
    cache_ttl_seconds        default 3600
    cache_path               optional JSON file backing the result cache
    wp_url, wp_user, wp_app_password   WordPress publishing target
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from content_architect.errors import ConfigurationError

logger = logging.getLogger("content_architect.config")

ENV_PREFIX = "ACA_"

BASE_DIR = Path(__file__).resolve().parent.parent
DEFAULT_MEDIA_DIR = BASE_DIR / "data" / "media"

TEXT_PROVIDERS = ("anthropic", "gemini")
IMAGE_PROVIDERS = ("pexels", "unsplash")

_TRUE_VALUES = ("1", "true", "yes", "on")
_FALSE_VALUES = ("0", "false", "no", "off", "")


def _coerce_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    text = str(value).strip().lower()
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    raise ConfigurationError(f"Not a boolean value: {value!r}")


def _coerce_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"Not an integer value: {value!r}")


@dataclass(frozen=True)
class ArchitectConfig:
    """Immutable per-job configuration value object."""

    # Text generation
    text_provider: str = "anthropic"
    anthropic_api_key: str = ""
    gemini_api_key: str = ""
    text_model: str = ""

    # Image search
    image_provider: str = "pexels"
    pexels_api_key: str = ""
    unsplash_api_key: str = ""

    # Research (optional)
    perplexity_api_key: str = ""

    # Content settings
    max_internal_links: int = 3
    max_external_links: int = 3
    max_content_images: int = 2
    auto_save_draft: bool = True
    custom_content_prompt: str = ""

    # Storage
    media_dir: str = str(DEFAULT_MEDIA_DIR)
    media_base_url: str = ""
    cache_ttl_seconds: int = 3600
    cache_path: str = ""

    # Publishing target
    wp_url: str = ""
    wp_user: str = ""
    wp_app_password: str = ""

    def __post_init__(self) -> None:
        if self.text_provider not in TEXT_PROVIDERS:
            raise ConfigurationError(
                f"Invalid text_provider '{self.text_provider}'. "
                f"Must be one of: {TEXT_PROVIDERS}"
            )
        if self.image_provider not in IMAGE_PROVIDERS:
            raise ConfigurationError(
                f"Invalid image_provider '{self.image_provider}'. "
                f"Must be one of: {IMAGE_PROVIDERS}"
            )
        if self.cache_ttl_seconds <= 0:
            raise ConfigurationError(
                f"cache_ttl_seconds must be positive, got {self.cache_ttl_seconds}"
            )

    # -- Construction -------------------------------------------------------

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]] = None, **overrides: Any) -> "ArchitectConfig":
        """Build a config from a flat mapping, ignoring unknown keys."""
        merged: Dict[str, Any] = dict(data or {})
        merged.update(overrides)

        kwargs: Dict[str, Any] = {}
        for f in fields(cls):
            if f.name not in merged or merged[f.name] is None:
                continue
            value = merged[f.name]
            if f.type in ("bool", bool):
                value = _coerce_bool(value)
            elif f.type in ("int", int):
                value = _coerce_int(value)
            else:
                value = str(value)
            kwargs[f.name] = value

        unknown = set(merged) - {f.name for f in fields(cls)}
        if unknown:
            logger.debug("Ignoring unknown config keys: %s", ", ".join(sorted(unknown)))
        return cls(**kwargs)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides: Any) -> "ArchitectConfig":
        """Build a config from ``ACA_<KEY>`` environment variables."""
        env = os.environ if environ is None else environ
        data: Dict[str, Any] = {}
        for f in fields(cls):
            env_name = ENV_PREFIX + f.name.upper()
            if env_name in env:
                data[f.name] = env[env_name]
        if "anthropic_api_key" not in data and env.get("ANTHROPIC_API_KEY"):
            data["anthropic_api_key"] = env["ANTHROPIC_API_KEY"]
        data.update(overrides)
        return cls.from_mapping(data)

    @classmethod
    def from_file(cls, path: Path, environ: Optional[Mapping[str, str]] = None) -> "ArchitectConfig":
        """Load a JSON settings file, then layer environment overrides on top."""
        try:
            with open(path, "r", encoding="utf-8") as fh:
                data = json.load(fh)
        except FileNotFoundError:
            raise ConfigurationError(f"Settings file not found: {path}")
        except json.JSONDecodeError as exc:
            raise ConfigurationError(f"Settings file {path} is not valid JSON: {exc}")
        if not isinstance(data, dict):
            raise ConfigurationError(f"Settings file {path} must contain a JSON object")

        env = os.environ if environ is None else environ
        for f in fields(cls):
            env_name = ENV_PREFIX + f.name.upper()
            if env_name in env:
                data[f.name] = env[env_name]
        return cls.from_mapping(data)

    # -- Accessors ----------------------------------------------------------

    def require(self, key: str) -> str:
        """Return a required string setting, raising ConfigurationError when empty."""
        if not hasattr(self, key):
            raise ConfigurationError(f"Unknown configuration key: {key}")
        value = getattr(self, key)
        if value in ("", None):
            raise ConfigurationError(f"Required configuration key '{key}' is not set")
        return value

    @property
    def research_enabled(self) -> bool:
        return bool(self.perplexity_api_key)

    @property
    def publishing_enabled(self) -> bool:
        return bool(self.wp_url and self.wp_user and self.wp_app_password)

    def to_dict(self, redact: bool = True) -> Dict[str, Any]:
        """Serialize to a plain dict, masking secrets unless *redact* is False."""
        data = asdict(self)
        if redact:
            for key in data:
                if (key.endswith("_api_key") or key.endswith("_password")) and data[key]:
                    data[key] = "****" + str(data[key])[-4:]
        return data
