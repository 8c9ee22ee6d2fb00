"""
Text-generation and research capabilities for Content Architect.

Uniform contract:
    generate_text(prompt, max_tokens, temperature) -> CapabilityResult[str]
    research(query) -> CapabilityResult[str]

Backends:
    AnthropicTextGenerator   Claude via the Anthropic Python SDK (default)
    GeminiTextGenerator      Google Gemini via its REST endpoint (aiohttp)
    PerplexityResearcher     Perplexity chat completions (aiohttp)
    NullResearcher           research capability left unconfigured

One call per invocation, no retries. Network failures and timeouts become
``TransportError``; unrecognized responses become ``ProviderError``.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Any, Dict, Optional

import aiohttp
import anthropic

from content_architect.config import ArchitectConfig
from content_architect.errors import (
    ArchitectError,
    CapabilityResult,
    ConfigurationError,
    ProviderError,
    TransportError,
)

logger = logging.getLogger("content_architect.text_providers")

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

MODEL_SONNET = "claude-sonnet-4-20250514"
MODEL_GEMINI_FLASH = "gemini-2.0-flash"
MODEL_PERPLEXITY = "sonar-pro"

GEMINI_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"
PERPLEXITY_URL = "https://api.perplexity.ai/chat/completions"

TEXT_TIMEOUT_SECONDS = 60
RESEARCH_TIMEOUT_SECONDS = 30

RESEARCH_SYSTEM_PROMPT = (
    "Act as a professional news researcher who is capable of finding detailed "
    "summaries about a news topic from highly reputable sources."
)


def _truncate(text: str, max_len: int = 200) -> str:
    """Truncate text for logging."""
    if len(text) <= max_len:
        return text
    return text[:max_len] + "..."


# ---------------------------------------------------------------------------
# Text generation
# ---------------------------------------------------------------------------


class TextGenerator:
    """Base class: subclasses implement :meth:`_generate` and raise on failure."""

    name = "text"

    async def generate_text(
        self,
        prompt: str,
        max_tokens: int = 2000,
        temperature: float = 0.7,
    ) -> CapabilityResult[str]:
        """Generate one completion for *prompt*; never raises ArchitectError."""
        logger.debug(
            "%s call: max_tokens=%d temperature=%.1f prompt_len=%d",
            self.name, max_tokens, temperature, len(prompt),
        )
        start_time = time.monotonic()
        try:
            text = await self._generate(prompt, max_tokens, temperature)
        except ArchitectError as exc:
            if not exc.source:
                exc.source = self.name
            logger.error(
                "%s call failed after %.1fs: %s",
                self.name, time.monotonic() - start_time, exc.describe(),
            )
            return CapabilityResult.failure(exc)

        logger.debug(
            "%s response: %d chars in %.1fs",
            self.name, len(text), time.monotonic() - start_time,
        )
        return CapabilityResult.success(text)

    async def _generate(self, prompt: str, max_tokens: int, temperature: float) -> str:
        raise NotImplementedError


class AnthropicTextGenerator(TextGenerator):
    """Claude text generation through the Anthropic SDK."""

    name = "anthropic"

    def __init__(self, api_key: str, model: str = MODEL_SONNET, timeout: float = TEXT_TIMEOUT_SECONDS):
        self.api_key = api_key
        self.model = model or MODEL_SONNET
        self.timeout = timeout
        self._client: Optional[anthropic.AsyncAnthropic] = None

    def _ensure_client(self) -> anthropic.AsyncAnthropic:
        """Lazily initialize the async Anthropic client."""
        if not self.api_key:
            raise ConfigurationError("Anthropic API key is required", source=self.name)
        if self._client is None:
            self._client = anthropic.AsyncAnthropic(
                api_key=self.api_key, timeout=self.timeout, max_retries=0,
            )
        return self._client

    async def _generate(self, prompt: str, max_tokens: int, temperature: float) -> str:
        client = self._ensure_client()
        try:
            response = await client.messages.create(
                model=self.model,
                max_tokens=max_tokens,
                temperature=temperature,
                messages=[{"role": "user", "content": prompt}],
            )
        except anthropic.APIConnectionError as exc:
            raise TransportError(f"Anthropic API unreachable: {exc}", source=self.name)
        except anthropic.APIStatusError as exc:
            raise ProviderError(
                f"Anthropic API error {exc.status_code}: {exc.message}",
                source=self.name,
                response_body=_truncate(str(exc.body), 500),
            )

        text = "".join(
            getattr(block, "text", "") for block in (response.content or [])
        )
        if not text.strip():
            if getattr(response, "stop_reason", None) == "max_tokens":
                raise ProviderError(
                    "Response was truncated due to token limit", source=self.name,
                )
            raise ProviderError("Anthropic API returned no text content", source=self.name)
        return text


class GeminiTextGenerator(TextGenerator):
    """Google Gemini text generation over REST."""

    name = "gemini"

    def __init__(self, api_key: str, model: str = MODEL_GEMINI_FLASH, timeout: float = TEXT_TIMEOUT_SECONDS):
        self.api_key = api_key
        self.model = model or MODEL_GEMINI_FLASH
        self.timeout = timeout

    async def _generate(self, prompt: str, max_tokens: int, temperature: float) -> str:
        if not self.api_key:
            raise ConfigurationError("Google Gemini API key is required", source=self.name)

        url = GEMINI_URL.format(model=self.model)
        body = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": temperature,
                "maxOutputTokens": max_tokens,
                "topP": 0.8,
                "topK": 10,
            },
        }

        data = await _post_json(
            url,
            body,
            headers={"Content-Type": "application/json"},
            params={"key": self.api_key},
            timeout=self.timeout,
            source=self.name,
        )
        return extract_gemini_text(data)


def extract_gemini_text(data: Any) -> str:
    """Pull the generated text out of any recognized Gemini response shape."""
    if not isinstance(data, dict):
        raise ProviderError("Unexpected API response structure", source="gemini")

    if "error" in data:
        error = data["error"]
        message = error.get("message", str(error)) if isinstance(error, dict) else str(error)
        raise ProviderError(message, source="gemini")

    candidates = data.get("candidates") or []
    candidate = candidates[0] if candidates and isinstance(candidates[0], dict) else {}
    content = candidate.get("content") or {}

    text: Optional[str] = None
    if isinstance(content, dict):
        parts = content.get("parts")
        if isinstance(parts, list):
            for part in parts:
                if isinstance(part, dict) and part.get("text"):
                    text = part["text"]
                    break
        if text is None and content.get("text"):
            text = content["text"]

    if text:
        return text

    if candidate.get("finishReason") == "MAX_TOKENS":
        raise ProviderError(
            "Response was truncated due to token limit. Try reducing prompt "
            "length or increasing max tokens.",
            source="gemini",
        )
    if content and "thoughtsTokenCount" in (data.get("usageMetadata") or {}):
        raise ProviderError(
            "AI used all tokens for thinking but produced no text.",
            source="gemini",
        )
    raise ProviderError(
        "Unexpected API response structure",
        source="gemini",
        response_body=_truncate(json.dumps(data, default=str), 500),
    )


# ---------------------------------------------------------------------------
# Research
# ---------------------------------------------------------------------------


class Researcher:
    """Base research capability."""

    name = "research"

    @property
    def configured(self) -> bool:
        return True

    async def research(self, query: str) -> CapabilityResult[str]:
        raise NotImplementedError


class NullResearcher(Researcher):
    """Stand-in when no research key is configured: yields empty context."""

    name = "research-disabled"

    @property
    def configured(self) -> bool:
        return False

    async def research(self, query: str) -> CapabilityResult[str]:
        return CapabilityResult.success("")


class PerplexityResearcher(Researcher):
    """Research via Perplexity chat completions."""

    name = "perplexity"

    def __init__(self, api_key: str, model: str = MODEL_PERPLEXITY, timeout: float = RESEARCH_TIMEOUT_SECONDS):
        self.api_key = api_key
        self.model = model
        self.timeout = timeout

    async def research(self, query: str) -> CapabilityResult[str]:
        if not self.api_key:
            return CapabilityResult.failure(
                ConfigurationError("Perplexity API key not configured", source=self.name)
            )

        body = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": RESEARCH_SYSTEM_PROMPT},
                {"role": "user", "content": query},
            ],
        }
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

        start_time = time.monotonic()
        try:
            data = await _post_json(
                PERPLEXITY_URL, body, headers=headers, timeout=self.timeout, source=self.name,
            )
            text = extract_perplexity_text(data)
        except ArchitectError as exc:
            logger.warning("Research failed after %.1fs: %s", time.monotonic() - start_time, exc.describe())
            return CapabilityResult.failure(exc)

        logger.info("Research returned %d chars in %.1fs", len(text), time.monotonic() - start_time)
        return CapabilityResult.success(text)


def extract_perplexity_text(data: Any) -> str:
    """Return the assistant message of a chat-completions payload."""
    if not isinstance(data, dict):
        raise ProviderError("Unexpected research response structure", source="perplexity")
    if "error" in data:
        error = data["error"]
        message = error.get("message", str(error)) if isinstance(error, dict) else str(error)
        raise ProviderError(message, source="perplexity")
    try:
        text = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
        raise ProviderError(
            "Unexpected research response structure",
            source="perplexity",
            response_body=_truncate(json.dumps(data, default=str), 500),
        )
    if not isinstance(text, str):
        raise ProviderError("Research response content is not text", source="perplexity")
    return text


# ---------------------------------------------------------------------------
# HTTP helper
# ---------------------------------------------------------------------------


async def _post_json(
    url: str,
    body: Dict[str, Any],
    *,
    headers: Dict[str, str],
    timeout: float,
    source: str,
    params: Optional[Dict[str, str]] = None,
) -> Any:
    """POST a JSON body and decode the JSON reply, mapping failures to ArchitectError."""
    try:
        async with aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=timeout)) as session:
            async with session.post(url, json=body, headers=headers, params=params) as resp:
                status = resp.status
                raw = await resp.text()
    except asyncio.TimeoutError:
        raise TransportError(f"Request timed out after {timeout}s", source=source)
    except aiohttp.ClientError as exc:
        raise TransportError(f"{type(exc).__name__}: {exc}", source=source)

    logger.debug("%s HTTP %d: %s", source, status, _truncate(raw, 300))

    try:
        data = json.loads(raw) if raw else {}
    except json.JSONDecodeError:
        raise ProviderError(
            f"HTTP {status}: response is not JSON",
            source=source,
            response_body=_truncate(raw, 500),
        )

    if status >= 400 and not (isinstance(data, dict) and "error" in data):
        raise ProviderError(f"HTTP {status} from {source}", source=source, response_body=_truncate(raw, 500))
    return data


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


def build_text_generator(config: ArchitectConfig) -> TextGenerator:
    """Return the text backend selected by ``text_provider``."""
    if config.text_provider == "gemini":
        return GeminiTextGenerator(config.gemini_api_key, model=config.text_model)
    return AnthropicTextGenerator(config.anthropic_api_key, model=config.text_model)


def build_researcher(config: ArchitectConfig) -> Researcher:
    """Return Perplexity when configured, otherwise the null researcher."""
    if config.research_enabled:
        return PerplexityResearcher(config.perplexity_api_key)
    return NullResearcher()
