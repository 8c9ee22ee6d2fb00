"""
Error taxonomy and capability result type for Content Architect.

Every external capability (text generation, research, image search, media
download) reports failure through one of the ``ArchitectError`` subclasses
below. Capability entry points never hand back ad-hoc sentinel values; they
return a :class:`CapabilityResult` that carries either the payload or the
tagged error.

Propagation rules:
    ConfigurationError / TransportError / ProviderError
        fatal during outline or content composition, degraded during link
        resolution and media sourcing.
    ParseError
        recovered locally with a fallback, only ever logged.
    ValidationError
        surfaced to the caller of ``apply_generation`` with no mutation.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ArchitectError(Exception):
    """Base exception for all Content Architect errors."""

    kind = "error"

    def __init__(self, message: str, *, source: str = ""):
        self.source = source
        super().__init__(message)

    @property
    def message(self) -> str:
        return str(self)

    def describe(self) -> str:
        """Human-readable one-liner, prefixed with the failing source."""
        if self.source:
            return f"{self.source}: {self}"
        return str(self)


class ConfigurationError(ArchitectError):
    """Raised when a required configuration key is absent or invalid."""

    kind = "configuration"


class TransportError(ArchitectError):
    """Raised on network failures and timeouts talking to an external service."""

    kind = "transport"

    def __init__(self, message: str, *, source: str = "", status_code: int = 0):
        self.status_code = status_code
        super().__init__(message, source=source)


class ProviderError(ArchitectError):
    """Raised when a provider response matches no recognized shape."""

    kind = "provider"

    def __init__(self, message: str, *, source: str = "", response_body: str = ""):
        self.response_body = response_body
        super().__init__(message, source=source)


class ParseError(ArchitectError):
    """Raised when outline or keyword text cannot be parsed."""

    kind = "parse"


class ValidationError(ArchitectError):
    """Raised on apply with a missing/expired token or incomplete job data."""

    kind = "validation"


# ---------------------------------------------------------------------------
# Result type
# ---------------------------------------------------------------------------


@dataclass
class CapabilityResult(Generic[T]):
    """Either a success payload or a tagged :class:`ArchitectError`."""

    value: Optional[T] = None
    error: Optional[ArchitectError] = None

    @classmethod
    def success(cls, value: T) -> "CapabilityResult[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: ArchitectError) -> "CapabilityResult[T]":
        return cls(error=error)

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def error_kind(self) -> Optional[str]:
        return self.error.kind if self.error is not None else None

    def unwrap(self) -> T:
        """Return the payload, re-raising the carried error on failure."""
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]

    def unwrap_or(self, default: T) -> T:
        if self.error is not None:
            return default
        return self.value  # type: ignore[return-value]
