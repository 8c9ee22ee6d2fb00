"""
Short-lived result cache for Content Architect.

Successful generation jobs are held here between ``start_generation`` and
``apply_generation``, addressed by an opaque token of the form
``aca_generated_<identity>_<unix seconds>``. Entries expire after the
configured TTL (default one hour). Expired entries are dropped lazily on
read and on every write.

Applying a job goes through ``claim``: the entry is taken out under the
lock, then either ``restore``d after a failure or ``consume``d after a
success, so one token is published at most once.

The cache is in-memory by default. Given a ``path`` it mirrors itself to a
JSON file after each mutation, so a CLI ``generate`` followed by a separate
CLI ``apply`` can share entries.
"""

from __future__ import annotations

import copy
import json
import logging
import os
import threading
import time
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Union

from content_architect.models import GenerationJob

logger = logging.getLogger("content_architect.cache")

TOKEN_PREFIX = "aca_generated_"
DEFAULT_TTL_SECONDS = 3600


def make_token(identity: str, timestamp: Optional[float] = None) -> str:
    """Cache token for *identity* at *timestamp* (seconds resolution)."""
    seconds = int(time.time() if timestamp is None else timestamp)
    return f"{TOKEN_PREFIX}{identity or 'anonymous'}_{seconds}"


def _load_json(path: Path, default: Any = None) -> Any:
    """Load JSON from *path*, returning *default* when the file is missing or corrupt."""
    if default is None:
        default = {}
    try:
        with open(path, "r", encoding="utf-8") as fh:
            return json.load(fh)
    except (FileNotFoundError, json.JSONDecodeError):
        return copy.deepcopy(default)


def _save_json(path: Path, data: Any) -> None:
    """Atomically write *data* as pretty-printed JSON to *path*."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(".tmp")
    try:
        with open(tmp, "w", encoding="utf-8") as fh:
            json.dump(data, fh, indent=2, default=str)
        os.replace(str(tmp), str(path))
    except OSError:
        try:
            tmp.unlink(missing_ok=True)
        except OSError:
            pass
        raise


class JobCache:
    """Token-addressed store of finished jobs with a bounded TTL."""

    def __init__(
        self,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        path: Optional[Union[str, Path]] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.ttl_seconds = ttl_seconds
        self.path = Path(path) if path else None
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: Dict[str, Dict[str, Any]] = {}
        self._claimed: Dict[str, Dict[str, Any]] = {}
        if self.path is not None:
            loaded = _load_json(self.path, {})
            if isinstance(loaded, dict):
                self._entries = loaded
            self._purge_expired()

    def __len__(self) -> int:
        with self._lock:
            self._purge_expired()
            return len(self._entries)

    def __contains__(self, token: object) -> bool:
        return isinstance(token, str) and self.get(token) is not None

    # -- internals ----------------------------------------------------------

    def _purge_expired(self) -> int:
        now = self._clock()
        expired = [t for t, e in self._entries.items() if e.get("expires_at", 0) <= now]
        for token in expired:
            del self._entries[token]
        if expired:
            logger.debug("Purged %d expired cache entr%s", len(expired), "y" if len(expired) == 1 else "ies")
        return len(expired)

    def _persist(self) -> None:
        if self.path is not None:
            _save_json(self.path, self._entries)

    # -- public API ---------------------------------------------------------

    def put(self, token: str, job: GenerationJob) -> None:
        """Store *job* under *token*; overwrites an existing entry."""
        with self._lock:
            self._purge_expired()
            now = self._clock()
            self._entries[token] = {
                "job": job.to_dict(),
                "stored_at": now,
                "expires_at": now + self.ttl_seconds,
            }
            self._persist()
        logger.info("Cached job %s under %s (ttl %ds)", job.job_id, token, self.ttl_seconds)

    def get(self, token: str) -> Optional[GenerationJob]:
        """Job stored under *token*, or None when missing or expired."""
        with self._lock:
            entry = self._entries.get(token)
            if entry is None:
                return None
            if entry.get("expires_at", 0) <= self._clock():
                del self._entries[token]
                self._persist()
                logger.info("Cache entry %s expired", token)
                return None
            return GenerationJob.from_dict(entry["job"])

    def claim(self, token: str) -> Optional[GenerationJob]:
        """
        Atomically take the job under *token* out of the cache.

        Only one caller can claim a given entry; any other caller sees it as
        missing. The claimed entry is either ``restore``d (with its original
        expiry) or ``consume``d. Returns None when missing or expired.
        """
        with self._lock:
            entry = self._entries.pop(token, None)
            if entry is None:
                return None
            self._persist()
            if entry.get("expires_at", 0) <= self._clock():
                logger.info("Cache entry %s expired", token)
                return None
            self._claimed[token] = entry
        logger.info("Claimed cache entry %s", token)
        return GenerationJob.from_dict(entry["job"])

    def restore(self, token: str) -> bool:
        """Return a claimed entry to the cache; it keeps its original expiry."""
        with self._lock:
            entry = self._claimed.pop(token, None)
            if entry is None:
                return False
            self._entries[token] = entry
            self._purge_expired()
            self._persist()
        logger.info("Restored cache entry %s", token)
        return True

    def consume(self, token: str) -> bool:
        """Drop a claimed entry for good."""
        with self._lock:
            return self._claimed.pop(token, None) is not None
