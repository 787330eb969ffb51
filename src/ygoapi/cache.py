"""Pluggable key-value stores for API responses.

Stores hold strings under string keys with an optional per-entry TTL. They
are best-effort: an I/O failure inside a store is a miss (``get``) or a no-op
(``set``/``delete``), never an exception.
"""

from __future__ import annotations

import asyncio
import contextlib
import hashlib
import json
import logging
import os
import threading
import time
from pathlib import Path
from typing import Protocol, runtime_checkable

from .config import DEFAULT_CACHE_TTL, FileSystemCacheOptions, get_default_data_cache_path

logger = logging.getLogger(__name__)

# Sidecar file holding the explicit TTL of each entry, keyed by file stem
_TTL_METADATA_FILE = "ttl_metadata.json"


@runtime_checkable
class KVStore(Protocol):
    """Minimal store contract used by the request executor."""

    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str, ttl: float | None = None) -> None: ...


@runtime_checkable
class SupportsDelete(Protocol):
    """Stores that can drop a single entry."""

    async def delete(self, key: str) -> None: ...


@runtime_checkable
class SupportsCleanup(Protocol):
    """Stores that can sweep out old entries."""

    async def cleanup(self) -> None: ...


class MemoryKVStore:
    """In-process store with lazy expiry."""

    def __init__(self) -> None:
        self._store: dict[str, tuple[str, float | None]] = {}

    async def get(self, key: str) -> str | None:
        item = self._store.get(key)
        if item is None:
            return None
        value, expires_at = item
        if expires_at is not None and time.monotonic() > expires_at:
            del self._store[key]
            return None
        return value

    async def set(self, key: str, value: str, ttl: float | None = None) -> None:
        if ttl is not None and ttl <= 0:
            # Expired on arrival
            self._store.pop(key, None)
            return
        expires_at = time.monotonic() + ttl if ttl is not None else None
        self._store[key] = (value, expires_at)

    async def delete(self, key: str) -> None:
        self._store.pop(key, None)

    def clear(self) -> None:
        self._store.clear()

    def __len__(self) -> int:
        return len(self._store)

    def __contains__(self, key: object) -> bool:
        return key in self._store


class FileSystemKVStore:
    """Disk-backed store writing one JSON file per key.

    Files live at ``<cache_dir>/<sha256(key)>.json``. Each entry expires
    ``ttl`` seconds after its file was last written; entries stored without a
    TTL fall back to ``max_age``. Expired files are deleted lazily on read.
    A ``ttl`` of zero or less is never stored and drops any earlier entry.
    """

    def __init__(self, cache_dir: Path | str | None = None, max_age: float | None = None):
        """Initialize the store.

        Args:
            cache_dir: Directory for cache files (default ``.cache/ygoapi/data``)
            max_age: Default TTL and cleanup age in seconds (default 5 minutes)
        """
        self.cache_dir = Path(cache_dir) if cache_dir else get_default_data_cache_path()
        self.max_age = max_age or DEFAULT_CACHE_TTL
        # Lock for file + metadata consistency across worker threads
        self._lock = threading.Lock()
        self._ttls: dict[str, float] | None = None

    @classmethod
    def from_options(cls, options: FileSystemCacheOptions) -> FileSystemKVStore:
        return cls(cache_dir=options.cache_dir, max_age=options.max_age)

    def key_to_path(self, key: str) -> Path:
        """Map a cache key to its file (hashed to a safe fixed-length name)."""
        key_hash = hashlib.sha256(key.encode("utf-8")).hexdigest()
        return self.cache_dir / f"{key_hash}.json"

    async def get(self, key: str) -> str | None:
        """Return the cached value, or None if absent, expired or unreadable."""
        return await asyncio.to_thread(self._get_sync, key)

    async def set(self, key: str, value: str, ttl: float | None = None) -> None:
        """Write ``value`` under ``key``, replacing any previous entry."""
        await asyncio.to_thread(self._set_sync, key, value, ttl)

    async def delete(self, key: str) -> None:
        await asyncio.to_thread(self._delete_sync, key)

    async def cleanup(self) -> None:
        """Remove cache files older than ``max_age``, recursively."""
        await asyncio.to_thread(self._cleanup_sync)

    def _metadata_path(self) -> Path:
        return self.cache_dir / _TTL_METADATA_FILE

    def _load_ttls(self) -> dict[str, float]:
        if self._ttls is None:
            self._ttls = {}
            meta_path = self._metadata_path()
            if meta_path.exists():
                try:
                    data = json.loads(meta_path.read_text(encoding="utf-8"))
                    if isinstance(data, dict):
                        self._ttls = {str(k): float(v) for k, v in data.items()}
                except (OSError, ValueError, TypeError):
                    pass  # Corrupted metadata, fall back to max_age
        return self._ttls

    def _save_ttls(self) -> None:
        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            self._metadata_path().write_text(json.dumps(self._load_ttls()), encoding="utf-8")
        except OSError:
            pass  # Cache is best-effort

    def _remove(self, path: Path, save: bool = True) -> bool:
        """Delete a cache file and forget its TTL; returns True if a TTL was dropped."""
        with contextlib.suppress(OSError):
            path.unlink()
        dropped = self._load_ttls().pop(path.stem, None) is not None
        if dropped and save:
            self._save_ttls()
        return dropped

    def _get_sync(self, key: str) -> str | None:
        path = self.key_to_path(key)
        with self._lock:
            try:
                mtime = path.stat().st_mtime
            except OSError:
                return None

            ttl = self._load_ttls().get(path.stem, self.max_age)
            if time.time() - mtime > ttl:
                logger.debug("Cache entry expired: %s", key)
                self._remove(path)
                return None

            try:
                return path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError):
                return None

    def _set_sync(self, key: str, value: str, ttl: float | None) -> None:
        path = self.key_to_path(key)
        with self._lock:
            if ttl is not None and ttl <= 0:
                self._remove(path)
                return
            try:
                self.cache_dir.mkdir(parents=True, exist_ok=True)
                path.write_text(value, encoding="utf-8")
            except OSError as e:
                logger.debug("Failed to write cache entry %s: %s", key, e)
                return

            ttls = self._load_ttls()
            if ttl is not None:
                ttls[path.stem] = ttl
            else:
                ttls.pop(path.stem, None)
            self._save_ttls()

    def _delete_sync(self, key: str) -> None:
        with self._lock:
            self._remove(self.key_to_path(key))

    def _cleanup_sync(self) -> None:
        now = time.time()
        ttls_changed = False
        with self._lock:
            for root, _dirs, files in os.walk(self.cache_dir):
                for name in files:
                    if not name.endswith(".json") or name == _TTL_METADATA_FILE:
                        continue
                    path = Path(root) / name
                    try:
                        expired = now - path.stat().st_mtime > self.max_age
                    except OSError:
                        continue
                    if expired:
                        ttls_changed = self._remove(path, save=False) or ttls_changed
            if ttls_changed:
                self._save_ttls()
