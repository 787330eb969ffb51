"""Filesystem side-cache for card artwork.

Keys have the form ``"<card_id>:<size>"`` and map to
``<cache_dir>/<card_id>/<size>.jpg``. The cache is populated in the
background by the request executor; a missing file simply means the caller
should fall back to the remote URL.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import time
from pathlib import Path

import httpx

from .config import DEFAULT_IMAGE_MAX_AGE, FileSystemCacheOptions, get_default_image_cache_path

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONCURRENT_DOWNLOADS = 8


def image_cache_key(card_id: int | str, size: str) -> str:
    """Build the side-cache key for one size variant of a card image."""
    return f"{card_id}:{size}"


def parse_image_key(key: str) -> tuple[str, str]:
    """Split an image key into ``(card_id, size)``.

    Raises:
        ValueError: If the key is not ``"<card_id>:<size>"`` or contains path parts.
    """
    card_id, sep, size = key.partition(":")
    if not sep or not card_id or not size:
        raise ValueError(f"Invalid image cache key: {key!r}")
    for part in (card_id, size):
        if part in (".", "..") or "/" in part or "\\" in part:
            raise ValueError(f"Invalid image cache key: {key!r}")
    return card_id, size


def _write_file(path: Path, content: bytes) -> None:
    """Write bytes via a temp file so readers never see a partial image."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".part")
    tmp_path.write_bytes(content)
    tmp_path.replace(path)


class FileSystemImageCache:
    """Downloads card images once and serves their local paths afterwards."""

    def __init__(
        self,
        cache_dir: Path | str | None = None,
        max_age: float | None = None,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
        max_concurrent_downloads: int = DEFAULT_MAX_CONCURRENT_DOWNLOADS,
    ) -> None:
        """Initialize the image cache.

        Args:
            cache_dir: Directory for images (default ``.cache/ygoapi/images``)
            max_age: Age in seconds after which ``cleanup`` removes a file (default 30 days)
            http_client: Client used for downloads; a short-lived one is created per
                download when omitted
            timeout: Download timeout in seconds when no client is given
            max_concurrent_downloads: Downloads allowed in flight at once; the
                rest wait their turn

        Raises:
            ValueError: If ``max_concurrent_downloads`` is less than 1
        """
        if max_concurrent_downloads < 1:
            raise ValueError(f"max_concurrent_downloads must be at least 1, got {max_concurrent_downloads}")
        self.cache_dir = Path(cache_dir) if cache_dir else get_default_image_cache_path()
        self.max_age = max_age or DEFAULT_IMAGE_MAX_AGE
        self._http_client = http_client
        self._timeout = httpx.Timeout(timeout, connect=10.0)
        self._download_slots = asyncio.Semaphore(max_concurrent_downloads)

    @classmethod
    def from_options(
        cls,
        options: FileSystemCacheOptions,
        http_client: httpx.AsyncClient | None = None,
    ) -> FileSystemImageCache:
        return cls(cache_dir=options.cache_dir, max_age=options.max_age, http_client=http_client)

    def key_to_path(self, key: str) -> Path:
        card_id, size = parse_image_key(key)
        return self.cache_dir / card_id / f"{size}.jpg"

    async def get(self, key: str) -> str | None:
        """Return the local path of a cached image, or None if not cached yet."""
        try:
            path = self.key_to_path(key)
        except ValueError:
            return None
        return str(path) if path.is_file() else None

    async def set(self, key: str, value: str, ttl: float | None = None) -> None:  # noqa: ARG002
        """Download the image at URL ``value`` and store it under ``key``.

        Failures are logged and leave the key absent.
        """
        try:
            path = self.key_to_path(key)
        except ValueError as e:
            logger.debug("Skipping image download: %s", e)
            return

        try:
            content = await self._download(value)
            await asyncio.to_thread(_write_file, path, content)
        except (httpx.HTTPError, OSError) as e:
            logger.debug("Failed to cache image %s from %s: %s", key, value, e)
            return

        logger.debug("Cached image %s (%d bytes)", key, len(content))

    async def delete(self, key: str) -> None:
        try:
            path = self.key_to_path(key)
        except ValueError:
            return
        with contextlib.suppress(OSError):
            path.unlink()

    async def cleanup(self) -> None:
        """Remove cached images older than ``max_age``, recursively."""
        removed = await asyncio.to_thread(self._cleanup_sync)
        if removed:
            logger.info("Removed %d expired images from %s", removed, self.cache_dir)

    async def _download(self, url: str) -> bytes:
        async with self._download_slots:
            return await self._fetch(url)

    async def _fetch(self, url: str) -> bytes:
        if self._http_client is not None:
            response = await self._http_client.get(url)
            response.raise_for_status()
            return response.content

        async with httpx.AsyncClient(follow_redirects=True, timeout=self._timeout) as client:
            response = await client.get(url)
            response.raise_for_status()
            return response.content

    def _cleanup_sync(self) -> int:
        now = time.time()
        removed = 0
        for root, _dirs, files in os.walk(self.cache_dir):
            for name in files:
                path = Path(root) / name
                try:
                    if now - path.stat().st_mtime > self.max_age:
                        path.unlink()
                        removed += 1
                except OSError:
                    continue
        return removed
