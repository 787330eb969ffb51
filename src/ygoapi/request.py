"""Cache-aware, retrying request executor.

Every API call goes through :meth:`RequestExecutor.request`:

1. validate parameters (before any I/O)
2. look up the canonical cache key
3. on a miss, try each host in order with a per-host retry budget, optionally
   throttled through a :class:`~ygoapi.queue.TimeQueue`
4. on success, write the cache and download card artwork in the background
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Coroutine, Mapping
from typing import Any

import httpx
import pydantic

from .cache import KVStore
from .config import DEFAULT_BASE_URL, DEFAULT_CACHE_TTL, FallbackConfig, FileSystemCacheOptions, RetryPolicy
from .exceptions import ClientError, NetworkError, QueueError, ServerError, ValidationError, YgoApiError
from .images import FileSystemImageCache, image_cache_key
from .models import IMAGE_SIZES, CardImage
from .queue import TimeQueue

logger = logging.getLogger(__name__)

CACHE_NAMESPACE = "ygoapi"

DEFAULT_HEADERS = {"Content-Type": "application/json"}

PAGINATION_ERROR = "You cannot use only one of 'offset' or 'num'. You must use both or none."

# Failures worth another attempt; anything else is a bug and propagates as is
_RETRYABLE_ERRORS: tuple[type[BaseException], ...] = (
    ServerError,
    httpx.RequestError,
    asyncio.TimeoutError,
    ValueError,  # 2xx body that is not JSON
    QueueError,
)


def _clean_params(params: Mapping[str, Any] | None) -> dict[str, Any]:
    if not params:
        return {}
    return {key: value for key, value in params.items() if value is not None}


def build_cache_key(endpoint: str, params: Mapping[str, Any] | None = None) -> str:
    """Build the canonical cache key for an endpoint and its parameters.

    Parameter order never changes the key and None values are left out, e.g.
    ``ygoapi:/cardinfo.php:{"name":"Dark Magician"}``.
    """
    cleaned = _clean_params(params)
    suffix = (
        json.dumps(cleaned, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str)
        if cleaned
        else ""
    )
    return f"{CACHE_NAMESPACE}:{endpoint}:{suffix}"


def _format_param(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return ",".join(_format_param(item) for item in value)
    return str(value)


def build_query_string(params: Mapping[str, Any] | None = None) -> str:
    """Encode parameters as ``?a=1&b=x,y`` (empty string when nothing is set)."""
    cleaned = _clean_params(params)
    if not cleaned:
        return ""
    query = httpx.QueryParams({key: _format_param(value) for key, value in cleaned.items()})
    return f"?{query}"


def validate_params(params: Mapping[str, Any] | None) -> None:
    """Reject parameter combinations the API refuses.

    Raises:
        ValidationError: If only one of ``num``/``offset`` is given.
    """
    if not params:
        return
    has_num = params.get("num") is not None
    has_offset = params.get("offset") is not None
    if has_num != has_offset:
        raise ValidationError(PAGINATION_ERROR)


def is_card_response(payload: Any) -> bool:
    """Check whether a payload carries card records (``data[0].card_images``)."""
    if not isinstance(payload, dict):
        return False
    data = payload.get("data")
    return bool(data) and isinstance(data, list) and isinstance(data[0], dict) and "card_images" in data[0]


def _describe(error: BaseException | None) -> str:
    if error is None:
        return "Unknown error"
    return str(error) or type(error).__name__


class RequestExecutor:
    """Produces cached-or-fresh API responses with retries and host fallback."""

    def __init__(
        self,
        *,
        base_url: str = DEFAULT_BASE_URL,
        headers: Mapping[str, str] | None = None,
        cache: KVStore | None = None,
        request_queue: TimeQueue | None = None,
        cache_ttl: float = DEFAULT_CACHE_TTL,
        retry: RetryPolicy | None = None,
        fallback: FallbackConfig | None = None,
        image_cache: KVStore | FileSystemCacheOptions | None = None,
        image_cache_enabled: bool = False,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the executor.

        Args:
            base_url: Primary API base URL
            headers: Extra headers merged over the JSON content type default
            cache: Response store; responses are not cached when omitted
            request_queue: Throttle for outbound requests; requests go out
                directly when omitted
            cache_ttl: TTL in seconds for cached responses; 0 stores nothing
            retry: Backoff policy applied per host
            fallback: Alternate hosts and the per-attempt timeout
            image_cache: Image store, or options for a filesystem image cache
            image_cache_enabled: Download artwork for card responses in the
                background (a filesystem image cache is created if needed)
            http_client: Client to send requests with; one is created and owned
                by the executor when omitted

        Raises:
            ValueError: If ``cache_ttl`` is negative
        """
        if cache_ttl < 0:
            raise ValueError(f"cache_ttl must be non-negative, got {cache_ttl}")
        self.base_url = base_url
        self.headers = {**DEFAULT_HEADERS, **(headers or {})}
        self.cache = cache
        self.request_queue = request_queue
        self.cache_ttl = cache_ttl
        self.retry = retry or RetryPolicy()
        self.fallback = fallback or FallbackConfig()

        self.image_cache_enabled = image_cache_enabled
        self.image_cache: KVStore | None
        if isinstance(image_cache, FileSystemCacheOptions):
            self.image_cache = FileSystemImageCache.from_options(image_cache)
        elif image_cache is not None:
            self.image_cache = image_cache
        elif image_cache_enabled:
            self.image_cache = FileSystemImageCache()
        else:
            self.image_cache = None

        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(follow_redirects=True)
        # Strong references to fire-and-forget image work until it finishes
        self._background_tasks: set[asyncio.Task[None]] = set()

    @property
    def hosts(self) -> tuple[str, ...]:
        """Base URLs in the order they are tried."""
        return (self.base_url, *self.fallback.urls)

    async def __aenter__(self) -> RequestExecutor:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def request(self, endpoint: str, params: Mapping[str, Any] | None = None) -> Any:
        """Return the decoded JSON payload for ``endpoint``.

        Args:
            endpoint: API path such as ``/cardinfo.php``
            params: Query parameters; None values are ignored

        Raises:
            ValidationError: Malformed parameters (raised before any I/O)
            ClientError: The API rejected the request (4xx), not retried
            ServerError: The API kept failing with 5xx on every host
            NetworkError: No host could be reached
        """
        validate_params(params)

        cache_key = build_cache_key(endpoint, params)
        cached = await self._load_cached(cache_key)
        if cached is not None:
            logger.debug("Cache hit: %s", cache_key)
            return cached

        query = build_query_string(params)
        last_error: BaseException | None = None

        for host_index, base_url in enumerate(self.hosts):
            url = f"{base_url}{endpoint}{query}"
            if host_index > 0:
                logger.info("Falling back to %s", base_url)

            for attempt in range(1, self.retry.max_attempts + 1):
                logger.debug("GET %s (attempt %d/%d)", url, attempt, self.retry.max_attempts)
                try:
                    payload, raw = await self._attempt(url)
                except ClientError as e:
                    logger.debug("Request to %s rejected: %s", url, e.message)
                    raise
                except _RETRYABLE_ERRORS as e:
                    last_error = e
                    logger.warning(
                        "Request to %s failed (attempt %d/%d): %s",
                        url,
                        attempt,
                        self.retry.max_attempts,
                        _describe(e),
                    )
                    if attempt < self.retry.max_attempts:
                        await asyncio.sleep(self.retry.delay_for(attempt))
                    continue

                await self._store_cached(cache_key, raw)
                if is_card_response(payload):
                    self._schedule_image_caching(payload["data"])
                return payload

        logger.error("All hosts failed for %s: %s", endpoint, _describe(last_error))
        if isinstance(last_error, YgoApiError):
            raise last_error
        raise NetworkError(f"Network error: {_describe(last_error)}") from last_error

    async def join_background_tasks(self) -> None:
        """Wait until all background image work has finished."""
        while True:
            pending = [task for task in self._background_tasks if not task.done()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    async def aclose(self) -> None:
        """Finish background work and close the HTTP client if owned."""
        await self.join_background_tasks()
        if self._owns_client:
            await self._client.aclose()

    async def _send(self, url: str) -> httpx.Response:
        return await self._client.get(url, headers=self.headers)

    async def _attempt(self, url: str) -> tuple[Any, str]:
        """Run one bounded attempt and classify the response.

        The timeout covers time spent waiting in the queue as well; on expiry
        the queued or in-flight request is cancelled.
        """
        if self.request_queue is not None:
            pending = self.request_queue.enqueue(lambda: self._send(url))
        else:
            pending = self._send(url)
        response = await asyncio.wait_for(pending, self.fallback.timeout)

        if response.is_success:
            return response.json(), response.text

        status = response.status_code
        message = None
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and body.get("error"):
            message = str(body["error"])
        message = message or f"API request failed with status {status}"

        if status >= 500:
            raise ServerError(status, message)
        raise ClientError(status, message)

    async def _load_cached(self, key: str) -> Any | None:
        if self.cache is None:
            return None
        try:
            cached = await self.cache.get(key)
            if not cached:
                return None
            return json.loads(cached)
        except Exception as e:  # noqa: BLE001
            logger.debug("Ignoring unreadable cache entry %s: %s", key, e)
            return None

    async def _store_cached(self, key: str, raw: str) -> None:
        if self.cache is None:
            return
        try:
            await self.cache.set(key, raw, self.cache_ttl)
        except Exception as e:  # noqa: BLE001
            logger.debug("Failed to cache %s: %s", key, e)

    def _schedule_image_caching(self, cards: list[dict[str, Any]]) -> None:
        if not self.image_cache_enabled or self.image_cache is None:
            return
        self._spawn(self._cache_card_images(self.image_cache, cards), "image lookup")

    async def _cache_card_images(self, image_cache: KVStore, cards: list[dict[str, Any]]) -> None:
        for card in cards:
            for raw_image in card.get("card_images") or []:
                try:
                    image = CardImage.model_validate(raw_image)
                except pydantic.ValidationError as e:
                    logger.debug("Skipping malformed image entry for card %s: %s", card.get("id"), e)
                    continue
                for size in IMAGE_SIZES:
                    url = image.url_for(size)
                    if not url:
                        continue
                    key = image_cache_key(image.id, size)
                    if await image_cache.get(key):
                        continue
                    self._spawn(image_cache.set(key, url), f"image download {key}")

    def _spawn(self, coro: Coroutine[Any, Any, None], description: str) -> None:
        task = asyncio.create_task(self._guarded(coro, description))
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)

    @staticmethod
    async def _guarded(coro: Coroutine[Any, Any, None], description: str) -> None:
        try:
            await coro
        except Exception as e:  # noqa: BLE001
            logger.debug("Background %s failed: %s", description, e)
