"""ygoapi - Async client for the YGOPRODeck Yu-Gi-Oh! card database API.

This package provides:
- YgoApi: typed client with one method per endpoint or common filter
- RequestExecutor: cache lookup, retries with backoff and fallback hosts
- ThrottledQueue: FIFO request throttle with cancellation tokens
- MemoryKVStore, FileSystemKVStore: response stores
- FileSystemImageCache: background card artwork cache
"""

from .cache import FileSystemKVStore, KVStore, MemoryKVStore, SupportsCleanup, SupportsDelete
from .client import YgoApi
from .config import FallbackConfig, FileSystemCacheOptions, RetryPolicy, Settings
from .exceptions import (
    CancelledBeforeEnqueueError,
    CancelledWhileQueuedError,
    ClientError,
    NetworkError,
    QueueError,
    QueueTimeoutError,
    ServerError,
    TaskCancelledError,
    ValidationError,
    YgoApiError,
    YgoError,
)
from .helpers import (
    build_comparison,
    get_card_images,
    is_extra_deck_monster,
    is_monster_card,
    is_spell_card,
    is_trap_card,
)
from .images import FileSystemImageCache
from .models import (
    Archetype,
    BanlistInfo,
    BanlistType,
    Card,
    CardImage,
    CardInfoResponse,
    CardPrice,
    CardSet,
    CardSetDetails,
    CardSetInfo,
    ComparisonOperator,
    DatabaseVersion,
    Format,
    ImageSize,
    MiscInfo,
    PaginationMeta,
)
from .queue import DEFAULT_INTERVAL, CancellationToken, ThrottledQueue, TimeQueue
from .request import RequestExecutor, build_cache_key

__all__ = [
    "DEFAULT_INTERVAL",
    "Archetype",
    "BanlistInfo",
    "BanlistType",
    "CancellationToken",
    "CancelledBeforeEnqueueError",
    "CancelledWhileQueuedError",
    "Card",
    "CardImage",
    "CardInfoResponse",
    "CardPrice",
    "CardSet",
    "CardSetDetails",
    "CardSetInfo",
    "ClientError",
    "ComparisonOperator",
    "DatabaseVersion",
    "FallbackConfig",
    "FileSystemCacheOptions",
    "FileSystemImageCache",
    "FileSystemKVStore",
    "Format",
    "ImageSize",
    "KVStore",
    "MemoryKVStore",
    "MiscInfo",
    "NetworkError",
    "PaginationMeta",
    "QueueError",
    "QueueTimeoutError",
    "RequestExecutor",
    "RetryPolicy",
    "ServerError",
    "Settings",
    "SupportsCleanup",
    "SupportsDelete",
    "TaskCancelledError",
    "ThrottledQueue",
    "TimeQueue",
    "ValidationError",
    "YgoApi",
    "YgoApiError",
    "YgoError",
    "build_cache_key",
    "build_comparison",
    "get_card_images",
    "is_extra_deck_monster",
    "is_monster_card",
    "is_spell_card",
    "is_trap_card",
]
