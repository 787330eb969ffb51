"""High-level async client for the YGOPRODeck API."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

import httpx

from .cache import FileSystemKVStore, KVStore, SupportsCleanup
from .config import Settings
from .exceptions import YgoApiError
from .images import FileSystemImageCache, image_cache_key
from .models import (
    Archetype,
    BanlistType,
    Card,
    CardInfoResponse,
    CardSetDetails,
    CardSetInfo,
    DatabaseVersion,
    Format,
    ImageSize,
)
from .queue import ThrottledQueue
from .request import RequestExecutor

logger = logging.getLogger(__name__)


def _merge(params: Mapping[str, Any] | None, extra: Mapping[str, Any], **fixed: Any) -> dict[str, Any]:
    """Combine caller parameters with the ones a convenience method pins."""
    return {**(params or {}), **extra, **fixed}


class YgoApi:
    """Typed access to the YGOPRODeck endpoints.

    Card queries accept parameters either as a mapping (needed for ``def``,
    which is a Python keyword) or as keyword arguments:

        async with YgoApi() as api:
            cards = await api.search_cards("magician", {"def": 2000}, attribute="DARK")

    Construction keywords are forwarded to :class:`RequestExecutor`.
    """

    def __init__(self, **options: Any) -> None:
        self.executor = RequestExecutor(**options)

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> YgoApi:
        """Build a client wired up from environment settings.

        The image cache is always attached so previously downloaded artwork
        can be looked up; new downloads only happen when
        ``image_cache_enabled`` is set.
        """
        settings = settings or Settings()

        cache: KVStore | None = None
        if settings.use_data_cache:
            cache = FileSystemKVStore(settings.data_cache_dir, settings.data_cache_max_age)

        queue = ThrottledQueue(settings.queue_interval) if settings.use_queue else None

        return cls(
            base_url=settings.base_url,
            cache=cache,
            request_queue=queue,
            cache_ttl=settings.cache_ttl_seconds,
            retry=settings.retry_policy(),
            fallback=settings.fallback_config(),
            image_cache=FileSystemImageCache(settings.image_cache_dir, settings.image_cache_max_age),
            image_cache_enabled=settings.image_cache_enabled,
            http_client=http_client,
        )

    @property
    def image_cache(self) -> KVStore | None:
        return self.executor.image_cache

    async def __aenter__(self) -> YgoApi:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Wait for background image downloads and release the HTTP client."""
        await self.executor.aclose()

    # -------------------------------------------------------------------------
    # Card info
    # -------------------------------------------------------------------------

    async def get_card_info(self, params: Mapping[str, Any] | None = None, **kwargs: Any) -> CardInfoResponse:
        """Query ``/cardinfo.php`` with arbitrary filters."""
        payload = await self.executor.request("/cardinfo.php", _merge(params, kwargs))
        return CardInfoResponse.model_validate(payload)

    async def get_card_by_name(self, name: str) -> Card | None:
        """Get a card by exact name, or None if the API does not know it."""
        return await self._get_single_card(name=name)

    async def get_card_by_id(self, card_id: int | str) -> Card | None:
        """Get a card by passcode, or None if the API does not know it."""
        return await self._get_single_card(id=card_id)

    async def _get_single_card(self, **params: Any) -> Card | None:
        try:
            response = await self.get_card_info(params)
        except YgoApiError as e:
            # The API answers 400 when nothing matches
            if e.status_code == 400:
                return None
            raise
        return response.data[0] if response.data else None

    async def search_cards(
        self, fname: str, params: Mapping[str, Any] | None = None, **kwargs: Any
    ) -> CardInfoResponse:
        """Fuzzy search by card name."""
        return await self.get_card_info(_merge(params, kwargs, fname=fname))

    async def get_cards_by_archetype(
        self, archetype: str, params: Mapping[str, Any] | None = None, **kwargs: Any
    ) -> CardInfoResponse:
        return await self.get_card_info(_merge(params, kwargs, archetype=archetype))

    async def get_cards_by_set(
        self, cardset: str, params: Mapping[str, Any] | None = None, **kwargs: Any
    ) -> CardInfoResponse:
        return await self.get_card_info(_merge(params, kwargs, cardset=cardset))

    async def get_staple_cards(self, params: Mapping[str, Any] | None = None, **kwargs: Any) -> CardInfoResponse:
        return await self.get_card_info(_merge(params, kwargs, staple="yes"))

    async def get_cards_by_format(
        self, card_format: Format, params: Mapping[str, Any] | None = None, **kwargs: Any
    ) -> CardInfoResponse:
        return await self.get_card_info(_merge(params, kwargs, format=card_format))

    async def get_cards_by_genesys_format(
        self, params: Mapping[str, Any] | None = None, **kwargs: Any
    ) -> CardInfoResponse:
        """Genesys-legal cards; point values are in ``misc_info[].genesys_points``."""
        return await self.get_card_info(_merge(params, kwargs, format="genesys", misc="yes"))

    async def get_banlist_cards(
        self, banlist: BanlistType, params: Mapping[str, Any] | None = None, **kwargs: Any
    ) -> CardInfoResponse:
        return await self.get_card_info(_merge(params, kwargs, banlist=banlist))

    async def get_cards_with_pagination(
        self, num: int, offset: int, params: Mapping[str, Any] | None = None, **kwargs: Any
    ) -> CardInfoResponse:
        """One page of results; ``meta`` holds the pagination details."""
        return await self.get_card_info(_merge(params, kwargs, num=num, offset=offset))

    async def get_cards_by_type(
        self, card_type: str, params: Mapping[str, Any] | None = None, **kwargs: Any
    ) -> CardInfoResponse:
        return await self.get_card_info(_merge(params, kwargs, type=card_type))

    async def get_cards_by_attribute(
        self, attribute: str, params: Mapping[str, Any] | None = None, **kwargs: Any
    ) -> CardInfoResponse:
        return await self.get_card_info(_merge(params, kwargs, attribute=attribute))

    async def get_cards_by_race(
        self, race: str, params: Mapping[str, Any] | None = None, **kwargs: Any
    ) -> CardInfoResponse:
        return await self.get_card_info(_merge(params, kwargs, race=race))

    async def get_cards_by_level(
        self, level: int | str, params: Mapping[str, Any] | None = None, **kwargs: Any
    ) -> CardInfoResponse:
        """Filter by level; pass ``build_comparison("gte", 7)`` for ranges."""
        return await self.get_card_info(_merge(params, kwargs, level=level))

    async def get_cards_by_atk(
        self, atk: int | str, params: Mapping[str, Any] | None = None, **kwargs: Any
    ) -> CardInfoResponse:
        return await self.get_card_info(_merge(params, kwargs, atk=atk))

    async def get_cards_by_def(
        self, defense: int | str, params: Mapping[str, Any] | None = None, **kwargs: Any
    ) -> CardInfoResponse:
        return await self.get_card_info(_merge(params, kwargs, **{"def": defense}))

    async def get_cards_with_misc_info(
        self, params: Mapping[str, Any] | None = None, **kwargs: Any
    ) -> CardInfoResponse:
        return await self.get_card_info(_merge(params, kwargs, misc="yes"))

    async def get_random_card(self) -> Card | None:
        payload = await self.executor.request("/randomcard.php")
        # Older API versions return the bare card
        if isinstance(payload, dict) and "data" not in payload:
            return Card.model_validate(payload)
        response = CardInfoResponse.model_validate(payload)
        return response.data[0] if response.data else None

    # -------------------------------------------------------------------------
    # Sets, archetypes, database
    # -------------------------------------------------------------------------

    async def get_all_card_sets(self) -> list[CardSetInfo]:
        payload = await self.executor.request("/cardsets.php")
        return [CardSetInfo.model_validate(item) for item in payload]

    async def get_card_set_info(self, setcode: str) -> CardSetDetails:
        """Details of one printing, e.g. ``"LOB-001"``."""
        payload = await self.executor.request("/cardsetsinfo.php", {"setcode": setcode})
        return CardSetDetails.model_validate(payload)

    async def get_all_archetypes(self) -> list[Archetype]:
        payload = await self.executor.request("/archetypes.php")
        return [Archetype.model_validate(item) for item in payload]

    async def check_database_version(self) -> DatabaseVersion:
        payload = await self.executor.request("/checkDBVer.php")
        return DatabaseVersion.model_validate(payload[0])

    # -------------------------------------------------------------------------
    # Images
    # -------------------------------------------------------------------------

    async def get_local_image_path(self, card: Card, size: ImageSize = "default") -> str | None:
        """Local path of a card's first artwork, or None if it is not cached."""
        if self.image_cache is None or not card.card_images:
            return None
        return await self.image_cache.get(image_cache_key(card.card_images[0].id, size))

    async def cleanup_image_cache(self) -> None:
        """Remove old artwork if the image store supports cleanup."""
        if isinstance(self.image_cache, SupportsCleanup):
            await self.image_cache.cleanup()
        else:
            logger.debug("Image cache does not support cleanup, skipping")
