"""Tests for the YgoApi client facade."""

from __future__ import annotations

import os
import time
from pathlib import Path
from unittest.mock import AsyncMock

import httpx
import pytest
from conftest import DARK_MAGICIAN, NOT_FOUND, POT_OF_GREED, FakeApi, card_payload

from ygoapi.cache import FileSystemKVStore, MemoryKVStore
from ygoapi.client import YgoApi
from ygoapi.config import RetryPolicy, Settings
from ygoapi.exceptions import ServerError
from ygoapi.helpers import build_comparison
from ygoapi.images import FileSystemImageCache
from ygoapi.models import Card
from ygoapi.queue import ThrottledQueue


@pytest.fixture
def api(http_client: httpx.AsyncClient) -> YgoApi:
    return YgoApi(http_client=http_client, retry=RetryPolicy(max_attempts=1))


class TestCardLookup:
    """Tests for single card lookups."""

    async def test_get_card_by_name(self, fake_api: FakeApi, api: YgoApi) -> None:
        fake_api.reply_json(card_payload(DARK_MAGICIAN))

        card = await api.get_card_by_name("Dark Magician")

        assert card is not None
        assert card.name == "Dark Magician"
        assert card.def_ == 2100
        assert card.frame_type == "normal"
        assert card.card_sets is not None
        assert card.card_sets[0].set_code == "LOB-005"
        assert fake_api.params() == {"name": "Dark Magician"}

    async def test_get_card_by_name_not_found(self, fake_api: FakeApi, api: YgoApi) -> None:
        fake_api.reply_json(NOT_FOUND, status_code=400)
        assert await api.get_card_by_name("Dork Magician") is None

    async def test_get_card_by_id(self, fake_api: FakeApi, api: YgoApi) -> None:
        fake_api.reply_json(card_payload(POT_OF_GREED))

        card = await api.get_card_by_id(55144522)

        assert card is not None
        assert card.name == "Pot of Greed"
        assert fake_api.params() == {"id": "55144522"}

    async def test_empty_data_is_none(self, fake_api: FakeApi, api: YgoApi) -> None:
        fake_api.reply_json({"data": []})
        assert await api.get_card_by_id(1) is None

    async def test_server_error_propagates(self, fake_api: FakeApi, api: YgoApi) -> None:
        fake_api.reply(httpx.Response(500))

        with pytest.raises(ServerError):
            await api.get_card_by_id(1)

    async def test_get_random_card(self, fake_api: FakeApi, api: YgoApi) -> None:
        fake_api.reply_json(card_payload(POT_OF_GREED))

        card = await api.get_random_card()

        assert card is not None
        assert card.id == 55144522
        assert fake_api.requests[0].url.path.endswith("/randomcard.php")

    async def test_get_random_card_bare_payload(self, fake_api: FakeApi, api: YgoApi) -> None:
        fake_api.reply_json(POT_OF_GREED)

        card = await api.get_random_card()

        assert card is not None
        assert card.name == "Pot of Greed"


class TestCardQueries:
    """Tests for the filter shortcuts on /cardinfo.php."""

    async def test_get_card_info(self, fake_api: FakeApi, api: YgoApi) -> None:
        fake_api.reply_json(card_payload(DARK_MAGICIAN, POT_OF_GREED))

        response = await api.get_card_info(attribute="DARK")

        assert [card.name for card in response.data] == ["Dark Magician", "Pot of Greed"]
        assert response.meta is None

    async def test_search_cards_merges_params(self, fake_api: FakeApi, api: YgoApi) -> None:
        await api.search_cards("magician", {"def": 2100}, attribute="DARK")

        assert fake_api.params() == {"fname": "magician", "def": "2100", "attribute": "DARK"}

    async def test_pagination(self, fake_api: FakeApi, api: YgoApi) -> None:
        fake_api.reply_json(
            {
                "data": [DARK_MAGICIAN],
                "meta": {
                    "current_rows": 1,
                    "total_rows": 20,
                    "rows_remaining": 19,
                    "total_pages": 20,
                    "pages_remaining": 19,
                    "next_page": "https://db.ygoprodeck.com/api/v7/cardinfo.php?num=1&offset=1",
                    "next_page_offset": 1,
                },
            }
        )

        response = await api.get_cards_with_pagination(1, 0, archetype="Dark Magician")

        assert response.meta is not None
        assert response.meta.rows_remaining == 19
        assert response.meta.next_page_offset == 1
        assert fake_api.params() == {"archetype": "Dark Magician", "num": "1", "offset": "0"}

    @pytest.mark.parametrize(
        ("method", "args", "expected"),
        [
            ("get_cards_by_archetype", ("Blue-Eyes",), {"archetype": "Blue-Eyes"}),
            ("get_cards_by_set", ("Metal Raiders",), {"cardset": "Metal Raiders"}),
            ("get_staple_cards", (), {"staple": "yes"}),
            ("get_cards_by_format", ("goat",), {"format": "goat"}),
            ("get_cards_by_genesys_format", (), {"format": "genesys", "misc": "yes"}),
            ("get_banlist_cards", ("TCG",), {"banlist": "TCG"}),
            ("get_cards_by_type", ("Spell Card",), {"type": "Spell Card"}),
            ("get_cards_by_attribute", ("LIGHT",), {"attribute": "LIGHT"}),
            ("get_cards_by_race", ("Dragon",), {"race": "Dragon"}),
            ("get_cards_by_level", (build_comparison("gte", 7),), {"level": "gte7"}),
            ("get_cards_by_atk", (3000,), {"atk": "3000"}),
            ("get_cards_by_def", (build_comparison("lt", 1000),), {"def": "lt1000"}),
            ("get_cards_with_misc_info", (), {"misc": "yes"}),
        ],
    )
    async def test_shortcuts(
        self, fake_api: FakeApi, api: YgoApi, method: str, args: tuple[object, ...], expected: dict[str, str]
    ) -> None:
        await getattr(api, method)(*args)
        assert fake_api.params() == expected

    async def test_pinned_param_wins(self, fake_api: FakeApi, api: YgoApi) -> None:
        await api.get_cards_by_archetype("Blue-Eyes", {"archetype": "Red-Eyes"})
        assert fake_api.params() == {"archetype": "Blue-Eyes"}


class TestSetsAndDatabase:
    """Tests for the non-card endpoints."""

    async def test_get_all_card_sets(self, fake_api: FakeApi, api: YgoApi) -> None:
        fake_api.reply_json(
            [
                {
                    "set_name": "Legend of Blue Eyes White Dragon",
                    "set_code": "LOB",
                    "num_of_cards": 126,
                    "tcg_date": "2002-03-08",
                }
            ]
        )

        sets = await api.get_all_card_sets()

        assert sets[0].set_code == "LOB"
        assert sets[0].num_of_cards == 126

    async def test_get_card_set_info(self, fake_api: FakeApi, api: YgoApi) -> None:
        fake_api.reply_json(
            {
                "id": 46986414,
                "name": "Dark Magician",
                "set_name": "Legend of Blue Eyes White Dragon",
                "set_code": "LOB-005",
                "set_rarity": "Ultra Rare",
                "set_price": "0",
            }
        )

        details = await api.get_card_set_info("LOB-005")

        assert details.name == "Dark Magician"
        assert fake_api.params() == {"setcode": "LOB-005"}

    async def test_get_all_archetypes(self, fake_api: FakeApi, api: YgoApi) -> None:
        fake_api.reply_json([{"archetype_name": "Blue-Eyes"}, {"archetype_name": "Dark Magician"}])

        archetypes = await api.get_all_archetypes()

        assert [a.archetype_name for a in archetypes] == ["Blue-Eyes", "Dark Magician"]

    async def test_check_database_version(self, fake_api: FakeApi, api: YgoApi) -> None:
        fake_api.reply_json([{"database_version": "105.12", "last_update": "2026-10-01 12:00:00"}])

        version = await api.check_database_version()

        assert version.database_version == "105.12"


class TestImages:
    """Tests for local artwork lookups."""

    async def test_get_local_image_path(self, http_client: httpx.AsyncClient) -> None:
        images = MemoryKVStore()
        await images.set("46986414:small", "/cache/46986414/small.jpg")
        api = YgoApi(http_client=http_client, image_cache=images)
        card = Card.model_validate(DARK_MAGICIAN)

        assert await api.get_local_image_path(card, "small") == "/cache/46986414/small.jpg"
        assert await api.get_local_image_path(card) is None

    async def test_no_image_cache(self, api: YgoApi) -> None:
        card = Card.model_validate(DARK_MAGICIAN)
        assert await api.get_local_image_path(card) is None

    async def test_card_without_images(self, http_client: httpx.AsyncClient) -> None:
        api = YgoApi(http_client=http_client, image_cache=MemoryKVStore())
        card = Card(id=1, name="Token")
        assert await api.get_local_image_path(card) is None

    async def test_cleanup_image_cache(self, tmp_path: Path, http_client: httpx.AsyncClient) -> None:
        images = FileSystemImageCache(cache_dir=tmp_path, max_age=60)
        stale = images.key_to_path("1:default")
        stale.parent.mkdir(parents=True)
        stale.write_bytes(b"jpeg")
        past = time.time() - 120
        os.utime(stale, (past, past))
        api = YgoApi(http_client=http_client, image_cache=images)

        await api.cleanup_image_cache()

        assert not stale.exists()

    async def test_cleanup_skipped_without_support(self, http_client: httpx.AsyncClient) -> None:
        images = AsyncMock(spec=["get", "set"])
        api = YgoApi(http_client=http_client, image_cache=images)

        await api.cleanup_image_cache()

        images.get.assert_not_called()


class TestFromSettings:
    """Tests for building a client from settings."""

    async def test_wiring(self, tmp_path: Path) -> None:
        settings = Settings(
            base_url="https://example.com/api",
            fallback_urls=["https://mirror.example.com/api"],
            request_timeout=2.5,
            retry_max_attempts=5,
            queue_interval=0.1,
            cache_ttl_seconds=60,
            data_cache_dir=tmp_path / "data",
            image_cache_dir=tmp_path / "images",
            image_cache_enabled=True,
        )

        async with YgoApi.from_settings(settings) as api:
            executor = api.executor
            assert executor.hosts == ("https://example.com/api", "https://mirror.example.com/api")
            assert executor.fallback.timeout == 2.5
            assert executor.retry.max_attempts == 5
            assert executor.cache_ttl == 60
            assert isinstance(executor.cache, FileSystemKVStore)
            assert executor.cache.cache_dir == tmp_path / "data"
            assert isinstance(executor.request_queue, ThrottledQueue)
            assert executor.request_queue.interval == 0.1
            assert isinstance(api.image_cache, FileSystemImageCache)
            assert api.image_cache.cache_dir == tmp_path / "images"
            assert executor.image_cache_enabled

    async def test_optional_layers_disabled(self, tmp_path: Path) -> None:
        settings = Settings(use_queue=False, use_data_cache=False, image_cache_dir=tmp_path)

        async with YgoApi.from_settings(settings) as api:
            assert api.executor.cache is None
            assert api.executor.request_queue is None
            assert not api.executor.image_cache_enabled
