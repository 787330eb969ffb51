"""Pytest fixtures for ygoapi tests."""

from __future__ import annotations

import copy
from collections.abc import AsyncGenerator, Callable, Generator
from typing import TYPE_CHECKING, Any
from unittest.mock import AsyncMock, patch

import httpx
import pytest

IMAGE_BASE = "https://images.ygoprodeck.com/images"

DARK_MAGICIAN: dict[str, Any] = {
    "id": 46986414,
    "name": "Dark Magician",
    "type": "Normal Monster",
    "frameType": "normal",
    "desc": "The ultimate wizard in terms of attack and defense.",
    "atk": 2500,
    "def": 2100,
    "level": 7,
    "race": "Spellcaster",
    "attribute": "DARK",
    "archetype": "Dark Magician",
    "ygoprodeck_url": "https://ygoprodeck.com/card/dark-magician-4003",
    "card_sets": [
        {
            "set_name": "Legend of Blue Eyes White Dragon",
            "set_code": "LOB-005",
            "set_rarity": "Ultra Rare",
            "set_rarity_code": "(UR)",
            "set_price": "0",
        }
    ],
    "card_images": [
        {
            "id": 46986414,
            "image_url": f"{IMAGE_BASE}/cards/46986414.jpg",
            "image_url_small": f"{IMAGE_BASE}/cards_small/46986414.jpg",
            "image_url_cropped": f"{IMAGE_BASE}/cards_cropped/46986414.jpg",
        },
        {
            "id": 36996508,
            "image_url": f"{IMAGE_BASE}/cards/36996508.jpg",
            "image_url_small": f"{IMAGE_BASE}/cards_small/36996508.jpg",
            "image_url_cropped": f"{IMAGE_BASE}/cards_cropped/36996508.jpg",
        },
    ],
    "card_prices": [{"cardmarket_price": "0.02", "tcgplayer_price": "0.21"}],
}

POT_OF_GREED: dict[str, Any] = {
    "id": 55144522,
    "name": "Pot of Greed",
    "type": "Spell Card",
    "frameType": "spell",
    "desc": "Draw 2 cards.",
    "race": "Normal",
    "card_images": [
        {
            "id": 55144522,
            "image_url": f"{IMAGE_BASE}/cards/55144522.jpg",
            "image_url_small": f"{IMAGE_BASE}/cards_small/55144522.jpg",
            "image_url_cropped": f"{IMAGE_BASE}/cards_cropped/55144522.jpg",
        }
    ],
}

NOT_FOUND = {"error": "No card matching your query was found in the database."}

if TYPE_CHECKING:
    Reply = httpx.Response | Exception | Callable[[httpx.Request], Any]


class FakeApi:
    """Scripted stand-in for the YGOPRODeck server.

    Replies are consumed in order; once exhausted, ``default`` is returned.
    A reply may be a response, an exception to raise, or a callable taking
    the request.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.replies: list[Reply] = []
        self.default: Reply = httpx.Response(200, json={"data": []})

    def reply(self, *replies: Reply) -> FakeApi:
        self.replies.extend(replies)
        return self

    def reply_json(self, payload: Any, status_code: int = 200) -> FakeApi:
        return self.reply(httpx.Response(status_code, json=payload))

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        reply = self.replies.pop(0) if self.replies else self.default
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, httpx.Response):
            # Fresh copy so a default reply can be served more than once
            return httpx.Response(reply.status_code, headers=reply.headers, content=reply.content)
        result = reply(request)
        if not isinstance(result, httpx.Response):
            result = await result
        return result

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))

    @property
    def hosts(self) -> list[str]:
        return [request.url.host for request in self.requests]

    def params(self, index: int = -1) -> dict[str, str]:
        return dict(self.requests[index].url.params)


def card_payload(*cards: dict[str, Any]) -> dict[str, Any]:
    return {"data": [copy.deepcopy(card) for card in cards]}


@pytest.fixture
def fake_api() -> FakeApi:
    """Fresh scripted API for each test."""
    return FakeApi()


@pytest.fixture
async def http_client(fake_api: FakeApi) -> AsyncGenerator[httpx.AsyncClient, None]:
    """HTTP client routed to the fake API."""
    async with fake_api.client() as client:
        yield client


@pytest.fixture
def no_sleep() -> Generator[AsyncMock, None, None]:
    """Skip retry backoff delays, recording the requested durations."""
    with patch("ygoapi.request.asyncio.sleep", new_callable=AsyncMock) as sleep:
        yield sleep


def slept(sleep: AsyncMock) -> list[float]:
    return [call.args[0] for call in sleep.await_args_list]
