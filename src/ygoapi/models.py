"""Response models for YGOPRODeck API payloads.

Models are permissive: unknown fields are kept so new API fields never break
parsing, and everything except identifiers is optional.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

Format = Literal[
    "tcg",
    "goat",
    "ocg goat",
    "speed duel",
    "master duel",
    "rush duel",
    "duel links",
    "genesys",
]

BanlistType = Literal["TCG", "OCG", "Goat"]

ComparisonOperator = Literal["lt", "lte", "gt", "gte"]

ImageSize = Literal["default", "small", "cropped"]

IMAGE_SIZES: tuple[ImageSize, ...] = ("default", "small", "cropped")

# Card types that live in the extra deck
EXTRA_DECK_TYPES = frozenset(
    {
        "Fusion Monster",
        "Link Monster",
        "Pendulum Effect Fusion Monster",
        "Synchro Monster",
        "Synchro Pendulum Effect Monster",
        "Synchro Tuner Monster",
        "XYZ Monster",
        "XYZ Pendulum Effect Monster",
    }
)


class _ApiModel(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)


class CardImage(_ApiModel):
    """Artwork URLs for one printing of a card."""

    id: int
    image_url: str | None = None
    image_url_small: str | None = None
    image_url_cropped: str | None = None

    def url_for(self, size: ImageSize) -> str | None:
        """Remote URL for the given size variant."""
        if size == "small":
            return self.image_url_small
        if size == "cropped":
            return self.image_url_cropped
        return self.image_url


class CardSet(_ApiModel):
    """A set a card was printed in."""

    set_name: str
    set_code: str
    set_rarity: str | None = None
    set_rarity_code: str | None = None
    set_price: str | None = None
    set_edition: str | None = None  # Only with tcgplayer_data
    set_url: str | None = None  # Only with tcgplayer_data


class CardPrice(_ApiModel):
    """Market prices reported by the API (strings, as sent)."""

    cardmarket_price: str | None = None
    tcgplayer_price: str | None = None
    ebay_price: str | None = None
    amazon_price: str | None = None
    coolstuffinc_price: str | None = None


class BanlistInfo(_ApiModel):
    """Ban status per format."""

    ban_tcg: str | None = None
    ban_ocg: str | None = None
    ban_goat: str | None = None


class MiscInfo(_ApiModel):
    """Extra card data returned with ``misc=yes``."""

    beta_name: str | None = None
    views: int | None = None
    viewsweek: int | None = None
    upvotes: int | None = None
    downvotes: int | None = None
    formats: list[str] = Field(default_factory=list)
    treated_as: str | None = None
    tcg_date: str | None = None
    ocg_date: str | None = None
    konami_id: str | int | None = None
    md_rarity: str | None = None
    has_effect: int | None = None
    genesys_points: int | None = None


class Card(_ApiModel):
    """A Yu-Gi-Oh! card."""

    id: int
    name: str
    type: str = ""
    frame_type: str | None = Field(default=None, alias="frameType")
    desc: str | None = None
    ygoprodeck_url: str | None = None
    race: str | None = None
    archetype: str | None = None

    # Monster stats
    atk: int | None = None
    def_: int | None = Field(default=None, alias="def")
    level: int | None = None
    attribute: str | None = None

    # Pendulum / Link
    scale: int | None = None
    linkval: int | None = None
    linkmarkers: list[str] | None = None

    card_sets: list[CardSet] | None = None
    card_images: list[CardImage] = Field(default_factory=list)
    card_prices: list[CardPrice] = Field(default_factory=list)
    banlist_info: BanlistInfo | None = None
    misc_info: list[MiscInfo] | None = None


class PaginationMeta(_ApiModel):
    """Pagination block returned with ``num``/``offset``."""

    current_rows: int
    total_rows: int
    rows_remaining: int
    total_pages: int
    pages_remaining: int
    next_page: str | None = None
    next_page_offset: int | None = None


class CardInfoResponse(_ApiModel):
    """Response of ``/cardinfo.php``."""

    data: list[Card] = Field(default_factory=list)
    meta: PaginationMeta | None = None


class CardSetInfo(_ApiModel):
    """Entry of ``/cardsets.php``."""

    set_name: str
    set_code: str
    num_of_cards: int | None = None
    tcg_date: str | None = None


class CardSetDetails(_ApiModel):
    """Response of ``/cardsetsinfo.php``."""

    id: int
    name: str
    set_name: str
    set_code: str
    set_rarity: str | None = None
    set_price: str | None = None


class Archetype(_ApiModel):
    """Entry of ``/archetypes.php``."""

    archetype_name: str


class DatabaseVersion(_ApiModel):
    """Entry of ``/checkDBVer.php``."""

    database_version: str
    last_update: str
