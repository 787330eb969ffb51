"""Small helpers for working with card records."""

from __future__ import annotations

from .models import EXTRA_DECK_TYPES, Card, CardImage, ComparisonOperator


def build_comparison(operator: ComparisonOperator, value: int) -> str:
    """Build an ATK/DEF/level filter such as ``"gte2500"``."""
    return f"{operator}{value}"


def get_card_images(card: Card) -> tuple[CardImage | None, list[CardImage]]:
    """Split a card's artwork into the default image and its alternates."""
    if not card.card_images:
        return None, []
    default, *alternates = card.card_images
    return default, alternates


def is_spell_card(card: Card) -> bool:
    return "Spell" in card.type


def is_trap_card(card: Card) -> bool:
    return "Trap" in card.type


def is_monster_card(card: Card) -> bool:
    return not is_spell_card(card) and not is_trap_card(card)


def is_extra_deck_monster(card: Card) -> bool:
    """Check if the card belongs in the extra deck (Fusion, Synchro, XYZ, Link)."""
    return card.type in EXTRA_DECK_TYPES
