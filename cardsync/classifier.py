"""
Art-style classification for marketplace product names and catalog cards.
"""

from typing import Sequence, Tuple

from cardsync.config import SyncConfig
from cardsync.models.card import ArtStyle, Card

# Ordered (substring, tag) rules over the lowercased product name. First hit
# wins, so more specific phrases must come before the generic ones they contain.
ART_STYLE_RULES: Tuple[Tuple[str, ArtStyle], ...] = (
    ("red super alternate", ArtStyle.red_super),
    ("red super parallel", ArtStyle.red_super),
    ("wanted poster", ArtStyle.wanted),
    ("(wanted", ArtStyle.wanted),
    ("manga", ArtStyle.manga),
    ("super alternate", ArtStyle.super_alt),
    ("super parallel", ArtStyle.super_alt),
    ("treasure cup", ArtStyle.treasure),
    ("treasure rare", ArtStyle.treasure),
    ("jolly roger", ArtStyle.jolly_roger),
    ("full art", ArtStyle.full_art),
    ("reprint", ArtStyle.reprint),
    ("alternate art", ArtStyle.alternate),
    ("(parallel)", ArtStyle.alternate),
    ("art variant", ArtStyle.alternate),
    ("alternate", ArtStyle.alternate),
)


def classify(product_name: str, rules: Sequence[Tuple[str, ArtStyle]] = ART_STYLE_RULES) -> ArtStyle:
    """Map a free-text product name to an art-style tag; `standard` when no rule hits."""
    lower = (product_name or "").lower()
    for pattern, tag in rules:
        if pattern in lower:
            return tag
    return ArtStyle.standard


def expected_style(card: Card, config: SyncConfig) -> ArtStyle:
    """
    Art style the marketplace should list `card` under.

    manga and wanted on the card itself are trusted as is; otherwise the
    allowlists, then the positional variant code, then the card's own style.
    """
    if card.art_style in (ArtStyle.manga, ArtStyle.wanted):
        return card.art_style
    if card.id in config.wanted_cards:
        return ArtStyle.wanted
    if card.id in config.manga_cards:
        return ArtStyle.manga
    if not card.is_parallel:
        return ArtStyle.standard

    variant = (card.variant_code or "").lower()
    if variant in config.variant_styles:
        return config.variant_styles[variant]
    if card.art_style and card.art_style != ArtStyle.standard:
        return card.art_style
    return ArtStyle.alternate
