"""Loading the scraped card catalog (`data/cards.json`)."""

import json
from pathlib import Path
from typing import Iterator, Optional, Union

from pydantic import ValidationError

from cardsync.models.card import Card, CardSet, Catalog
from cardsync.utils.errors import CatalogError
from cardsync.utils.logger import sync_logger


def load_catalog(path: Union[str, Path]) -> Catalog:
    """
    Parse and validate the catalog at `path`.

    Raises CatalogError when the file is missing, unreadable, not JSON or does
    not have the expected shape. Cards without a `setId` inherit their set's id.
    """
    path = Path(path)
    if not path.is_file():
        raise CatalogError(str(path), "file not found (run the card scraper first)")

    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise CatalogError(str(path), f"unreadable: {e}") from e
    except json.JSONDecodeError as e:
        raise CatalogError(str(path), f"invalid JSON: {e}") from e

    try:
        catalog = Catalog.model_validate(raw)
    except ValidationError as e:
        raise CatalogError(str(path), f"unexpected shape: {e.error_count()} validation errors") from e

    sets = [_with_set_ids(card_set) for card_set in catalog.sets]
    catalog = catalog.model_copy(update={"sets": sets})
    sync_logger.info(f"📚 Loaded {len(catalog.sets)} sets / {catalog.card_count} cards from {path}")
    return catalog


def _with_set_ids(card_set: CardSet) -> CardSet:
    cards = [
        card if card.set_id else card.model_copy(update={"set_id": card_set.id})
        for card in card_set.cards
    ]
    return card_set.model_copy(update={"cards": cards})


def iter_cards(
    catalog: Catalog, set_filter: Optional[str] = None, card_filter: Optional[str] = None
) -> Iterator[tuple[CardSet, list[Card]]]:
    """
    Sets (and their cards) selected by an exact set id and/or a case-insensitive
    card id substring. Sets left without cards are skipped.
    """
    needle = card_filter.lower() if card_filter else None
    for card_set in catalog.sets:
        if set_filter and card_set.id != set_filter:
            continue
        cards = card_set.cards
        if needle:
            cards = [c for c in cards if needle in c.id.lower()]
        if cards:
            yield card_set, list(cards)
