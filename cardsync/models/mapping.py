"""
Match outcomes and the rows persisted to `card_prices` / `card_price_history`.
"""

from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict

from cardsync.models.marketplace import LastSale, MarketplaceProduct


# ==============================================================================
# MATCH RESULTS
# ==============================================================================


@dataclass(frozen=True)
class Automated:
    """Engine picked `product`; `rule` names the preference tier that decided it."""

    product: MarketplaceProduct
    rule: str


@dataclass(frozen=True)
class ManualConfirmed:
    """Human override whose product was found in the current candidate pool."""

    product: MarketplaceProduct
    rule: str = "override"


@dataclass(frozen=True)
class ManualOrphaned:
    """Human override whose product is absent from this set's candidates."""

    product_id: int
    rule: str = "override-not-in-set"


@dataclass(frozen=True)
class Unmatched:
    reason: str
    rule: str = "no-candidate"


MatchResult = Union[Automated, ManualConfirmed, ManualOrphaned, Unmatched]


# ==============================================================================
# PERSISTED ROWS
# ==============================================================================


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class MappingRow(BaseModel):
    """One `card_prices` row, keyed by card_id."""

    model_config = ConfigDict(frozen=True)

    card_id: str
    tcgplayer_product_id: int
    tcgplayer_product_name: Optional[str] = None
    tcgplayer_url: Optional[str] = None
    market_price: Optional[float] = None
    lowest_price: Optional[float] = None
    median_price: Optional[float] = None
    total_listings: Optional[int] = None
    manually_mapped: Optional[bool] = None
    updated_at: str = ""

    @classmethod
    def from_result(cls, card_id: str, result: MatchResult) -> Optional["MappingRow"]:
        """Row to upsert for a match outcome, or None when nothing should be written."""
        now = _utc_now_iso()
        if isinstance(result, (Automated, ManualConfirmed)):
            product = result.product
            return cls(
                card_id=card_id,
                tcgplayer_product_id=product.product_id,
                tcgplayer_product_name=product.product_name,
                tcgplayer_url=product.url,
                manually_mapped=True if isinstance(result, ManualConfirmed) else None,
                updated_at=now,
                **product.prices.model_dump(),
            )
        if isinstance(result, ManualOrphaned):
            # Price fields cleared, override binding kept
            return cls(
                card_id=card_id,
                tcgplayer_product_id=result.product_id,
                manually_mapped=True,
                updated_at=now,
            )
        if isinstance(result, Unmatched):
            return None
        raise TypeError(f"Unknown match result: {result!r}")

    def to_record(self) -> Dict[str, Any]:
        """
        Payload for the upsert. Name/url are omitted when unknown so an orphaned
        override keeps whatever a human stored there. Automated rows carry no
        `manually_mapped` at all: inserts take the column default and updates
        never clear a flag a human set meanwhile.
        """
        record = self.model_dump()
        for key in ("tcgplayer_product_name", "tcgplayer_url", "manually_mapped"):
            if record[key] is None:
                record.pop(key)
        return record


class LastSaleRow(BaseModel):
    """Partial `card_prices` update carrying the latest sale of the bound product."""

    model_config = ConfigDict(frozen=True)

    card_id: str
    tcgplayer_product_id: int
    last_sold_price: Optional[float] = None
    last_sold_date: Optional[str] = None

    @classmethod
    def from_sale(cls, card_id: str, product_id: int, sale: LastSale) -> "LastSaleRow":
        return cls(
            card_id=card_id,
            tcgplayer_product_id=product_id,
            last_sold_price=sale.price,
            last_sold_date=sale.date,
        )

    def to_record(self) -> Dict[str, Any]:
        return self.model_dump()


class HistoryRow(BaseModel):
    """One `card_price_history` snapshot, keyed by (product, day)."""

    model_config = ConfigDict(frozen=True)

    tcgplayer_product_id: int
    recorded_date: str
    market_price: Optional[float] = None
    lowest_price: Optional[float] = None
    median_price: Optional[float] = None
    total_listings: Optional[int] = None

    @classmethod
    def snapshot(cls, product: MarketplaceProduct, on: Optional[date] = None) -> "HistoryRow":
        day = on or datetime.now(timezone.utc).date()
        return cls(
            tcgplayer_product_id=product.product_id,
            recorded_date=day.isoformat(),
            **product.prices.model_dump(),
        )

    def to_record(self) -> Dict[str, Any]:
        return self.model_dump()

