"""
Normalized marketplace (TCGplayer) records. Built fresh on every run, never stored as-is.
"""

from typing import Any, Dict, Optional
from pydantic import BaseModel, ConfigDict, Field


TCGPLAYER_PRODUCT_URL = "https://www.tcgplayer.com/product"


def _first_number(raw: Dict[str, Any], *keys: str) -> Optional[float]:
    for key in keys:
        value = raw.get(key)
        if value is None:
            continue
        try:
            return float(value)
        except (TypeError, ValueError):
            continue
    return None


class PriceFields(BaseModel):
    model_config = ConfigDict(frozen=True)

    market_price: Optional[float] = None
    lowest_price: Optional[float] = None
    median_price: Optional[float] = None
    total_listings: Optional[int] = None

    @classmethod
    def from_raw(cls, raw: Dict[str, Any]) -> "PriceFields":
        """Accept both the current (lowest/median) and older (low/mid/high) search payloads."""
        listings = _first_number(raw, "totalListings", "listings")
        return cls(
            market_price=_first_number(raw, "marketPrice"),
            lowest_price=_first_number(raw, "lowestPrice", "lowPrice"),
            median_price=_first_number(raw, "medianPrice", "midPrice"),
            total_listings=int(listings) if listings is not None else None,
        )


class MarketplaceProduct(BaseModel):
    model_config = ConfigDict(frozen=True)

    product_id: int
    product_name: str
    card_number: str = ""
    set_name: str = ""
    prices: PriceFields = Field(default_factory=PriceFields)
    url_slug: str = ""

    @property
    def url(self) -> str:
        if self.url_slug:
            return f"{TCGPLAYER_PRODUCT_URL}/{self.product_id}/{self.url_slug}"
        return f"{TCGPLAYER_PRODUCT_URL}/{self.product_id}"

    @classmethod
    def from_search_result(cls, raw: Dict[str, Any]) -> Optional["MarketplaceProduct"]:
        """Build a product from one `results[0].results[]` entry; None when it has no id."""
        product_id = raw.get("productId")
        if product_id is None:
            return None
        try:
            product_id = int(float(product_id))
        except (TypeError, ValueError):
            return None
        attributes = raw.get("customAttributes") or {}
        return cls(
            product_id=product_id,
            product_name=str(raw.get("productName") or ""),
            card_number=str(attributes.get("number") or "").strip(),
            set_name=str(raw.get("setName") or raw.get("setUrlName") or ""),
            prices=PriceFields.from_raw(raw),
            url_slug=str(raw.get("productUrlName") or ""),
        )


class LastSale(BaseModel):
    model_config = ConfigDict(frozen=True)

    price: float
    date: str
