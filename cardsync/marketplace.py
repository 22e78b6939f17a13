"""
TCGplayer marketplace client: per-set candidate search and latest-sale lookups.
"""

import asyncio
from datetime import timezone
from typing import Dict, Iterable, List, Optional, Tuple

import httpx
import dateutil.parser as date_parser

from cardsync.config import SyncConfig
from cardsync.models.marketplace import LastSale, MarketplaceProduct
from cardsync.utils.errors import MarketplaceError
from cardsync.utils.httpx import create_http_client, httpx_post_json
from cardsync.utils.logger import marketplace_logger as logger

SEARCH_URL = "https://mp-search-api.tcgplayer.com/v1/search/request"
LATEST_SALES_URL = "https://mpapi.tcgplayer.com/v2/product/{product_id}/latestsales"


def build_search_payload(set_alias: str, offset: int, size: int, product_line: str) -> dict:
    return {
        "algorithm": "sales_exp_fields_boosted",
        "from": offset,
        "size": size,
        "filters": {
            "term": {
                "productLineName": [product_line],
                "productTypeName": ["Cards"],
                "setName": [set_alias],
            },
            "range": {},
            "match": {},
        },
        "listingSearch": {
            "filters": {
                "term": {},
                "range": {},
                "exclude": {"channelExclusion": 0},
            },
        },
        "context": {"cart": {}, "shippingCountry": "US"},
        "settings": {"useFuzzySearch": False, "didYouMean": {}},
        "sort": {},
    }


def parse_search_results(data) -> Tuple[List[MarketplaceProduct], int]:
    """
    Products from a search response's `results[0].results[]`, plus the number
    of raw entries on the page. Entries without a usable product id are
    dropped but still counted, so a full page stays a full page.
    """
    if not isinstance(data, dict):
        raise MarketplaceError("Unexpected search response shape")
    outer = data.get("results") or []
    if not isinstance(outer, list):
        raise MarketplaceError("Unexpected search response shape")
    if not outer:
        return [], 0
    if not isinstance(outer[0], dict):
        raise MarketplaceError("Unexpected search response shape")
    raw_products = outer[0].get("results") or []
    if not isinstance(raw_products, list):
        raise MarketplaceError("Unexpected search response shape")

    products = []
    for raw in raw_products:
        product = MarketplaceProduct.from_search_result(raw) if isinstance(raw, dict) else None
        if product is not None:
            products.append(product)
    return products, len(raw_products)


def parse_latest_sale(data) -> Optional[LastSale]:
    """Most recent sale from a latest-sales response (bare list or `{"data": [...]}`)."""
    sales = data.get("data") if isinstance(data, dict) else data
    if not isinstance(sales, list):
        return None

    latest = None
    latest_at = None
    for sale in sales:
        if not isinstance(sale, dict):
            continue
        price = sale.get("purchasePrice")
        order_date = sale.get("orderDate")
        if price is None or not order_date:
            continue
        try:
            sold_at = date_parser.parse(order_date)
            price = float(price)
        except (ValueError, TypeError, OverflowError):
            continue
        if sold_at.tzinfo is None:
            sold_at = sold_at.replace(tzinfo=timezone.utc)
        if latest_at is None or sold_at > latest_at:
            latest_at = sold_at
            latest = LastSale(price=price, date=sold_at.isoformat())
    return latest


def deduplicate_by_product_id(products: Iterable[MarketplaceProduct]) -> List[MarketplaceProduct]:
    """Keep the first occurrence of every product id, preserving response order."""
    seen: Dict[int, MarketplaceProduct] = {}
    for product in products:
        seen.setdefault(product.product_id, product)
    return list(seen.values())


class MarketplaceClient:
    """Rate-limited access to the marketplace search and latest-sales endpoints."""

    def __init__(self, config: SyncConfig, http_client: Optional[httpx.AsyncClient] = None):
        self.config = config
        self._client = http_client
        self._owns_client = http_client is None

    async def __aenter__(self) -> "MarketplaceClient":
        if self._client is None:
            self._client = create_http_client(self.config.http_timeout)
        return self

    async def __aexit__(self, *exc):
        await self.aclose()

    async def aclose(self):
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = create_http_client(self.config.http_timeout)
            self._owns_client = True
        return self._client

    # ------------------------------------------------------------------
    # search
    # ------------------------------------------------------------------

    async def fetch_candidates(self, set_aliases: List[str]) -> List[MarketplaceProduct]:
        """
        All card products listed under any of `set_aliases`, de-duplicated by
        product id. A failing alias only loses its own remaining pages.
        """
        collected: List[MarketplaceProduct] = []
        for index, alias in enumerate(set_aliases):
            if index > 0:
                await asyncio.sleep(self.config.request_delay)
            products = await self._search_alias(alias)
            logger.info(f"🛒 {alias}: {len(products)} products")
            collected.extend(products)

        unique = deduplicate_by_product_id(collected)
        if len(unique) != len(collected):
            logger.debug(f"Dropped {len(collected) - len(unique)} duplicate products across aliases")
        return unique

    async def _search_alias(self, alias: str) -> List[MarketplaceProduct]:
        page_size = self.config.page_size
        products: List[MarketplaceProduct] = []
        offset = 0
        page = 1
        while True:
            payload = build_search_payload(alias, offset, page_size, self.config.product_line)
            try:
                data = await httpx_post_json(
                    self.client, SEARCH_URL, payload, params={"q": "", "isList": "false"}
                )
                page_products, raw_count = parse_search_results(data)
            except MarketplaceError as e:
                logger.warning(
                    f"⚠️ {alias} page {page} failed, keeping {len(products)} products already fetched: {e}"
                )
                return products

            products.extend(page_products)
            if raw_count < page_size:
                return products

            offset += page_size
            page += 1
            await asyncio.sleep(self.config.request_delay)

    # ------------------------------------------------------------------
    # latest sales
    # ------------------------------------------------------------------

    async def fetch_last_sale(self, product_id: int) -> Optional[LastSale]:
        """Most recent sale of one product, or None when unavailable."""
        payload = {
            "conditions": [],
            "languages": [],
            "variants": [],
            "listingType": "All",
            "offset": 0,
            "limit": 5,
        }
        url = LATEST_SALES_URL.format(product_id=product_id)
        try:
            data = await httpx_post_json(self.client, url, payload)
        except MarketplaceError as e:
            logger.debug(f"No sale data for {product_id}: {e}")
            return None
        return parse_latest_sale(data)

    async def fetch_last_sales(self, product_ids: Iterable[int]) -> Dict[int, LastSale]:
        """Latest sale per product, fetched in fixed-size concurrent batches."""
        ids = list(dict.fromkeys(product_ids))
        batch_size = self.config.last_sale_batch_size
        sales: Dict[int, LastSale] = {}

        for start in range(0, len(ids), batch_size):
            if start > 0:
                await asyncio.sleep(self.config.last_sale_batch_delay)
            batch = ids[start : start + batch_size]
            results = await asyncio.gather(*[self.fetch_last_sale(pid) for pid in batch])
            for pid, sale in zip(batch, results):
                if sale is not None:
                    sales[pid] = sale

        logger.info(f"🛒 Last sales: {len(sales)}/{len(ids)} products had sale data")
        return sales
