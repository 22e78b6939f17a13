import asyncio
import json

import httpx
import pytest

from cardsync.marketplace import (
    MarketplaceClient,
    build_search_payload,
    deduplicate_by_product_id,
    parse_latest_sale,
    parse_search_results,
)
from cardsync.utils.errors import MarketplaceError
from cardsync.utils.httpx import httpx_post_json, is_html_response
from tests.factories import make_product, raw_product, search_page

HTML_INTERSTITIAL = "<!DOCTYPE html><html><body>Too many requests</body></html>"


def _client(config, handler):
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return MarketplaceClient(config, http_client=http)


def _run(coro):
    return asyncio.run(coro)


# ---------- search payload / parsing ----------

def test_search_payload_filters():
    payload = build_search_payload("romance-dawn", 100, 50, "one-piece-card-game")
    assert payload["from"] == 100
    assert payload["size"] == 50
    term = payload["filters"]["term"]
    assert term["setName"] == ["romance-dawn"]
    assert term["productLineName"] == ["one-piece-card-game"]
    assert term["productTypeName"] == ["Cards"]
    assert payload["listingSearch"]["filters"]["exclude"] == {"channelExclusion": 0}


def test_product_from_legacy_price_fields():
    product = make_product(5, "Nami", "OP01-016", lowest=None, median=None, lowPrice=1.5, midPrice=2.5)
    assert product.prices.lowest_price == 1.5
    assert product.prices.median_price == 2.5
    assert product.url.startswith("https://www.tcgplayer.com/product/5/")


def test_deduplicate_keeps_first_occurrence():
    products = [make_product(1, "A", "1"), make_product(2, "B", "2"), make_product(1, "A again", "1")]
    unique = deduplicate_by_product_id(products)
    assert [p.product_id for p in unique] == [1, 2]
    assert unique[0].product_name == "A"


# ---------- candidate fetching ----------

def test_paginates_until_short_page(config):
    config = config.model_copy(update={"page_size": 2})
    pages = {
        0: search_page(raw_product(1, "A", "OP13-001"), raw_product(2, "B", "OP13-002")),
        2: search_page(raw_product(3, "C", "OP13-003"), raw_product(4, "D", "OP13-004")),
        4: search_page(raw_product(5, "E", "OP13-005")),
    }
    offsets = []

    def handler(request):
        body = json.loads(request.content)
        offsets.append(body["from"])
        assert request.url.params["isList"] == "false"
        return httpx.Response(200, json=pages[body["from"]])

    products = _run(_client(config, handler).fetch_candidates(["carrying-on-his-will"]))
    assert [p.product_id for p in products] == [1, 2, 3, 4, 5]
    assert offsets == [0, 2, 4]


def test_html_interstitial_on_second_page_keeps_first_page(config):
    config = config.model_copy(update={"page_size": 2})

    def handler(request):
        body = json.loads(request.content)
        assert body["filters"]["term"]["setName"] == ["premium-booster-the-best"]
        if body["from"] == 0:
            return httpx.Response(
                200, json=search_page(raw_product(1, "Zoro", "OP01-025"), raw_product(2, "Nami", "OP01-016"))
            )
        return httpx.Response(200, text=HTML_INTERSTITIAL, headers={"content-type": "text/html"})

    products = _run(_client(config, handler).fetch_candidates(["premium-booster-the-best"]))
    assert [p.product_id for p in products] == [1, 2]


def test_failing_alias_does_not_drop_other_aliases(config):
    def handler(request):
        alias = json.loads(request.content)["filters"]["term"]["setName"][0]
        if alias == "broken":
            return httpx.Response(503, text="unavailable")
        if alias == "first":
            return httpx.Response(200, json=search_page(raw_product(1, "A", "1"), raw_product(2, "B", "2")))
        return httpx.Response(200, json=search_page(raw_product(2, "B again", "2"), raw_product(3, "C", "3")))

    products = _run(_client(config, handler).fetch_candidates(["first", "broken", "second"]))
    assert [p.product_id for p in products] == [1, 2, 3]
    assert products[1].product_name == "B"


def test_transport_error_is_contained(config):
    def handler(request):
        raise httpx.ConnectTimeout("timed out", request=request)

    assert _run(_client(config, handler).fetch_candidates(["romance-dawn"])) == []


def test_results_without_product_id_are_skipped(config):
    def handler(request):
        return httpx.Response(200, json=search_page({"productName": "Mystery"}, raw_product(9, "Luffy", "1")))

    products = _run(_client(config, handler).fetch_candidates(["romance-dawn"]))
    assert [p.product_id for p in products] == [9]


def test_full_page_with_malformed_entry_still_paginates(config):
    config = config.model_copy(update={"page_size": 2})
    pages = {
        0: search_page({"productName": "no id"}, raw_product(1, "A", "OP13-001")),
        2: search_page(raw_product(2, "B", "OP13-002")),
    }
    offsets = []

    def handler(request):
        body = json.loads(request.content)
        offsets.append(body["from"])
        return httpx.Response(200, json=pages[body["from"]])

    products = _run(_client(config, handler).fetch_candidates(["carrying-on-his-will"]))
    assert [p.product_id for p in products] == [1, 2]
    assert offsets == [0, 2]


def test_unexpected_response_shape_only_loses_that_alias(config):
    def handler(request):
        alias = json.loads(request.content)["filters"]["term"]["setName"][0]
        if alias == "weird":
            return httpx.Response(200, json={"results": {"unexpected": 1}})
        return httpx.Response(200, json=search_page(raw_product(1, "A", "1")))

    products = _run(_client(config, handler).fetch_candidates(["good", "weird"]))
    assert [p.product_id for p in products] == [1]


@pytest.mark.parametrize(
    "data",
    [
        {"results": {"unexpected": 1}},
        {"results": ["not a dict"]},
        {"results": [{"results": {"productId": 1}}]},
        ["not", "a", "dict"],
    ],
)
def test_parse_search_results_rejects_bad_shapes(data):
    with pytest.raises(MarketplaceError):
        parse_search_results(data)


def test_parse_search_results_counts_raw_entries():
    products, raw_count = parse_search_results(search_page({"productName": "no id"}, raw_product(1, "A", "1")))
    assert [p.product_id for p in products] == [1]
    assert raw_count == 2
    assert parse_search_results({"results": []}) == ([], 0)


# ---------- latest sales ----------

def test_parse_latest_sale_picks_most_recent():
    data = {
        "data": [
            {"purchasePrice": 10.0, "orderDate": "2026-01-01T10:00:00Z"},
            {"purchasePrice": 12.5, "orderDate": "2026-02-03T08:30:00Z"},
            {"purchasePrice": 9.0, "orderDate": "2025-12-24T00:00:00"},
        ]
    }
    sale = parse_latest_sale(data)
    assert sale.price == 12.5
    assert sale.date.startswith("2026-02-03")


def test_parse_latest_sale_accepts_bare_list_and_empty():
    assert parse_latest_sale([{"purchasePrice": "3.25", "orderDate": "2026-03-01"}]).price == 3.25
    assert parse_latest_sale([]) is None
    assert parse_latest_sale({"data": None}) is None
    assert parse_latest_sale([{"purchasePrice": 1, "orderDate": "not a date"}]) is None


def test_fetch_last_sales_in_batches(config):
    config = config.model_copy(update={"last_sale_batch_size": 2})
    seen = []

    def handler(request):
        product_id = int(request.url.path.split("/")[3])
        seen.append(product_id)
        if product_id == 3:
            return httpx.Response(200, text=HTML_INTERSTITIAL)
        if product_id == 4:
            return httpx.Response(500)
        return httpx.Response(
            200, json={"data": [{"purchasePrice": product_id * 1.5, "orderDate": "2026-05-01T00:00:00Z"}]}
        )

    sales = _run(_client(config, handler).fetch_last_sales([1, 2, 3, 4, 5, 1]))
    assert sorted(seen) == [1, 2, 3, 4, 5]
    assert set(sales) == {1, 2, 5}
    assert sales[5].price == 7.5


# ---------- transport helper ----------

def test_post_json_rejects_html_without_content_type():
    def handler(request):
        return httpx.Response(200, text="  <html>blocked</html>")

    async def call():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            return await httpx_post_json(client, "https://example.test/x", {})

    with pytest.raises(MarketplaceError):
        _run(call())


def test_post_json_reports_status():
    def handler(request):
        return httpx.Response(429, json={"error": "slow down"})

    async def call():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            return await httpx_post_json(client, "https://example.test/x", {})

    with pytest.raises(MarketplaceError) as exc:
        _run(call())
    assert exc.value.status_code == 429


def test_is_html_response_by_content_type():
    response = httpx.Response(200, text="{}", headers={"content-type": "text/html; charset=utf-8"})
    assert is_html_response(response) is True
    assert is_html_response(httpx.Response(200, json={"ok": True})) is False
