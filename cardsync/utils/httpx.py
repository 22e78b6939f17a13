"""HTTP client utilities for the marketplace JSON APIs."""

import logging
import random
from typing import Any, Optional

import httpx

from cardsync.utils.errors import MarketplaceError
from cardsync.utils.logger import httpx_logger

# Disable verbose httpx logging to prevent spam
logging.getLogger("httpx").setLevel(logging.WARNING)

USER_AGENTS = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/121.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.2 Safari/605.1.15",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:123.0) Gecko/20100101 Firefox/123.0",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
]

DEFAULT_HEADERS = {
    "Accept": "application/json",
    "Content-Type": "application/json",
    "Accept-Language": "en-US,en;q=0.9",
    "Origin": "https://www.tcgplayer.com",
    "Referer": "https://www.tcgplayer.com/",
}


def get_random_headers() -> dict:
    """JSON API headers with a rotated User-Agent."""
    headers = dict(DEFAULT_HEADERS)
    headers["User-Agent"] = random.choice(USER_AGENTS)
    return headers


def create_http_client(request_timeout: float = 20.0) -> httpx.AsyncClient:
    limits = httpx.Limits(max_keepalive_connections=5, max_connections=10, keepalive_expiry=30.0)
    return httpx.AsyncClient(
        headers=get_random_headers(),
        follow_redirects=True,
        timeout=httpx.Timeout(float(request_timeout)),
        limits=limits,
        trust_env=True,
    )


def is_html_response(response: httpx.Response) -> bool:
    """
    True for the marketplace's rate-limit interstitial: an HTML page served
    where JSON was expected.
    """
    content_type = response.headers.get("content-type", "").lower()
    if "text/html" in content_type:
        return True
    return response.text.lstrip().startswith("<")


async def httpx_post_json(
    client: httpx.AsyncClient,
    url: str,
    payload: dict,
    params: Optional[dict[str, str]] = None,
) -> Any:
    """
    POST `payload` and return the decoded JSON body.

    Raises MarketplaceError for transport failures, non-2xx statuses, HTML
    interstitials and undecodable bodies.
    """
    try:
        response = await client.post(url, json=payload, params=params)
    except httpx.HTTPError as e:
        raise MarketplaceError(f"{type(e).__name__} calling {url}: {e}") from e

    if not response.is_success:
        raise MarketplaceError(f"HTTP {response.status_code} from {url}", response.status_code)

    if is_html_response(response):
        raise MarketplaceError(f"HTML interstitial from {url} (rate limited?)", response.status_code)

    try:
        return response.json()
    except ValueError as e:
        raise MarketplaceError(f"Invalid JSON from {url}: {e}", response.status_code) from e
    finally:
        httpx_logger.debug(f"✈️ POST {response.request.url} -> {response.status_code}")
