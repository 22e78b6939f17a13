"""Supabase client configuration and shared query helpers."""

import os
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv
from supabase import Client, create_client

from cardsync.utils.logger import supabase_logger as sb_logger

# Load environment variables from .env file
load_dotenv()

# PostgREST caps a single select at 1000 rows by default
PAGE_ROWS = 1000


def _get_supabase_credentials() -> tuple[str, str]:
    """Get and validate Supabase credentials from environment."""
    url = os.environ.get("SUPABASE_URL")
    key = os.environ.get("SUPABASE_SERVICE_KEY")

    if not url or not key:
        raise ValueError(
            "SUPABASE_URL and SUPABASE_SERVICE_KEY environment variables are required"
        )

    return url, key


def _create_supabase_client(url: Optional[str] = None, key: Optional[str] = None) -> Client:
    """Create and test Supabase client connection."""
    if not url or not key:
        url, key = _get_supabase_credentials()

    sb_logger.info("🔧 Initializing Supabase connection...")
    sb_logger.info(f"   🌐 URL: {url}")
    sb_logger.info(f"   🔑 Key: {key[:20]}...")

    try:
        client = create_client(url, key)

        # Test connection
        client.table("card_prices").select("card_id").limit(1).execute()
        sb_logger.info("✅ Supabase connection test successful")

        return client

    except Exception as e:
        sb_logger.error(f"❌ Supabase connection failed: {e}")
        raise


@lru_cache(maxsize=1)
def get_supabase_client() -> Client:
    """Process-wide client, created on first use."""
    return _create_supabase_client()


# ===============================================================
# query helpers
# ===============================================================
def supabase_apply_filter(query, filters: dict | None):
    if not filters:
        return query
    for k, v in filters.items():
        if v is None:
            sb_logger.debug(f"supabase_apply_filter: skipping filter {k}=None")
            continue

        if isinstance(v, dict):
            if "in" in v:
                in_val = v.get("in")
                if not isinstance(in_val, (list, tuple)) or len(in_val) == 0:
                    sb_logger.debug(
                        f"supabase_apply_filter: skipping filter {k} IN {in_val!r} (None/invalid/empty)"
                    )
                else:
                    query = query.in_(k, list(in_val))
                continue

            if "lt" in v:
                query = query.lt(k, v["lt"])
                continue

            sb_logger.debug(
                f"supabase_apply_filter: unrecognized filter object for key={k}: {v!r} (skipping)"
            )
            continue

        query = query.eq(k, v)
    return query


def supabase_select_all(
    client: Client,
    table: str,
    order_by: str | tuple[str, ...],
    columns: str = "*",
    filters: dict | None = None,
) -> list[dict]:
    """
    Select every matching row, paging past the PostgREST row cap.
    `order_by` must identify rows uniquely, or offset pages can overlap.
    """
    order_columns = (order_by,) if isinstance(order_by, str) else tuple(order_by)
    rows: list[dict] = []
    start = 0
    while True:
        q = supabase_apply_filter(client.table(table).select(columns), filters)
        for column in order_columns:
            q = q.order(column)
        res = q.range(start, start + PAGE_ROWS - 1).execute()
        page = list(getattr(res, "data", None) or [])
        rows.extend(page)
        if len(page) < PAGE_ROWS:
            return rows
        start += PAGE_ROWS
