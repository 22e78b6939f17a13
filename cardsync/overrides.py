"""Human-confirmed card -> product bindings stored on `card_prices`."""

from datetime import datetime, timezone
from typing import Dict, Iterable, Optional

from supabase import Client

from cardsync.utils.logger import log_database_operation, supabase_logger as sb_logger
from cardsync.utils.supabase import supabase_select_all

TABLE = "card_prices"


class OverrideStore:
    """Reads and edits the `manually_mapped` rows the matcher must respect."""

    def __init__(self, client: Client):
        self.client = client

    def load_confirmed(self, card_ids: Optional[Iterable[str]] = None) -> Dict[str, int]:
        """
        Confirmed overrides as `{card_id: product_id}`. With `card_ids`, only
        those cards are read (an empty selection reads nothing).
        """
        filters: dict = {"manually_mapped": True}
        if card_ids is not None:
            card_ids = list(card_ids)
            if not card_ids:
                return {}
            filters["card_id"] = {"in": card_ids}
        rows = supabase_select_all(
            self.client,
            TABLE,
            order_by="card_id",
            columns="card_id,tcgplayer_product_id",
            filters=filters,
        )
        overrides: Dict[str, int] = {}
        for row in rows:
            card_id = row.get("card_id")
            product_id = row.get("tcgplayer_product_id")
            if not card_id or product_id is None:
                continue
            try:
                overrides[card_id] = int(product_id)
            except (TypeError, ValueError):
                sb_logger.warning(f"⚠️ Ignoring override {card_id} with bad product id {product_id!r}")
        log_database_operation(sb_logger, "SELECT", len(overrides), TABLE)
        return overrides

    def confirm(self, card_id: str, product_id: int, mapped_by: Optional[str] = None) -> dict:
        """Bind `card_id` to `product_id` and protect it from automated remapping."""
        record = {
            "card_id": card_id,
            "tcgplayer_product_id": int(product_id),
            "manually_mapped": True,
            "mapped_by": mapped_by,
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }
        res = self.client.table(TABLE).upsert(record, on_conflict="card_id").execute()
        log_database_operation(sb_logger, "UPSERT", 1, TABLE)
        data = getattr(res, "data", None) or [record]
        return data[0]

    def revert(self, card_id: str) -> bool:
        """Drop the row so the next run re-derives the mapping automatically."""
        res = self.client.table(TABLE).delete().eq("card_id", card_id).execute()
        deleted = len(getattr(res, "data", None) or [])
        log_database_operation(sb_logger, "DELETE", deleted, TABLE)
        return deleted > 0
