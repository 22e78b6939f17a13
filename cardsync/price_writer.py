"""
Batched persistence of current prices (`card_prices`) and daily snapshots
(`card_price_history`).

Every write is an idempotent upsert on the table's natural key, so re-running a
set after an interruption is harmless. A failing batch is logged and counted;
the remaining batches still go out.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Hashable, Iterable, List, Tuple

from supabase import Client

from cardsync.models.mapping import HistoryRow, LastSaleRow, MappingRow
from cardsync.utils.logger import log_database_operation, supabase_logger as sb_logger
from cardsync.utils.supabase import supabase_apply_filter

PRICES_TABLE = "card_prices"
HISTORY_TABLE = "card_price_history"

PRICES_CONFLICT = "card_id"
HISTORY_CONFLICT = "tcgplayer_product_id,recorded_date"


@dataclass
class WriteReport:
    written: int = 0
    failed: int = 0
    failed_batches: int = 0
    errors: List[str] = field(default_factory=list)

    def merge(self, other: "WriteReport") -> "WriteReport":
        self.written += other.written
        self.failed += other.failed
        self.failed_batches += other.failed_batches
        self.errors.extend(other.errors)
        return self


def deduplicate(records: Iterable[dict], key: Callable[[dict], Hashable]) -> List[dict]:
    """Collapse records sharing a key; the last one wins, first-seen position is kept."""
    latest: Dict[Hashable, dict] = {}
    for record in records:
        latest[key(record)] = record
    return list(latest.values())


def group_by_columns(records: Iterable[dict]) -> List[List[dict]]:
    """
    Split records into groups with identical column sets. PostgREST fills keys
    missing from some rows of a bulk upsert with NULL, which would wipe columns
    a partial row meant to leave alone.
    """
    groups: Dict[Tuple[str, ...], List[dict]] = {}
    for record in records:
        groups.setdefault(tuple(sorted(record)), []).append(record)
    return list(groups.values())


class PriceSyncWriter:
    def __init__(self, client: Client, batch_size: int = 500):
        self.client = client
        self.batch_size = batch_size

    def upsert_mappings(self, rows: Iterable[MappingRow]) -> WriteReport:
        records = deduplicate((r.to_record() for r in rows), key=lambda r: r["card_id"])
        return self._upsert(PRICES_TABLE, records, PRICES_CONFLICT)

    def upsert_history(self, rows: Iterable[HistoryRow]) -> WriteReport:
        """One snapshot per (product, day); a product seen under two aliases writes once."""
        records = deduplicate(
            (r.to_record() for r in rows),
            key=lambda r: (r["tcgplayer_product_id"], r["recorded_date"]),
        )
        return self._upsert(HISTORY_TABLE, records, HISTORY_CONFLICT)

    def update_last_sales(self, rows: Iterable[LastSaleRow]) -> WriteReport:
        records = deduplicate((r.to_record() for r in rows), key=lambda r: r["card_id"])
        return self._upsert(PRICES_TABLE, records, PRICES_CONFLICT)

    def prune_history(self, retention_days: int = 365) -> int:
        """Delete snapshots older than the retention window; returns rows removed."""
        cutoff = (datetime.now(timezone.utc) - timedelta(days=retention_days)).date().isoformat()
        try:
            query = self.client.table(HISTORY_TABLE).delete()
            res = supabase_apply_filter(query, {"recorded_date": {"lt": cutoff}}).execute()
        except Exception as e:
            sb_logger.error(f"❌ Failed to prune {HISTORY_TABLE} before {cutoff}: {e}")
            raise
        removed = len(getattr(res, "data", None) or [])
        log_database_operation(sb_logger, f"DELETE (before {cutoff})", removed, HISTORY_TABLE)
        return removed

    def _upsert(self, table: str, records: List[dict], on_conflict: str) -> WriteReport:
        report = WriteReport()
        if not records:
            return report

        for group in group_by_columns(records):
            for i in range(0, len(group), self.batch_size):
                batch = group[i : i + self.batch_size]
                try:
                    self.client.table(table).upsert(
                        batch, on_conflict=on_conflict, returning="minimal"
                    ).execute()
                    report.written += len(batch)
                except Exception as e:
                    report.failed += len(batch)
                    report.failed_batches += 1
                    report.errors.append(str(e))
                    sb_logger.error(
                        f"❌ Upsert of {len(batch)} rows into {table} failed, continuing: {e}"
                    )

        log_database_operation(sb_logger, "UPSERT", report.written, table)
        return report
