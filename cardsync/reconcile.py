"""
Reconciliation driver: catalog -> marketplace candidates -> matches -> stored prices.

Sets are processed one after another. Each set's mapping and history rows are
flushed before the next set starts, so an interrupted run can be resumed by
simply running it again. Latest sales are fetched once, after every set, for
the products cards ended up bound to.
"""

import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Union

from supabase import Client

from cardsync.catalog import iter_cards, load_catalog
from cardsync.config import Settings, SyncConfig
from cardsync.marketplace import MarketplaceClient
from cardsync.match_engine import MatchEngine
from cardsync.models.card import Card, CardSet
from cardsync.models.mapping import (
    Automated,
    HistoryRow,
    LastSaleRow,
    ManualConfirmed,
    ManualOrphaned,
    MappingRow,
    MatchResult,
    Unmatched,
)
from cardsync.overrides import OverrideStore
from cardsync.price_writer import PriceSyncWriter, WriteReport
from cardsync.set_mappings import load_set_aliases
from cardsync.utils.logger import log_failure, log_success, log_sync_progress, sync_logger as logger
from cardsync.utils.step import step
from cardsync.utils.supabase import get_supabase_client


class RunState(str, Enum):
    idle = "idle"
    load_catalog = "load_catalog"
    fetch_candidates = "fetch_candidates"
    matching = "matching"
    flush_rows = "flush_rows"
    fetch_last_sales = "fetch_last_sales"
    done = "done"
    aborted = "aborted"


@dataclass
class SyncStats:
    processed: int = 0
    found: int = 0
    not_found: int = 0
    manual_preserved: int = 0
    orphaned: List[str] = field(default_factory=list)
    skipped_sets: List[str] = field(default_factory=list)
    failed_sets: List[str] = field(default_factory=list)
    rows_written: int = 0
    failed_batches: int = 0
    last_sales: int = 0
    history_pruned: int = 0
    elapsed_seconds: float = 0.0

    def record(self, result: MatchResult, card_id: str):
        self.processed += 1
        if isinstance(result, Automated):
            self.found += 1
        elif isinstance(result, ManualConfirmed):
            self.found += 1
            self.manual_preserved += 1
        elif isinstance(result, ManualOrphaned):
            self.manual_preserved += 1
            self.orphaned.append(card_id)
        elif isinstance(result, Unmatched):
            self.not_found += 1

    def add_report(self, report: WriteReport):
        self.rows_written += report.written
        self.failed_batches += report.failed_batches

    def to_dict(self) -> dict:
        return {
            "processed": self.processed,
            "found": self.found,
            "not_found": self.not_found,
            "manual_preserved": self.manual_preserved,
            "orphaned": list(self.orphaned),
            "skipped_sets": list(self.skipped_sets),
            "failed_sets": list(self.failed_sets),
            "rows_written": self.rows_written,
            "failed_batches": self.failed_batches,
            "last_sales": self.last_sales,
            "history_pruned": self.history_pruned,
            "elapsed_seconds": round(self.elapsed_seconds, 1),
        }


@dataclass
class SetBatch:
    """Rows staged for one set, flushed together."""

    mappings: List[MappingRow] = field(default_factory=list)
    history: List[HistoryRow] = field(default_factory=list)
    bound: Dict[str, int] = field(default_factory=dict)


class Reconciler:
    """Runs the full sync pipeline; tracks the current `RunState` for observers."""

    def __init__(
        self,
        config: SyncConfig,
        marketplace: MarketplaceClient,
        writer: PriceSyncWriter,
        overrides: OverrideStore,
        debug: bool = False,
    ):
        self.config = config
        self.marketplace = marketplace
        self.writer = writer
        self.overrides = overrides
        self.engine = MatchEngine(config, debug=debug)
        self.state = RunState.idle
        self.stats = SyncStats()

    def _enter(self, state: RunState):
        logger.debug(f"state {self.state.value} -> {state.value}")
        self.state = state

    async def run(
        self,
        catalog_path: Union[str, Path],
        set_filter: Optional[str] = None,
        card_filter: Optional[str] = None,
        fetch_last_sales: bool = True,
        prune_history: bool = False,
    ) -> SyncStats:
        """
        Sync every selected card. Raises CatalogError (after moving to
        `aborted`) when the catalog cannot be used; anything narrower is logged
        and counted in the returned stats.
        """
        self.stats = SyncStats()
        started = time.monotonic()
        try:
            self._enter(RunState.load_catalog)
            async with step("load catalog", logger):
                catalog = load_catalog(catalog_path)
                overrides = self.overrides.load_confirmed()
            logger.info(f"🔒 {len(overrides)} confirmed overrides at start of run")

            selected = list(iter_cards(catalog, set_filter, card_filter))
            if not selected:
                logger.warning(
                    f"⚠️ No cards selected (set={set_filter or '*'}, card={card_filter or '*'})"
                )
            total_cards = sum(len(cards) for _, cards in selected)

            bound: Dict[str, int] = {}
            for index, (card_set, cards) in enumerate(selected):
                if index > 0:
                    await asyncio.sleep(self.config.set_delay)
                try:
                    batch = await self._sync_set(card_set, cards)
                except Exception as e:
                    logger.error(f"❌ Set {card_set.id} failed, continuing with next set: {e}")
                    self.stats.failed_sets.append(card_set.id)
                    continue
                if batch is not None:
                    bound.update(batch.bound)
                log_sync_progress(
                    logger,
                    self.stats.processed,
                    total_cards,
                    time.monotonic() - started,
                    label=card_set.id,
                )

            if fetch_last_sales and bound:
                self._enter(RunState.fetch_last_sales)
                async with step("fetch last sales", logger):
                    await self._sync_last_sales(bound)

            if prune_history:
                try:
                    self.stats.history_pruned = self.writer.prune_history(
                        self.config.history_retention_days
                    )
                except Exception as e:
                    logger.error(f"❌ History pruning skipped: {e}")

            self._enter(RunState.done)
            return self.stats
        except Exception:
            self._enter(RunState.aborted)
            raise
        finally:
            self.stats.elapsed_seconds = time.monotonic() - started
            self._log_summary()

    async def _sync_set(self, card_set: CardSet, cards: List[Card]) -> Optional[SetBatch]:
        aliases = self.config.aliases_for(card_set.id)
        if not aliases:
            logger.warning(f"⏭️ No marketplace alias for set {card_set.id}, skipping {len(cards)} cards")
            self.stats.skipped_sets.append(card_set.id)
            return None

        self._enter(RunState.fetch_candidates)
        async with step(f"fetch candidates {card_set.id} {aliases}", logger):
            candidates = await self.marketplace.fetch_candidates(aliases)
        logger.info(f"🃏 {card_set.id}: {len(cards)} cards vs {len(candidates)} products")

        # Re-read right before matching so edits made while candidates were
        # fetched are honoured by this set's flush
        overrides = self.overrides.load_confirmed([card.id for card in cards])

        self._enter(RunState.matching)
        batch = SetBatch()
        for card in cards:
            result = self.engine.match(card, candidates, overrides)
            self.stats.record(result, card.id)
            self._stage(card, result, batch)

        self._enter(RunState.flush_rows)
        async with step(f"flush {card_set.id}", logger):
            self.stats.add_report(self.writer.upsert_mappings(batch.mappings))
            self.stats.add_report(self.writer.upsert_history(batch.history))
        return batch

    @staticmethod
    def _stage(card: Card, result: MatchResult, batch: SetBatch):
        row = MappingRow.from_result(card.id, result)
        if row is None:
            # Unmatched: leave whatever is stored for this card alone
            return
        batch.mappings.append(row)
        if isinstance(result, (Automated, ManualConfirmed)):
            batch.history.append(HistoryRow.snapshot(result.product))
            batch.bound[card.id] = result.product.product_id

    async def _sync_last_sales(self, bound: Dict[str, int]):
        sales = await self.marketplace.fetch_last_sales(bound.values())
        rows = [
            LastSaleRow.from_sale(card_id, product_id, sales[product_id])
            for card_id, product_id in bound.items()
            if product_id in sales
        ]
        self.stats.last_sales = len(rows)
        self.stats.add_report(self.writer.update_last_sales(rows))

    def _log_summary(self):
        s = self.stats
        logger.info("=" * 60)
        logger.info(f"🏁 Sync {self.state.value} in {s.elapsed_seconds:.1f}s")
        logger.info(
            f"   processed={s.processed} found={s.found} not_found={s.not_found} "
            f"manual_preserved={s.manual_preserved}"
        )
        logger.info(
            f"   rows_written={s.rows_written} failed_batches={s.failed_batches} last_sales={s.last_sales}"
        )
        if s.skipped_sets:
            logger.info(f"   skipped sets (no alias): {', '.join(s.skipped_sets)}")
        if s.orphaned:
            logger.warning(f"   overrides not found in their set: {', '.join(s.orphaned)}")
        if s.history_pruned:
            logger.info(f"   pruned {s.history_pruned} history rows")
        if self.state == RunState.done and not s.failed_sets and not s.failed_batches:
            log_success(logger, "Sync completed")
        elif s.failed_sets or s.failed_batches:
            log_failure(logger, f"Sync finished with failures (sets: {s.failed_sets or '-'}, batches: {s.failed_batches})")
        logger.info("=" * 60)


async def run_sync(
    settings: Settings,
    catalog_path: Optional[Union[str, Path]] = None,
    set_filter: Optional[str] = None,
    card_filter: Optional[str] = None,
    debug: bool = False,
    db_aliases: bool = False,
    fetch_last_sales: bool = True,
    prune_history: bool = False,
    client: Optional[Client] = None,
) -> SyncStats:
    """Wire up a Reconciler from settings and run it once."""
    client = client or get_supabase_client()
    config = settings.sync_config()
    if db_aliases:
        aliases = load_set_aliases(client)
        if aliases:
            config = config.model_copy(update={"set_aliases": {**config.set_aliases, **aliases}})
        else:
            logger.warning("⚠️ set_mappings is empty, using built-in set aliases")

    async with MarketplaceClient(config) as marketplace:
        reconciler = Reconciler(
            config,
            marketplace,
            PriceSyncWriter(client, config.write_batch_size),
            OverrideStore(client),
            debug=debug,
        )
        return await reconciler.run(
            catalog_path or settings.catalog_path,
            set_filter=set_filter,
            card_filter=card_filter,
            fetch_last_sales=fetch_last_sales,
            prune_history=prune_history,
        )
