"""
Command-line entry point for a one-off price sync.

    cardsync-sync                      # every set
    cardsync-sync --set=op-13          # one set
    cardsync-sync --card=OP13-118 --debug
    cardsync-sync --list-sets
"""

import argparse
import asyncio
from typing import Optional, Sequence

from cardsync.catalog import load_catalog
from cardsync.config import Settings
from cardsync.reconcile import run_sync
from cardsync.utils.errors import CatalogError
from cardsync.utils.logger import set_log_level, sync_logger as logger


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="cardsync-sync",
        description="Match catalog cards to TCGplayer products and refresh their prices.",
    )
    parser.add_argument("--set", dest="set_id", default=None, help="Only sync this set id (e.g. op-13).")
    parser.add_argument("--card", default=None, help="Only sync cards whose id contains this text.")
    parser.add_argument("--debug", action="store_true", help="Log every candidate and match decision.")
    parser.add_argument("--list-sets", action="store_true", help="List catalog sets and their aliases, then exit.")
    parser.add_argument("--catalog", default=None, help="Path to cards.json (default: CATALOG_PATH).")
    parser.add_argument("--db-aliases", action="store_true", help="Read set aliases from the set_mappings table.")
    parser.add_argument("--skip-last-sales", action="store_true", help="Do not fetch latest sales.")
    parser.add_argument(
        "--prune-history",
        action="store_true",
        help="Delete price history older than the retention window after the sync.",
    )
    return parser.parse_args(argv)


def list_sets(catalog_path: str, settings: Settings) -> int:
    catalog = load_catalog(catalog_path)
    config = settings.sync_config()
    print(f"{'SET':<12} {'CARDS':>6}  ALIASES")
    for card_set in catalog.sets:
        aliases = config.aliases_for(card_set.id)
        print(f"{card_set.id:<12} {len(card_set.cards):>6}  {', '.join(aliases) or '(none)'}")
    print(f"\n{len(catalog.sets)} sets, {catalog.card_count} cards")
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    settings = Settings.from_env()
    set_log_level("DEBUG" if args.debug else settings.log_level)
    catalog_path = args.catalog or settings.catalog_path

    try:
        if args.list_sets:
            return list_sets(catalog_path, settings)

        asyncio.run(
            run_sync(
                settings,
                catalog_path=catalog_path,
                set_filter=args.set_id,
                card_filter=args.card,
                debug=args.debug,
                db_aliases=args.db_aliases,
                fetch_last_sales=not args.skip_last_sales,
                prune_history=args.prune_history,
            )
        )
    except CatalogError as e:
        logger.error(f"❌ {e}")
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
