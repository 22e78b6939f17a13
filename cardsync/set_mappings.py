"""Publisher set id -> marketplace set aliases, read from the `set_mappings` table."""

from typing import Dict, List

from supabase import Client

from cardsync.utils.logger import log_database_operation, supabase_logger as sb_logger
from cardsync.utils.supabase import supabase_select_all

TABLE = "set_mappings"


def load_set_aliases(client: Client) -> Dict[str, List[str]]:
    """
    Aliases per set id, primary release first, the rest by name.
    Duplicate alias rows are collapsed.
    """
    rows = supabase_select_all(
        client,
        TABLE,
        order_by=("bandai_set_id", "tcgplayer_set_name"),
        columns="bandai_set_id,tcgplayer_set_name,is_primary",
    )

    primary: Dict[str, List[str]] = {}
    secondary: Dict[str, List[str]] = {}
    for row in rows:
        set_id = row.get("bandai_set_id")
        alias = row.get("tcgplayer_set_name")
        if not set_id or not alias:
            continue
        bucket = primary if row.get("is_primary") else secondary
        bucket.setdefault(set_id, []).append(alias)

    aliases: Dict[str, List[str]] = {}
    for set_id in list(primary) + list(secondary):
        if set_id in aliases:
            continue
        ordered = primary.get(set_id, []) + secondary.get(set_id, [])
        aliases[set_id] = list(dict.fromkeys(ordered))

    log_database_operation(sb_logger, "SELECT", len(rows), TABLE)
    return aliases
