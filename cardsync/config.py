"""
Lookup tables and tunables for a sync run, plus environment-backed settings.

Everything the matcher and driver consult is carried on `SyncConfig` and passed
in explicitly, so tests can swap any table for a fixture.
"""

import os
from typing import Dict, FrozenSet, List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from cardsync.models.card import ArtStyle

load_dotenv()


# Publisher set id -> marketplace set slugs. Primary release first, then
# pre-release / release-event / tournament slugs.
DEFAULT_SET_ALIASES: Dict[str, List[str]] = {
    "op-01": ["romance-dawn", "romance-dawn-pre-release-cards"],
    "op-02": ["paramount-war", "paramount-war-pre-release-cards"],
    "op-03": ["pillars-of-strength", "pillars-of-strength-pre-release-cards"],
    "op-04": ["kingdoms-of-intrigue", "kingdoms-of-intrigue-pre-release-cards"],
    "op-05": [
        "awakening-of-the-new-era",
        "awakening-of-the-new-era-pre-release-cards",
        "awakening-of-the-new-era-1st-anniversary-tournament-cards",
    ],
    "op-06": ["wings-of-the-captain", "wings-of-the-captain-pre-release-cards"],
    "op-07": ["500-years-in-the-future", "500-years-in-the-future-pre-release-cards"],
    "op-08": ["two-legends", "two-legends-pre-release-cards"],
    "op-09": [
        "emperors-in-the-new-world",
        "emperors-in-the-new-world-pre-release-cards",
        "emperors-in-the-new-world-2nd-anniversary-tournament-cards",
    ],
    "op-10": ["royal-blood", "royal-blood-pre-release-cards"],
    "op-11": ["a-fist-of-divine-speed", "a-fist-of-divine-speed-release-event-cards"],
    "op-12": ["legacy-of-the-master", "legacy-of-the-master-release-event-cards"],
    "op-13": ["carrying-on-his-will", "carrying-on-his-will-3rd-anniversary-tournament-cards"],
    "eb-01": ["extra-booster-memorial-collection"],
    "eb-02": ["extra-booster-anime-25th-collection"],
    "eb-03": ["extra-booster-one-piece-heroines-edition"],
    "op14-eb04": [
        "extra-booster-the-azure-seas-seven",
        "the-azure-seas-seven",
        "the-azure-seas-seven-release-event-cards",
    ],
    "prb-01": ["premium-booster-the-best"],
}

# Positional parallel code -> art style the marketplace lists it under
DEFAULT_VARIANT_STYLES: Dict[str, ArtStyle] = {
    "p1": ArtStyle.alternate,
    "p2": ArtStyle.super_alt,
    "p3": ArtStyle.red_super,
    "p4": ArtStyle.wanted,
}

DEFAULT_WANTED_CARDS: FrozenSet[str] = frozenset(
    {
        "OP01-016_p4",
        "OP03-112_p4",
        "OP05-067_p4",
        "OP13-118_p4",
        "OP13-119_p4",
    }
)

DEFAULT_MANGA_CARDS: FrozenSet[str] = frozenset()

DEFAULT_REPRINT_SETS: FrozenSet[str] = frozenset({"prb-01"})

# Tried in order after an exact style match fails. super and red-super fall
# back through each other on purpose; keep both chains as they are.
DEFAULT_FALLBACK_CHAINS: Dict[ArtStyle, List[ArtStyle]] = {
    ArtStyle.red_super: [ArtStyle.red_super, ArtStyle.super_alt, ArtStyle.alternate],
    ArtStyle.super_alt: [ArtStyle.super_alt, ArtStyle.red_super, ArtStyle.alternate],
    ArtStyle.wanted: [ArtStyle.wanted, ArtStyle.super_alt, ArtStyle.alternate],
    ArtStyle.manga: [ArtStyle.manga, ArtStyle.alternate],
    ArtStyle.treasure: [ArtStyle.treasure, ArtStyle.alternate],
    ArtStyle.full_art: [ArtStyle.full_art, ArtStyle.alternate],
    ArtStyle.jolly_roger: [ArtStyle.jolly_roger, ArtStyle.alternate],
    ArtStyle.reprint: [ArtStyle.reprint, ArtStyle.alternate],
    ArtStyle.alternate: [ArtStyle.alternate],
}

DEFAULT_REPRINT_BASE_CHAIN: List[ArtStyle] = [ArtStyle.reprint, ArtStyle.standard]
DEFAULT_REPRINT_PARALLEL_CHAIN: List[ArtStyle] = [
    ArtStyle.full_art,
    ArtStyle.jolly_roger,
    ArtStyle.reprint,
]


class SyncConfig(BaseModel):
    """Lookup tables and tunables for one reconciliation run."""

    set_aliases: Dict[str, List[str]] = Field(
        default_factory=lambda: {k: list(v) for k, v in DEFAULT_SET_ALIASES.items()}
    )
    variant_styles: Dict[str, ArtStyle] = Field(
        default_factory=lambda: dict(DEFAULT_VARIANT_STYLES)
    )
    wanted_cards: FrozenSet[str] = DEFAULT_WANTED_CARDS
    manga_cards: FrozenSet[str] = DEFAULT_MANGA_CARDS
    reprint_sets: FrozenSet[str] = DEFAULT_REPRINT_SETS
    fallback_chains: Dict[ArtStyle, List[ArtStyle]] = Field(
        default_factory=lambda: {k: list(v) for k, v in DEFAULT_FALLBACK_CHAINS.items()}
    )
    reprint_base_chain: List[ArtStyle] = Field(
        default_factory=lambda: list(DEFAULT_REPRINT_BASE_CHAIN)
    )
    reprint_parallel_chain: List[ArtStyle] = Field(
        default_factory=lambda: list(DEFAULT_REPRINT_PARALLEL_CHAIN)
    )

    product_line: str = "one-piece-card-game"
    page_size: int = Field(50, ge=1, le=250)
    request_delay: float = Field(0.1, ge=0, description="Seconds between search pages and aliases")
    set_delay: float = Field(0.5, ge=0, description="Seconds between sets")
    last_sale_batch_size: int = Field(5, ge=1)
    last_sale_batch_delay: float = Field(0.5, ge=0)
    write_batch_size: int = Field(500, ge=1)
    http_timeout: float = Field(20.0, gt=0)
    history_retention_days: int = Field(365, ge=1)

    def aliases_for(self, set_id: str) -> List[str]:
        return list(self.set_aliases.get(set_id) or [])


class Settings(BaseModel):
    """Process settings read from the environment (and `.env`)."""

    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None
    catalog_path: str = "data/cards.json"
    log_level: str = "INFO"
    sync_cron_hour: int = 3
    request_delay_ms: int = 100
    http_timeout: float = 20.0

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            supabase_url=os.environ.get("SUPABASE_URL"),
            supabase_key=os.environ.get("SUPABASE_SERVICE_KEY"),
            catalog_path=os.environ.get("CATALOG_PATH", "data/cards.json"),
            log_level=os.environ.get("LOG_LEVEL", "INFO"),
            sync_cron_hour=int(os.environ.get("SYNC_CRON_HOUR", "3")),
            request_delay_ms=int(os.environ.get("SYNC_REQUEST_DELAY_MS", "100")),
            http_timeout=float(os.environ.get("HTTP_TIMEOUT_SECONDS", "20")),
        )

    def sync_config(self, **overrides) -> SyncConfig:
        params = {
            "request_delay": self.request_delay_ms / 1000.0,
            "http_timeout": self.http_timeout,
        }
        params.update(overrides)
        return SyncConfig(**params)
