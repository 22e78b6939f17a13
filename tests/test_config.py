import asyncio

import pytest

from cardsync.config import DEFAULT_SET_ALIASES, Settings, SyncConfig
from cardsync.models.card import ArtStyle
from cardsync.utils.step import step


def test_settings_from_env(monkeypatch):
    monkeypatch.setenv("SUPABASE_URL", "https://db.example.test")
    monkeypatch.setenv("SUPABASE_SERVICE_KEY", "service-key")
    monkeypatch.setenv("CATALOG_PATH", "/data/cards.json")
    monkeypatch.setenv("SYNC_REQUEST_DELAY_MS", "250")
    monkeypatch.setenv("HTTP_TIMEOUT_SECONDS", "5")
    monkeypatch.setenv("SYNC_CRON_HOUR", "6")

    settings = Settings.from_env()
    assert settings.supabase_url == "https://db.example.test"
    assert settings.catalog_path == "/data/cards.json"
    assert settings.sync_cron_hour == 6

    config = settings.sync_config()
    assert config.request_delay == 0.25
    assert config.http_timeout == 5.0
    assert settings.sync_config(page_size=10).page_size == 10


def test_default_tables():
    config = SyncConfig()
    assert config.aliases_for("op-01")[0] == "romance-dawn"
    assert config.aliases_for("zz-99") == []
    assert config.variant_styles["p3"] == ArtStyle.red_super
    assert "OP13-118_p4" in config.wanted_cards
    assert config.reprint_sets == frozenset({"prb-01"})
    assert config.fallback_chains[ArtStyle.wanted] == [ArtStyle.wanted, ArtStyle.super_alt, ArtStyle.alternate]


def test_config_tables_are_independent_copies():
    config = SyncConfig()
    config.set_aliases["op-01"].append("scratch")
    assert "scratch" not in DEFAULT_SET_ALIASES["op-01"]
    assert "scratch" not in SyncConfig().aliases_for("op-01")


def test_config_validates_tunables():
    with pytest.raises(ValueError):
        SyncConfig(page_size=0)


def test_step_reraises():
    async def scenario():
        async with step("explode"):
            raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        asyncio.run(scenario())
