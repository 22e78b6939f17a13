import json
import logging

import pytest

from cardsync import cli
from cardsync.reconcile import SyncStats
from cardsync.utils.errors import CatalogError


@pytest.fixture
def catalog_path(tmp_path):
    path = tmp_path / "cards.json"
    path.write_text(
        json.dumps(
            {
                "sets": [
                    {"id": "op-13", "name": "Carrying On His Will", "cards": [{"id": "OP13-118", "baseId": "OP13-118"}]},
                    {"id": "zz-99", "name": "Unknown", "cards": []},
                ]
            }
        ),
        encoding="utf-8",
    )
    return path


@pytest.fixture
def captured_run(monkeypatch):
    calls = []

    async def fake_run_sync(settings, **kwargs):
        calls.append(kwargs)
        return SyncStats()

    monkeypatch.setattr(cli, "run_sync", fake_run_sync)
    return calls


def test_parse_args_flags():
    args = cli.parse_args(["--set=op-13", "--card", "OP13-118", "--debug", "--skip-last-sales", "--db-aliases"])
    assert args.set_id == "op-13"
    assert args.card == "OP13-118"
    assert args.debug is True
    assert args.skip_last_sales is True
    assert args.db_aliases is True
    assert args.list_sets is False
    assert args.prune_history is False


def test_main_passes_options_to_sync(captured_run, catalog_path):
    code = cli.main([f"--catalog={catalog_path}", "--set=op-13", "--skip-last-sales", "--prune-history"])
    assert code == 0
    assert captured_run == [
        {
            "catalog_path": str(catalog_path),
            "set_filter": "op-13",
            "card_filter": None,
            "debug": False,
            "db_aliases": False,
            "fetch_last_sales": False,
            "prune_history": True,
        }
    ]


def test_catalog_from_environment(monkeypatch, captured_run, catalog_path):
    monkeypatch.setenv("CATALOG_PATH", str(catalog_path))
    assert cli.main([]) == 0
    assert captured_run[0]["catalog_path"] == str(catalog_path)


def test_unknown_log_level_falls_back_to_info(monkeypatch, captured_run, catalog_path):
    monkeypatch.setenv("LOG_LEVEL", "verbose")
    assert cli.main([f"--catalog={catalog_path}"]) == 0
    assert len(captured_run) == 1
    assert logging.getLogger("cardsync.sync").level == logging.INFO


def test_catalog_error_exits_1(monkeypatch):
    async def failing_run_sync(settings, **kwargs):
        raise CatalogError(kwargs["catalog_path"], "file not found")

    monkeypatch.setattr(cli, "run_sync", failing_run_sync)
    assert cli.main(["--catalog=/nowhere/cards.json"]) == 1


def test_list_sets(capsys, captured_run, catalog_path):
    assert cli.main([f"--catalog={catalog_path}", "--list-sets"]) == 0
    out = capsys.readouterr().out
    assert "op-13" in out
    assert "carrying-on-his-will" in out
    assert "(none)" in out
    assert captured_run == []


def test_list_sets_missing_catalog(tmp_path):
    assert cli.main([f"--catalog={tmp_path / 'missing.json'}", "--list-sets"]) == 1
