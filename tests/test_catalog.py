import json

import pytest

from cardsync.catalog import iter_cards, load_catalog
from cardsync.utils.errors import CatalogError

CATALOG = {
    "lastUpdated": "2026-10-01T00:00:00Z",
    "sets": [
        {
            "id": "op-13",
            "name": "Carrying On His Will",
            "cards": [
                {"id": "OP13-118", "baseId": "OP13-118", "name": "Monkey.D.Luffy", "isParallel": False},
                {
                    "id": "OP13-118_p4",
                    "baseId": "OP13-118",
                    "name": "Monkey.D.Luffy",
                    "isParallel": True,
                    "variant": "p4",
                    "imageUrl": "https://example.test/luffy.png",
                },
            ],
        },
        {
            "id": "op-01",
            "name": "Romance Dawn",
            "cards": [{"id": "OP01-016", "baseId": "OP01-016", "setId": "op-01", "name": "Nami"}],
        },
    ],
}


@pytest.fixture
def catalog_path(tmp_path):
    path = tmp_path / "cards.json"
    path.write_text(json.dumps(CATALOG), encoding="utf-8")
    return path


def test_load_catalog_fills_set_ids(catalog_path):
    catalog = load_catalog(catalog_path)
    assert catalog.card_count == 3
    assert catalog.last_updated == "2026-10-01T00:00:00Z"
    luffy_parallel = catalog.sets[0].cards[1]
    assert luffy_parallel.set_id == "op-13"
    assert luffy_parallel.variant_code == "p4"
    assert luffy_parallel.is_parallel is True


def test_missing_catalog(tmp_path):
    with pytest.raises(CatalogError) as exc:
        load_catalog(tmp_path / "nope.json")
    assert "not found" in str(exc.value)


def test_invalid_json(tmp_path):
    path = tmp_path / "cards.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(CatalogError):
        load_catalog(path)


def test_wrong_shape(tmp_path):
    path = tmp_path / "cards.json"
    path.write_text(json.dumps({"sets": [{"cards": [{"name": "no id"}]}]}), encoding="utf-8")
    with pytest.raises(CatalogError):
        load_catalog(path)


def test_iter_cards_filters(catalog_path):
    catalog = load_catalog(catalog_path)
    assert [s.id for s, _ in iter_cards(catalog)] == ["op-13", "op-01"]
    assert [s.id for s, _ in iter_cards(catalog, set_filter="op-01")] == ["op-01"]

    selected = list(iter_cards(catalog, card_filter="op13-118_p"))
    assert len(selected) == 1
    assert [c.id for c in selected[0][1]] == ["OP13-118_p4"]

    assert list(iter_cards(catalog, set_filter="op-99")) == []
