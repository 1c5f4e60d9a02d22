import json
from unittest.mock import patch

from materials_lens.cache import MaterialCache
from materials_lens.models import Confidence, ItemAnalysis
from materials_lens.reconciler import reconcile


def make_cache(tmp_path, entries: dict[str, str] | None = None) -> MaterialCache:
    p = tmp_path / "cache.json"
    match entries:
        case None:
            pass
        case _:
            p.write_text(json.dumps({
                "entries": [
                    {"materialName": k, "productionSummary": v} for k, v in entries.items()
                ]
            }))
    return MaterialCache(path=p)


def make_item(material: str | None = "Leather", summary: str | None = None) -> ItemAnalysis:
    return ItemAnalysis(
        name="Jacket",
        material=material,
        confidence=Confidence.HIGH,
        animal_count=1.5,
        production_summary=summary,
    )


# ── cache hit / miss ──────────────────────────────────────────────────────────


def test_empty_summary_filled_from_cache(tmp_path):
    cache = make_cache(tmp_path, {"Leather": "Tanned cattle hide..."})

    with patch.object(cache, "_write") as write:
        items, modified = reconcile([make_item(summary="")], cache)

    assert items[0].production_summary == "Tanned cattle hide..."
    assert modified is False
    write.assert_not_called()


def test_cache_hit_is_case_insensitive(tmp_path):
    cache = make_cache(tmp_path, {"leather": "hide"})
    items, _ = reconcile([make_item(material="LEATHER", summary=None)], cache)
    assert items[0].production_summary == "hide"


def test_cache_miss_leaves_summary_empty(tmp_path):
    cache = make_cache(tmp_path)
    items, modified = reconcile([make_item(material="Suede", summary=None)], cache)
    assert items[0].production_summary is None
    assert modified is False


# ── cache writes ──────────────────────────────────────────────────────────────


def test_new_summary_added_to_cache(tmp_path):
    cache = make_cache(tmp_path)
    items, modified = reconcile([make_item(summary="Tanned cattle hide")], cache)

    assert modified is True
    assert items[0].production_summary == "Tanned cattle hide"
    assert cache.get("leather") == "Tanned cattle hide"


def test_existing_entry_not_overwritten(tmp_path):
    cache = make_cache(tmp_path, {"Leather": "original"})
    items, modified = reconcile([make_item(summary="newer text")], cache)

    assert modified is False
    assert items[0].production_summary == "newer text"
    assert cache.get("Leather") == "original"


def test_reconcile_twice_writes_once(tmp_path):
    cache = make_cache(tmp_path)
    with patch.object(cache, "_write", wraps=cache._write) as write:
        _, first = reconcile([make_item(summary="Tanned cattle hide")], cache)
        _, second = reconcile([make_item(summary="Tanned cattle hide")], cache)

    assert (first, second) == (True, False)
    assert len(cache) == 1
    assert write.call_count == 1


def test_same_material_twice_in_one_result_adds_once(tmp_path):
    cache = make_cache(tmp_path)
    items, modified = reconcile(
        [make_item(material="Leather", summary="a"), make_item(material="leather", summary="b")],
        cache,
    )
    assert modified is True
    assert len(cache) == 1
    assert [i.production_summary for i in items] == ["a", "b"]


# ── pass-through ──────────────────────────────────────────────────────────────


def test_item_without_material_untouched(tmp_path):
    cache = make_cache(tmp_path, {"Leather": "hide"})
    item = make_item(material=None, summary="some text")
    items, modified = reconcile([item], cache)
    assert items == [item]
    assert modified is False
    assert len(cache) == 1


def test_order_preserved(tmp_path):
    cache = make_cache(tmp_path, {"Wool": "fleece"})
    items, _ = reconcile(
        [make_item(material="Leather"), make_item(material="Wool"), make_item(material="Silk")],
        cache,
    )
    assert [i.material for i in items] == ["Leather", "Wool", "Silk"]


def test_empty_items(tmp_path):
    assert reconcile([], make_cache(tmp_path)) == ([], False)
