from __future__ import annotations

import json

import pytest

from mod_intake.app.models import CatalogEntity
from mod_intake.database.mod_store import ModStore, load_catalog_file, parse_catalog
from mod_intake.exceptions import ConfigurationError


def test_schema_version_and_reopen(tmp_path):
    db = tmp_path / "db" / "mods.sqlite"
    store = ModStore(str(db))
    store.import_catalog("g", [CatalogEntity("Albedo")])
    store.close()

    reopened = ModStore(str(db))
    assert [e.name for e in reopened.list_entities("g")] == ["Albedo"]
    reopened.close()


def test_entities_are_scoped_per_game():
    store = ModStore()
    assert store.import_catalog("g1", [CatalogEntity("Albedo"), CatalogEntity("Kazuha")]) == 2
    assert store.import_catalog("g1", [CatalogEntity("Albedo")]) == 0
    assert store.list_entities("g2") == []
    entity = store.get_entity("g1", "Kazuha")
    assert entity is not None and entity.id is not None


def test_upsert_outcomes():
    store = ModStore()
    with store.transaction() as conn:
        entity_id, created = store.ensure_entity("g", CatalogEntity("Albedo", tags=("geo",)), conn)
        assert created
        assert store.upsert_mod("g", "/m/A", "A", False, entity_id, conn) == "new"
    assert store.upsert_mod("g", "/m/A", "A", False, entity_id) == "unchanged"
    assert store.upsert_mod("g", "/m/A", "A", True, entity_id) == "updated"
    mod = store.get_mod("g", "/m/A")
    assert mod["status"] == "DISABLED"
    assert mod["entity_name"] == "Albedo"
    assert store.get_entity("g", "Albedo").tags == ("geo",)


def test_transaction_rolls_back_on_error():
    store = ModStore()
    with pytest.raises(RuntimeError):
        with store.transaction() as conn:
            store.upsert_mod("g", "/m/A", "A", False, None, conn)
            raise RuntimeError("boom")
    assert store.count_mods("g") == 0


def test_mod_index_rename_and_delete():
    store = ModStore()
    entity_id, _ = store.ensure_entity("g", CatalogEntity("Albedo"))
    store.upsert_mod("g", "/m/A", "A", False, entity_id)
    store.upsert_mod("g", "/m/B", "B", False, None)
    assert store.mod_index("g") == {"/m/A": "Albedo", "/m/B": None}

    store.rename_mod_path("g", "/m/B", "/m/C")
    assert set(store.mod_index("g")) == {"/m/A", "/m/C"}
    assert store.delete_mods("g", ["/m/A", "/m/missing"]) == 1
    assert store.count_mods("g") == 1


def test_load_catalog_yaml_and_json(tmp_path):
    yml = tmp_path / "catalog.yaml"
    yml.write_text("entities:\n  - name: Albedo\n    object_type: Character\n    tags: [geo]\n  - name: ''\n",
                   encoding="utf-8")
    js = tmp_path / "catalog.json"
    js.write_text(json.dumps([{"name": "Kazuha", "objectType": "Character"}]), encoding="utf-8")

    assert load_catalog_file(str(yml)) == [CatalogEntity("Albedo", "Character", tags=("geo",))]
    assert load_catalog_file(str(js))[0].object_type == "Character"


def test_bad_catalogs_raise_configuration_error(tmp_path):
    bad = tmp_path / "bad.json"
    bad.write_text("{not json", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        load_catalog_file(str(bad))
    with pytest.raises(ConfigurationError):
        load_catalog_file(str(tmp_path / "missing.yaml"))
    with pytest.raises(ConfigurationError):
        parse_catalog(42)
    assert parse_catalog("") == []
