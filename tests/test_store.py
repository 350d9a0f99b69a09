"""Unit tests for the CatalogStore protocol and SqliteCatalogStore."""

from __future__ import annotations

import sqlite3
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone

import pytest

from cardata_mcp.constants import BASIC_MAKES
from cardata_mcp.data.seed import seed_basic_makes
from cardata_mcp.data.store import CatalogStore, SqliteCatalogStore


class TestProtocolCompliance:
    def test_sqlite_store_satisfies_protocol(self, store: SqliteCatalogStore):
        assert isinstance(store, CatalogStore)


# ── Makes ──────────────────────────────────────────────────────


class TestMakes:
    def test_empty(self, store: SqliteCatalogStore):
        assert store.list_makes() == []
        assert store.count_makes() == 0
        assert store.find_make("Toyota") is None

    def test_get_or_create_is_idempotent(self, store: SqliteCatalogStore):
        first = store.get_or_create_make("Toyota")
        second = store.get_or_create_make("Toyota")
        assert first == second
        assert store.count_makes() == 1

    def test_name_is_case_insensitive_unique(self, store: SqliteCatalogStore):
        created = store.get_or_create_make("Toyota")
        again = store.get_or_create_make("TOYOTA")
        assert again["id"] == created["id"]
        assert again["name"] == "Toyota"
        assert store.find_make("toyota")["id"] == created["id"]

    def test_unique_index_rejects_raw_duplicate(self, store: SqliteCatalogStore):
        store.get_or_create_make("Honda")
        with pytest.raises(sqlite3.IntegrityError):
            store._conn.execute(
                "INSERT INTO makes (name, created_at) VALUES ('honda', 'now')"
            )

    def test_insert_makes_skips_existing(self, store: SqliteCatalogStore):
        store.get_or_create_make("Ford")
        inserted = store.insert_makes(["Ford", "Kia", "kia", " ", "Audi"])
        assert inserted == 2
        assert [m["name"] for m in store.list_makes()] == ["Audi", "Ford", "Kia"]

    def test_concurrent_population_creates_one_row(self, store: SqliteCatalogStore):
        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(store.get_or_create_make, ["Mazda"] * 32))
        assert {r["id"] for r in results} == {results[0]["id"]}
        assert store.count_makes() == 1


# ── Models / trims ─────────────────────────────────────────────


class TestModels:
    def test_insert_and_list(self, store: SqliteCatalogStore):
        make = store.get_or_create_make("Toyota")
        inserted = store.insert_models(
            make["id"],
            [{"name": "Corolla"}, {"name": "Camry", "year_start": 1983, "year_end": None}],
        )
        assert inserted == 2
        models = store.list_models(make["id"])
        assert [m["name"] for m in models] == ["Camry", "Corolla"]
        assert models[0]["make_id"] == make["id"]
        assert models[0]["year_start"] == 1983

    def test_insert_twice_creates_no_duplicates(self, store: SqliteCatalogStore):
        make = store.get_or_create_make("Toyota")
        store.insert_models(make["id"], [{"name": "Corolla"}])
        assert store.insert_models(make["id"], [{"name": "corolla"}, {"name": "Supra"}]) == 1
        assert len(store.list_models(make["id"])) == 2

    def test_same_model_name_under_different_makes(self, store: SqliteCatalogStore):
        a = store.get_or_create_make("Make A")
        b = store.get_or_create_make("Make B")
        store.insert_models(a["id"], [{"name": "Shared"}])
        store.insert_models(b["id"], [{"name": "Shared"}])
        assert store.find_model(a["id"], "Shared")["id"] != store.find_model(b["id"], "Shared")["id"]

    def test_get_or_create_model(self, store: SqliteCatalogStore):
        make = store.get_or_create_make("Honda")
        first = store.get_or_create_model(make["id"], "Civic", year_start=2020, year_end=2020)
        second = store.get_or_create_model(make["id"], "Civic")
        assert first["id"] == second["id"]
        assert second["year_start"] == 2020

    def test_model_requires_existing_make(self, store: SqliteCatalogStore):
        with pytest.raises(sqlite3.IntegrityError):
            store.insert_models(999, [{"name": "Orphan"}])


class TestTrims:
    def test_insert_list_and_filter_by_year(self, store: SqliteCatalogStore):
        make = store.get_or_create_make("Toyota")
        model = store.get_or_create_model(make["id"], "Camry")
        inserted = store.insert_trims(
            model["id"],
            [
                {"name": "LE", "year": 2020, "specs": {"msrp": 24970}},
                {"name": "SE", "year": 2020, "specs": {}},
                {"name": "LE", "year": 2021, "specs": {"msrp": 25250}},
            ],
        )
        assert inserted == 3
        assert len(store.list_trims(model["id"])) == 3
        trims_2020 = store.list_trims(model["id"], year=2020)
        assert [t["name"] for t in trims_2020] == ["LE", "SE"]
        assert trims_2020[0]["specs"] == {"msrp": 24970}

    def test_model_year_name_triple_is_unique(self, store: SqliteCatalogStore):
        make = store.get_or_create_make("Toyota")
        model = store.get_or_create_model(make["id"], "Camry")
        store.insert_trims(model["id"], [{"name": "LE", "year": 2020, "specs": {}}])
        again = store.insert_trims(model["id"], [{"name": "LE", "year": 2020, "specs": {"x": 1}}])
        assert again == 0
        assert store.list_trims(model["id"])[0]["specs"] == {}


# ── VIN decodes ────────────────────────────────────────────────


class TestVinDecodes:
    def test_roundtrip(self, store: SqliteCatalogStore):
        store.save_vin_decode("1HGBH41JXMN109186", {"make": "Honda", "model": "Civic"})
        row = store.get_vin_decode("1HGBH41JXMN109186")
        assert row["payload"] == {"make": "Honda", "model": "Civic"}
        assert datetime.fromisoformat(row["created_at"]).tzinfo is not None

    def test_save_refreshes_payload_and_timestamp(self, store: SqliteCatalogStore):
        old = datetime.now(timezone.utc) - timedelta(days=120)
        store.save_vin_decode("1HGBH41JXMN109186", {"v": 1}, created_at=old)
        store.save_vin_decode("1HGBH41JXMN109186", {"v": 2})
        row = store.get_vin_decode("1HGBH41JXMN109186")
        assert row["payload"] == {"v": 2}
        assert datetime.fromisoformat(row["created_at"]) > old

    def test_missing(self, store: SqliteCatalogStore):
        assert store.get_vin_decode("1HGBH41JXMN109186") is None
        assert store.get_vincario_decode("1HGBH41JXMN109186") is None

    def test_vincario_table_is_independent(self, store: SqliteCatalogStore):
        store.save_vincario_decode("1HGBH41JXMN109186", {"decode": []})
        assert store.get_vin_decode("1HGBH41JXMN109186") is None
        row = store.get_vincario_decode("1HGBH41JXMN109186")
        assert row["vin"] == "1HGBH41JXMN109186"
        assert row["id"] >= 1

    def test_vincario_vin_must_be_17_chars(self, store: SqliteCatalogStore):
        with pytest.raises(sqlite3.IntegrityError):
            store.save_vincario_decode("SHORT", {})

    def test_naive_created_at_is_treated_as_utc(self, store: SqliteCatalogStore):
        store.save_vin_decode("1HGBH41JXMN109186", {}, created_at=datetime(2024, 1, 1))
        row = store.get_vin_decode("1HGBH41JXMN109186")
        assert row["created_at"].startswith("2024-01-01T00:00:00+00:00")


# ── Seeding ────────────────────────────────────────────────────


class TestSeed:
    def test_seeds_empty_catalog(self, store: SqliteCatalogStore):
        result = seed_basic_makes(store)
        assert result["success"] is True
        assert result["inserted"] == len(BASIC_MAKES)
        assert store.count_makes() == len(BASIC_MAKES)

    def test_skips_when_makes_exist(self, store: SqliteCatalogStore):
        store.get_or_create_make("Toyota")
        result = seed_basic_makes(store)
        assert result == {"success": True, "message": "Data already present", "inserted": 0}
        assert store.count_makes() == 1


def test_file_backed_store_persists(tmp_path):
    path = str(tmp_path / "catalog.db")
    first = SqliteCatalogStore(path)
    first.get_or_create_make("Volvo")
    first.close()
    second = SqliteCatalogStore(path)
    assert second.find_make("Volvo") is not None
    second.close()
