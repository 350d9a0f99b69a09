"""Tests for provider payload normalization."""

from __future__ import annotations

from cardata_mcp.normalization import (
    extract_name,
    extract_records,
    extract_vincario_vehicle,
    is_complete_vehicle,
    normalize_makes,
    normalize_models,
    normalize_trims,
    parse_int,
    vincario_value,
)
from tests.fakes import vincario_payload


class TestExtractRecords:
    def test_bare_list(self):
        assert extract_records([{"name": "A"}]) == [{"name": "A"}]

    def test_data_list(self):
        assert extract_records({"collection": {}, "data": [{"name": "A"}]}) == [{"name": "A"}]

    def test_results_and_records_fallbacks(self):
        assert extract_records({"results": ["A"]}) == ["A"]
        assert extract_records({"records": ["B"]}) == ["B"]

    def test_entity_specific_key(self):
        assert extract_records({"models": ["Civic"]}, "models") == ["Civic"]
        assert extract_records({"models": ["Civic"]}) == []

    def test_single_data_object(self):
        assert extract_records({"data": {"name": "A"}}) == [{"name": "A"}]

    def test_garbage(self):
        assert extract_records(None) == []
        assert extract_records("text") == []
        assert extract_records({"data": "nope"}) == []


class TestExtractName:
    def test_bare_string(self):
        assert extract_name("  Toyota ") == "Toyota"

    def test_name_wins_over_entity_field(self):
        assert extract_name({"name": "Corolla", "model": "Other"}, "model") == "Corolla"

    def test_entity_field_fallback(self):
        assert extract_name({"make": "Honda"}, "make") == "Honda"

    def test_description_fallback(self):
        assert extract_name({"description": "LE 4dr Sedan"}) == "LE 4dr Sedan"

    def test_blank_values_skipped(self):
        assert extract_name({"name": " ", "make": "Kia"}, "make") == "Kia"

    def test_numeric_name(self):
        assert extract_name({"name": 500}) == "500"

    def test_nothing_usable(self):
        assert extract_name({"id": 1}) == ""
        assert extract_name(None) == ""
        assert extract_name({"name": True}) == ""


class TestNormalizeCatalog:
    def test_makes_mixed_shapes_deduped(self):
        payload = {"data": [{"name": "Toyota"}, {"make": "Honda"}, "toyota", "Ford", {}]}
        assert normalize_makes(payload) == ["Toyota", "Honda", "Ford"]

    def test_models_from_bare_list(self):
        models = normalize_models([{"name": "Corolla"}, {"name": "Camry"}])
        assert models == [
            {"name": "Corolla", "year_start": None, "year_end": None},
            {"name": "Camry", "year_start": None, "year_end": None},
        ]

    def test_models_year_bounds(self):
        models = normalize_models(
            {"data": [{"model": "Civic", "yearStart": "1973", "year_end": 2024}]}
        )
        assert models == [{"name": "Civic", "year_start": 1973, "year_end": 2024}]

    def test_models_single_year(self):
        models = normalize_models({"data": [{"name": "Camry", "year": 2020}]})
        assert models[0]["year_start"] == 2020
        assert models[0]["year_end"] == 2020

    def test_trims_keep_item_as_specs(self):
        item = {"name": "LE", "year": 2020, "msrp": 24970, "description": "LE 4dr Sedan"}
        trims = normalize_trims({"data": [item]})
        assert trims == [{"name": "LE", "year": 2020, "specs": item}]

    def test_trims_year_fallbacks(self):
        assert normalize_trims(["SE"], default_year=2019)[0]["year"] == 2019
        assert normalize_trims([{"trim": "XLE"}])[0]["year"] == 0

    def test_trims_dedupe_by_year_and_name(self):
        trims = normalize_trims(
            [{"name": "LE", "year": 2020}, {"name": "le", "year": 2020}, {"name": "LE", "year": 2021}]
        )
        assert [(t["name"], t["year"]) for t in trims] == [("LE", 2020), ("LE", 2021)]


class TestParseInt:
    def test_values(self):
        assert parse_int("2,020") == 2020
        assert parse_int(2019.0) == 2019
        assert parse_int("") is None
        assert parse_int("n/a") is None
        assert parse_int(True) is None


class TestVincario:
    def test_value_by_label(self):
        payload = vincario_payload()
        assert vincario_value(payload, "Make") == "Honda"
        assert vincario_value(payload, "Missing") == ""
        assert vincario_value({}, "Make") == ""
        assert vincario_value(None, "Make") == ""

    def test_numeric_values_become_strings(self):
        payload = {"decode": [{"label": "Model Year", "value": 2021}]}
        assert vincario_value(payload, "Model Year") == "2021"

    def test_extract_vehicle(self):
        vehicle = extract_vincario_vehicle(vincario_payload())
        assert vehicle == {"make": "Honda", "model": "Civic", "year": "2021"}
        assert is_complete_vehicle(vehicle)

    def test_incomplete_vehicle(self):
        vehicle = extract_vincario_vehicle(vincario_payload(model=""))
        assert not is_complete_vehicle(vehicle)
