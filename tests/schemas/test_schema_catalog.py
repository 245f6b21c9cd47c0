# tests/schemas/test_schema_catalog.py
from __future__ import annotations

import json
from pathlib import Path

import pytest

from osss.errors import DataError
from osss.schemas.catalog import RESULT_SCHEMA_CANDIDATES, SchemaCatalog

COMMON = {
    "$defs": {"id": {"type": "string", "minLength": 1}},
}

RESULTS = {
    "type": "object",
    "required": ["feasible", "assignments"],
    "properties": {
        "feasible": {"type": "boolean"},
        "assignments": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["fixtureId"],
                "properties": {"fixtureId": {"$ref": "common.schema.json#/$defs/id"}},
            },
        },
    },
}


@pytest.fixture()
def catalog() -> SchemaCatalog:
    return SchemaCatalog({"common.schema.json": COMMON, "osss-results.schema.json": RESULTS})


def test_valid_document_has_no_errors(catalog):
    doc = {"feasible": True, "assignments": [{"fixtureId": "F1"}]}
    assert catalog.validate(doc, "osss-results.schema.json") == []


def test_errors_are_located_and_sorted(catalog):
    """
    @brief
    Cross-file $ref resolves, and messages carry the failing JSON location.
    """
    # --- Arrange ---
    doc = {"feasible": "yes", "assignments": [{"fixtureId": ""}]}

    # --- Act ---
    errors = catalog.validate(doc, "osss-results.schema.json")

    # --- Assert ---
    assert len(errors) == 2
    assert errors[0].startswith("/assignments/0/fixtureId ")
    assert errors[1].startswith("/feasible ")


def test_missing_property_is_reported_at_root(catalog):
    errors = catalog.validate({"feasible": True}, "osss-results.schema.json")
    assert errors == ["(root) 'assignments' is a required property"]


def test_resolve_picks_first_loaded_candidate(catalog):
    assert catalog.resolve(RESULT_SCHEMA_CANDIDATES) == "osss-results.schema.json"
    assert catalog.resolve(["nope.json"]) is None
    assert catalog.has("osss://schemas/common.schema.json")


def test_unknown_schema_raises(catalog):
    with pytest.raises(DataError):
        catalog.validate({}, "missing.schema.json")


def test_invalid_schema_raises():
    catalog = SchemaCatalog({"bad.schema.json": {"type": 12}})
    with pytest.raises(DataError) as e:
        catalog.validate({}, "bad.schema.json")
    assert "not a valid JSON schema" in str(e.value)


def test_from_dir_loads_schemas_and_skips_the_rest(tmp_path: Path):
    # --- Arrange ---
    (tmp_path / "nested").mkdir()
    (tmp_path / "nested" / "osss-results.schema.json").write_text(json.dumps(RESULTS), encoding="utf-8")
    common = {"$schema": "https://json-schema.org/draft/2020-12/schema", **COMMON}
    (tmp_path / "common.schema.json").write_text(json.dumps(common), encoding="utf-8")
    (tmp_path / "example.json").write_text(json.dumps({"feasible": True}), encoding="utf-8")
    (tmp_path / "broken.json").write_text("{", encoding="utf-8")

    # --- Act ---
    catalog = SchemaCatalog.from_dir(tmp_path)

    # --- Assert ---
    assert catalog.has("osss-results.schema.json")
    assert catalog.has("common.schema.json")
    assert not catalog.has("example.json")
    assert not catalog.has("broken.json")


def test_from_dir_requires_directory(tmp_path: Path):
    with pytest.raises(DataError):
        SchemaCatalog.from_dir(tmp_path / "missing")
