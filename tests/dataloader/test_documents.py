# tests/dataloader/test_documents.py
from __future__ import annotations

import json
from pathlib import Path

import pytest

from osss.dataloader.documents import DocumentLoader
from osss.errors import DataError


def _write(path: Path, payload) -> Path:
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


def test_load_returns_document(tmp_path: Path):
    path = _write(tmp_path / "instance.json", {"id": "inst-1", "fixtures": []})
    assert DocumentLoader().load(path, "instance") == {"id": "inst-1", "fixtures": []}


@pytest.mark.parametrize(
    "name,content,fragment",
    [
        ("missing.json", None, "not found"),
        ("result.txt", "{}", "extension"),
        ("broken.json", "{\"feasible\": tru", "Invalid JSON"),
        ("list.json", "[1, 2]", "must be a JSON object"),
    ],
)
def test_load_failures_raise_dataerror(tmp_path: Path, name, content, fragment):
    """
    @brief
    Every unreadable document surfaces as a DataError with a clear message.
    """
    # --- Arrange ---
    path = tmp_path / name
    if content is not None:
        path.write_text(content, encoding="utf-8")

    # --- Act / Assert ---
    with pytest.raises(DataError) as e:
        DocumentLoader().load(path, "result")

    # --- Assert ---
    assert fragment in str(e.value)


def test_invalid_json_reports_position(tmp_path: Path):
    path = tmp_path / "broken.json"
    path.write_text("{\n  \"feasible\": true,\n}", encoding="utf-8")
    with pytest.raises(DataError) as e:
        DocumentLoader().load(path, "result")
    assert "line 3" in str(e.value)


def test_load_many_keys_by_file_name(tmp_path: Path):
    # --- Arrange ---
    (tmp_path / "b").mkdir()
    first = _write(tmp_path / "run.json", {"feasible": True})
    second = _write(tmp_path / "b" / "run.json", {"feasible": False})
    third = _write(tmp_path / "other.json", {"feasible": True})

    # --- Act ---
    docs = DocumentLoader().load_many([first, second, third])

    # --- Assert ---
    assert list(docs) == ["run.json", str(second), "other.json"]
    assert docs[str(second)] == {"feasible": False}
