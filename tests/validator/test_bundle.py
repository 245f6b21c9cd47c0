# tests/validator/test_bundle.py
from __future__ import annotations

import json
from pathlib import Path

import pytest

from factories import hard, mk_assignment, mk_fixture, mk_instance, mk_result, ts
from osss.errors import DataError
from osss.validator.bundle import INSTANCE_FILE, RESULT_FILE, validate_bundle

INSTANCE = mk_instance(
    [mk_fixture("F1", "A", "B"), mk_fixture("F2", "A", "C")],
    constraints=[hard("H1", "no_overlap_team")],
)
CLEAN = mk_result([mk_assignment("F1", ts(8, 10)), mk_assignment("F2", ts(8, 14))])
OVERLAP = mk_result([mk_assignment("F1", ts(8, 10)), mk_assignment("F2", ts(8, 11), "V2")])


def _example(root: Path, name: str, instance=None, result=None) -> Path:
    folder = root / name
    folder.mkdir(parents=True)
    if instance is not None:
        (folder / INSTANCE_FILE).write_text(json.dumps(instance), encoding="utf-8")
    if result is not None:
        (folder / RESULT_FILE).write_text(json.dumps(result), encoding="utf-8")
    return folder


def test_worst_example_decides_the_exit_code(tmp_path: Path):
    """
    @brief
    A clean example and one with a team overlap: the bundle exits with 3.
    """
    # --- Arrange ---
    _example(tmp_path, "b-overlap", INSTANCE, OVERLAP)
    _example(tmp_path, "a-clean", INSTANCE, CLEAN)

    # --- Act ---
    bundle = validate_bundle(tmp_path)

    # --- Assert ---
    assert bundle.report.exit_code == 3
    assert bundle.report.details["bundle"] == [
        {"example": "a-clean", "exitCode": 0, "instance": 0, "result": 0},
        {"example": "b-overlap", "exitCode": 3, "instance": 0, "result": 3},
    ]
    [violation] = bundle.report.hard_violations
    assert violation["example"] == "b-overlap"
    assert violation["constraintId"] == "H1"


def test_example_without_result_is_skipped_unless_required(tmp_path: Path):
    # --- Arrange ---
    _example(tmp_path, "only-instance", INSTANCE)

    # --- Act ---
    lenient = validate_bundle(tmp_path)
    strict = validate_bundle(tmp_path, require_results=True)

    # --- Assert ---
    assert lenient.report.exit_code == 0
    assert lenient.examples[0].result is None
    assert strict.report.exit_code == 1
    [error] = strict.report.errors
    assert error["check"] == "MissingFile"
    assert error["entities"]["example"] == "only-instance"
    assert error["message"].endswith(f"only-instance/{RESULT_FILE}")


def test_folder_without_instance_is_a_missing_file(tmp_path: Path):
    # --- Arrange ---
    _example(tmp_path, "empty")
    _example(tmp_path, "fine", INSTANCE, CLEAN)

    # --- Act ---
    bundle = validate_bundle(tmp_path)

    # --- Assert ---
    assert bundle.report.exit_code == 1
    assert [r["exitCode"] for r in bundle.report.details["bundle"]] == [1, 0]
    assert bundle.report.errors[0]["check"] == "MissingFile"


def test_unreadable_result_is_reported_per_example(tmp_path: Path):
    # --- Arrange ---
    folder = _example(tmp_path, "broken", INSTANCE)
    (folder / RESULT_FILE).write_text("{not json", encoding="utf-8")

    # --- Act ---
    bundle = validate_bundle(tmp_path)

    # --- Assert ---
    assert bundle.report.exit_code == 1
    assert bundle.report.errors[0]["check"] == "UnreadableDocument"
    assert bundle.report.errors[0]["entities"] == {"example": "broken"}


def test_missing_examples_directory_raises(tmp_path: Path):
    with pytest.raises(DataError):
        validate_bundle(tmp_path / "nowhere")


def test_empty_directory_is_a_warning(tmp_path: Path):
    bundle = validate_bundle(tmp_path)
    assert bundle.report.exit_code == 0
    assert [w["check"] for w in bundle.report.warnings] == ["EmptyBundle"]
