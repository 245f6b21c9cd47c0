# tests/report/test_report_writer.py
from __future__ import annotations

import json
import math
import os
from pathlib import Path

import pytest

from osss.errors import DataError
from osss.report.model import (
    EXIT_CONTRACT,
    EXIT_HARD_VIOLATIONS,
    EXIT_INFEASIBLE,
    EXIT_OK,
    EXIT_SCORING,
    ValidationReport,
)
from osss.report.writer import (
    REPORT_FILENAME,
    atomic_write_text,
    render_text,
    to_json,
    write_report,
)


def _report(errors=(), infeasible=False, hard=0, warnings=0, fail_on_warnings=False):
    report = ValidationReport("Result", fail_on_warnings=fail_on_warnings)
    for check in errors:
        report.add_error(check, f"{check} happened")
    for i in range(warnings):
        report.add_warning("NormalizationApplied", f"warning {i}")
    report.infeasible = infeasible
    report.details["hardViolations"] = [
        {"constraintId": f"H{i}", "message": "overlap"} for i in range(hard)
    ]
    return report


@pytest.mark.parametrize(
    "kwargs,expected",
    [
        ({}, EXIT_OK),
        ({"errors": ["SchemaViolation"]}, EXIT_CONTRACT),
        ({"infeasible": True}, EXIT_INFEASIBLE),
        ({"errors": ["SchemaViolation"], "infeasible": True}, EXIT_INFEASIBLE),
        ({"hard": 2, "infeasible": True}, EXIT_HARD_VIOLATIONS),
        ({"errors": ["RescoreMismatch"], "hard": 1}, EXIT_SCORING),
        ({"errors": ["RuleExecution"]}, EXIT_SCORING),
        ({"warnings": 2}, EXIT_OK),
        ({"warnings": 1, "fail_on_warnings": True}, EXIT_CONTRACT),
        ({"warnings": 1, "hard": 1, "fail_on_warnings": True}, EXIT_HARD_VIOLATIONS),
    ],
)
def test_exit_code_precedence(kwargs, expected):
    """
    @brief
    The highest applicable exit code wins.
    """
    report = _report(**kwargs)
    assert report.exit_code == expected
    assert report.valid is (expected == EXIT_OK)


def test_to_dict_shape():
    # --- Arrange ---
    report = _report(errors=["CardinalityViolation"])
    report.mark_passed("SchemaViolation")

    # --- Act ---
    data = report.to_dict()

    # --- Assert ---
    assert data["valid"] is False
    assert data["exitCode"] == EXIT_CONTRACT
    assert data["summary"] == "Result validation failed"
    assert data["checks"] == {"CardinalityViolation": False, "SchemaViolation": True}
    assert data["errors"] == [{"check": "CardinalityViolation", "message": "CardinalityViolation happened"}]


def test_write_report_is_atomic_and_readable(tmp_path: Path):
    # --- Arrange ---
    report = _report(hard=1)
    report.details["totalPenalty"] = math.inf

    # --- Act ---
    target = write_report(report, tmp_path / "out")

    # --- Assert ---
    assert target.name == REPORT_FILENAME
    data = json.loads(target.read_text(encoding="utf-8"))
    assert data["exitCode"] == EXIT_HARD_VIOLATIONS
    assert data["details"]["totalPenalty"] == "inf"
    # no temporary files left behind
    assert os.listdir(tmp_path / "out") == [REPORT_FILENAME]


def test_atomic_write_failure_cleans_up(monkeypatch, tmp_path: Path):
    """
    @brief
    A failing rename raises DataError and removes the temporary file.
    """
    # --- Arrange ---
    def fake_replace(src, dst):
        raise OSError("disk full")

    monkeypatch.setattr(os, "replace", fake_replace)

    # --- Act / Assert ---
    with pytest.raises(DataError) as e:
        atomic_write_text(tmp_path / "report.json", "{}")

    # --- Assert ---
    assert "disk full" in str(e.value)
    assert os.listdir(tmp_path) == []


def test_to_json_rejects_unserializable_payload():
    with pytest.raises(DataError):
        to_json({"when": object()})


def test_render_text_lists_findings():
    # --- Arrange ---
    report = _report(errors=["RescoreMismatch"], hard=1)
    report.details.update(
        {
            "feasible": True,
            "totalPenalty": 12.5,
            "reportedTotalPenalty": 10.0,
            "byConstraint": [{"constraintId": "S1", "violations": 2, "penalty": 12.5}],
        }
    )
    report.add_warning("Infeasible", "careful", suggested_action="look closer")

    # --- Act ---
    text = render_text(report)

    # --- Assert ---
    lines = text.splitlines()
    assert lines[0] == "INVALID (exit 4): Result has scoring inconsistencies"
    assert "  total penalty (recomputed): 12.5" in lines
    assert "  [HARD] H0: overlap" in lines
    assert "  [SOFT] S1: violations=2 penalty=12.5" in lines
    assert "  [ERROR] RescoreMismatch: RescoreMismatch happened" in lines
    assert "  [WARN] Infeasible: careful (look closer)" in lines
