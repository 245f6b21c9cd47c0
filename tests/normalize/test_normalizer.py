# tests/normalize/test_normalizer.py
from __future__ import annotations

import pytest

from factories import mk_assignment, mk_result, ts
from osss.errors import NormalizationFailure
from osss.normalize.result import normalize_result


def test_canonical_document_is_unchanged():
    # --- Arrange ---
    raw = mk_result(
        [mk_assignment("F1", ts(3, 10))],
        [{"constraintId": "S1", "violations": 1, "penalty": 2.0}],
    )

    # --- Act ---
    normalized = normalize_result(raw)

    # --- Assert ---
    assert normalized.warnings == []
    assert not normalized.changed
    assert normalized.canonical == raw
    assert normalized.canonical is not raw


def test_schedule_fixtures_layout_is_mapped():
    """
    @brief
    schedule.fixtures with id/dateTime/venue becomes assignments; scores are
    built from constraintResults; feasibility is read from details.
    """
    # --- Arrange ---
    raw = {
        "details": {"feasible": True},
        "schedule": {
            "fixtures": [
                {"id": "F1", "dateTime": ts(3, 10), "venue": "V1", "resourceId": "pitch-2"},
                {"id": "F2", "dateTime": ts(4, 10), "venue": "V2"},
            ],
            "totalPenalty": 5,
            "constraintResults": [{"id": "S1", "violations": 1, "penalty": 5}],
        },
    }

    # --- Act ---
    normalized = normalize_result(raw)

    # --- Assert ---
    doc = normalized.canonical
    assert doc["feasible"] is True
    assert doc["assignments"][0] == {
        "fixtureId": "F1",
        "startTime": ts(3, 10),
        "venueId": "V1",
        "resourceId": "pitch-2",
    }
    assert doc["scores"] == {
        "totalPenalty": 5,
        "byConstraint": [{"constraintId": "S1", "violations": 1, "penalty": 5}],
    }
    assert len(normalized.warnings) == 3
    assert any("schedule.fixtures" in w and "2 fixtures mapped" in w for w in normalized.warnings)


def test_score_alias_is_renamed():
    raw = {"feasible": True, "assignments": [], "score": {"totalPenalty": 0, "byConstraint": []}}
    normalized = normalize_result(raw)
    assert normalized.canonical["scores"] == {"totalPenalty": 0, "byConstraint": []}
    assert normalized.warnings == ["Result uses 'score' instead of 'scores'"]


@pytest.mark.parametrize(
    "raw,feasible",
    [
        ({"assignments": [mk_assignment("F1", ts(3, 10))], "scores": {}}, True),
        ({"assignments": [], "scores": {}}, False),
    ],
)
def test_missing_feasible_is_inferred_from_data(raw, feasible):
    normalized = normalize_result(raw)
    assert normalized.canonical["feasible"] is feasible
    assert len(normalized.warnings) == 1


def test_non_mapping_raises():
    with pytest.raises(NormalizationFailure):
        normalize_result([{"fixtureId": "F1"}])


def test_input_is_not_modified():
    raw = {"schedule": {"fixtures": [{"id": "F1", "dateTime": ts(3, 10)}]}}
    normalize_result(raw)
    assert raw == {"schedule": {"fixtures": [{"id": "F1", "dateTime": ts(3, 10)}]}}
