# src/osss/normalize/result.py
"""
@brief
Maps alternative Result layouts onto the canonical one.

@details
Solvers in the wild emit results in a handful of near-miss shapes
(`schedule.fixtures` instead of `assignments`, `score` instead of `scores`,
feasibility nested under `details`). normalize_result() rewrites those into the
canonical layout

    {"feasible": bool, "assignments": [...], "scores": {"totalPenalty", "byConstraint"}}

and records one warning per substitution. A document that is already canonical
comes back unchanged with no warnings.

Each quirk is handled by one small function in HANDLERS, applied in order.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from osss.errors import NormalizationFailure
from osss.index.builder import thaw

logger = logging.getLogger(__name__)

Handler = Callable[[Mapping[str, Any], dict[str, Any], list[str]], None]


@dataclass
class NormalizedResult:
    canonical: dict[str, Any]
    warnings: list[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.warnings)


def _get(doc: Any, *path: str) -> Any:
    for key in path:
        if not isinstance(doc, Mapping):
            return None
        doc = doc.get(key)
    return doc


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


# ----------------------------
# HANDLERS
# ----------------------------
def normalize_feasible(raw: Mapping[str, Any], out: dict[str, Any], warnings: list[str]) -> None:
    if "feasible" in raw:
        return
    for path in (("details", "feasible"), ("schedule", "feasible")):
        value = _get(raw, *path)
        if value is not None:
            out["feasible"] = bool(value)
            warnings.append(f"Result uses '{'.'.join(path)}' instead of top-level 'feasible'")
            return

    has_data = bool(raw.get("assignments") or _get(raw, "schedule", "fixtures"))
    out["feasible"] = has_data
    if has_data:
        warnings.append("Result missing 'feasible' field, inferred true from presence of schedule data")
    else:
        warnings.append("Result missing 'feasible' field and schedule data, assumed infeasible")


def _assignment_from(item: Any) -> dict[str, Any]:
    if not isinstance(item, Mapping):
        return {}
    out: dict[str, Any] = {
        "fixtureId": item.get("fixtureId") or item.get("id"),
        "startTime": item.get("startTime") or item.get("dateTime"),
        "venueId": item.get("venueId") or item.get("venue"),
    }
    for key in ("endTime", "resourceId", "officialIds"):
        if item.get(key):
            out[key] = item[key]
    return {k: v for k, v in out.items() if v is not None}


def normalize_assignments(raw: Mapping[str, Any], out: dict[str, Any], warnings: list[str]) -> None:
    if isinstance(raw.get("assignments"), list):
        return
    for source, items in (
        ("schedule.fixtures", _get(raw, "schedule", "fixtures")),
        ("scheduledFixtures", raw.get("scheduledFixtures")),
        ("fixtures", raw.get("fixtures")),
    ):
        if isinstance(items, list):
            out["assignments"] = [_assignment_from(item) for item in items]
            warnings.append(
                f"Result uses '{source}' format instead of 'assignments' array "
                f"({len(items)} fixtures mapped)"
            )
            return


def _score_line(item: Any) -> dict[str, Any]:
    item = item if isinstance(item, Mapping) else {}
    line: dict[str, Any] = {
        "constraintId": item.get("constraintId") or item.get("id") or item.get("ruleId"),
        "violations": item.get("violations", 0) or 0,
        "penalty": item.get("penalty", 0) or 0,
    }
    if item.get("explanation"):
        line["explanation"] = item["explanation"]
    return line


def normalize_scores(raw: Mapping[str, Any], out: dict[str, Any], warnings: list[str]) -> None:
    if isinstance(raw.get("scores"), Mapping):
        return
    for key in ("score", "scoring"):
        if isinstance(raw.get(key), Mapping):
            out["scores"] = copy.deepcopy(raw[key])
            warnings.append(f"Result uses '{key}' instead of 'scores'")
            return

    total = next(
        (
            v
            for v in (
                raw.get("totalPenalty"),
                _get(raw, "schedule", "totalPenalty"),
                _get(raw, "details", "totalPenalty"),
            )
            if _is_number(v)
        ),
        0,
    )
    lines = raw.get("constraintResults") or _get(raw, "schedule", "constraintResults") or []
    out["scores"] = {
        "totalPenalty": total,
        "byConstraint": [_score_line(c) for c in lines] if isinstance(lines, list) else [],
    }
    warnings.append("Result missing 'scores' object, constructed from available data")


HANDLERS: list[Handler] = [normalize_feasible, normalize_assignments, normalize_scores]


# ----------------------------
# PUBLIC API
# ----------------------------
def normalize_result(raw: Any, handlers: list[Handler] | None = None) -> NormalizedResult:
    """
    @brief
    Rewrite a Result document into the canonical layout.

    @returns
        NormalizedResult with a new document (the input is not modified) and
        the list of substitutions performed.

    @raises
        NormalizationFailure if `raw` is not a JSON object.
    """
    if not isinstance(raw, Mapping):
        raise NormalizationFailure(
            message=f"Result must be a JSON object, got {type(raw).__name__}",
            source="normalize_result",
            suggested_action="Check that the result file contains a single JSON object.",
        )

    raw = thaw(raw)
    out = copy.deepcopy(raw)
    warnings: list[str] = []
    for handler in handlers if handlers is not None else HANDLERS:
        handler(raw, out, warnings)

    if warnings:
        logger.info("Result normalized with %d substitution(s)", len(warnings))
    return NormalizedResult(out, warnings)


__all__ = ["HANDLERS", "NormalizedResult", "normalize_result"]
