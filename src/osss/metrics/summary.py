# src/osss/metrics/summary.py
from __future__ import annotations

import json
import math
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import pandas as pd

from osss.errors import DataError
from osss.index.types import MS_PER_HOUR, ScheduleIndex
from osss.report.model import ValidationReport
from osss.report.writer import atomic_write_text

METRICS_FILENAME = "metrics.json"


def collect_metrics(report: ValidationReport, index: ScheduleIndex | None) -> dict[str, Any]:
    """
    @brief
    Builds a JSON-serializable summary of one result validation run.

    @details
    Counts come from the index (assignments, fixtures, per-venue usage,
    games per weekday); scoring figures come from the report details
    (penalty share per constraint, violations per rule). Without an index
    (structural failure) only the report-level figures are returned.
    """
    details = report.details
    total = details.get("totalPenalty")
    total = float(total) if isinstance(total, (int, float)) else 0.0

    metrics: dict[str, Any] = {
        "timestamp": _utc_now_iso(),
        "valid": report.valid,
        "exit_code": report.exit_code,
        "num_errors": len(report.errors),
        "num_warnings": len(report.warnings),
        "num_hard_violations": len(report.hard_violations),
        "total_penalty": _f(total) if math.isfinite(total) else str(total),
    }

    # (1) Scoring breakdown
    constraints = pd.DataFrame(
        details.get("constraints") or [],
        columns=["constraintId", "ruleId", "type", "status", "violations", "penalty", "durationMs"],
    )
    metrics["penalty_share"] = _penalty_share(constraints, total)
    metrics["violations_per_rule"] = _violations_per_rule(constraints)
    metrics["evaluation_ms"] = _f(float(pd.to_numeric(constraints["durationMs"]).fillna(0).sum()))

    if index is None:
        _assert_no_nans(metrics)
        json.dumps(metrics, ensure_ascii=False)
        return metrics

    # (2) Schedule shape
    df = _assignments_frame(index)
    metrics.update(
        {
            "num_teams": len(index.teams),
            "num_venues": len(index.venues),
            "num_fixtures": len(index.fixtures),
            "num_assignments": int(len(df)),
            "num_unassigned": len(index.unassigned_fixtures),
            "venue_usage": _venue_usage(df),
            "games_per_weekday": {
                str(k): int(v) for k, v in df["weekday"].dropna().value_counts().sort_index().items()
            },
        }
    )

    # (3) Numerical integrity and serializability
    _assert_no_nans(metrics)
    json.dumps(metrics, ensure_ascii=False)
    return metrics


def write_metrics(metrics: dict[str, Any], out_dir: Path) -> Path:
    """
    @brief
    Writes metrics.json atomically in UTF-8 encoding.

    @raises
        DataError
            If input is not a dict or JSON serialization fails.
    """
    if not isinstance(metrics, dict):
        raise DataError("metrics must be a dict", source="metrics.write_metrics")

    try:
        payload = json.dumps(metrics, ensure_ascii=False, sort_keys=True, indent=2)
    except (TypeError, ValueError) as e:
        raise DataError(
            f"metrics not JSON-serializable: {e}",
            source="metrics.write_metrics",
            suggested_action="Ensure metrics values are primitives (str/float/int/bool).",
        ) from e

    target = Path(out_dir) / METRICS_FILENAME
    atomic_write_text(target, payload)
    return target


# ----------------- internal -----------------


def _assignments_frame(index: ScheduleIndex) -> pd.DataFrame:
    rows = [
        {
            "fixture_id": a.fixture_id,
            "venue_id": a.venue_id,
            "weekday": a.weekday,
            "hours": (a.duration_ms / MS_PER_HOUR) if a.valid else math.nan,
        }
        for a in index.assignments
    ]
    return pd.DataFrame(rows, columns=["fixture_id", "venue_id", "weekday", "hours"])


def _venue_usage(df: pd.DataFrame) -> dict[str, dict[str, float | int]]:
    """Assignments and booked hours per venue (assignments without venue skipped)."""
    used = df.dropna(subset=["venue_id"])
    if used.empty:
        return {}
    per_venue = used.groupby("venue_id").agg(
        assignments=("fixture_id", "count"), hours=("hours", "sum")
    )
    return {
        str(vid): {"assignments": int(row.assignments), "hours": _f(float(row.hours))}
        for vid, row in per_venue.iterrows()
    }


def _penalty_share(constraints: pd.DataFrame, total: float) -> dict[str, float]:
    soft = constraints[constraints["type"] == "soft"]
    if soft.empty or total <= 0 or not math.isfinite(total):
        return {}
    share = pd.to_numeric(soft["penalty"]).fillna(0) / total
    return {str(cid): _f(float(s)) for cid, s in zip(soft["constraintId"], share)}


def _violations_per_rule(constraints: pd.DataFrame) -> dict[str, int]:
    if constraints.empty:
        return {}
    known = constraints.dropna(subset=["ruleId"])
    counts = known.groupby("ruleId")["violations"].sum()
    return {str(rule): int(n) for rule, n in counts.items()}


def _assert_no_nans(obj: Any) -> None:
    """
    @brief
    Validates that object contains no NaN or infinite values.

    @details
    Recursively traverses dicts and lists; raises DataError on detection.
    """
    if isinstance(obj, float) and (math.isnan(obj) or math.isinf(obj)):
        raise DataError("NaN/Inf encountered in metrics", source="metrics.collect_metrics")
    if isinstance(obj, dict):
        for v in obj.values():
            _assert_no_nans(v)
    elif isinstance(obj, (list, tuple)):
        for v in obj:
            _assert_no_nans(v)


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def _f(x: float) -> float:
    """Tiny absolute values (<1e-15) become zero to avoid noise in metrics."""
    return 0.0 if abs(x) < 1e-15 else float(x)


__all__ = ["METRICS_FILENAME", "collect_metrics", "write_metrics"]
