# src/osss/engine/rescorer.py
from __future__ import annotations

import logging
import math
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from osss.engine.evaluator import VIOLATED, ConstraintEvaluator, Evaluation
from osss.index.builder import thaw
from osss.index.types import ScheduleIndex
from osss.report.model import make_entry
from osss.schemas.models import ScoreEntry

logger = logging.getLogger(__name__)


@dataclass
class Reconciliation:
    """
    @brief
    Authoritative scores for one result, and how they compare with the
    solver's self-report.

    @details
    `by_constraint` holds the recomputed ledger lines of every checked soft
    constraint and `total_penalty` their sum. `fixed_result` is only set in
    fix-scores mode.
    """

    evaluations: list[Evaluation] = field(default_factory=list)
    hard_violations: list[dict[str, Any]] = field(default_factory=list)
    by_constraint: list[dict[str, Any]] = field(default_factory=list)
    total_penalty: float = 0.0
    reported_total: float | None = None
    mismatches: list[str] = field(default_factory=list)
    errors: list[dict[str, Any]] = field(default_factory=list)
    warnings: list[dict[str, Any]] = field(default_factory=list)
    fixed_result: dict[str, Any] | None = None


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Rescorer:
    """
    @brief
    Recomputes every constraint and reconciles the result's score ledger.

    @details
    (1) Hard constraints contribute their violations to hard_violations.
    (2) Soft constraints are priced independently of what the solver reported.
    (3) Each recomputed soft line is compared with the reported line of the
        same constraintId (penalty and violation count, absolute tolerance).
    (4) The reported total is checked against the sum of the reported lines.
    In fix-scores mode mismatches are downgraded to warnings and the ledger
    is rewritten once, after all constraints were reconciled.
    """

    def __init__(
        self,
        evaluator: ConstraintEvaluator,
        *,
        tolerance: float = 1e-6,
        fix_scores: bool = False,
        validated_by: str = "osss-validator",
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.evaluator = evaluator
        self.tolerance = tolerance
        self.fix_scores = fix_scores
        self.validated_by = validated_by
        self.clock = clock

    def reconcile(
        self, instance: Mapping[str, Any], result: Mapping[str, Any], index: ScheduleIndex
    ) -> Reconciliation:
        rec = Reconciliation()
        constraints = instance.get("constraints") if isinstance(instance, Mapping) else None
        if not isinstance(constraints, (list, tuple)):
            constraints = []

        # (1) Evaluate everything first, report afterwards
        rec.evaluations = self.evaluator.evaluate_all(constraints, index)
        for ev in rec.evaluations:
            rec.errors.extend(ev.errors)
            rec.warnings.extend(ev.warnings)
            if ev.constraint.is_soft:
                if ev.checked:
                    rec.by_constraint.append(ev.score_entry())
            elif ev.status == VIOLATED:
                rec.hard_violations.extend(
                    {
                        "constraintId": ev.constraint_id,
                        "ruleId": ev.rule_id,
                        "message": v.message,
                        "entities": list(v.entities),
                    }
                    for v in ev.violations
                )
        rec.total_penalty = math.fsum(line["penalty"] for line in rec.by_constraint)

        # (2) Compare with the solver's ledger
        scores = result.get("scores") if isinstance(result, Mapping) else None
        scores = scores if isinstance(scores, Mapping) else {}
        reported = self._reported_lines(scores)
        self._check_internal_consistency(scores, reported, rec)
        self._compare(rec, reported)

        # (3) Rewrite once, after reconciliation
        if self.fix_scores:
            rec.fixed_result = self._rewrite(result, rec, reported)

        logger.info(
            "Re-scored %d constraint(s): %d hard violation(s), total penalty %.6g, %d mismatch(es)",
            len(rec.evaluations),
            len(rec.hard_violations),
            rec.total_penalty,
            len(rec.mismatches),
        )
        return rec

    # ---------- Steps ----------
    @staticmethod
    def _reported_lines(scores: Mapping[str, Any]) -> dict[str, ScoreEntry]:
        lines = scores.get("byConstraint")
        out: dict[str, ScoreEntry] = {}
        for item in lines if isinstance(lines, (list, tuple)) else ():
            if not isinstance(item, Mapping):
                continue
            entry = ScoreEntry.model_validate(thaw(item))
            if entry.constraint_id:
                out.setdefault(entry.constraint_id, entry)
        return out

    def _check_internal_consistency(
        self, scores: Mapping[str, Any], reported: dict[str, ScoreEntry], rec: Reconciliation
    ) -> None:
        total = scores.get("totalPenalty")
        if isinstance(total, bool) or not isinstance(total, (int, float)):
            return
        rec.reported_total = float(total)
        parts = math.fsum(e.penalty for e in reported.values())
        if not self._close(rec.reported_total, parts):
            self._flag(
                rec,
                "ScoringInconsistency",
                f"Scoring inconsistency: totalPenalty={total} but sum(byConstraint.penalty)={parts:g}",
                {},
            )

    def _compare(self, rec: Reconciliation, reported: dict[str, ScoreEntry]) -> None:
        known = {ev.constraint_id for ev in rec.evaluations}
        for line in rec.by_constraint:
            cid = line["constraintId"]
            entry = reported.get(cid)
            if entry is None:
                self._flag(
                    rec,
                    "MissingScoreEntry",
                    f"Missing score entry for soft constraint '{cid}'",
                    {"constraintId": cid},
                )
                continue
            diffs = []
            if not self._close(entry.penalty, line["penalty"]):
                diffs.append(f"penalty reported={entry.penalty:g}, expected={line['penalty']:g}")
            if not self._close(entry.violations, line["violations"]):
                diffs.append(
                    f"violations reported={entry.violations:g}, expected={line['violations']:g}"
                )
            if diffs:
                rec.mismatches.append(cid)
                self._flag(
                    rec,
                    "RescoreMismatch",
                    f"Soft re-score mismatch for '{cid}': {'; '.join(diffs)}",
                    {"constraintId": cid},
                )

        for cid in reported:
            if cid not in known:
                rec.warnings.append(
                    make_entry(
                        "UnknownScoreEntry",
                        f"Score entry for unknown constraint '{cid}'",
                        {"constraintId": cid},
                    )
                )

    def _rewrite(
        self, result: Mapping[str, Any], rec: Reconciliation, reported: dict[str, ScoreEntry]
    ) -> dict[str, Any]:
        fixed = thaw(result)
        recomputed = {line["constraintId"] for line in rec.by_constraint}
        # Unchecked soft constraints keep the solver's line: there is nothing to replace it with
        kept = [
            e.to_line()
            for cid, e in reported.items()
            if cid not in recomputed
            and any(ev.constraint_id == cid and ev.constraint.is_soft for ev in rec.evaluations)
        ]
        ledger = [dict(line) for line in rec.by_constraint] + kept
        scores = fixed.get("scores") if isinstance(fixed.get("scores"), dict) else {}
        scores["byConstraint"] = ledger
        scores["totalPenalty"] = math.fsum(line.get("penalty", 0) for line in ledger)
        scores["_validatedBy"] = self.validated_by
        scores["_validatedAt"] = self.clock().isoformat(timespec="seconds")
        fixed["scores"] = scores
        return fixed

    # ---------- Helpers ----------
    def _close(self, a: float, b: float) -> bool:
        return math.isclose(a, b, rel_tol=0.0, abs_tol=self.tolerance)

    def _flag(self, rec: Reconciliation, check: str, message: str, entities: dict[str, Any]) -> None:
        if self.fix_scores:
            rec.warnings.append(make_entry(check, f"{message} (rewritten by fix-scores)", entities))
        else:
            rec.errors.append(make_entry(check, message, entities))


__all__ = ["Reconciliation", "Rescorer"]
