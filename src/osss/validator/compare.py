# src/osss/validator/compare.py
from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

import pandas as pd

from osss.registry.loader import RuleRegistry
from osss.report.model import ValidationReport
from osss.rules.catalog import RuleCatalog
from osss.schemas.catalog import SchemaValidator
from osss.schemas.models import Config
from osss.validator.result import ResultValidation, ResultValidator

logger = logging.getLogger(__name__)

RANKING_COLUMNS = [
    "rank",
    "label",
    "valid",
    "feasible",
    "exitCode",
    "hardViolations",
    "totalPenalty",
    "errors",
    "warnings",
]


@dataclass
class Comparison:
    """Per-result validations plus their ranking (best first)."""

    report: ValidationReport
    runs: dict[str, ResultValidation] = field(default_factory=dict)
    ranking: list[dict[str, Any]] = field(default_factory=list)

    @property
    def best(self) -> str | None:
        return self.ranking[0]["label"] if self.ranking else None

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(self.ranking, columns=RANKING_COLUMNS)


def _row(label: str, run: ResultValidation) -> dict[str, Any]:
    report = run.report
    total = report.details.get("totalPenalty")
    return {
        "label": label,
        "valid": report.valid,
        "feasible": bool(report.details.get("feasible", False)),
        "exitCode": report.exit_code,
        "hardViolations": len(report.hard_violations),
        "totalPenalty": float(total) if isinstance(total, (int, float)) else math.inf,
        "errors": len(report.errors),
        "warnings": len(report.warnings),
    }


def rank_rows(rows: Iterable[dict[str, Any]]) -> list[dict[str, Any]]:
    """
    @brief
    Order result rows best first.

    @details
    Valid and feasible results come first, then fewer hard violations, then
    ascending recomputed total penalty; the label breaks ties so the order is
    stable between runs.
    """
    ordered = sorted(
        rows,
        key=lambda r: (
            not (r["valid"] and r["feasible"]),
            r["hardViolations"],
            r["totalPenalty"],
            r["label"],
        ),
    )
    return [{"rank": i + 1, **r} for i, r in enumerate(ordered)]


def compare_results(
    instance: Mapping[str, Any],
    results: Mapping[str, Any],
    cfg: Config | None = None,
    *,
    registry: RuleRegistry | None = None,
    schemas: SchemaValidator | None = None,
    catalog: RuleCatalog | None = None,
) -> Comparison:
    """
    @brief
    Validate several results of the same instance and rank them.

    @params
        results : Mapping[str, Any]
            Label (usually the file name) → raw Result document.

    @returns
        Comparison whose report is valid when at least one result is valid.
    """
    cfg = cfg or Config()
    if cfg.fix_scores:
        # Rankings compare what solvers reported; nothing is rewritten here
        cfg = cfg.model_copy(update={"fix_scores": False})
    validator = ResultValidator(cfg, registry=registry, schemas=schemas, catalog=catalog)

    comparison = Comparison(
        ValidationReport("Comparison", fail_on_warnings=cfg.validation.fail_on_warnings)
    )
    for label, doc in results.items():
        logger.info("Validating result '%s'", label)
        comparison.runs[label] = validator.run(instance, doc)

    comparison.ranking = rank_rows(_row(label, run) for label, run in comparison.runs.items())
    comparison.report.details["ranking"] = comparison.ranking
    comparison.report.details["best"] = comparison.best

    if not any(r["valid"] for r in comparison.ranking):
        comparison.report.add_error(
            "NoValidResult",
            f"None of the {len(comparison.ranking)} result(s) is valid",
            suggested_action="Inspect the individual result reports.",
        )
    else:
        comparison.report.mark_passed("NoValidResult")
    return comparison


__all__ = ["Comparison", "RANKING_COLUMNS", "compare_results", "rank_rows"]
