# src/osss/validator/result.py
from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from osss.engine.evaluator import ConstraintEvaluator
from osss.engine.rescorer import Reconciliation, Rescorer
from osss.errors import NormalizationFailure
from osss.index.builder import IndexBuilder
from osss.index.types import ScheduleIndex
from osss.normalize.result import normalize_result
from osss.registry.loader import RuleRegistry
from osss.report.model import ValidationReport
from osss.rules.catalog import RuleCatalog
from osss.schemas.catalog import RESULT_SCHEMA_CANDIDATES, SchemaValidator
from osss.schemas.models import Config

logger = logging.getLogger(__name__)

# IndexIssue kinds → (check id, always an error)
_ISSUE_CHECKS = {
    "unknown_fixture": ("ReferentialIntegrity", True),
    "invalid_start": ("MalformedTimestamp", False),
    "invalid_end": ("MalformedTimestamp", False),
    "unknown_timezone": ("UnknownTimezone", False),
    "malformed_assignment": ("MalformedEntry", False),
    "malformed_entity": ("MalformedEntry", False),
}


@dataclass
class ResultValidation:
    """
    @brief
    Everything one result validation run produced.

    @details
    `document` is the result actually validated (normalized when the raw
    document needed it). `index` and `reconciliation` are None when the run
    stopped at the structural stage.
    """

    report: ValidationReport
    document: Mapping[str, Any]
    index: ScheduleIndex | None = None
    reconciliation: Reconciliation | None = None

    @property
    def fixed_result(self) -> dict[str, Any] | None:
        return self.reconciliation.fixed_result if self.reconciliation else None


# ----------------------------
# VALIDATOR CLASS
# ----------------------------
class ResultValidator:
    """
    @brief
    Validates one Result document against its Instance.

    @details
    Stages, in order:
        (1) structural validation (schema, normalization fallback),
        (2) feasibility flag,
        (3) index build and its diagnostics,
        (4) cardinality (exactly one assignment per non-conditional fixture),
        (5) constraint evaluation and score reconciliation.
    A structural failure stops the run: later stages would only report noise.
    Business-rule violations are collected into the report; nothing here
    raises for a bad schedule.
    """

    def __init__(
        self,
        cfg: Config | None = None,
        *,
        registry: RuleRegistry | None = None,
        schemas: SchemaValidator | None = None,
        catalog: RuleCatalog | None = None,
    ) -> None:
        self.cfg = cfg or Config()
        self.registry = registry
        self.schemas = schemas
        self.catalog = catalog

    # ---------- Public lifecycle API ----------
    def run(self, instance: Mapping[str, Any], result: Any) -> ResultValidation:
        report = ValidationReport(
            "Result", fail_on_warnings=self.cfg.validation.fail_on_warnings
        )

        # (1) Structure
        document = self._check_structure(result, report)
        if document is None:
            logger.error("Result failed structural validation: %d error(s)", len(report.errors))
            return ResultValidation(report, result if isinstance(result, Mapping) else {})

        # (2) Feasibility as reported by the solver
        feasible = document.get("feasible") is True
        report.details["feasible"] = feasible
        if not feasible:
            report.infeasible = True
            report.add_warning(
                "Infeasible",
                "Result feasible=false (solver reports infeasible).",
                suggested_action="Inspect the solver log; the schedule is not a feasible solution.",
            )

        # (3) Index and its diagnostics
        index = IndexBuilder(
            self.cfg.default_duration_minutes, self.cfg.timezone
        ).build(instance, document)

        # (4) Cardinality
        self._check_cardinality(index, report)

        # (5) Evaluate constraints and reconcile the score ledger
        evaluator = ConstraintEvaluator(
            self.registry,
            self.catalog,
            strict_missing_rules=self.cfg.strict_missing_rules,
            workers=self.cfg.workers,
            rule_timeout_seconds=self.cfg.rule_timeout_seconds,
        )
        rescorer = Rescorer(
            evaluator,
            tolerance=self.cfg.score_tolerance,
            fix_scores=self.cfg.fix_scores,
            validated_by=self.cfg.validated_by,
        )
        rec = rescorer.reconcile(instance, document, index)
        report.extend(rec.errors, rec.warnings)

        timed_fixtures: set[str] = set()
        for ev in rec.evaluations:
            if ev.checked and not ev.constraint.is_soft and ev.timed_fixtures is not None:
                timed_fixtures |= ev.timed_fixtures
        self._report_index_issues(index, report, timed_fixtures)
        self._fill_details(report, index, rec)

        logger.info(
            "Result validation finished: exit=%d, %d error(s), %d warning(s)",
            report.exit_code,
            len(report.errors),
            len(report.warnings),
        )
        return ResultValidation(report, document, index, rec)

    # ---------- Stages ----------
    def _check_structure(self, result: Any, report: ValidationReport) -> dict[str, Any] | None:
        """
        @brief
        Schema-validate the result, falling back to the normalizer once.

        @details
        A document that passes the schema as-is is used unchanged. Otherwise
        it is normalized and validated again; if it still fails, the errors of
        the original document are reported together with the normalization
        warnings. Without a result schema the normalizer alone decides the
        shape.

        @returns
            The document to validate further, or None on structural failure.
        """
        schema_id = self.schemas.resolve(RESULT_SCHEMA_CANDIDATES) if self.schemas else None
        if self.schemas is not None and schema_id is None:
            report.add_warning(
                "SchemaUnavailable",
                "No OSSS result schema found; structural validation skipped",
                suggested_action="Point --schemas at a directory containing osss-results.schema.json.",
            )

        original_errors: list[str] = []
        if schema_id is not None:
            original_errors = self.schemas.validate(result, schema_id)  # type: ignore[union-attr]
            if not original_errors and isinstance(result, Mapping):
                report.mark_passed("SchemaViolation")
                report.details["normalized"] = False
                return dict(result)

        try:
            normalized = normalize_result(result)
        except NormalizationFailure as e:
            for message in original_errors or [e.message]:
                report.add_error("SchemaViolation", message)
            return None

        for message in normalized.warnings:
            report.add_warning("NormalizationApplied", message)

        if schema_id is not None:
            retry_errors = self.schemas.validate(normalized.canonical, schema_id)  # type: ignore[union-attr]
            if retry_errors:
                for message in original_errors:
                    report.add_error(
                        "SchemaViolation",
                        message,
                        suggested_action="Fix the result to match osss-results.schema.json.",
                    )
                return None
            report.mark_passed("SchemaViolation")

        report.details["normalized"] = normalized.changed
        return normalized.canonical

    def _check_cardinality(self, index: ScheduleIndex, report: ValidationReport) -> None:
        for fid, fixture in index.fixtures.items():
            if fixture.get("conditional"):
                continue
            n = index.assignment_counts.get(fid, 0)
            if n != 1:
                report.add_error(
                    "CardinalityViolation",
                    f"Fixture '{fid}' must be assigned exactly once, found {n}",
                    {"fixtureId": fid},
                )
        report.mark_passed("CardinalityViolation")

    def _report_index_issues(
        self, index: ScheduleIndex, report: ValidationReport, timed_fixtures: set[str]
    ) -> None:
        """
        @brief
        Map index diagnostics onto report entries.

        @details
        An unparseable startTime hides the assignment from every time-based
        rule. It is an error when a checked hard constraint with a time-based
        rule had the fixture in scope, and a warning otherwise.
        Assignments naming an undeclared venue are only warned about.
        """
        for issue in index.issues:
            check, is_error = _ISSUE_CHECKS.get(issue.kind, ("IndexDiagnostic", False))
            if issue.kind == "invalid_start" and issue.fixture_id in timed_fixtures:
                is_error = True
            entities = {"fixtureId": issue.fixture_id} if issue.fixture_id else None
            if is_error:
                report.add_error(check, issue.message, entities)
            else:
                report.add_warning(check, issue.message, entities)

        if index.venues:
            for a in index.assignments:
                if a.venue_id is not None and a.venue_id not in index.venues:
                    report.add_warning(
                        "ReferentialIntegrity",
                        f"Assignment for fixture '{a.fixture_id}' references unknown venue "
                        f"'{a.venue_id}'",
                        {"fixtureId": a.fixture_id, "venueId": a.venue_id},
                    )

    @staticmethod
    def _fill_details(report: ValidationReport, index: ScheduleIndex, rec: Reconciliation) -> None:
        report.details.update(
            {
                "totalPenalty": rec.total_penalty,
                "reportedTotalPenalty": rec.reported_total,
                "hardViolations": rec.hard_violations,
                "byConstraint": rec.by_constraint,
                "unassignedFixtures": list(index.unassigned_fixtures),
                "constraints": [
                    {
                        "constraintId": ev.constraint_id,
                        "ruleId": ev.rule_id,
                        "type": ev.constraint.type,
                        "status": ev.status,
                        "violations": ev.count,
                        "penalty": ev.penalty,
                        "durationMs": ev.meta.get("duration_ms"),
                    }
                    for ev in rec.evaluations
                ],
            }
        )


def validate_result(
    instance: Mapping[str, Any],
    result: Any,
    cfg: Config | None = None,
    *,
    registry: RuleRegistry | None = None,
    schemas: SchemaValidator | None = None,
    catalog: RuleCatalog | None = None,
) -> ResultValidation:
    """
    @brief
    High-level convenience wrapper for result validation.

    @params
        instance : Mapping
            Instance document the result claims to solve.
        result : Any
            Raw Result document as loaded from JSON.
        cfg : Config | None
            Runtime configuration (defaults when None).
        registry, schemas, catalog
            Optional rule registry, schema capability and rule catalog.

    @returns
        ResultValidation carrying the report, the validated document, the
        index and the score reconciliation (with the rewritten result in
        fix-scores mode).
    """
    return ResultValidator(cfg, registry=registry, schemas=schemas, catalog=catalog).run(
        instance, result
    )


__all__ = ["ResultValidation", "ResultValidator", "validate_result"]
