# src/osss/report/model.py
"""
@brief
Validation report accumulator.

@details
Every front door (result, instance, compare) collects its findings into a
ValidationReport. Errors and warnings are structured entries

    {"check": <check id>, "message": <text>, "entities"?: {...}, "suggested_action"?: <text>}

and the exit code is derived from them at the end of the run:

    0  valid
    1  schema, contract or parameter errors
    2  solver-reported infeasible
    3  hard constraint violations
    4  scoring inconsistencies and rule execution failures

When several classes apply the highest code wins.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

EXIT_OK = 0
EXIT_CONTRACT = 1
EXIT_INFEASIBLE = 2
EXIT_HARD_VIOLATIONS = 3
EXIT_SCORING = 4

# Checks whose errors belong to the scoring class; every other error check is a
# contract error (exit code 1).
SCORING_CHECKS = frozenset(
    {"ScoringInconsistency", "RescoreMismatch", "MissingScoreEntry", "RuleExecution"}
)


def make_entry(
    check: str,
    message: str,
    entities: dict[str, Any] | None = None,
    suggested_action: str | None = None,
) -> dict[str, Any]:
    """Build one structured error/warning entry (empty optional fields are omitted)."""
    payload: dict[str, Any] = {"check": check, "message": message}
    if entities:
        payload["entities"] = entities
    if suggested_action:
        payload["suggested_action"] = suggested_action
    return payload


class ValidationReport:
    """
    @brief
    Accumulates errors, warnings and details of one validation run.

    @details
    `details` carries the run-specific payload (feasible, totalPenalty,
    hardViolations, byConstraint for results). The report is finalized by
    to_dict(), which computes validity and the exit code.
    """

    def __init__(self, subject: str = "Result", *, fail_on_warnings: bool = False) -> None:
        self.subject = subject
        self.fail_on_warnings = fail_on_warnings
        self.errors: list[dict[str, Any]] = []
        self.warnings: list[dict[str, Any]] = []
        self.checks: dict[str, bool] = {}
        self.details: dict[str, Any] = {}
        self.infeasible = False

    # ---------- Accumulation ----------
    def add_error(
        self,
        check: str,
        message: str,
        entities: dict[str, Any] | None = None,
        suggested_action: str | None = None,
    ) -> None:
        self.errors.append(make_entry(check, message, entities, suggested_action))
        self.checks[check] = False

    def add_warning(
        self,
        check: str,
        message: str,
        entities: dict[str, Any] | None = None,
        suggested_action: str | None = None,
    ) -> None:
        self.warnings.append(make_entry(check, message, entities, suggested_action))

    def extend(self, errors: list[dict[str, Any]], warnings: list[dict[str, Any]]) -> None:
        """Merge entries produced elsewhere (e.g. by constraint evaluations)."""
        self.errors.extend(errors)
        self.warnings.extend(warnings)
        for e in errors:
            self.checks[e["check"]] = False

    def mark_passed(self, check: str) -> None:
        self.checks.setdefault(check, True)

    # ---------- Derived state ----------
    @property
    def hard_violations(self) -> list[dict[str, Any]]:
        return list(self.details.get("hardViolations") or [])

    @property
    def exit_code(self) -> int:
        code = EXIT_OK
        for e in self.errors:
            code = max(code, EXIT_SCORING if e["check"] in SCORING_CHECKS else EXIT_CONTRACT)
        if self.infeasible:
            code = max(code, EXIT_INFEASIBLE)
        if self.hard_violations:
            code = max(code, EXIT_HARD_VIOLATIONS)
        if self.fail_on_warnings and self.warnings:
            code = max(code, EXIT_CONTRACT)
        return code

    @property
    def valid(self) -> bool:
        return self.exit_code == EXIT_OK

    @property
    def summary(self) -> str:
        code = self.exit_code
        if code == EXIT_OK:
            return f"{self.subject} is valid"
        if code == EXIT_HARD_VIOLATIONS:
            return f"{self.subject} has {len(self.hard_violations)} hard constraint violation(s)"
        if code == EXIT_INFEASIBLE:
            return f"{self.subject} is reported infeasible by the solver"
        if code == EXIT_SCORING:
            return f"{self.subject} has scoring inconsistencies"
        return f"{self.subject} validation failed"

    def messages(self, kind: str = "errors") -> list[str]:
        """Plain message strings of `errors` or `warnings`."""
        entries = self.errors if kind == "errors" else self.warnings
        return [e["message"] for e in entries]

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": datetime.now(timezone.utc).isoformat(timespec="seconds"),
            "valid": self.valid,
            "exitCode": self.exit_code,
            "summary": self.summary,
            "warnings": self.warnings,
            "errors": self.errors,
            "checks": self.checks,
            "details": self.details,
        }


__all__ = [
    "EXIT_CONTRACT",
    "EXIT_HARD_VIOLATIONS",
    "EXIT_INFEASIBLE",
    "EXIT_OK",
    "EXIT_SCORING",
    "SCORING_CHECKS",
    "ValidationReport",
    "make_entry",
]
