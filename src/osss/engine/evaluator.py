# src/osss/engine/evaluator.py
from __future__ import annotations

import logging
import time
from collections.abc import Iterable, Mapping
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from osss.errors import PenaltyModelError, RuleExecutionError, SelectorError
from osss.index.builder import freeze, thaw
from osss.index.types import ScheduleIndex
from osss.registry.loader import RuleRegistry
from osss.registry.param_schema import describe_params_errors
from osss.report.model import make_entry
from osss.rules.builtin import DEFAULT_CATALOG
from osss.rules.catalog import RuleCatalog, RuleContext, RuleOutcome, Violation, resolve_rule
from osss.schemas.models import ConstraintSpec
from osss.scoring.penalty import parse_penalty_model, penalty
from osss.selector.ast import parse_selector
from osss.selector.resolver import scope

logger = logging.getLogger(__name__)

# Evaluation status values
OK = "ok"
VIOLATED = "violated"
UNCHECKED = "unchecked"  # no implementation, reported as warning
INVALID = "invalid"  # constraint could not be evaluated as declared
FAILED = "error"  # implementation raised or timed out


# ----------------------------
# EVALUATION RESULT
# ----------------------------
@dataclass
class Evaluation:
    """
    @brief
    Outcome of evaluating one constraint.

    @details
    `violations` are the rule's findings (or the reason the constraint could
    not be evaluated when status is invalid). `errors` and `warnings` are
    report entries produced while evaluating; the caller merges them into
    the validation report. For soft constraints `amount` is the raw violation
    size and `penalty` the points computed from it by the penalty model.
    """

    constraint: ConstraintSpec
    status: str = OK
    violations: list[Violation] = field(default_factory=list)
    amount: float = 0.0
    count: int = 0
    penalty: float = 0.0
    explanation: str | None = None
    errors: list[dict[str, Any]] = field(default_factory=list)
    warnings: list[dict[str, Any]] = field(default_factory=list)
    meta: dict[str, Any] = field(default_factory=dict)
    # Fixtures whose assignment times the rule examined (None: times not used)
    timed_fixtures: frozenset[str] | None = None

    @property
    def constraint_id(self) -> str:
        return self.constraint.label

    @property
    def rule_id(self) -> str | None:
        return self.constraint.rule_id

    @property
    def checked(self) -> bool:
        return self.status in (OK, VIOLATED)

    def error(self, check: str, message: str, suggested_action: str | None = None) -> None:
        self.errors.append(
            make_entry(check, message, self._entities(), suggested_action=suggested_action)
        )

    def warning(self, check: str, message: str) -> None:
        self.warnings.append(make_entry(check, message, self._entities()))

    def score_entry(self) -> dict[str, Any]:
        """byConstraint ledger line for this constraint."""
        entry: dict[str, Any] = {
            "constraintId": self.constraint_id,
            "violations": self.count,
            "penalty": self.penalty,
        }
        if self.explanation:
            entry["explanation"] = self.explanation
        return entry

    def _entities(self) -> dict[str, Any]:
        out = {"constraintId": self.constraint_id}
        if self.rule_id:
            out["ruleId"] = self.rule_id
        return out


def coerce_constraint(raw: Any) -> ConstraintSpec:
    if isinstance(raw, ConstraintSpec):
        return raw
    return ConstraintSpec.model_validate(thaw(raw) if isinstance(raw, Mapping) else {})


# ----------------------------
# ENGINE
# ----------------------------
class ConstraintEvaluator:
    """
    @brief
    Evaluates instance constraints against a ScheduleIndex.

    @details
    For each constraint, in order:
        (1) a missing ruleId is reported as a violation,
        (2) params are validated against the registry contract (if registered),
        (3) the implementation is looked up in the rule catalog,
        (4) the index is scoped by the constraint selector,
        (5) the rule runs with a RuleContext,
        (6) its outcome is normalized and, for soft constraints, priced.
    A failing rule never aborts the other constraints: its exception is turned
    into a RuleExecution error attributed to the constraint.
    """

    def __init__(
        self,
        registry: RuleRegistry | None = None,
        catalog: RuleCatalog | None = None,
        *,
        strict_missing_rules: bool = False,
        workers: int = 1,
        rule_timeout_seconds: float | None = None,
    ) -> None:
        self.registry = registry
        self.catalog = catalog if catalog is not None else DEFAULT_CATALOG
        self.strict_missing_rules = strict_missing_rules
        self.workers = max(1, int(workers))
        self.rule_timeout_seconds = rule_timeout_seconds
        if rule_timeout_seconds is not None and self.workers == 1:
            logger.warning("rule_timeout_seconds is only enforced with workers > 1")

    # ---------- Public API ----------
    def evaluate(self, constraint: Any, index: ScheduleIndex) -> Evaluation:
        """Evaluate one constraint (raw mapping or ConstraintSpec)."""
        try:
            spec = coerce_constraint(constraint)
        except PydanticValidationError as e:
            spec = ConstraintSpec.model_construct(id=_raw_id(constraint))
            ev = Evaluation(spec, status=INVALID)
            ev.violations.append(Violation(f"Malformed constraint: {e.error_count()} field error(s)"))
            ev.error("InvalidConstraint", f"Constraint '{spec.label}' is malformed: {e}")
            return ev

        started = time.perf_counter()
        ev = self._evaluate(spec, index)
        ev.meta["duration_ms"] = round((time.perf_counter() - started) * 1000, 3)
        return ev

    def evaluate_all(self, constraints: Iterable[Any], index: ScheduleIndex) -> list[Evaluation]:
        """
        @brief
        Evaluate all constraints, preserving their declaration order.

        @details
        With workers > 1 constraints run on a thread pool and the results are
        merged back by position. rule_timeout_seconds then bounds how long the
        engine waits for each constraint; a timed-out constraint is reported as
        a RuleExecution error (the worker thread itself cannot be interrupted).
        """
        items = list(constraints)
        if self.workers == 1 or len(items) < 2:
            return [self.evaluate(c, index) for c in items]

        results: list[Evaluation | None] = [None] * len(items)
        pool = ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix="osss-rule")
        try:
            futures = [pool.submit(self.evaluate, c, index) for c in items]
            for pos, fut in enumerate(futures):
                try:
                    results[pos] = fut.result(timeout=self.rule_timeout_seconds)
                except FutureTimeoutError:
                    results[pos] = self._timed_out(items[pos])
        finally:
            pool.shutdown(wait=False, cancel_futures=True)

        logger.info("Evaluated %d constraint(s) on %d worker(s)", len(items), self.workers)
        return [r for r in results if r is not None]

    # ---------- Steps ----------
    def _evaluate(self, spec: ConstraintSpec, index: ScheduleIndex) -> Evaluation:
        ev = Evaluation(spec)

        # (1) ruleId is mandatory
        rule_id = spec.rule_id
        if not rule_id:
            ev.status = INVALID
            ev.violations.append(Violation("Constraint missing ruleId"))
            ev.error(
                "InvalidConstraint",
                f"Constraint '{spec.label}' is missing ruleId",
                suggested_action="Add a ruleId naming a registered rule.",
            )
            return ev

        # (2) Registry contract for params
        resolution = resolve_rule(rule_id, self.registry, self.catalog)
        params = spec.params if isinstance(spec.params, Mapping) else {}
        if self.registry is not None and not resolution.registered:
            ev.warning(
                "MissingRegistryEntry",
                f"Rule '{rule_id}' is not declared in the registry; params not validated",
            )
        if resolution.validator is not None:
            declared = spec.params if spec.params is not None else {}
            problems = describe_params_errors(resolution.validator, declared)
            if problems:
                message = f"Invalid params for '{rule_id}': {'; '.join(problems)}"
                ev.status = INVALID
                ev.violations.append(Violation(message))
                ev.error("InvalidParams", message)
                return ev

        # (3) Capability lookup
        rule = resolution.rule
        if rule is None:
            message = f"No rule implementation found for '{rule_id}' (type={spec.type})."
            if spec.type == "hard" and self.strict_missing_rules:
                ev.status = INVALID
                ev.violations.append(Violation(message))
                ev.error("MissingRule", message)
            else:
                ev.status = UNCHECKED
                ev.warning("MissingRule", f"{message} Constraint was not checked.")
            return ev

        # (4) Scope
        try:
            scoped = scope(index, parse_selector(spec.selector))
        except SelectorError as e:
            ev.status = INVALID
            ev.violations.append(Violation(f"Invalid selector: {e.message}"))
            ev.error("InvalidSelector", f"Constraint '{spec.label}': {e.message}")
            return ev

        # (5) Penalty model of soft constraints; without one there is nothing to re-score
        model = None
        if spec.is_soft:
            if spec.penalty is None:
                ev.status = INVALID
                ev.violations.append(Violation("Missing penalty model"))
                ev.error(
                    "MissingPenalty",
                    f"Soft constraint '{spec.label}' missing penalty model",
                    suggested_action="Declare a penalty descriptor such as a linear model.",
                )
                return ev
            try:
                model = parse_penalty_model(spec.penalty)
            except PenaltyModelError as e:
                ev.status = INVALID
                ev.violations.append(Violation(f"Invalid penalty model: {e.message}"))
                ev.error("InvalidPenaltyModel", f"Constraint '{spec.label}': {e.message}")
                return ev

        # (6) Run the rule
        ctx = RuleContext(
            instance=index.instance,
            result=index.result,
            rule_id=rule_id,
            type=spec.type,
            selector=spec.selector,
            params=freeze(params),
            index=scoped,
            penalty=spec.penalty,
            constraint_id=spec.label,
            warn=lambda message: ev.warning("RuleWarning", message),
        )
        try:
            outcome = rule.evaluate(ctx)
        except Exception as e:  # rule faults are isolated per constraint
            if isinstance(e, RuleExecutionError):
                fault = e
            else:
                fault = RuleExecutionError(
                    message=(
                        f"Rule '{rule_id}' failed on constraint '{spec.label}': "
                        f"{type(e).__name__}: {e}"
                    ),
                    source=rule_id,
                )
            logger.error("%s", fault, exc_info=fault is not e)
            ev.status = FAILED
            ev.error("RuleExecution", fault.message, suggested_action=fault.suggested_action)
            return ev

        if rule.uses_time:
            ev.timed_fixtures = frozenset(scoped.fixtures)
        self._absorb(ev, outcome, rule.kind, model)
        return ev

    def _absorb(self, ev: Evaluation, outcome: Any, rule_kind: str, model: Any) -> None:
        """Normalize whatever the rule returned into the evaluation."""
        reported_penalty: float | None = None
        if isinstance(outcome, RuleOutcome):
            raw_violations: Any = outcome.violations
            amount, count, ev.explanation = outcome.amount, outcome.count, outcome.explanation
            ev.meta.update(outcome.meta)
        elif isinstance(outcome, Mapping):
            raw_violations = outcome.get("violations")
            amount = _number(outcome.get("amount", outcome.get("violationAmount")))
            count = outcome.get("count", outcome.get("violationCount"))
            if _is_number(outcome.get("penalty")):
                reported_penalty = float(outcome["penalty"])
            ev.explanation = outcome.get("explanation")
        else:
            raw_violations, amount, count = outcome, 0.0, None

        if not isinstance(raw_violations, (list, tuple)):
            raw_violations = []
        ev.violations = [Violation.coerce(v) for v in raw_violations]
        ev.count = int(count) if _is_number(count) else len(ev.violations)
        ev.status = VIOLATED if ev.violations or ev.count else OK

        if not ev.constraint.is_soft:
            return
        # Hard rules used as soft constraints are priced per violation
        ev.amount = _number(amount) if rule_kind == "soft" else float(ev.count)
        if reported_penalty is not None and not _number(amount):
            ev.penalty = reported_penalty
        else:
            ev.penalty = penalty(model, ev.amount) if model is not None else 0.0

    def _timed_out(self, raw: Any) -> Evaluation:
        try:
            spec = coerce_constraint(raw)
        except PydanticValidationError:
            spec = ConstraintSpec.model_construct(id=_raw_id(raw))
        fault = RuleExecutionError(
            message=(
                f"Rule '{spec.rule_id}' timed out after {self.rule_timeout_seconds:g}s "
                f"on constraint '{spec.label}'"
            ),
            source=spec.rule_id,
            suggested_action="Raise rule_timeout_seconds or narrow the constraint selector.",
        )
        ev = Evaluation(spec, status=FAILED)
        ev.error("RuleExecution", fault.message, suggested_action=fault.suggested_action)
        logger.error("%s", fault)
        return ev


# ----------------------------
# AUXILIARY FUNCTIONS
# ----------------------------
def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _number(value: Any) -> float:
    return float(value) if _is_number(value) else 0.0


def _raw_id(raw: Any) -> str | None:
    if isinstance(raw, Mapping) and raw.get("id") is not None:
        return str(raw["id"])
    return None


__all__ = [
    "ConstraintEvaluator",
    "Evaluation",
    "FAILED",
    "INVALID",
    "OK",
    "UNCHECKED",
    "VIOLATED",
    "coerce_constraint",
]
