# tests/engine/test_evaluator.py
from __future__ import annotations

import threading

import pytest

from factories import hard, mk_assignment, mk_fixture, mk_instance, soft, ts
from osss.engine.evaluator import FAILED, INVALID, OK, UNCHECKED, VIOLATED, ConstraintEvaluator
from osss.errors import RuleExecutionError
from osss.index.builder import build_index
from osss.registry.loader import RuleRegistry
from osss.rules.builtin import build_default_catalog
from osss.rules.catalog import Rule, RuleOutcome


class _Exploding(Rule):
    rule_id = "exploding"
    kind = "hard"

    def evaluate(self, ctx):
        raise ZeroDivisionError("boom")


class _Blocking(Rule):
    rule_id = "blocking"
    kind = "hard"

    def __init__(self) -> None:
        self.release = threading.Event()

    def evaluate(self, ctx):
        self.release.wait(5)
        return RuleOutcome()


class _Faulting(Rule):
    rule_id = "faulting"
    kind = "hard"

    def evaluate(self, ctx):
        raise RuleExecutionError(
            message="Travel matrix unavailable",
            source="faulting",
            suggested_action="Attach a travel matrix to the instance.",
        )


class _LegacyDict(Rule):
    rule_id = "legacy_dict"
    kind = "soft"

    def evaluate(self, ctx):
        return {"violations": ["a", "b"], "penalty": 12.5}


@pytest.fixture()
def index():
    instance = mk_instance([mk_fixture("F1", "A", "B"), mk_fixture("F2", "A", "C")])
    result = {"assignments": [mk_assignment("F1", ts(3, 10)), mk_assignment("F2", ts(3, 11), "V2")]}
    return build_index(instance, result)


def test_hard_violation_is_reported(index):
    # --- Act ---
    ev = ConstraintEvaluator().evaluate(hard("H1", "no_overlap_team"), index)

    # --- Assert ---
    assert ev.status == VIOLATED
    assert ev.count == 1
    assert ev.errors == []
    assert "duration_ms" in ev.meta


def test_missing_rule_id_is_invalid(index):
    ev = ConstraintEvaluator().evaluate({"id": "C1", "type": "hard"}, index)
    assert ev.status == INVALID
    assert ev.errors[0]["check"] == "InvalidConstraint"
    assert ev.errors[0]["entities"] == {"constraintId": "C1"}


def test_malformed_constraint_is_reported_not_raised(index):
    ev = ConstraintEvaluator().evaluate({"id": "C2", "ruleId": "no_overlap_team", "tags": 5}, index)
    assert ev.status == INVALID
    assert ev.errors[0]["check"] == "InvalidConstraint"
    assert "C2" in ev.errors[0]["message"]


def test_invalid_params_against_registry_contract(index):
    """
    @brief
    Params failing the registry contract stop evaluation before the rule runs.
    """
    # --- Arrange ---
    registry = RuleRegistry(
        [{"ruleId": "min_rest_time", "parameters": {"min_hours": {"kind": "number", "required": True}}}]
    )
    evaluator = ConstraintEvaluator(registry)

    # --- Act ---
    bad = evaluator.evaluate(hard("R1", "min_rest_time", min_hours="long"), index)
    good = evaluator.evaluate(hard("R2", "min_rest_time", min_hours=1), index)

    # --- Assert ---
    assert bad.status == INVALID
    assert bad.errors[0]["check"] == "InvalidParams"
    assert "/min_hours" in bad.errors[0]["message"]
    assert good.status == VIOLATED


def test_unregistered_rule_warns_when_registry_is_given(index):
    ev = ConstraintEvaluator(RuleRegistry([])).evaluate(hard("H1", "no_overlap_team"), index)
    assert [w["check"] for w in ev.warnings] == ["MissingRegistryEntry"]
    assert ev.status == VIOLATED


@pytest.mark.parametrize("strict,status,bucket", [(False, UNCHECKED, "warnings"), (True, INVALID, "errors")])
def test_missing_implementation(index, strict, status, bucket):
    # --- Act ---
    ev = ConstraintEvaluator(strict_missing_rules=strict).evaluate(hard("H9", "travel_limit"), index)

    # --- Assert ---
    assert ev.status == status
    entries = getattr(ev, bucket)
    assert entries[0]["check"] == "MissingRule"
    assert "travel_limit" in entries[0]["message"]


def test_missing_soft_implementation_is_never_an_error(index):
    ev = ConstraintEvaluator(strict_missing_rules=True).evaluate(
        soft("S9", "travel_fairness", {"weight": 1}), index
    )
    assert ev.status == UNCHECKED
    assert ev.errors == []


def test_invalid_selector(index):
    constraint = {**hard("H1", "no_overlap_team"), "selector": {"colour": "red"}}
    ev = ConstraintEvaluator().evaluate(constraint, index)
    assert ev.status == INVALID
    assert ev.errors[0]["check"] == "InvalidSelector"


def test_rule_exception_is_isolated(index):
    """
    @brief
    A failing rule becomes a RuleExecution error; later constraints still run.
    """
    # --- Arrange ---
    catalog = build_default_catalog()
    catalog.register(_Exploding())
    evaluator = ConstraintEvaluator(catalog=catalog)

    # --- Act ---
    evs = evaluator.evaluate_all([hard("X", "exploding"), hard("H1", "no_overlap_team")], index)

    # --- Assert ---
    assert [e.status for e in evs] == [FAILED, VIOLATED]
    assert evs[0].errors[0]["check"] == "RuleExecution"
    assert "ZeroDivisionError: boom" in evs[0].errors[0]["message"]


def test_rule_reported_fault_keeps_its_message_and_action(index):
    # --- Arrange ---
    catalog = build_default_catalog()
    catalog.register(_Faulting())

    # --- Act ---
    ev = ConstraintEvaluator(catalog=catalog).evaluate(hard("T1", "faulting"), index)

    # --- Assert ---
    assert ev.status == FAILED
    assert ev.errors == [
        {
            "check": "RuleExecution",
            "message": "Travel matrix unavailable",
            "entities": {"constraintId": "T1", "ruleId": "faulting"},
            "suggested_action": "Attach a travel matrix to the instance.",
        }
    ]


def test_soft_constraint_priced_by_model(index):
    # --- Arrange ---
    constraint = soft("S1", "broadcast_window", {"model": "linear", "weight": 10},
                      allowed_windows=[{"day": "Monday", "start": "10:00", "end": "10:30"}])

    # --- Act ---
    ev = ConstraintEvaluator().evaluate(constraint, index)

    # --- Assert ---
    assert ev.count == 1
    assert ev.penalty == 10.0
    assert ev.score_entry()["constraintId"] == "S1"


def test_soft_constraint_without_penalty_is_an_error(index):
    ev = ConstraintEvaluator().evaluate(soft("S1", "home_away_balance", None, max_delta=0), index)
    assert [e["check"] for e in ev.errors] == ["MissingPenalty"]
    assert ev.status == INVALID
    assert not ev.checked
    assert ev.penalty == 0.0


@pytest.mark.parametrize(
    "descriptor",
    [
        {"model": "piecewise", "tiers": [{"weight": 3}]},
        {"model": "exponential", "base": -2, "weight": 1},
    ],
)
def test_soft_constraint_with_invalid_penalty_model_is_not_priced(index, descriptor):
    # --- Act ---
    ev = ConstraintEvaluator().evaluate(soft("S1", "opponent_spacing", descriptor, min_days=7), index)

    # --- Assert ---
    assert [e["check"] for e in ev.errors] == ["InvalidPenaltyModel"]
    assert ev.status == INVALID
    assert ev.penalty == 0.0


def test_hard_rule_used_as_soft_is_priced_per_violation(index):
    ev = ConstraintEvaluator().evaluate(soft("S2", "no_overlap_team", {"weight": 7}), index)
    assert ev.amount == 1.0
    assert ev.penalty == 7.0


def test_mapping_outcome_with_own_penalty(index):
    catalog = build_default_catalog()
    catalog.register(_LegacyDict())
    ev = ConstraintEvaluator(catalog=catalog).evaluate(soft("L", "legacy_dict", {"weight": 1}), index)
    assert ev.count == 2
    assert ev.penalty == 12.5


def test_parallel_evaluation_keeps_declaration_order(index):
    # --- Arrange ---
    constraints = [
        hard("H1", "no_overlap_team"),
        hard("H2", "locked_venue"),
        soft("S1", "home_away_balance", {"weight": 1}, max_delta=0),
        hard("H3", "min_rest_time", min_hours=2),
    ]

    # --- Act ---
    sequential = ConstraintEvaluator().evaluate_all(constraints, index)
    parallel = ConstraintEvaluator(workers=4).evaluate_all(constraints, index)

    # --- Assert ---
    assert [e.constraint_id for e in parallel] == ["H1", "H2", "S1", "H3"]
    assert [(e.status, e.count, e.penalty) for e in parallel] == [
        (e.status, e.count, e.penalty) for e in sequential
    ]


def test_timeout_reported_as_rule_execution(index):
    # --- Arrange ---
    blocking = _Blocking()
    catalog = build_default_catalog()
    catalog.register(blocking)
    evaluator = ConstraintEvaluator(catalog=catalog, workers=2, rule_timeout_seconds=0.05)

    # --- Act ---
    try:
        evs = evaluator.evaluate_all([hard("B", "blocking"), hard("H2", "locked_venue")], index)
    finally:
        blocking.release.set()

    # --- Assert ---
    assert evs[0].status == FAILED
    assert "timed out" in evs[0].errors[0]["message"]
    assert evs[1].status == OK


def test_evaluation_is_repeatable(index):
    evaluator = ConstraintEvaluator()
    constraints = [hard("H1", "no_overlap_team"), hard("H3", "min_rest_time", min_hours=2)]
    first = [(e.status, [v.message for v in e.violations]) for e in evaluator.evaluate_all(constraints, index)]
    second = [(e.status, [v.message for v in e.violations]) for e in evaluator.evaluate_all(constraints, index)]
    assert first == second
