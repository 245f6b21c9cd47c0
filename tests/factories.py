# tests/factories.py
"""
@brief
Factories for small OSSS documents shared by the test modules.

@details
All timestamps are UTC on a fixed reference week starting Monday 2025-03-03,
so weekday expectations stay deterministic.
"""

from __future__ import annotations

from typing import Any


def ts(day: int, h: int, m: int = 0) -> str:
    """ISO timestamp on 2025-03-<day> at h:m UTC (3 = Monday)."""
    return f"2025-03-{day:02d}T{h:02d}:{m:02d}:00Z"


def mk_fixture(fid: str, home: str, away: str, **extra: Any) -> dict[str, Any]:
    return {"id": fid, "participants": [home, away], **extra}


def mk_assignment(fid: str, start: str, venue: str = "V1", **extra: Any) -> dict[str, Any]:
    return {"fixtureId": fid, "startTime": start, "venueId": venue, **extra}


def mk_instance(
    fixtures: list[dict[str, Any]],
    constraints: list[dict[str, Any]] | None = None,
    teams: list[str] | None = None,
    venues: list[str] | None = None,
    **extra: Any,
) -> dict[str, Any]:
    if teams is None:
        teams = sorted({p for f in fixtures for p in f.get("participants", [])})
    return {
        "id": "inst-1",
        "timezone": "UTC",
        "teams": [{"id": t} for t in teams],
        "venues": [{"id": v} for v in (venues if venues is not None else ["V1", "V2"])],
        "fixtures": fixtures,
        "constraints": constraints or [],
        **extra,
    }


def mk_result(
    assignments: list[dict[str, Any]],
    by_constraint: list[dict[str, Any]] | None = None,
    total: float | None = None,
    feasible: bool = True,
) -> dict[str, Any]:
    lines = by_constraint or []
    return {
        "feasible": feasible,
        "assignments": assignments,
        "scores": {
            "totalPenalty": sum(line["penalty"] for line in lines) if total is None else total,
            "byConstraint": lines,
        },
    }


def hard(cid: str, rule: str, **params: Any) -> dict[str, Any]:
    return {"id": cid, "ruleId": rule, "type": "hard", "params": params}


def soft(cid: str, rule: str, penalty: dict[str, Any] | None, **params: Any) -> dict[str, Any]:
    c: dict[str, Any] = {"id": cid, "ruleId": rule, "type": "soft", "params": params}
    if penalty is not None:
        c["penalty"] = penalty
    return c


def run_rule(rule, instance: dict[str, Any], assignments: list[dict[str, Any]], **params: Any):
    """Evaluate one rule directly on an unscoped index; returns (outcome, warnings)."""
    from osss.index.builder import build_index
    from osss.rules.catalog import RuleContext

    result = {"assignments": assignments}
    warnings: list[str] = []
    ctx = RuleContext(
        instance=instance,
        result=result,
        rule_id=rule.rule_id,
        type=rule.kind,
        selector=None,
        params=params,
        index=build_index(instance, result),
        warn=warnings.append,
    )
    return rule.evaluate(ctx), warnings
