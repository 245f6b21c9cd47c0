# src/osss/rules/hard/min_rest_time.py
from __future__ import annotations

from osss.index.types import MS_PER_HOUR
from osss.rules.catalog import Rule, RuleContext, RuleOutcome, Violation
from osss.rules.helpers import hours, team_games


class MinRestTime(Rule):
    """
    @brief
    Consecutive fixtures of a team must be separated by at least min_hours.

    @details
    Rest is measured from the end of the previous fixture to the start of the
    next one. A rest of exactly min_hours is accepted. A missing or non-positive
    min_hours disables the check.
    """

    rule_id = "min_rest_time"
    kind = "hard"
    description = "Minimum rest between consecutive fixtures of a team"

    def evaluate(self, ctx: RuleContext) -> RuleOutcome:
        min_hours = ctx.number("min_hours")
        if min_hours <= 0:
            return RuleOutcome(explanation="min_hours <= 0 (no rest enforced)")
        min_ms = min_hours * MS_PER_HOUR

        violations = []
        for team_id, games in team_games(ctx.index).items():
            for prev, cur in zip(games, games[1:]):
                rest = cur.start - prev.end
                if rest < min_ms:
                    violations.append(
                        Violation(
                            f"Team '{team_id}' rest violation: {hours(rest):.2f}h between "
                            f"'{prev.fixture_id}' and '{cur.fixture_id}' (min {min_hours:g}h)",
                            (team_id, prev.fixture_id, cur.fixture_id),
                        )
                    )
        return RuleOutcome(violations=violations)
