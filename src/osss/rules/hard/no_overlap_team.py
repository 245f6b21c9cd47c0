# src/osss/rules/hard/no_overlap_team.py
from __future__ import annotations

from osss.rules.catalog import Rule, RuleContext, RuleOutcome, Violation
from osss.rules.helpers import sweep_overlaps, team_games


class NoOverlapTeam(Rule):
    """A team cannot play two fixtures whose time intervals intersect."""

    rule_id = "no_overlap_team"
    kind = "hard"
    description = "Team plays at most one fixture at a time"

    def evaluate(self, ctx: RuleContext) -> RuleOutcome:
        violations = [
            Violation(
                f"Team '{team_id}' overlap between fixtures '{a.fixture_id}' and '{b.fixture_id}'",
                (team_id, a.fixture_id, b.fixture_id),
            )
            for team_id, games in team_games(ctx.index).items()
            for a, b in sweep_overlaps(games)
        ]
        return RuleOutcome(violations=violations)
