# src/osss/rules/hard/max_games_in_window.py
from __future__ import annotations

from osss.index.types import MS_PER_DAY
from osss.rules.catalog import Rule, RuleContext, RuleOutcome, Violation
from osss.rules.helpers import team_games


class MaxGamesInWindow(Rule):
    """
    @brief
    A team plays at most max_games fixtures in any window_days-long period.

    @details
    Windows slide over the team's start times: [start_i, start_i + window_days).
    One violation is reported per game that pushes a window over the limit, so
    a single burst of games is not reported once per overlapping window.
    """

    rule_id = "max_games_in_window"
    kind = "hard"
    description = "Maximum number of fixtures per team in a rolling window"

    def evaluate(self, ctx: RuleContext) -> RuleOutcome:
        max_games = int(ctx.number("max_games"))
        window_days = ctx.number("window_days", 7.0)
        if max_games <= 0 or window_days <= 0:
            return RuleOutcome(explanation="max_games/window_days not positive (nothing enforced)")
        window_ms = window_days * MS_PER_DAY

        violations = []
        for team_id, games in team_games(ctx.index).items():
            last_reported = -1
            j = 0
            for i, first in enumerate(games):
                j = max(j, i)
                while j < len(games) and games[j].start < first.start + window_ms:
                    j += 1
                if j - i > max_games and j - 1 > last_reported:
                    fixture_ids = [g.fixture_id for g in games[i:j]]
                    violations.append(
                        Violation(
                            f"Team '{team_id}' plays {j - i} fixtures within {window_days:g} days "
                            f"(max {max_games}): {', '.join(fixture_ids)}",
                            (team_id, *fixture_ids),
                        )
                    )
                    last_reported = j - 1
        return RuleOutcome(violations=violations)
