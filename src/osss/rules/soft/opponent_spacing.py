# src/osss/rules/soft/opponent_spacing.py
from __future__ import annotations

from osss.index.types import MS_PER_DAY
from osss.rules.catalog import Rule, RuleContext, RuleOutcome, Violation
from osss.rules.helpers import Game, days, group_games


class OpponentSpacing(Rule):
    """
    @brief
    Repeat meetings of the same two teams should be at least min_days apart.

    @details
    Gaps are measured start to start between consecutive meetings of a pair.
    Each short gap counts once and adds its shortfall in days to the amount.
    """

    rule_id = "opponent_spacing"
    kind = "soft"
    description = "Minimum days between meetings of the same opponents"

    def evaluate(self, ctx: RuleContext) -> RuleOutcome:
        min_days = ctx.number("min_days")
        if min_days <= 0:
            return RuleOutcome(count=0, explanation="min_days <= 0 (no spacing enforced)")
        min_ms = min_days * MS_PER_DAY
        index = ctx.index

        keyed = []
        for a in index.assignments:
            parts = index.participants(a.fixture_id)
            if a.start_ms is None or len(parts) < 2:
                continue
            t1, t2 = sorted(parts[:2])
            if not (index.team_in_scope(t1) or index.team_in_scope(t2)):
                continue
            keyed.append(((t1, t2), Game(a.start_ms, a.start_ms, a.fixture_id)))

        violations = []
        amount = 0.0
        for (t1, t2), games in group_games(keyed).items():
            for prev, cur in zip(games, games[1:]):
                gap = cur.start - prev.start
                if gap < min_ms:
                    short = days(min_ms - gap)
                    amount += short
                    violations.append(
                        Violation(
                            f"Opponent spacing violation for pair '{t1}::{t2}': "
                            f"'{prev.fixture_id}' to '{cur.fixture_id}' short by {short:.2f} days "
                            f"(min {min_days:g})",
                            (t1, t2, prev.fixture_id, cur.fixture_id),
                        )
                    )

        return RuleOutcome(
            violations=violations,
            amount=amount,
            count=len(violations),
            explanation=(
                "Opponent spacing within limits"
                if not violations
                else "Some pairs played too close together"
            ),
        )
