# src/osss/rules/soft/home_away_balance.py
from __future__ import annotations

from collections import Counter

from osss.rules.catalog import Rule, RuleContext, RuleOutcome, Violation


class HomeAwayBalance(Rule):
    """
    @brief
    Each team's home and away counts should differ by at most max_delta.

    @details
    Home is fixture.homeTeamId, else participants[0]; away is
    fixture.awayTeamId, else participants[1]. The violation amount is the sum
    over teams of how far |home - away| exceeds max_delta; the count is the
    number of teams over the limit. Only declared (in-scope) teams are checked.
    """

    rule_id = "home_away_balance"
    kind = "soft"
    description = "Balanced number of home and away fixtures per team"

    def evaluate(self, ctx: RuleContext) -> RuleOutcome:
        max_delta = ctx.number("max_delta")
        index = ctx.index

        home_count: Counter[str] = Counter()
        away_count: Counter[str] = Counter()
        for a in index.assignments:
            fixture = index.fixture(a.fixture_id)
            if fixture is None:
                continue
            parts = index.participants(a.fixture_id)
            home = fixture.get("homeTeamId") or (parts[0] if len(parts) > 0 else None)
            away = fixture.get("awayTeamId") or (parts[1] if len(parts) > 1 else None)
            if home:
                home_count[str(home)] += 1
            if away:
                away_count[str(away)] += 1

        violations = []
        amount = 0.0
        for team_id in index.teams:
            h, aw = home_count[team_id], away_count[team_id]
            delta = abs(h - aw)
            over = max(0.0, delta - max_delta)
            if over > 0:
                amount += over
                violations.append(
                    Violation(
                        f"Team '{team_id}' home/away delta={delta} exceeds max_delta={max_delta:g} "
                        f"by {over:g} (home={h}, away={aw})",
                        (team_id,),
                    )
                )

        return RuleOutcome(
            violations=violations,
            amount=amount,
            count=len(violations),
            explanation=(
                "Home/away balance within limits"
                if not violations
                else "Some teams exceed home/away delta"
            ),
        )
