# src/osss/rules/hard/locked_venue.py
from __future__ import annotations

from osss.rules.catalog import Rule, RuleContext, RuleOutcome, Violation


class LockedVenue(Rule):
    """A fixture with lockedVenueId must be assigned to exactly that venue."""

    rule_id = "locked_venue"
    kind = "hard"
    description = "Fixtures with a locked venue are played there"
    uses_time = False

    def evaluate(self, ctx: RuleContext) -> RuleOutcome:
        violations = []
        for a in ctx.index.assignments:
            fixture = ctx.index.fixture(a.fixture_id)
            locked = fixture.get("lockedVenueId") if fixture else None
            if locked and a.venue_id != str(locked):
                violations.append(
                    Violation(
                        f"Fixture '{a.fixture_id}' is locked to venue '{locked}' "
                        f"but assigned to '{a.venue_id}'",
                        (a.fixture_id, str(locked)),
                    )
                )
        return RuleOutcome(violations=violations)
