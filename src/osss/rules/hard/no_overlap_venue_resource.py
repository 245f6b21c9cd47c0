# src/osss/rules/hard/no_overlap_venue_resource.py
from __future__ import annotations

from osss.rules.catalog import Rule, RuleContext, RuleOutcome, Violation
from osss.rules.helpers import Game, group_games, sweep_overlaps


class NoOverlapVenueResource(Rule):
    """
    @brief
    A venue (or one resource of it) hosts at most one fixture at a time.

    @details
    Assignments are grouped by venueId. With params.per_resource set, the group
    key becomes (venueId, resourceId) so that multi-field venues may host
    parallel games on different resources. Assignments without a venue are not
    checked.
    """

    rule_id = "no_overlap_venue_resource"
    kind = "hard"
    description = "Venue resource hosts at most one fixture at a time"

    def evaluate(self, ctx: RuleContext) -> RuleOutcome:
        per_resource = bool(ctx.param("per_resource", False))
        index = ctx.index

        keyed = [
            (
                (a.venue_id, a.resource_id if per_resource else None),
                Game(a.start_ms, a.end_ms, a.fixture_id),  # type: ignore[arg-type]
            )
            for a in index.assignments
            if a.valid and a.venue_id is not None and index.venue_in_scope(a.venue_id)
        ]

        violations = []
        for (venue_id, resource_id), games in group_games(keyed).items():
            where = f"Venue '{venue_id}'"
            if resource_id is not None:
                where += f" resource '{resource_id}'"
            for a, b in sweep_overlaps(games):
                violations.append(
                    Violation(
                        f"{where} overlap between fixtures '{a.fixture_id}' and '{b.fixture_id}'",
                        (venue_id, a.fixture_id, b.fixture_id),
                    )
                )
        return RuleOutcome(violations=violations)
