# src/osss/selector/resolver.py
from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from functools import cached_property
from typing import Any
from zoneinfo import ZoneInfo

from osss.index.types import IndexedAssignment, ScheduleIndex
from osss.selector.ast import EntityScope, Selector, Wildcard, parse_selector, to_nnf

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Candidate:
    """
    @brief
    One entity presented to a selector.

    @details
    Team and venue candidates carry only their own document. Fixture candidates
    are evaluated from the perspective of one participant (`team_id`), which is
    what `role` and team-level attributes refer to; the assigned venue and the
    first assignment of the fixture are attached for venue and time criteria.
    """

    kind: str
    entity: Mapping[str, Any]
    team_id: str | None = None
    team: Mapping[str, Any] | None = None
    venue_id: str | None = None
    venue: Mapping[str, Any] | None = None
    assignment: IndexedAssignment | None = None

    @property
    def entity_id(self) -> str | None:
        value = self.entity.get("id")
        return None if value is None else str(value)

    def tags(self) -> set[str]:
        docs = [self.entity]
        if self.kind == "fixture":
            docs += [self.team or {}, self.venue or {}]
        return {str(t) for doc in docs for t in (doc.get("tags") or ())}

    def attribute(self, name: str) -> Any:
        """
        Fixture-level value first; division/ageGroup fall back to the perspective
        team, venueType/capacity to the assigned venue.
        """
        if self.kind != "fixture":
            return self.entity.get(name)
        own = self.entity.get(name)
        if own is not None:
            return own
        if name in ("division", "ageGroup") and self.team is not None:
            return self.team.get(name)
        if name in ("venueType", "capacity") and self.venue is not None:
            return self.venue.get(name)
        return None

    def home_away(self) -> tuple[str | None, str | None]:
        parts = list(self.entity.get("participants") or ())
        home = self.entity.get("homeTeamId") or (parts[0] if len(parts) > 0 else None)
        away = self.entity.get("awayTeamId") or (parts[1] if len(parts) > 1 else None)
        return home, away


@dataclass
class SelectorContext:
    """Lookup tables shared by all candidates of one index."""

    index: ScheduleIndex
    _first_assignment: dict[str, IndexedAssignment] = field(default_factory=dict)

    def __post_init__(self) -> None:
        for a in self.index.assignments:
            self._first_assignment.setdefault(a.fixture_id, a)

    @property
    def tzinfo(self) -> ZoneInfo:
        return self.index.tzinfo

    def assignment_for(self, fixture_id: str) -> IndexedAssignment | None:
        return self._first_assignment.get(fixture_id)

    def known_ids(self, kind: str) -> set[str]:
        return set(self._entities(kind))

    def known_tags(self, kind: str) -> set[str]:
        return self._tags[kind]

    @cached_property
    def _tags(self) -> dict[str, set[str]]:
        return {
            kind: {str(t) for e in self._entities(kind).values() for t in (e.get("tags") or ())}
            for kind in ("team", "venue", "fixture")
        }

    def _entities(self, kind: str) -> Mapping[str, Mapping[str, Any]]:
        if kind == "team":
            return self.index.teams
        if kind == "venue":
            return self.index.venues
        return self.index.fixtures

    def fixture_candidates(self, fixture_id: str) -> list[Candidate]:
        """One candidate per participant (or a single neutral one)."""
        fixture = self.index.fixtures[fixture_id]
        a = self.assignment_for(fixture_id)
        venue_id = a.venue_id if a is not None else None
        venue = self.index.venues.get(venue_id) if venue_id else None
        base = dict(kind="fixture", entity=fixture, venue_id=venue_id, venue=venue, assignment=a)

        participants = self.index.participants(fixture_id)
        if not participants:
            return [Candidate(**base)]
        return [
            Candidate(**base, team_id=tid, team=self.index.teams.get(tid)) for tid in participants
        ]


# ----------------------------
# PUBLIC API
# ----------------------------
def matches(candidate: Candidate, selector: Selector | Any, ctx: SelectorContext) -> bool:
    """
    @brief
    Test one candidate against a selector (parsed tree or raw document).
    """
    node = selector if isinstance(selector, Selector) else parse_selector(selector)
    return node.matches(candidate, ctx)


def scope(index: ScheduleIndex, selector: Selector | Any) -> ScheduleIndex:
    """
    @brief
    Restrict an index to the entities a selector addresses.

    @details
    (1) Wildcard selectors return the index unchanged.
    (2) Legacy entityType selectors restrict one kind; fixtures follow from it
        (team → fixtures with an in-scope participant, venue → fixtures assigned
        there).
    (3) Otherwise the selector is put in negation normal form and projected onto
        teams and venues; fixtures are kept if any participant perspective
        satisfies the full selector.
    Assignments are always restricted to in-scope fixtures.

    @raises
        SelectorError if `selector` is a raw document that cannot be parsed.
    """
    node = selector if isinstance(selector, Selector) else parse_selector(selector)
    if isinstance(node, Wildcard):
        return index

    ctx = SelectorContext(index)
    if isinstance(node, EntityScope):
        scoped = _scope_legacy(index, node, ctx)
    else:
        scoped = _scope_general(index, to_nnf(node), ctx)

    logger.debug(
        "Scoped index: %d/%d team(s), %d/%d venue(s), %d/%d fixture(s)",
        len(scoped.teams),
        len(index.teams),
        len(scoped.venues),
        len(index.venues),
        len(scoped.fixtures),
        len(index.fixtures),
    )
    return scoped


def _select(
    entities: Mapping[str, Mapping[str, Any]],
    kind: str,
    node: Selector | None,
    ctx: SelectorContext,
) -> list[str] | None:
    if node is None:
        return None
    return [eid for eid, e in entities.items() if node.matches(Candidate(kind, e), ctx)]


def _scope_general(index: ScheduleIndex, node: Selector, ctx: SelectorContext) -> ScheduleIndex:
    teams = _select(index.teams, "team", node.project("team", ctx), ctx)
    venues = _select(index.venues, "venue", node.project("venue", ctx), ctx)
    fixtures = [
        fid
        for fid in index.fixtures
        if any(node.matches(c, ctx) for c in ctx.fixture_candidates(fid))
    ]
    return index.restrict(teams=teams, venues=venues, fixtures=fixtures)


def _scope_legacy(index: ScheduleIndex, node: EntityScope, ctx: SelectorContext) -> ScheduleIndex:
    if node.kind == "team":
        teams = _select(index.teams, "team", node.inner, ctx) or []
        team_set = set(teams)
        fixtures = [
            fid for fid in index.fixtures if team_set.intersection(index.participants(fid))
        ]
        return index.restrict(teams=teams, fixtures=fixtures)

    if node.kind == "venue":
        venues = _select(index.venues, "venue", node.inner, ctx) or []
        venue_set = set(venues)
        fixtures = {a.fixture_id for a in index.assignments if a.venue_id in venue_set}
        return index.restrict(venues=venues, fixtures=fixtures)

    fixtures = [
        fid
        for fid in index.fixtures
        if node.inner.matches(Candidate("fixture", index.fixtures[fid]), ctx)
    ]
    return index.restrict(fixtures=fixtures)


__all__ = ["Candidate", "SelectorContext", "matches", "scope"]
