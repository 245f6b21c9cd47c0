# src/osss/index/types.py
from __future__ import annotations

import dataclasses
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any
from zoneinfo import ZoneInfo

MS_PER_MINUTE = 60_000
MS_PER_HOUR = 3_600_000
MS_PER_DAY = 86_400_000


@dataclass(frozen=True, slots=True)
class IndexIssue:
    """
    Diagnostic recorded while building the index.

    Fields:
        kind: unknown_fixture | invalid_start | invalid_end | unknown_timezone |
              malformed_assignment | malformed_entity
        message: Human-readable description.
        fixture_id: Fixture the issue is attached to (None for document-level issues).
    """

    kind: str
    message: str
    fixture_id: str | None = None


@dataclass(frozen=True, slots=True)
class IndexedAssignment:
    """
    One result assignment annotated with parsed time information.

    start_ms/end_ms are epoch milliseconds (None when unparseable). weekday and
    hhmm are computed in the instance timezone.
    """

    fixture_id: str
    venue_id: str | None
    start_ms: int | None
    end_ms: int | None
    weekday: str | None = None
    hhmm: str | None = None
    local_date: str | None = None
    resource_id: str | None = None
    official_ids: tuple[str, ...] = ()
    position: int = 0
    raw: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))

    @property
    def valid(self) -> bool:
        return self.start_ms is not None and self.end_ms is not None

    @property
    def duration_ms(self) -> int | None:
        if not self.valid:
            return None
        return self.end_ms - self.start_ms  # type: ignore[operator]


@dataclass(frozen=True, slots=True)
class ScheduleIndex:
    """
    Read-only, time-normalized view over one (instance, result) pair.

    Built once per validation run by build_index(); selector scoping produces
    restricted copies via restrict(). Entity maps are MappingProxyType views
    over frozen entity documents, so rules cannot modify them.
    """

    instance: Mapping[str, Any]
    result: Mapping[str, Any]
    timezone: str
    tzinfo: ZoneInfo
    default_duration_minutes: int
    teams: Mapping[str, Mapping[str, Any]]
    venues: Mapping[str, Mapping[str, Any]]
    fixtures: Mapping[str, Mapping[str, Any]]
    assignments: tuple[IndexedAssignment, ...]
    issues: tuple[IndexIssue, ...] = ()
    unassigned_fixtures: tuple[str, ...] = ()
    assignment_counts: Mapping[str, int] = field(default_factory=lambda: MappingProxyType({}))
    scoped: bool = False
    excluded_teams: frozenset[str] = frozenset()
    excluded_venues: frozenset[str] = frozenset()

    @property
    def parse_errors(self) -> list[str]:
        return [issue.message for issue in self.issues]

    def team_in_scope(self, team_id: str) -> bool:
        """Placeholder participants (not declared as teams) are never scoped out."""
        return team_id not in self.excluded_teams

    def venue_in_scope(self, venue_id: str | None) -> bool:
        return venue_id is None or venue_id not in self.excluded_venues

    def fixture(self, fixture_id: str) -> Mapping[str, Any] | None:
        return self.fixtures.get(fixture_id)

    def participants(self, fixture_id: str) -> tuple[str, ...]:
        f = self.fixtures.get(fixture_id)
        if f is None:
            return ()
        return tuple(str(p) for p in (f.get("participants") or ()))

    def restrict(
        self,
        *,
        teams: Iterable[str] | None = None,
        venues: Iterable[str] | None = None,
        fixtures: Iterable[str] | None = None,
    ) -> ScheduleIndex:
        """
        Return a scoped copy limited to the given ids.

        Assignments are restricted to in-scope fixtures; diagnostics, counts and
        the raw documents are shared with the parent index.
        """
        team_ids = set(self.teams) if teams is None else set(teams)
        venue_ids = set(self.venues) if venues is None else set(venues)
        fixture_ids = set(self.fixtures) if fixtures is None else set(fixtures)

        return dataclasses.replace(
            self,
            teams=MappingProxyType({k: v for k, v in self.teams.items() if k in team_ids}),
            venues=MappingProxyType({k: v for k, v in self.venues.items() if k in venue_ids}),
            fixtures=MappingProxyType(
                {k: v for k, v in self.fixtures.items() if k in fixture_ids}
            ),
            assignments=tuple(a for a in self.assignments if a.fixture_id in fixture_ids),
            scoped=True,
            excluded_teams=self.excluded_teams | (set(self.teams) - team_ids),
            excluded_venues=self.excluded_venues | (set(self.venues) - venue_ids),
        )


__all__ = [
    "IndexIssue",
    "IndexedAssignment",
    "ScheduleIndex",
    "MS_PER_DAY",
    "MS_PER_HOUR",
    "MS_PER_MINUTE",
]
