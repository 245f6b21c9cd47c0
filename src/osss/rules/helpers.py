# src/osss/rules/helpers.py
from __future__ import annotations

from collections import defaultdict
from collections.abc import Hashable, Iterator
from dataclasses import dataclass

from osss.index.types import MS_PER_DAY, MS_PER_HOUR, ScheduleIndex


@dataclass(frozen=True, slots=True)
class Game:
    """Time slot of one assignment as seen by a team, venue or pair."""

    start: int
    end: int
    fixture_id: str


def overlaps(a_start: int, a_end: int, b_start: int, b_end: int) -> bool:
    """Half-open interval intersection: touching intervals do not overlap."""
    return a_start < b_end and b_start < a_end


def team_games(index: ScheduleIndex) -> dict[str, list[Game]]:
    """
    @brief
    Games per participant, sorted by start time.

    @details
    Only assignments with parseable times and a known fixture are included.
    Teams scoped out by the selector are skipped.
    """
    out: dict[str, list[Game]] = defaultdict(list)
    for a in index.assignments:
        if not a.valid:
            continue
        for team_id in index.participants(a.fixture_id):
            if index.team_in_scope(team_id):
                out[team_id].append(Game(a.start_ms, a.end_ms, a.fixture_id))  # type: ignore[arg-type]
    for games in out.values():
        games.sort(key=lambda g: (g.start, g.fixture_id))
    return dict(out)


def sweep_overlaps(games: list[Game]) -> Iterator[tuple[Game, Game]]:
    """
    Yield every overlapping pair from a list sorted by start.

    The inner scan stops at the first game starting at/after the current end.
    """
    for i, first in enumerate(games):
        for second in games[i + 1 :]:
            if second.start >= first.end:
                break
            if overlaps(first.start, first.end, second.start, second.end):
                yield first, second


def group_games(items: list[tuple[Hashable, Game]]) -> dict[Hashable, list[Game]]:
    grouped: dict[Hashable, list[Game]] = defaultdict(list)
    for key, game in items:
        grouped[key].append(game)
    for games in grouped.values():
        games.sort(key=lambda g: (g.start, g.fixture_id))
    return dict(grouped)


def hours(ms: float) -> float:
    return ms / MS_PER_HOUR


def days(ms: float) -> float:
    return ms / MS_PER_DAY


__all__ = ["Game", "days", "group_games", "hours", "overlaps", "sweep_overlaps", "team_games"]
