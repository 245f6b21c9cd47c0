# src/osss/rules/builtin.py
"""
@brief
Built-in rule implementations and the default catalog.

@details
DEFAULT_CATALOG is populated once at import time. Embedders that add their own
rules should build a fresh catalog with build_default_catalog() and register
on that instead of mutating the shared one.
"""

from __future__ import annotations

from osss.rules.catalog import Rule, RuleCatalog
from osss.rules.hard.blackout_dates import BlackoutDates
from osss.rules.hard.locked_venue import LockedVenue
from osss.rules.hard.max_games_in_window import MaxGamesInWindow
from osss.rules.hard.min_rest_time import MinRestTime
from osss.rules.hard.no_overlap_team import NoOverlapTeam
from osss.rules.hard.no_overlap_venue_resource import NoOverlapVenueResource
from osss.rules.soft.broadcast_window import BroadcastWindow
from osss.rules.soft.home_away_balance import HomeAwayBalance
from osss.rules.soft.opponent_spacing import OpponentSpacing

BUILTIN_RULES: tuple[tuple[type[Rule], tuple[str, ...]], ...] = (
    (NoOverlapTeam, ()),
    (NoOverlapVenueResource, ("no_overlap_venue",)),
    (MinRestTime, ()),
    (LockedVenue, ()),
    (BlackoutDates, ()),
    (MaxGamesInWindow, ()),
    (HomeAwayBalance, ()),
    (OpponentSpacing, ()),
    (BroadcastWindow, ()),
)


def build_default_catalog() -> RuleCatalog:
    catalog = RuleCatalog()
    for rule_cls, aliases in BUILTIN_RULES:
        catalog.register(rule_cls(), aliases=aliases)
    return catalog


DEFAULT_CATALOG = build_default_catalog()

__all__ = ["BUILTIN_RULES", "DEFAULT_CATALOG", "build_default_catalog"]
