# src/osss/rules/hard/blackout_dates.py
from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from osss.index.builder import parse_bound
from osss.rules.catalog import Rule, RuleContext, RuleOutcome, Violation
from osss.rules.helpers import overlaps


class BlackoutDates(Rule):
    """
    @brief
    No fixture may intersect a blackout window.

    @details
    Windows come from params.windows, else from instance.season.blackout_dates.
    A window is either a date string (the whole local day) or an object
    {start, end, venueId?, reason?}; with venueId it only applies to that venue.
    Malformed windows are reported as warnings and skipped.
    """

    rule_id = "blackout_dates"
    kind = "hard"
    description = "Fixtures avoid blackout dates"

    def evaluate(self, ctx: RuleContext) -> RuleOutcome:
        windows = self._windows(ctx)
        if not windows:
            return RuleOutcome(explanation="No blackout windows declared")

        violations = []
        for a in ctx.index.assignments:
            if not a.valid:
                continue
            for label, start, end, venue_id in windows:
                if venue_id is not None and a.venue_id != venue_id:
                    continue
                if overlaps(a.start_ms, a.end_ms, start, end):  # type: ignore[arg-type]
                    violations.append(
                        Violation(
                            f"Fixture '{a.fixture_id}' on {a.local_date} {a.hhmm} "
                            f"falls in blackout window {label}",
                            (a.fixture_id,) if venue_id is None else (a.fixture_id, venue_id),
                        )
                    )
        return RuleOutcome(violations=violations)

    def _windows(self, ctx: RuleContext) -> list[tuple[str, int, int, str | None]]:
        raw = ctx.param("windows")
        if raw is None:
            season = ctx.instance.get("season")
            raw = season.get("blackout_dates") if isinstance(season, Mapping) else None
        if not raw:
            return []
        if isinstance(raw, (str, Mapping)):
            raw = [raw]

        tz = ctx.index.tzinfo
        out = []
        for item in raw:
            start_raw, end_raw, venue_id, label = self._unpack(item)
            start = parse_bound(start_raw, tz)
            end = parse_bound(end_raw, tz, is_end=True)
            if start is None or end is None or end <= start:
                ctx.warn(f"blackout_dates: ignoring malformed window {item!r}")
                continue
            out.append((label, start, end, venue_id))
        return out

    @staticmethod
    def _unpack(item: Any) -> tuple[Any, Any, str | None, str]:
        if isinstance(item, Mapping):
            start = item.get("start") or item.get("date")
            end = item.get("end") or start
            venue = item.get("venueId")
            label = f"{start}..{end}" if end != start else str(start)
            if item.get("reason"):
                label += f" ({item['reason']})"
            return start, end, None if venue is None else str(venue), label
        return item, item, None, str(item)
