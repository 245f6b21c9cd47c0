# src/osss/rules/soft/broadcast_window.py
from __future__ import annotations

from collections.abc import Mapping

from osss.index.builder import hhmm_to_minutes
from osss.rules.catalog import Rule, RuleContext, RuleOutcome, Violation


class BroadcastWindow(Rule):
    """
    @brief
    Fixtures should start inside one of the allowed broadcast windows.

    @details
    params.allowed_windows is a list of {day, start, end} in the instance
    timezone, e.g. {"day": "Saturday", "start": "12:00", "end": "18:00"}.
    Bounds are inclusive. The amount is the number of fixtures outside every
    window; a fixture whose start cannot be parsed counts as outside. Windows
    missing a field or with malformed times never match.
    """

    rule_id = "broadcast_window"
    kind = "soft"
    description = "Kick-off inside allowed broadcast windows"

    def evaluate(self, ctx: RuleContext) -> RuleOutcome:
        windows = ctx.param("allowed_windows")
        if not windows or isinstance(windows, (str, Mapping)):
            return RuleOutcome(count=0, explanation="No allowed_windows provided")

        parsed = [self._parse(w) for w in windows]
        violations = []
        for a in ctx.index.assignments:
            minutes = hhmm_to_minutes(a.hhmm)
            if minutes is None or a.weekday is None:
                # A start without a local time matches no window
                when, inside = "an unknown time", False
            else:
                when = f"{a.weekday} {a.hhmm}"
                day = a.weekday.lower()
                inside = any(
                    w is not None and w[0] == day and w[1] <= minutes <= w[2] for w in parsed
                )
            if not inside:
                violations.append(
                    Violation(
                        f"Fixture '{a.fixture_id}' at {when} is outside allowed broadcast windows",
                        (a.fixture_id,),
                    )
                )

        return RuleOutcome(
            violations=violations,
            amount=float(len(violations)),
            count=len(violations),
            explanation=(
                "All fixtures within broadcast windows"
                if not violations
                else "Some fixtures outside windows"
            ),
        )

    @staticmethod
    def _parse(window: object) -> tuple[str, int, int] | None:
        if not isinstance(window, Mapping):
            return None
        day = window.get("day")
        start = hhmm_to_minutes(window.get("start"))
        end = hhmm_to_minutes(window.get("end"))
        if not day or start is None or end is None:
            return None
        return str(day).lower(), start, end
