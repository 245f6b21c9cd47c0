# src/osss/index/builder.py
from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Mapping
from datetime import datetime, timedelta, timezone
from types import MappingProxyType
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from osss.index.types import MS_PER_MINUTE, IndexedAssignment, IndexIssue, ScheduleIndex

logger = logging.getLogger(__name__)

WEEKDAYS = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")
DEFAULT_DURATION_MINUTES = 90


# ----------------------------
# AUXILIARY FUNCTIONS
# ----------------------------
def freeze(value: Any) -> Any:
    """
    @brief
    Recursively convert JSON containers into read-only equivalents.

    @details
    dict → MappingProxyType, list → tuple. Scalars are returned unchanged.
    Used so that rule implementations receive data they cannot mutate.
    """
    if isinstance(value, Mapping):
        return MappingProxyType({k: freeze(v) for k, v in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(freeze(v) for v in value)
    return value


def thaw(value: Any) -> Any:
    """Inverse of freeze(): plain dicts and lists, e.g. for JSON output or pydantic input."""
    if isinstance(value, Mapping):
        return {k: thaw(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [thaw(v) for v in value]
    return value


def resolve_timezone(name: Any, fallback: str = "UTC") -> tuple[str, ZoneInfo, bool]:
    """
    @brief
    Resolve an IANA timezone name.

    @returns
        (effective_name, ZoneInfo, ok); ok is False when `name` was unknown and
        the fallback was used instead.
    """
    candidate = str(name) if name else fallback
    try:
        return candidate, ZoneInfo(candidate), True
    except (ZoneInfoNotFoundError, ValueError):
        return fallback, ZoneInfo(fallback), False


def parse_timestamp(value: Any, tz: ZoneInfo) -> int | None:
    """
    @brief
    Parse an ISO-8601 timestamp into epoch milliseconds.

    @details
    Accepts a trailing "Z". Naive timestamps are interpreted in `tz` (the
    instance's declared timezone). Returns None for anything unparseable.
    """
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        dt = datetime.fromisoformat(value.strip())
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=tz)
    return int(round(dt.timestamp() * 1000))


def local_parts(ms: int, tz: ZoneInfo) -> tuple[str, str, str]:
    """Return (weekday name, "HH:MM", "YYYY-MM-DD") of an epoch-ms instant in `tz`."""
    dt = datetime(1970, 1, 1, tzinfo=timezone.utc) + timedelta(milliseconds=ms)
    local = dt.astimezone(tz)
    return WEEKDAYS[local.weekday()], f"{local.hour:02d}:{local.minute:02d}", local.date().isoformat()


def parse_bound(raw: Any, tz: ZoneInfo, *, is_end: bool = False) -> int | None:
    """
    @brief
    Parse a range bound (date or datetime) into epoch milliseconds.

    @details
    A date-only end bound covers the whole local day, so it resolves to the
    following local midnight. Returns None when unparseable.
    """
    text = str(raw).strip() if raw is not None else ""
    if is_end and len(text) == 10 and "T" not in text:
        try:
            day = datetime.fromisoformat(text) + timedelta(days=1)
        except ValueError:
            return None
        return parse_timestamp(day.isoformat(), tz)
    return parse_timestamp(text, tz)


def hhmm_to_minutes(value: Any) -> int | None:
    """Convert "HH:MM" to minutes since midnight (None if malformed)."""
    if not isinstance(value, str):
        return None
    parts = value.strip().split(":")
    if len(parts) != 2 or not all(p.isdigit() and len(p) == 2 for p in parts):
        return None
    hh, mm = int(parts[0]), int(parts[1])
    if hh > 24 or mm > 59:
        return None
    return hh * 60 + mm


def _entities(instance: Mapping[str, Any], key: str) -> list[Any]:
    # Teams/venues live either at the top level or under "entities"
    direct = instance.get(key)
    if isinstance(direct, list):
        return direct
    entities = instance.get("entities")
    if isinstance(entities, Mapping) and isinstance(entities.get(key), list):
        return entities[key]
    return []


def _positive_number(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value) if value > 0 else None


# ----------------------------
# BUILDER
# ----------------------------
class IndexBuilder:
    """
    @brief
    Builds the read-only ScheduleIndex consumed by every rule.

    @details
    For each assignment the builder parses startTime, derives endTime (explicit
    value, else fixture.durationMinutes, else the instance-level
    defaultFixtureDuration, else the configured default) and computes the local
    weekday / time of day in the instance timezone. Problems are recorded as
    IndexIssue diagnostics instead of raising: the index must always be
    buildable so that the remaining checks can still run.
    """

    def __init__(
        self,
        default_duration_minutes: int = DEFAULT_DURATION_MINUTES,
        fallback_timezone: str = "UTC",
    ) -> None:
        self.default_duration_minutes = default_duration_minutes
        self.fallback_timezone = fallback_timezone

    def build(self, instance: Mapping[str, Any], result: Mapping[str, Any]) -> ScheduleIndex:
        issues: list[IndexIssue] = []
        instance = instance if isinstance(instance, Mapping) else {}
        result = result if isinstance(result, Mapping) else {}

        # (1) Timezone and duration defaults declared by the instance
        metadata = instance.get("metadata") if isinstance(instance.get("metadata"), Mapping) else {}
        declared_tz = instance.get("timezone") or metadata.get("timezone")
        tz_name, tz, tz_ok = resolve_timezone(declared_tz, self.fallback_timezone)
        if not tz_ok:
            issues.append(
                IndexIssue(
                    kind="unknown_timezone",
                    message=f"Unknown timezone '{declared_tz}', using {tz_name}",
                )
            )

        default_minutes = (
            _positive_number(instance.get("defaultFixtureDuration"))
            or self.default_duration_minutes
        )

        # (2) id → entity maps
        teams = self._by_id(_entities(instance, "teams"), "team", issues)
        venues = self._by_id(_entities(instance, "venues"), "venue", issues)
        raw_fixtures = instance.get("fixtures") if isinstance(instance.get("fixtures"), list) else []
        fixtures = self._by_id(raw_fixtures, "fixture", issues)

        # (3) Annotate assignments with parsed times
        raw_assignments = result.get("assignments")
        if not isinstance(raw_assignments, list):
            raw_assignments = []

        assignments: list[IndexedAssignment] = []
        counts: Counter[str] = Counter()
        for pos, raw in enumerate(raw_assignments):
            if not isinstance(raw, Mapping) or not raw.get("fixtureId"):
                issues.append(
                    IndexIssue(
                        kind="malformed_assignment",
                        message=f"Assignment #{pos} has no fixtureId",
                    )
                )
                continue
            item = self._annotate(raw, pos, fixtures, tz, default_minutes, issues)
            counts[item.fixture_id] += 1
            assignments.append(item)

        # (4) Fixtures nobody scheduled (conditional fixtures may stay unscheduled)
        unassigned = tuple(
            fid for fid, f in fixtures.items() if counts[fid] == 0 and not f.get("conditional")
        )

        index = ScheduleIndex(
            instance=freeze(instance),
            result=freeze(result),
            timezone=tz_name,
            tzinfo=tz,
            default_duration_minutes=int(default_minutes),
            teams=MappingProxyType(teams),
            venues=MappingProxyType(venues),
            fixtures=MappingProxyType(fixtures),
            assignments=tuple(assignments),
            issues=tuple(issues),
            unassigned_fixtures=unassigned,
            assignment_counts=MappingProxyType(dict(counts)),
        )
        logger.info(
            "Index built: %d team(s), %d venue(s), %d fixture(s), %d assignment(s), %d issue(s)",
            len(teams),
            len(venues),
            len(fixtures),
            len(assignments),
            len(issues),
        )
        return index

    def _by_id(
        self, items: list[Any], kind: str, issues: list[IndexIssue]
    ) -> dict[str, Mapping[str, Any]]:
        out: dict[str, Mapping[str, Any]] = {}
        for pos, item in enumerate(items):
            if not isinstance(item, Mapping) or not item.get("id"):
                issues.append(
                    IndexIssue(kind="malformed_entity", message=f"{kind} #{pos} has no id")
                )
                continue
            out.setdefault(str(item["id"]), freeze(item))
        return out

    def _annotate(
        self,
        raw: Mapping[str, Any],
        pos: int,
        fixtures: Mapping[str, Mapping[str, Any]],
        tz: ZoneInfo,
        default_minutes: float,
        issues: list[IndexIssue],
    ) -> IndexedAssignment:
        fixture_id = str(raw["fixtureId"])
        fixture = fixtures.get(fixture_id)
        if fixture is None:
            issues.append(
                IndexIssue(
                    kind="unknown_fixture",
                    message=f"Assignment references non-existent fixture: '{fixture_id}'",
                    fixture_id=fixture_id,
                )
            )

        # (1) Start time is mandatory for every time-based rule
        start_ms = parse_timestamp(raw.get("startTime"), tz)
        if start_ms is None:
            issues.append(
                IndexIssue(
                    kind="invalid_start",
                    message=(
                        f"Assignment for fixture '{fixture_id}' has invalid startTime: "
                        f"'{raw.get('startTime')}'"
                    ),
                    fixture_id=fixture_id,
                )
            )

        # (2) End time: explicit value first, duration fallback second
        end_ms: int | None = None
        if raw.get("endTime") is not None:
            end_ms = parse_timestamp(raw.get("endTime"), tz)
            if end_ms is None:
                issues.append(
                    IndexIssue(
                        kind="invalid_end",
                        message=(
                            f"Assignment for fixture '{fixture_id}' has invalid endTime: "
                            f"'{raw.get('endTime')}', using fixture duration"
                        ),
                        fixture_id=fixture_id,
                    )
                )
        if end_ms is None and start_ms is not None:
            minutes = (
                _positive_number(fixture.get("durationMinutes")) if fixture else None
            ) or default_minutes
            end_ms = start_ms + int(round(minutes * MS_PER_MINUTE))

        weekday = hhmm = local_date = None
        if start_ms is not None:
            weekday, hhmm, local_date = local_parts(start_ms, tz)

        officials = raw.get("officialIds")
        return IndexedAssignment(
            fixture_id=fixture_id,
            venue_id=str(raw["venueId"]) if raw.get("venueId") is not None else None,
            start_ms=start_ms,
            end_ms=end_ms,
            weekday=weekday,
            hhmm=hhmm,
            local_date=local_date,
            resource_id=str(raw["resourceId"]) if raw.get("resourceId") is not None else None,
            official_ids=tuple(str(o) for o in officials) if isinstance(officials, list) else (),
            position=pos,
            raw=freeze(raw),
        )


def build_index(
    instance: Mapping[str, Any],
    result: Mapping[str, Any],
    *,
    default_duration_minutes: int = DEFAULT_DURATION_MINUTES,
    fallback_timezone: str = "UTC",
) -> ScheduleIndex:
    """Convenience wrapper around IndexBuilder.build()."""
    return IndexBuilder(default_duration_minutes, fallback_timezone).build(instance, result)


__all__ = [
    "IndexBuilder",
    "WEEKDAYS",
    "build_index",
    "freeze",
    "hhmm_to_minutes",
    "local_parts",
    "parse_bound",
    "parse_timestamp",
    "resolve_timezone",
    "thaw",
]
