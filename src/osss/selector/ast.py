# src/osss/selector/ast.py
"""
@brief
Selector expression tree.

@details
A selector document such as

    {"allOf": [{"tags": ["youth"]}, {"dayOfWeek": ["saturday", "sunday"]}]}

is parsed once by parse_selector() into a tree of frozen dataclasses. Every node
answers two questions:

    matches(candidate, ctx)  -> does this candidate entity satisfy the node?
    project(kind, ctx)       -> the part of the node that can restrict entities
                                of `kind` (None = no restriction)

Leaves that do not apply to an entity kind (dayOfWeek for a venue) are dropped
by project(). Projection is only sound for trees in negation normal form, so the
resolver calls to_nnf() first.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any

from osss.errors import SelectorError
from osss.index.builder import parse_bound

if TYPE_CHECKING:
    from osss.selector.resolver import Candidate, SelectorContext

ENTITY_KINDS = ("team", "venue", "fixture")
DAY_NAMES = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")

_BOOLEAN_KEYS = ("allOf", "anyOf", "not")
_LEAF_KEYS = (
    "id",
    "ids",
    "tags",
    "division",
    "ageGroup",
    "venueType",
    "capacity",
    "dateRange",
    "dayOfWeek",
    "phase",
    "round",
    "role",
)


# ----------------------------
# BASE NODES
# ----------------------------
class Selector:
    """Base class of all selector nodes."""

    def matches(self, candidate: Candidate, ctx: SelectorContext) -> bool:
        raise NotImplementedError

    def project(self, kind: str, ctx: SelectorContext) -> Selector | None:
        raise NotImplementedError

    def negate(self) -> Selector:
        """Return the NNF of `not self`."""
        return Not(self)


@dataclass(frozen=True)
class Wildcard(Selector):
    """Matches every entity ("*", {} or a missing selector)."""

    def matches(self, candidate: Candidate, ctx: SelectorContext) -> bool:
        return True

    def project(self, kind: str, ctx: SelectorContext) -> Selector | None:
        return None

    def negate(self) -> Selector:
        return AnyOf(())


@dataclass(frozen=True)
class AllOf(Selector):
    children: tuple[Selector, ...]

    def matches(self, candidate: Candidate, ctx: SelectorContext) -> bool:
        return all(child.matches(candidate, ctx) for child in self.children)

    def project(self, kind: str, ctx: SelectorContext) -> Selector | None:
        kept = tuple(
            p for p in (child.project(kind, ctx) for child in self.children) if p is not None
        )
        if not kept:
            return None
        return kept[0] if len(kept) == 1 else AllOf(kept)

    def negate(self) -> Selector:
        return AnyOf(tuple(child.negate() for child in self.children))


@dataclass(frozen=True)
class AnyOf(Selector):
    children: tuple[Selector, ...]

    def matches(self, candidate: Candidate, ctx: SelectorContext) -> bool:
        return any(child.matches(candidate, ctx) for child in self.children)

    def project(self, kind: str, ctx: SelectorContext) -> Selector | None:
        projected = [child.project(kind, ctx) for child in self.children]
        # One unrestricted branch makes the whole disjunction unrestricted
        if any(p is None for p in projected):
            return None
        return AnyOf(tuple(projected))  # type: ignore[arg-type]

    def negate(self) -> Selector:
        return AllOf(tuple(child.negate() for child in self.children))


@dataclass(frozen=True)
class Not(Selector):
    child: Selector

    def matches(self, candidate: Candidate, ctx: SelectorContext) -> bool:
        return not self.child.matches(candidate, ctx)

    def project(self, kind: str, ctx: SelectorContext) -> Selector | None:
        inner = self.child.project(kind, ctx)
        return None if inner is None else Not(inner)

    def negate(self) -> Selector:
        return to_nnf(self.child)


@dataclass(frozen=True)
class EntityScope(Selector):
    """
    Legacy selector: {"entityType": "team", "ids": [...], "tags": [...]}.

    Restricts one entity kind and derives the other scopes from it.
    """

    kind: str
    inner: Selector

    def matches(self, candidate: Candidate, ctx: SelectorContext) -> bool:
        if candidate.kind != self.kind:
            return True
        return self.inner.matches(candidate, ctx)

    def project(self, kind: str, ctx: SelectorContext) -> Selector | None:
        return self.inner if kind == self.kind else None


# ----------------------------
# LEAVES
# ----------------------------
class Leaf(Selector):
    """Single-criterion node. `kinds` lists the entity kinds it can restrict."""

    kinds: tuple[str, ...] = ENTITY_KINDS

    def applies_to(self, kind: str) -> bool:
        return kind in self.kinds

    def matches(self, candidate: Candidate, ctx: SelectorContext) -> bool:
        if not self.applies_to(candidate.kind):
            return True
        return self.test(candidate, ctx)

    def test(self, candidate: Candidate, ctx: SelectorContext) -> bool:
        raise NotImplementedError

    def project(self, kind: str, ctx: SelectorContext) -> Selector | None:
        return self if self.applies_to(kind) else None


@dataclass(frozen=True)
class IdLeaf(Leaf):
    values: frozenset[str]

    def test(self, candidate: Candidate, ctx: SelectorContext) -> bool:
        if candidate.kind == "fixture":
            return bool({candidate.entity_id, candidate.team_id, candidate.venue_id} & self.values)
        return candidate.entity_id in self.values

    def project(self, kind: str, ctx: SelectorContext) -> Selector | None:
        # ids naming only venues must not empty the team scope (and vice versa)
        if kind != "fixture" and not (self.values & ctx.known_ids(kind)):
            return None
        return self


@dataclass(frozen=True)
class TagsLeaf(Leaf):
    values: tuple[str, ...]

    def test(self, candidate: Candidate, ctx: SelectorContext) -> bool:
        return set(self.values) <= candidate.tags()

    def project(self, kind: str, ctx: SelectorContext) -> Selector | None:
        if kind != "fixture" and not (set(self.values) & ctx.known_tags(kind)):
            return None
        return self


@dataclass(frozen=True)
class AttributeLeaf(Leaf):
    """Equality against one of `values` for division, ageGroup, venueType or phase."""

    field: str
    values: tuple[Any, ...]

    @property
    def kinds(self) -> tuple[str, ...]:  # type: ignore[override]
        if self.field in ("division", "ageGroup"):
            return ("team", "fixture")
        if self.field == "venueType":
            return ("venue", "fixture")
        return ("fixture",)

    def test(self, candidate: Candidate, ctx: SelectorContext) -> bool:
        return candidate.attribute(self.field) in self.values


@dataclass(frozen=True)
class RangeLeaf(Leaf):
    """Exact value or inclusive {min, max} bounds on capacity or round."""

    field: str
    exact: Any = None
    minimum: float | None = None
    maximum: float | None = None

    @property
    def kinds(self) -> tuple[str, ...]:  # type: ignore[override]
        return ("venue", "fixture") if self.field == "capacity" else ("fixture",)

    def test(self, candidate: Candidate, ctx: SelectorContext) -> bool:
        value = candidate.attribute(self.field)
        if self.exact is not None:
            return value == self.exact
        if value is None:
            if self.field != "capacity":
                return False
            value = 0
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return False
        if self.minimum is not None and value < self.minimum:
            return False
        if self.maximum is not None and value > self.maximum:
            return False
        return True


@dataclass(frozen=True)
class DateRangeLeaf(Leaf):
    """
    Fixture must start at/after `start` and end at/before `end`.

    Date-only bounds are whole local days: an `end` of 2025-01-31 admits games
    finishing on that day.
    """

    start: str | None
    end: str | None
    kinds = ("fixture",)

    def test(self, candidate: Candidate, ctx: SelectorContext) -> bool:
        a = candidate.assignment
        if a is None or not a.valid:
            return False
        if self.start is not None and a.start_ms < parse_bound(self.start, ctx.tzinfo):
            return False
        if self.end is not None and a.end_ms > parse_bound(self.end, ctx.tzinfo, is_end=True):
            return False
        return True


@dataclass(frozen=True)
class DayOfWeekLeaf(Leaf):
    days: frozenset[str]
    kinds = ("fixture",)

    def test(self, candidate: Candidate, ctx: SelectorContext) -> bool:
        a = candidate.assignment
        if a is None or a.weekday is None:
            return False
        return a.weekday.lower() in self.days


@dataclass(frozen=True)
class RoleLeaf(Leaf):
    role: str
    kinds = ("fixture",)

    def test(self, candidate: Candidate, ctx: SelectorContext) -> bool:
        if candidate.team_id is None:
            return False
        home, away = candidate.home_away()
        return candidate.team_id == (home if self.role == "home" else away)


# ----------------------------
# NORMAL FORM
# ----------------------------
def to_nnf(node: Selector) -> Selector:
    """Push negations down to the leaves (negation normal form)."""
    if isinstance(node, Not):
        return node.child.negate() if not isinstance(node.child, Leaf) else node
    if isinstance(node, AllOf):
        return AllOf(tuple(to_nnf(c) for c in node.children))
    if isinstance(node, AnyOf):
        return AnyOf(tuple(to_nnf(c) for c in node.children))
    if isinstance(node, EntityScope):
        return EntityScope(node.kind, to_nnf(node.inner))
    return node


# ----------------------------
# PARSER
# ----------------------------
def parse_selector(doc: Any) -> Selector:
    """
    @brief
    Parse a selector document into a Selector tree.

    @details
    None, "*" and {} yield Wildcard. Several criteria in one object are an
    implicit allOf. A top-level `entityType` selects the legacy form, whose only
    criteria are ids and tags.

    @raises
        SelectorError on unknown keys or malformed criterion values.
    """
    if doc is None or doc == "*":
        return Wildcard()
    if not isinstance(doc, Mapping):
        raise SelectorError(
            message=f"Selector must be an object or '*', got {type(doc).__name__}",
            source="parse_selector",
        )
    if "entityType" in doc:
        return _parse_legacy(doc)
    return _parse_node(doc, path="selector")


def _parse_legacy(doc: Mapping[str, Any]) -> Selector:
    kind = doc.get("entityType")
    if kind not in ENTITY_KINDS:
        raise SelectorError(
            message=f"Unsupported entityType '{kind}'",
            source="parse_selector",
            suggested_action=f"Use one of: {', '.join(ENTITY_KINDS)}.",
        )
    extra = set(doc) - {"entityType", "ids", "tags"}
    if extra:
        raise SelectorError(
            message=f"Unknown key(s) in entityType selector: {', '.join(sorted(extra))}",
            source="parse_selector",
        )
    leaves: list[Selector] = []
    if doc.get("ids"):
        leaves.append(IdLeaf(frozenset(_str_list(doc["ids"], "selector.ids"))))
    if doc.get("tags"):
        leaves.append(TagsLeaf(tuple(_str_list(doc["tags"], "selector.tags"))))
    inner = AllOf(tuple(leaves)) if leaves else Wildcard()
    return EntityScope(kind, inner)


def _parse_node(doc: Any, path: str) -> Selector:
    if doc == "*":
        return Wildcard()
    if not isinstance(doc, Mapping):
        raise SelectorError(message=f"{path} must be an object", source="parse_selector")
    if "entityType" in doc:
        raise SelectorError(
            message=f"{path}: entityType is only allowed at the top level",
            source="parse_selector",
        )

    unknown = set(doc) - set(_BOOLEAN_KEYS) - set(_LEAF_KEYS)
    if unknown:
        raise SelectorError(
            message=f"{path}: unknown selector key(s): {', '.join(sorted(unknown))}",
            source="parse_selector",
            suggested_action=f"Supported keys: {', '.join(_BOOLEAN_KEYS + _LEAF_KEYS)}.",
        )

    nodes: list[Selector] = []
    for key in ("allOf", "anyOf"):
        if key in doc:
            items = doc[key]
            if not isinstance(items, list):
                raise SelectorError(message=f"{path}.{key} must be a list", source="parse_selector")
            children = tuple(_parse_node(c, f"{path}.{key}[{i}]") for i, c in enumerate(items))
            nodes.append(AllOf(children) if key == "allOf" else AnyOf(children))
    if "not" in doc:
        nodes.append(Not(_parse_node(doc["not"], f"{path}.not")))

    for key in _LEAF_KEYS:
        if key in doc and doc[key] is not None:
            nodes.append(_parse_leaf(key, doc[key], f"{path}.{key}"))

    if not nodes:
        return Wildcard()
    return nodes[0] if len(nodes) == 1 else AllOf(tuple(nodes))


def _parse_leaf(key: str, value: Any, path: str) -> Selector:
    if key in ("id", "ids"):
        return IdLeaf(frozenset(_str_list(value, path)))
    if key == "tags":
        return TagsLeaf(tuple(_str_list(value, path)))
    if key in ("division", "ageGroup", "venueType", "phase"):
        values = value if isinstance(value, list) else [value]
        if not values or any(isinstance(v, (Mapping, list)) for v in values):
            raise SelectorError(message=f"{path} must be a scalar or list of scalars", source="parse_selector")
        return AttributeLeaf(key, tuple(values))
    if key in ("capacity", "round"):
        return _parse_range(key, value, path)
    if key == "dayOfWeek":
        days = [d.lower() for d in _str_list(value, path)]
        bad = [d for d in days if d not in DAY_NAMES]
        if bad:
            raise SelectorError(message=f"{path}: unknown day name(s): {', '.join(bad)}", source="parse_selector")
        return DayOfWeekLeaf(frozenset(days))
    if key == "dateRange":
        return _parse_date_range(value, path)
    if key == "role":
        if value not in ("home", "away"):
            raise SelectorError(message=f"{path} must be 'home' or 'away'", source="parse_selector")
        return RoleLeaf(value)
    raise SelectorError(message=f"Unsupported selector key {key}", source="parse_selector")


def _parse_range(key: str, value: Any, path: str) -> RangeLeaf:
    if isinstance(value, Mapping):
        extra = set(value) - {"min", "max"}
        if extra or not value:
            raise SelectorError(message=f"{path} accepts only min/max", source="parse_selector")
        bounds = {}
        for bound in ("min", "max"):
            b = value.get(bound)
            if b is not None and (isinstance(b, bool) or not isinstance(b, (int, float))):
                raise SelectorError(message=f"{path}.{bound} must be a number", source="parse_selector")
            bounds[bound] = b
        return RangeLeaf(key, minimum=bounds["min"], maximum=bounds["max"])
    if isinstance(value, (list, bool)):
        raise SelectorError(message=f"{path} must be a value or {{min, max}}", source="parse_selector")
    return RangeLeaf(key, exact=value)


def _parse_date_range(value: Any, path: str) -> DateRangeLeaf:
    if not isinstance(value, Mapping) or set(value) - {"start", "end"}:
        raise SelectorError(message=f"{path} must be an object with start/end", source="parse_selector")
    for bound in ("start", "end"):
        raw = value.get(bound)
        if raw is None:
            continue
        try:
            datetime.fromisoformat(str(raw))
        except ValueError as e:
            raise SelectorError(
                message=f"{path}.{bound} is not an ISO date or datetime: '{raw}'",
                source="parse_selector",
            ) from e
    start, end = value.get("start"), value.get("end")
    return DateRangeLeaf(
        start=None if start is None else str(start),
        end=None if end is None else str(end),
    )


def _str_list(value: Any, path: str) -> list[str]:
    items = value if isinstance(value, list) else [value]
    if any(isinstance(v, (Mapping, list)) or v is None for v in items):
        raise SelectorError(message=f"{path} must be a string or list of strings", source="parse_selector")
    return [str(v) for v in items]


__all__ = [
    "AllOf",
    "AnyOf",
    "AttributeLeaf",
    "DateRangeLeaf",
    "DayOfWeekLeaf",
    "EntityScope",
    "IdLeaf",
    "Leaf",
    "Not",
    "RangeLeaf",
    "RoleLeaf",
    "Selector",
    "TagsLeaf",
    "Wildcard",
    "parse_selector",
    "to_nnf",
]
