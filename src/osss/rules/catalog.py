# src/osss/rules/catalog.py
"""
@brief
Rule capability types and the explicit ruleId → implementation catalog.

@details
A rule is an object with a `rule_id`, a `kind` ("hard" or "soft") and an
`evaluate(ctx)` method. Rules are registered explicitly in a RuleCatalog
(see osss.rules.builtin for the default one); there is no discovery by file
name. Registering the same id twice is a RegistryError.

Rules return a RuleOutcome. Hard rules fill `violations`; soft rules also set
`amount` (the raw violation size, not yet converted to points) and `count`.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from jsonschema import Draft202012Validator

from osss.errors import RegistryError
from osss.index.types import ScheduleIndex
from osss.registry.loader import RuleRegistry

logger = logging.getLogger(__name__)


# ----------------------------
# RULE I/O TYPES
# ----------------------------
@dataclass(frozen=True, slots=True)
class Violation:
    """One finding of a rule, with the ids of the entities involved."""

    message: str
    entities: tuple[str, ...] = ()

    @classmethod
    def coerce(cls, value: Any) -> Violation:
        """Accept a Violation, a plain string or a {message, entities} mapping."""
        if isinstance(value, Violation):
            return value
        if isinstance(value, str):
            return cls(value)
        if isinstance(value, Mapping):
            entities = value.get("entities") or ()
            if isinstance(entities, str):
                entities = (entities,)
            return cls(str(value.get("message") or value), tuple(str(e) for e in entities))
        return cls(str(value))

    def to_dict(self) -> dict[str, Any]:
        return {"message": self.message, "entities": list(self.entities)}


@dataclass(slots=True)
class RuleOutcome:
    violations: list[Any] = field(default_factory=list)
    amount: float = 0.0
    count: int | None = None
    explanation: str | None = None
    meta: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class RuleContext:
    """
    @brief
    Everything a rule may read while evaluating one constraint.

    @details
    `index` is already scoped to the constraint's selector. `params` is a
    read-only mapping. `warn` adds a warning to the validation report.
    """

    instance: Mapping[str, Any]
    result: Mapping[str, Any]
    rule_id: str
    type: str
    selector: Any
    params: Mapping[str, Any]
    index: ScheduleIndex
    penalty: Any = None
    constraint_id: str | None = None
    warn: Callable[[str], None] = lambda message: None

    def param(self, name: str, default: Any = None) -> Any:
        value = self.params.get(name)
        return default if value is None else value

    def number(self, name: str, default: float = 0.0) -> float:
        """Numeric param; anything non-numeric or non-finite gives `default`."""
        value = self.params.get(name)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return default
        return float(value) if math.isfinite(value) else default


class Rule:
    """Base class of rule implementations."""

    rule_id: str = ""
    kind: str = "hard"
    description: str = ""
    # False for rules that never read assignment times
    uses_time: bool = True

    def evaluate(self, ctx: RuleContext) -> RuleOutcome:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}(rule_id={self.rule_id!r}, kind={self.kind!r})"


# ----------------------------
# CATALOG
# ----------------------------
class RuleCatalog:
    """Explicit mapping from ruleId (and aliases) to rule implementations."""

    def __init__(self) -> None:
        self._rules: dict[str, Rule] = {}
        self._aliases: dict[str, str] = {}

    def register(self, rule: Rule, aliases: Iterable[str] = ()) -> Rule:
        """
        @raises
            RegistryError if the id or one of the aliases is already taken.
        """
        names = [rule.rule_id, *aliases]
        if not rule.rule_id:
            raise RegistryError(
                message=f"Rule {type(rule).__name__} has no rule_id", source="RuleCatalog.register"
            )
        for name in names:
            if name in self._rules or name in self._aliases:
                raise RegistryError(
                    message=f"Duplicate rule registration for '{name}'",
                    source="RuleCatalog.register",
                    suggested_action="Each ruleId may be implemented exactly once.",
                )
        self._rules[rule.rule_id] = rule
        for alias in aliases:
            self._aliases[alias] = rule.rule_id
        logger.debug("Registered rule %s (aliases=%s)", rule.rule_id, list(aliases))
        return rule

    def get(self, rule_id: str | None) -> Rule | None:
        if not rule_id:
            return None
        return self._rules.get(self._aliases.get(rule_id, rule_id))

    def __contains__(self, rule_id: object) -> bool:
        return isinstance(rule_id, str) and self.get(rule_id) is not None

    def __len__(self) -> int:
        return len(self._rules)

    @property
    def rule_ids(self) -> list[str]:
        return sorted(self._rules)

    @property
    def aliases(self) -> Mapping[str, str]:
        return MappingProxyType(self._aliases)


@dataclass(frozen=True)
class RuleResolution:
    """Registry entry, params validator and implementation for one ruleId."""

    rule_id: str
    entry: Mapping[str, Any] | None
    validator: Draft202012Validator | None
    rule: Rule | None

    @property
    def registered(self) -> bool:
        return self.entry is not None

    @property
    def implemented(self) -> bool:
        return self.rule is not None


def resolve_rule(rule_id: str, registry: RuleRegistry | None, catalog: RuleCatalog) -> RuleResolution:
    """Look a ruleId up in the registry and the catalog independently."""
    entry = registry.get(rule_id) if registry is not None else None
    validator = registry.params_validator(rule_id) if entry is not None else None
    return RuleResolution(rule_id, entry, validator, catalog.get(rule_id))


__all__ = [
    "Rule",
    "RuleCatalog",
    "RuleContext",
    "RuleOutcome",
    "RuleResolution",
    "Violation",
    "resolve_rule",
]
