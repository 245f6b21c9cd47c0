# src/osss/registry/loader.py
from __future__ import annotations

import difflib
import json
import logging
import threading
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

from jsonschema import Draft202012Validator

from osss.errors import RegistryError
from osss.index.builder import freeze
from osss.registry.param_schema import build_params_schema, compile_params_validator

logger = logging.getLogger(__name__)

CONSTRAINTS_FILE = "constraints.json"
OBJECTIVES_FILE = "objectives.json"


class RuleRegistry:
    """
    @brief
    Declared rules (constraints.json) and objective metrics (objectives.json).

    @details
    The registry only describes rules: their ids and parameter contracts. Whether
    an implementation exists is a separate question answered by RuleCatalog.
    Params validators are compiled lazily and cached per ruleId.
    """

    def __init__(
        self,
        constraints: Iterable[Mapping[str, Any]] = (),
        objectives: Iterable[Mapping[str, Any]] = (),
        source: Path | None = None,
    ) -> None:
        self.source = source
        self._entries: dict[str, Mapping[str, Any]] = {}
        for entry in constraints:
            rid = entry.get("ruleId") or entry.get("id") if isinstance(entry, Mapping) else None
            if not rid or not isinstance(rid, str):
                logger.debug("Registry entry without ruleId/id skipped: %r", entry)
                continue
            self._entries[rid] = freeze({**entry, "id": rid})

        self._objectives: dict[str, Mapping[str, Any]] = {}
        for obj in objectives:
            oid = obj.get("objectiveId") or obj.get("id") if isinstance(obj, Mapping) else None
            if oid and isinstance(oid, str):
                self._objectives[oid] = freeze(obj)

        self._validators: dict[str, Draft202012Validator] = {}
        self._lock = threading.Lock()

    def __contains__(self, rule_id: object) -> bool:
        return rule_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def rule_ids(self) -> list[str]:
        return sorted(self._entries)

    @property
    def objective_ids(self) -> list[str]:
        return sorted(self._objectives)

    def get(self, rule_id: str | None) -> Mapping[str, Any] | None:
        return self._entries.get(rule_id) if rule_id else None

    def has_objective(self, metric: str | None) -> bool:
        return bool(metric) and metric in self._objectives

    def params_validator(self, rule_id: str) -> Draft202012Validator | None:
        """Cached params validator for a registered rule (None if not registered)."""
        entry = self._entries.get(rule_id)
        if entry is None:
            return None
        with self._lock:
            validator = self._validators.get(rule_id)
            if validator is None:
                validator = compile_params_validator(build_params_schema(entry))
                self._validators[rule_id] = validator
        return validator

    def suggest(self, rule_id: str, limit: int = 3) -> list[str]:
        """Close matches for an unknown ruleId (for "did you mean" hints)."""
        return difflib.get_close_matches(rule_id, list(self._entries), n=limit, cutoff=0.6)


def _read_json(path: Path) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise RegistryError(
            message=f"Registry file is not valid JSON: {path} ({e.msg} at line {e.lineno})",
            source="load_registry",
        ) from e
    except OSError as e:
        raise RegistryError(
            message=f"Registry file could not be read: {path} ({e})",
            source="load_registry",
        ) from e


def _entry_list(doc: Any, key: str, path: Path) -> list[Any]:
    items = doc if isinstance(doc, list) else (doc.get(key, []) if isinstance(doc, Mapping) else None)
    if not isinstance(items, list):
        raise RegistryError(
            message=f"Registry must be an array or {{{key}: []}}: {path}",
            source="load_registry",
        )
    return items


def load_registry(registry_dir: str | Path) -> RuleRegistry:
    """
    @brief
    Load the rule registry from a directory.

    @details
    constraints.json is required; objectives.json is optional. Both accept a
    bare list or an object wrapping the list under "constraints"/"objectives".

    @raises
        RegistryError if the directory or constraints.json is missing, or a file
        is not valid JSON of the expected shape.
    """
    registry_dir = Path(registry_dir)
    constraints_path = registry_dir / CONSTRAINTS_FILE
    if not constraints_path.is_file():
        raise RegistryError(
            message=f"Registry file not found: {constraints_path}",
            source="load_registry",
            suggested_action="Point --registry at a directory containing constraints.json.",
        )

    constraints = _entry_list(_read_json(constraints_path), "constraints", constraints_path)

    objectives: list[Any] = []
    objectives_path = registry_dir / OBJECTIVES_FILE
    if objectives_path.is_file():
        objectives = _entry_list(_read_json(objectives_path), "objectives", objectives_path)

    registry = RuleRegistry(constraints, objectives, source=constraints_path)
    logger.info(
        "Registry loaded: %d rule(s), %d objective(s) from %s",
        len(registry),
        len(registry.objective_ids),
        registry_dir,
    )
    return registry


__all__ = ["CONSTRAINTS_FILE", "OBJECTIVES_FILE", "RuleRegistry", "load_registry"]
