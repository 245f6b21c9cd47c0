# src/osss/schemas/catalog.py
"""
@brief
Adapter around the external JSON-schema validation capability.

@details
The OSSS wire contract lives in a directory of JSON Schema (draft 2020-12)
documents published separately from this package. SchemaCatalog loads every
schema found there, registers it under its `$id` and its file name so that
cross-file `$ref`s resolve, and exposes a single operation:

    validate(document, schema_id) -> list[str]

The engine only depends on that operation (see SchemaValidator), so tests and
embedders can substitute any callable object with the same shape.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any, Protocol

from jsonschema import Draft202012Validator
from jsonschema.exceptions import SchemaError
from jsonschema.validators import validator_for
from referencing import Registry, Resource
from referencing.jsonschema import DRAFT202012

from osss.errors import DataError

logger = logging.getLogger(__name__)

RESULT_SCHEMA_CANDIDATES = (
    "osss-results.schema.json",
    "osss-result.schema.json",
    "results.schema.json",
    "result.schema.json",
    "https://opensportsscheduling.org/schemas/osss-results.schema.json",
)

INSTANCE_SCHEMA_CANDIDATES = (
    "osss-core.schema.json",
    "osss-instance.schema.json",
    "instance.schema.json",
    "https://opensportsscheduling.org/schemas/osss-core.schema.json",
)


class SchemaValidator(Protocol):
    """Structural validation capability consumed by the validators."""

    def validate(self, document: Any, schema_id: str) -> list[str]: ...

    def resolve(self, candidates: Iterable[str]) -> str | None: ...


def format_schema_errors(errors: Iterable[Any], root: str = "(root)") -> list[str]:
    """
    @brief
    Render jsonschema errors as compact "<location> <message>" strings.

    @details
    Errors are sorted by location and message so the output is stable between
    runs regardless of the validator's traversal order.
    """
    rendered: list[str] = []
    for err in sorted(errors, key=lambda e: (e.json_path, e.message)):
        path = "".join(f"/{p}" for p in err.absolute_path)
        if not path:
            loc = root
        elif root == "(root)":
            loc = path
        else:
            loc = f"{root}{path}"
        rendered.append(f"{loc} {err.message}")
    return rendered


def _looks_like_schema(obj: Any) -> bool:
    return isinstance(obj, Mapping) and any(
        k in obj for k in ("$schema", "$id", "type", "properties", "allOf", "anyOf", "oneOf")
    )


class SchemaCatalog:
    """
    @brief
    In-memory set of JSON schemas with compiled, cached validators.
    """

    def __init__(self, schemas: Mapping[str, Mapping[str, Any]]) -> None:
        # (1) Register every schema under each of its keys ($id and file name)
        self._schemas: dict[str, dict[str, Any]] = {}
        resources: list[tuple[str, Resource]] = []
        for key, schema in schemas.items():
            doc = dict(schema)
            doc.setdefault("$id", f"osss://schemas/{key}")
            resource = Resource.from_contents(doc, default_specification=DRAFT202012)
            self._schemas[key] = doc
            self._schemas[doc["$id"]] = doc
            resources.append((key, resource))
            resources.append((doc["$id"], resource))

        # (2) Shared registry makes cross-file $ref resolution possible
        self._registry = Registry().with_resources(resources)
        self._validators: dict[str, Any] = {}

    @classmethod
    def from_dir(cls, schemas_dir: Path) -> SchemaCatalog:
        """
        @brief
        Load all *.json schema files below a directory (recursively).

        @details
        Files that are not valid JSON or do not look like a schema are skipped
        with a debug log line, mirroring how the published schema bundles mix
        examples and schemas in one tree.

        @raises
            DataError if the directory does not exist.
        """
        schemas_dir = Path(schemas_dir)
        if not schemas_dir.is_dir():
            raise DataError(
                message=f"Schemas directory not found: {schemas_dir}",
                source="SchemaCatalog.from_dir",
                suggested_action="Point --schemas at the OSSS schemas directory.",
            )

        found: dict[str, dict[str, Any]] = {}
        for path in sorted(schemas_dir.rglob("*.json")):
            try:
                parsed = json.loads(path.read_text(encoding="utf-8"))
            except (OSError, json.JSONDecodeError) as e:
                logger.debug("Skipping unreadable schema file %s: %s", path, e)
                continue
            if not _looks_like_schema(parsed):
                continue
            found[path.name] = parsed

        logger.info("SchemaCatalog: loaded %d schema(s) from %s", len(found), schemas_dir)
        return cls(found)

    def has(self, schema_id: str) -> bool:
        return schema_id in self._schemas

    def resolve(self, candidates: Iterable[str]) -> str | None:
        """Return the first candidate key that names a loaded schema."""
        for candidate in candidates:
            if candidate in self._schemas:
                return candidate
        return None

    def validate(self, document: Any, schema_id: str) -> list[str]:
        """
        @brief
        Validate a document against one registered schema.

        @raises
            DataError if the schema is unknown or itself invalid.
        """
        validator = self._validator(schema_id)
        return format_schema_errors(validator.iter_errors(document))

    def _validator(self, schema_id: str) -> Any:
        if schema_id in self._validators:
            return self._validators[schema_id]

        schema = self._schemas.get(schema_id)
        if schema is None:
            raise DataError(
                message=f"Unknown schema: {schema_id}",
                source="SchemaCatalog.validate",
                suggested_action="Check that the schemas directory contains the OSSS schemas.",
            )

        cls = validator_for(schema, default=Draft202012Validator)
        try:
            cls.check_schema(schema)
        except SchemaError as e:
            raise DataError(
                message=f"Schema {schema_id} is not a valid JSON schema: {e.message}",
                source="SchemaCatalog.validate",
            ) from e

        validator = cls(schema, registry=self._registry, format_checker=cls.FORMAT_CHECKER)
        self._validators[schema_id] = validator
        return validator


__all__ = [
    "INSTANCE_SCHEMA_CANDIDATES",
    "RESULT_SCHEMA_CANDIDATES",
    "SchemaCatalog",
    "SchemaValidator",
    "format_schema_errors",
]
