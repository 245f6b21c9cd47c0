# src/osss/registry/param_schema.py
"""
@brief
Parameter contracts declared by registry entries, as JSON schemas.

@details
Registry files describe a rule's params in one of three shapes:

    "parametersSchema" / "paramsSchema"   a JSON schema, used as-is
    "parameters" / "params"               {"min_hours": "number", ...} or
                                          {"min_hours": {"kind": "int", "required": true}}
    (nothing)                             any object is accepted

build_params_schema() reduces all of them to one JSON schema object.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from jsonschema import Draft202012Validator

from osss.index.builder import thaw

ANY_OBJECT: dict[str, Any] = {"type": "object", "additionalProperties": True}

_SCHEMA_KEYS = ("type", "properties", "items", "anyOf", "oneOf", "enum", "$ref")


def simple_type(name: Any) -> dict[str, str]:
    """Map a loose type name ("int", "float", "bool", "list", ...) to a JSON type."""
    s = str(name).lower()
    if any(t in s for t in ("int", "number", "float")):
        return {"type": "number"}
    if "bool" in s:
        return {"type": "boolean"}
    if "array" in s or "list" in s:
        return {"type": "array"}
    if "object" in s or "map" in s:
        return {"type": "object"}
    return {"type": "string"}


def _schemaish(spec: Mapping[str, Any]) -> dict[str, Any]:
    # Schema-looking objects are kept, minus the registry-only boolean `required`
    if any(k in spec for k in _SCHEMA_KEYS):
        return {k: v for k, v in spec.items() if not (k == "required" and isinstance(v, bool))}

    out: dict[str, Any] = {}
    if spec.get("kind"):
        out.update(simple_type(spec["kind"]))
    if spec.get("description"):
        out["description"] = spec["description"]
    if "default" in spec:
        out["default"] = spec["default"]
    return out


def build_params_schema(entry: Mapping[str, Any] | None) -> dict[str, Any]:
    """
    @brief
    JSON schema for the params of one registry entry.

    @params
        entry : Mapping | None
            Raw registry entry. None or an entry without a contract → any object.

    @returns
        A draft 2020-12 schema object that always allows additional properties.
    """
    entry = thaw(entry or {})

    direct = entry.get("parametersSchema") or entry.get("paramsSchema")
    if isinstance(direct, Mapping):
        return {"type": "object", "additionalProperties": True, **direct}

    parameters = entry.get("parameters") or entry.get("params")
    if not isinstance(parameters, Mapping):
        return dict(ANY_OBJECT)

    properties: dict[str, Any] = {}
    required: list[str] = []
    for name, spec in parameters.items():
        if isinstance(spec, str):
            properties[name] = simple_type(spec)
        elif isinstance(spec, Mapping):
            properties[name] = _schemaish(spec)
            if spec.get("required") is True:
                required.append(name)
        else:
            properties[name] = {}

    return {
        "type": "object",
        "properties": properties,
        "required": required,
        "additionalProperties": True,
    }


def compile_params_validator(schema: Mapping[str, Any]) -> Draft202012Validator:
    """Compile a params schema; registry schemas are trusted not to be self-invalid."""
    return Draft202012Validator(dict(schema))


def describe_params_errors(validator: Draft202012Validator, params: Any) -> list[str]:
    """
    @brief
    All schema errors for `params`, one string each, in a stable order.

    @details
    Messages are prefixed with the JSON pointer of the failing value, or
    "params" for errors at the root.
    """
    rendered = []
    for e in validator.iter_errors(thaw(params)):
        loc = "/" + "/".join(str(p) for p in e.absolute_path) if e.absolute_path else "params"
        rendered.append(f"{loc} {e.message}")
    return sorted(rendered)


__all__ = [
    "ANY_OBJECT",
    "build_params_schema",
    "compile_params_validator",
    "describe_params_errors",
    "simple_type",
]
