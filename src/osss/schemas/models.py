# src/osss/schemas/models.py
"""
@brief
Pydantic data models for the OSSS validator.

@details
Defines the canonical model types shared across the engine:
    - Config: runtime configuration (from config.yaml), including nested policy blocks
    - ConstraintSpec: one entry of instance.constraints[], parsed leniently
    - ScoreEntry: one entry of result.scores.byConstraint[]

Instance and Result documents themselves stay plain JSON mappings: their shape is
governed by the published OSSS schemas, not by these models.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, Field, field_validator


class _StrictBaseModel(BaseModel):
    """
    @brief
    Base model enforcing strict defaults for configuration contracts.

    @details
    Forbids unknown fields and preserves exact naming rules.
    """

    model_config = {
        "extra": "forbid",  # Reject unknown fields
        "populate_by_name": True,  # Allow population by field name
        "use_enum_values": True,
    }


class _DocumentModel(BaseModel):
    """Lenient base for models parsed out of OSSS documents (unknown keys kept)."""

    model_config = {
        "extra": "allow",
        "populate_by_name": True,
        "frozen": True,
    }


# ------------------------------------------------------------
# Runtime configuration
# ------------------------------------------------------------
class IOPolicy(BaseModel):
    """
    @brief
    Controls which artifacts a validation run writes.
    """

    write_report: bool = Field(True, description="Write validation_report.json to output_dir.")
    write_metrics: bool = Field(False, description="Write metrics.json to output_dir.")


class ValidationConfig(BaseModel):
    """
    @brief
    Controls report strictness.

    @details
    With fail_on_warnings the report is invalid (exit code 1) as soon as any
    warning was collected.
    """

    fail_on_warnings: bool = False


class Config(_StrictBaseModel):
    """
    @brief
    Represents the full runtime configuration loaded from config.yaml.

    @details
    Covers index building defaults, rule lookup strictness, score reconciliation
    tolerance, evaluation parallelism and artifact locations.
    """

    default_duration_minutes: int = Field(
        90, gt=0, description="Fixture duration used when neither endTime nor durationMinutes is set"
    )
    timezone: str = Field("UTC", description="IANA timezone used when the instance declares none")
    strict_missing_rules: bool = Field(
        False, description="Missing implementation of a hard rule is an error instead of a warning"
    )
    score_tolerance: float = Field(
        1e-6, ge=0.0, description="Absolute tolerance when comparing penalties"
    )
    fix_scores: bool = Field(
        False, description="Rewrite the result score ledger with recomputed values"
    )
    workers: int = Field(1, ge=1, description="Threads used to evaluate constraints")
    rule_timeout_seconds: float | None = Field(
        None, gt=0.0, description="Per-rule evaluation timeout (requires workers > 1)"
    )
    validated_by: str = Field("osss-validator", description="Provenance stamp for fixed scores")

    schemas_dir: str | None = None
    registry_dir: str | None = None
    output_dir: str | None = "data/output"
    io_policy: IOPolicy = Field(default_factory=IOPolicy.model_construct)
    validation: ValidationConfig = Field(default_factory=ValidationConfig.model_construct)


# ------------------------------------------------------------
# Document models
# ------------------------------------------------------------
class ConstraintSpec(_DocumentModel):
    """
    @brief
    One constraint declared by an instance.

    @details
    ruleId is optional on purpose: a constraint without one is reported as a
    violation by the evaluator rather than rejected at parse time. The legacy
    key `rule` is accepted as an alias. Type defaults to hard; anything other
    than "soft" (case-insensitive) is treated as hard.
    """

    id: str | None = None
    rule_id: str | None = Field(None, validation_alias=AliasChoices("ruleId", "rule", "rule_id"))
    type: Literal["hard", "soft"] = "hard"
    selector: Any = None
    params: Any = None
    penalty: Any = None
    priority: Any = None
    tags: list[str] = Field(default_factory=list)

    @field_validator("type", mode="before")
    @classmethod
    def _coerce_type(cls, value: Any) -> str:
        return "soft" if str(value or "hard").lower() == "soft" else "hard"

    @field_validator("rule_id", "id", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        if value is None:
            return None
        value = str(value).strip()
        return value or None

    @field_validator("tags", mode="before")
    @classmethod
    def _tags_list(cls, value: Any) -> list[str]:
        if value is None:
            return []
        if isinstance(value, str):
            return [value]
        if not isinstance(value, (list, tuple, set, frozenset)):
            raise ValueError(f"tags must be a string or a list, got {type(value).__name__}")
        return [str(v) for v in value]

    @property
    def label(self) -> str:
        """Identifier used in messages: constraint id, else rule id."""
        return self.id or self.rule_id or "<unnamed>"

    @property
    def is_soft(self) -> bool:
        return self.type == "soft"


class ScoreEntry(_DocumentModel):
    """One self-reported line of result.scores.byConstraint."""

    constraint_id: str | None = Field(
        None, validation_alias=AliasChoices("constraintId", "constraint_id")
    )
    violations: float = 0
    penalty: float = 0
    explanation: Any = None

    @field_validator("constraint_id", mode="before")
    @classmethod
    def _id_to_str(cls, value: Any) -> str | None:
        return None if value is None else str(value)

    @field_validator("violations", "penalty", mode="before")
    @classmethod
    def _number_or_zero(cls, value: Any) -> float:
        if isinstance(value, bool):
            return float(value)
        try:
            return float(value)
        except (TypeError, ValueError):
            return 0.0

    def to_line(self) -> dict[str, Any]:
        """Render back into the byConstraint wire shape."""
        line: dict[str, Any] = {
            "constraintId": self.constraint_id,
            "violations": self.violations,
            "penalty": self.penalty,
        }
        if self.explanation is not None:
            line["explanation"] = self.explanation
        return line


__all__ = ["Config", "ConstraintSpec", "IOPolicy", "ScoreEntry", "ValidationConfig"]
