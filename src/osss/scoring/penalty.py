# src/osss/scoring/penalty.py
"""
@brief
Penalty models: convert a soft-rule violation amount into penalty points.

@details
A constraint's `penalty` descriptor is parsed into exactly one model class,
selected by its `model` tag:

    linear          weight * x + perViolation
    quadratic       weight * x ** exponent          (exponent default 2)
    exponential     weight * (base ** x - 1)        (base > 0, default e)
    logarithmic     weight * ln(1 + x)
    step | flat     weight                          (for any x > 0)
    lexicographic   weight * 1e9 * x                (weight default 1)
    piecewise | tiered
                    tiers sorted by upTo; each upTo tier absorbs up to `upTo`
                    units at its own weight, an `above` tier absorbs the rest,
                    any remainder is charged at the base weight

Unknown tags fall back to weight * x. A missing tag means linear.

penalty() is total: malformed descriptors and non-finite or non-positive
amounts yield 0. Use parse_penalty_model() when the caller needs to know that a
descriptor is malformed.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping
from typing import Annotated, Any, Literal, Union

from pydantic import (
    BaseModel,
    Discriminator,
    Field,
    Tag,
    TypeAdapter,
    model_validator,
)
from pydantic import ValidationError as PydanticValidationError

from osss.errors import PenaltyModelError
from osss.index.builder import thaw

logger = logging.getLogger(__name__)

LEXICOGRAPHIC_SCALE = 1e9


class _PenaltyModel(BaseModel):
    """Common fields of all penalty models."""

    model_config = {
        "extra": "allow",  # descriptors may carry notes/labels
        "populate_by_name": True,
        "frozen": True,
    }

    weight: float = 0.0

    def compute(self, x: float) -> float:
        raise NotImplementedError

    def describe(self) -> str:
        return f"{self.model} (weight={self.weight:g})"  # type: ignore[attr-defined]


class LinearPenalty(_PenaltyModel):
    model: Literal["linear"] = "linear"
    per_violation: float = Field(0.0, alias="perViolation")

    def compute(self, x: float) -> float:
        return self.weight * x + self.per_violation

    def describe(self) -> str:
        return f"{self.weight:g} per unit"


class QuadraticPenalty(_PenaltyModel):
    model: Literal["quadratic"]
    exponent: float = 2.0

    def compute(self, x: float) -> float:
        return self.weight * math.pow(x, self.exponent or 2.0)

    def describe(self) -> str:
        return f"{self.weight:g} * x^{self.exponent:g}"


class ExponentialPenalty(_PenaltyModel):
    model: Literal["exponential"]
    base: float = Field(math.e, gt=0)

    def compute(self, x: float) -> float:
        if self.weight == 0:
            return 0.0
        return self.weight * (math.pow(self.base, x) - 1)

    def describe(self) -> str:
        base = "e" if self.base == math.e else f"{self.base:g}"
        return f"{self.weight:g} * {base}^x"


class LogarithmicPenalty(_PenaltyModel):
    model: Literal["logarithmic"]

    def compute(self, x: float) -> float:
        return self.weight * math.log1p(x)

    def describe(self) -> str:
        return f"{self.weight:g} * ln(1 + x)"


class StepPenalty(_PenaltyModel):
    model: Literal["step", "flat"]

    def compute(self, x: float) -> float:
        return self.weight if x > 0 else 0.0

    def describe(self) -> str:
        return f"{self.weight:g} per violation"


class LexicographicPenalty(_PenaltyModel):
    model: Literal["lexicographic"]
    weight: float = 1.0

    def compute(self, x: float) -> float:
        return (self.weight or 1.0) * LEXICOGRAPHIC_SCALE * x

    def describe(self) -> str:
        return f"priority rank (weight={self.weight:g})"


class PiecewiseTier(BaseModel):
    """One tier of a piecewise model: either bounded (`upTo`) or catch-all (`above`)."""

    model_config = {"extra": "forbid", "populate_by_name": True, "frozen": True}

    up_to: float | None = Field(None, alias="upTo", gt=0)
    above: float | None = None
    weight: float = 0.0

    @model_validator(mode="after")
    def _bounded_or_catch_all(self) -> PiecewiseTier:
        if self.up_to is None and self.above is None:
            raise ValueError("piecewise tier needs either 'upTo' or 'above'")
        return self


class PiecewisePenalty(_PenaltyModel):
    model: Literal["piecewise", "tiered"]
    tiers: list[PiecewiseTier] = Field(default_factory=list)

    def compute(self, x: float) -> float:
        remaining = x
        total = 0.0
        ordered = sorted(self.tiers, key=lambda t: t.up_to if t.up_to is not None else math.inf)
        for tier in ordered:
            if remaining <= 0:
                break
            if tier.up_to is not None:
                used = min(remaining, tier.up_to)
                total += used * tier.weight
                remaining -= used
            else:
                total += remaining * tier.weight
                remaining = 0
        if remaining > 0:
            total += remaining * self.weight
        return total

    def describe(self) -> str:
        return f"tiered ({len(self.tiers)} tiers)"


class UnknownPenalty(_PenaltyModel):
    """Unrecognized model tag: charged linearly without perViolation."""

    model: str

    def compute(self, x: float) -> float:
        return self.weight * x


_TAGS = {
    "linear": "linear",
    "quadratic": "quadratic",
    "exponential": "exponential",
    "logarithmic": "logarithmic",
    "step": "step",
    "flat": "step",
    "lexicographic": "lexicographic",
    "piecewise": "piecewise",
    "tiered": "piecewise",
}


def _model_tag(value: Any) -> str:
    model = value.get("model") if isinstance(value, dict) else getattr(value, "model", None)
    if model is None:
        return "linear"
    return _TAGS.get(model, "unknown") if isinstance(model, str) else "unknown"


PenaltyModel = Annotated[
    Union[
        Annotated[LinearPenalty, Tag("linear")],
        Annotated[QuadraticPenalty, Tag("quadratic")],
        Annotated[ExponentialPenalty, Tag("exponential")],
        Annotated[LogarithmicPenalty, Tag("logarithmic")],
        Annotated[StepPenalty, Tag("step")],
        Annotated[LexicographicPenalty, Tag("lexicographic")],
        Annotated[PiecewisePenalty, Tag("piecewise")],
        Annotated[UnknownPenalty, Tag("unknown")],
    ],
    Discriminator(_model_tag),
]

_ADAPTER: TypeAdapter[Any] = TypeAdapter(PenaltyModel)


def parse_penalty_model(descriptor: Any) -> _PenaltyModel:
    """
    @brief
    Parse a penalty descriptor into its model class.

    @raises
        PenaltyModelError if the descriptor is not an object or its fields do not
        fit the selected model (including piecewise tiers with neither upTo nor
        above).
    """
    if isinstance(descriptor, _PenaltyModel):
        return descriptor
    if not isinstance(descriptor, Mapping):
        raise PenaltyModelError(
            message=f"Penalty descriptor must be an object, got {type(descriptor).__name__}",
            source="parse_penalty_model",
        )
    try:
        return _ADAPTER.validate_python(thaw(descriptor))
    except PydanticValidationError as e:
        details = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'][1:]) or '(root)'}: {err['msg']}"
            for err in e.errors()
        )
        raise PenaltyModelError(
            message=f"Invalid penalty descriptor: {details}",
            source="parse_penalty_model",
            suggested_action="Check the penalty model fields (weight, tiers, exponent, base).",
        ) from e


def _as_amount(value: Any) -> float:
    if isinstance(value, bool):
        return 0.0
    try:
        x = float(value)
    except (TypeError, ValueError):
        return 0.0
    return x if math.isfinite(x) and x > 0 else 0.0


def penalty(descriptor: Any, amount: Any) -> float:
    """
    @brief
    Penalty points for a violation amount under a descriptor.

    @details
    Never raises. A malformed descriptor, a missing descriptor and any
    non-positive or non-finite amount all give 0, as does a computation that is
    undefined for the amount. Overflow gives an infinite penalty with the sign
    of the weight (0 when the weight is 0).
    """
    x = _as_amount(amount)
    if x == 0.0 or descriptor is None:
        return 0.0
    try:
        model = parse_penalty_model(descriptor)
    except PenaltyModelError as e:
        logger.debug("Penalty descriptor ignored: %s", e.message)
        return 0.0
    try:
        value = float(model.compute(x))
    except OverflowError:
        return math.copysign(math.inf, model.weight) if model.weight else 0.0
    except (ValueError, ZeroDivisionError) as e:
        logger.debug("Penalty model %s undefined at x=%g: %s", model.describe(), x, e)
        return 0.0
    return 0.0 if math.isnan(value) else value


def describe_penalty_model(descriptor: Any) -> str:
    """Short human-readable summary of a descriptor ("no penalty" when absent)."""
    if descriptor is None:
        return "no penalty"
    try:
        return parse_penalty_model(descriptor).describe()
    except PenaltyModelError:
        return "invalid penalty model"


__all__ = [
    "ExponentialPenalty",
    "LexicographicPenalty",
    "LinearPenalty",
    "LogarithmicPenalty",
    "PenaltyModel",
    "PiecewisePenalty",
    "PiecewiseTier",
    "QuadraticPenalty",
    "StepPenalty",
    "UnknownPenalty",
    "describe_penalty_model",
    "parse_penalty_model",
    "penalty",
]
