# src/osss/validator/instance.py
from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from osss.engine.evaluator import coerce_constraint
from osss.errors import PenaltyModelError, SelectorError
from osss.index.builder import IndexBuilder
from osss.index.types import ScheduleIndex
from osss.registry.loader import RuleRegistry
from osss.registry.param_schema import describe_params_errors
from osss.report.model import ValidationReport
from osss.rules.builtin import DEFAULT_CATALOG
from osss.rules.catalog import RuleCatalog
from osss.schemas.catalog import INSTANCE_SCHEMA_CANDIDATES, SchemaValidator
from osss.schemas.models import Config, ConstraintSpec
from osss.scoring.penalty import parse_penalty_model
from osss.selector.ast import parse_selector

logger = logging.getLogger(__name__)

# Participants that stand for a team decided later in the competition
PLACEHOLDER_PATTERN = re.compile(
    r"^(winner|loser|seed|runner[-_ ]?up|tbd|tba|bye|placeholder)\b", re.IGNORECASE
)


def is_placeholder(participant: str) -> bool:
    return bool(PLACEHOLDER_PATTERN.match(participant))


class InstanceValidator:
    """
    @brief
    Static checks of an Instance document before any result is validated.

    @details
    Runs without a schedule: schema conformance, registry references of
    constraints and objectives, constraint declarations (penalty, selector,
    params) and referential integrity between fixtures, teams and venues.
    Exit code is 0 or 1.
    """

    def __init__(
        self,
        cfg: Config | None = None,
        *,
        registry: RuleRegistry | None = None,
        schemas: SchemaValidator | None = None,
        catalog: RuleCatalog | None = None,
    ) -> None:
        self.cfg = cfg or Config()
        self.registry = registry
        self.schemas = schemas
        self.catalog = catalog if catalog is not None else DEFAULT_CATALOG

    def run(self, instance: Any) -> ValidationReport:
        report = ValidationReport("Instance", fail_on_warnings=self.cfg.validation.fail_on_warnings)
        if not isinstance(instance, Mapping):
            report.add_error(
                "SchemaViolation", f"Instance must be a JSON object, got {type(instance).__name__}"
            )
            return report

        # (1) Structure
        self._check_schema(instance, report)

        # (2) Objectives and constraints
        self._check_objectives(instance, report)
        constraints = instance.get("constraints")
        if isinstance(constraints, list):
            for pos, raw in enumerate(constraints):
                self._check_constraint(pos, raw, report)
        else:
            report.add_warning(
                "NoConstraints", "No constraints[] found on instance (allowed, but unusual)."
            )

        # (3) References between entities
        index = IndexBuilder(self.cfg.default_duration_minutes, self.cfg.timezone).build(instance, {})
        self._check_references(index, report)

        objectives = instance.get("objectives")
        report.details.update(
            {
                "instanceId": instance.get("id"),
                "objectiveCount": len(objectives) if isinstance(objectives, list) else 0,
                "constraintCount": len(constraints) if isinstance(constraints, list) else 0,
                "teamCount": len(index.teams),
                "venueCount": len(index.venues),
                "fixtureCount": len(index.fixtures),
                "timezone": index.timezone,
            }
        )
        logger.info(
            "Instance validation finished: exit=%d, %d error(s), %d warning(s)",
            report.exit_code,
            len(report.errors),
            len(report.warnings),
        )
        return report

    # ---------- Checks ----------
    def _check_schema(self, instance: Mapping[str, Any], report: ValidationReport) -> None:
        if self.schemas is None:
            return
        schema_id = self.schemas.resolve(INSTANCE_SCHEMA_CANDIDATES)
        if schema_id is None:
            report.add_warning(
                "SchemaUnavailable",
                "No OSSS core schema found; structural validation skipped",
                suggested_action="Point --schemas at a directory containing osss-core.schema.json.",
            )
            return
        for message in self.schemas.validate(instance, schema_id):
            report.add_error("SchemaViolation", message)
        report.mark_passed("SchemaViolation")

    def _check_objectives(self, instance: Mapping[str, Any], report: ValidationReport) -> None:
        objectives = instance.get("objectives")
        if self.registry is None or not isinstance(objectives, list):
            return
        for obj in objectives:
            metric = obj.get("metric") if isinstance(obj, Mapping) else None
            if not self.registry.has_objective(metric):
                report.add_warning(
                    "MissingRegistryEntry",
                    f"Objective metric not found in registry: {metric}",
                    {"metric": metric},
                )

    def _check_constraint(self, pos: int, raw: Any, report: ValidationReport) -> None:
        """
        @brief
        Check one constraint declaration.

        @details
        (1) the entry parses and names a ruleId,
        (2) the ruleId is declared in the registry (with close-match hints),
        (3) an implementation exists,
        (4) params satisfy the registry contract,
        (5) the selector parses,
        (6) soft constraints carry a valid penalty descriptor.
        """
        try:
            spec = coerce_constraint(raw)
        except PydanticValidationError as e:
            report.add_error("InvalidConstraint", f"Constraint #{pos} is malformed: {e}")
            return
        entities = {"constraintId": spec.label}

        # (1) ruleId
        rule_id = spec.rule_id
        if not rule_id:
            report.add_error(
                "InvalidConstraint",
                f"Constraint '{spec.label}' is missing ruleId",
                entities,
                suggested_action="Add a ruleId naming a registered rule.",
            )
            return
        entities["ruleId"] = rule_id

        # (2) Registry
        if self.registry is not None and rule_id not in self.registry:
            hints = self.registry.suggest(rule_id)
            report.add_warning(
                "MissingRegistryEntry",
                f"Constraint rule not found in registry: {rule_id}",
                entities,
                suggested_action=(
                    "Did you mean " + ", ".join(f"'{h}'" for h in hints) + "?" if hints else None
                ),
            )

        # (3) Implementation
        if rule_id not in self.catalog:
            report.add_warning(
                "MissingRule",
                f"No rule implementation found for '{rule_id}'; constraint '{spec.label}' "
                "will not be checked",
                entities,
            )

        # (4) Params
        validator = self.registry.params_validator(rule_id) if self.registry is not None else None
        if validator is not None:
            problems = describe_params_errors(
                validator, spec.params if spec.params is not None else {}
            )
            if problems:
                report.add_error(
                    "InvalidParams", f"Invalid params for '{rule_id}': {'; '.join(problems)}", entities
                )

        # (5) Selector
        try:
            parse_selector(spec.selector)
        except SelectorError as e:
            report.add_error("InvalidSelector", f"Constraint '{spec.label}': {e.message}", entities)

        # (6) Penalty
        self._check_penalty(spec, entities, report)

    @staticmethod
    def _check_penalty(
        spec: ConstraintSpec, entities: dict[str, Any], report: ValidationReport
    ) -> None:
        if not spec.is_soft:
            return
        if spec.penalty is None:
            report.add_error(
                "MissingPenalty",
                f"Soft constraint '{spec.label}' missing penalty model",
                entities,
                suggested_action="Declare a penalty descriptor such as a linear model.",
            )
            return
        try:
            parse_penalty_model(spec.penalty)
        except PenaltyModelError as e:
            report.add_error("InvalidPenaltyModel", f"Constraint '{spec.label}': {e.message}", entities)

    def _check_references(self, index: ScheduleIndex, report: ValidationReport) -> None:
        """
        @brief
        Referential integrity between fixtures, teams and venues.

        @details
        Unknown participants are warnings unless they are placeholders such
        as "winner-A1"; a lockedVenueId naming no declared venue is an error
        because locked_venue could never be satisfied.
        """
        for issue in index.issues:
            report.add_warning("MalformedEntry", issue.message)

        for fid, fixture in index.fixtures.items():
            participants = index.participants(fid)
            if len(participants) < 2:
                report.add_warning(
                    "ReferentialIntegrity",
                    f"Fixture '{fid}' has {len(participants)} participant(s), expected at least 2",
                    {"fixtureId": fid},
                )
            if index.teams:
                for team_id in participants:
                    if team_id not in index.teams and not is_placeholder(team_id):
                        report.add_warning(
                            "ReferentialIntegrity",
                            f"Fixture '{fid}' references unknown team '{team_id}'",
                            {"fixtureId": fid, "teamId": team_id},
                        )

            for key in ("homeTeamId", "awayTeamId"):
                side = fixture.get(key)
                if side is not None and str(side) not in participants:
                    report.add_warning(
                        "ReferentialIntegrity",
                        f"Fixture '{fid}' {key} '{side}' is not one of its participants",
                        {"fixtureId": fid},
                    )

            locked = fixture.get("lockedVenueId")
            if locked is not None and str(locked) not in index.venues:
                report.add_error(
                    "ReferentialIntegrity",
                    f"Fixture '{fid}' is locked to unknown venue '{locked}'",
                    {"fixtureId": fid, "venueId": str(locked)},
                    suggested_action="Declare the venue or remove lockedVenueId.",
                )
        report.mark_passed("ReferentialIntegrity")


def validate_instance(
    instance: Any,
    registry: RuleRegistry | None = None,
    schemas: SchemaValidator | None = None,
    *,
    cfg: Config | None = None,
    catalog: RuleCatalog | None = None,
) -> ValidationReport:
    """Convenience wrapper around InstanceValidator.run()."""
    return InstanceValidator(cfg, registry=registry, schemas=schemas, catalog=catalog).run(instance)


__all__ = ["InstanceValidator", "PLACEHOLDER_PATTERN", "is_placeholder", "validate_instance"]
