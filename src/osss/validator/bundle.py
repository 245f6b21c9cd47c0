# src/osss/validator/bundle.py
"""
@brief
Validate a directory of example folders in one run.

@details
Each sub-directory of the examples directory is one example: an
`osss-instance.json` plus an optional `osss-results.json`. The instance is
validated statically, the result (when present) is validated and re-scored
against it. Findings of every example are merged into one report, tagged with
the example name, so the bundle exit code is the worst exit code of any
example.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from osss.dataloader.documents import DocumentLoader
from osss.errors import DataError
from osss.registry.loader import RuleRegistry
from osss.report.model import ValidationReport
from osss.schemas.catalog import SchemaValidator
from osss.schemas.models import Config
from osss.validator.instance import validate_instance
from osss.validator.result import validate_result

logger = logging.getLogger(__name__)

INSTANCE_FILE = "osss-instance.json"
RESULT_FILE = "osss-results.json"


@dataclass
class ExampleOutcome:
    """Reports of one example folder (result is None when it was not validated)."""

    name: str
    instance: ValidationReport
    result: ValidationReport | None = None

    @property
    def exit_code(self) -> int:
        return max(self.instance.exit_code, self.result.exit_code if self.result else 0)

    def to_row(self) -> dict[str, Any]:
        return {
            "example": self.name,
            "exitCode": self.exit_code,
            "instance": self.instance.exit_code,
            "result": self.result.exit_code if self.result else None,
        }


@dataclass
class BundleValidation:
    report: ValidationReport
    examples: list[ExampleOutcome] = field(default_factory=list)


def _missing_file(subject: str, path: Path) -> ValidationReport:
    report = ValidationReport(subject)
    report.add_error(
        "MissingFile",
        f"Missing file: {path.as_posix()}",
        entities={"path": path.as_posix()},
    )
    return report


def _unreadable(subject: str, error: DataError) -> ValidationReport:
    report = ValidationReport(subject)
    report.add_error("UnreadableDocument", error.message, suggested_action=error.suggested_action)
    return report


def _merge(bundle: ValidationReport, name: str, part: ValidationReport) -> None:
    """Fold one example report into the bundle report, tagging every entry."""

    def tagged(entries: list[dict[str, Any]]) -> list[dict[str, Any]]:
        return [{**e, "entities": {"example": name, **(e.get("entities") or {})}} for e in entries]

    bundle.extend(tagged(part.errors), tagged(part.warnings))
    bundle.infeasible = bundle.infeasible or part.infeasible
    if part.hard_violations:
        bundle.details.setdefault("hardViolations", []).extend(
            {"example": name, **v} for v in part.hard_violations
        )


def validate_bundle(
    examples_dir: Path,
    cfg: Config | None = None,
    *,
    registry: RuleRegistry | None = None,
    schemas: SchemaValidator | None = None,
    require_results: bool = False,
) -> BundleValidation:
    """
    @brief
    Validate every example folder under examples_dir.

    @details
    (1) A folder without an instance file is a MissingFile error.
    (2) The instance is validated; a result file is validated against it.
    (3) With require_results a folder without a result file is a MissingFile
        error; otherwise the result is simply skipped.
    Folders are visited in name order.

    @raises
        DataError if examples_dir is not a directory.
    """
    cfg = cfg or Config()
    if cfg.fix_scores:
        # Bundles check what was committed; nothing is rewritten here
        cfg = cfg.model_copy(update={"fix_scores": False})
    if not examples_dir.is_dir():
        raise DataError(
            message=f"Examples directory not found: {examples_dir}",
            source="validate_bundle",
            suggested_action="Pass a directory whose sub-folders hold osss-instance.json files.",
        )

    docs = DocumentLoader()
    bundle = BundleValidation(
        ValidationReport("Bundle", fail_on_warnings=cfg.validation.fail_on_warnings)
    )
    for folder in sorted(p for p in examples_dir.iterdir() if p.is_dir()):
        instance_path = folder / INSTANCE_FILE
        result_path = folder / RESULT_FILE
        logger.info("Validating example '%s'", folder.name)

        # (1) Instance
        if not instance_path.is_file():
            outcome = ExampleOutcome(folder.name, _missing_file("Instance", instance_path))
            bundle.examples.append(outcome)
            _merge(bundle.report, folder.name, outcome.instance)
            continue
        try:
            instance = docs.load(instance_path, "instance")
        except DataError as e:
            outcome = ExampleOutcome(folder.name, _unreadable("Instance", e))
            bundle.examples.append(outcome)
            _merge(bundle.report, folder.name, outcome.instance)
            continue
        outcome = ExampleOutcome(
            folder.name, validate_instance(instance, registry, schemas, cfg=cfg)
        )

        # (2) / (3) Result
        if result_path.is_file():
            try:
                result = docs.load(result_path, "result")
            except DataError as e:
                outcome.result = _unreadable("Result", e)
            else:
                outcome.result = validate_result(
                    instance, result, cfg, registry=registry, schemas=schemas
                ).report
        elif require_results:
            outcome.result = _missing_file("Result", result_path)

        bundle.examples.append(outcome)
        _merge(bundle.report, folder.name, outcome.instance)
        if outcome.result is not None:
            _merge(bundle.report, folder.name, outcome.result)

    bundle.report.details["bundle"] = [o.to_row() for o in bundle.examples]
    if not bundle.examples:
        bundle.report.add_warning(
            "EmptyBundle", f"No example folders under {examples_dir.as_posix()}"
        )
    return bundle


__all__ = ["BundleValidation", "ExampleOutcome", "INSTANCE_FILE", "RESULT_FILE", "validate_bundle"]
