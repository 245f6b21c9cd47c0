# scripts/validate.py
from __future__ import annotations

import argparse
import logging
import sys
import traceback
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from osss.dataloader.config_loader import ConfigLoader
from osss.dataloader.documents import DocumentLoader
from osss.errors import OsssError
from osss.metrics.summary import collect_metrics, write_metrics
from osss.registry.loader import RuleRegistry, load_registry
from osss.report.model import EXIT_CONTRACT, ValidationReport
from osss.report.writer import render_text, to_json, write_document, write_report
from osss.schemas.catalog import SchemaCatalog
from osss.schemas.models import Config
from osss.validator.bundle import validate_bundle
from osss.validator.compare import compare_results
from osss.validator.instance import validate_instance
from osss.validator.result import validate_result


def _setup_logging(verbose: bool = False) -> None:
    """
    @brief
    Initializes global logging configuration.

    @details
    INFO by default, DEBUG with --verbose. Log lines go to stderr so that
    --format json output on stdout stays machine-readable.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="[%(levelname)s] %(message)s",
        stream=sys.stderr,
    )


def _build_parser() -> argparse.ArgumentParser:
    """
    @brief
    Command-line interface of the OSSS validator.

    @details
    Four sub-commands share the global options:
    - instance: static checks of an instance,
    - result: validate and re-score one result,
    - compare: validate and rank several results of one instance,
    - bundle: validate every example folder of a directory.
    """
    parser = argparse.ArgumentParser(
        prog="osss-validate",
        description="Validate OSSS instances and results: schema → constraints → re-score → report",
    )

    # (1) Global options
    parser.add_argument("--config", type=str, default=None, help="Path to config YAML (optional)")
    parser.add_argument("--schemas", type=str, default=None, help="Directory of OSSS JSON schemas")
    parser.add_argument("--registry", type=str, default=None, help="Directory with constraints.json")
    parser.add_argument(
        "--format", choices=("text", "json"), default="text", help="Report format on stdout"
    )
    parser.add_argument(
        "--output-dir", type=str, default=None, help="Directory for validation_report.json"
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")

    sub = parser.add_subparsers(dest="command", required=True)

    # (2) instance
    p_inst = sub.add_parser("instance", help="Validate an instance document")
    p_inst.add_argument("instance", type=str)

    # (3) result
    p_res = sub.add_parser("result", help="Validate and re-score a result document")
    p_res.add_argument("instance", type=str)
    p_res.add_argument("result", type=str)
    p_res.add_argument(
        "--fix-scores",
        action="store_true",
        help="Rewrite scores.byConstraint/totalPenalty with recomputed values",
    )
    p_res.add_argument(
        "--out", type=str, default=None, help="Where to write the fixed result (default: in place)"
    )
    p_res.add_argument(
        "--strict",
        action="store_true",
        help="Hard constraints without an implementation are errors",
    )

    # (4) compare
    p_cmp = sub.add_parser("compare", help="Validate and rank several results")
    p_cmp.add_argument("instance", type=str)
    p_cmp.add_argument("results", type=str, nargs="+")

    # (5) bundle
    p_bnd = sub.add_parser("bundle", help="Validate every example folder of a directory")
    p_bnd.add_argument("examples", type=str, help="Directory of example folders")
    p_bnd.add_argument(
        "--require-results",
        action="store_true",
        help="An example without osss-results.json is an error",
    )

    return parser


def _load_config(args: argparse.Namespace) -> Config:
    overrides: dict[str, Any] = {
        "schemas_dir": args.schemas,
        "registry_dir": args.registry,
        "output_dir": args.output_dir,
    }
    if getattr(args, "fix_scores", False):
        overrides["fix_scores"] = True
    if getattr(args, "strict", False):
        overrides["strict_missing_rules"] = True

    loader = ConfigLoader()
    if args.config:
        return loader.load(Path(args.config), overrides)
    return loader.from_mapping({k: v for k, v in overrides.items() if v is not None})


def _capabilities(cfg: Config) -> tuple[RuleRegistry | None, SchemaCatalog | None]:
    registry = load_registry(cfg.registry_dir) if cfg.registry_dir else None
    schemas = SchemaCatalog.from_dir(Path(cfg.schemas_dir)) if cfg.schemas_dir else None
    if registry is None:
        logging.warning("No registry given: params contracts are not checked")
    if schemas is None:
        logging.warning("No schemas given: structural validation is limited to normalization")
    return registry, schemas


def run_command(args: argparse.Namespace) -> ValidationReport:
    """
    @brief
    Execute one sub-command and persist its artifacts.

    @details
    (1) Load configuration, registry and schemas.
    (2) Load documents and run the matching front door.
    (3) Write the fixed result (fix-scores), the report and metrics as
        configured by io_policy.

    @returns
        The finished ValidationReport.

    @raises
        OsssError
            On configuration, registry or document problems.
    """
    # (1) Configuration and capabilities
    cfg = _load_config(args)
    registry, schemas = _capabilities(cfg)
    docs = DocumentLoader()
    out_dir = Path(cfg.output_dir) if cfg.output_dir else None

    # (2) Front door
    metrics: dict[str, Any] | None = None
    if args.command == "bundle":
        report = validate_bundle(
            Path(args.examples),
            cfg,
            registry=registry,
            schemas=schemas,
            require_results=args.require_results,
        ).report
    elif args.command == "instance":
        report = validate_instance(
            docs.load(Path(args.instance), "instance"), registry, schemas, cfg=cfg
        )
    elif args.command == "result":
        result_path = Path(args.result)
        instance = docs.load(Path(args.instance), "instance")
        run = validate_result(
            instance, docs.load(result_path, "result"), cfg, registry=registry, schemas=schemas
        )
        report = run.report
        if run.fixed_result is not None:
            target = Path(args.out) if args.out else result_path
            report.details["fixedResultPath"] = write_document(run.fixed_result, target).as_posix()
        if cfg.io_policy.write_metrics:
            metrics = collect_metrics(report, run.index)
    else:
        instance = docs.load(Path(args.instance), "instance")
        results = docs.load_many([Path(p) for p in args.results], "result")
        report = compare_results(instance, results, cfg, registry=registry, schemas=schemas).report

    # (3) Artifacts
    if out_dir is not None:
        if cfg.io_policy.write_report:
            write_report(report, out_dir)
        if metrics is not None:
            write_metrics(metrics, out_dir)
    return report


def main(argv: Sequence[str] | None = None) -> int:
    """
    @brief
    CLI entry point.

    @details
    Returns the report exit code:
      0 valid, 1 contract errors, 2 infeasible, 3 hard violations,
      4 scoring inconsistencies.
    Configuration, registry and document failures exit with 1.
    """
    args = _build_parser().parse_args(argv)
    _setup_logging(args.verbose)

    try:
        report = run_command(args)
    except OsssError as e:
        logging.error(str(e))
        return EXIT_CONTRACT
    except Exception:
        logging.error("Unexpected error occurred:")
        traceback.print_exc()
        return EXIT_CONTRACT

    print(to_json(report.to_dict()) if args.format == "json" else render_text(report))
    return report.exit_code


if __name__ == "__main__":
    sys.exit(main())
