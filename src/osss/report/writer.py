# src/osss/report/writer.py
from __future__ import annotations

import json
import logging
import math
import os
import tempfile
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from osss.errors import DataError
from osss.report.model import ValidationReport

logger = logging.getLogger(__name__)

REPORT_FILENAME = "validation_report.json"


def to_json(payload: Any) -> str:
    """
    @brief
    Serialize a report or document to indented JSON.

    @details
    Non-finite floats (an exponential penalty may overflow to inf) are not
    valid JSON and are written as strings instead.

    @raises
        DataError if the payload is not JSON-serializable.
    """
    try:
        return json.dumps(_finite(payload), ensure_ascii=False, indent=2)
    except (TypeError, ValueError) as e:
        raise DataError(
            f"payload not JSON-serializable: {e}",
            source="report.to_json",
            suggested_action="Ensure report details only contain JSON primitives.",
        ) from e


def write_report(
    report: ValidationReport | Mapping[str, Any],
    out_dir: Path,
    filename: str = REPORT_FILENAME,
) -> Path:
    """
    @brief
    Write a validation report atomically.

    @params
        report : ValidationReport | Mapping
            Report object or its to_dict() form.
        out_dir : Path
            Target directory (created if missing).

    @returns
        Path to the written file.
    """
    payload = report.to_dict() if isinstance(report, ValidationReport) else dict(report)
    target = Path(out_dir) / filename
    atomic_write_text(target, to_json(payload) + "\n")
    logger.info("Validation report written to %s", target)
    return target


def write_document(document: Mapping[str, Any], path: Path) -> Path:
    """Write a (rewritten) result document atomically, e.g. in fix-scores mode."""
    target = Path(path)
    atomic_write_text(target, to_json(document) + "\n")
    logger.info("Document written to %s", target)
    return target


def atomic_write_text(path: Path, text: str, encoding: str = "utf-8") -> None:
    """
    @brief
    Atomic text file write through a temporary file swap.

    @details
    Writes to a temporary file in the target directory, then replaces the
    destination in a single filesystem operation, so readers never observe
    a half-written report.

    @raises
        DataError
            On write or rename failure.
    """
    path = Path(path)
    tmp_dir = path.parent
    tmp_dir.mkdir(parents=True, exist_ok=True)

    # (1) Temporary file next to the target
    fd, tmp_path = tempfile.mkstemp(prefix=path.name + ".", dir=str(tmp_dir))
    try:
        with open(fd, "w", encoding=encoding, newline="") as f:
            f.write(text)
        os.replace(tmp_path, path)
    except OSError as e:
        # (2) Clean up temp file on error
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
        raise DataError(
            f"atomic write failed for {path}: {e}",
            source="report.atomic_write_text",
            suggested_action="Check output directory permissions and disk space.",
        ) from e


def render_text(report: ValidationReport | Mapping[str, Any]) -> str:
    """
    @brief
    Human-readable rendering of a report for terminal output.
    """
    data = report.to_dict() if isinstance(report, ValidationReport) else report
    lines = [f"{'VALID' if data.get('valid') else 'INVALID'} (exit {data.get('exitCode')}): {data.get('summary')}"]

    details = data.get("details") or {}
    if "feasible" in details:
        lines.append(f"  feasible: {details['feasible']}")
    if details.get("totalPenalty") is not None:
        lines.append(f"  total penalty (recomputed): {details['totalPenalty']:g}")
    if details.get("reportedTotalPenalty") is not None:
        lines.append(f"  total penalty (reported):   {details['reportedTotalPenalty']:g}")

    for v in details.get("hardViolations") or []:
        lines.append(f"  [HARD] {v.get('constraintId')}: {v.get('message')}")
    for line in details.get("byConstraint") or []:
        lines.append(
            f"  [SOFT] {line.get('constraintId')}: violations={line.get('violations')} "
            f"penalty={line.get('penalty'):g}"
        )
    for row in details.get("ranking") or []:
        lines.append(
            f"  #{row['rank']} {row['label']}: valid={row['valid']} feasible={row['feasible']} "
            f"hard={row['hardViolations']} penalty={row['totalPenalty']:g}"
        )
    for row in details.get("bundle") or []:
        result = "-" if row["result"] is None else row["result"]
        lines.append(
            f"  {row['example']}: exit={row['exitCode']} instance={row['instance']} result={result}"
        )

    for kind, tag in (("errors", "ERROR"), ("warnings", "WARN")):
        for entry in data.get(kind) or []:
            text = f"  [{tag}] {entry.get('check')}: {entry.get('message')}"
            if entry.get("suggested_action"):
                text += f" ({entry['suggested_action']})"
            lines.append(text)
    return "\n".join(lines)


def _finite(value: Any) -> Any:
    if isinstance(value, float) and not math.isfinite(value):
        return str(value)
    if isinstance(value, Mapping):
        return {k: _finite(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_finite(v) for v in value]
    return value


__all__ = [
    "REPORT_FILENAME",
    "atomic_write_text",
    "render_text",
    "to_json",
    "write_document",
    "write_report",
]
