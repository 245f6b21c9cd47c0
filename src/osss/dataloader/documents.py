# src/osss/dataloader/documents.py
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from osss.errors import DataError

logger = logging.getLogger(__name__)


class DocumentLoader:
    """
    Loads Instance and Result JSON documents.

    Rules:
      - UTF-8 JSON files with a .json extension
      - root must be a JSON object
    Any failure raises DataError; the document itself is returned unchanged
    (its shape is checked later by the validators).
    """

    def load(self, path: Path, kind: str = "document") -> dict[str, Any]:
        doc = self._read_json(Path(path), kind)
        if not isinstance(doc, dict):
            raise DataError(
                message=f"{kind.capitalize()} root must be a JSON object, got {type(doc).__name__}: {path}",
                source="DocumentLoader.load",
                suggested_action=f"Wrap the {kind} in a single top-level JSON object.",
            )
        logger.info("Loaded %s: %s", kind, path)
        return doc

    def load_many(self, paths: list[Path], kind: str = "result") -> dict[str, dict[str, Any]]:
        """Load several documents keyed by file name (order preserved)."""
        docs: dict[str, dict[str, Any]] = {}
        for path in paths:
            label = Path(path).name
            if label in docs:
                label = str(path)
            docs[label] = self.load(path, kind)
        return docs

    # ------------------------------
    # Internal helpers
    # ------------------------------
    @staticmethod
    def _read_json(path: Path, kind: str) -> Any:
        if not path.exists():
            raise DataError(
                message=f"{kind.capitalize()} file not found: {path}",
                source="DocumentLoader._read_json",
                suggested_action="Verify the file path.",
            )
        if path.suffix.lower() != ".json":
            raise DataError(
                message=f"Invalid {kind} file extension: {path.suffix or '(none)'}",
                source="DocumentLoader._read_json",
                suggested_action="OSSS documents are JSON files with a .json extension.",
            )
        try:
            with path.open("r", encoding="utf-8") as f:
                return json.load(f)
        except json.JSONDecodeError as e:
            raise DataError(
                message=f"Invalid JSON in {path}: {e.msg} (line {e.lineno}, column {e.colno})",
                source="DocumentLoader._read_json",
                suggested_action="Fix the JSON syntax.",
            ) from e
        except (OSError, UnicodeDecodeError) as e:
            raise DataError(
                message=f"Unable to read {kind} file {path}: {e}",
                source="DocumentLoader._read_json",
                suggested_action="Check file permissions and encoding (UTF-8).",
            ) from e


__all__ = ["DocumentLoader"]
