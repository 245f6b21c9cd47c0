# src/osss/dataloader/config_loader.py
from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from osss.errors import ConfigError
from osss.schemas.models import Config

logger = logging.getLogger(__name__)


class ConfigLoader:
    """
    @brief
    Reads and validates the validator's runtime configuration.

    @details
    Reads YAML from disk, checks that it is a non-empty mapping and validates
    it against the pydantic `Config` model. Every failure mode surfaces as a
    structured `ConfigError`.
    """

    def load(self, path: Path, overrides: Mapping[str, Any] | None = None) -> Config:
        """
        @brief
        Load configuration from a YAML file.

        @params
            path : Path
                Filesystem path to the configuration file (.yaml or .yml).
            overrides : Mapping | None
                Values that take precedence over the file (e.g. CLI flags).
                Keys whose value is None are ignored.

        @returns
            Validated Config instance.

        @raises
            ConfigError
                Raised if the file is missing, malformed, or fails validation.
        """
        # (1) Read and parse YAML configuration file
        data = self._read_yaml(path)

        # (2) Apply explicit overrides
        if overrides:
            data.update({k: v for k, v in overrides.items() if v is not None})

        # (3) Validate mapping against the pydantic model
        cfg = self._validate(data)
        logger.info("Configuration loaded from %s", path)
        return cfg

    def from_mapping(self, data: Mapping[str, Any] | None = None) -> Config:
        """Validate an in-memory mapping (defaults when None)."""
        return self._validate(dict(data or {}))

    def _read_yaml(self, path: Path) -> dict[str, Any]:
        """
        @brief
        Read a YAML file into a plain dict with strict checks.

        @raises
            ConfigError
                Raised on invalid path type, missing file, wrong extension,
                I/O error, syntax error, empty file, or non-mapping root.
        """
        # (1) Validate path type and existence
        if not isinstance(path, Path):
            raise ConfigError(
                message=f"Invalid path type: expected pathlib.Path, got {type(path).__name__}",
                source="ConfigLoader._read_yaml",
                suggested_action="Pass a pathlib.Path object pointing to config.yaml.",
            )

        if not path.exists():
            raise ConfigError(
                message=f"Configuration file not found: {path}",
                source="ConfigLoader._read_yaml",
                suggested_action="Ensure config.yaml exists and the path is correct.",
            )

        # (2) Enforce correct file extension
        if path.suffix.lower() not in {".yaml", ".yml"}:
            raise ConfigError(
                message=f"Invalid configuration file extension: {path.suffix}",
                source="ConfigLoader._read_yaml",
                suggested_action="Use .yaml or .yml extension for configuration files.",
            )

        # (3) Read and parse YAML content
        try:
            with path.open("r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(
                message=f"YAML parsing failed: {e}",
                source="ConfigLoader._read_yaml",
                suggested_action="Fix YAML syntax or indentation.",
            ) from e
        except OSError as e:
            raise ConfigError(
                message=f"Unable to read configuration file: {e}",
                source="ConfigLoader._read_yaml",
                suggested_action="Check file permissions and path accessibility.",
            ) from e

        # (4) Root must be a non-empty mapping
        if data is None:
            raise ConfigError(
                message="Configuration file is empty.",
                source="ConfigLoader._read_yaml",
                suggested_action="Populate config.yaml or omit --config to use defaults.",
            )

        if not isinstance(data, Mapping):
            raise ConfigError(
                message="Configuration root must be a mapping (key: value pairs).",
                source="ConfigLoader._read_yaml",
                suggested_action="Ensure top-level YAML structure uses key: value mappings.",
            )

        return dict(data)

    def _validate(self, data: dict[str, Any]) -> Config:
        try:
            return Config(**data)
        except ValidationError as e:
            raise ConfigError(
                message=f"Invalid configuration structure: {e}",
                source="ConfigLoader._validate",
                suggested_action=(
                    "Check field names, types, and bounds in config.yaml. "
                    "Remove unknown keys (extra fields are forbidden)."
                ),
            ) from e


__all__ = ["ConfigLoader"]
