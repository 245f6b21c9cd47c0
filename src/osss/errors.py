# src/osss/errors.py
from __future__ import annotations

from datetime import datetime, timezone


class OsssError(Exception):
    """Base class for all structured OSSS validator exceptions."""

    def __init__(
        self, message: str, source: str | None = None, suggested_action: str | None = None
    ):
        super().__init__(message)
        self.timestamp = datetime.now(timezone.utc).isoformat()
        self.error_type = self.__class__.__name__
        self.source = source or "unknown"
        self.suggested_action = suggested_action

    @property
    def message(self) -> str:
        return str(self.args[0])

    def __str__(self) -> str:
        base = f"[{self.error_type}] {self.args[0]}"
        if self.source:
            base += f" (source={self.source})"
        if self.suggested_action:
            base += f" | action: {self.suggested_action}"
        return base


class ConfigError(OsssError):
    """Invalid or missing configuration (config.yaml)"""


class DataError(OsssError):
    """Malformed or unreadable instance/result documents"""


class RegistryError(OsssError):
    """Broken constraint registry or duplicate rule registration"""


class SelectorError(OsssError):
    """Selector document that cannot be parsed into a selector tree"""


class PenaltyModelError(OsssError):
    """Malformed penalty descriptor on a soft constraint"""


class RuleExecutionError(OsssError):
    """A rule implementation failed or timed out while evaluating a constraint.

    Rules may raise it themselves to report a fault with a suggested action.
    """


class NormalizationFailure(OsssError):
    """Result document could not be mapped into the canonical shape"""
