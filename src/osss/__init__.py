"""OSSS schedule validator: constraint evaluation, scoring and result auditing."""

__version__ = "0.3.0"
