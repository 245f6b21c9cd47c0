from osss.report.model import (
    EXIT_CONTRACT,
    EXIT_HARD_VIOLATIONS,
    EXIT_INFEASIBLE,
    EXIT_OK,
    EXIT_SCORING,
    SCORING_CHECKS,
    ValidationReport,
    make_entry,
)
from osss.report.writer import render_text, write_document, write_report

__all__ = [
    "EXIT_CONTRACT",
    "EXIT_HARD_VIOLATIONS",
    "EXIT_INFEASIBLE",
    "EXIT_OK",
    "EXIT_SCORING",
    "SCORING_CHECKS",
    "ValidationReport",
    "make_entry",
    "render_text",
    "write_document",
    "write_report",
]
