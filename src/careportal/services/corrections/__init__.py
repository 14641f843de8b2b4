"""Admin correction helpers."""

from .ledger import DaySummary, compute_day_summary, merge_assignment_kilometers, minutes_between
from .service import AdjustmentValidationError, build_day_view, fetch_day_bundle, parse_delta
from .session import CorrectionsSession

__all__ = [
    "DaySummary",
    "compute_day_summary",
    "merge_assignment_kilometers",
    "minutes_between",
    "AdjustmentValidationError",
    "build_day_view",
    "fetch_day_bundle",
    "parse_delta",
    "CorrectionsSession",
]
