"""Assignment actions for the employee and admin screens."""

from .entries import EntryValidationError, check_time_range, parse_kilometers, resolve_entry_minutes
from .workflow import AssignmentWorkflow, Refusal

__all__ = [
    "EntryValidationError",
    "check_time_range",
    "parse_kilometers",
    "resolve_entry_minutes",
    "AssignmentWorkflow",
    "Refusal",
]
