"""Route group exports."""

from . import assignments, auth, corrections, customers, health, km_entries, time_entries, users

__all__ = ["assignments", "auth", "corrections", "customers", "health", "km_entries", "time_entries", "users"]
