"""Customer-level aggregation helpers."""

from .stats import compute_customer_stats, fetch_customer_assignments

__all__ = ["compute_customer_stats", "fetch_customer_assignments"]
