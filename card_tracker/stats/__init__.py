"""Collection statistics."""

from .engine import collection_totals, compute_statistics, top_groups

__all__ = ["collection_totals", "compute_statistics", "top_groups"]
