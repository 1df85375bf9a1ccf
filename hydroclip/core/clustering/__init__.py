"""Detection clustering package."""

from .engine import SortOrder, build_candidates, cluster, filter_by_minimum_count, sort_candidates
from .filters import DetectionFilter

__all__ = [
    "DetectionFilter",
    "SortOrder",
    "build_candidates",
    "cluster",
    "filter_by_minimum_count",
    "sort_candidates",
]
