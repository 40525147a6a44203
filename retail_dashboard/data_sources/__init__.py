"""Data source helpers for the retail dashboard."""

from .fetch import (
    FactFetcher,
    FactQuery,
    LatestFetchCoordinator,
    StaticFrameFetcher,
    apply_query,
)
from .gsheet import GSheetFetcher

__all__ = [
    "FactQuery",
    "FactFetcher",
    "StaticFrameFetcher",
    "LatestFetchCoordinator",
    "GSheetFetcher",
    "apply_query",
]
