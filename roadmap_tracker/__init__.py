"""Roadmap tracker: aggregate and watch public roadmap boards."""

from .errors import (
    FetchCancelled,
    InvalidQuery,
    MalformedUpstreamPayload,
    RoadmapError,
    UpstreamUnavailable,
)
from .models import CanonicalItem, ChangeEntry, PageMeta, Query, RoadmapPage, SortSpec

__version__ = "0.1.0"

__all__ = [
    "CanonicalItem",
    "ChangeEntry",
    "FetchCancelled",
    "InvalidQuery",
    "MalformedUpstreamPayload",
    "PageMeta",
    "Query",
    "RoadmapError",
    "RoadmapPage",
    "SortSpec",
    "UpstreamUnavailable",
    "__version__",
]
