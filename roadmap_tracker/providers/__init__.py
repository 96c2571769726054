"""Upstream providers and the per-provider roadmap service."""

from .base import ColumnSpec, ProbeResult, ProviderClient, RoadmapService
from .cubecraft import CubecraftClient
from .hive import HiveClient

__all__ = [
    "ColumnSpec",
    "CubecraftClient",
    "HiveClient",
    "ProbeResult",
    "ProviderClient",
    "RoadmapService",
]
