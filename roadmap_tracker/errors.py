"""Error taxonomy surfaced by the roadmap pipeline."""

from __future__ import annotations


class RoadmapError(Exception):
    """Base class for every error raised by the tracker."""


class InvalidQuery(RoadmapError):
    """Unknown column, provider or sort, or out-of-range pagination input."""


class UpstreamUnavailable(RoadmapError):
    """Network failure or non-success status from a provider."""

    def __init__(self, provider: str, message: str, status_code: int | None = None) -> None:
        super().__init__(f"{provider}: {message}")
        self.provider = provider
        self.status_code = status_code


class MalformedUpstreamPayload(RoadmapError):
    """A successful response whose body cannot be decoded."""

    def __init__(self, provider: str, message: str) -> None:
        super().__init__(f"{provider}: {message}")
        self.provider = provider


class FetchCancelled(RoadmapError):
    """The caller cancelled the fetch or its deadline passed."""


class PartialMapFailure(ValueError):
    """A single upstream record could not be mapped.

    Raised by per-record decoders and always caught by the batch mapper, which
    skips the record.
    """


__all__ = [
    "FetchCancelled",
    "InvalidQuery",
    "MalformedUpstreamPayload",
    "PartialMapFailure",
    "RoadmapError",
    "UpstreamUnavailable",
]
