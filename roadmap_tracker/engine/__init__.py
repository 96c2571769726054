"""Engine components: fetch → fan out → cache → paginate → track."""

from .cache import ResponseCache
from .cancel import CancelToken
from .exporter import EXPORT_FORMATS, FileExporter
from .fetcher import FetchRequest, FetchResponse, Fetcher
from .pages import PageFetcher
from .paginator import filter_items, paginate, select_page, sort_items
from .thread_pool import ThreadPoolManager
from .tracker import ChangeTracker

__all__ = [
    "EXPORT_FORMATS",
    "CancelToken",
    "ChangeTracker",
    "FetchRequest",
    "FetchResponse",
    "Fetcher",
    "FileExporter",
    "PageFetcher",
    "ResponseCache",
    "ThreadPoolManager",
    "filter_items",
    "paginate",
    "select_page",
    "sort_items",
]
