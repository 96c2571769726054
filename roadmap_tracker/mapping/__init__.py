"""Provider payload to canonical item mappers."""

from .hive import HiveEnvelope, decode_envelope, map_hive_page, map_submission
from .html import strip_html
from .notion import CollectionEnvelope, decode_collection, map_collection

__all__ = [
    "CollectionEnvelope",
    "HiveEnvelope",
    "decode_collection",
    "decode_envelope",
    "map_collection",
    "map_hive_page",
    "map_submission",
    "strip_html",
]
