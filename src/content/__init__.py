"""
Content: read-only access to the question catalog built by the indexer.
"""

from .catalog import ContentCatalog, build_tag_index, normalize_tags

__all__ = [
    "ContentCatalog",
    "build_tag_index",
    "normalize_tags",
]
