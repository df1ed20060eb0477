"""
Knowledge - Local topic packs

Static, read-only knowledge packs consulted before any network retrieval.
"""

from .catalog import (
    KnowledgeCatalog,
    PackSection,
    TopicDocument,
    TopicPack,
    build_context,
    load_catalog,
    normalize_pack,
    strip_inline_refs,
)
from .resolver import KnowledgePackResolver, normalize, tokenize

__all__ = [
    "KnowledgeCatalog",
    "PackSection",
    "TopicDocument",
    "TopicPack",
    "build_context",
    "load_catalog",
    "normalize_pack",
    "strip_inline_refs",
    "KnowledgePackResolver",
    "normalize",
    "tokenize",
]
