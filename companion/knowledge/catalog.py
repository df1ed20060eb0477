"""
Knowledge Catalog

Loads the static topic catalog (topics.json) once and reads individual
knowledge packs on demand. Packs exist in several historical schema variants;
every variant is normalized into TopicPack before anything else sees it.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple, Union

logger = logging.getLogger("companion.knowledge.catalog")

CATALOG_FILE = "topics.json"

# Inline citation artifacts left over from authoring tools
_INLINE_REF = re.compile(r"contentReference\[[^\]]*\]\{[^}]*\}")
_WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True)
class TopicDocument:
    """Catalog entry for one knowledge pack. Keyed by path."""
    title: str
    path: str
    keywords: Tuple[str, ...] = ()
    aliases: Tuple[str, ...] = ()
    tags: Tuple[str, ...] = ()
    sections: Tuple[str, ...] = ()

    @property
    def terms(self) -> Tuple[str, ...]:
        """Keywords, aliases, and tags in match order"""
        return self.keywords + self.aliases + self.tags


@dataclass
class PackSection:
    content: str
    title: str = ""
    source: str = ""


@dataclass
class TopicPack:
    """A knowledge pack normalized to one internal shape"""
    title: str = ""
    definition: str = ""
    general_info: str = ""
    reassurance: str = ""
    steps: List[str] = field(default_factory=list)
    red_flags: List[str] = field(default_factory=list)
    seek_care_now: List[str] = field(default_factory=list)
    sections: List[PackSection] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (
            self.definition or self.general_info or self.reassurance
            or self.steps or self.red_flags or self.seek_care_now or self.sections
        )


def strip_inline_refs(text: Any) -> str:
    """Remove contentReference[...]{...} markers and collapse whitespace."""
    if text is None:
        return ""
    cleaned = _INLINE_REF.sub("", str(text))
    return _WHITESPACE.sub(" ", cleaned).strip()


def _clean_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    items = [strip_inline_refs(v) for v in value]
    return [v for v in items if v]


def _as_tuple(value: Any) -> Tuple[str, ...]:
    if isinstance(value, str):
        return (value,) if value.strip() else ()
    if isinstance(value, list):
        return tuple(str(v) for v in value if str(v).strip())
    return ()


def normalize_pack(raw: Dict[str, Any]) -> TopicPack:
    """
    Fold every known pack schema into a TopicPack.

    Recognized fields: definition, general_info|summary, reassurance|reassure,
    steps, red_flags, seek_care_now, sections[{title?, content, source?}].
    Unknown fields are ignored.
    """
    if not isinstance(raw, dict):
        return TopicPack()

    sections = []
    for item in raw.get("sections") or []:
        if isinstance(item, dict):
            content = strip_inline_refs(item.get("content") or item.get("text"))
            if content:
                sections.append(PackSection(
                    content=content,
                    title=strip_inline_refs(item.get("title")),
                    source=str(item.get("source") or ""),
                ))
        elif isinstance(item, str) and item.strip():
            sections.append(PackSection(content=strip_inline_refs(item)))

    return TopicPack(
        title=strip_inline_refs(raw.get("title")),
        definition=strip_inline_refs(raw.get("definition")),
        general_info=strip_inline_refs(raw.get("general_info") or raw.get("summary")),
        reassurance=strip_inline_refs(raw.get("reassurance") or raw.get("reassure")),
        steps=_clean_list(raw.get("steps")),
        red_flags=_clean_list(raw.get("red_flags")),
        seek_care_now=_clean_list(raw.get("seek_care_now")),
        sections=sections,
    )


def build_context(pack: TopicPack, max_steps: int = 4, max_flags: int = 3) -> str:
    """Compact labelled context block for the paraphrase prompt."""
    parts = []
    if pack.definition:
        parts.append(f"Definition: {pack.definition}")
    if pack.general_info:
        parts.append(f"General: {pack.general_info}")
    if pack.reassurance:
        parts.append(f"Reassure: {pack.reassurance}")
    if pack.steps:
        parts.append(f"Steps: {' | '.join(pack.steps[:max_steps])}")
    if pack.red_flags:
        parts.append(f"Red flags: {' | '.join(pack.red_flags[:max_flags])}")
    if pack.seek_care_now:
        parts.append(f"Seek care now if: {' | '.join(pack.seek_care_now[:max_flags])}")
    for section in pack.sections[:max_flags]:
        label = section.title or "Note"
        parts.append(f"{label}: {section.content}")
    return "\n".join(parts)


class KnowledgeCatalog:
    """
    Immutable path -> TopicDocument mapping plus pack loading.

    Paths in topics.json may carry the content directory as a prefix
    ("content/breastfeeding.json"); they are stored relative to the
    content directory.
    """

    def __init__(self, root: Union[str, Path], documents: List[TopicDocument]):
        self.root = Path(root)
        ordered: Dict[str, TopicDocument] = {}
        for doc in documents:
            ordered.setdefault(doc.path, doc)
        self._documents: Mapping[str, TopicDocument] = MappingProxyType(ordered)

    @property
    def documents(self) -> Mapping[str, TopicDocument]:
        return self._documents

    def __iter__(self) -> Iterator[TopicDocument]:
        return iter(self._documents.values())

    def __len__(self) -> int:
        return len(self._documents)

    def __contains__(self, path: object) -> bool:
        return path in self._documents

    def get(self, path: str) -> Optional[TopicDocument]:
        return self._documents.get(path)

    def load_pack(self, path: str) -> TopicPack:
        """
        Read and normalize one pack.

        Raises:
            FileNotFoundError: pack file missing
            ValueError: pack file is not valid JSON
        """
        pack_path = self.root / path
        with open(pack_path, encoding="utf-8") as f:
            raw = json.load(f)
        pack = normalize_pack(raw)
        if not pack.title and path in self._documents:
            pack.title = self._documents[path].title
        return pack


def _relative_path(raw_path: str, root: Path) -> str:
    path = raw_path.strip().lstrip("./")
    prefix = root.name + "/"
    if root.name and path.startswith(prefix):
        path = path[len(prefix):]
    return path


def _parse_document(entry: Dict[str, Any], root: Path) -> Optional[TopicDocument]:
    title = str(entry.get("title") or "").strip()
    path = str(entry.get("path") or "").strip()
    if not title or not path:
        return None
    return TopicDocument(
        title=title,
        path=_relative_path(path, root),
        keywords=_as_tuple(entry.get("keywords")),
        aliases=_as_tuple(entry.get("aliases")),
        tags=_as_tuple(entry.get("tags")),
        sections=_as_tuple(entry.get("sections")),
    )


def load_catalog(content_dir: Union[str, Path]) -> KnowledgeCatalog:
    """
    Load topics.json from the content directory.

    A missing or malformed catalog yields an empty catalog; the router then
    relies on intent mapping and web retrieval alone.
    """
    root = Path(content_dir)
    catalog_path = root / CATALOG_FILE

    try:
        with open(catalog_path, encoding="utf-8") as f:
            entries = json.load(f)
    except FileNotFoundError:
        logger.warning("Topic catalog not found: %s", catalog_path)
        return KnowledgeCatalog(root, [])
    except (json.JSONDecodeError, OSError) as e:
        logger.warning("Failed to load topic catalog %s: %s", catalog_path, e)
        return KnowledgeCatalog(root, [])

    if isinstance(entries, dict):
        entries = entries.get("topics", [])
    if not isinstance(entries, list):
        logger.warning("Topic catalog %s is not a list", catalog_path)
        return KnowledgeCatalog(root, [])

    documents = []
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        doc = _parse_document(entry, root)
        if doc is None:
            logger.debug("Skipping catalog entry without title/path: %r", entry)
            continue
        documents.append(doc)

    logger.info("Loaded %d topics from %s", len(documents), catalog_path)
    return KnowledgeCatalog(root, documents)
