"""Folder listing: fetch, favorite merge, then query -> filter -> sort.

The stages after the fetch are pure functions over ``Entry`` lists and a
``ViewState``, so the same view can be re-applied without touching the store.
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum

from . import models
from .store import MetadataStore

LARGE_FILE_BYTES = 10 * 1024 * 1024
RECENT_WINDOW = timedelta(days=7)

WORD_MIME_TYPES = (
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
)
DOCUMENT_MARKERS = ("word", "excel", "powerpoint", "text")


class FilterKind(str, Enum):
    ALL = "all"
    IMAGE = "image"
    DOCUMENT = "document"
    PDF = "pdf"
    VIDEO = "video"
    AUDIO = "audio"
    FOLDERS = "folders"
    FILES = "files"
    RECENT = "recent"
    FAVORITES = "favorites"
    LARGE = "large"


class SortKind(str, Enum):
    NEWEST = "newest"
    OLDEST = "oldest"
    NAME_ASC = "name-asc"
    NAME_DESC = "name-desc"
    SIZE_ASC = "size-asc"
    SIZE_DESC = "size-desc"
    TYPE = "type"


def parse_filter(value: str | None) -> FilterKind:
    try:
        return FilterKind((value or "all").lower())
    except ValueError:
        return FilterKind.ALL


def parse_sort(value: str | None) -> SortKind:
    try:
        return SortKind((value or "newest").lower())
    except ValueError:
        return SortKind.NEWEST


@dataclass(frozen=True)
class ViewState:
    query: str = ""
    filter: FilterKind = FilterKind.ALL
    sort: SortKind = SortKind.NEWEST


@dataclass
class Entry:
    node: models.Node
    is_favorite: bool = False


@dataclass
class Listing:
    entries: list[Entry] = field(default_factory=list)
    total: int = 0

    @property
    def filtered(self) -> int:
        return len(self.entries)


def as_utc(value: datetime | None) -> datetime:
    # sqlite hands timestamps back without tzinfo
    if value is None:
        return datetime.min.replace(tzinfo=timezone.utc)
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def fetch_entries(
    store: MetadataStore, owner_id: int, folder_id: int | None
) -> list[Entry]:
    nodes = store.query_nodes(owner_id, folder_id, is_deleted=False)
    favorites = store.query_favorites(owner_id)
    return [Entry(node=node, is_favorite=node.id in favorites) for node in nodes]


def apply_query(entries: list[Entry], query: str) -> list[Entry]:
    needle = (query or "").strip().lower()
    if not needle:
        return list(entries)
    return [e for e in entries if needle in (e.node.name or "").lower()]


def _matches(entry: Entry, kind: FilterKind, now: datetime) -> bool:
    node = entry.node
    content_type = (node.content_type or "").lower()

    if kind is FilterKind.IMAGE:
        return content_type.startswith("image/")
    if kind is FilterKind.DOCUMENT:
        return content_type in WORD_MIME_TYPES or any(
            marker in content_type for marker in DOCUMENT_MARKERS
        )
    if kind is FilterKind.PDF:
        return content_type == "application/pdf"
    if kind is FilterKind.VIDEO:
        return content_type.startswith("video/")
    if kind is FilterKind.AUDIO:
        return content_type.startswith("audio/")
    if kind is FilterKind.FOLDERS:
        return bool(node.is_folder)
    if kind is FilterKind.FILES:
        return not node.is_folder
    if kind is FilterKind.RECENT:
        return as_utc(node.created_at) > now - RECENT_WINDOW
    if kind is FilterKind.FAVORITES:
        return entry.is_favorite
    if kind is FilterKind.LARGE:
        return (node.size or 0) > LARGE_FILE_BYTES
    return True


def apply_filter(
    entries: list[Entry], kind: FilterKind, now: datetime | None = None
) -> list[Entry]:
    if kind is FilterKind.ALL:
        return list(entries)
    now = as_utc(now or datetime.now(timezone.utc))
    return [e for e in entries if _matches(e, kind, now)]


def sort_entries(entries: list[Entry], kind: SortKind) -> list[Entry]:
    # name ascending first; the stable second pass keeps it as tie-break
    result = sorted(entries, key=lambda e: e.node.name or "")

    if kind is SortKind.NEWEST:
        result.sort(key=lambda e: as_utc(e.node.created_at), reverse=True)
    elif kind is SortKind.OLDEST:
        result.sort(key=lambda e: as_utc(e.node.created_at))
    elif kind is SortKind.NAME_ASC:
        pass
    elif kind is SortKind.NAME_DESC:
        result.sort(key=lambda e: e.node.name or "", reverse=True)
    elif kind is SortKind.SIZE_ASC:
        result.sort(key=lambda e: e.node.size or 0)
    elif kind is SortKind.SIZE_DESC:
        result.sort(key=lambda e: e.node.size or 0, reverse=True)
    elif kind is SortKind.TYPE:
        result.sort(key=lambda e: 0 if e.node.is_folder else 1)
    return result


def apply_view(
    entries: list[Entry], view: ViewState, now: datetime | None = None
) -> list[Entry]:
    result = apply_query(entries, view.query)
    result = apply_filter(result, view.filter, now)
    return sort_entries(result, view.sort)


def list_folder(
    store: MetadataStore,
    owner_id: int,
    folder_id: int | None,
    view: ViewState | None = None,
    now: datetime | None = None,
) -> Listing:
    entries = fetch_entries(store, owner_id, folder_id)
    return Listing(entries=apply_view(entries, view or ViewState(), now), total=len(entries))
