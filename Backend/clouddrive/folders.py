import logging
from dataclasses import dataclass

from . import models
from .blobs import BlobStore
from .config import STORAGE_LIMIT_BYTES
from .errors import InvalidRequest
from .store import MetadataStore
from .tree import resolve_path
from .uploads import clean_name, require_folder

logger = logging.getLogger(__name__)

PREVIEW_PREFIXES = ("image/", "video/", "audio/", "text/")


@dataclass
class StorageUsage:
    used: int
    limit: int

    @property
    def available(self) -> int:
        return max(self.limit - self.used, 0)


def create_folder(
    store: MetadataStore, owner_id: int, name: str, parent_id: int | None = None
) -> models.Node:
    name = clean_name(name)
    require_folder(store, owner_id, parent_id)

    folder = store.insert_node(
        owner_id=owner_id,
        parent_id=parent_id,
        name=name,
        is_folder=True,
        size=0,
        content_type="folder",
        storage_path="",
    )
    logger.info("folder %s (%s) created for user %s", folder.id, folder.name, owner_id)
    return folder


def rename_node(
    store: MetadataStore, owner_id: int, node_id: int, name: str
) -> models.Node:
    node = store.get_owned_node(owner_id, node_id)
    name = clean_name(name)
    if name == node.name:
        return node
    return store.update_node(node, name=name, modified_at=models.utcnow())


def move_node(
    store: MetadataStore, owner_id: int, node_id: int, parent_id: int | None
) -> models.Node:
    node = store.get_owned_node(owner_id, node_id)
    require_folder(store, owner_id, parent_id)

    if parent_id is not None and node.is_folder:
        if parent_id == node.id:
            raise InvalidRequest("Cannot move a folder into itself")
        ancestors = resolve_path(store, parent_id, owner_id)
        if any(a.id == node.id for a in ancestors.nodes):
            raise InvalidRequest("Cannot move a folder into one of its subfolders")

    return store.update_node(node, parent_id=parent_id, modified_at=models.utcnow())


def storage_usage(store: MetadataStore, owner_id: int) -> StorageUsage:
    return StorageUsage(used=store.storage_used(owner_id), limit=STORAGE_LIMIT_BYTES)


def can_preview(node: models.Node) -> bool:
    if node.is_folder:
        return False
    content_type = (node.content_type or "").lower()
    return (
        content_type.startswith(PREVIEW_PREFIXES)
        or content_type == "application/pdf"
        or (node.name or "").lower().endswith(".txt")
    )


def download_node(
    store: MetadataStore, blobs: BlobStore, owner_id: int, node_id: int
) -> tuple[models.Node, bytes]:
    node = store.get_owned_node(owner_id, node_id)
    if node.is_folder:
        raise InvalidRequest("Folders cannot be downloaded")
    return node, blobs.download(node.storage_path)


def public_url(
    store: MetadataStore, blobs: BlobStore, owner_id: int, node_id: int
) -> str:
    node = store.get_owned_node(owner_id, node_id)
    if node.is_folder:
        raise InvalidRequest("Folders have no content URL")
    return blobs.public_url(node.storage_path)
