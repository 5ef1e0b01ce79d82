import logging
from dataclasses import dataclass

from . import models
from .blobs import BlobStore, make_locator
from .errors import DriveError, InvalidRequest, NotFound
from .store import MetadataStore

logger = logging.getLogger(__name__)


def clean_name(name: str) -> str:
    name = (name or "").strip()
    if not name:
        raise InvalidRequest("Name is required")
    if "/" in name:
        raise InvalidRequest("Name cannot contain '/'")
    return name


@dataclass
class IncomingFile:
    name: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass
class UploadResult:
    name: str
    node: models.Node | None = None
    version: models.Version | None = None
    error: DriveError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def require_folder(
    store: MetadataStore, owner_id: int, folder_id: int | None
) -> models.Node | None:
    if folder_id is None:
        return None
    folder = store.get_owned_node(owner_id, folder_id)
    if not folder.is_folder or folder.is_deleted:
        raise NotFound(f"Folder {folder_id} not found")
    return folder


def archive_current(
    store: MetadataStore, node: models.Node, author_id: int
) -> models.Version:
    """Snapshot the node's current content as its next version (uncommitted)."""
    return store.insert_version(
        commit=False,
        node_id=node.id,
        version_number=store.max_version_number(node.id) + 1,
        storage_path=node.storage_path,
        size=node.size or 0,
        content_type=node.content_type or "",
        author_id=author_id,
    )


def _write_metadata(
    store: MetadataStore,
    owner_id: int,
    folder_id: int | None,
    incoming: IncomingFile,
    locator: str,
) -> UploadResult:
    existing = store.find_active_file(owner_id, folder_id, incoming.name)
    if existing is None:
        node = store.insert_node(
            owner_id=owner_id,
            parent_id=folder_id,
            name=incoming.name,
            is_folder=False,
            size=incoming.size,
            content_type=incoming.content_type,
            storage_path=locator,
        )
        logger.info("created node %s (%s) for user %s", node.id, node.name, owner_id)
        return UploadResult(name=incoming.name, node=node)

    version = archive_current(store, existing, owner_id)
    store.update_node(
        existing,
        commit=False,
        storage_path=locator,
        size=incoming.size,
        content_type=incoming.content_type,
        modified_at=models.utcnow(),
    )
    store.commit()
    logger.info(
        "node %s replaced, previous content kept as version %s",
        existing.id,
        version.version_number,
    )
    return UploadResult(name=incoming.name, node=existing, version=version)


def upload_file(
    store: MetadataStore,
    blobs: BlobStore,
    owner_id: int,
    folder_id: int | None,
    incoming: IncomingFile,
) -> UploadResult:
    name = incoming.name = clean_name(incoming.name)
    require_folder(store, owner_id, folder_id)

    # blob first: metadata must never point at content that was not written
    locator = make_locator(owner_id, name)
    blobs.upload(locator, incoming.data)

    try:
        return _write_metadata(store, owner_id, folder_id, incoming, locator)
    except DriveError:
        store.rollback()
        try:
            blobs.delete(locator)
        except DriveError:
            logger.warning("orphaned blob %s left after failed metadata write", locator)
        raise


def upload_batch(
    store: MetadataStore,
    blobs: BlobStore,
    owner_id: int,
    folder_id: int | None,
    files: list[IncomingFile],
) -> list[UploadResult]:
    results = []
    for incoming in files:
        try:
            results.append(upload_file(store, blobs, owner_id, folder_id, incoming))
        except DriveError as exc:
            logger.warning("upload of %s failed: %s", incoming.name, exc.detail)
            results.append(UploadResult(name=incoming.name, error=exc))
    return results


def _owned_file(store: MetadataStore, owner_id: int, node_id: int) -> models.Node:
    node = store.get_owned_node(owner_id, node_id)
    if node.is_folder:
        raise InvalidRequest("Folders have no versions")
    return node


def list_versions(
    store: MetadataStore, owner_id: int, node_id: int
) -> list[models.Version]:
    _owned_file(store, owner_id, node_id)
    return store.query_versions(node_id)


def restore_version(
    store: MetadataStore, owner_id: int, node_id: int, version_id: int
) -> models.Node:
    node = _owned_file(store, owner_id, node_id)
    target = store.get_version(node_id, version_id)

    archive_current(store, node, owner_id)
    store.update_node(
        node,
        commit=False,
        storage_path=target.storage_path,
        size=target.size,
        content_type=target.content_type or node.content_type,
        modified_at=models.utcnow(),
    )
    store.commit()
    logger.info("node %s restored to version %s", node.id, target.version_number)
    return node


def download_version(
    store: MetadataStore, blobs: BlobStore, owner_id: int, node_id: int, version_id: int
) -> tuple[models.Version, bytes]:
    _owned_file(store, owner_id, node_id)
    version = store.get_version(node_id, version_id)
    return version, blobs.download(version.storage_path)
