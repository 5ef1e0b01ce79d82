import logging

from . import models
from .blobs import BlobStore
from .errors import Conflict, DriveError
from .store import MetadataStore

logger = logging.getLogger(__name__)


def soft_delete(store: MetadataStore, owner_id: int, node_id: int) -> models.Node:
    node = store.get_owned_node(owner_id, node_id)
    # no cascade: children keep their own flag
    store.update_node(node, is_deleted=True, modified_at=models.utcnow())
    logger.info("node %s moved to trash", node.id)
    return node


def restore(store: MetadataStore, owner_id: int, node_id: int) -> models.Node:
    node = store.get_owned_node(owner_id, node_id)
    store.update_node(node, is_deleted=False, modified_at=models.utcnow())
    logger.info("node %s restored from trash", node.id)
    return node


def purge(
    store: MetadataStore, blobs: BlobStore, owner_id: int, node_id: int
) -> None:
    node = store.get_owned_node(owner_id, node_id)
    if not node.is_deleted:
        raise Conflict("Node is not in the trash")
    if node.is_folder and store.has_children(node.id):
        raise Conflict("Folder is not empty")

    # metadata goes first so no row ever points at a removed blob
    locators = store.delete_node(node)
    logger.info("node %s purged", node_id)

    for locator in locators:
        try:
            blobs.delete(locator)
        except DriveError:
            logger.warning("orphaned blob %s left after purge of node %s", locator, node_id)


def list_trash(store: MetadataStore, owner_id: int) -> list[models.Node]:
    return store.query_trash(owner_id)
