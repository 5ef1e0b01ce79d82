import logging

from .store import MetadataStore

logger = logging.getLogger(__name__)


def toggle_favorite(store: MetadataStore, owner_id: int, node_id: int) -> bool:
    """Flip the favorite flag of a node and return the new state.

    A unique constraint hit on insert means a concurrent toggle already
    added the row, so the node counts as favorited.
    """
    store.get_owned_node(owner_id, node_id)

    if store.delete_favorite(owner_id, node_id):
        logger.info("node %s unfavorited by user %s", node_id, owner_id)
        return False

    if not store.insert_favorite(owner_id, node_id):
        logger.info("node %s already favorited by user %s", node_id, owner_id)
    else:
        logger.info("node %s favorited by user %s", node_id, owner_id)
    return True
