import logging

from . import models
from .errors import AlreadyShared, InvalidRequest
from .store import MetadataStore

logger = logging.getLogger(__name__)

PERMISSIONS = ("view", "edit")


def grant_share(
    store: MetadataStore,
    owner_id: int,
    node_id: int,
    email: str,
    permission: str = "view",
) -> models.Share:
    if permission not in PERMISSIONS:
        raise InvalidRequest(f"Unknown permission {permission!r}")

    node = store.get_owned_node(owner_id, node_id)
    target = store.resolve_user_by_email(email)
    if target.id == owner_id:
        raise InvalidRequest("Cannot share a file with yourself")

    if store.query_shares(node.id, target.id):
        raise AlreadyShared(f"Already shared with {email}")

    share = store.insert_share(
        node_id=node.id,
        shared_by=owner_id,
        shared_with=target.id,
        permission=permission,
    )
    logger.info("node %s shared with user %s (%s)", node.id, target.id, permission)
    return share


def list_shared_with(
    store: MetadataStore, user_id: int
) -> list[tuple[models.Share, models.Node]]:
    return store.shared_with(user_id)
