import logging
from dataclasses import dataclass, field

from . import models
from .errors import CycleDetected, NotFound, UpstreamFailure
from .store import MetadataStore

logger = logging.getLogger(__name__)


@dataclass
class BreadcrumbPath:
    """Ancestors of a node, root-most first, ending with the node itself.

    ``complete`` is False when a lookup failed midway and ``nodes`` only
    holds the part of the chain that could be resolved.
    """

    nodes: list[models.Node] = field(default_factory=list)
    complete: bool = True

    @property
    def is_root(self) -> bool:
        return self.complete and not self.nodes


def resolve_path(
    store: MetadataStore,
    current_id: int | None,
    owner_id: int | None = None,
) -> BreadcrumbPath:
    path = BreadcrumbPath()
    seen: set[int] = set()
    lookup_id = current_id

    while lookup_id is not None:
        if lookup_id in seen:
            raise CycleDetected(f"Parent chain loops at node {lookup_id}")
        seen.add(lookup_id)

        try:
            if owner_id is None:
                node = store.get_node(lookup_id)
            else:
                node = store.get_owned_node(owner_id, lookup_id)
        except (NotFound, UpstreamFailure) as exc:
            logger.warning("breadcrumb lookup stopped at %s: %s", lookup_id, exc.detail)
            path.complete = False
            break

        path.nodes.insert(0, node)
        lookup_id = node.parent_id

    return path
