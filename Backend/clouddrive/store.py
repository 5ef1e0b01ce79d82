"""Metadata store: every table access of the service goes through here.

Database errors never leave this module as SQLAlchemy exceptions; they are
rolled back, logged and re-raised as ``UpstreamFailure``.
"""
import logging
from contextlib import contextmanager

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from . import models
from .errors import NotFound, UpstreamFailure, UserNotFound

logger = logging.getLogger(__name__)


def _parent_clause(parent_id: int | None):
    # root is parent IS NULL; any other value, including 0, is a real id
    if parent_id is None:
        return models.Node.parent_id.is_(None)
    return models.Node.parent_id == parent_id


class MetadataStore:
    def __init__(self, db: Session):
        self.db = db

    @contextmanager
    def _guard(self, action: str):
        try:
            yield
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("metadata store failure during %s", action)
            raise UpstreamFailure(f"metadata store failure during {action}") from exc

    def commit(self) -> None:
        with self._guard("commit"):
            self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()

    # ---------- Users ----------

    def get_user(self, user_id: int) -> models.User | None:
        with self._guard("get_user"):
            return self.db.get(models.User, user_id)

    def resolve_user_by_email(self, email: str) -> models.User:
        with self._guard("resolve_user_by_email"):
            user = self.db.scalar(
                select(models.User).where(func.lower(models.User.email) == email.strip().lower())
            )
        if not user:
            raise UserNotFound(f"No user with email {email}")
        return user

    # ---------- Nodes ----------

    def get_node(self, node_id: int) -> models.Node:
        with self._guard("get_node"):
            node = self.db.get(models.Node, node_id)
        if node is None:
            raise NotFound(f"Node {node_id} not found")
        return node

    def get_owned_node(self, owner_id: int, node_id: int) -> models.Node:
        node = self.get_node(node_id)
        if node.owner_id != owner_id:
            raise NotFound(f"Node {node_id} not found")
        return node

    def query_nodes(
        self,
        owner_id: int,
        parent_id: int | None,
        is_deleted: bool = False,
    ) -> list[models.Node]:
        with self._guard("query_nodes"):
            return list(
                self.db.scalars(
                    select(models.Node)
                    .where(models.Node.owner_id == owner_id)
                    .where(_parent_clause(parent_id))
                    .where(models.Node.is_deleted.is_(is_deleted))
                    .order_by(models.Node.is_folder.desc(), models.Node.created_at.desc())
                ).all()
            )

    def query_trash(self, owner_id: int) -> list[models.Node]:
        with self._guard("query_trash"):
            return list(
                self.db.scalars(
                    select(models.Node)
                    .where(models.Node.owner_id == owner_id)
                    .where(models.Node.is_deleted.is_(True))
                    .order_by(models.Node.modified_at.desc(), models.Node.id.desc())
                ).all()
            )

    def find_active_file(
        self, owner_id: int, parent_id: int | None, name: str
    ) -> models.Node | None:
        with self._guard("find_active_file"):
            return self.db.scalar(
                select(models.Node)
                .where(models.Node.owner_id == owner_id)
                .where(_parent_clause(parent_id))
                .where(models.Node.name == name)
                .where(models.Node.is_folder.is_(False))
                .where(models.Node.is_deleted.is_(False))
                .order_by(models.Node.id)
                .limit(1)
            )

    def has_children(self, node_id: int) -> bool:
        with self._guard("has_children"):
            return (
                self.db.scalar(
                    select(models.Node.id).where(models.Node.parent_id == node_id).limit(1)
                )
                is not None
            )

    def storage_used(self, owner_id: int) -> int:
        with self._guard("storage_used"):
            total = self.db.scalar(
                select(func.coalesce(func.sum(models.Node.size), 0))
                .where(models.Node.owner_id == owner_id)
                .where(models.Node.is_folder.is_(False))
                .where(models.Node.is_deleted.is_(False))
            )
        return int(total or 0)

    def insert_node(self, commit: bool = True, **fields) -> models.Node:
        node = models.Node(**fields)
        with self._guard("insert_node"):
            self.db.add(node)
            if commit:
                self.db.commit()
                self.db.refresh(node)
            else:
                self.db.flush()
        return node

    def update_node(self, node: models.Node, commit: bool = True, **fields) -> models.Node:
        with self._guard("update_node"):
            for key, value in fields.items():
                setattr(node, key, value)
            if commit:
                self.db.commit()
                self.db.refresh(node)
            else:
                self.db.flush()
        return node

    def delete_node(self, node: models.Node) -> list[str]:
        """Delete a node row together with its favorites, shares and versions.

        Returns the storage locators that belonged to the deleted rows.
        """
        locators = [node.storage_path] if node.storage_path else []
        with self._guard("delete_node"):
            locators.extend(
                self.db.scalars(
                    select(models.Version.storage_path).where(models.Version.node_id == node.id)
                ).all()
            )
            self.db.execute(delete(models.Favorite).where(models.Favorite.node_id == node.id))
            self.db.execute(delete(models.Share).where(models.Share.node_id == node.id))
            self.db.execute(delete(models.Version).where(models.Version.node_id == node.id))
            self.db.delete(node)
            self.db.commit()
        return locators

    # ---------- Versions ----------

    def max_version_number(self, node_id: int) -> int:
        with self._guard("max_version_number"):
            value = self.db.scalar(
                select(func.max(models.Version.version_number)).where(
                    models.Version.node_id == node_id
                )
            )
        return value or 0

    def insert_version(self, commit: bool = True, **fields) -> models.Version:
        version = models.Version(**fields)
        with self._guard("insert_version"):
            self.db.add(version)
            if commit:
                self.db.commit()
                self.db.refresh(version)
            else:
                self.db.flush()
        return version

    def query_versions(self, node_id: int) -> list[models.Version]:
        with self._guard("query_versions"):
            return list(
                self.db.scalars(
                    select(models.Version)
                    .where(models.Version.node_id == node_id)
                    .order_by(models.Version.version_number.desc())
                ).all()
            )

    def get_version(self, node_id: int, version_id: int) -> models.Version:
        with self._guard("get_version"):
            version = self.db.get(models.Version, version_id)
        if version is None or version.node_id != node_id:
            raise NotFound(f"Version {version_id} not found")
        return version

    # ---------- Favorites ----------

    def query_favorites(self, owner_id: int) -> set[int]:
        with self._guard("query_favorites"):
            return set(
                self.db.scalars(
                    select(models.Favorite.node_id).where(models.Favorite.owner_id == owner_id)
                ).all()
            )

    def delete_favorite(self, owner_id: int, node_id: int) -> bool:
        with self._guard("delete_favorite"):
            result = self.db.execute(
                delete(models.Favorite)
                .where(models.Favorite.owner_id == owner_id)
                .where(models.Favorite.node_id == node_id)
            )
            self.db.commit()
        return result.rowcount > 0

    def insert_favorite(self, owner_id: int, node_id: int) -> bool:
        """Insert a favorite row; False when the pair already exists."""
        try:
            self.db.add(models.Favorite(owner_id=owner_id, node_id=node_id))
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            return False
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("metadata store failure during insert_favorite")
            raise UpstreamFailure("metadata store failure during insert_favorite") from exc
        return True

    # ---------- Shares ----------

    def query_shares(self, node_id: int, user_id: int) -> list[models.Share]:
        with self._guard("query_shares"):
            return list(
                self.db.scalars(
                    select(models.Share)
                    .where(models.Share.node_id == node_id)
                    .where(models.Share.shared_with == user_id)
                ).all()
            )

    def insert_share(self, **fields) -> models.Share:
        share = models.Share(**fields)
        with self._guard("insert_share"):
            self.db.add(share)
            self.db.commit()
            self.db.refresh(share)
        return share

    def shared_with(self, user_id: int) -> list[tuple[models.Share, models.Node]]:
        with self._guard("shared_with"):
            rows = self.db.execute(
                select(models.Share, models.Node)
                .join(models.Node, models.Node.id == models.Share.node_id)
                .where(models.Share.shared_with == user_id)
                .where(models.Node.is_deleted.is_(False))
                .order_by(models.Share.id.desc())
            ).all()
        return [(share, node) for share, node in rows]
