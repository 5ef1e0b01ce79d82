import os
import tempfile
from datetime import datetime, timedelta, timezone

# configure before the app module is imported
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="clouddrive-test-"))

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from clouddrive import models
from clouddrive.auth import create_access_token
from clouddrive.blobs import BlobStore
from clouddrive.database import Base, get_db
from clouddrive.store import MetadataStore


@pytest.fixture
def db():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def store(db):
    return MetadataStore(db)


@pytest.fixture
def blobs(tmp_path):
    return BlobStore(tmp_path / "blobs", "http://files.test/public")


@pytest.fixture
def alice(db):
    user = models.User(email="alice@example.com")
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def bob(db):
    user = models.User(email="bob@example.com")
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def make_node(store):
    def _make(owner, name, parent=None, is_folder=False, size=0,
              content_type="", created_at=None, is_deleted=False, storage_path=""):
        fields = dict(
            owner_id=owner.id,
            parent_id=parent.id if parent is not None else None,
            name=name,
            is_folder=is_folder,
            size=size,
            content_type="folder" if is_folder else content_type,
            storage_path=storage_path,
            is_deleted=is_deleted,
        )
        if created_at is not None:
            fields["created_at"] = created_at
            fields["modified_at"] = created_at
        return store.insert_node(**fields)

    return _make


@pytest.fixture
def days_ago():
    now = datetime.now(timezone.utc)
    return lambda days: now - timedelta(days=days)


@pytest.fixture
def client(db, blobs):
    from clouddrive.main import app, get_blobs

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_blobs] = lambda: blobs
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    def _headers(user):
        return {"Authorization": f"Bearer {create_access_token(user.id)}"}

    return _headers
