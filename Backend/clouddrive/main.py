import logging
import mimetypes
from typing import Annotated
from urllib.parse import quote

from fastapi import (
    Depends,
    FastAPI,
    File as FastFile,
    Form,
    Request,
    UploadFile,
)
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from . import auth, favorites, folders, listing, models, schemas, shares, trash, uploads
from .blobs import BlobStore
from .config import CORS_ORIGINS, PUBLIC_BASE_URL, UPLOAD_DIR, configure_logging
from .database import Base, engine
from .errors import DriveError, InvalidRequest
from .store import MetadataStore
from .tree import resolve_path

configure_logging()
logger = logging.getLogger(__name__)

Base.metadata.create_all(bind=engine)

app = FastAPI(title="Cloud Drive API (FastAPI + SQLAlchemy)")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

blob_store = BlobStore(UPLOAD_DIR, PUBLIC_BASE_URL)


def get_blobs() -> BlobStore:
    return blob_store


def get_store(db: auth.DBDep) -> MetadataStore:
    return MetadataStore(db)


StoreDep = Annotated[MetadataStore, Depends(get_store)]
BlobsDep = Annotated[BlobStore, Depends(get_blobs)]
CurrentUser = Annotated[models.User, Depends(auth.get_current_user)]


@app.exception_handler(DriveError)
def handle_drive_error(request: Request, exc: DriveError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.detail)
    return JSONResponse(
        status_code=exc.status_code, content={"detail": exc.detail}, headers=exc.headers
    )


@app.get("/health")
def health_check():
    return {"status": "healthy"}


@app.get("/public/{locator:path}")
def public_content(locator: str, blobs: BlobsDep):
    media_type = mimetypes.guess_type(locator)[0] or "application/octet-stream"
    return Response(content=blobs.download(locator), media_type=media_type)


# ---------- Listing / navigation ----------

@app.get("/drive/files", response_model=schemas.ListingOut)
def list_files(
    current_user: CurrentUser,
    store: StoreDep,
    folderId: int | None = None,
    q: str = "",
    filter: str = "all",
    sort: str = "newest",
):
    view = listing.ViewState(
        query=q,
        filter=listing.parse_filter(filter),
        sort=listing.parse_sort(sort),
    )
    result = listing.list_folder(store, current_user.id, folderId, view)
    return schemas.ListingOut(
        folderId=folderId,
        total=result.total,
        filtered=result.filtered,
        items=[_node_out(e.node, e.is_favorite) for e in result.entries],
    )


@app.get("/drive/breadcrumbs", response_model=schemas.BreadcrumbsOut)
def get_breadcrumbs(
    current_user: CurrentUser,
    store: StoreDep,
    folderId: int | None = None,
):
    path = resolve_path(store, folderId, current_user.id)
    return schemas.BreadcrumbsOut(
        complete=path.complete,
        path=[schemas.BreadcrumbOut(id=n.id, name=n.name) for n in path.nodes],
    )


@app.get("/drive/usage", response_model=schemas.UsageOut)
def get_usage(current_user: CurrentUser, store: StoreDep):
    usage = folders.storage_usage(store, current_user.id)
    return schemas.UsageOut(
        usedBytes=usage.used,
        limitBytes=usage.limit,
        availableBytes=usage.available,
    )


# ---------- Folders / Files ----------

@app.post("/drive/folders", response_model=schemas.NodeOut, status_code=201)
def create_folder(
    body: schemas.FolderCreate,
    current_user: CurrentUser,
    store: StoreDep,
):
    folder = folders.create_folder(store, current_user.id, body.name, body.parentId)
    return _node_out(folder)


@app.post("/drive/files/upload", response_model=schemas.UploadBatchOut, status_code=201)
def upload_files(
    current_user: CurrentUser,
    store: StoreDep,
    blobs: BlobsDep,
    files: list[UploadFile] = FastFile(...),
    folderId: str | None = Form(None),  # multipart sends the id as text
):
    folder_id = _parse_folder_id(folderId)

    incoming = []
    for upload in files:
        incoming.append(
            uploads.IncomingFile(
                name=upload.filename or "file",
                content_type=upload.content_type or "application/octet-stream",
                data=upload.file.read(),
            )
        )

    results = uploads.upload_batch(store, blobs, current_user.id, folder_id, incoming)
    items = [
        schemas.UploadItemOut(
            name=r.name,
            ok=r.ok,
            node=_node_out(r.node) if r.node is not None else None,
            versionNumber=r.version.version_number if r.version is not None else None,
            error=r.error.detail if r.error is not None else None,
        )
        for r in results
    ]
    uploaded = sum(1 for r in results if r.ok)
    return schemas.UploadBatchOut(uploaded=uploaded, failed=len(results) - uploaded, items=items)


@app.patch("/drive/files/{node_id}", response_model=schemas.NodeOut)
def update_node(
    node_id: int,
    body: schemas.NodeUpdate,
    current_user: CurrentUser,
    store: StoreDep,
):
    node = store.get_owned_node(current_user.id, node_id)
    if body.name is not None:
        node = folders.rename_node(store, current_user.id, node_id, body.name)
    if body.moveToRoot:
        node = folders.move_node(store, current_user.id, node_id, None)
    elif body.parentId is not None:
        node = folders.move_node(store, current_user.id, node_id, body.parentId)
    return _node_out(node, node.id in store.query_favorites(current_user.id))


@app.get("/drive/files/{node_id}/download")
def download_file(
    node_id: int,
    current_user: CurrentUser,
    store: StoreDep,
    blobs: BlobsDep,
):
    node, data = folders.download_node(store, blobs, current_user.id, node_id)
    return _attachment(data, node.content_type, node.name)


@app.get("/drive/files/{node_id}/url", response_model=schemas.UrlOut)
def get_public_url(
    node_id: int,
    current_user: CurrentUser,
    store: StoreDep,
    blobs: BlobsDep,
):
    return schemas.UrlOut(url=folders.public_url(store, blobs, current_user.id, node_id))


@app.post("/drive/files/{node_id}/favorite", response_model=schemas.FavoriteOut)
def toggle_favorite(node_id: int, current_user: CurrentUser, store: StoreDep):
    state = favorites.toggle_favorite(store, current_user.id, node_id)
    return schemas.FavoriteOut(id=node_id, isFavorite=state)


@app.delete("/drive/files/{node_id}", response_model=schemas.NodeOut)
def delete_file(node_id: int, current_user: CurrentUser, store: StoreDep):
    return _node_out(trash.soft_delete(store, current_user.id, node_id))


# ---------- Trash ----------

@app.get("/drive/trash", response_model=list[schemas.NodeOut])
def get_trash(current_user: CurrentUser, store: StoreDep):
    return [_node_out(n) for n in trash.list_trash(store, current_user.id)]


@app.post("/drive/trash/{node_id}/restore", response_model=schemas.NodeOut)
def restore_file(node_id: int, current_user: CurrentUser, store: StoreDep):
    return _node_out(trash.restore(store, current_user.id, node_id))


@app.delete("/drive/trash/{node_id}", status_code=204)
def purge_file(
    node_id: int,
    current_user: CurrentUser,
    store: StoreDep,
    blobs: BlobsDep,
):
    trash.purge(store, blobs, current_user.id, node_id)
    return Response(status_code=204)


# ---------- Versions ----------

@app.get("/drive/files/{node_id}/versions", response_model=list[schemas.VersionOut])
def get_versions(node_id: int, current_user: CurrentUser, store: StoreDep):
    return [_version_out(v) for v in uploads.list_versions(store, current_user.id, node_id)]


@app.post(
    "/drive/files/{node_id}/versions/{version_id}/restore",
    response_model=schemas.NodeOut,
)
def restore_version(
    node_id: int,
    version_id: int,
    current_user: CurrentUser,
    store: StoreDep,
):
    node = uploads.restore_version(store, current_user.id, node_id, version_id)
    return _node_out(node)


@app.get("/drive/files/{node_id}/versions/{version_id}/download")
def download_version(
    node_id: int,
    version_id: int,
    current_user: CurrentUser,
    store: StoreDep,
    blobs: BlobsDep,
):
    version, data = uploads.download_version(store, blobs, current_user.id, node_id, version_id)
    return _attachment(data, version.content_type, f"version_{version.version_number}")


# ---------- Shares ----------

@app.post("/drive/files/{node_id}/shares", response_model=schemas.ShareOut, status_code=201)
def share_file(
    node_id: int,
    body: schemas.ShareCreate,
    current_user: CurrentUser,
    store: StoreDep,
):
    share = shares.grant_share(store, current_user.id, node_id, body.email, body.permission)
    return schemas.ShareOut(
        id=share.id,
        nodeId=share.node_id,
        sharedBy=share.shared_by,
        sharedWith=share.shared_with,
        permission=share.permission,
        createdAt=share.created_at,
    )


@app.get("/drive/shared", response_model=list[schemas.SharedNodeOut])
def get_shared_with_me(current_user: CurrentUser, store: StoreDep):
    return [
        schemas.SharedNodeOut(
            shareId=share.id,
            permission=share.permission,
            sharedBy=share.shared_by,
            node=_node_out(node),
        )
        for share, node in shares.list_shared_with(store, current_user.id)
    ]


def _parse_folder_id(value: str | None) -> int | None:
    if value is None or value == "null":
        return None
    try:
        return int(value)
    except ValueError:
        raise InvalidRequest(f"Invalid folder id {value!r}")


def _attachment(data: bytes, content_type: str | None, filename: str) -> Response:
    return Response(
        content=data,
        media_type=content_type or "application/octet-stream",
        headers={"Content-Disposition": f"attachment; filename*=UTF-8''{quote(filename)}"},
    )


def _node_out(node: models.Node, is_favorite: bool = False) -> schemas.NodeOut:
    return schemas.NodeOut(
        id=node.id,
        name=node.name,
        isFolder=node.is_folder,
        parentId=node.parent_id,
        ownerId=node.owner_id,
        sizeBytes=node.size or 0,
        contentType=node.content_type or "",
        isDeleted=node.is_deleted,
        isFavorite=is_favorite,
        canPreview=folders.can_preview(node),
        createdAt=node.created_at,
        modifiedAt=node.modified_at,
    )


def _version_out(version: models.Version) -> schemas.VersionOut:
    return schemas.VersionOut(
        id=version.id,
        nodeId=version.node_id,
        versionNumber=version.version_number,
        sizeBytes=version.size or 0,
        contentType=version.content_type or "",
        authorId=version.author_id,
        createdAt=version.created_at,
    )
