from datetime import datetime
from typing import Literal

from pydantic import BaseModel, EmailStr, Field


# ---------- Nodes ----------

class NodeOut(BaseModel):
    id: int
    name: str
    isFolder: bool
    parentId: int | None = None
    ownerId: int
    sizeBytes: int
    contentType: str
    isDeleted: bool
    isFavorite: bool = False
    canPreview: bool = False
    createdAt: datetime
    modifiedAt: datetime


class ListingOut(BaseModel):
    folderId: int | None
    total: int
    filtered: int
    items: list[NodeOut]


class BreadcrumbOut(BaseModel):
    id: int
    name: str


class BreadcrumbsOut(BaseModel):
    complete: bool
    path: list[BreadcrumbOut]


class FolderCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    parentId: int | None = None


class NodeUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    parentId: int | None = None
    moveToRoot: bool = False


class FavoriteOut(BaseModel):
    id: int
    isFavorite: bool


class UrlOut(BaseModel):
    url: str


# ---------- Uploads / Versions ----------

class UploadItemOut(BaseModel):
    name: str
    ok: bool
    node: NodeOut | None = None
    versionNumber: int | None = None
    error: str | None = None


class UploadBatchOut(BaseModel):
    uploaded: int
    failed: int
    items: list[UploadItemOut]


class VersionOut(BaseModel):
    id: int
    nodeId: int
    versionNumber: int
    sizeBytes: int
    contentType: str
    authorId: int | None = None
    createdAt: datetime


# ---------- Shares ----------

class ShareCreate(BaseModel):
    email: EmailStr
    permission: Literal["view", "edit"] = "view"


class ShareOut(BaseModel):
    id: int
    nodeId: int
    sharedBy: int
    sharedWith: int
    permission: str
    createdAt: datetime


class SharedNodeOut(BaseModel):
    shareId: int
    permission: str
    sharedBy: int
    node: NodeOut


# ---------- Usage ----------

class UsageOut(BaseModel):
    usedBytes: int
    limitBytes: int
    availableBytes: int
