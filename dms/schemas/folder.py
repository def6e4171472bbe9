from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from beanie import PydanticObjectId
from pydantic import BaseModel, ConfigDict, Field, field_validator

from dms.utils.path_util import PATH_SEPARATOR


def _clean_folder_name(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError("Folder name cannot be empty")
    if PATH_SEPARATOR in v:
        raise ValueError(f"Folder name cannot contain '{PATH_SEPARATOR}'")
    return v


class FolderCreateRequest(BaseModel):
    """Body for creating a folder"""
    name: str = Field(..., min_length=1, max_length=255, description="Folder name")
    parent_id: Optional[str] = Field(None, description="Parent folder ID, omit for a root folder")
    metadata: Optional[Dict[str, Any]] = Field(None, description="Arbitrary metadata")

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        return _clean_folder_name(v)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "name": "2024",
                "parent_id": "507f1f77bcf86cd799439011",
                "metadata": {"color": "blue"}
            }
        }
    )


class FolderCreate(BaseModel):
    """Internal schema for creating folder with all required fields"""
    owner_id: str
    name: str
    parent_id: Optional[PydanticObjectId] = None
    path: str
    depth: int = 0
    metadata: Dict[str, Any] = Field(default_factory=dict)


class FolderUpdate(BaseModel):
    """Schema for updating folder name and/or metadata"""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    metadata: Optional[Dict[str, Any]] = None

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return _clean_folder_name(v)


class FolderMoveRequest(BaseModel):
    """Body for moving a folder; a null parent moves it to the root"""
    parent_id: Optional[str] = Field(None, description="New parent folder ID")


class FolderResponse(BaseModel):
    """Schema for returning folder information"""
    id: str
    name: str
    parent_id: Optional[str] = None
    owner_id: str
    path: str
    depth: int
    metadata: Dict[str, Any] = Field(default_factory=dict)
    is_deleted: bool = False
    deleted_at: Optional[datetime] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, folder: Any) -> "FolderResponse":
        return cls(
            id=str(folder.id),
            name=folder.name,
            parent_id=str(folder.parent_id) if folder.parent_id else None,
            owner_id=folder.owner_id,
            path=folder.path,
            depth=folder.depth,
            metadata=folder.metadata or {},
            is_deleted=folder.is_deleted,
            deleted_at=folder.deleted_at,
            created_at=folder.created_at,
            updated_at=folder.updated_at,
        )


class FolderWithCounts(FolderResponse):
    document_count: int = 0
    subfolder_count: int = 0


class FolderTreeNode(FolderResponse):
    children: List[FolderTreeNode] = Field(default_factory=list)


FolderTreeNode.model_rebuild()


class BreadcrumbItem(BaseModel):
    id: str
    name: str
    path: str


class FolderListQuery(BaseModel):
    """Filters for listing folders.

    ``parent_id`` only filters when it was explicitly provided; an explicit
    ``None`` selects root-level folders.
    """
    parent_id: Optional[str] = None
    search: Optional[str] = None
    include_deleted: bool = False
    page: int = Field(1, ge=1)
    limit: int = Field(50, ge=1, le=100)
    sort_by: Literal["name", "created_at", "updated_at"] = "name"
    sort_order: Literal["asc", "desc"] = "asc"


class FolderDeleteResult(BaseModel):
    folders_deleted: int
    documents_deleted: int


class FolderPermanentDeleteResult(BaseModel):
    folders_deleted: int
    documents_detached: int
