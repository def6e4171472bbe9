from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from beanie import PydanticObjectId
from pydantic import BaseModel, ConfigDict, Field, field_validator

from dms.schemas.response import Pagination


def _unique_tags(tags: Optional[List[str]]) -> Optional[List[str]]:
    if tags is None:
        return tags
    seen = []
    for tag in tags:
        tag = tag.strip()
        if tag and tag not in seen:
            seen.append(tag)
    return seen


class DocumentCreate(BaseModel):
    """Internal schema for creating a document record"""
    owner_id: str
    name: str
    original_name: str
    mime_type: str
    size: int
    extension: str
    storage_key: str
    folder_id: Optional[PydanticObjectId] = None
    tags: List[str] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)


class DocumentUpdate(BaseModel):
    """Schema for updating document fields.

    An explicit ``folder_id: null`` moves the document to the root.
    """
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    folder_id: Optional[str] = None
    tags: Optional[List[str]] = None
    metadata: Optional[Dict[str, Any]] = None

    @field_validator("tags")
    @classmethod
    def normalize_tags(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        return _unique_tags(v)


class DeletedFolderInfoResponse(BaseModel):
    folder_id: str
    name: str
    path: str
    parent_id: Optional[str] = None


class DocumentResponse(BaseModel):
    """Schema for returning document information"""
    id: str
    name: str
    original_name: str
    mime_type: str
    size: int
    extension: str
    storage_key: str
    folder_id: Optional[str] = None
    owner_id: str
    tags: List[str] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)
    version: int = 1
    is_deleted: bool = False
    deleted_at: Optional[datetime] = None
    deleted_folder_info: Optional[DeletedFolderInfoResponse] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
    download_url: Optional[str] = None

    @classmethod
    def from_model(cls, doc: Any, download_url: Optional[str] = None) -> "DocumentResponse":
        info = doc.deleted_folder_info
        return cls(
            id=str(doc.id),
            name=doc.name,
            original_name=doc.original_name,
            mime_type=doc.mime_type,
            size=doc.size,
            extension=doc.extension,
            storage_key=doc.storage_key,
            folder_id=str(doc.folder_id) if doc.folder_id else None,
            owner_id=doc.owner_id,
            tags=list(doc.tags or []),
            metadata=doc.metadata or {},
            version=doc.version,
            is_deleted=doc.is_deleted,
            deleted_at=doc.deleted_at,
            deleted_folder_info=DeletedFolderInfoResponse(
                folder_id=str(info.folder_id),
                name=info.name,
                path=info.path,
                parent_id=str(info.parent_id) if info.parent_id else None,
            ) if info else None,
            created_at=doc.created_at,
            updated_at=doc.updated_at,
            download_url=download_url,
        )


class DocumentRestoreResponse(BaseModel):
    document: DocumentResponse
    folder_recreated: bool = False


class DocumentListQuery(BaseModel):
    """Filters for listing documents; ``folder_id`` filters only when explicitly set"""
    folder_id: Optional[str] = None
    tags: Optional[List[str]] = None
    search: Optional[str] = None
    extension: Optional[str] = None
    mime_type: Optional[str] = None
    min_size: Optional[int] = Field(None, ge=0)
    max_size: Optional[int] = Field(None, ge=0)
    include_deleted: bool = False
    page: int = Field(1, ge=1)
    limit: int = Field(20, ge=1, le=100)
    sort_by: Literal["name", "created_at", "updated_at", "size"] = "created_at"
    sort_order: Literal["asc", "desc"] = "desc"


class DocumentSearchQuery(BaseModel):
    """
    Advanced search over live documents.

    Every whitespace-separated term of ``query`` must appear in the name,
    original name, a tag or the extension. The other fields narrow the result
    the same way the list filters do; ``date_from``/``date_to`` bound ``created_at``.
    """
    query: Optional[str] = None
    name: Optional[str] = None
    tags: Optional[List[str]] = None
    extension: Optional[str] = None
    mime_type: Optional[str] = None
    min_size: Optional[int] = Field(None, ge=0)
    max_size: Optional[int] = Field(None, ge=0)
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    folder_id: Optional[str] = None
    page: int = Field(1, ge=1)
    limit: int = Field(20, ge=1, le=100)
    sort_by: Literal["name", "created_at", "updated_at", "size", "relevance"] = "created_at"
    sort_order: Literal["asc", "desc"] = "desc"

    @field_validator("date_from", "date_to")
    @classmethod
    def as_naive_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        # stored timestamps are naive UTC
        if v is not None and v.tzinfo is not None:
            return v.astimezone(timezone.utc).replace(tzinfo=None)
        return v

    @property
    def terms(self) -> List[str]:
        return (self.query or "").split()


class SearchMeta(BaseModel):
    query: Optional[str] = None
    results_found: int = Field(..., ge=0, description="Matches across all pages")
    search_time_ms: float = Field(..., ge=0)


class DocumentSearchResult(BaseModel):
    documents: List[DocumentResponse]
    pagination: Pagination
    search_meta: SearchMeta


class PresignedUploadRequest(BaseModel):
    file_name: str = Field(..., min_length=1, max_length=255, description="Original file name")
    mime_type: str = Field(..., description="File MIME type")
    size: int = Field(..., ge=0, description="File size in bytes")

    @field_validator("file_name")
    @classmethod
    def validate_file_name(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("File name cannot be empty")
        return v.strip()

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "file_name": "report.pdf",
                "mime_type": "application/pdf",
                "size": 1024000
            }
        }
    )


class PresignedUploadResponse(BaseModel):
    upload_url: str = Field(..., description="Presigned URL for direct upload")
    key: str = Field(..., description="Storage key to confirm after upload")
    expires_in: int = Field(..., description="URL lifetime in seconds")


class ConfirmUploadRequest(BaseModel):
    key: str = Field(..., min_length=1, description="Storage key returned by the presign step")
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    folder_id: Optional[str] = None
    tags: Optional[List[str]] = None
    metadata: Optional[Dict[str, Any]] = None

    @field_validator("tags")
    @classmethod
    def normalize_tags(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        return _unique_tags(v)


class PresignedDownloadResponse(BaseModel):
    download_url: str
    expires_in: int


class DocumentMoveRequest(BaseModel):
    folder_id: Optional[str] = Field(None, description="Target folder ID, null for root")


class DocumentCopyRequest(BaseModel):
    """``folder_id`` defaults to the source folder unless explicitly given"""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    folder_id: Optional[str] = None
