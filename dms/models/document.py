from typing import Any, Dict, List, Optional, Annotated
from beanie import Document as BeanieDocument, Indexed, PydanticObjectId
from pydantic import BaseModel, Field
from pymongo import ASCENDING, DESCENDING, IndexModel
from dms.models.mixins import TimeMixin, SoftDeleteMixin


class DeletedFolderInfo(BaseModel):
    """Where a document lived when it was soft-deleted"""

    folder_id: PydanticObjectId
    name: str
    path: str
    parent_id: Optional[PydanticObjectId] = None


class Document(BeanieDocument, TimeMixin, SoftDeleteMixin):
    """Document metadata in MongoDB; content lives in object storage under ``storage_key``"""

    name: str = Field(..., min_length=1, max_length=255, description="Display name")
    original_name: str = Field(..., max_length=255, description="File name as uploaded")
    mime_type: str = Field(..., description="MIME type, e.g. application/pdf")
    size: int = Field(..., ge=0, description="Size in bytes")
    extension: str = Field(..., description="Lowercase extension without dot")
    storage_key: Annotated[str, Indexed(str, unique=True)] = Field(..., description="Object key in storage")
    folder_id: Optional[PydanticObjectId] = Field(None, description="Containing folder, None for root")
    owner_id: Annotated[str, Indexed(str)] = Field(..., description="User/tenant who owns the document")
    tags: List[str] = Field(default_factory=list, description="Document tags")
    metadata: Dict[str, Any] = Field(default_factory=dict, description="Arbitrary document metadata")
    version: int = Field(default=1, ge=1)
    deleted_folder_info: Optional[DeletedFolderInfo] = Field(
        None, description="Folder snapshot taken at soft-delete time"
    )

    class Settings:
        name = "documents"
        indexes = [
            IndexModel([("owner_id", ASCENDING), ("is_deleted", ASCENDING)]),
            IndexModel([("folder_id", ASCENDING), ("is_deleted", ASCENDING)]),
            IndexModel([("created_at", DESCENDING)]),
        ]
