from typing import Any, Dict, Optional, Annotated
from beanie import Document, Indexed, PydanticObjectId
from pydantic import Field
from pymongo import ASCENDING, IndexModel
from dms.models.mixins import TimeMixin, SoftDeleteMixin

MAX_FOLDER_DEPTH = 50


class Folder(Document, TimeMixin, SoftDeleteMixin):
    """Folder node in the per-owner tree.

    ``path`` and ``depth`` are materialized from the ancestor chain and are only
    ever written by the folder service.
    """

    name: str = Field(..., min_length=1, max_length=255, description="Folder name")
    parent_id: Optional[PydanticObjectId] = Field(None, description="Parent folder, None for root level")
    owner_id: Annotated[str, Indexed(str)] = Field(..., description="User/tenant who owns the folder")
    path: Annotated[str, Indexed(str)] = Field(..., description="Full folder path, e.g. /Docs/2024")
    depth: int = Field(default=0, ge=0, le=MAX_FOLDER_DEPTH, description="Number of ancestors")
    metadata: Dict[str, Any] = Field(default_factory=dict, description="Arbitrary folder metadata")

    class Settings:
        name = "folders"
        indexes = [
            IndexModel([("owner_id", ASCENDING), ("is_deleted", ASCENDING)]),
            IndexModel([("parent_id", ASCENDING), ("is_deleted", ASCENDING)]),
            IndexModel([("owner_id", ASCENDING), ("parent_id", ASCENDING), ("name", ASCENDING)]),
            IndexModel([("path", ASCENDING), ("owner_id", ASCENDING)]),
        ]
