from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field


def utcnow() -> datetime:
    return datetime.utcnow()


class TimeMixin(BaseModel):
    created_at: datetime = Field(
        default_factory=utcnow, description="Creation timestamp")
    updated_at: Optional[datetime] = Field(
        default=None, description="Last update timestamp")


class SoftDeleteMixin(BaseModel):
    is_deleted: bool = Field(
        default=False, description="Soft delete flag")
    deleted_at: Optional[datetime] = Field(
        default=None, description="Deletion timestamp")
