from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class StorageInfo(BaseModel):
    """Storage quota usage for the current owner"""
    used: int = Field(..., ge=0, description="Bytes used")
    limit: int = Field(..., ge=0, description="Bytes allowed")
    available: int = Field(..., ge=0, description="Bytes still available")
    used_percentage: float = Field(..., ge=0, description="Share of the limit in use")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "used": 1073741824,
                "limit": 5368709120,
                "available": 4294967296,
                "used_percentage": 20.0
            }
        }
    )


class UserCreate(BaseModel):
    """Internal schema for the lazily created quota record"""
    owner_id: str
    email: Optional[str] = None
    storage_used: int = 0
    storage_limit: int


class UserUpdate(BaseModel):
    email: Optional[str] = None
    storage_limit: Optional[int] = Field(None, ge=0)
