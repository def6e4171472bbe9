from typing import Annotated, Optional
from beanie import Document, Indexed
from pydantic import Field

from dms.models.mixins import TimeMixin


class User(TimeMixin, Document):
    owner_id: Annotated[str, Indexed(unique=True)] = Field(..., description="Subject claim of the bearer token")
    email: Optional[str] = Field(None, description="Primary email address")
    storage_used: int = Field(default=0, ge=0, description="Bytes currently stored")
    storage_limit: int = Field(..., ge=0, description="Maximum bytes allowed")

    class Settings:
        name = "users"
