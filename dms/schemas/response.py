from typing import Dict, Generic, List, Literal, Optional, TypeVar
from datetime import datetime

from pydantic import BaseModel, Field, ConfigDict


T = TypeVar("T")

ServiceState = Literal["connected", "disconnected"]


class Pagination(BaseModel):
    """Page metadata attached to list responses as ``meta``"""
    total: int = Field(..., ge=0, description="Matching items across all pages")
    page: int = Field(..., ge=1, description="1-based page number")
    page_size: int = Field(..., ge=1, description="Requested page size")
    pages: int = Field(..., ge=1, description="Page count, at least 1")
    next: Optional[str] = Field(None, description="Absolute URL of the next page")
    previous: Optional[str] = Field(None, description="Absolute URL of the previous page")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "total": 42,
                "page": 1,
                "page_size": 20,
                "pages": 3,
                "next": "http://localhost:8000/api/v1/documents?folder_id=root&page=2&limit=20",
            }
        }
    )


class ApiResponse(BaseModel, Generic[T]):
    """Envelope for every successful response"""
    success: bool = True
    message: Optional[str] = None
    data: Optional[T] = None
    meta: Optional[Pagination] = None


class ErrorDetail(BaseModel):
    code: str = Field(..., description="Machine readable code, e.g. FOLDER_NAME_EXISTS")
    message: str
    field: Optional[str] = Field(None, description="Offending request field, when there is one")


class ApiError(BaseModel):
    """Envelope for every failed response"""
    success: bool = False
    message: str
    code: Optional[str] = None
    errors: Optional[List[ErrorDetail]] = None
    timestamp: datetime = Field(default_factory=datetime.utcnow)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "success": False,
                "message": "A folder named \"Docs\" already exists in this location",
                "code": "FOLDER_NAME_EXISTS",
                "errors": [{
                    "code": "FOLDER_NAME_EXISTS",
                    "message": "A folder named \"Docs\" already exists in this location",
                    "field": "name"
                }],
                "timestamp": "2024-05-01T10:00:00"
            }
        }
    )


class TrashEmptyResult(BaseModel):
    deleted: int = Field(..., ge=0, description="Documents permanently removed")


class HealthCheck(BaseModel):
    status: str
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    version: Optional[str] = None
    environment: Optional[str] = None
    services: Dict[str, ServiceState] = Field(default_factory=dict, description="State of MongoDB and object storage")
