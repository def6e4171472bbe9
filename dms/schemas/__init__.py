from dms.schemas.response import Pagination, ApiResponse, ApiError, ErrorDetail, HealthCheck, TrashEmptyResult
from dms.schemas.user import StorageInfo, UserCreate, UserUpdate
from dms.schemas.folder import (
    FolderCreateRequest, FolderCreate, FolderUpdate, FolderMoveRequest, FolderResponse,
    FolderWithCounts, FolderTreeNode, BreadcrumbItem, FolderListQuery,
    FolderDeleteResult, FolderPermanentDeleteResult
)
from dms.schemas.document import (
    DocumentCreate, DocumentUpdate, DocumentResponse, DocumentRestoreResponse, DocumentListQuery,
    DocumentSearchQuery, DocumentSearchResult, SearchMeta,
    PresignedUploadRequest, PresignedUploadResponse, ConfirmUploadRequest,
    PresignedDownloadResponse, DocumentMoveRequest, DocumentCopyRequest
)

__all__ = [
    "Pagination",
    "ApiResponse",
    "ApiError",
    "ErrorDetail",
    "HealthCheck",
    "TrashEmptyResult",
    "StorageInfo",
    "UserCreate",
    "UserUpdate",
    # Folder schemas
    "FolderCreateRequest",
    "FolderCreate",
    "FolderUpdate",
    "FolderMoveRequest",
    "FolderResponse",
    "FolderWithCounts",
    "FolderTreeNode",
    "BreadcrumbItem",
    "FolderListQuery",
    "FolderDeleteResult",
    "FolderPermanentDeleteResult",
    # Document schemas
    "DocumentCreate",
    "DocumentUpdate",
    "DocumentResponse",
    "DocumentRestoreResponse",
    "DocumentListQuery",
    "DocumentSearchQuery",
    "DocumentSearchResult",
    "SearchMeta",
    "PresignedUploadRequest",
    "PresignedUploadResponse",
    "ConfirmUploadRequest",
    "PresignedDownloadResponse",
    "DocumentMoveRequest",
    "DocumentCopyRequest",
]
