from functools import lru_cache

from fastapi import Depends

from .folder_service import FolderService
from .document_service import DocumentService
from .storage_service import StorageService
from .quota_service import QuotaService


@lru_cache(maxsize=1)
def get_storage_service() -> StorageService:
    """One minio client per process; it is thread safe and pools its own connections"""
    return StorageService()


def get_quota_service() -> QuotaService:
    return QuotaService()


def get_folder_service() -> FolderService:
    return FolderService()


def get_document_service(
    folder_service: FolderService = Depends(get_folder_service),
    storage: StorageService = Depends(get_storage_service),
    quota: QuotaService = Depends(get_quota_service),
) -> DocumentService:
    return DocumentService(
        crud=folder_service.document_crud,
        folder_service=folder_service,
        storage=storage,
        quota=quota,
    )


__all__ = [
    "FolderService",
    "DocumentService",
    "StorageService",
    "QuotaService",
    "get_storage_service",
    "get_quota_service",
    "get_folder_service",
    "get_document_service",
]
