import mimetypes
import os
from datetime import datetime
from time import perf_counter
from typing import Any, Dict, List, Optional, Tuple

from beanie import PydanticObjectId
from pymongo import ASCENDING, DESCENDING

from dms.configs.settings import settings
from dms.core.exceptions import (
    ConflictError,
    NotFoundError,
    ValidationError,
    FILE_NOT_IN_STORAGE,
    FILE_TOO_LARGE,
    FILE_TYPE_NOT_ALLOWED,
    STORAGE_QUOTA_EXCEEDED,
)
from dms.crud.document import DocumentCRUD, document_list_filter, document_search_filter, folder_snapshot
from dms.models.document import Document
from dms.models.folder import Folder
from dms.schemas import (
    DocumentCopyRequest,
    DocumentCreate,
    DocumentListQuery,
    DocumentSearchQuery,
    DocumentUpdate,
    FolderCreate,
    PresignedDownloadResponse,
    PresignedUploadResponse,
    SearchMeta,
)
from dms.services.folder_service import FolderService
from dms.services.quota_service import QuotaService
from dms.services.storage_service import StorageService, build_object_key, owner_key_prefix
from dms.utils import get_logger
from dms.utils.path_util import cumulative_paths, split_path

logger = get_logger(__name__)


def file_extension(file_name: str) -> str:
    """Lowercase extension without the dot, "" when there is none"""
    return os.path.splitext(file_name)[1].lower().lstrip(".")


def relevance(doc: Document, terms: List[str]) -> int:
    """Weighted term hits: the name counts most, then tags, extension and original name"""
    name = doc.name.lower()
    tags = [tag.lower() for tag in doc.tags or []]
    score = 0
    for term in (t.lower() for t in terms):
        if name == term:
            score += 10
        elif name.startswith(term):
            score += 6
        elif term in name:
            score += 4
        if term in tags:
            score += 3
        elif any(term in tag for tag in tags):
            score += 2
        if doc.extension == term:
            score += 2
        if term in doc.original_name.lower():
            score += 1
    return score


class DocumentService:
    """Document lifecycle on top of the folder tree, object storage and the quota"""

    def __init__(
        self,
        crud: Optional[DocumentCRUD] = None,
        folder_service: Optional[FolderService] = None,
        storage: Optional[StorageService] = None,
        quota: Optional[QuotaService] = None,
    ):
        self.crud = crud or DocumentCRUD()
        self.folder_service = folder_service or FolderService(document_crud=self.crud)
        self.storage = storage or StorageService()
        self.quota = quota or QuotaService()
        self.url_expires_in = settings.UPLOAD_URL_EXPIRES_IN

    # Validation helpers

    @staticmethod
    def _validate_file_type(file_name: str) -> str:
        ext = file_extension(file_name)
        allowed = [t.lower() for t in settings.UPLOAD_ALLOWED_FILE_TYPES]
        if ext not in allowed:
            raise ValidationError(
                f"File type '.{ext}' is not allowed. Allowed types: {', '.join(allowed)}",
                code=FILE_TYPE_NOT_ALLOWED,
                field="file_name",
            )
        return ext

    @staticmethod
    def _validate_file_size(size: int) -> None:
        max_size = settings.UPLOAD_MAX_FILE_SIZE_MB * 1024 * 1024
        if size > max_size:
            raise ValidationError(
                f"File size exceeds maximum allowed size of {settings.UPLOAD_MAX_FILE_SIZE_MB}MB",
                code=FILE_TOO_LARGE,
                field="size",
            )

    async def _ensure_quota(self, owner_id: str, size: int) -> None:
        if not await self.quota.has_available(owner_id, size):
            raise ValidationError("Storage quota exceeded", code=STORAGE_QUOTA_EXCEEDED)

    async def _resolve_folder_id(self, owner_id: str, folder_id: Optional[str]) -> Optional[PydanticObjectId]:
        if not folder_id:
            return None
        folder = await self.folder_service.ensure_folder_exists(owner_id, folder_id)
        return folder.id

    async def _get_active(self, document_id: str, owner_id: str) -> Document:
        doc = await self.crud.get_owned(document_id, owner_id)
        if not doc:
            raise NotFoundError("Document")
        return doc

    # Uploads

    async def get_presigned_upload_url(
        self, owner_id: str, file_name: str, mime_type: str, size: int
    ) -> PresignedUploadResponse:
        self._validate_file_type(file_name)
        self._validate_file_size(size)
        await self._ensure_quota(owner_id, size)

        key = build_object_key(owner_id, file_name)
        upload_url = await self.storage.get_presigned_upload_url(key, self.url_expires_in)
        logger.debug(f"Generated presigned upload URL for key {key} ({mime_type}, {size} bytes)")
        return PresignedUploadResponse(upload_url=upload_url, key=key, expires_in=self.url_expires_in)

    async def confirm_upload(
        self,
        owner_id: str,
        key: str,
        name: Optional[str] = None,
        folder_id: Optional[str] = None,
        tags: Optional[List[str]] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Document:
        """Register an object the client uploaded through a presigned URL"""
        if not key.startswith(owner_key_prefix(owner_id)):
            raise ValidationError("File not found in storage. Upload may have failed.", code=FILE_NOT_IN_STORAGE)
        object_meta = await self.storage.get_metadata(key)
        if object_meta is None:
            raise ValidationError("File not found in storage. Upload may have failed.", code=FILE_NOT_IN_STORAGE)
        if await self.crud.get_by_storage_key(key):
            raise ConflictError("Upload has already been confirmed", code="DOCUMENT_EXISTS")

        folder_oid = await self._resolve_folder_id(owner_id, folder_id)
        if not await self.quota.has_available(owner_id, object_meta.size):
            await self.storage.delete(key)
            logger.info(f"Removed upload {key} of owner {owner_id}: quota exceeded")
            raise ValidationError("Storage quota exceeded", code=STORAGE_QUOTA_EXCEEDED)

        file_name = os.path.basename(key)
        mime_type = object_meta.content_type or mimetypes.guess_type(file_name)[0] or "application/octet-stream"
        doc = await self.crud.create(DocumentCreate(
            owner_id=owner_id,
            name=name or file_name,
            original_name=file_name,
            mime_type=mime_type,
            size=object_meta.size,
            extension=file_extension(file_name),
            storage_key=key,
            folder_id=folder_oid,
            tags=tags or [],
            metadata=metadata or {},
        ))
        await self.quota.adjust_used(owner_id, doc.size)

        logger.info(f"Document created: {doc.id} from upload {key} by owner {owner_id}")
        return doc

    async def upload_direct(
        self,
        owner_id: str,
        data: bytes,
        file_name: str,
        mime_type: Optional[str] = None,
        name: Optional[str] = None,
        folder_id: Optional[str] = None,
        tags: Optional[List[str]] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Document:
        """Server-side upload: bytes go through the API into storage"""
        extension = self._validate_file_type(file_name)
        self._validate_file_size(len(data))
        folder_oid = await self._resolve_folder_id(owner_id, folder_id)
        await self._ensure_quota(owner_id, len(data))

        if not mime_type or mime_type == "application/octet-stream":
            mime_type = mimetypes.guess_type(file_name)[0] or "application/octet-stream"

        key = build_object_key(owner_id, file_name)
        await self.storage.upload(key, data, mime_type)
        try:
            doc = await self.crud.create(DocumentCreate(
                owner_id=owner_id,
                name=name or file_name,
                original_name=file_name,
                mime_type=mime_type,
                size=len(data),
                extension=extension,
                storage_key=key,
                folder_id=folder_oid,
                tags=tags or [],
                metadata=metadata or {},
            ))
        except Exception:
            await self.storage.delete(key)
            raise
        await self.quota.adjust_used(owner_id, doc.size)

        logger.info(f"Document uploaded directly: {doc.id} ({doc.size} bytes) by owner {owner_id}")
        return doc

    # Reads

    async def get_document(self, document_id: str, owner_id: str) -> Tuple[Document, str]:
        doc = await self._get_active(document_id, owner_id)
        download_url = await self.storage.get_presigned_download_url(doc.storage_key, self.url_expires_in)
        return doc, download_url

    async def get_download_url(self, document_id: str, owner_id: str) -> PresignedDownloadResponse:
        doc = await self._get_active(document_id, owner_id)
        download_url = await self.storage.get_presigned_download_url(
            doc.storage_key, self.url_expires_in, file_name=doc.name
        )
        return PresignedDownloadResponse(download_url=download_url, expires_in=self.url_expires_in)

    async def download(self, document_id: str, owner_id: str) -> Tuple[bytes, Document]:
        doc = await self._get_active(document_id, owner_id)
        content = await self.storage.download(doc.storage_key)
        return content, doc

    async def list_documents(self, owner_id: str, query: DocumentListQuery) -> Tuple[List[Document], int]:
        filter_ = document_list_filter(owner_id, query)
        direction = ASCENDING if query.sort_order == "asc" else DESCENDING
        total = await self.crud.count(filter_)
        docs = await self.crud.list(
            filter_,
            skip=(query.page - 1) * query.limit,
            limit=query.limit,
            sort=[(query.sort_by, direction)],
        )
        return docs, total

    async def search_documents(
        self, owner_id: str, query: DocumentSearchQuery
    ) -> Tuple[List[Document], int, SearchMeta]:
        if query.date_from and query.date_to and query.date_from > query.date_to:
            raise ValidationError("date_from must not be later than date_to", field="date_from")
        if query.min_size is not None and query.max_size is not None and query.min_size > query.max_size:
            raise ValidationError("min_size must not exceed max_size", field="min_size")

        start = perf_counter()
        filter_ = document_search_filter(owner_id, query)
        total = await self.crud.count(filter_)
        skip = (query.page - 1) * query.limit
        direction = ASCENDING if query.sort_order == "asc" else DESCENDING

        if query.sort_by == "relevance" and query.terms:
            # scored in memory; ties keep newest first
            found = await self.crud.list(filter_, limit=0, sort=[("created_at", DESCENDING)])
            found.sort(key=lambda doc: relevance(doc, query.terms), reverse=direction == DESCENDING)
            docs = found[skip:skip + query.limit]
        else:
            sort_by = "created_at" if query.sort_by == "relevance" else query.sort_by
            docs = await self.crud.list(filter_, skip=skip, limit=query.limit, sort=[(sort_by, direction)])

        elapsed = round((perf_counter() - start) * 1000.0, 2)
        logger.info(f"Document search by owner {owner_id}: query={query.query!r} found {total} in {elapsed}ms")
        return docs, total, SearchMeta(query=query.query, results_found=total, search_time_ms=elapsed)

    # Mutations

    async def update_document(self, document_id: str, owner_id: str, payload: DocumentUpdate) -> Document:
        doc = await self._get_active(document_id, owner_id)
        update_data: Dict[str, Any] = {}
        if payload.name is not None:
            update_data["name"] = payload.name
        if "folder_id" in payload.model_fields_set:
            update_data["folder_id"] = await self._resolve_folder_id(owner_id, payload.folder_id)
        if payload.tags is not None:
            update_data["tags"] = payload.tags
        if payload.metadata is not None:
            update_data["metadata"] = payload.metadata
        if not update_data:
            return doc

        doc = await self.crud.update(doc, update_data)
        logger.info(f"Document updated: {doc.id} ({', '.join(sorted(update_data))}) by owner {owner_id}")
        return doc

    async def move_document(self, document_id: str, owner_id: str, folder_id: Optional[str]) -> Document:
        doc = await self._get_active(document_id, owner_id)
        folder_oid = await self._resolve_folder_id(owner_id, folder_id)
        doc = await self.crud.update(doc, {"folder_id": folder_oid})
        logger.info(f"Document moved: {doc.id} to folder {folder_oid or 'root'} by owner {owner_id}")
        return doc

    async def copy_document(self, document_id: str, owner_id: str, payload: DocumentCopyRequest) -> Document:
        source = await self._get_active(document_id, owner_id)
        if "folder_id" in payload.model_fields_set:
            folder_oid = await self._resolve_folder_id(owner_id, payload.folder_id)
        else:
            folder_oid = source.folder_id
        await self._ensure_quota(owner_id, source.size)

        new_key = build_object_key(owner_id, source.original_name)
        await self.storage.copy(source.storage_key, new_key)
        doc = await self.crud.create(DocumentCreate(
            owner_id=owner_id,
            name=payload.name or f"Copy of {source.name}",
            original_name=source.original_name,
            mime_type=source.mime_type,
            size=source.size,
            extension=source.extension,
            storage_key=new_key,
            folder_id=folder_oid,
            tags=list(source.tags),
            metadata=dict(source.metadata),
        ))
        await self.quota.adjust_used(owner_id, doc.size)

        logger.info(f"Document copied: {source.id} -> {doc.id} by owner {owner_id}")
        return doc

    async def soft_delete_document(self, document_id: str, owner_id: str) -> Document:
        """Trash a document, remembering its folder so a restore can rebuild it"""
        doc = await self._get_active(document_id, owner_id)
        now = datetime.utcnow()
        update_data: Dict[str, Any] = {"is_deleted": True, "deleted_at": now}

        if doc.folder_id:
            folder = await self.folder_service.crud.get_owned(doc.folder_id, owner_id, is_deleted=None)
            if folder:
                update_data["deleted_folder_info"] = folder_snapshot(folder).model_dump()

        doc = await self.crud.update(doc, update_data)
        logger.info(f"Document soft deleted: {doc.id} by owner {owner_id}")
        return doc

    async def restore_document(
        self, document_id: str, owner_id: str, recreate_folder: bool = True
    ) -> Tuple[Document, bool]:
        """
        Bring a trashed document back.

        The document returns to the folder it was deleted from when that folder
        record still exists, even if the folder is itself in the trash. When the
        folder is gone for good, the chain is rebuilt from the snapshot path
        (``recreate_folder``) or the document lands in the root.
        Returns the document and whether any folder had to be created.
        """
        doc = await self.crud.get_owned(document_id, owner_id, is_deleted=True)
        if not doc:
            raise NotFoundError("Document")

        folder_oid: Optional[PydanticObjectId] = None
        folder_recreated = False
        info = doc.deleted_folder_info
        folder_ref = info.folder_id if info else doc.folder_id

        if folder_ref:
            folder = await self.folder_service.crud.get_owned(folder_ref, owner_id, is_deleted=None)
            if folder:
                folder_oid = folder.id
            elif info and recreate_folder:
                target, folder_recreated = await self._recreate_folder_chain(owner_id, info.path)
                folder_oid = target.id if target else None

        doc = await self.crud.update(doc, {
            "folder_id": folder_oid,
            "is_deleted": False,
            "deleted_at": None,
            "deleted_folder_info": None,
        })
        logger.info(
            f"Document restored: {doc.id} to folder {folder_oid or 'root'} "
            f"(recreated={folder_recreated}) by owner {owner_id}"
        )
        return doc, folder_recreated

    async def _recreate_folder_chain(self, owner_id: str, path: str) -> Tuple[Optional[Folder], bool]:
        """
        Lookup-or-create every folder along ``path`` from the root down.
        Existing live folders are reused, so this never conflicts; any failure is
        logged and reported as (None, False) so the caller falls back to the root.
        """
        folder_crud = self.folder_service.crud
        parent: Optional[Folder] = None
        created = False
        try:
            for depth, (segment, cumulative) in enumerate(zip(split_path(path), cumulative_paths(path))):
                folder = await folder_crud.get_by_path(owner_id, cumulative)
                if folder is None:
                    folder = await folder_crud.create(FolderCreate(
                        owner_id=owner_id,
                        name=segment,
                        parent_id=parent.id if parent else None,
                        path=cumulative,
                        depth=depth,
                    ))
                    created = True
                    logger.info(f"Folder recreated: {folder.id} ({cumulative}) by owner {owner_id}")
                parent = folder
        except Exception:
            logger.error(f"Failed to recreate folder chain {path} for owner {owner_id}", exc_info=True)
            return None, False
        return parent, created

    async def permanent_delete_document(self, document_id: str, owner_id: str) -> None:
        doc = await self.crud.get_owned(document_id, owner_id, is_deleted=None)
        if not doc:
            raise NotFoundError("Document")

        await self.storage.delete(doc.storage_key)
        await self.crud.delete(doc)
        await self.quota.adjust_used(owner_id, -doc.size)
        logger.info(f"Document permanently deleted: {doc.id} ({doc.size} bytes released) by owner {owner_id}")

    async def list_trash_documents(self, owner_id: str, page: int = 1, limit: int = 20) -> Tuple[List[Document], int]:
        total = await self.crud.count({"owner_id": owner_id, "is_deleted": True})
        docs = await self.crud.list_deleted(owner_id, skip=(page - 1) * limit, limit=limit)
        return docs, total

    async def empty_trash(self, owner_id: str) -> int:
        """Permanently delete every trashed document of the owner; returns how many"""
        docs = await self.crud.list_deleted(owner_id)
        if not docs:
            return 0

        await self.storage.delete_many([doc.storage_key for doc in docs])
        deleted = await self.crud.delete_by_ids(owner_id, [doc.id for doc in docs])
        released = sum(doc.size for doc in docs)
        await self.quota.adjust_used(owner_id, -released)

        logger.info(f"Trash emptied: {deleted} documents, {released} bytes released by owner {owner_id}")
        return deleted
