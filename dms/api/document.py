import json
from datetime import datetime
from typing import List, Literal, Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile
from starlette.responses import Response

from dms.api.params import folder_ref, query_fields
from dms.core.exceptions import ValidationError
from dms.schemas import (
    ApiResponse,
    ConfirmUploadRequest,
    DocumentCopyRequest,
    DocumentListQuery,
    DocumentMoveRequest,
    DocumentResponse,
    DocumentRestoreResponse,
    DocumentSearchQuery,
    DocumentSearchResult,
    DocumentUpdate,
    PresignedDownloadResponse,
    PresignedUploadRequest,
    PresignedUploadResponse,
    TrashEmptyResult,
)
from dms.services import DocumentService, get_document_service
from dms.utils.api_response import created, ok, page_meta, paginated
from dms.utils.verify_token import get_current_owner_id

router = APIRouter()


def _split_tags(tags: Optional[str]) -> Optional[List[str]]:
    if tags is None:
        return None
    return [tag.strip() for tag in tags.split(",") if tag.strip()]


@router.get("", response_model=ApiResponse[list[DocumentResponse]])
async def list_documents(
    request: Request,
    folder_id: Optional[str] = Query(None, description="Folder ID, 'root' for documents outside any folder"),
    tags: Optional[str] = Query(None, description="Comma-separated tags, all must match"),
    search: Optional[str] = Query(None, description="Case-insensitive name search"),
    extension: Optional[str] = Query(None),
    mime_type: Optional[str] = Query(None),
    min_size: Optional[int] = Query(None, ge=0),
    max_size: Optional[int] = Query(None, ge=0),
    include_deleted: bool = Query(False),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    sort_by: Literal["name", "created_at", "updated_at", "size"] = Query("created_at"),
    sort_order: Literal["asc", "desc"] = Query("desc"),
    owner_id: str = Depends(get_current_owner_id),
    service: DocumentService = Depends(get_document_service),
):
    query = DocumentListQuery(**query_fields(
        "folder_id", folder_id,
        tags=_split_tags(tags),
        search=search,
        extension=extension,
        mime_type=mime_type,
        min_size=min_size,
        max_size=max_size,
        include_deleted=include_deleted,
        page=page,
        limit=limit,
        sort_by=sort_by,
        sort_order=sort_order,
    ))
    docs, total = await service.list_documents(owner_id, query)
    return paginated(
        request=request,
        items=[DocumentResponse.from_model(d) for d in docs],
        total=total,
        page=page,
        limit=limit,
    )


@router.get("/search", response_model=ApiResponse[DocumentSearchResult])
async def search_documents(
    request: Request,
    query: Optional[str] = Query(None, description="Terms matched against name, original name, tags and extension"),
    name: Optional[str] = Query(None, description="Case-insensitive name search"),
    tags: Optional[str] = Query(None, description="Comma-separated tags, all must match"),
    extension: Optional[str] = Query(None),
    mime_type: Optional[str] = Query(None),
    min_size: Optional[int] = Query(None, ge=0),
    max_size: Optional[int] = Query(None, ge=0),
    date_from: Optional[datetime] = Query(None, description="Created at or after"),
    date_to: Optional[datetime] = Query(None, description="Created at or before"),
    folder_id: Optional[str] = Query(None, description="Folder ID, 'root' for documents outside any folder"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    sort_by: Literal["name", "created_at", "updated_at", "size", "relevance"] = Query("created_at"),
    sort_order: Literal["asc", "desc"] = Query("desc"),
    owner_id: str = Depends(get_current_owner_id),
    service: DocumentService = Depends(get_document_service),
):
    search = DocumentSearchQuery(**query_fields(
        "folder_id", folder_id,
        query=query,
        name=name,
        tags=_split_tags(tags),
        extension=extension,
        mime_type=mime_type,
        min_size=min_size,
        max_size=max_size,
        date_from=date_from,
        date_to=date_to,
        page=page,
        limit=limit,
        sort_by=sort_by,
        sort_order=sort_order,
    ))
    docs, total, meta = await service.search_documents(owner_id, search)
    result = DocumentSearchResult(
        documents=[DocumentResponse.from_model(d) for d in docs],
        pagination=page_meta(request, total, page, limit),
        search_meta=meta,
    )
    return ok(result)


@router.post("/upload/presigned", response_model=ApiResponse[PresignedUploadResponse])
async def get_presigned_upload_url(
    payload: PresignedUploadRequest,
    owner_id: str = Depends(get_current_owner_id),
    service: DocumentService = Depends(get_document_service),
):
    """Presigned PUT URL; confirm the returned key once the upload finished"""
    result = await service.get_presigned_upload_url(owner_id, payload.file_name, payload.mime_type, payload.size)
    return ok(result)


@router.post("/upload/confirm", response_model=ApiResponse[DocumentResponse], status_code=201)
async def confirm_upload(
    payload: ConfirmUploadRequest,
    owner_id: str = Depends(get_current_owner_id),
    service: DocumentService = Depends(get_document_service),
):
    doc = await service.confirm_upload(
        owner_id,
        payload.key,
        name=payload.name,
        folder_id=payload.folder_id,
        tags=payload.tags,
        metadata=payload.metadata,
    )
    return created(DocumentResponse.from_model(doc), message="Document created successfully")


@router.post("/upload", response_model=ApiResponse[DocumentResponse], status_code=201)
async def upload_document(
    file: UploadFile = File(...),
    name: Optional[str] = Form(None),
    folder_id: Optional[str] = Form(None),
    tags: Optional[str] = Form(None, description="Comma-separated tags"),
    metadata: Optional[str] = Form(None, description="JSON object"),
    owner_id: str = Depends(get_current_owner_id),
    service: DocumentService = Depends(get_document_service),
):
    parsed_metadata = None
    if metadata:
        try:
            parsed_metadata = json.loads(metadata)
        except json.JSONDecodeError:
            raise ValidationError("metadata must be a JSON object", field="metadata")
        if not isinstance(parsed_metadata, dict):
            raise ValidationError("metadata must be a JSON object", field="metadata")

    data = await file.read()
    doc = await service.upload_direct(
        owner_id,
        data,
        file.filename or "",
        mime_type=file.content_type,
        name=name,
        folder_id=folder_ref(folder_id),
        tags=_split_tags(tags),
        metadata=parsed_metadata,
    )
    return created(DocumentResponse.from_model(doc), message="Document uploaded successfully")


@router.get("/trash", response_model=ApiResponse[list[DocumentResponse]])
async def list_trash(
    request: Request,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    owner_id: str = Depends(get_current_owner_id),
    service: DocumentService = Depends(get_document_service),
):
    docs, total = await service.list_trash_documents(owner_id, page, limit)
    return paginated(
        request=request,
        items=[DocumentResponse.from_model(d) for d in docs],
        total=total,
        page=page,
        limit=limit,
    )


@router.delete("/trash", response_model=ApiResponse[TrashEmptyResult])
async def empty_trash(
    owner_id: str = Depends(get_current_owner_id),
    service: DocumentService = Depends(get_document_service),
):
    deleted = await service.empty_trash(owner_id)
    return ok(TrashEmptyResult(deleted=deleted), message="Trash emptied")


@router.get("/{document_id}", response_model=ApiResponse[DocumentResponse])
async def get_document(
    document_id: str,
    owner_id: str = Depends(get_current_owner_id),
    service: DocumentService = Depends(get_document_service),
):
    doc, download_url = await service.get_document(document_id, owner_id)
    return ok(DocumentResponse.from_model(doc, download_url=download_url))


@router.get("/{document_id}/download", response_model=ApiResponse[PresignedDownloadResponse])
async def get_download_url(
    document_id: str,
    owner_id: str = Depends(get_current_owner_id),
    service: DocumentService = Depends(get_document_service),
):
    result = await service.get_download_url(document_id, owner_id)
    return ok(result)


@router.get("/{document_id}/content")
async def download_content(
    document_id: str,
    owner_id: str = Depends(get_current_owner_id),
    service: DocumentService = Depends(get_document_service),
):
    """Stream the stored bytes through the API"""
    content, doc = await service.download(document_id, owner_id)
    return Response(
        content=content,
        media_type=doc.mime_type,
        headers={"Content-Disposition": f"attachment; filename*=UTF-8''{quote(doc.name)}"},
    )


@router.patch("/{document_id}", response_model=ApiResponse[DocumentResponse])
async def update_document(
    document_id: str,
    payload: DocumentUpdate,
    owner_id: str = Depends(get_current_owner_id),
    service: DocumentService = Depends(get_document_service),
):
    doc = await service.update_document(document_id, owner_id, payload)
    return ok(DocumentResponse.from_model(doc), message="Document updated successfully")


@router.post("/{document_id}/move", response_model=ApiResponse[DocumentResponse])
async def move_document(
    document_id: str,
    payload: DocumentMoveRequest,
    owner_id: str = Depends(get_current_owner_id),
    service: DocumentService = Depends(get_document_service),
):
    doc = await service.move_document(document_id, owner_id, payload.folder_id)
    return ok(DocumentResponse.from_model(doc), message="Document moved successfully")


@router.post("/{document_id}/copy", response_model=ApiResponse[DocumentResponse], status_code=201)
async def copy_document(
    document_id: str,
    payload: DocumentCopyRequest,
    owner_id: str = Depends(get_current_owner_id),
    service: DocumentService = Depends(get_document_service),
):
    doc = await service.copy_document(document_id, owner_id, payload)
    return created(DocumentResponse.from_model(doc), message="Document copied successfully")


@router.delete("/{document_id}", response_model=ApiResponse[dict])
async def delete_document(
    document_id: str,
    permanent: bool = Query(False, description="Skip the trash and remove the stored file"),
    owner_id: str = Depends(get_current_owner_id),
    service: DocumentService = Depends(get_document_service),
):
    if permanent:
        await service.permanent_delete_document(document_id, owner_id)
        return ok(message="Document permanently deleted")
    await service.soft_delete_document(document_id, owner_id)
    return ok(message="Document moved to trash")


@router.post("/{document_id}/restore", response_model=ApiResponse[DocumentRestoreResponse])
async def restore_document(
    document_id: str,
    recreate_folder: bool = Query(True, description="Rebuild the original folder if it no longer exists"),
    owner_id: str = Depends(get_current_owner_id),
    service: DocumentService = Depends(get_document_service),
):
    doc, folder_recreated = await service.restore_document(document_id, owner_id, recreate_folder)
    result = DocumentRestoreResponse(document=DocumentResponse.from_model(doc), folder_recreated=folder_recreated)
    return ok(result, message="Document restored successfully")
