from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query, Request

from dms.api.params import query_fields
from dms.schemas import (
    ApiResponse,
    BreadcrumbItem,
    FolderCreateRequest,
    FolderDeleteResult,
    FolderListQuery,
    FolderMoveRequest,
    FolderPermanentDeleteResult,
    FolderResponse,
    FolderTreeNode,
    FolderUpdate,
    FolderWithCounts,
)
from dms.services import FolderService, get_folder_service
from dms.utils.api_response import created, ok, paginated
from dms.utils.verify_token import get_current_owner_id

router = APIRouter()


@router.post("", response_model=ApiResponse[FolderResponse], status_code=201)
async def create_folder(
    payload: FolderCreateRequest,
    owner_id: str = Depends(get_current_owner_id),
    service: FolderService = Depends(get_folder_service),
):
    folder = await service.create_folder(owner_id, payload.name, payload.parent_id, payload.metadata)
    return created(FolderResponse.from_model(folder), message="Folder created successfully")


@router.get("", response_model=ApiResponse[list[FolderResponse]])
async def list_folders(
    request: Request,
    parent_id: Optional[str] = Query(None, description="Parent folder ID, 'root' for root-level folders"),
    search: Optional[str] = Query(None, description="Case-insensitive name search"),
    include_deleted: bool = Query(False),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    sort_by: Literal["name", "created_at", "updated_at"] = Query("name"),
    sort_order: Literal["asc", "desc"] = Query("asc"),
    owner_id: str = Depends(get_current_owner_id),
    service: FolderService = Depends(get_folder_service),
):
    query = FolderListQuery(**query_fields(
        "parent_id", parent_id,
        search=search,
        include_deleted=include_deleted,
        page=page,
        limit=limit,
        sort_by=sort_by,
        sort_order=sort_order,
    ))
    folders, total = await service.list_folders(owner_id, query)
    return paginated(
        request=request,
        items=[FolderResponse.from_model(f) for f in folders],
        total=total,
        page=page,
        limit=limit,
    )


@router.get("/root", response_model=ApiResponse[list[FolderResponse]])
async def get_root_folders(
    owner_id: str = Depends(get_current_owner_id),
    service: FolderService = Depends(get_folder_service),
):
    folders = await service.get_root_folders(owner_id)
    return ok([FolderResponse.from_model(f) for f in folders])


@router.get("/tree", response_model=ApiResponse[list[FolderTreeNode]])
async def get_folder_tree(
    root_id: Optional[str] = Query(None, description="Only return the subtree under this folder"),
    owner_id: str = Depends(get_current_owner_id),
    service: FolderService = Depends(get_folder_service),
):
    tree = await service.get_folder_tree(owner_id, root_id)
    return ok(tree)


@router.get("/trash", response_model=ApiResponse[list[FolderResponse]])
async def list_trash(
    request: Request,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    owner_id: str = Depends(get_current_owner_id),
    service: FolderService = Depends(get_folder_service),
):
    """Soft-deleted folders, most recently deleted first"""
    folders, total = await service.list_trash_folders(owner_id, page, limit)
    return paginated(
        request=request,
        items=[FolderResponse.from_model(f) for f in folders],
        total=total,
        page=page,
        limit=limit,
    )


@router.get("/{folder_id}", response_model=ApiResponse[FolderWithCounts])
async def get_folder(
    folder_id: str,
    owner_id: str = Depends(get_current_owner_id),
    service: FolderService = Depends(get_folder_service),
):
    folder = await service.get_folder_with_counts(folder_id, owner_id)
    return ok(folder)


@router.get("/{folder_id}/subfolders", response_model=ApiResponse[list[FolderResponse]])
async def get_subfolders(
    folder_id: str,
    owner_id: str = Depends(get_current_owner_id),
    service: FolderService = Depends(get_folder_service),
):
    folders = await service.get_subfolders(folder_id, owner_id)
    return ok([FolderResponse.from_model(f) for f in folders])


@router.get("/{folder_id}/breadcrumbs", response_model=ApiResponse[list[BreadcrumbItem]])
async def get_breadcrumbs(
    folder_id: str,
    owner_id: str = Depends(get_current_owner_id),
    service: FolderService = Depends(get_folder_service),
):
    breadcrumbs = await service.get_breadcrumbs(folder_id, owner_id)
    return ok(breadcrumbs)


@router.patch("/{folder_id}", response_model=ApiResponse[FolderResponse])
async def update_folder(
    folder_id: str,
    payload: FolderUpdate,
    owner_id: str = Depends(get_current_owner_id),
    service: FolderService = Depends(get_folder_service),
):
    """Rename a folder and/or replace its metadata"""
    folder = await service.update_folder(folder_id, owner_id, payload)
    return ok(FolderResponse.from_model(folder), message="Folder updated successfully")


@router.post("/{folder_id}/move", response_model=ApiResponse[FolderResponse])
async def move_folder(
    folder_id: str,
    payload: FolderMoveRequest,
    owner_id: str = Depends(get_current_owner_id),
    service: FolderService = Depends(get_folder_service),
):
    folder = await service.move_folder(folder_id, owner_id, payload.parent_id)
    return ok(FolderResponse.from_model(folder), message="Folder moved successfully")


@router.post("/{folder_id}/restore", response_model=ApiResponse[FolderResponse])
async def restore_folder(
    folder_id: str,
    owner_id: str = Depends(get_current_owner_id),
    service: FolderService = Depends(get_folder_service),
):
    folder = await service.restore_folder(folder_id, owner_id)
    return ok(FolderResponse.from_model(folder), message="Folder restored successfully")


@router.delete("/{folder_id}", response_model=ApiResponse[FolderDeleteResult])
async def delete_folder(
    folder_id: str,
    owner_id: str = Depends(get_current_owner_id),
    service: FolderService = Depends(get_folder_service),
):
    """Move a folder, its subfolders and their documents to the trash"""
    result = await service.soft_delete_folder(folder_id, owner_id)
    return ok(result, message="Folder moved to trash")


@router.delete("/{folder_id}/permanent", response_model=ApiResponse[FolderPermanentDeleteResult])
async def permanent_delete_folder(
    folder_id: str,
    owner_id: str = Depends(get_current_owner_id),
    service: FolderService = Depends(get_folder_service),
):
    result = await service.permanent_delete_folder(folder_id, owner_id)
    return ok(result, message="Folder permanently deleted")
