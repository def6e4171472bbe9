from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from beanie import PydanticObjectId
from pymongo import ASCENDING, DESCENDING

from dms.core.exceptions import (
    ConflictError,
    NotFoundError,
    ValidationError,
    FOLDER_MAX_DEPTH_EXCEEDED,
    FOLDER_MOVE_INTO_SELF,
    FOLDER_NAME_EXISTS,
    FOLDER_PARENT_DELETED,
)
from dms.crud.document import DocumentCRUD
from dms.crud.folder import FolderCRUD, folder_list_filter
from dms.models.folder import Folder, MAX_FOLDER_DEPTH
from dms.schemas import (
    BreadcrumbItem,
    FolderCreate,
    FolderDeleteResult,
    FolderListQuery,
    FolderPermanentDeleteResult,
    FolderResponse,
    FolderTreeNode,
    FolderUpdate,
    FolderWithCounts,
)
from dms.utils import get_logger
from dms.crud.base import parse_object_id
from dms.utils.path_util import PATH_SEPARATOR, build_folder_path, is_descendant_path, renamed_path

logger = get_logger(__name__)


class FolderService:
    """Folder tree maintenance: materialized paths, depth, uniqueness and cascades"""

    def __init__(self, crud: Optional[FolderCRUD] = None, document_crud: Optional[DocumentCRUD] = None):
        self.crud = crud or FolderCRUD()
        self.document_crud = document_crud or DocumentCRUD()

    async def _get_active(self, folder_id: Any, owner_id: str, resource: str = "Folder") -> Folder:
        folder = await self.crud.get_owned(folder_id, owner_id)
        if not folder:
            raise NotFoundError(resource)
        return folder

    async def _check_unique_name(
        self,
        owner_id: str,
        parent_id: Optional[PydanticObjectId],
        name: str,
        exclude_id: Optional[PydanticObjectId] = None,
    ) -> None:
        existing = await self.crud.find_sibling_by_name(owner_id, parent_id, name, exclude_id)
        if existing:
            raise ConflictError(
                f'A folder named "{name}" already exists in this location',
                code=FOLDER_NAME_EXISTS,
                field="name",
            )

    @staticmethod
    def _clean_name(name: Optional[str]) -> str:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Folder name is required", field="name")
        if PATH_SEPARATOR in name:
            raise ValidationError(f"Folder name cannot contain '{PATH_SEPARATOR}'", field="name")
        return name

    @staticmethod
    def _placement(parent: Optional[Folder], name: str) -> Tuple[str, int]:
        """Path and depth of a folder called ``name`` under ``parent``"""
        if parent is None:
            return build_folder_path(None, name), 0
        depth = parent.depth + 1
        if depth > MAX_FOLDER_DEPTH:
            raise ValidationError(
                f"Maximum folder nesting depth of {MAX_FOLDER_DEPTH} exceeded",
                code=FOLDER_MAX_DEPTH_EXCEEDED,
            )
        return build_folder_path(parent.path, name), depth

    async def create_folder(
        self,
        owner_id: str,
        name: str,
        parent_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Folder:
        name = self._clean_name(name)

        parent = await self._get_active(parent_id, owner_id, "Parent folder") if parent_id else None
        parent_oid = parent.id if parent else None

        await self._check_unique_name(owner_id, parent_oid, name)
        path, depth = self._placement(parent, name)

        folder = await self.crud.create(FolderCreate(
            owner_id=owner_id,
            name=name,
            parent_id=parent_oid,
            path=path,
            depth=depth,
            metadata=metadata or {},
        ))
        logger.info(f"Folder created: {folder.id} ({path}) by owner {owner_id}")
        return folder

    async def get_folder(self, folder_id: str, owner_id: str) -> Folder:
        return await self._get_active(folder_id, owner_id)

    async def get_folder_with_counts(self, folder_id: str, owner_id: str) -> FolderWithCounts:
        folder = await self._get_active(folder_id, owner_id)
        document_count = await self.document_crud.count_in_folder(owner_id, folder.id)
        subfolder_count = await self.crud.count_children(owner_id, folder.id)
        return FolderWithCounts(
            **FolderResponse.from_model(folder).model_dump(),
            document_count=document_count,
            subfolder_count=subfolder_count,
        )

    async def list_folders(self, owner_id: str, query: FolderListQuery) -> Tuple[List[Folder], int]:
        filter_ = folder_list_filter(owner_id, query)
        direction = ASCENDING if query.sort_order == "asc" else DESCENDING
        total = await self.crud.count(filter_)
        folders = await self.crud.list(
            filter_,
            skip=(query.page - 1) * query.limit,
            limit=query.limit,
            sort=[(query.sort_by, direction)],
        )
        return folders, total

    async def get_root_folders(self, owner_id: str) -> List[Folder]:
        return await self.crud.list_children(owner_id, None)

    async def get_subfolders(self, folder_id: str, owner_id: str) -> List[Folder]:
        folder = await self._get_active(folder_id, owner_id)
        return await self.crud.list_children(owner_id, folder.id)

    async def get_breadcrumbs(self, folder_id: str, owner_id: str) -> List[BreadcrumbItem]:
        """Root-to-self chain, following parent links over live folders"""
        current: Optional[Folder] = await self._get_active(folder_id, owner_id)
        breadcrumbs: List[BreadcrumbItem] = []
        while current:
            breadcrumbs.insert(0, BreadcrumbItem(id=str(current.id), name=current.name, path=current.path))
            current = await self.crud.get_owned(current.parent_id, owner_id) if current.parent_id else None
        return breadcrumbs

    async def get_folder_tree(self, owner_id: str, root_id: Optional[str] = None) -> List[FolderTreeNode]:
        """Nested tree built in memory from a single scan of live folders"""
        folders = await self.crud.list_active(owner_id)
        nodes: Dict[str, FolderTreeNode] = {
            str(folder.id): FolderTreeNode(**FolderResponse.from_model(folder).model_dump())
            for folder in folders
        }

        roots: List[FolderTreeNode] = []
        for node in nodes.values():
            if node.parent_id is None:
                roots.append(node)
            elif node.parent_id in nodes:
                nodes[node.parent_id].children.append(node)

        if root_id:
            node = nodes.get(root_id)
            return [node] if node else []
        return roots

    async def update_folder(self, folder_id: str, owner_id: str, payload: FolderUpdate) -> Folder:
        folder = await self._get_active(folder_id, owner_id)
        if payload.name is not None and payload.name != folder.name:
            folder = await self._rename(folder, payload.name)
        if payload.metadata is not None:
            folder = await self.crud.update(folder, {"metadata": payload.metadata})
            logger.info(f"Folder metadata updated: {folder.id} by owner {owner_id}")
        return folder

    async def rename_folder(self, folder_id: str, owner_id: str, new_name: str) -> Folder:
        folder = await self._get_active(folder_id, owner_id)
        new_name = self._clean_name(new_name)
        if new_name == folder.name:
            return folder
        return await self._rename(folder, new_name)

    async def _rename(self, folder: Folder, new_name: str) -> Folder:
        new_name = self._clean_name(new_name)
        await self._check_unique_name(folder.owner_id, folder.parent_id, new_name, exclude_id=folder.id)

        old_path = folder.path
        new_path = renamed_path(old_path, new_name)
        folder = await self.crud.update(folder, {"name": new_name, "path": new_path})
        cascaded = await self.crud.rewrite_descendant_paths(folder.owner_id, old_path, new_path)

        logger.info(f"Folder renamed: {folder.id} {old_path} -> {new_path} ({cascaded} descendants updated)")
        return folder

    async def move_folder(self, folder_id: str, owner_id: str, new_parent_id: Optional[str]) -> Folder:
        folder = await self._get_active(folder_id, owner_id)
        if not new_parent_id:
            if folder.parent_id is None:
                return folder
        elif folder.parent_id is not None and parse_object_id(new_parent_id) == folder.parent_id:
            return folder

        target = await self._get_active(new_parent_id, owner_id, "Target folder") if new_parent_id else None
        target_oid = target.id if target else None

        if target is not None and (target.id == folder.id or is_descendant_path(target.path, folder.path)):
            raise ValidationError("Cannot move a folder into itself or one of its subfolders", code=FOLDER_MOVE_INTO_SELF)

        await self._check_unique_name(owner_id, target_oid, folder.name, exclude_id=folder.id)
        new_path, new_depth = self._placement(target, folder.name)

        old_path, old_depth = folder.path, folder.depth
        depth_delta = new_depth - old_depth
        deepest = await self.crud.max_descendant_depth(owner_id, old_path)
        if deepest is None:
            deepest = old_depth
        if deepest + depth_delta > MAX_FOLDER_DEPTH:
            raise ValidationError(
                f"Move would exceed the maximum folder nesting depth of {MAX_FOLDER_DEPTH}",
                code=FOLDER_MAX_DEPTH_EXCEEDED,
            )

        folder = await self.crud.update(folder, {"parent_id": target_oid, "path": new_path, "depth": new_depth})
        cascaded = await self.crud.rewrite_descendant_paths(owner_id, old_path, new_path, depth_delta)

        logger.info(
            f"Folder moved: {folder.id} {old_path} -> {new_path} "
            f"(depth {old_depth} -> {new_depth}, {cascaded} descendants updated)"
        )
        return folder

    async def soft_delete_folder(self, folder_id: str, owner_id: str) -> FolderDeleteResult:
        """Trash the folder, its descendants and every live document inside them"""
        folder = await self._get_active(folder_id, owner_id)
        now = datetime.utcnow()

        folders_deleted = await self.crud.soft_delete_subtree(owner_id, folder.id, folder.path, now)
        subtree = await self.crud.list_subtree(owner_id, folder.id, folder.path)
        documents_deleted = await self.document_crud.soft_delete_in_folders(owner_id, subtree, now)

        logger.info(
            f"Folder soft deleted: {folder.id} by owner {owner_id} "
            f"({folders_deleted} folders, {documents_deleted} documents)"
        )
        return FolderDeleteResult(folders_deleted=folders_deleted, documents_deleted=documents_deleted)

    async def restore_folder(self, folder_id: str, owner_id: str) -> Folder:
        """Restore this folder only; descendants come back one by one"""
        folder = await self.crud.get_owned(folder_id, owner_id, is_deleted=True)
        if not folder:
            raise NotFoundError("Folder")

        if folder.parent_id:
            parent = await self.crud.get_owned(folder.parent_id, owner_id)
            if not parent:
                raise ValidationError(
                    "Cannot restore folder: parent folder is deleted. Restore the parent folder first.",
                    code=FOLDER_PARENT_DELETED,
                )

        folder = await self.crud.restore(folder)
        logger.info(f"Folder restored: {folder.id} by owner {owner_id}")
        return folder

    async def permanent_delete_folder(self, folder_id: str, owner_id: str) -> FolderPermanentDeleteResult:
        """Remove the subtree for good; documents inside are detached to the root, not deleted"""
        folder = await self.crud.get_owned(folder_id, owner_id, is_deleted=None)
        if not folder:
            raise NotFoundError("Folder")

        folder_ids = await self.crud.subtree_ids(owner_id, folder.id, folder.path)
        documents_detached = await self.document_crud.detach_from_folders(owner_id, folder_ids)
        folders_deleted = await self.crud.delete_by_ids(owner_id, folder_ids)

        logger.info(
            f"Folder permanently deleted: {folder.id} by owner {owner_id} "
            f"({folders_deleted} folders, {documents_detached} documents detached)"
        )
        return FolderPermanentDeleteResult(folders_deleted=folders_deleted, documents_detached=documents_detached)

    async def list_trash_folders(self, owner_id: str, page: int = 1, limit: int = 50) -> Tuple[List[Folder], int]:
        total = await self.crud.count({"owner_id": owner_id, "is_deleted": True})
        folders = await self.crud.list_deleted(owner_id, skip=(page - 1) * limit, limit=limit)
        return folders, total

    async def ensure_folder_exists(self, owner_id: str, folder_id: Any) -> Folder:
        """Target folder for document operations: live and owned"""
        return await self._get_active(folder_id, owner_id)
