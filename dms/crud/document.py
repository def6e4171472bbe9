import re
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from bson import ObjectId
from pymongo import ASCENDING, DESCENDING, UpdateMany

from dms.crud.base import BaseCRUD, parse_filter_id, parse_object_id
from dms.models.document import DeletedFolderInfo, Document
from dms.models.folder import Folder
from dms.schemas import DocumentCreate, DocumentUpdate, DocumentListQuery, DocumentSearchQuery


def folder_snapshot(folder: Folder) -> DeletedFolderInfo:
    return DeletedFolderInfo(
        folder_id=folder.id,
        name=folder.name,
        path=folder.path,
        parent_id=folder.parent_id,
    )


SEARCH_FIELDS = ("name", "original_name", "tags", "extension")


def contains(text: str) -> Dict[str, Any]:
    return {"$regex": re.escape(text), "$options": "i"}


def _attribute_filters(filter_: Dict[str, Any], query: Union[DocumentListQuery, DocumentSearchQuery]) -> Dict[str, Any]:
    if "folder_id" in query.model_fields_set:
        filter_["folder_id"] = parse_filter_id(query.folder_id, "folder_id")
    if query.tags:
        filter_["tags"] = {"$all": query.tags}
    if query.extension:
        filter_["extension"] = query.extension.lower().lstrip(".")
    if query.mime_type:
        filter_["mime_type"] = query.mime_type
    size: Dict[str, int] = {}
    if query.min_size is not None:
        size["$gte"] = query.min_size
    if query.max_size is not None:
        size["$lte"] = query.max_size
    if size:
        filter_["size"] = size
    return filter_


def document_list_filter(owner_id: str, query: DocumentListQuery) -> Dict[str, Any]:
    filter_: Dict[str, Any] = {"owner_id": owner_id}
    if not query.include_deleted:
        filter_["is_deleted"] = False
    if query.search:
        filter_["name"] = contains(query.search)
    return _attribute_filters(filter_, query)


def document_search_filter(owner_id: str, query: DocumentSearchQuery) -> Dict[str, Any]:
    """Every term must hit at least one of ``SEARCH_FIELDS``; tags match per element"""
    filter_: Dict[str, Any] = {"owner_id": owner_id, "is_deleted": False}
    if query.terms:
        filter_["$and"] = [
            {"$or": [{field: contains(term)} for field in SEARCH_FIELDS]}
            for term in query.terms
        ]
    if query.name:
        filter_["name"] = contains(query.name)
    created: Dict[str, datetime] = {}
    if query.date_from is not None:
        created["$gte"] = query.date_from
    if query.date_to is not None:
        created["$lte"] = query.date_to
    if created:
        filter_["created_at"] = created
    return _attribute_filters(filter_, query)


class DocumentCRUD(BaseCRUD[Document, DocumentCreate, DocumentUpdate]):
    def __init__(self):
        super().__init__(Document)

    async def get_owned(
        self, document_id: Any, owner_id: str, is_deleted: Optional[bool] = False
    ) -> Optional[Document]:
        """Document by id scoped to the owner; ``is_deleted=None`` matches any state"""
        object_id = parse_object_id(document_id)
        if object_id is None:
            return None
        query: Dict[str, Any] = {"_id": object_id, "owner_id": owner_id}
        if is_deleted is not None:
            query["is_deleted"] = is_deleted
        return await self.model.find_one(query)

    async def get_by_storage_key(self, storage_key: str) -> Optional[Document]:
        return await self.get_one({"storage_key": storage_key})

    async def count_in_folder(self, owner_id: str, folder_id: ObjectId) -> int:
        return await self.model.find({
            "owner_id": owner_id,
            "folder_id": folder_id,
            "is_deleted": False,
        }).count()

    async def list_deleted(self, owner_id: str, skip: int = 0, limit: int = 0) -> List[Document]:
        return await self.list(
            {"owner_id": owner_id, "is_deleted": True},
            skip=skip,
            limit=limit,
            sort=[("deleted_at", DESCENDING), ("_id", ASCENDING)],
        )

    async def soft_delete_in_folders(
        self, owner_id: str, folders: List[Folder], deleted_at: datetime
    ) -> int:
        """
        Soft-delete every live document directly inside any of ``folders``,
        snapshotting the containing folder so a later restore can rebuild it.
        One bulk_write, one UpdateMany per folder.
        """
        if not folders:
            return 0
        operations = [
            UpdateMany(
                {"owner_id": owner_id, "folder_id": folder.id, "is_deleted": False},
                {"$set": {
                    "is_deleted": True,
                    "deleted_at": deleted_at,
                    "updated_at": deleted_at,
                    "deleted_folder_info": folder_snapshot(folder).model_dump(),
                }},
            )
            for folder in folders
        ]
        result = await self.collection().bulk_write(operations, ordered=False)
        return result.modified_count

    async def detach_from_folders(self, owner_id: str, folder_ids: List[ObjectId]) -> int:
        """Move documents in any deletion state out of ``folder_ids`` to the root"""
        if not folder_ids:
            return 0
        result = await self.collection().update_many(
            {"owner_id": owner_id, "folder_id": {"$in": folder_ids}},
            {"$set": {"folder_id": None, "updated_at": datetime.utcnow()}},
        )
        return result.modified_count

    async def delete_by_ids(self, owner_id: str, document_ids: List[ObjectId]) -> int:
        if not document_ids:
            return 0
        result = await self.collection().delete_many({"owner_id": owner_id, "_id": {"$in": document_ids}})
        return result.deleted_count
