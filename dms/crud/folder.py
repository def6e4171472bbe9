import re
from datetime import datetime
from typing import Any, Dict, List, Optional

from bson import ObjectId
from pymongo import ASCENDING, DESCENDING

from dms.crud.base import BaseCRUD, parse_filter_id, parse_object_id
from dms.models.folder import Folder
from dms.schemas import FolderCreate, FolderUpdate, FolderListQuery
from dms.utils.path_util import descendant_regex, exact_name_regex


def descendants_filter(owner_id: str, path: str) -> Dict[str, Any]:
    """Every folder of the owner strictly below ``path``"""
    return {"owner_id": owner_id, "path": {"$regex": descendant_regex(path)}}


def subtree_filter(owner_id: str, folder_id: ObjectId, path: str) -> Dict[str, Any]:
    """The folder itself plus all of its descendants"""
    return {
        "owner_id": owner_id,
        "$or": [
            {"_id": folder_id},
            {"path": {"$regex": descendant_regex(path)}},
        ],
    }


def sibling_name_filter(
    owner_id: str,
    parent_id: Optional[ObjectId],
    name: str,
    exclude_id: Optional[ObjectId] = None,
) -> Dict[str, Any]:
    query: Dict[str, Any] = {
        "owner_id": owner_id,
        "parent_id": parent_id,
        "name": {"$regex": exact_name_regex(name), "$options": "i"},
        "is_deleted": False,
    }
    if exclude_id is not None:
        query["_id"] = {"$ne": exclude_id}
    return query


def path_rewrite_pipeline(
    old_path: str,
    new_path: str,
    depth_delta: int = 0,
    updated_at: Optional[datetime] = None,
) -> List[Dict[str, Any]]:
    """
    Update pipeline replacing the ``old_path`` prefix of ``path`` with ``new_path``
    and shifting ``depth`` by ``depth_delta``.
    Offsets are in code points so non-ASCII names survive the splice.
    """
    stage: Dict[str, Any] = {
        "path": {
            "$concat": [
                new_path,
                {
                    "$substrCP": [
                        "$path",
                        len(old_path),
                        {"$subtract": [{"$strLenCP": "$path"}, len(old_path)]},
                    ]
                },
            ]
        },
    }
    if depth_delta:
        stage["depth"] = {"$add": ["$depth", depth_delta]}
    if updated_at is not None:
        stage["updated_at"] = updated_at
    return [{"$set": stage}]


def folder_list_filter(owner_id: str, query: FolderListQuery) -> Dict[str, Any]:
    filter_: Dict[str, Any] = {"owner_id": owner_id}
    if not query.include_deleted:
        filter_["is_deleted"] = False
    if "parent_id" in query.model_fields_set:
        filter_["parent_id"] = parse_filter_id(query.parent_id, "parent_id")
    if query.search:
        filter_["name"] = {"$regex": re.escape(query.search), "$options": "i"}
    return filter_


class FolderCRUD(BaseCRUD[Folder, FolderCreate, FolderUpdate]):
    def __init__(self):
        super().__init__(Folder)

    async def get_owned(
        self, folder_id: Any, owner_id: str, is_deleted: Optional[bool] = False
    ) -> Optional[Folder]:
        """Folder by id scoped to the owner; ``is_deleted=None`` matches any state"""
        object_id = parse_object_id(folder_id)
        if object_id is None:
            return None
        query: Dict[str, Any] = {"_id": object_id, "owner_id": owner_id}
        if is_deleted is not None:
            query["is_deleted"] = is_deleted
        return await self.model.find_one(query)

    async def get_by_path(self, owner_id: str, path: str) -> Optional[Folder]:
        """Non-deleted folder at an exact path"""
        return await self.model.find_one({
            "owner_id": owner_id,
            "path": path,
            "is_deleted": False,
        })

    async def find_sibling_by_name(
        self,
        owner_id: str,
        parent_id: Optional[ObjectId],
        name: str,
        exclude_id: Optional[ObjectId] = None,
    ) -> Optional[Folder]:
        """Case-insensitive name lookup among non-deleted siblings"""
        return await self.model.find_one(sibling_name_filter(owner_id, parent_id, name, exclude_id))

    async def list_children(self, owner_id: str, parent_id: Optional[ObjectId]) -> List[Folder]:
        return await self.model.find({
            "owner_id": owner_id,
            "parent_id": parent_id,
            "is_deleted": False,
        }).sort([("name", ASCENDING)]).to_list()

    async def count_children(self, owner_id: str, parent_id: ObjectId) -> int:
        return await self.model.find({
            "owner_id": owner_id,
            "parent_id": parent_id,
            "is_deleted": False,
        }).count()

    async def list_active(self, owner_id: str) -> List[Folder]:
        """All non-deleted folders of the owner, sorted by name"""
        return await self.model.find({
            "owner_id": owner_id,
            "is_deleted": False,
        }).sort([("name", ASCENDING)]).to_list()

    async def list_deleted(self, owner_id: str, skip: int = 0, limit: int = 50) -> List[Folder]:
        return await self.list(
            {"owner_id": owner_id, "is_deleted": True},
            skip=skip,
            limit=limit,
            sort=[("deleted_at", DESCENDING)],
        )

    async def max_descendant_depth(self, owner_id: str, path: str) -> Optional[int]:
        deepest = await self.model.find(
            descendants_filter(owner_id, path)
        ).sort([("depth", DESCENDING)]).first_or_none()
        return deepest.depth if deepest else None

    async def rewrite_descendant_paths(
        self, owner_id: str, old_path: str, new_path: str, depth_delta: int = 0
    ) -> int:
        """Cascade a rename/move to every descendant in a single update_many"""
        result = await self.collection().update_many(
            descendants_filter(owner_id, old_path),
            path_rewrite_pipeline(old_path, new_path, depth_delta, datetime.utcnow()),
        )
        return result.modified_count

    async def soft_delete_subtree(
        self, owner_id: str, folder_id: ObjectId, path: str, deleted_at: datetime
    ) -> int:
        query = subtree_filter(owner_id, folder_id, path)
        query["is_deleted"] = False
        result = await self.collection().update_many(
            query,
            {"$set": {"is_deleted": True, "deleted_at": deleted_at, "updated_at": deleted_at}},
        )
        return result.modified_count

    async def list_subtree(self, owner_id: str, folder_id: ObjectId, path: str) -> List[Folder]:
        """The folder and all descendants, whatever their deletion state"""
        return await self.model.find(subtree_filter(owner_id, folder_id, path)).to_list()

    async def subtree_ids(self, owner_id: str, folder_id: ObjectId, path: str) -> List[ObjectId]:
        """Ids of the folder and all descendants, whatever their deletion state"""
        return await self.collection().distinct("_id", subtree_filter(owner_id, folder_id, path))

    async def delete_by_ids(self, owner_id: str, folder_ids: List[ObjectId]) -> int:
        if not folder_ids:
            return 0
        result = await self.collection().delete_many({"owner_id": owner_id, "_id": {"$in": folder_ids}})
        return result.deleted_count
