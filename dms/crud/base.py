from datetime import datetime
from typing import Any, Dict, Generic, List, Optional, Sequence, Tuple, Type, TypeVar
from bson import ObjectId
from bson.errors import InvalidId
from beanie import Document, PydanticObjectId
from pydantic import BaseModel

from dms.core.exceptions import ValidationError

ModelT = TypeVar("ModelT", bound=Document)
CreateSchemaT = TypeVar("CreateSchemaT", bound=BaseModel)
UpdateSchemaT = TypeVar("UpdateSchemaT", bound=BaseModel)

SortSpec = Sequence[Tuple[str, int]]


def parse_object_id(value: Any) -> Optional[PydanticObjectId]:
    """Coerce an id coming from the API; malformed ids resolve to None"""
    if value is None:
        return None
    if isinstance(value, ObjectId):
        return PydanticObjectId(value)
    try:
        return PydanticObjectId(str(value))
    except (InvalidId, TypeError):
        return None


def parse_filter_id(value: Optional[str], field: str) -> Optional[PydanticObjectId]:
    """Id used as a list filter: empty selects the root, anything unparseable is rejected"""
    if not value:
        return None
    object_id = parse_object_id(value)
    if object_id is None:
        raise ValidationError(f"Invalid {field}: {value}", field=field)
    return object_id


class BaseCRUD(Generic[ModelT, CreateSchemaT, UpdateSchemaT]):
    def __init__(self, model: Type[ModelT]):
        self.model = model

    def _soft_deletable(self) -> bool:
        return "is_deleted" in self.model.model_fields

    def _scoped(self, filter_: Optional[Dict[str, Any]], include_deleted: bool) -> Dict[str, Any]:
        query = dict(filter_ or {})
        if not include_deleted and self._soft_deletable():
            query["is_deleted"] = False
        return query

    def collection(self):
        """Raw pymongo collection, for bulk updates Beanie does not express"""
        return self.model.get_pymongo_collection()

    async def get_one(
        self, filter_: Dict[str, Any], include_deleted: bool = True
    ) -> Optional[ModelT]:
        return await self.model.find_one(self._scoped(filter_, include_deleted))

    async def list(
        self,
        filter_: Optional[Dict[str, Any]] = None,
        limit: int = 50,
        skip: int = 0,
        include_deleted: bool = True,
        sort: Optional[SortSpec] = None,
    ) -> List[ModelT]:
        cursor = self.model.find(self._scoped(filter_, include_deleted))
        if sort:
            cursor = cursor.sort(list(sort))
        if skip:
            cursor = cursor.skip(skip)
        if limit:
            cursor = cursor.limit(limit)
        return await cursor.to_list()

    async def count(self, filter_: Optional[Dict[str, Any]] = None, include_deleted: bool = True) -> int:
        return await self.model.find(self._scoped(filter_, include_deleted)).count()

    async def create(self, obj_in: CreateSchemaT) -> ModelT:
        data = obj_in.model_dump()
        if self._soft_deletable():
            data.setdefault("is_deleted", False)
            data.setdefault("deleted_at", None)
        db_obj = self.model(**data)
        await db_obj.insert()
        return db_obj

    async def update(
        self,
        db_obj: ModelT,
        obj_in: UpdateSchemaT | Dict[str, Any],
    ) -> ModelT:
        if isinstance(obj_in, BaseModel):
            update_data = obj_in.model_dump(exclude_unset=True)
        else:
            # dict payloads are applied as-is, explicit None clears a field
            update_data = dict(obj_in)

        if "updated_at" in db_obj.model_fields:
            update_data["updated_at"] = datetime.utcnow()

        await db_obj.set(update_data)
        return db_obj

    async def restore(self, db_obj: ModelT) -> ModelT:
        return await self.update(db_obj, {"is_deleted": False, "deleted_at": None})

    async def delete(self, db_obj: ModelT) -> None:
        await db_obj.delete()
