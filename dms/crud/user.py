from datetime import datetime
from typing import Optional

from pymongo import ReturnDocument

from dms.crud.base import BaseCRUD
from dms.models.user import User
from dms.schemas.user import UserCreate, UserUpdate


class UserCRUD(BaseCRUD[User, UserCreate, UserUpdate]):
    def __init__(self):
        super().__init__(User)

    async def get_by_owner_id(self, owner_id: str) -> Optional[User]:
        return await self.model.find_one(User.owner_id == owner_id)

    async def get_or_create(self, owner_id: str, storage_limit: int) -> User:
        """Upsert keyed on the unique ``owner_id``; concurrent first calls converge on one record"""
        raw = await self.collection().find_one_and_update(
            {"owner_id": owner_id},
            {"$setOnInsert": {
                "email": None,
                "storage_used": 0,
                "storage_limit": storage_limit,
                "created_at": datetime.utcnow(),
                "updated_at": None,
            }},
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        return User.model_validate(raw)

    async def increment_storage_used(self, owner_id: str, delta: int) -> Optional[int]:
        """Atomically add ``delta`` bytes, never letting the counter drop below zero"""
        updated = await self.collection().find_one_and_update(
            {"owner_id": owner_id},
            [{"$set": {"storage_used": {"$max": [0, {"$add": ["$storage_used", delta]}]}}}],
            return_document=ReturnDocument.AFTER,
        )
        return updated["storage_used"] if updated else None
