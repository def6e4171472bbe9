from typing import Optional

from dms.configs.settings import settings
from dms.crud.user import UserCRUD
from dms.models.user import User
from dms.schemas.user import StorageInfo
from dms.utils import get_logger

logger = get_logger(__name__)


class QuotaService:
    """Per-owner storage accounting backed by the ``users`` collection"""

    def __init__(self, crud: Optional[UserCRUD] = None, default_limit: Optional[int] = None):
        self.crud = crud or UserCRUD()
        self.default_limit = default_limit if default_limit is not None else settings.QUOTA_DEFAULT_STORAGE_LIMIT

    async def get_or_create(self, owner_id: str) -> User:
        user = await self.crud.get_by_owner_id(owner_id)
        if user:
            return user
        user = await self.crud.get_or_create(owner_id, self.default_limit)
        logger.info(f"Storage record ready for owner {owner_id} with limit {user.storage_limit}")
        return user

    async def has_available(self, owner_id: str, size: int) -> bool:
        user = await self.get_or_create(owner_id)
        allowed = user.storage_used + size <= user.storage_limit
        if not allowed:
            logger.info(
                f"Quota denied for owner {owner_id}: used={user.storage_used} "
                f"requested={size} limit={user.storage_limit}"
            )
        return allowed

    async def adjust_used(self, owner_id: str, delta: int) -> None:
        """Add (or release, with a negative delta) used bytes; usage never drops below zero"""
        if delta == 0:
            return
        await self.get_or_create(owner_id)
        used = await self.crud.increment_storage_used(owner_id, delta)
        logger.debug(f"Storage usage for owner {owner_id} adjusted by {delta}, now {used}")

    async def get_storage_info(self, owner_id: str) -> StorageInfo:
        user = await self.get_or_create(owner_id)
        available = max(0, user.storage_limit - user.storage_used)
        used_percentage = round(user.storage_used / user.storage_limit * 100, 2) if user.storage_limit else 100.0
        return StorageInfo(
            used=user.storage_used,
            limit=user.storage_limit,
            available=available,
            used_percentage=used_percentage,
        )
