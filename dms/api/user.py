from fastapi import APIRouter, Depends

from dms.schemas import ApiResponse, StorageInfo
from dms.services import QuotaService, get_quota_service
from dms.utils.api_response import ok
from dms.utils.verify_token import get_current_owner_id

router = APIRouter()


@router.get("/me/storage", response_model=ApiResponse[StorageInfo])
async def get_storage_info(
    owner_id: str = Depends(get_current_owner_id),
    quota: QuotaService = Depends(get_quota_service),
):
    """Storage used and remaining for the current owner"""
    info = await quota.get_storage_info(owner_id)
    return ok(info)
