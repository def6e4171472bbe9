from fastapi import APIRouter, Depends
from starlette import status

from dms.configs.settings import settings
from dms.databases import mongodb
from dms.schemas import ApiResponse, HealthCheck
from dms.services import StorageService, get_storage_service
from dms.utils.api_response import ok

router = APIRouter()

API_VERSION = "1.0.0"


@router.get("", response_model=ApiResponse[HealthCheck])
async def health():
    """Liveness plus a summary of backing services"""
    database = "connected" if await mongodb.check_connection() else "disconnected"
    return ok(HealthCheck(
        status="healthy",
        version=API_VERSION,
        environment=settings.APP_ENV,
        services={"database": database},
    ))


@router.get("/live", response_model=ApiResponse[HealthCheck])
async def live():
    return ok(HealthCheck(status="alive", version=API_VERSION, environment=settings.APP_ENV))


@router.get("/ready", response_model=ApiResponse[HealthCheck])
async def ready(storage: StorageService = Depends(get_storage_service)):
    """Ready only once MongoDB answers a ping; storage state is reported, not required"""
    database_ok = await mongodb.check_connection()
    storage_ok = await storage.ping()
    check = HealthCheck(
        status="ready" if database_ok else "not_ready",
        version=API_VERSION,
        environment=settings.APP_ENV,
        services={
            "database": "connected" if database_ok else "disconnected",
            "storage": "connected" if storage_ok else "disconnected",
        },
    )
    return ok(check, status_code=status.HTTP_200_OK if database_ok else status.HTTP_503_SERVICE_UNAVAILABLE)
