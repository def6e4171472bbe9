from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import JSONResponse
from starlette import status
from scalar_fastapi import get_scalar_api_reference
from dms.schemas.response import ApiError, ErrorDetail
from dms.configs.settings import settings
from dms.core.exceptions import AppError
from dms.utils import setup_logging, get_logger
from dms.middlewares import init_sentry, CacheControlMiddleware
from dms.databases import mongodb
from dms.services import get_storage_service
from dms.models import DOCUMENT_MODELS
from dms.api import folder_router, document_router, user_router, health_router

logger = get_logger(__name__)


async def _setup_logging() -> None:
    """Setup application logging configuration"""
    setup_logging(
        level="DEBUG" if settings.APP_DEBUG else "INFO",
        app_name=settings.APP_NAME,
        enable_json=settings.APP_ENV == "prod",
        log_file="logs/app.log" if settings.APP_ENV == "prod" else None
    )
    logger.info("Logging configuration initialized")


async def _setup_sentry() -> None:
    """Setup Sentry monitoring for production environment"""
    if not settings.SENTRY_DSN:
        logger.warning("Sentry DSN not configured - monitoring disabled")
        return

    if settings.APP_ENV != "prod":
        logger.info("Sentry monitoring disabled - not in production environment")
        return

    init_sentry(
        dsn=settings.SENTRY_DSN,
        environment=settings.APP_ENV,
        release=settings.RELEASE,
        traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE,
        profiles_sample_rate=settings.SENTRY_PROFILES_SAMPLE_RATE,
        send_default_pii=settings.SENTRY_SEND_DEFAULT_PII
    )
    logger.info("Sentry monitoring initialized for production environment")


async def _setup_databases() -> None:
    """Connect MongoDB and register the Beanie models"""
    await mongodb.connect(document_models=DOCUMENT_MODELS)
    logger.info("MongoDB connection established successfully")


async def _setup_storage() -> None:
    """Make sure the document bucket exists; uploads fail until it does"""
    try:
        await get_storage_service().ensure_bucket()
        logger.info(f"Object storage ready (bucket {settings.MINIO_BUCKET})")
    except Exception as e:
        logger.error(f"Object storage not ready: {str(e)}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan context manager"""
    await _setup_logging()
    logger.info(f"Starting {settings.APP_NAME} application...")

    try:
        await _setup_sentry()
        await _setup_databases()
        await _setup_storage()

        logger.info("Application startup completed successfully")

        yield

    finally:
        logger.info(f"Shutting down {settings.APP_NAME} application...")
        await mongodb.disconnect()
        logger.info("Application shutdown completed successfully")


async def _handle_app_error(request: Request, exc: AppError) -> JSONResponse:
    """Render service errors as ApiError with their status and code"""
    errors = list(exc.errors or [])
    errors.append({
        "code": exc.code,
        "message": exc.message,
        "field": exc.field
    })

    if exc.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")

    body = ApiError(
        success=False,
        message=exc.message,
        code=exc.code,
        errors=[ErrorDetail(**e) for e in errors]
    ).model_dump(mode="json", exclude_none=True)

    return JSONResponse(content=body, status_code=exc.status_code)


async def _handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Handle HTTP exceptions from Starlette"""
    body = ApiError(
        success=False,
        message=str(exc.detail)
    ).model_dump(mode="json", exclude_none=True)

    return JSONResponse(content=body, status_code=exc.status_code, headers=getattr(exc, "headers", None))


async def _handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle request validation errors"""
    errors = []
    for error in exc.errors():
        location = ".".join(
            str(x) for x in error.get("loc", [])
            if x not in ("body", "query", "path")
        )
        errors.append({
            "code": error.get("type", "validation_error"),
            "message": error.get("msg", ""),
            "field": location or None
        })

    body = ApiError(
        success=False,
        message="Validation error",
        code="VALIDATION_ERROR",
        errors=[ErrorDetail(**e) for e in errors]
    ).model_dump(mode="json", exclude_none=True)

    return JSONResponse(
        content=body,
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY
    )


async def _handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"Unhandled error on {request.method} {request.url.path}", exc_info=exc)
    body = ApiError(
        success=False,
        message="Internal server error",
        code="INTERNAL_ERROR"
    ).model_dump(mode="json", exclude_none=True)

    return JSONResponse(content=body, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)


def install_middlewares(app: FastAPI) -> None:
    """Install CORS and cache-control middlewares"""
    app.add_middleware(CacheControlMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=settings.CORS_CREDENTIALS,
        allow_methods=settings.CORS_METHODS,
        allow_headers=settings.CORS_HEADERS,
        expose_headers=settings.CORS_EXPOSE_HEADERS,
    )


def install_exception_handlers(app: FastAPI) -> None:
    """Install all exception handlers for the application"""
    app.exception_handler(AppError)(_handle_app_error)
    app.exception_handler(StarletteHTTPException)(_handle_http_exception)
    app.exception_handler(RequestValidationError)(_handle_validation_error)
    app.exception_handler(Exception)(_handle_unexpected_error)


def _create_api_prefix(endpoint_name: str) -> str:
    """Create API prefix for router endpoints"""
    return f"/api/v1/{endpoint_name}"


def include_routers(app: FastAPI) -> None:
    """Include all API routers with proper configuration"""
    routers_config = [
        (folder_router, "folders", "Folders"),
        (document_router, "documents", "Documents"),
        (user_router, "users", "Users"),
        (health_router, "health", "Health"),
    ]
    if settings.APP_ENV == "dev":
        @app.get("/scalar", include_in_schema=False)
        async def scalar_html():
            return get_scalar_api_reference(
                openapi_url=app.openapi_url,
                title=settings.APP_NAME,
            )

    for router, prefix_name, tag in routers_config:
        app.include_router(
            router,
            prefix=_create_api_prefix(prefix_name),
            tags=[tag]
        )


def create_app() -> FastAPI:
    """Create and configure FastAPI application with all components"""
    app = FastAPI(
        title=settings.APP_NAME,
        description="Document and folder store API",
        version="1.0.0",
        debug=settings.APP_DEBUG,
        lifespan=lifespan,
        docs_url="/docs" if settings.APP_DEBUG else None,
        redoc_url="/redoc" if settings.APP_DEBUG else None,
    )

    install_middlewares(app)
    install_exception_handlers(app)
    include_routers(app)

    return app
