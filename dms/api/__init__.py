from dms.api.folder import router as folder_router
from dms.api.document import router as document_router
from dms.api.user import router as user_router
from dms.api.health import router as health_router

__all__ = ["folder_router", "document_router", "user_router", "health_router"]
