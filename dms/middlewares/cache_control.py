from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from dms.utils import get_logger

logger = get_logger(__name__)

SAFE_METHODS = {"GET", "HEAD"}

# Presigned URLs in bodies expire, so reads may only be cached privately and must revalidate
READ_CACHE_CONTROL = "private, max-age=0, must-revalidate"
WRITE_CACHE_CONTROL = "no-cache, no-store, must-revalidate"


def cache_control_for(method: str) -> str:
    return READ_CACHE_CONTROL if method.upper() in SAFE_METHODS else WRITE_CACHE_CONTROL


class CacheControlMiddleware(BaseHTTPMiddleware):
    """Sets Cache-Control on every API response unless the route already did"""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        response = await call_next(request)

        if "cache-control" not in response.headers:
            response.headers["Cache-Control"] = cache_control_for(request.method)
            if request.method.upper() not in SAFE_METHODS:
                response.headers["Pragma"] = "no-cache"
                response.headers["Expires"] = "0"

        return response
