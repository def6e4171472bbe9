from dms.middlewares.sentry import init_sentry
from dms.middlewares.cache_control import CacheControlMiddleware

__all__ = ["init_sentry", "CacheControlMiddleware"]
