from dms.utils.logging import get_logger, setup_logging
from dms.utils.api_response import ok, created, paginated, page_meta


__all__= [
    "get_logger",
    "setup_logging",
    "ok",
    "created",
    "paginated",
    "page_meta",
]
