from math import ceil
from typing import Any, Dict, Optional, Sequence

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from starlette.responses import JSONResponse
from starlette import status

from dms.schemas.response import Pagination


def _envelope(data: Any, message: Optional[str], meta: Optional[Pagination] = None) -> Dict[str, Any]:
    # None is dropped from the envelope only; payload fields keep explicit nulls
    body: Dict[str, Any] = {"success": True}
    if message is not None:
        body["message"] = message
    if data is not None:
        body["data"] = jsonable_encoder(data)
    if meta is not None:
        body["meta"] = meta.model_dump(mode="json", exclude_none=True)
    return body

def ok(
    data: Any = None,
    message: Optional[str] = None,
    status_code: int = status.HTTP_200_OK,
    headers: Optional[Dict[str, str]] = None,
):
    return JSONResponse(content=_envelope(data, message), status_code=status_code, headers=headers)

def created(
    data: Any = None,
    message: str = "Created",
    headers: Optional[Dict[str, str]] = None,
):
    return JSONResponse(content=_envelope(data, message), status_code=status.HTTP_201_CREATED, headers=headers)

def _page_url(request: Request, page: int, limit: int) -> str:
    qp = dict(request.query_params)
    qp["page"] = str(page)
    qp["limit"] = str(limit)
    return str(request.url.replace_query_params(**qp))

def page_meta(request: Request, total: int, page: int, limit: int) -> Pagination:
    pages = max(1, ceil(total / limit)) if limit > 0 else 1
    return Pagination(
        total=total,
        page=page,
        page_size=limit,
        pages=pages,
        next=_page_url(request, page + 1, limit) if page < pages else None,
        previous=_page_url(request, page - 1, limit) if page > 1 else None,
    )

def paginated(
    *,
    request: Request,
    items: Sequence[Any],
    total: int,
    page: int,
    limit: int,
    message: Optional[str] = None,
    status_code: int = status.HTTP_200_OK,
):
    meta = page_meta(request, total, page, limit)
    return JSONResponse(content=_envelope(list(items), message, meta), status_code=status_code)
