from typing import Any, Dict, Optional

import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.pymongo import PyMongoIntegration
from sentry_sdk.integrations.logging import LoggingIntegration

from dms.core.exceptions import AppError

HEALTH_PREFIX = "/api/v1/health"
SENSITIVE_HEADERS = {"authorization", "cookie", "set-cookie"}
# query parameters of presigned S3 URLs that must never leave the process
SIGNED_URL_MARKERS = ("X-Amz-Signature", "X-Amz-Credential")


def init_sentry(
    dsn: str,
    environment: str = "prod",
    release: Optional[str] = None,
    traces_sample_rate: float = 0.2,
    profiles_sample_rate: float = 0.0,
    send_default_pii: bool = False,
):
    sentry_sdk.init(
        dsn=dsn,
        environment=environment,
        release=release,
        send_default_pii=send_default_pii,
        integrations=[
            FastApiIntegration(),
            PyMongoIntegration(),
            LoggingIntegration(level=None, event_level="ERROR"),
        ],
        traces_sample_rate=traces_sample_rate,
        profiles_sample_rate=profiles_sample_rate,
        max_breadcrumbs=100,
        before_send=_before_send,
        before_send_transaction=_drop_health_transactions,
    )
    sentry_sdk.set_tag("service", "dms")


def _is_expected_error(hint: Dict[str, Any]) -> bool:
    """Client errors (not found, conflicts, quota) are part of normal traffic"""
    exc_info = hint.get("exc_info") if hint else None
    if not exc_info:
        return False
    exc = exc_info[1]
    return isinstance(exc, AppError) and exc.status_code < 500


def _scrub(value: Any) -> Any:
    if isinstance(value, str) and any(marker in value for marker in SIGNED_URL_MARKERS):
        return "[Filtered]"
    return value


def _before_send(event, hint):
    if _is_expected_error(hint):
        return None

    request = event.get("request") or {}
    headers = request.get("headers") or {}
    for key in list(headers.keys()):
        if key.lower() in SENSITIVE_HEADERS:
            headers[key] = "[Filtered]"
    if "query_string" in request:
        request["query_string"] = _scrub(request["query_string"])
    return event


def _drop_health_transactions(event, hint):
    name = str(event.get("transaction") or "")
    if name.startswith(HEALTH_PREFIX):
        return None
    return event
