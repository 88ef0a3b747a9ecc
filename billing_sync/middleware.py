"""FastAPI middleware for request/response logging and correlation."""

import os
import time
import uuid
from typing import Callable, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from billing_sync.logging_config import bind_context, clear_context, get_logger

logger = get_logger(__name__)

TRACE_HEADER = "x-cloud-trace-context"


def _trace_resource(header: Optional[str]) -> Optional[str]:
    """Cloud Logging trace resource for an ``X-Cloud-Trace-Context`` header value."""
    project = os.getenv("GOOGLE_CLOUD_PROJECT")
    if not header or not project:
        return None
    trace_id = header.split("/", 1)[0]
    if not trace_id:
        return None
    return f"projects/{project}/traces/{trace_id}"


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000, 2)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs every request with a correlation ID and duration.

    The ID is taken from an incoming ``X-Request-ID`` when present, bound to all
    logs of the request and echoed back in the response header. On Cloud Run the
    request trace is bound as ``logging.googleapis.com/trace`` so entries group
    under the request in Cloud Logging.
    """

    def __init__(self, app: ASGIApp, include_request_details: bool = True):
        super().__init__(app)
        self.include_request_details = include_request_details

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        bind_context(request_id=request_id)
        trace = _trace_resource(request.headers.get(TRACE_HEADER))
        if trace:
            bind_context(**{"logging.googleapis.com/trace": trace})

        details = {}
        if self.include_request_details:
            details = {
                "client_host": request.client.host if request.client else "unknown",
                "user_agent": request.headers.get("user-agent"),
            }
        logger.info("request_started", method=request.method, path=request.url.path, **details)

        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as exc:
            logger.error(
                "request_failed",
                method=request.method,
                path=request.url.path,
                duration_ms=_elapsed_ms(start),
                error=str(exc),
                error_type=type(exc).__name__,
                exc_info=True,
            )
            raise
        else:
            logger.info(
                "request_completed",
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration_ms=_elapsed_ms(start),
            )
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            clear_context()


class ContextMiddleware(BaseHTTPMiddleware):
    """Binds the business entry point of a request to the logging context.

    - callable name for /callable/{name}
    - webhook source for /webhooks/{source}
    - operation for /admin/{operation}
    - step for /todoist/{step}

    Query strings are never bound: the admin endpoint carries its key there
    and the OAuth callback its code.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        parts = [p for p in request.url.path.split("/") if p]
        if len(parts) >= 2:
            section, name = parts[0], parts[1]
            if section == "callable":
                bind_context(callable=name)
            elif section == "webhooks":
                bind_context(webhook=name)
            elif section == "admin":
                bind_context(admin_operation=name)
            elif section == "todoist":
                bind_context(oauth_step=name)

        return await call_next(request)
