"""Request context middleware.

Assigns a request ID (honouring ``X-Request-ID``), picks up a trace ID from
``X-Trace-ID`` or W3C ``traceparent``, logs request start/finish with timing
and clears the context afterwards.
"""

import time
from collections.abc import Awaitable, Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from src.core.context import clear_context, set_request_id, set_trace_id
from src.core.logging import get_logger


logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
TRACE_ID_HEADER = "X-Trace-ID"
TRACEPARENT_HEADER = "traceparent"


def trace_id_from_traceparent(traceparent: str | None) -> str | None:
    """Extract the trace ID from ``00-<trace-id>-<parent-id>-<flags>``."""
    if not traceparent:
        return None
    parts = traceparent.split("-")
    if len(parts) < 2:  # noqa: PLR2004
        return None
    return parts[1] or None


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Set up logging context for each request."""

    def __init__(
        self,
        app: ASGIApp,
        log_requests: bool = True,
        exclude_paths: list[str] | None = None,
    ) -> None:
        super().__init__(app)
        self.log_requests = log_requests
        self.exclude_paths = exclude_paths or []

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        started = time.perf_counter()
        request_id = set_request_id(request.headers.get(REQUEST_ID_HEADER))
        trace_id = request.headers.get(TRACE_ID_HEADER) or trace_id_from_traceparent(
            request.headers.get(TRACEPARENT_HEADER)
        )
        if trace_id:
            set_trace_id(trace_id)
        request.state.request_id = request_id

        should_log = self.log_requests and not any(
            request.url.path.startswith(path) for path in self.exclude_paths
        )
        if should_log:
            logger.info(
                "request_started",
                method=request.method,
                path=request.url.path,
                client_ip=request.client.host if request.client else None,
            )

        try:
            response = await call_next(request)
        except Exception as e:
            logger.exception(
                "request_failed",
                method=request.method,
                path=request.url.path,
                error_type=type(e).__name__,
                duration_ms=round((time.perf_counter() - started) * 1000, 2),
            )
            raise
        else:
            if should_log:
                log = logger.warning if response.status_code >= 400 else logger.info  # noqa: PLR2004
                log(
                    "request_completed",
                    method=request.method,
                    path=request.url.path,
                    status_code=response.status_code,
                    duration_ms=round((time.perf_counter() - started) * 1000, 2),
                )
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            clear_context()
