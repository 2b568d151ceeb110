"""Server middleware."""

import logging
import time
import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

CORRELATION_ID_HEADER = "X-Request-ID"

logger = logging.getLogger(__name__)

# Read by the logging filter below, so any code in the request path logs the ID.
correlation_id_var: ContextVar[str | None] = ContextVar("correlation_id", default=None)


class CorrelationIDMiddleware(BaseHTTPMiddleware):
    """Attach a request ID to every request/response cycle and log its timing.

    A client supplied ``X-Request-ID`` is preserved, otherwise a new UUID4 hex
    is generated. The ID is set on ``request.state.correlation_id`` and in a
    ``ContextVar`` for log records.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        cid = request.headers.get(CORRELATION_ID_HEADER) or uuid.uuid4().hex
        request.state.correlation_id = cid
        token = correlation_id_var.set(cid)
        start = time.perf_counter()
        try:
            response = await call_next(request)
        finally:
            duration_ms = (time.perf_counter() - start) * 1000
            logger.debug(
                "%s %s handled in %.1fms", request.method, request.url.path, duration_ms
            )
            correlation_id_var.reset(token)
        response.headers[CORRELATION_ID_HEADER] = cid
        return response


class CorrelationIDFilter(logging.Filter):
    """Logging filter that stamps ``correlation_id`` onto every log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = correlation_id_var.get()  # type: ignore[attr-defined]
        return True
