"""
Request logging middleware.

Every route's response body is an iterator, and the generation endpoints
stream for as long as their batches take, so completion is logged when the
body has been fully sent rather than when the headers go out.
"""
import logging
import time
import uuid
from typing import AsyncIterator, Callable, Dict, Union

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from mcq_service.logging_config import request_id_context

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


def _log_completion(fields: Dict[str, object]) -> None:
    status_code = fields["status_code"]
    if status_code >= 500:
        logger.error("Request failed", extra=fields)
    elif status_code >= 400:
        logger.warning("Request completed with client error", extra=fields)
    else:
        logger.info("Request completed", extra=fields)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Tag each request with a correlation id and log its outcome.

    The id comes from the incoming X-Request-ID header when present and is
    echoed on the response. The completion entry carries the status code,
    the bytes sent and the duration up to the last body chunk.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        request_id_context.set(request_id)

        started = time.perf_counter()
        fields: Dict[str, object] = {
            "method": request.method,
            "path": request.url.path,
        }
        logger.info(
            "Incoming request",
            extra={**fields, "client_host": request.client.host if request.client else "unknown"},
        )

        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        fields["status_code"] = response.status_code

        body = response.body_iterator

        async def logged_body() -> AsyncIterator[Union[str, bytes]]:
            bytes_sent = 0
            try:
                async for chunk in body:
                    bytes_sent += len(chunk)
                    yield chunk
            finally:
                _log_completion(
                    {
                        **fields,
                        "bytes_sent": bytes_sent,
                        "duration_ms": round((time.perf_counter() - started) * 1000, 2),
                    }
                )

        response.body_iterator = logged_body()
        return response
