"""Per-request logging context.

Every request gets an ``X-Request-Id`` (client supplied or generated). Apps
that registered for sync send ``X-Device-Id``; it is bound too so sync
traffic can be traced per device.
"""

import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

REQUEST_ID_HEADER = "X-Request-Id"
DEVICE_ID_HEADER = "X-Device-Id"


class RequestContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        context: dict[str, str] = {
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
        }
        device_id = request.headers.get(DEVICE_ID_HEADER)
        if device_id:
            context["device_id"] = device_id

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(**context)
        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
