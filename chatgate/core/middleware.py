"""HTTP middleware for request ID propagation and correlation.

Every request/response pair carries a correlation id so gate decisions logged
deep in the services can be tied back to the proxied request:

- Accepts the incoming request id header (LOG_REQUEST_ID_HEADER) or generates a UUID
- Stores it in contextvars for the lifetime of the request
- Echoes it in the response together with X-Request-Duration-ms

Usage:
    app.middleware("http")(request_id_middleware)
"""

from __future__ import annotations

import time
import uuid

from fastapi import Request, Response

from chatgate.core.config import settings
from chatgate.core.logging import clear_request_id, set_request_id


async def request_id_middleware(request: Request, call_next) -> Response:
    """Attach a request id to the logging context and to the response.

    Args:
        request: The incoming HTTP request object.
        call_next: The next middleware/route handler in the stack.

    Returns:
        Response: The downstream response with request id and duration headers.
    """
    header_name = settings.log.request_id_header
    request_id = request.headers.get(header_name) or str(uuid.uuid4())
    set_request_id(request_id)
    start = time.perf_counter()
    try:
        response: Response = await call_next(request)
    finally:
        clear_request_id()

    duration_ms = (time.perf_counter() - start) * 1000
    response.headers[header_name] = request_id
    response.headers.setdefault("X-Request-Duration-ms", f"{duration_ms:.2f}")
    return response
