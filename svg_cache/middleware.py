"""Per-request log context."""

import time
import uuid

from fastapi import Request
from loguru import logger

REQUEST_ID_HEADER = "X-Request-ID"


async def add_request_id(request: Request, call_next):
    """Tag every log record of a request with its ID and echo the ID back.

    A client-supplied ``X-Request-ID`` is reused, otherwise a fresh one is
    generated. The request line is logged once on completion with its
    status and duration.
    """
    request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
    request.state.request_id = request_id
    started = time.perf_counter()

    with logger.contextualize(request_id=request_id):
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.debug(
            f"{request.method} {request.url.path} -> {response.status_code} ({elapsed_ms:.1f} ms)"
        )

    response.headers[REQUEST_ID_HEADER] = request_id
    return response
