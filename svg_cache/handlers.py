"""HTTP request handlers."""

from datetime import UTC, datetime

from fastapi import Request, Response
from fastapi.responses import FileResponse, HTMLResponse, JSONResponse, RedirectResponse

from .exceptions import InvalidInputError
from .gateway import CacheGateway
from .types import HealthStatus

SVG_MEDIA_TYPE = "image/svg+xml"
IMMUTABLE_CACHE_CONTROL = "public, max-age=31536000, immutable"
API_PATH_PREFIX = "/api/"
SVG_SUFFIX = ".svg"


def _gateway(request: Request) -> CacheGateway:
    return request.app.state.gateway


def _single_query_value(request: Request, name: str) -> str | None:
    """Return the query parameter only when it was given exactly once."""
    values = request.query_params.getlist(name)
    return values[0] if len(values) == 1 else None


async def index_handler(request: Request) -> HTMLResponse:
    """Serve the landing page."""
    return HTMLResponse(request.app.state.index_html)


async def image_handler(request: Request, name: str) -> Response:
    """Serve a cached image.

    Args:
        request: FastAPI request object for accessing app state.
        name: Cache key taken from the ``/{name}.svg`` path.

    Returns:
        The stored SVG with immutable cache headers, or a 404 error body.
    """
    image = await _gateway(request).lookup(name)
    if image is None:
        return JSONResponse({"error": "File not found"}, status_code=404)

    return FileResponse(
        str(image.path),
        media_type=SVG_MEDIA_TYPE,
        headers={"Cache-Control": IMMUTABLE_CACHE_CONTROL},
    )


async def generate_handler(request: Request) -> RedirectResponse:
    """Generate-or-redirect with ``name`` and ``key`` as query parameters.

    Raises:
        InvalidInputError: If ``name`` is missing or repeated.
    """
    name = _single_query_value(request, "name")
    if name is None:
        raise InvalidInputError("Filename not provided")

    return await _ensure(request, name)


async def generate_path_handler(request: Request, name: str) -> RedirectResponse:
    """Generate-or-redirect with the name taken from ``/api/{name}.svg``.

    The router hands over an already percent-decoded ``name``. The raw path
    segment is used instead so that the name is decoded exactly once, the
    same way as the query variant.
    """
    return await _ensure(request, _raw_path_name(request) or name)


def _raw_path_name(request: Request) -> str | None:
    raw_path = request.scope.get("raw_path")
    if not raw_path:
        return None
    path = raw_path.decode("latin-1").split("?", 1)[0]
    if not (path.startswith(API_PATH_PREFIX) and path.endswith(SVG_SUFFIX)):
        return None
    return path[len(API_PATH_PREFIX) : -len(SVG_SUFFIX)]


async def _ensure(request: Request, name: str) -> RedirectResponse:
    limiter = request.app.state.generation_limiter
    url = await _gateway(request).ensure(
        name,
        _single_query_value(request, "key"),
        admit=lambda: limiter.check(request),
    )
    return RedirectResponse(url, status_code=302)


async def health_handler(request: Request, response: Response) -> dict:
    """Check health status of all system components.

    Args:
        request: FastAPI request object for accessing app state.
        response: Outgoing response, used to set 503 when unhealthy.

    Returns:
        Dictionary containing overall status, timestamp, and individual service statuses.
    """
    gateway = _gateway(request)
    status: HealthStatus = {
        "storage": await gateway.health_check(),
        "llm": await gateway.generator.health_check(),
    }
    all_healthy = all(status.values())

    if not all_healthy:
        response.status_code = 503

    return {
        "status": "healthy" if all_healthy else "unhealthy",
        "timestamp": datetime.now(UTC).isoformat(),
        "services": status,
    }
