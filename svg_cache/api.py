"""FastAPI application factory."""

import sys
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import handlers
from .config import Settings, get_settings
from .exceptions import (
    InvalidContentError,
    InvalidInputError,
    InvalidKeyError,
    RateLimitedError,
    StorageError,
    SvgCacheError,
    UnauthorizedError,
    UpstreamError,
)
from .gateway import CacheGateway
from .middleware import add_request_id
from .providers import SvgGeneratorProtocol, create_svg_generator
from .ratelimit import GenerationLimiter
from .storage import SvgStore

INDEX_TEMPLATE = Path(__file__).parent / "templates" / "index.html"

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> "
    "<level>{level: <8}</level> "
    "[<magenta>{extra[request_id]}</magenta>] "
    "<cyan>{name}</cyan>:<cyan>{line}</cyan> {message}"
)


def configure_logging(settings: Settings) -> None:
    """Route loguru output to stderr and, optionally, a rotating file.

    Records logged outside a request carry ``-`` as their request ID.
    """
    logger.remove()
    logger.configure(extra={"request_id": "-"})
    logger.add(sys.stderr, format=LOG_FORMAT, level=settings.log_level)

    if settings.log_file:
        logger.add(
            settings.log_file,
            format=LOG_FORMAT,
            level=settings.log_level,
            rotation="10 MB",
            retention="7 days",
            compression="zip",
        )
    logger.debug(f"Logging configured at {settings.log_level}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle."""
    configure_logging(app.state.settings)
    await app.state.gateway.startup()
    logger.info(f"Serving SVG cache from {app.state.settings.static_path}")

    yield

    logger.info("Application shutdown complete")


async def svg_cache_exception_handler(request: Request, exc: SvgCacheError) -> JSONResponse:
    """Turn domain errors into JSON error bodies."""
    content: dict = {"error": str(exc)}

    if isinstance(exc, InvalidInputError | InvalidKeyError):
        status_code = status.HTTP_400_BAD_REQUEST
    elif isinstance(exc, InvalidContentError):
        status_code = status.HTTP_400_BAD_REQUEST
        content["content"] = exc.content
    elif isinstance(exc, UnauthorizedError):
        status_code = status.HTTP_401_UNAUTHORIZED
    elif isinstance(exc, RateLimitedError):
        status_code = status.HTTP_429_TOO_MANY_REQUESTS
    elif isinstance(exc, UpstreamError):
        status_code = status.HTTP_502_BAD_GATEWAY
        content = {"error": "Generation failed"}
    elif isinstance(exc, StorageError):
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
        content = {"error": "Failed to store image"}
    else:
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
        content = {"error": "Internal server error"}

    if status_code >= 500:
        logger.error(f"{exc.__class__.__name__}: {exc}")
    else:
        logger.warning(f"{exc.__class__.__name__}: {exc}")

    return JSONResponse(status_code=status_code, content=content)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Render routing errors (unknown path, wrong method) in the service's error shape."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


def create_app(
    settings: Settings | None = None,
    generator: SvgGeneratorProtocol | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Configuration; read from the environment when omitted.
        generator: SVG generator; built from settings when omitted.
    """
    settings = settings or get_settings()
    gateway = CacheGateway(
        settings=settings,
        store=SvgStore(settings.static_path),
        generator=generator or create_svg_generator(settings),
    )

    app = FastAPI(
        title="SVG Cache API",
        version="1.0.0",
        description="Serves cached SVG images, generating missing ones with an LLM",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.gateway = gateway
    app.state.index_html = INDEX_TEMPLATE.read_text(encoding="utf-8")

    app.middleware("http")(add_request_id)

    # Checked by the gateway on cache misses only
    app.state.generation_limiter = GenerationLimiter(settings)
    app.add_exception_handler(SvgCacheError, svg_cache_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)  # type: ignore[arg-type]

    app.get("/", tags=["images"], include_in_schema=False)(handlers.index_handler)
    app.get("/health", tags=["health"])(handlers.health_handler)
    app.get("/api/generate", tags=["generate"])(handlers.generate_handler)
    # ``path`` lets an encoded slash reach the handler and be sanitized
    app.get("/api/{name:path}.svg", tags=["generate"])(handlers.generate_path_handler)
    app.get("/{name}.svg", tags=["images"])(handlers.image_handler)

    app.openapi_tags = [
        {"name": "images", "description": "Cached images"},
        {"name": "generate", "description": "Generate-or-redirect"},
        {"name": "health", "description": "Health checks"},
    ]

    return app
