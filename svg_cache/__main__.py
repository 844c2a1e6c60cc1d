"""Entry point for python -m svg_cache."""

import uvicorn

from .api import create_app
from .config import get_settings


def main() -> None:
    """Run the SVG cache server."""
    settings = get_settings()
    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
