"""SVG Cache API - cached SVG images generated on demand by an LLM."""

from .api import create_app
from .gateway import CacheGateway, CachedImage, sanitize_name
from .providers import GeneratedSvg, SvgGenerator, create_svg_generator

__version__ = "1.0.0"

__all__ = [
    "CacheGateway",
    "CachedImage",
    "GeneratedSvg",
    "SvgGenerator",
    "create_app",
    "create_svg_generator",
    "sanitize_name",
]
