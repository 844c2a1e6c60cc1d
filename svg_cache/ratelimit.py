"""Per-client rate limiting of billable generation, on slowapi's limiter storage."""

from fastapi import Request
from limits import parse
from loguru import logger
from slowapi import Limiter
from slowapi.util import get_remote_address

from .config import Settings
from .exceptions import RateLimitedError


class GenerationLimiter:
    """Counts generation attempts per client address.

    Only cache misses are counted; serving an existing image is free.
    """

    scope = "generate"

    def __init__(self, settings: Settings) -> None:
        self.limiter = Limiter(
            key_func=get_remote_address,
            storage_uri=settings.redis_url or "memory://",
            enabled=settings.rate_limit_enabled,
        )
        self.limit = parse(settings.rate_limit)

    def check(self, request: Request) -> None:
        """Record one generation for the client.

        Raises:
            RateLimitedError: If the client is over the limit.
        """
        if not self.limiter.enabled:
            return

        client = get_remote_address(request)
        if not self.limiter.limiter.hit(self.limit, self.scope, client):
            logger.warning(f"Generation rate limit hit by {client}")
            raise RateLimitedError(f"Rate limit exceeded: {self.limit}")
