"""Tests for the generation rate limiter."""

import pytest
from fastapi import Request

from svg_cache.exceptions import RateLimitedError
from svg_cache.ratelimit import GenerationLimiter


def client_request(host: str) -> Request:
    return Request({"type": "http", "method": "GET", "headers": [], "client": (host, 50000)})


class TestGenerationLimiter:
    """Test per-client counting."""

    def test_rejects_over_limit(self, settings_factory):
        limiter = GenerationLimiter(
            settings_factory(rate_limit="2/minute", rate_limit_enabled=True)
        )
        request = client_request("10.0.0.1")

        limiter.check(request)
        limiter.check(request)
        with pytest.raises(RateLimitedError, match="Rate limit exceeded"):
            limiter.check(request)

    def test_clients_counted_separately(self, settings_factory):
        limiter = GenerationLimiter(
            settings_factory(rate_limit="1/minute", rate_limit_enabled=True)
        )

        limiter.check(client_request("10.0.0.1"))
        limiter.check(client_request("10.0.0.2"))

        with pytest.raises(RateLimitedError):
            limiter.check(client_request("10.0.0.1"))

    def test_disabled_never_rejects(self, settings_factory):
        limiter = GenerationLimiter(
            settings_factory(rate_limit="1/minute", rate_limit_enabled=False)
        )
        request = client_request("10.0.0.1")

        for _ in range(5):
            limiter.check(request)
