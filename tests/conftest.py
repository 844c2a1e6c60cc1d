"""Shared test fixtures."""

import os
from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

# Set test environment
os.environ["LOG_LEVEL"] = "ERROR"  # Reduce log noise
os.environ["RATE_LIMIT_ENABLED"] = "false"

from mock_provider import MockGenerator  # noqa: E402

from svg_cache.api import create_app  # noqa: E402
from svg_cache.config import Settings  # noqa: E402
from svg_cache.gateway import CacheGateway  # noqa: E402
from svg_cache.storage import SvgStore  # noqa: E402


def make_settings(**overrides) -> Settings:
    """Build settings isolated from the host environment and any .env file."""
    values = {
        "openai_api_key": "test-key",
        "secret_key": None,
        "rate_limit_enabled": False,
        "log_level": "ERROR",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def static_dir(tmp_path: Path) -> Path:
    """Existing, empty cache directory."""
    path = tmp_path / "static"
    path.mkdir()
    return path


@pytest.fixture
def settings(static_dir: Path) -> Settings:
    """Open-generation settings pointing at the temporary cache directory."""
    return make_settings(static_path=static_dir)


@pytest.fixture
def generator() -> MockGenerator:
    """Scripted generator."""
    return MockGenerator()


@pytest.fixture
def store(static_dir: Path) -> SvgStore:
    """Store over the temporary cache directory."""
    return SvgStore(static_dir)


@pytest.fixture
def gateway(settings: Settings, store: SvgStore, generator: MockGenerator) -> CacheGateway:
    """Gateway wired to the mock generator."""
    return CacheGateway(settings=settings, store=store, generator=generator)


@pytest.fixture
def app(settings: Settings, generator: MockGenerator) -> FastAPI:
    """Application wired to the mock generator."""
    return create_app(settings, generator=generator)


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Test client over ASGI; redirects are not followed."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def settings_factory(static_dir: Path):
    """Build settings for the temporary cache directory with overrides."""

    def factory(**overrides) -> Settings:
        overrides.setdefault("static_path", static_dir)
        return make_settings(**overrides)

    return factory
