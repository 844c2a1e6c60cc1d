"""Tests for the request tracking middleware."""

import pytest
from fastapi import FastAPI, Request
from httpx import ASGITransport, AsyncClient
from loguru import logger

from svg_cache.middleware import add_request_id


@pytest.fixture
def tracked_app() -> FastAPI:
    app = FastAPI()
    app.middleware("http")(add_request_id)

    @app.get("/echo")
    async def echo(request: Request) -> dict[str, str]:
        return {"request_id": request.state.request_id}

    return app


class TestAddRequestId:
    """Test request ID propagation."""

    @pytest.mark.asyncio
    async def test_generates_request_id(self, tracked_app):
        """A request without an ID gets a fresh one."""
        async with AsyncClient(
            transport=ASGITransport(app=tracked_app), base_url="http://test"
        ) as client:
            response = await client.get("/echo")

        request_id = response.headers["X-Request-ID"]
        assert request_id
        assert response.json() == {"request_id": request_id}

    @pytest.mark.asyncio
    async def test_echoes_supplied_request_id(self, tracked_app):
        """A supplied ID is reused and returned."""
        async with AsyncClient(
            transport=ASGITransport(app=tracked_app), base_url="http://test"
        ) as client:
            response = await client.get("/echo", headers={"X-Request-ID": "req-123"})

        assert response.headers["X-Request-ID"] == "req-123"
        assert response.json() == {"request_id": "req-123"}

    @pytest.mark.asyncio
    async def test_unique_ids_per_request(self, tracked_app):
        """Each request gets its own ID."""
        async with AsyncClient(
            transport=ASGITransport(app=tracked_app), base_url="http://test"
        ) as client:
            first = await client.get("/echo")
            second = await client.get("/echo")

        assert first.headers["X-Request-ID"] != second.headers["X-Request-ID"]

    @pytest.mark.asyncio
    async def test_log_records_carry_request_id(self, tracked_app):
        """Records logged while handling a request are tagged with its ID."""
        records = []
        sink_id = logger.add(lambda message: records.append(message.record), level="DEBUG")
        try:
            async with AsyncClient(
                transport=ASGITransport(app=tracked_app), base_url="http://test"
            ) as client:
                await client.get("/echo", headers={"X-Request-ID": "req-456"})
        finally:
            logger.remove(sink_id)

        completed = [r for r in records if r["message"].startswith("GET /echo -> 200")]
        assert len(completed) == 1
        assert completed[0]["extra"]["request_id"] == "req-456"
