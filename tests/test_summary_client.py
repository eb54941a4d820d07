"""
Unit tests for the summary API client against a local aiohttp server.

Tests cover:
- Request shape (bearer auth, UTC range, recompute, optional filters)
- Non-2xx responses, malformed payloads, timeouts and connection errors
  all surfacing as UpstreamError
"""

import asyncio
import pytest
import pytest_asyncio
from datetime import datetime

from aiohttp import web
from aiohttp.test_utils import TestServer

from services.errors import UpstreamError
from services.summary_client import SummaryClient


START = datetime(2025, 1, 23, 5, 0, 0)
END = datetime(2025, 1, 24, 4, 59, 59)


# ============================================================================
# FIXTURES
# ============================================================================

@pytest_asyncio.fixture
async def summary_server():
    """Local summary API; the first path segment picks the behaviour."""
    requests = []

    async def ok(request):
        requests.append(request)
        return web.json_response({"categories": [{"name": "coding", "total": 3600}]})

    async def error(request):
        requests.append(request)
        return web.json_response({"error": "internal"}, status=500)

    async def garbage(request):
        return web.Response(text="<html>not json</html>", content_type="text/html")

    async def no_categories(request):
        return web.json_response({"data": []})

    async def slow(request):
        await asyncio.sleep(2)
        return web.json_response({"categories": []})

    app = web.Application()
    app.router.add_get("/ok/summary", ok)
    app.router.add_get("/error/summary", error)
    app.router.add_get("/garbage/summary", garbage)
    app.router.add_get("/no-categories/summary", no_categories)
    app.router.add_get("/slow/summary", slow)

    server = TestServer(app)
    await server.start_server()
    server.requests = requests

    yield server

    await server.close()


def base_url(server, prefix):
    return str(server.make_url(f"/{prefix}"))


# ============================================================================
# CLIENT TESTS
# ============================================================================

@pytest.mark.asyncio
async def test_fetch_summary_sends_bearer_token_and_range(summary_server):
    async with SummaryClient(base_url=base_url(summary_server, "ok"), timeout_seconds=5) as client:
        payload = await client.fetch_summary("U123", "secret-key", START, END)

    assert payload == {"categories": [{"name": "coding", "total": 3600}]}
    request = summary_server.requests[0]
    assert request.headers["Authorization"] == "Bearer secret-key"
    assert request.query["user"] == "U123"
    assert request.query["from"] == "2025-01-23T05:00:00Z"
    assert request.query["to"] == "2025-01-24T04:59:59Z"
    assert request.query["recompute"] == "true"
    assert "editor" not in request.query
    assert "language" not in request.query


@pytest.mark.asyncio
async def test_fetch_summary_passes_editor_and_language_filters(summary_server):
    async with SummaryClient(base_url=base_url(summary_server, "ok") + "/", timeout_seconds=5) as client:
        await client.fetch_summary("U123", "k", START, END, editor="vscode", language="python")

    request = summary_server.requests[0]
    assert request.query["editor"] == "vscode"
    assert request.query["language"] == "python"


@pytest.mark.asyncio
async def test_non_2xx_status_raises_upstream_error(summary_server):
    async with SummaryClient(base_url=base_url(summary_server, "error"), timeout_seconds=5) as client:
        with pytest.raises(UpstreamError) as exc_info:
            await client.fetch_summary("U123", "k", START, END)

    assert exc_info.value.status == 500


@pytest.mark.asyncio
async def test_unparseable_body_raises_upstream_error(summary_server):
    async with SummaryClient(base_url=base_url(summary_server, "garbage"), timeout_seconds=5) as client:
        with pytest.raises(UpstreamError):
            await client.fetch_summary("U123", "k", START, END)


@pytest.mark.asyncio
async def test_payload_without_categories_raises_upstream_error(summary_server):
    async with SummaryClient(base_url=base_url(summary_server, "no-categories"), timeout_seconds=5) as client:
        with pytest.raises(UpstreamError):
            await client.fetch_summary("U123", "k", START, END)


@pytest.mark.asyncio
async def test_timeout_raises_upstream_error(summary_server):
    async with SummaryClient(base_url=base_url(summary_server, "slow"), timeout_seconds=0.2) as client:
        with pytest.raises(UpstreamError):
            await client.fetch_summary("U123", "k", START, END)


@pytest.mark.asyncio
async def test_connection_failure_raises_upstream_error(summary_server):
    url = base_url(summary_server, "ok")
    await summary_server.close()

    async with SummaryClient(base_url=url, timeout_seconds=2) as client:
        with pytest.raises(UpstreamError):
            await client.fetch_summary("U123", "k", START, END)


def test_build_params_formats_utc_instants():
    client = SummaryClient(base_url="http://example.invalid/api", timeout_seconds=1)

    params = client.build_params("U1", START, END, language="rust")

    assert params == {
        "user": "U1",
        "from": "2025-01-23T05:00:00Z",
        "to": "2025-01-24T04:59:59Z",
        "recompute": "true",
        "language": "rust"
    }
