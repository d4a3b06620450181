"""
Tests for the upstream HTTP client and envelope normalisation.

Tests cover:
- Both envelope conventions, success and failure
- Unreadable bodies
- Byte-exact bodies and headers from a real HTTP server
- Timeout and connection failures
"""

import asyncio
import json

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer, unused_port

from ezviz_broker.errors import ProxyError, UpstreamError, UpstreamTimeout
from ezviz_broker.upstream.client import RawResponse, UpstreamClient, unwrap_envelope

from fakes import json_response

SEGMENT = bytes(range(256)) * 4


class TestUnwrapEnvelope:

    def test_legacy_success(self):
        response = json_response({"code": "200", "msg": "ok", "data": {"url": "https://x"}})
        assert unwrap_envelope(response) == {"url": "https://x"}

    def test_legacy_numeric_success_code(self):
        response = json_response({"code": 200, "data": [1, 2]})
        assert unwrap_envelope(response) == [1, 2]

    def test_meta_success(self):
        response = json_response({"meta": {"code": 200, "message": "ok"}, "data": [{"id": 1}]})
        assert unwrap_envelope(response) == [{"id": 1}]

    def test_legacy_failure(self):
        response = json_response({"code": "2003", "msg": "Device offline"})

        with pytest.raises(UpstreamError) as exc_info:
            unwrap_envelope(response)

        assert exc_info.value.code == "2003"
        assert exc_info.value.message == "Device offline"
        assert exc_info.value.status == 200

    def test_meta_failure_normalised_to_same_shape(self):
        response = json_response({"meta": {"code": 2007, "message": "Invalid serial"}, "data": None})

        with pytest.raises(UpstreamError) as exc_info:
            unwrap_envelope(response)

        assert exc_info.value.code == "2007"
        assert exc_info.value.message == "Invalid serial"

    def test_non_json_body(self):
        response = RawResponse(status=502, headers=[], body=b"<html>Bad gateway</html>")

        with pytest.raises(UpstreamError) as exc_info:
            unwrap_envelope(response)

        assert exc_info.value.code == "502"
        assert exc_info.value.status == 502

    def test_unexpected_shape(self):
        with pytest.raises(UpstreamError):
            unwrap_envelope(json_response(["not", "an", "envelope"]))

    def test_error_string(self):
        error = UpstreamError("2003", "Device offline")
        assert str(error) == "EZVIZ API error: Device offline (2003)"


async def _json_handler(request: web.Request) -> web.Response:
    return web.json_response({"code": "200", "data": {"ok": True}})


async def _binary_handler(request: web.Request) -> web.Response:
    return web.Response(body=SEGMENT, content_type="video/mp2t", headers={"X-Upstream": "1"})


async def _slow_handler(request: web.Request) -> web.Response:
    await asyncio.sleep(1)
    return web.Response(text="late")


async def _echo_handler(request: web.Request) -> web.Response:
    body = await request.read()
    return web.json_response({
        "method": request.method,
        "query": request.query_string,
        "contentType": request.headers.get("Content-Type"),
        "body": body.decode("utf-8"),
    })


@pytest_asyncio.fixture
async def upstream_server():
    """Local aiohttp server standing in for the EZVIZ platform."""
    app = web.Application()
    app.router.add_get("/json", _json_handler)
    app.router.add_get("/binary", _binary_handler)
    app.router.add_get("/slow", _slow_handler)
    app.router.add_route("*", "/echo", _echo_handler)

    server = TestServer(app)
    await server.start_server()
    yield server
    await server.close()


@pytest_asyncio.fixture
async def client():
    upstream = UpstreamClient(default_timeout=5.0)
    yield upstream
    await upstream.close()


class TestUpstreamClient:

    @pytest.mark.asyncio
    async def test_reads_json(self, client, upstream_server):
        response = await client.get(str(upstream_server.make_url("/json")))

        assert response.status == 200
        assert unwrap_envelope(response) == {"ok": True}

    @pytest.mark.asyncio
    async def test_binary_body_is_byte_exact(self, client, upstream_server):
        response = await client.get(str(upstream_server.make_url("/binary")))

        assert response.body == SEGMENT
        assert response.header("content-type") == "video/mp2t"
        assert response.header("x-upstream") == "1"

    @pytest.mark.asyncio
    async def test_post_dict_is_form_encoded(self, client, upstream_server):
        response = await client.post(
            str(upstream_server.make_url("/echo")),
            body={"appKey": "k", "appSecret": "s"},
        )

        echoed = json.loads(response.body)
        assert echoed["method"] == "POST"
        assert echoed["contentType"].startswith("application/x-www-form-urlencoded")
        assert echoed["body"] == "appKey=k&appSecret=s"

    @pytest.mark.asyncio
    async def test_bytes_sent_verbatim(self, client, upstream_server):
        response = await client.request(
            "PUT",
            str(upstream_server.make_url("/echo")),
            data=b'{"a": 1}',
            headers=[("Content-Type", "application/json")],
        )

        echoed = json.loads(response.body)
        assert echoed["method"] == "PUT"
        assert echoed["body"] == '{"a": 1}'

    @pytest.mark.asyncio
    async def test_timeout(self, client, upstream_server):
        with pytest.raises(UpstreamTimeout):
            await client.get(str(upstream_server.make_url("/slow")), timeout=0.1)

    @pytest.mark.asyncio
    async def test_connection_refused(self, client):
        url = f"http://127.0.0.1:{unused_port()}/api/lapp/device/list"

        with pytest.raises(ProxyError):
            await client.get(url, timeout=2.0)

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self, client, upstream_server):
        await client.get(str(upstream_server.make_url("/json")))
        await client.close()
        await client.close()
