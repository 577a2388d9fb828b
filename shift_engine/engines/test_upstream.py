"""
Tests for the upstream session and tunnel engines.

The upstream session proxy is replaced by an httpx.MockTransport so the
whole path (dispatcher, base path stripping, header preparation, response
rewriting) runs without a network.
"""

import httpx
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from shift_engine.dispatch.dispatcher import Dispatcher
from shift_engine.engines.upstream import (
    HOP_BY_HOP_HEADERS,
    UpstreamSessionEngine,
    UpstreamTunnelEngine,
    _ws_url,
)
from shift_engine.routing.classifier import ProxyClassifier
from shift_engine.server_url import parse_server_url
from shift_engine.utils_tests.engines import RecordingTunnelEngine

SESSION_ID = "abcdefabcdefabcdefabcdefabcdef12"


def _engine_behind_dispatcher(handler, base="/portal/"):
    url = parse_server_url(f"http://localhost:8080{base}")
    engine = UpstreamSessionEngine("http://rh.internal:8081/", public_prefix=url.base_path)
    engine._client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    dispatcher = Dispatcher(
        FastAPI(),
        classifier=ProxyClassifier(url),
        session_engine=engine,
        tunnel_engine=RecordingTunnelEngine(),
        server_url=url,
        tunnel_suffix=f"{url.base_path}wisp/",
    )
    return engine, TestClient(dispatcher)


class TestRewrites:
    @pytest.fixture
    def engine(self):
        return UpstreamSessionEngine("http://rh.internal:8081", public_prefix="/portal/")

    @pytest.mark.parametrize(
        "location,expected",
        [
            ("/newsession", "/portal/newsession"),
            ("http://rh.internal:8081/abc/?x=1#top", "/portal/abc/?x=1#top"),
            ("http://rh.internal:8081", "/portal/"),
            ("https://example.com/page", "https://example.com/page"),
            ("relative/page", "relative/page"),
            ("", ""),
        ],
    )
    def test_location_header(self, engine, location, expected):
        assert engine.rewrite_location_header(location) == expected

    def test_cookie_path_gets_base_path(self, engine):
        cookie = "sid=1; Path=/abc; HttpOnly"
        assert engine.rewrite_cookie_path(cookie) == "sid=1; Path=/portal/abc; HttpOnly"

    def test_cookie_without_path_is_untouched(self, engine):
        assert engine.rewrite_cookie_path("sid=1; HttpOnly") == "sid=1; HttpOnly"

    def test_root_mount_leaves_cookies_alone(self):
        engine = UpstreamSessionEngine("http://rh.internal:8081", public_prefix="/")
        assert engine.rewrite_cookie_path("sid=1; path=/") == "sid=1; path=/"
        assert engine.rewrite_location_header("/newsession") == "/newsession"


def test_ws_url():
    assert _ws_url("http://a:1/x") == "ws://a:1/x"
    assert _ws_url("https://a/x") == "wss://a/x"
    assert _ws_url("ws://a/x") == "ws://a/x"


def test_forward_strips_base_and_rewrites_response():
    seen = []

    def handler(request: httpx.Request):
        seen.append(request)
        return httpx.Response(
            302,
            headers=[
                ("location", "http://rh.internal:8081/" + SESSION_ID + "/"),
                ("set-cookie", "a=1; Path=/"),
                ("set-cookie", "b=2; Path=/" + SESSION_ID),
                ("x-upstream", "yes"),
            ],
            content=b"moved",
        )

    _, client = _engine_behind_dispatcher(handler)
    response = client.get(
        "/portal/newsession?mode=fast",
        headers={"x-forwarded-for": "10.0.0.1", "connection": "keep-alive"},
        follow_redirects=False,
    )

    assert response.status_code == 302
    assert response.headers["location"] == f"/portal/{SESSION_ID}/"
    assert response.headers.get_list("set-cookie") == [
        "a=1; Path=/portal/",
        f"b=2; Path=/portal/{SESSION_ID}",
    ]
    assert response.headers["x-upstream"] == "yes"
    assert response.content == b"moved"

    upstream_request = seen[0]
    assert str(upstream_request.url) == "http://rh.internal:8081/newsession?mode=fast"
    assert upstream_request.headers["x-forwarded-for"] == "10.0.0.1, testclient"
    assert upstream_request.headers["x-forwarded-prefix"] == "/portal"
    assert upstream_request.headers["x-real-ip"] == "testclient"


def test_forward_drops_hop_by_hop_request_headers():
    seen = []

    def handler(request: httpx.Request):
        seen.append(request)
        return httpx.Response(200, text="ok")

    _, client = _engine_behind_dispatcher(handler)
    client.get("/portal/rammerhead.js", headers={"proxy-authorization": "secret"})

    forwarded = {name.lower() for name in seen[0].headers.keys()}
    assert "proxy-authorization" not in forwarded
    assert "proxy-authorization" in HOP_BY_HOP_HEADERS


def test_forward_streams_request_bodies():
    received = []

    async def handler(request: httpx.Request):
        received.append(await request.aread())
        return httpx.Response(200, text="stored")

    _, client = _engine_behind_dispatcher(handler)
    response = client.post(f"/portal/{SESSION_ID}/submit", content=b"payload")

    assert response.text == "stored"
    assert received == [b"payload"]


def test_unreachable_engine_is_bad_gateway():
    def handler(request: httpx.Request):
        raise httpx.ConnectError("connection refused", request=request)

    _, client = _engine_behind_dispatcher(handler)
    response = client.get("/portal/newsession")
    assert response.status_code == 502


def test_slow_engine_is_gateway_timeout():
    def handler(request: httpx.Request):
        raise httpx.ReadTimeout("too slow", request=request)

    _, client = _engine_behind_dispatcher(handler)
    response = client.get("/portal/newsession")
    assert response.status_code == 504


@pytest.mark.asyncio
async def test_aclose_releases_clients():
    engine = UpstreamSessionEngine("http://rh.internal:8081")
    client = engine.client
    assert engine.client is client
    await engine.aclose()
    assert client.is_closed
    assert engine._client is None


@pytest.mark.asyncio
async def test_tunnel_engine_aclose_without_session():
    engine = UpstreamTunnelEngine("http://wisp.internal:8082/")
    await engine.aclose()
    assert engine.target_url == "ws://wisp.internal:8082/"
