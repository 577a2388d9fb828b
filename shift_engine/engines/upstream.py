"""
Engines that forward to proxy servers running as separate processes.

``UpstreamSessionEngine`` is a reverse proxy in front of a session rewriting
proxy (e.g. a standalone Rammerhead server). The dispatcher has already
removed the public base path, so requests are forwarded as-is and only
redirects and cookie paths coming back need the base path put back.

``UpstreamTunnelEngine`` relays tunnel WebSockets to a standalone tunneling
server (e.g. a Wisp server).
"""

import logging
import re
from typing import Dict, Optional
from urllib.parse import urlsplit

import aiohttp
import httpx
from opentelemetry import trace
from starlette.background import BackgroundTask
from starlette.requests import Request
from starlette.responses import PlainTextResponse, StreamingResponse
from starlette.types import Receive, Scope, Send
from starlette.websockets import WebSocket

from shift_engine.engines.base import UPGRADE_EVENT, SessionEngine, TunnelEngine
from shift_engine.engines.websocket_pipe import pipe_websocket, websocket_headers

logger = logging.getLogger("uvicorn.error")
tracer = trace.get_tracer(__name__)

# Hop-by-hop headers that should NOT be forwarded (RFC 2616)
HOP_BY_HOP_HEADERS = {
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "te",
    "trailers",
    "transfer-encoding",
    "upgrade",
}

_COOKIE_PATH_RE = re.compile(r"(;\s*path=)([^;]*)", re.IGNORECASE)


def _ws_url(http_url: str) -> str:
    if http_url.startswith("https://"):
        return "wss://" + http_url[len("https://") :]
    if http_url.startswith("http://"):
        return "ws://" + http_url[len("http://") :]
    return http_url


def _request_target(scope: Scope) -> str:
    path = scope.get("raw_path")
    path = path.decode("latin-1") if path else scope.get("path", "/")
    query = scope.get("query_string", b"").decode("latin-1")
    return f"{path}?{query}" if query else path


class UpstreamSessionEngine(SessionEngine):
    def __init__(self, target_url: str, public_prefix: str = "", timeout: float = 300):
        self.target_url = target_url.rstrip("/")
        # Base path without its trailing slash; "" when mounted at the root.
        self.public_prefix = public_prefix.rstrip("/")
        self.timeout = timeout
        self._target_netloc = urlsplit(self.target_url).netloc
        self._client: Optional[httpx.AsyncClient] = None
        self._ws_session: Optional[aiohttp.ClientSession] = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=False,  # Redirects are rewritten, not followed
            )
        return self._client

    @property
    def ws_session(self) -> aiohttp.ClientSession:
        if self._ws_session is None:
            self._ws_session = aiohttp.ClientSession()
        return self._ws_session

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
        if self._ws_session is not None:
            await self._ws_session.close()
            self._ws_session = None

    async def handle(self, event: str, scope: Scope, receive: Receive, send: Send) -> None:
        if event == UPGRADE_EVENT:
            websocket = WebSocket(scope, receive, send)
            await pipe_websocket(
                websocket,
                self.ws_session,
                _ws_url(self.target_url) + _request_target(scope),
                websocket_headers(websocket),
                scope.get("subprotocols", ()),
            )
            return
        await self.forward(Request(scope, receive), send)

    def prepare_headers(self, request: Request) -> Dict[str, str]:
        """
        Prepare headers for forwarding to the engine.
        Removes hop-by-hop headers and adds proxy headers.
        """
        headers = {
            name: value
            for name, value in request.headers.items()
            if name.lower() not in HOP_BY_HOP_HEADERS and name.lower() != "host"
        }
        client_ip = request.client.host if request.client else "unknown"
        existing_xff = headers.pop("x-forwarded-for", "")
        headers["x-forwarded-for"] = f"{existing_xff}, {client_ip}".strip(", ")
        headers["x-forwarded-host"] = request.headers.get("host", "")
        headers["x-forwarded-proto"] = request.url.scheme
        headers["x-forwarded-prefix"] = self.public_prefix or "/"
        headers["x-real-ip"] = client_ip
        return headers

    def rewrite_location_header(self, location: str) -> str:
        """Map engine-relative and engine-absolute redirects back under the public base path."""
        if not location:
            return location
        parsed = urlsplit(location)
        if not parsed.scheme and not parsed.netloc:
            if location.startswith("/"):
                return f"{self.public_prefix}{location}"
            return location
        if parsed.netloc == self._target_netloc:
            query = f"?{parsed.query}" if parsed.query else ""
            fragment = f"#{parsed.fragment}" if parsed.fragment else ""
            return f"{self.public_prefix}{parsed.path or '/'}{query}{fragment}"
        return location

    def rewrite_cookie_path(self, set_cookie: str) -> str:
        if not self.public_prefix:
            return set_cookie
        return _COOKIE_PATH_RE.sub(
            lambda m: f"{m.group(1)}{self.public_prefix}{m.group(2)}"
            if m.group(2).startswith("/")
            else m.group(0),
            set_cookie,
        )

    async def forward(self, request: Request, send: Send) -> None:
        target_url = self.target_url + _request_target(request.scope)
        with tracer.start_as_current_span("session_engine.forward") as span:
            span.set_attribute("proxy.method", request.method)
            logger.debug(f"[Engine] Forwarding {request.method} to session engine")

            upstream_request = self.client.build_request(
                method=request.method,
                url=target_url,
                headers=self.prepare_headers(request),
                content=request.stream(),
            )
            try:
                upstream = await self.client.send(upstream_request, stream=True)
            except httpx.TimeoutException as e:
                logger.error(f"[Engine] Session engine timeout: {e}")
                span.set_attribute("proxy.error", "timeout")
                response = PlainTextResponse("Gateway timeout", status_code=504)
                await response(request.scope, request.receive, send)
                return
            except httpx.HTTPError as e:
                logger.error(f"[Engine] Session engine unreachable: {e}")
                span.set_attribute("proxy.error", "connection_failed")
                response = PlainTextResponse("Bad gateway", status_code=502)
                await response(request.scope, request.receive, send)
                return

            span.set_attribute("proxy.status_code", upstream.status_code)
            response = StreamingResponse(
                upstream.aiter_raw(),
                status_code=upstream.status_code,
                background=BackgroundTask(upstream.aclose),
            )
            # Raw headers keep repeated Set-Cookie values intact.
            response.raw_headers = [
                (name.encode("latin-1"), value.encode("latin-1"))
                for name, value in self._response_headers(upstream)
            ]
            await response(request.scope, request.receive, send)

    def _response_headers(self, upstream: httpx.Response):
        for name, value in upstream.headers.multi_items():
            name_lower = name.lower()
            if name_lower in HOP_BY_HOP_HEADERS:
                continue
            if name_lower == "location":
                value = self.rewrite_location_header(value)
            elif name_lower == "set-cookie":
                value = self.rewrite_cookie_path(value)
            yield name, value


class UpstreamTunnelEngine(TunnelEngine):
    def __init__(self, target_url: str):
        self.target_url = _ws_url(target_url)
        self._ws_session: Optional[aiohttp.ClientSession] = None

    async def aclose(self) -> None:
        if self._ws_session is not None:
            await self._ws_session.close()
            self._ws_session = None

    async def route_request(self, scope: Scope, receive: Receive, send: Send) -> None:
        if self._ws_session is None:
            self._ws_session = aiohttp.ClientSession()
        websocket = WebSocket(scope, receive, send)
        with tracer.start_as_current_span("tunnel_engine.forward"):
            await pipe_websocket(
                websocket,
                self._ws_session,
                self.target_url,
                websocket_headers(websocket),
                scope.get("subprotocols", ()),
            )
