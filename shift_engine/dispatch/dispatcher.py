"""
Raw ASGI front door.

The dispatcher runs before the FastAPI application sees a request: paths
owned by the embedded proxy engines are classified on the raw request target
and handed over directly, so the framework's routing and URL decoding never
touch them. Everything else falls through to the framework stage.
"""

import logging
import re
from urllib.parse import unquote

from opentelemetry import trace
from starlette.types import ASGIApp, Receive, Scope, Send

from shift_engine.engines import REQUEST_EVENT, UPGRADE_EVENT, SessionEngine, TunnelEngine
from shift_engine.routing.classifier import ProxyClassifier
from shift_engine.server_url import ServerUrl
from shift_engine.utils import mask_session_ids

logger = logging.getLogger("uvicorn.error")
tracer = trace.get_tracer(__name__)

# RFC 6455 "policy violation"
WS_POLICY_VIOLATION = 1008

_DUPLICATE_SLASHES_RE = re.compile(r"/{2,}")


def request_target(scope: Scope) -> str:
    """The request target as sent by the client: undecoded path plus query string."""
    raw_path = scope.get("raw_path")
    path = raw_path.decode("latin-1") if raw_path else scope.get("path", "/")
    query = scope.get("query_string", b"")
    return f"{path}?{query.decode('latin-1')}" if query else path


class Dispatcher:
    def __init__(
        self,
        app: ASGIApp,
        classifier: ProxyClassifier,
        session_engine: SessionEngine,
        tunnel_engine: TunnelEngine,
        server_url: ServerUrl,
        tunnel_suffix: str,
    ):
        self.app = app
        self.classifier = classifier
        self.session_engine = session_engine
        self.tunnel_engine = tunnel_engine
        self.server_url = server_url
        self.tunnel_suffix = tunnel_suffix

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "http":
            await self.dispatch_request(scope, receive, send)
        elif scope["type"] == "websocket":
            await self.dispatch_upgrade(scope, receive, send)
        else:
            await self.app(scope, receive, send)

    async def dispatch_request(self, scope: Scope, receive: Receive, send: Send) -> None:
        target = request_target(scope)
        claimed = self.classifier.claimed_path(target)
        if claimed is not None:
            self.strip_base_path(scope, claimed)
            with tracer.start_as_current_span("dispatch.session_engine") as span:
                span.set_attribute("dispatch.event", REQUEST_EVENT)
                logger.debug(f"[Dispatch] {mask_session_ids(target)} -> session engine")
                await self.session_engine.handle(REQUEST_EVENT, scope, receive, send)
            return

        scope["path"] = self.framework_path(scope.get("path", "/"))
        await self.app(scope, receive, send)

    async def dispatch_upgrade(self, scope: Scope, receive: Receive, send: Send) -> None:
        target = request_target(scope)
        claimed = self.classifier.claimed_path(target)
        if claimed is not None:
            self.strip_base_path(scope, claimed)
            with tracer.start_as_current_span("dispatch.session_engine") as span:
                span.set_attribute("dispatch.event", UPGRADE_EVENT)
                logger.debug(f"[Dispatch] Upgrade {mask_session_ids(target)} -> session engine")
                await self.session_engine.handle(UPGRADE_EVENT, scope, receive, send)
            return

        if target.endswith(self.tunnel_suffix):
            with tracer.start_as_current_span("dispatch.tunnel_engine"):
                logger.debug(f"[Dispatch] Upgrade {target} -> tunnel engine")
                await self.tunnel_engine.route_request(scope, receive, send)
            return

        # No handler owns this upgrade. Refuse the handshake so the transport is released.
        logger.debug(f"[Dispatch] Dropping upgrade {target}")
        await send({"type": "websocket.close", "code": WS_POLICY_VIOLATION})

    def framework_path(self, path: str) -> str:
        """
        Collapse duplicate slashes and drop one trailing slash, so ``/browsing/``
        routes like ``/browsing``. The bare base path keeps its slash.
        """
        path = _DUPLICATE_SLASHES_RE.sub("/", path)
        if path.endswith("/") and path != self.server_url.base_path and path != "/":
            path = path[:-1]
        return path

    def strip_base_path(self, scope: Scope, claimed_path: str) -> None:
        """
        Rewrite the scope in place from the normalized path the classifier
        claimed, so the engine sees root-relative paths whatever dot segments
        the client sent.
        """
        stripped = self.server_url.strip_base(claimed_path)
        scope["raw_path"] = stripped.encode("latin-1")
        scope["path"] = unquote(stripped)
