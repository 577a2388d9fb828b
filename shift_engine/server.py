import logging
import os
from contextlib import asynccontextmanager
from typing import Mapping, Optional

from fastapi import FastAPI, Request
from fastapi.exception_handlers import http_exception_handler
from fastapi.responses import Response
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.staticfiles import StaticFiles

from shift_engine.dispatch.dispatcher import Dispatcher
from shift_engine.engines import (
    SessionEngine,
    TunnelEngine,
    build_session_engine,
    build_tunnel_engine,
)
from shift_engine.lifecycle.janitor import CacheJanitor
from shift_engine.lifecycle.shutdown import ShutdownSentinel
from shift_engine.routes import METRICS_ROUTE, RESERVED_ROUTES, STATUS_ROUTE, build_router
from shift_engine.routing.classifier import ProxyClassifier
from shift_engine.routing.path_table import PathTable, load_path_table
from shift_engine.routing.prefix import PrefixObfuscator
from shift_engine.security_headers import SecurityHeadersMiddleware
from shift_engine.server_url import ServerUrl, parse_server_url
from shift_engine.static.resolver import StaticResolver
from shift_engine.static.templates import load_not_found_page
from shift_engine.telemetry import configure_tracing, expose_metrics
from shift_engine.vars import (
    ALT_PREFIXES,
    CACHE_DIR,
    CACHE_PURGE_INTERVAL,
    METRICS_ENABLED,
    NOT_FOUND_PAGE,
    PROXY_TIMEOUT,
    RANDOMIZE_PREFIXES,
    ROUTES_FILE,
    SERVER_URL,
    SESSION_ENGINE,
    SESSION_ENGINE_URL,
    SHUTDOWN_FILE,
    TUNNEL_ENGINE,
    TUNNEL_ENGINE_URL,
    VIEWS_DIR,
)

logger = logging.getLogger("uvicorn.error")

TUNNEL_GROUP = "wisp"

# Asset group -> directory under the views root. Each group is mounted at its alternate prefix.
STATIC_GROUPS = {
    "assets": "dist/assets",
    "uv": "dist/uv",
    "scram": "dist/scram",
    "epoxy": "dist/epoxy",
    "libcurl": "dist/libcurl",
    "baremux": "dist/baremux",
    "archive": "archive",
    "serving": "archive/gfiles/rarch",
    # Never commit roms to the repository.
    "cores": "archive/gfiles/rarch/cores",
    "info": "archive/gfiles/rarch/info",
    "roms": "archive/gfiles/rarch/roms",
    "uauth": "archive/gfiles/rarch/cores",
}


def _mount_static(app: FastAPI, prefix: str, directory: str, name: str) -> None:
    if not os.path.isdir(directory):
        logger.warning(f"[Static] Skipping mount {prefix}: {directory} does not exist")
        return
    app.mount(prefix.rstrip("/"), StaticFiles(directory=directory), name=name)


def create_app(
    server_url: Optional[ServerUrl] = None,
    path_table: Optional[PathTable] = None,
    views_dir: str = VIEWS_DIR,
    session_engine: Optional[SessionEngine] = None,
    tunnel_engine: Optional[TunnelEngine] = None,
    shutdown_file: str = SHUTDOWN_FILE,
    cache_dir: str = CACHE_DIR,
    cache_purge_interval: float = CACHE_PURGE_INTERVAL,
    alt_prefixes: Optional[Mapping[str, str]] = None,
    randomize_prefixes: bool = RANDOMIZE_PREFIXES,
    metrics_enabled: bool = METRICS_ENABLED,
) -> Dispatcher:
    """
    Assemble the service: the FastAPI application for pages and static
    bundles, wrapped by the dispatcher that peels off engine traffic first.
    """
    server_url = server_url or parse_server_url(SERVER_URL)
    table = path_table or load_path_table(ROUTES_FILE)
    base = server_url.base_path
    dist_dir = os.path.join(views_dir, "dist")

    clashing = table.reserved_keys() & {STATUS_ROUTE, METRICS_ROUTE}
    if clashing:
        raise ValueError(f"Route keys clash with built-in routes: {sorted(clashing)}")

    classifier = ProxyClassifier(server_url)
    obfuscator = PrefixObfuscator(
        base,
        overrides=ALT_PREFIXES if alt_prefixes is None else alt_prefixes,
        randomize=randomize_prefixes,
        reserved=table.reserved_keys() | RESERVED_ROUTES | classifier.reserved_segments(),
    )
    session_engine = session_engine or build_session_engine(
        SESSION_ENGINE, SESSION_ENGINE_URL, base, PROXY_TIMEOUT
    )
    tunnel_engine = tunnel_engine or build_tunnel_engine(TUNNEL_ENGINE, TUNNEL_ENGINE_URL)

    not_found_body = load_not_found_page(dist_dir, NOT_FOUND_PAGE)
    resolver = StaticResolver(table, dist_dir, not_found_body)
    sentinel = ShutdownSentinel(shutdown_file)
    janitor = CacheJanitor(cache_dir, logger, interval=cache_purge_interval)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        janitor.start()
        try:
            yield
        finally:
            await janitor.stop()
            await session_engine.aclose()
            await tunnel_engine.aclose()

    app = FastAPI(lifespan=lifespan, docs_url=None, redoc_url=None, openapi_url=None)
    app.add_middleware(SecurityHeadersMiddleware)
    configure_tracing(app)
    # Registered ahead of the page routes so the catch-all cannot shadow it.
    if metrics_enabled:
        expose_metrics(app, f"{base}{METRICS_ROUTE}")
    app.include_router(build_router(server_url, table, resolver, sentinel))

    if server_url.is_root:
        # Every invalid path gets the error page. Behind a base path unknown
        # URLs keep the framework's plain 404 so the portal stays hidden.
        @app.exception_handler(StarletteHTTPException)
        async def not_found_page(request: Request, exc: StarletteHTTPException):
            if exc.status_code == 404:
                return Response(content=not_found_body, status_code=404, media_type="text/html")
            return await http_exception_handler(request, exc)

    tunnel_suffix = obfuscator.alt_prefix(TUNNEL_GROUP)
    for group, directory in STATIC_GROUPS.items():
        _mount_static(app, obfuscator.alt_prefix(group), os.path.join(views_dir, directory), group)
    _mount_static(app, base, os.path.join(dist_dir, "pages"), "pages")

    app.state.server_url = server_url
    app.state.path_table = table
    app.state.obfuscator = obfuscator
    app.state.resolver = resolver
    app.state.sentinel = sentinel
    app.state.janitor = janitor

    logger.info(f"[Server] Serving {server_url} (tunnel suffix {tunnel_suffix})")
    return Dispatcher(
        app,
        classifier=classifier,
        session_engine=session_engine,
        tunnel_engine=tunnel_engine,
        server_url=server_url,
        tunnel_suffix=tunnel_suffix,
    )
