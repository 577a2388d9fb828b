import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse, RedirectResponse, Response

from shift_engine.lifecycle.shutdown import ShutdownSentinel
from shift_engine.routing.path_table import INDEX_KEY, PathTable
from shift_engine.server_url import ServerUrl
from shift_engine.static.resolver import Redirect, Resolution, StaticResolver
from shift_engine.vars import SERVICE_NAME, SERVICE_VERSION

logger = logging.getLogger("uvicorn.error")

STATUS_ROUTE = "status"
SHUTDOWN_ROUTE = "test-shutdown"
METRICS_ROUTE = "metrics"

RESERVED_ROUTES = {STATUS_ROUTE, SHUTDOWN_ROUTE, METRICS_ROUTE}


def to_response(resolution: Resolution) -> Response:
    if isinstance(resolution, Redirect):
        return RedirectResponse(resolution.location, status_code=302)
    return Response(
        content=resolution.body,
        status_code=resolution.status_code,
        media_type=resolution.media_type,
    )


def build_router(
    server_url: ServerUrl,
    table: PathTable,
    resolver: StaticResolver,
    sentinel: ShutdownSentinel,
) -> APIRouter:
    """
    Generate the framework route table from the path table in one pass.

    Fixed routes come first so a page key can never shadow them; the
    single-segment catch-all comes last and asks the resolver.
    """
    base = server_url.base_path
    router = APIRouter()

    @router.get(f"{base}{STATUS_ROUTE}")
    async def status():
        return JSONResponse(
            {"status": "ok", "service": SERVICE_NAME, "version": SERVICE_VERSION}
        )

    @router.get(f"{base}{SHUTDOWN_ROUTE}")
    async def test_shutdown():
        sentinel.check()
        return to_response(await resolver.resolve(SHUTDOWN_ROUTE))

    for entry in table.entries():
        router.add_api_route(
            f"{base}{entry.public_key}",
            _page_endpoint(resolver, entry.public_key),
            methods=["GET"],
            name=f"page:{entry.public_key}",
        )

    for group in table.redirect_groups():
        router.add_api_route(
            f"{base}{group}/{{redirect}}",
            _redirect_endpoint(resolver, group),
            methods=["GET"],
            name=f"redirect:{group}",
        )

    @router.get(base)
    async def index():
        return to_response(await resolver.resolve(""))

    @router.get(f"{base}{{path}}")
    async def resolve_path(path: str):
        return to_response(await resolver.resolve(path))

    logger.info(
        f"[Routes] Registered {len(table.pages)} pages "
        f"({INDEX_KEY} -> {table.index_target}) under {base}"
    )
    return router


def _page_endpoint(resolver: StaticResolver, key: str):
    async def page():
        return to_response(await resolver.resolve(key))

    return page


def _redirect_endpoint(resolver: StaticResolver, group: str):
    async def grouped_redirect(redirect: str):
        return to_response(resolver.resolve_redirect(group, redirect))

    return grouped_redirect
