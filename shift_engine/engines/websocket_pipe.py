"""Bidirectional piping between an ASGI WebSocket and an upstream aiohttp WebSocket."""

import asyncio
import logging
from typing import Mapping, Sequence

import aiohttp
from starlette.websockets import WebSocket, WebSocketDisconnect

logger = logging.getLogger("uvicorn.error")

# RFC 6455 "internal error"
WS_INTERNAL_ERROR = 1011

# Request headers worth passing to the upstream handshake; aiohttp builds the rest.
FORWARDED_WS_HEADERS = {"cookie", "origin", "user-agent", "accept-language", "authorization"}


def websocket_headers(websocket: WebSocket) -> dict[str, str]:
    return {
        name: value
        for name, value in websocket.headers.items()
        if name.lower() in FORWARDED_WS_HEADERS
    }


async def pipe_websocket(
    websocket: WebSocket,
    session: aiohttp.ClientSession,
    upstream_url: str,
    headers: Mapping[str, str],
    subprotocols: Sequence[str] = (),
) -> None:
    """Accept ``websocket`` once the upstream handshake succeeds and relay frames until either side closes."""
    try:
        upstream = await session.ws_connect(
            upstream_url, headers=dict(headers), protocols=tuple(subprotocols)
        )
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        logger.warning(f"[Engine] Upstream WebSocket {upstream_url} refused: {e}")
        await websocket.close(code=WS_INTERNAL_ERROR)
        return

    async with upstream:
        await websocket.accept(subprotocol=upstream.protocol)
        to_upstream = asyncio.create_task(_client_to_upstream(websocket, upstream))
        to_client = asyncio.create_task(_upstream_to_client(upstream, websocket))
        done, pending = await asyncio.wait(
            {to_upstream, to_client}, return_when=asyncio.FIRST_COMPLETED
        )
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        for task in done:
            task.result()


async def _client_to_upstream(websocket: WebSocket, upstream: aiohttp.ClientWebSocketResponse):
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                await upstream.close(code=message.get("code", 1000))
                return
            if message.get("bytes") is not None:
                await upstream.send_bytes(message["bytes"])
            elif message.get("text") is not None:
                await upstream.send_str(message["text"])
    except WebSocketDisconnect:
        await upstream.close()


async def _upstream_to_client(upstream: aiohttp.ClientWebSocketResponse, websocket: WebSocket):
    async for msg in upstream:
        if msg.type == aiohttp.WSMsgType.TEXT:
            await websocket.send_text(msg.data)
        elif msg.type == aiohttp.WSMsgType.BINARY:
            await websocket.send_bytes(msg.data)
        elif msg.type == aiohttp.WSMsgType.ERROR:
            logger.warning(f"[Engine] Upstream WebSocket error: {upstream.exception()}")
            break
    code = upstream.close_code
    # 1005 and 1006 are reserved for "no status" and must not be sent on the wire.
    await websocket.close(code=code if code and code not in (1005, 1006) else 1000)
