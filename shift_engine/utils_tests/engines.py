from starlette.responses import PlainTextResponse
from starlette.websockets import WebSocket

from shift_engine.engines import UPGRADE_EVENT, SessionEngine, TunnelEngine


class RecordingSessionEngine(SessionEngine):
    """Session engine double that records what it was handed and answers with the path."""

    def __init__(self):
        self.calls: list[tuple[str, str, bytes]] = []
        self.closed = False

    async def handle(self, event, scope, receive, send):
        self.calls.append((event, scope["path"], scope.get("raw_path", b"")))
        if event == UPGRADE_EVENT:
            websocket = WebSocket(scope, receive, send)
            await websocket.accept()
            await websocket.send_text(f"session:{scope['path']}")
            await websocket.close()
            return
        response = PlainTextResponse(f"session:{scope['path']}")
        await response(scope, receive, send)

    async def aclose(self):
        self.closed = True


class RecordingTunnelEngine(TunnelEngine):
    def __init__(self):
        self.calls: list[str] = []
        self.closed = False

    async def route_request(self, scope, receive, send):
        self.calls.append(scope["path"])
        websocket = WebSocket(scope, receive, send)
        await websocket.accept()
        await websocket.send_text("tunnel")
        await websocket.close()

    async def aclose(self):
        self.closed = True


class FailingSessionEngine(SessionEngine):
    async def handle(self, event, scope, receive, send):
        raise RuntimeError("engine exploded")
