import importlib
import logging
from abc import ABC, abstractmethod
from typing import Type, TypeVar

from starlette.responses import PlainTextResponse
from starlette.types import Receive, Scope, Send
from starlette.websockets import WebSocket

logger = logging.getLogger("uvicorn.error")

REQUEST_EVENT = "request"
UPGRADE_EVENT = "upgrade"

# RFC 6455 "try again later"
WS_TRY_AGAIN_LATER = 1013


class SessionEngine(ABC):
    """Session-oriented rewriting proxy. Receives paths with the base path already removed."""

    @abstractmethod
    async def handle(self, event: str, scope: Scope, receive: Receive, send: Send) -> None:
        pass

    async def aclose(self) -> None:
        return None


class TunnelEngine(ABC):
    """WebSocket tunneling proxy."""

    @abstractmethod
    async def route_request(self, scope: Scope, receive: Receive, send: Send) -> None:
        pass

    async def aclose(self) -> None:
        return None


class UnconfiguredEngine(SessionEngine, TunnelEngine):
    """Stands in for an engine that was not configured; refuses traffic without failing."""

    def __init__(self, name: str):
        self.name = name

    async def handle(self, event: str, scope: Scope, receive: Receive, send: Send) -> None:
        if event == UPGRADE_EVENT:
            await self.route_request(scope, receive, send)
            return
        logger.warning(f"[Engine] {self.name} is not configured, refusing {scope.get('path')}")
        response = PlainTextResponse(f"{self.name} is unavailable", status_code=503)
        await response(scope, receive, send)

    async def route_request(self, scope: Scope, receive: Receive, send: Send) -> None:
        logger.warning(f"[Engine] {self.name} is not configured, closing {scope.get('path')}")
        websocket = WebSocket(scope, receive, send)
        await websocket.close(code=WS_TRY_AGAIN_LATER)


EngineT = TypeVar("EngineT", SessionEngine, TunnelEngine)


def load_engine(import_string: str, base: Type[EngineT]) -> EngineT:
    """
    Load an engine from ``"package.module:attribute"``.

    The attribute may be an engine instance or a zero-argument factory
    returning one.
    """
    module_name, _, attribute = import_string.partition(":")
    if not module_name or not attribute:
        raise ValueError(f"Engine must be given as 'module:attribute', got {import_string!r}")
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ValueError(f"Cannot import engine module {module_name!r}: {e}") from e

    target = getattr(module, attribute, None)
    if target is None:
        raise ValueError(f"Module {module_name!r} has no attribute {attribute!r}")
    if isinstance(target, base):
        engine = target
    else:
        engine = target() if callable(target) else None
    if not isinstance(engine, base):
        raise ValueError(f"{import_string!r} did not produce a {base.__name__}")
    logger.info(f"[Engine] Loaded {base.__name__} from {import_string}")
    return engine
