from shift_engine.engines.base import (
    REQUEST_EVENT,
    UPGRADE_EVENT,
    SessionEngine,
    TunnelEngine,
    UnconfiguredEngine,
    load_engine,
)
from shift_engine.engines.upstream import UpstreamSessionEngine, UpstreamTunnelEngine


def build_session_engine(
    import_string: str = "",
    target_url: str = "",
    public_prefix: str = "",
    timeout: float = 300,
) -> SessionEngine:
    """Pick the session engine: an importable engine wins over an upstream URL."""
    if import_string:
        return load_engine(import_string, SessionEngine)
    if target_url:
        return UpstreamSessionEngine(target_url, public_prefix, timeout)
    return UnconfiguredEngine("Session proxy")


def build_tunnel_engine(import_string: str = "", target_url: str = "") -> TunnelEngine:
    if import_string:
        return load_engine(import_string, TunnelEngine)
    if target_url:
        return UpstreamTunnelEngine(target_url)
    return UnconfiguredEngine("Tunnel proxy")


__all__ = [
    "REQUEST_EVENT",
    "UPGRADE_EVENT",
    "SessionEngine",
    "TunnelEngine",
    "UnconfiguredEngine",
    "UpstreamSessionEngine",
    "UpstreamTunnelEngine",
    "build_session_engine",
    "build_tunnel_engine",
    "load_engine",
]
