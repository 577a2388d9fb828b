import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from shift_engine.engines import (
    SessionEngine,
    TunnelEngine,
    UnconfiguredEngine,
    UpstreamSessionEngine,
    UpstreamTunnelEngine,
    build_session_engine,
    build_tunnel_engine,
    load_engine,
)
from shift_engine.engines.base import WS_TRY_AGAIN_LATER
from shift_engine.utils_tests.engines import RecordingSessionEngine

recording_engine = RecordingSessionEngine()


def make_recording_engine():
    return RecordingSessionEngine()


def not_an_engine():
    return object()


def _session_app(engine):
    async def app(scope, receive, send):
        event = "upgrade" if scope["type"] == "websocket" else "request"
        await engine.handle(event, scope, receive, send)

    return app


def test_unconfigured_engine_answers_503():
    response = TestClient(_session_app(UnconfiguredEngine("Session proxy"))).get("/newsession")
    assert response.status_code == 503
    assert response.text == "Session proxy is unavailable"


def test_unconfigured_engine_closes_upgrades():
    client = TestClient(_session_app(UnconfiguredEngine("Session proxy")))
    with pytest.raises(WebSocketDisconnect) as exc_info:
        with client.websocket_connect("/socket"):
            pass
    assert exc_info.value.code == WS_TRY_AGAIN_LATER


def test_load_engine_accepts_instances():
    engine = load_engine("shift_engine.engines.test_base:recording_engine", SessionEngine)
    assert engine is recording_engine


def test_load_engine_calls_factories():
    engine = load_engine("shift_engine.engines.test_base:make_recording_engine", SessionEngine)
    assert isinstance(engine, RecordingSessionEngine)
    assert engine is not recording_engine


@pytest.mark.parametrize(
    "import_string",
    [
        "no_colon_here",
        "shift_engine.engines.test_base:",
        "shift_engine.does_not_exist:engine",
        "shift_engine.engines.test_base:missing",
        "shift_engine.engines.test_base:not_an_engine",
        "shift_engine.engines.test_base:WS_TRY_AGAIN_LATER",
    ],
)
def test_load_engine_rejects_bad_targets(import_string):
    with pytest.raises(ValueError):
        load_engine(import_string, SessionEngine)


def test_load_engine_checks_the_engine_kind():
    with pytest.raises(ValueError):
        load_engine("shift_engine.engines.test_base:recording_engine", TunnelEngine)


def test_build_session_engine_precedence():
    assert isinstance(build_session_engine(), UnconfiguredEngine)
    assert isinstance(
        build_session_engine(target_url="http://127.0.0.1:8081"), UpstreamSessionEngine
    )
    engine = build_session_engine(
        "shift_engine.engines.test_base:recording_engine", "http://127.0.0.1:8081"
    )
    assert engine is recording_engine


def test_build_tunnel_engine():
    assert isinstance(build_tunnel_engine(), UnconfiguredEngine)
    engine = build_tunnel_engine(target_url="http://127.0.0.1:8082/")
    assert isinstance(engine, UpstreamTunnelEngine)
    assert engine.target_url == "ws://127.0.0.1:8082/"
