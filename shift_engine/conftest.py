import pytest

from shift_engine.routing.path_table import PathTable
from shift_engine.server import create_app
from shift_engine.server_url import parse_server_url
from shift_engine.utils_tests.engines import RecordingSessionEngine, RecordingTunnelEngine
from shift_engine.utils_tests.views import write_views


@pytest.fixture
def views_dir(tmp_path):
    return write_views(tmp_path / "views")


@pytest.fixture
def session_engine():
    return RecordingSessionEngine()


@pytest.fixture
def tunnel_engine():
    return RecordingTunnelEngine()


@pytest.fixture
def make_app(tmp_path, views_dir, session_engine, tunnel_engine):
    """Build the full application against a temporary views tree."""

    def _make(server_url="http://localhost:8080/", **overrides):
        options = dict(
            server_url=parse_server_url(server_url),
            path_table=PathTable(),
            views_dir=str(views_dir),
            session_engine=session_engine,
            tunnel_engine=tunnel_engine,
            shutdown_file=str(tmp_path / ".shutdown"),
            cache_dir=str(tmp_path / "cache-js"),
            alt_prefixes={},
            randomize_prefixes=False,
            metrics_enabled=False,
        )
        options.update(overrides)
        return create_app(**options)

    return _make
