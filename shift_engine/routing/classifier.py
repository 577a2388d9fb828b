import re
from typing import Iterable, Optional
from urllib.parse import urljoin, urlsplit

from shift_engine.server_url import ServerUrl

# Scripts and control endpoints served by the session proxy engine, relative to the base path.
SESSION_ENGINE_SCOPES = (
    "rammerhead.js",
    "hammerhead.js",
    "transport-worker.js",
    "task.js",
    "iframe-task.js",
    "worker-hammerhead.js",
    "messaging",
    "sessionexists",
    "deletesession",
    "newsession",
    "editsession",
    "needpassword",
    "syncLocalStorage",
    "api/shuffleDict",
    "mainport",
)

SESSION_ID_LENGTH = 32

_BAD_PERCENT_RE = re.compile(r"%(?![0-9A-Fa-f]{2})")
_UNSAFE_CHARS_RE = re.compile(r"[\x00-\x20\x7f]")


def build_scope_set(base_path: str, scopes: Iterable[str] = SESSION_ENGINE_SCOPES) -> frozenset:
    return frozenset(f"{base_path}{scope}" for scope in scopes)


def build_session_pattern(base_path: str) -> re.Pattern:
    return re.compile(rf"^{re.escape(base_path)}[a-z0-9]{{{SESSION_ID_LENGTH}}}(?:/|$)")


def normalize_target(target: str, origin: str) -> Optional[str]:
    """
    Resolve a raw request target against ``origin`` and return its path.

    Dot segments are resolved the way a browser would. Returns None when the
    target cannot be a valid URL path.
    """
    if _BAD_PERCENT_RE.search(target) or _UNSAFE_CHARS_RE.search(target):
        return None
    try:
        return urlsplit(urljoin(origin + "/", target)).path or "/"
    except ValueError:
        return None


class ProxyClassifier:
    """Decides whether a request target belongs to the embedded session proxy engine."""

    def __init__(self, server_url: ServerUrl, scopes: Iterable[str] = SESSION_ENGINE_SCOPES):
        self.server_url = server_url
        self.scopes = build_scope_set(server_url.base_path, scopes)
        self.session_pattern = build_session_pattern(server_url.base_path)
        self._origin = server_url.origin

    def belongs_to_embedded_proxy(self, target: str) -> bool:
        return self.claimed_path(target) is not None

    def claimed_path(self, target: str) -> Optional[str]:
        """The normalized path of ``target`` when an engine owns it, else None."""
        path = normalize_target(target, self._origin)
        if path is None:
            return None
        if path in self.scopes or self.session_pattern.match(path) is not None:
            return path
        return None

    def reserved_segments(self) -> set[str]:
        base = self.server_url.base_path
        return {scope[len(base) :].split("/", 1)[0] for scope in self.scopes}
