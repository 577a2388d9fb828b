from dataclasses import dataclass
from urllib.parse import urlsplit

DEFAULT_PORTS = {"http": 80, "https": 443}


@dataclass(frozen=True)
class ServerUrl:
    """Public location of the service. Read once at startup, never mutated."""

    scheme: str
    host: str
    port: int
    base_path: str = "/"

    @property
    def origin(self) -> str:
        host = f"[{self.host}]" if ":" in self.host else self.host
        return f"{self.scheme}://{host}:{self.port}"

    @property
    def is_root(self) -> bool:
        return self.base_path == "/"

    def strip_base(self, target: str) -> str:
        """Remove the base path from a request target, keeping one leading slash."""
        return target[len(self.base_path) - 1 :]

    def __str__(self) -> str:
        return f"{self.origin}{self.base_path}"


def normalize_base_path(path: str) -> str:
    path = "/" + path.strip("/")
    return path if path == "/" else path + "/"


def parse_server_url(raw: str) -> ServerUrl:
    """Parse ``scheme://host:port/base/`` into a ServerUrl.

    Raises ValueError when the URL has no usable scheme or host, so a bad
    configuration fails before the listener binds.
    """
    try:
        parts = urlsplit(raw.strip())
        port = parts.port
    except ValueError as e:
        raise ValueError(f"Invalid server URL {raw!r}: {e}") from e

    scheme = parts.scheme.lower()
    if scheme not in DEFAULT_PORTS:
        raise ValueError(f"Invalid server URL {raw!r}: scheme must be http or https")
    if not parts.hostname:
        raise ValueError(f"Invalid server URL {raw!r}: missing host")

    return ServerUrl(
        scheme=scheme,
        host=parts.hostname,
        port=port or DEFAULT_PORTS[scheme],
        base_path=normalize_base_path(parts.path),
    )
