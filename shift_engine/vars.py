import os

SERVICE_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

SERVICE_NAME = os.getenv("SERVICE_NAME", "Shift Engine")
SERVICE_VERSION = os.getenv("SERVICE_VERSION", "1.0.0")

# Scheme, host, port and base path of the public server. All routes derive from it.
SERVER_URL = os.getenv("SHIFT_SERVER_URL", "http://localhost:8080/")

VIEWS_DIR = os.getenv("SHIFT_VIEWS_DIR", os.path.join(SERVICE_ROOT, "views"))
ROUTES_FILE = os.getenv("SHIFT_ROUTES_FILE", "")
NOT_FOUND_PAGE = os.getenv("SHIFT_NOT_FOUND_PAGE", "pages/misc/deobf/error.html")

# Created by the operator's stop script, removed by the server on /test-shutdown.
SHUTDOWN_FILE = os.getenv("SHIFT_SHUTDOWN_FILE", os.path.join(SERVICE_ROOT, ".shutdown"))

CACHE_DIR = os.getenv(
    "SHIFT_CACHE_DIR", os.path.join(SERVICE_ROOT, "lib", "rammerhead", "cache-js")
)
CACHE_PURGE_INTERVAL = int(os.getenv("SHIFT_CACHE_PURGE_INTERVAL", str(60 * 60 * 24 * 7)))

RANDOMIZE_PREFIXES = os.getenv("SHIFT_RANDOMIZE_PREFIXES", "false").lower() == "true"

SESSION_ENGINE = os.getenv("SHIFT_SESSION_ENGINE", "")
SESSION_ENGINE_URL = os.getenv("SHIFT_SESSION_ENGINE_URL", "").rstrip("/")
TUNNEL_ENGINE = os.getenv("SHIFT_TUNNEL_ENGINE", "")
TUNNEL_ENGINE_URL = os.getenv("SHIFT_TUNNEL_ENGINE_URL", "")
PROXY_TIMEOUT = int(os.getenv("SHIFT_PROXY_TIMEOUT", "300"))

METRICS_ENABLED = os.getenv("SHIFT_METRICS_ENABLED", "true").lower() == "true"

OTLP_ENDPOINT = os.getenv("OTLP_ENDPOINT")
OTLP_HEADERS = os.getenv("OTLP_HEADERS", "")


def _parse_alt_prefixes(raw: str) -> dict:
    mapping: dict = {}
    if not raw:
        return mapping
    for entry in raw.split(","):
        entry = entry.strip()
        if not entry:
            continue
        if "=" in entry:
            key, val = entry.split("=", 1)
            key = key.strip()
            val = val.strip()
            if key and val:
                mapping[key] = val
    return mapping


ALT_PREFIXES = _parse_alt_prefixes(os.getenv("SHIFT_ALT_PREFIXES", ""))
