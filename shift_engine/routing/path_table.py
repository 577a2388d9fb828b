"""
Public route keys of the portal and the external redirect table.

Paths like ``/browsing`` are served from ``views/dist/pages/surf.html``.
Which key maps to which file lives here, in one place; the FastAPI routes
are generated from this table at startup.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Dict, Optional, Union

from pydantic import BaseModel, ValidationError, field_validator

logger = logging.getLogger("uvicorn.error")

INDEX_KEY = "index"
DEFAULT_REDIRECT_KEY = "default"

DEFAULT_PAGES: Dict[str, str] = {
    INDEX_KEY: "pages/index.html",
    "test-404": "pages/misc/deobf/error.html",
    # Main pages
    "browsing": "pages/surf.html",
    "nothing": "pages/nothing.html",
    "faq": "pages/misc/deobf/faq.html",
    "credits": "pages/misc/deobf/credits.html",
    "terms": "pages/misc/deobf/tos.html",
    "settings": "pages/misc/deobf/settings.html",
    # Proxy launchers
    "ultraviolet": "pages/proxnav/ultraviolet.html",
    "rammerhead": "pages/proxnav/rammerhead.html",
    "scramjet": "pages/proxnav/scramjet.html",
    # Game and app listings
    "games": "pages/frame.html",
    "apps": "pages/proxnav/apps.html",
    "flash": "pages/archive/flash.html",
    "retroarch": "pages/archive/retroarch.html",
    # Crawler and browser metadata
    "robots.txt": "robots.txt",
    "sitemap.xml": "sitemap.xml",
    "browserconfig.xml": "browserconfig.xml",
    "favicon.ico": "assets/img/icon.ico",
}

DEFAULT_EXTERNAL_PAGES: Dict[str, Union[str, Dict[str, str]]] = {
    "discord": "https://discord.gg/unblock",
    "github": {
        "default": "https://github.com/QuiteAFancyEmerald/Holy-Unblocker",
        "shift": "https://github.com/QuiteAFancyEmerald/Holy-Unblocker",
        "ultraviolet": "https://github.com/titaniumnetwork-dev/Ultraviolet",
        "rammerhead": "https://github.com/binary-person/rammerhead",
        "scramjet": "https://github.com/MercuryWorkshop/scramjet",
        "wisp": "https://github.com/MercuryWorkshop/wisp-protocol",
    },
}


class PathTableFile(BaseModel):
    """On-disk shape of a route table override file."""

    pages: Dict[str, str]
    external_pages: Dict[str, Union[str, Dict[str, str]]] = {}

    @field_validator("pages")
    @classmethod
    def _has_index(cls, pages: Dict[str, str]) -> Dict[str, str]:
        if INDEX_KEY not in pages:
            raise ValueError(f"pages must define an '{INDEX_KEY}' entry")
        return pages

    @field_validator("external_pages")
    @classmethod
    def _groups_have_default(cls, external: Dict) -> Dict:
        for key, value in external.items():
            if isinstance(value, dict) and DEFAULT_REDIRECT_KEY not in value:
                raise ValueError(
                    f"redirect group '{key}' must define a '{DEFAULT_REDIRECT_KEY}' entry"
                )
        return external


@dataclass(frozen=True)
class RouteEntry:
    public_key: str
    target: str


@dataclass
class PathTable:
    pages: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_PAGES))
    external_pages: Dict[str, Union[str, Dict[str, str]]] = field(
        default_factory=lambda: dict(DEFAULT_EXTERNAL_PAGES)
    )

    def __post_init__(self):
        for key in self.pages:
            _check_key(key)
        for key in self.external_pages:
            _check_key(key)
        overlap = set(self.pages) & set(self.external_pages)
        if overlap:
            raise ValueError(
                f"Route keys defined both as page and redirect: {sorted(overlap)}"
            )

    @property
    def index_target(self) -> str:
        return self.pages[INDEX_KEY]

    def entries(self) -> list[RouteEntry]:
        return [RouteEntry(key, target) for key, target in self.pages.items()]

    def target_for(self, key: str) -> Optional[str]:
        return self.pages.get(key)

    def redirect_for(self, key: str) -> Optional[str]:
        """Destination of a top-level redirect; grouped entries use their default."""
        destination = self.external_pages.get(key)
        if isinstance(destination, dict):
            return destination.get(DEFAULT_REDIRECT_KEY)
        return destination

    def grouped_redirect_for(self, group: str, key: str) -> Optional[str]:
        destinations = self.external_pages.get(group)
        if not isinstance(destinations, dict):
            return None
        return destinations.get(key)

    def redirect_groups(self) -> list[str]:
        return [k for k, v in self.external_pages.items() if isinstance(v, dict)]

    def reserved_keys(self) -> set[str]:
        return set(self.pages) | set(self.external_pages)


def _check_key(key: str) -> None:
    if not key or key.startswith("/"):
        raise ValueError(f"Route key must be a path segment without leading slash: {key!r}")


def load_path_table(path: Optional[str] = None) -> PathTable:
    """Load the route table from a JSON file, or the built-in defaults when no path is given."""
    if not path:
        return PathTable()
    try:
        with open(path, "r", encoding="utf-8") as fh:
            data = PathTableFile.model_validate(json.load(fh))
    except (OSError, json.JSONDecodeError, ValidationError) as e:
        raise ValueError(f"Cannot load route table from {path}: {e}") from e
    logger.info(
        f"[Routes] Loaded {len(data.pages)} pages and {len(data.external_pages)} redirects from {path}"
    )
    return PathTable(pages=dict(data.pages), external_pages=dict(data.external_pages))
