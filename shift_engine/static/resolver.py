"""
Resolution of the path segment left after the base path into a static page.

The resolver is independent of the HTTP layer: it returns an ``Asset``, a
``Redirect`` or a ``NotFound`` value, and ``routes`` turns those into
responses. Every failure, including unreadable files, collapses into the same
pre-rendered 404 body.
"""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Union

from shift_engine.routing.path_table import PathTable

logger = logging.getLogger("uvicorn.error")

DEFAULT_MEDIA_TYPE = "text/html"

SUPPORTED_TYPES = {
    "html": "text/html",
    "txt": "text/plain",
    "xml": "application/xml",
    "ico": "image/vnd.microsoft.icon",
}


@dataclass(frozen=True)
class Asset:
    body: bytes
    media_type: str
    status_code: int = 200


@dataclass(frozen=True)
class Redirect:
    location: str


@dataclass(frozen=True)
class NotFound:
    body: bytes
    media_type: str = DEFAULT_MEDIA_TYPE
    status_code: int = 404


Resolution = Union[Asset, Redirect, NotFound]


def media_type_for(file_name: str) -> str:
    extension = file_name[file_name.rfind(".") + 1 :]
    return SUPPORTED_TYPES.get(extension, DEFAULT_MEDIA_TYPE)


class StaticResolver:
    def __init__(self, table: PathTable, dist_dir: Path | str, not_found_body: bytes):
        self.table = table
        self.dist_dir = Path(dist_dir).resolve()
        self.not_found = NotFound(body=not_found_body)

    async def resolve(self, residual_path: str) -> Resolution:
        destination = self.table.redirect_for(residual_path)
        if destination is not None:
            return Redirect(destination)

        if not residual_path:
            target = self.table.index_target
        else:
            target = self.table.target_for(residual_path)
            if target is None:
                return self.not_found

        return await self.read_asset(target)

    def resolve_redirect(self, group: str, key: str) -> Resolution:
        destination = self.table.grouped_redirect_for(group, key)
        if destination is None:
            return self.not_found
        return Redirect(destination)

    async def read_asset(self, target: str) -> Resolution:
        path = (self.dist_dir / target).resolve()
        if not path.is_relative_to(self.dist_dir):
            logger.warning(f"[Static] Target {target} escapes {self.dist_dir}")
            return self.not_found
        try:
            body = await asyncio.to_thread(path.read_bytes)
        except OSError as e:
            logger.debug(f"[Static] Cannot read {path}: {e}")
            return self.not_found
        return Asset(body=body, media_type=media_type_for(target))
