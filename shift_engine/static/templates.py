import logging
import os
from pathlib import Path
from typing import Optional

logger = logging.getLogger("uvicorn.error")

FALLBACK_NOT_FOUND_PAGE = b"""<!DOCTYPE html>
<html lang="en">
  <head>
    <meta charset="utf-8" />
    <title>Error 404</title>
  </head>
  <body>
    <h1>404</h1>
    <p>The page you are looking for does not exist.</p>
  </body>
</html>
"""


def try_read_file(path: os.PathLike | str, default: Optional[bytes] = None) -> Optional[bytes]:
    """Read a file synchronously, returning ``default`` when it cannot be read."""
    try:
        return Path(path).read_bytes()
    except OSError:
        return default


def load_not_found_page(dist_dir: os.PathLike | str, page: str) -> bytes:
    """Render the 404 body once at startup so a miss never touches the disk."""
    body = try_read_file(Path(dist_dir) / page)
    if body is None:
        logger.warning(f"[Static] 404 page {page} not found in {dist_dir}, using built-in page")
        return FALLBACK_NOT_FOUND_PAGE
    return body
