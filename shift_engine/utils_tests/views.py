from pathlib import Path

INDEX_HTML = b"<!DOCTYPE html><h1>Shift Engine</h1>"
SURF_HTML = b"<!DOCTYPE html><h1>Browsing</h1>"
ERROR_HTML = b"<!DOCTYPE html><h1>Lost?</h1>"
SITEMAP_XML = b'<?xml version="1.0"?><urlset></urlset>'
ROBOTS_TXT = b"User-agent: *\nDisallow: /\n"
ICON = b"\x00\x00\x01\x00\x01\x00\x10\x10"
UV_BUNDLE = b"self.__uv = true;"
EXTRA_PAGE = b"<p>nested page</p>"

VIEW_FILES = {
    "dist/pages/index.html": INDEX_HTML,
    "dist/pages/surf.html": SURF_HTML,
    "dist/pages/misc/deobf/error.html": ERROR_HTML,
    "dist/pages/extra/page.html": EXTRA_PAGE,
    "dist/sitemap.xml": SITEMAP_XML,
    "dist/robots.txt": ROBOTS_TXT,
    "dist/assets/img/icon.ico": ICON,
    "dist/uv/uv.bundle.js": UV_BUNDLE,
}


def write_views(root: Path) -> Path:
    """Lay out a minimal views tree under ``root`` and return it."""
    for relative, content in VIEW_FILES.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
    return root
