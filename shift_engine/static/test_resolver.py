import pytest

from shift_engine.routing.path_table import PathTable
from shift_engine.static.resolver import (
    Asset,
    NotFound,
    Redirect,
    StaticResolver,
    media_type_for,
)
from shift_engine.static.templates import FALLBACK_NOT_FOUND_PAGE, load_not_found_page
from shift_engine.utils_tests.views import (
    ERROR_HTML,
    ICON,
    INDEX_HTML,
    ROBOTS_TXT,
    SITEMAP_XML,
)

NOT_FOUND_BODY = b"<h1>404</h1>"


@pytest.fixture
def resolver(views_dir):
    table = PathTable(
        pages={
            "index": "pages/index.html",
            "sitemap.xml": "sitemap.xml",
            "robots.txt": "robots.txt",
            "favicon.ico": "assets/img/icon.ico",
            "missing": "pages/missing.html",
            "escape": "../../etc/passwd",
        },
        external_pages={
            "discord": "https://discord.example",
            "github": {"default": "https://github.example", "wisp": "https://wisp.example"},
        },
    )
    return StaticResolver(table, views_dir / "dist", NOT_FOUND_BODY)


@pytest.mark.parametrize(
    "name,expected",
    [
        ("index.html", "text/html"),
        ("robots.txt", "text/plain"),
        ("sitemap.xml", "application/xml"),
        ("icon.ico", "image/vnd.microsoft.icon"),
        ("bundle.js", "text/html"),
        ("README", "text/html"),
    ],
)
def test_media_type_for(name, expected):
    assert media_type_for(name) == expected


@pytest.mark.asyncio
async def test_empty_path_serves_index(resolver):
    result = await resolver.resolve("")
    assert result == Asset(body=INDEX_HTML, media_type="text/html")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "key,body,media_type",
    [
        ("sitemap.xml", SITEMAP_XML, "application/xml"),
        ("robots.txt", ROBOTS_TXT, "text/plain"),
        ("favicon.ico", ICON, "image/vnd.microsoft.icon"),
    ],
)
async def test_mapped_key_serves_target_bytes(resolver, key, body, media_type):
    result = await resolver.resolve(key)
    assert isinstance(result, Asset)
    assert result.body == body
    assert result.media_type == media_type


@pytest.mark.asyncio
async def test_unmapped_key_is_not_found(resolver):
    result = await resolver.resolve("doesnotexist")
    assert result == NotFound(body=NOT_FOUND_BODY)
    assert result.status_code == 404


@pytest.mark.asyncio
async def test_unreadable_target_is_not_found(resolver):
    result = await resolver.resolve("missing")
    assert isinstance(result, NotFound)
    assert result.body == NOT_FOUND_BODY


@pytest.mark.asyncio
async def test_target_outside_dist_is_not_found(resolver):
    assert isinstance(await resolver.resolve("escape"), NotFound)


@pytest.mark.asyncio
async def test_redirects_win_over_pages(resolver):
    assert await resolver.resolve("discord") == Redirect("https://discord.example")
    assert await resolver.resolve("github") == Redirect("https://github.example")


def test_grouped_redirects(resolver):
    assert resolver.resolve_redirect("github", "wisp") == Redirect("https://wisp.example")
    assert isinstance(resolver.resolve_redirect("github", "unknown"), NotFound)
    assert isinstance(resolver.resolve_redirect("discord", "wisp"), NotFound)


def test_not_found_page_is_read_from_dist(views_dir):
    body = load_not_found_page(views_dir / "dist", "pages/misc/deobf/error.html")
    assert body == ERROR_HTML


def test_not_found_page_falls_back_to_builtin(tmp_path):
    assert load_not_found_page(tmp_path, "error.html") == FALLBACK_NOT_FOUND_PAGE
