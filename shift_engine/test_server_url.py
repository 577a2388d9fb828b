import pytest

from shift_engine.server_url import ServerUrl, normalize_base_path, parse_server_url


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("http://localhost:8080/", ServerUrl("http", "localhost", 8080, "/")),
        ("http://localhost:8080", ServerUrl("http", "localhost", 8080, "/")),
        ("https://example.com/portal", ServerUrl("https", "example.com", 443, "/portal/")),
        ("HTTP://Example.com/a/b/", ServerUrl("http", "example.com", 80, "/a/b/")),
        ("http://[::1]:9000/x/", ServerUrl("http", "::1", 9000, "/x/")),
    ],
)
def test_parse_server_url(raw, expected):
    assert parse_server_url(raw) == expected


@pytest.mark.parametrize(
    "raw",
    ["ftp://localhost/", "localhost:8080", "http:///path", "http://localhost:notaport/"],
)
def test_invalid_server_url(raw):
    with pytest.raises(ValueError):
        parse_server_url(raw)


@pytest.mark.parametrize(
    "path,expected",
    [("", "/"), ("/", "/"), ("portal", "/portal/"), ("/portal/", "/portal/"), ("/a/b", "/a/b/")],
)
def test_normalize_base_path(path, expected):
    assert normalize_base_path(path) == expected


def test_origin_and_str():
    url = parse_server_url("http://[::1]:9000/portal/")
    assert url.origin == "http://[::1]:9000"
    assert str(url) == "http://[::1]:9000/portal/"
    assert not url.is_root


def test_strip_base_keeps_leading_slash():
    url = parse_server_url("http://localhost:8080/portal/")
    assert url.strip_base("/portal/newsession") == "/newsession"
    assert url.strip_base("/portal/") == "/"
    assert parse_server_url("http://localhost/").strip_base("/status") == "/status"
