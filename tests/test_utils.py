# File: tests/test_utils.py
import pytest

from adaptive_crawler.utils import extract_domain, is_http_url, is_within_scope, matches_any, normalize_url


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("HTTP://Example.COM", "http://example.com/"),
        ("http://example.com:80/a", "http://example.com/a"),
        ("https://example.com:443/a/", "https://example.com/a/"),
        ("http://example.com/a/./b/../c", "http://example.com/a/c"),
        ("http://example.com/a?b=2&a=1#top", "http://example.com/a?a=1&b=2"),
        ("http://example.com/some%20page", "http://example.com/some%20page"),
        ("http://localhost:8080/x", "http://localhost:8080/x"),
    ],
)
def test_normalize_url(raw, expected):
    assert normalize_url(raw) == expected


def test_normalize_url_is_idempotent():
    url = "http://Example.com/a/../b/?z=1&y=2#f"
    assert normalize_url(normalize_url(url)) == normalize_url(url)


def test_extract_domain():
    assert extract_domain("http://Sub.Example.com:8080/x") == "sub.example.com"


def test_is_http_url():
    assert is_http_url("https://example.com/")
    assert not is_http_url("ftp://example.com/")
    assert not is_http_url("mailto:someone@example.com")


@pytest.mark.parametrize(
    "url,base,allowed,expected",
    [
        ("http://example.com/docs/a", "http://example.com/docs/", (), True),
        ("http://example.com/docs", "http://example.com/docs/", (), True),
        ("http://example.com/blog/a", "http://example.com/docs/", (), False),
        ("http://example.com/anything", "http://example.com/", (), True),
        ("http://other.com/", "http://example.com/", (), False),
        ("http://cdn.example.org/x", "http://example.com/", ("example.org",), True),
        ("http://badexample.org/x", "http://example.com/", ("example.org",), False),
    ],
)
def test_is_within_scope(url, base, allowed, expected):
    assert is_within_scope(url, base, allowed) is expected


def test_matches_any():
    assert matches_any("http://example.com/logout", [r"/logout$"])
    assert not matches_any("http://example.com/login", [r"/logout$"])
