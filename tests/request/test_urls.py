import pytest

from apiwright.errors import InvalidUrlError
from apiwright.request.engine import Request
from apiwright.request.spec import resolve_url
from apiwright.transport.mock import MockTransport


class TestResolveUrl:
    @pytest.mark.parametrize(
        "base_url,url,expected",
        [
            ("http://example.com:123/foo/bar", "baz", "http://example.com:123/foo/bar/baz"),
            ("http://example.com:123/foo/bar", "/baz", "http://example.com:123/foo/bar/baz"),
            ("http://example.com:123/foo/bar/", "baz", "http://example.com:123/foo/bar/baz"),
            ("http://example.com:123/foo/bar/", "/baz", "http://example.com:123/foo/bar/baz"),
            ("http://h/a/b", "c", "http://h/a/b/c"),
        ],
    )
    def test_joins_base_url_and_path(self, base_url, url, expected):
        assert resolve_url(base_url, url) == expected

    def test_absolute_url_ignores_base_url(self):
        assert (
            resolve_url("http://example.com/api", "https://other.example.com/x")
            == "https://other.example.com/x"
        )

    def test_absolute_url_without_base_url(self):
        assert resolve_url("", "http://example.com/foo/bar") == "http://example.com/foo/bar"

    def test_relative_url_without_base_url_is_invalid(self):
        with pytest.raises(InvalidUrlError):
            resolve_url("", "/foo/bar")

    def test_appends_query_parameters(self):
        # Act
        url = resolve_url("http://example.com", "search", {"q": "a b", "page": 2})

        # Assert
        assert url == "http://example.com/search?q=a+b&page=2"

    def test_merges_with_existing_query_and_skips_none(self):
        # Act
        url = resolve_url("http://example.com", "search?q=x", {"page": 1, "skip": None})

        # Assert
        assert url == "http://example.com/search?q=x&page=1"


class TestRequestUrls:
    async def test_invalid_url_is_not_sent(self):
        # Arrange
        transport = MockTransport(200)
        request = Request(transport=transport)

        # Act
        with pytest.raises(InvalidUrlError):
            await request.get("/foo/bar")

        # Assert
        assert not transport.called

    async def test_sends_to_resolved_url(self):
        # Arrange
        transport = MockTransport(200)
        request = Request(base_url="http://example.com/v1", transport=transport)

        # Act
        await request.get("/users", query={"active": "true"})

        # Assert
        assert transport.last_call.url == "http://example.com/v1/users?active=true"
        assert transport.last_call.method == "get"
