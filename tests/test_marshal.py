"""
Unit tests for request marshalling.

Tests building ServerRequest instances from WSGI environs and h11
events, converting requests to h11 events, and cookie parsing.
"""

import h11
import pytest

from http_message_core.exceptions import InvalidArgumentError
from http_message_core.http_primitives import Request, ServerRequest
from http_message_core.marshal import (
    STRICT_CONTENT_HEADER_LOOKUP,
    marshal_headers_from_environ,
    marshal_method_from_environ,
    marshal_protocol_version_from_environ,
    marshal_uri_from_environ,
    parse_cookie_header,
    request_to_h11,
    server_request_from_environ,
    server_request_from_h11,
)
from http_message_core.server_request_filter import DoNotFilter, FilterUsingXForwardedHeaders


class TestParseCookieHeader:
    """Test parse_cookie_header."""
    
    def test_multiple_cookies(self) -> None:
        """Test a header with several cookies."""
        assert parse_cookie_header("foo=bar; baz=qux") == {"foo": "bar", "baz": "qux"}
    
    def test_percent_decodes_values(self) -> None:
        """Test that values are URL-decoded."""
        assert parse_cookie_header("session=abc%20123") == {"session": "abc 123"}
    
    def test_quoted_values(self) -> None:
        """Test that surrounding double quotes are removed."""
        assert parse_cookie_header('foo="bar"') == {"foo": "bar"}
    
    def test_empty_value(self) -> None:
        """Test a cookie without value."""
        assert parse_cookie_header("foo=") == {"foo": ""}
    
    def test_later_duplicates_win(self) -> None:
        """Test repeated cookie names."""
        assert parse_cookie_header("foo=1; foo=2") == {"foo": "2"}
    
    def test_names_with_special_characters(self) -> None:
        """Test token characters in cookie names."""
        assert parse_cookie_header("a.b-c_d=1") == {"a.b-c_d": "1"}
    
    @pytest.mark.parametrize("header", ["", "foo", "foo bar=baz", "foo=bar;baz=qux"])
    def test_malformed_pairs_are_skipped(self, header: str) -> None:
        """Test input that does not follow RFC 6265."""
        assert "baz" not in parse_cookie_header(header)
        assert "foo bar" not in parse_cookie_header(header)


class TestMarshalFromEnviron:
    """Test the WSGI environ helpers."""
    
    def test_headers(self, wsgi_environ) -> None:
        """Test extracting HTTP_* and CONTENT_* keys."""
        headers = marshal_headers_from_environ(wsgi_environ)
        assert headers == {
            "content-type": "application/json",
            "content-length": "17",
            "host": "internal.local:8080",
            "cookie": "session=abc%20123; theme=dark",
            "x-forwarded-host": "shop.example.com",
            "x-forwarded-proto": "https",
        }
    
    def test_strict_content_header_lookup(self) -> None:
        """Test that strict lookup only accepts known content headers."""
        environ = {"CONTENT_TYPE": "text/plain", "CONTENT_FOO": "bar"}
        assert marshal_headers_from_environ(environ) == {
            "content-type": "text/plain",
            "content-foo": "bar",
        }
        
        environ[STRICT_CONTENT_HEADER_LOOKUP] = "1"
        assert marshal_headers_from_environ(environ) == {"content-type": "text/plain"}
    
    def test_redirect_prefixed_keys(self) -> None:
        """Test REDIRECT_ keys added by rewrite rules."""
        environ = {"REDIRECT_HTTP_AUTHORIZATION": "Bearer token"}
        assert marshal_headers_from_environ(environ) == {"authorization": "Bearer token"}
        
        environ["HTTP_AUTHORIZATION"] = "Basic abc"
        assert marshal_headers_from_environ(environ) == {"authorization": "Basic abc"}
    
    def test_skips_empty_and_non_string_values(self) -> None:
        """Test that unusable entries are ignored."""
        environ = {"HTTP_X_EMPTY": "", "HTTP_X_OBJ": object(), "HTTP_": "value", "HTTP_X_OK": "1"}
        assert marshal_headers_from_environ(environ) == {"x-ok": "1"}
    
    def test_method(self) -> None:
        """Test the request method with default."""
        assert marshal_method_from_environ({"REQUEST_METHOD": "PUT"}) == "PUT"
        assert marshal_method_from_environ({}) == "GET"
    
    @pytest.mark.parametrize(
        "protocol,expected",
        [("HTTP/1.0", "1.0"), ("HTTP/1.1", "1.1"), ("HTTP/2", "2"), ("HTTP/2.0", "2.0"), ("1.1", "1.1")],
    )
    def test_protocol_version(self, protocol: str, expected: str) -> None:
        """Test SERVER_PROTOCOL parsing."""
        assert marshal_protocol_version_from_environ({"SERVER_PROTOCOL": protocol}) == expected
    
    def test_protocol_version_defaults(self) -> None:
        """Test a missing SERVER_PROTOCOL."""
        assert marshal_protocol_version_from_environ({}) == "1.1"
    
    @pytest.mark.parametrize("protocol", ["HTTP", "HTTP/", "HTTP/one", "SPDY/3"])
    def test_unrecognized_protocol_version(self, protocol: str) -> None:
        """Test that unrecognized protocols raise."""
        with pytest.raises(InvalidArgumentError, match="Unrecognized protocol version"):
            marshal_protocol_version_from_environ({"SERVER_PROTOCOL": protocol})
    
    def test_uri_from_host_header(self, wsgi_environ) -> None:
        """Test the URI built from the Host header."""
        uri = marshal_uri_from_environ(wsgi_environ, marshal_headers_from_environ(wsgi_environ))
        assert str(uri) == "http://internal.local:8080/api/items?page=2&sort=name"
    
    def test_uri_from_server_name(self) -> None:
        """Test the fallback to SERVER_NAME and SERVER_PORT."""
        environ = {
            "SERVER_NAME": "Example.COM",
            "SERVER_PORT": "443",
            "HTTPS": "on",
            "PATH_INFO": "/",
        }
        assert str(marshal_uri_from_environ(environ, {})) == "https://example.com/"
    
    def test_uri_from_ipv6_server_name(self) -> None:
        """Test that IPv6 server names are bracketed."""
        environ = {"SERVER_NAME": "::1", "SERVER_PORT": "8080", "wsgi.url_scheme": "http"}
        assert str(marshal_uri_from_environ(environ, {})) == "http://[::1]:8080/"
    
    def test_uri_joins_script_name_and_path_info(self) -> None:
        """Test that the mount point is part of the path."""
        environ = {"SCRIPT_NAME": "/app", "PATH_INFO": "/caf\xe9 menu"}
        uri = marshal_uri_from_environ(environ, {"host": "example.com"})
        assert uri.path == "/app/caf%E9%20menu"
    
    def test_uri_with_unparseable_host_header(self) -> None:
        """Test that a bad Host header falls back to SERVER_NAME."""
        environ = {"SERVER_NAME": "fallback.local", "SERVER_PORT": "80"}
        uri = marshal_uri_from_environ(environ, {"host": "bad host"})
        assert str(uri) == "http://fallback.local/"


class TestServerRequestFromEnviron:
    """Test server_request_from_environ."""
    
    def test_builds_complete_request(self, wsgi_environ) -> None:
        """Test every part of the marshalled request."""
        request = server_request_from_environ(wsgi_environ, request_filter=DoNotFilter())
        
        assert isinstance(request, ServerRequest)
        assert request.method == "POST"
        assert request.protocol_version == "1.1"
        assert str(request.uri) == "http://internal.local:8080/api/items?page=2&sort=name"
        assert request.server_params["REMOTE_ADDR"] == "10.0.0.5"
        assert request.cookie_params == {"session": "abc 123", "theme": "dark"}
        assert request.query_params == {"page": "2", "sort": "name"}
        assert request.get_header_line("Content-Type") == "application/json"
        assert request.stream is None
    
    def test_trusts_reserved_subnets_by_default(self, wsgi_environ) -> None:
        """Test that a local proxy's forwarded headers are honored by default."""
        request = server_request_from_environ(wsgi_environ)
        assert request.uri.scheme == "https"
        assert request.uri.host == "shop.example.com"
        assert request.get_header_line("Host") == "shop.example.com:8080"
    
    def test_public_peer_is_not_trusted_by_default(self, wsgi_environ) -> None:
        """Test that forwarded headers from public peers are ignored."""
        wsgi_environ["REMOTE_ADDR"] = "203.0.113.10"
        request = server_request_from_environ(wsgi_environ)
        assert str(request.uri) == "http://internal.local:8080/api/items?page=2&sort=name"
    
    def test_custom_filter(self, wsgi_environ) -> None:
        """Test passing an explicit filter."""
        request_filter = FilterUsingXForwardedHeaders.trust_proxies(["10.0.0.0/8"], ["X-Forwarded-Proto"])
        request = server_request_from_environ(wsgi_environ, request_filter)
        assert request.uri.scheme == "https"
        assert request.uri.host == "internal.local"
    
    def test_minimal_environ(self) -> None:
        """Test an environ with almost nothing in it."""
        request = server_request_from_environ({})
        assert request.method == "GET"
        assert request.request_target == "/"
        assert request.headers == {}
    
    def test_invalid_method_raises(self, wsgi_environ) -> None:
        """Test that invalid methods are reported."""
        wsgi_environ["REQUEST_METHOD"] = "BAD METHOD"
        with pytest.raises(InvalidArgumentError):
            server_request_from_environ(wsgi_environ)


class TestServerRequestFromH11:
    """Test server_request_from_h11."""
    
    def test_origin_form_target(self) -> None:
        """Test a regular request with a Host header."""
        event = h11.Request(
            method="GET",
            target="/search?q=python#ignored",
            headers=[("Host", "example.com:8000"), ("Cookie", "theme=dark"), ("X-Trace", "1")],
        )
        request = server_request_from_h11(event, server_params={"REMOTE_ADDR": "127.0.0.1"})
        
        assert request.method == "GET"
        assert request.protocol_version == "1.1"
        assert str(request.uri) == "http://example.com:8000/search?q=python"
        assert request.request_target == "/search?q=python#ignored"
        assert request.headers == {
            "Host": ["example.com:8000"],
            "Cookie": ["theme=dark"],
            "X-Trace": ["1"],
        }
        assert request.cookie_params == {"theme": "dark"}
        assert request.query_params == {"q": "python"}
        assert request.server_params == {
            "REMOTE_ADDR": "127.0.0.1",
            "REQUEST_METHOD": "GET",
            "SERVER_PROTOCOL": "HTTP/1.1",
        }
    
    def test_absolute_form_target(self) -> None:
        """Test a proxy-style absolute target."""
        event = h11.Request(
            method="GET",
            target="https://api.example.com/v1/items",
            headers=[("Host", "api.example.com")],
        )
        request = server_request_from_h11(event)
        assert str(request.uri) == "https://api.example.com/v1/items"
        assert request.request_target == "https://api.example.com/v1/items"
    
    def test_asterisk_form_target(self) -> None:
        """Test an OPTIONS * request."""
        event = h11.Request(method="OPTIONS", target="*", headers=[("Host", "example.com")])
        request = server_request_from_h11(event, scheme="https")
        assert request.request_target == "*"
        assert str(request.uri) == "https://example.com"
    
    def test_repeated_headers_are_kept(self) -> None:
        """Test that repeated header lines accumulate."""
        event = h11.Request(
            method="GET",
            target="/",
            headers=[("Host", "example.com"), ("Accept", "text/html"), ("accept", "*/*")],
        )
        request = server_request_from_h11(event)
        assert request.get_header("Accept") == ["text/html", "*/*"]
    
    def test_does_not_filter_by_default(self) -> None:
        """Test that forwarded headers are ignored without a filter."""
        event = h11.Request(
            method="GET",
            target="/",
            headers=[("Host", "example.com"), ("X-Forwarded-Proto", "https")],
        )
        request = server_request_from_h11(event, server_params={"REMOTE_ADDR": "127.0.0.1"})
        assert request.uri.scheme == "http"
        
        request = server_request_from_h11(
            event,
            server_params={"REMOTE_ADDR": "127.0.0.1"},
            request_filter=FilterUsingXForwardedHeaders.trust_reserved_subnets(),
        )
        assert request.uri.scheme == "https"
    
    def test_http10_without_host(self) -> None:
        """Test an HTTP/1.0 request without Host header."""
        event = h11.Request(method="GET", target="/legacy", headers=[], http_version="1.0")
        request = server_request_from_h11(event)
        assert request.protocol_version == "1.0"
        assert request.uri.host == ""
        assert request.uri.path == "/legacy"
        assert not request.has_header("Host")


class TestRequestToH11:
    """Test request_to_h11."""
    
    def test_converts_request(self) -> None:
        """Test a complete conversion."""
        request = Request.create(
            uri="http://example.com:8080/items?page=2",
            method="POST",
            headers={"Content-Type": "application/json", "Content-Length": "2"},
        )
        event = request_to_h11(request)
        
        assert isinstance(event, h11.Request)
        assert event.method == b"POST"
        assert event.target == b"/items?page=2"
        assert event.http_version == b"1.1"
        assert (b"host", b"example.com:8080") in list(event.headers)
        assert (b"content-type", b"application/json") in list(event.headers)
    
    def test_uses_verbatim_request_target(self) -> None:
        """Test that an explicit request target is sent as-is."""
        request = Request.create(uri="http://example.com/", method="OPTIONS").with_request_target("*")
        assert request_to_h11(request).target == b"*"
    
    def test_missing_host_raises(self) -> None:
        """Test that h11 errors are wrapped."""
        with pytest.raises(InvalidArgumentError) as exc_info:
            request_to_h11(Request.create(uri="/path"))
        assert isinstance(exc_info.value.cause, h11.LocalProtocolError)
    
    def test_http2_is_rejected(self) -> None:
        """Test that HTTP/2 requests cannot be expressed as h11 events."""
        request = Request.create(uri="http://example.com/", protocol_version="2")
        with pytest.raises(InvalidArgumentError, match="HTTP/2"):
            request_to_h11(request)
    
    def test_round_trip_through_server_side(self) -> None:
        """Test that a client request survives conversion to a server request."""
        request = Request.create(uri="http://example.com/a?b=c", headers={"X-Id": "42"})
        server_request = server_request_from_h11(request_to_h11(request))
        assert server_request.uri == request.uri
        assert server_request.get_header_line("x-id") == "42"
