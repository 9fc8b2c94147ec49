"""
Request marshalling for http_message_core.

This module builds ServerRequest instances from the inputs Python servers
actually hand us, a WSGI environ (PEP 3333) or an h11.Request event, and
converts client-side Request instances into h11.Request events.
"""

import logging
import re
from typing import Any, Dict, List, Mapping, Optional, Tuple
from urllib.parse import parse_qsl, quote, unquote

import h11

from . import header_security
from .exceptions import InvalidArgumentError
from .http_primitives import Request, ServerRequest
from .network.utils import is_ipv6_address, split_host_port, validate_port
from .server_request_filter import (
    DoNotFilter,
    FilterUsingXForwardedHeaders,
    ServerRequestFilter,
)
from .uri import Uri

logger = logging.getLogger(__name__)

STRICT_CONTENT_HEADER_LOOKUP = "STRICT_CONTENT_HEADER_LOOKUP"

_CONTENT_HEADERS = frozenset({"CONTENT_TYPE", "CONTENT_LENGTH", "CONTENT_MD5"})

_PROTOCOL = re.compile(r"(?:HTTP/)?(?P<version>[1-9]\d*(?:\.\d)?)")

# RFC 6265 cookie-pair, anchored on the start of the header or a "; " separator
_COOKIE_PAIR = re.compile(
    r"""
    (?:^\n?[ \t]*|;[ ])
    (?P<name>[!#$%&'*+\-.0-9A-Z^_`a-z|~]+)
    =
    (?P<dquote>"?)
        (?P<value>[\x21\x23-\x2b\x2d-\x3a\x3c-\x5b\x5d-\x7e]*)
    (?P=dquote)
    (?=\n?[ \t]*$|;[ ])
    """,
    re.VERBOSE,
)

# Characters PEP 3333 recommends leaving unquoted when rebuilding a URL
_PATH_SAFE = "/;=,"


def parse_cookie_header(cookie_header: str) -> Dict[str, str]:
    """
    Parse a Cookie header according to RFC 6265.
    
    Args:
        cookie_header: Raw Cookie header value
    
    Returns:
        {name: percent-decoded value}; later duplicates win
    """
    cookies: Dict[str, str] = {}
    for match in _COOKIE_PAIR.finditer(cookie_header):
        cookies[match.group("name")] = unquote(match.group("value"))
    return cookies


def marshal_headers_from_environ(environ: Mapping[str, Any]) -> Dict[str, str]:
    """
    Extract request headers from a WSGI environ.
    
    HTTP_* keys become lowercase, dash-separated header names. CONTENT_*
    keys are headers too; when the environ carries
    STRICT_CONTENT_HEADER_LOOKUP only Content-Type, Content-Length and
    Content-MD5 are. Keys prefixed with REDIRECT_ (added by rewrite rules)
    are used without the prefix unless the plain key exists.
    
    Args:
        environ: WSGI environ mapping
    
    Returns:
        {header-name: value}
    """
    strict = STRICT_CONTENT_HEADER_LOOKUP in environ
    
    headers: Dict[str, str] = {}
    for key, value in environ.items():
        if not isinstance(key, str) or key == "":
            continue
        
        if not isinstance(value, str) or value == "":
            continue
        
        if key.startswith("REDIRECT_"):
            key = key[9:]
            if key in environ:
                continue
        
        if key.startswith("HTTP_"):
            name = key[5:].lower().replace("_", "-")
        elif (key in _CONTENT_HEADERS) if strict else key.startswith("CONTENT_"):
            name = key.lower().replace("_", "-")
        else:
            continue
        
        if not header_security.is_token(name):
            logger.debug(f"Skipping environ key {key!r}: not a valid header name")
            continue
        
        headers[name] = value
    
    return headers


def marshal_method_from_environ(environ: Mapping[str, Any]) -> str:
    """Return the request method from a WSGI environ, GET by default."""
    return environ.get("REQUEST_METHOD") or Request.DEFAULT_METHOD


def marshal_protocol_version_from_environ(environ: Mapping[str, Any]) -> str:
    """
    Return the protocol version from SERVER_PROTOCOL ("HTTP/1.1" -> "1.1").
    
    Raises:
        InvalidArgumentError: If SERVER_PROTOCOL is not recognized
    """
    protocol = environ.get("SERVER_PROTOCOL")
    if not protocol:
        return "1.1"
    
    match = _PROTOCOL.fullmatch(protocol)
    if not match:
        raise InvalidArgumentError(f"Unrecognized protocol version ({protocol})")
    
    return match.group("version")


def _scheme_from_environ(environ: Mapping[str, Any]) -> str:
    scheme = environ.get("wsgi.url_scheme")
    if scheme in ("http", "https"):
        return scheme
    
    https = str(environ.get("HTTPS", "")).lower()
    return "https" if https not in ("", "off") else "http"


def _host_and_port_from_environ(
    environ: Mapping[str, Any], host_header: str
) -> Tuple[str, Optional[int]]:
    if host_header:
        try:
            return split_host_port(host_header)
        except ValueError:
            logger.debug("Ignoring unparseable Host header; using SERVER_NAME")
    
    host = str(environ.get("SERVER_NAME") or "")
    if is_ipv6_address(host):
        host = f"[{host}]"
    
    try:
        port: Optional[int] = validate_port(environ.get("SERVER_PORT"))
    except ValueError:
        port = None
    
    return host.lower(), port


def marshal_uri_from_environ(environ: Mapping[str, Any], headers: Mapping[str, str]) -> Uri:
    """
    Build the request URI from a WSGI environ.
    
    The scheme comes from wsgi.url_scheme (or HTTPS), host and port from the
    Host header or SERVER_NAME/SERVER_PORT, the path from SCRIPT_NAME and
    PATH_INFO, and the query from QUERY_STRING.
    
    Args:
        environ: WSGI environ mapping
        headers: Headers as returned by marshal_headers_from_environ()
    """
    host, port = _host_and_port_from_environ(environ, headers.get("host", ""))
    
    # PATH_INFO and SCRIPT_NAME are bytes tunneled as latin-1
    path = quote(environ.get("SCRIPT_NAME", ""), safe=_PATH_SAFE, encoding="latin-1")
    path += quote(environ.get("PATH_INFO", ""), safe=_PATH_SAFE, encoding="latin-1")
    
    uri = Uri().with_scheme(_scheme_from_environ(environ))
    if host:
        uri = uri.with_host(host).with_port(port)
    
    return uri.with_path(path or "/").with_query(environ.get("QUERY_STRING", ""))


def _query_params(query: str) -> Dict[str, str]:
    return dict(parse_qsl(query, keep_blank_values=True))


def server_request_from_environ(
    environ: Mapping[str, Any],
    request_filter: Optional[ServerRequestFilter] = None,
) -> ServerRequest:
    """
    Create a ServerRequest from a WSGI environ.
    
    Args:
        environ: WSGI environ mapping; it becomes the server parameters
        request_filter: Filter applied to the new request; defaults to
            trusting X-Forwarded-* headers from reserved (private, loopback
            and link-local) subnets
    
    Returns:
        The filtered ServerRequest
    
    Raises:
        InvalidArgumentError: For invalid header names/values, methods or
            protocol versions found in the environ
    """
    headers = marshal_headers_from_environ(environ)
    
    request = ServerRequest.create(
        server_params=environ,
        uri=marshal_uri_from_environ(environ, headers),
        method=marshal_method_from_environ(environ),
        stream=environ.get("wsgi.input"),
        headers=headers,
        cookie_params=parse_cookie_header(headers.get("cookie", "")),
        query_params=_query_params(environ.get("QUERY_STRING", "")),
        protocol_version=marshal_protocol_version_from_environ(environ),
    )
    
    if request_filter is None:
        request_filter = FilterUsingXForwardedHeaders.trust_reserved_subnets()
    
    logger.debug(f"Marshalled {request.method} {request.uri} from WSGI environ")
    return request_filter(request)


def _decode_h11_headers(event: h11.Request) -> List[Tuple[str, str]]:
    return [(name.decode("ascii"), value.decode("latin-1")) for name, value in event.headers.raw_items()]


def server_request_from_h11(
    event: h11.Request,
    server_params: Optional[Mapping[str, Any]] = None,
    scheme: str = "http",
    stream: Optional[Any] = None,
    request_filter: Optional[ServerRequestFilter] = None,
) -> ServerRequest:
    """
    Create a ServerRequest from an h11.Request event.
    
    Header names keep the casing they were received with and the request
    target is kept verbatim.
    
    Args:
        event: Request event produced by an h11 server connection
        server_params: Server parameters, typically including REMOTE_ADDR
        scheme: Scheme the connection was accepted on
        stream: Optional opaque body handle
        request_filter: Filter applied to the new request; DoNotFilter by default
    
    Returns:
        The filtered ServerRequest
    """
    method = event.method.decode("ascii")
    target = event.target.decode("latin-1")
    protocol_version = event.http_version.decode("ascii")
    headers = _decode_h11_headers(event)
    
    params: Dict[str, Any] = dict(server_params or {})
    params.setdefault("REQUEST_METHOD", method)
    params.setdefault("SERVER_PROTOCOL", f"HTTP/{protocol_version}")
    
    if target.startswith(("http://", "https://")):
        uri = Uri(target)
    else:
        uri = Uri().with_scheme(scheme)
        host_header = ",".join(value for name, value in headers if name.lower() == "host")
        if host_header:
            try:
                host, port = split_host_port(host_header)
                uri = uri.with_host(host).with_port(port)
            except ValueError:
                logger.debug("Ignoring unparseable Host header in h11 request")
        if target.startswith("/"):
            path, _, query = target.partition("#")[0].partition("?")
            uri = uri.with_path(path).with_query(query)
    
    request = ServerRequest.create(
        server_params=params,
        uri=uri,
        method=method,
        stream=stream,
        headers=headers,
        query_params=_query_params(uri.query),
        protocol_version=protocol_version,
    )
    request = request.with_request_target(target)
    request = request.with_cookie_params(parse_cookie_header(request.get_header_line("cookie")))
    
    if request_filter is None:
        request_filter = DoNotFilter()
    
    logger.debug(f"Marshalled {method} {target} from h11 event")
    return request_filter(request)


def request_to_h11(request: Request) -> h11.Request:
    """
    Convert a Request into an h11.Request event.
    
    Raises:
        InvalidArgumentError: If h11 rejects the request, e.g. an HTTP/1.1
            request without a Host header, or an HTTP/2 protocol version
    """
    if request.protocol_version not in ("1.0", "1.1"):
        raise InvalidArgumentError(
            f"HTTP/{request.protocol_version} requests cannot be expressed as h11 events"
        )
    
    try:
        return h11.Request(
            method=request.method.encode("ascii"),
            target=request.request_target.encode("latin-1"),
            headers=[
                (name.encode("ascii"), value.encode("latin-1"))
                for name, value in request.head.headers.items()
            ],
            http_version=request.protocol_version.encode("ascii"),
        )
    except (h11.LocalProtocolError, UnicodeEncodeError) as exc:
        raise InvalidArgumentError(
            f"Request cannot be expressed as an HTTP/1.x message: {exc}", cause=exc
        ) from exc
