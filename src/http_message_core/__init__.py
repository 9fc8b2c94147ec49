"""
http_message_core - Immutable HTTP messages with hardened headers

A small, dependency-light library of immutable HTTP request/response
values, CRLF-injection-safe header handling, and a proxy trust filter
that honours X-Forwarded-* headers only from trusted proxy subnets.
"""

__version__ = "0.1.0"
__author__ = "Developer"
__email__ = "dev@example.com"

# Import main components for easy access
from .exceptions import (
    HTTPMessageError,
    InvalidArgumentError,
    InvalidForwardedHeaderNameError,
    InvalidProxyAddressError,
)
from .headers import HeaderStore
from .http_primitives import MessageHead, Request, Response, ServerRequest, UploadedFile
from .marshal import (
    parse_cookie_header,
    request_to_h11,
    server_request_from_environ,
    server_request_from_h11,
)
from .network import SubnetMatcher
from .server_request_filter import (
    DoNotFilter,
    FilterUsingXForwardedHeaders,
    ForwardedHeader,
    ServerRequestFilter,
    TrustedProxy,
    TrustPolicy,
)
from .uri import Uri

__all__ = [
    "HTTPMessageError",
    "InvalidArgumentError",
    "InvalidForwardedHeaderNameError",
    "InvalidProxyAddressError",
    "HeaderStore",
    "MessageHead",
    "Request",
    "Response",
    "ServerRequest",
    "UploadedFile",
    "parse_cookie_header",
    "request_to_h11",
    "server_request_from_environ",
    "server_request_from_h11",
    "SubnetMatcher",
    "DoNotFilter",
    "FilterUsingXForwardedHeaders",
    "ForwardedHeader",
    "ServerRequestFilter",
    "TrustedProxy",
    "TrustPolicy",
    "Uri",
]
