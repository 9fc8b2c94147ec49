"""
HTTP primitives for http_message_core.

This module defines the core data structures for HTTP requests and responses.
All classes are immutable to ensure thread safety and simplify reasoning:
every with_* method returns a new instance and leaves the original untouched.

Header and protocol-version handling lives in MessageHead, which every
message type embeds and delegates to.
"""

import re
from dataclasses import dataclass, field, replace
from http import HTTPStatus
from types import MappingProxyType
from typing import (
    Any,
    ClassVar,
    Dict,
    List,
    Mapping,
    Optional,
    Tuple,
    Union,
)

from . import header_security
from .exceptions import InvalidArgumentError
from .headers import HeaderStore, HeaderValues, HeadersInput
from .network.utils import format_host_header
from .uri import Uri

_PROTOCOL_VERSION = re.compile(r"1\.[01]|2(\.0)?")
_WHITESPACE = re.compile(r"\s")


def _empty_mapping() -> Mapping[str, Any]:
    return MappingProxyType({})


def _frozen_mapping(values: Optional[Mapping[str, Any]]) -> Mapping[str, Any]:
    """Copy a mapping into a read-only view that cannot alias the caller's dict."""
    return MappingProxyType(dict(values or {}))


def validate_protocol_version(version: Any) -> None:
    """
    Validate an HTTP protocol version.
    
    HTTP/1 uses a "<major>.<minor>" numbering scheme while HTTP/2 does not,
    so "1.0", "1.1", "2" and "2.0" are accepted.
    
    Raises:
        InvalidArgumentError: On empty or unsupported versions
    """
    if not isinstance(version, str) or not version:
        raise InvalidArgumentError("HTTP protocol version can not be empty")
    
    if not _PROTOCOL_VERSION.fullmatch(version):
        raise InvalidArgumentError(f"Unsupported HTTP protocol version {version!r} provided")


def validate_method(method: Any) -> None:
    """
    Validate an HTTP method.
    
    Methods are case-sensitive tokens and are never normalized.
    
    Raises:
        InvalidArgumentError: On invalid methods
    """
    if not isinstance(method, str) or not header_security.is_token(method):
        raise InvalidArgumentError(f"Unsupported HTTP method {method!r} provided")


def _create_uri(uri: Union[str, Uri, None]) -> Uri:
    if isinstance(uri, Uri):
        return uri
    if uri is None:
        return Uri()
    if isinstance(uri, str):
        return Uri(uri)
    raise InvalidArgumentError(
        f"Invalid URI provided; must be None, a string, or a Uri instance; "
        f"received {type(uri).__name__}"
    )


def _host_from_uri(uri: Uri) -> str:
    return format_host_header(uri.host, uri.port)


@dataclass(frozen=True)
class MessageHead:
    """
    Headers and protocol version shared by every HTTP message.
    
    Message types embed one MessageHead and delegate their header
    and protocol-version operations to it.
    """
    
    DEFAULT_PROTOCOL_VERSION: ClassVar[str] = "1.1"
    
    headers: HeaderStore = field(default_factory=HeaderStore)
    protocol_version: str = DEFAULT_PROTOCOL_VERSION
    
    def __post_init__(self) -> None:
        """Validate message head after initialization."""
        if not isinstance(self.headers, HeaderStore):
            raise InvalidArgumentError("headers must be a HeaderStore")
        
        validate_protocol_version(self.protocol_version)
    
    def with_protocol_version(self, version: str) -> "MessageHead":
        validate_protocol_version(version)
        return replace(self, protocol_version=version)
    
    def with_header(self, name: str, value: HeaderValues) -> "MessageHead":
        return replace(self, headers=self.headers.with_header(name, value))
    
    def with_added_header(self, name: str, value: HeaderValues) -> "MessageHead":
        return replace(self, headers=self.headers.with_added_header(name, value))
    
    def without_header(self, name: str) -> "MessageHead":
        headers = self.headers.without_header(name)
        if headers is self.headers:
            return self
        return replace(self, headers=headers)
    
    def with_host_from_uri(self, uri: Uri) -> "MessageHead":
        """
        Replace the Host header with the URI's "host[:port]".
        
        Any existing Host header is dropped regardless of the casing it
        was registered with, and the new one is stored as "Host".
        """
        return replace(
            self,
            headers=self.headers.without_header("Host").with_header("Host", _host_from_uri(uri)),
        )


@dataclass(frozen=True)
class Request:
    """
    Immutable HTTP request representation.
    
    This class represents an HTTP request with all its components.
    Once created, the request cannot be modified - any changes
    must create a new Request instance.
    
    Use Request.create() to build one: it converts plain values and
    synthesizes the Host header from the URI when none is given.
    """
    
    DEFAULT_METHOD: ClassVar[str] = "GET"
    
    method: str = DEFAULT_METHOD
    uri: Uri = field(default_factory=Uri)
    head: MessageHead = field(default_factory=MessageHead)
    stream: Optional[Any] = None
    request_target_override: Optional[str] = field(default=None, repr=False)
    
    def __post_init__(self) -> None:
        """Validate request data after initialization."""
        validate_method(self.method)
        
        if not isinstance(self.uri, Uri):
            raise InvalidArgumentError("uri must be a Uri")
        
        if not isinstance(self.head, MessageHead):
            raise InvalidArgumentError("head must be a MessageHead")
    
    @classmethod
    def create(
        cls,
        uri: Union[str, Uri, None] = None,
        method: Optional[str] = None,
        stream: Optional[Any] = None,
        headers: Optional[HeadersInput] = None,
        protocol_version: str = MessageHead.DEFAULT_PROTOCOL_VERSION,
    ) -> "Request":
        """
        Create a Request with proper type conversion.
        
        Args:
            uri: URI string or Uri instance, if any
            method: HTTP method (GET, POST, etc.), defaults to GET
            stream: Optional opaque body handle
            headers: Optional mapping or list of (name, value) header pairs
            protocol_version: HTTP protocol version
        
        Returns:
            New Request instance
        
        Raises:
            InvalidArgumentError: For any invalid value
        """
        uri = _create_uri(uri)
        head = _initial_head(uri, headers, protocol_version)
        return cls(
            method=cls.DEFAULT_METHOD if method is None else method,
            uri=uri,
            head=head,
            stream=stream,
        )
    
    @property
    def headers(self) -> Dict[str, List[str]]:
        """All headers as {name: [values]}, names in their registered casing."""
        return self.head.headers.as_dict()
    
    @property
    def protocol_version(self) -> str:
        return self.head.protocol_version
    
    @property
    def request_target(self) -> str:
        """
        The request target.
        
        This is the origin-form "path[?query]" of the URI, or "/" when the
        URI has neither, unless a target was set with with_request_target().
        """
        if self.request_target_override is not None:
            return self.request_target_override
        
        target = self.uri.path
        if self.uri.query:
            target += f"?{self.uri.query}"
        
        return target or "/"
    
    def has_header(self, name: str) -> bool:
        """Check if a header exists (case-insensitive)."""
        return self.head.headers.has_header(name)
    
    def get_header(self, name: str) -> List[str]:
        """Get all values of a header (case-insensitive)."""
        return self.head.headers.get_header(name)
    
    def get_header_line(self, name: str) -> str:
        """Get the values of a header joined with a comma."""
        return self.head.headers.get_header_line(name)
    
    def with_header(self, name: str, value: HeaderValues) -> "Request":
        """Create a new request with the header replaced."""
        return replace(self, head=self.head.with_header(name, value))
    
    def with_added_header(self, name: str, value: HeaderValues) -> "Request":
        """Create a new request with values appended to a header."""
        return replace(self, head=self.head.with_added_header(name, value))
    
    def without_header(self, name: str) -> "Request":
        """Create a new request without the header."""
        return replace(self, head=self.head.without_header(name))
    
    def with_protocol_version(self, version: str) -> "Request":
        """Create a new request with a different protocol version."""
        return replace(self, head=self.head.with_protocol_version(version))
    
    def with_stream(self, stream: Optional[Any]) -> "Request":
        """Create a new request with a different body stream."""
        return replace(self, stream=stream)
    
    def with_method(self, method: str) -> "Request":
        """Create a new request with a different method."""
        validate_method(method)
        return replace(self, method=method)
    
    def with_request_target(self, request_target: str) -> "Request":
        """
        Create a new request with a verbatim request target.
        
        Use this for absolute-form, authority-form or asterisk-form targets.
        
        Raises:
            InvalidArgumentError: If the target contains whitespace
        """
        if not isinstance(request_target, str) or _WHITESPACE.search(request_target):
            raise InvalidArgumentError(
                "Invalid request target provided; cannot contain whitespace"
            )
        return replace(self, request_target_override=request_target)
    
    def with_uri(self, uri: Union[str, Uri], preserve_host: bool = False) -> "Request":
        """
        Create a new request with a different URI.
        
        The Host header is updated from the URI when the URI has a host.
        With preserve_host=True an existing Host header is left untouched.
        """
        uri = _create_uri(uri)
        
        if preserve_host and self.has_header("Host"):
            return replace(self, uri=uri)
        
        if not uri.host:
            return replace(self, uri=uri)
        
        return replace(self, uri=uri, head=self.head.with_host_from_uri(uri))


def _initial_head(
    uri: Uri, headers: Optional[HeadersInput], protocol_version: str
) -> MessageHead:
    head = MessageHead(headers=HeaderStore(headers), protocol_version=protocol_version)
    if not head.headers.has_header("Host") and uri.host:
        head = head.with_header("Host", _host_from_uri(uri))
    return head


@dataclass(frozen=True)
class UploadedFile:
    """
    Metadata and body handle of one file uploaded with a request.
    
    The stream is opaque to this library; moving or reading the
    upload is left to the application.
    """
    
    stream: Optional[Any] = None
    size: Optional[int] = None
    error: int = 0
    client_filename: Optional[str] = None
    client_media_type: Optional[str] = None
    
    def __post_init__(self) -> None:
        """Validate upload metadata after initialization."""
        if self.size is not None and (not isinstance(self.size, int) or self.size < 0):
            raise InvalidArgumentError("size must be a non-negative int or None")
        
        if not isinstance(self.error, int) or self.error < 0:
            raise InvalidArgumentError("error must be a non-negative int")


def validate_uploaded_files(uploaded_files: Any) -> None:
    """
    Recursively validate the structure of an uploaded files tree.
    
    Raises:
        InvalidArgumentError: If any leaf is not an UploadedFile
    """
    if isinstance(uploaded_files, Mapping):
        children = uploaded_files.values()
    elif isinstance(uploaded_files, (list, tuple)):
        children = uploaded_files
    else:
        raise InvalidArgumentError("Invalid uploaded files structure")
    
    for child in children:
        if isinstance(child, (Mapping, list, tuple)):
            validate_uploaded_files(child)
        elif not isinstance(child, UploadedFile):
            raise InvalidArgumentError("Invalid leaf in uploaded files structure")


def _validate_parsed_body(data: Any) -> None:
    if isinstance(data, (str, bytes, int, float, bool)):
        raise InvalidArgumentError(
            "parsed body must be None, a mapping, a sequence, or an object; "
            f"received {type(data).__name__}"
        )


@dataclass(frozen=True)
class ServerRequest(Request):
    """
    Immutable server-side HTTP request.
    
    Adds the data available to a server on top of Request: read-only
    server parameters (REMOTE_ADDR and friends), cookie and query
    parameters, the deserialized body, uploaded files, and
    application-provided attributes.
    """
    
    server_params: Mapping[str, Any] = field(default_factory=_empty_mapping)
    cookie_params: Mapping[str, Any] = field(default_factory=_empty_mapping)
    query_params: Mapping[str, Any] = field(default_factory=_empty_mapping)
    parsed_body: Optional[Any] = None
    uploaded_files: Mapping[str, Any] = field(default_factory=_empty_mapping)
    attributes: Mapping[str, Any] = field(default_factory=_empty_mapping)
    
    MAPPING_FIELDS: ClassVar[Tuple[str, ...]] = (
        "server_params",
        "cookie_params",
        "query_params",
        "uploaded_files",
        "attributes",
    )
    
    # Mapping fields are read-only views, which cannot be hashed
    __hash__ = None  # type: ignore[assignment]
    
    def __post_init__(self) -> None:
        """Validate server request data after initialization."""
        super().__post_init__()
        # Each instance owns its mappings; none alias a caller dict
        for name in self.MAPPING_FIELDS:
            object.__setattr__(self, name, _frozen_mapping(getattr(self, name)))
        
        validate_uploaded_files(self.uploaded_files)
        _validate_parsed_body(self.parsed_body)
    
    @classmethod
    def create(  # type: ignore[override]
        cls,
        server_params: Optional[Mapping[str, Any]] = None,
        uploaded_files: Optional[Mapping[str, Any]] = None,
        uri: Union[str, Uri, None] = None,
        method: Optional[str] = None,
        stream: Optional[Any] = None,
        headers: Optional[HeadersInput] = None,
        cookie_params: Optional[Mapping[str, Any]] = None,
        query_params: Optional[Mapping[str, Any]] = None,
        parsed_body: Optional[Any] = None,
        protocol_version: str = MessageHead.DEFAULT_PROTOCOL_VERSION,
    ) -> "ServerRequest":
        """
        Create a ServerRequest with proper type conversion.
        
        Args:
            server_params: Server parameters, typically a WSGI environ
            uploaded_files: Tree of UploadedFile instances
            uri: URI string or Uri instance, if any
            method: HTTP method, defaults to GET
            stream: Optional opaque body handle
            headers: Optional mapping or list of (name, value) header pairs
            cookie_params: Cookies sent with the request
            query_params: Deserialized query string arguments
            parsed_body: Deserialized body parameters
            protocol_version: HTTP protocol version
        
        Returns:
            New ServerRequest instance
        
        Raises:
            InvalidArgumentError: For any invalid value
        """
        uri = _create_uri(uri)
        head = _initial_head(uri, headers, protocol_version)
        return cls(
            method=cls.DEFAULT_METHOD if method is None else method,
            uri=uri,
            head=head,
            stream=stream,
            server_params=_frozen_mapping(server_params),
            cookie_params=_frozen_mapping(cookie_params),
            query_params=_frozen_mapping(query_params),
            parsed_body=parsed_body,
            uploaded_files=_frozen_mapping(uploaded_files),
        )
    
    def with_cookie_params(self, cookies: Mapping[str, Any]) -> "ServerRequest":
        """Create a new request with different cookie parameters."""
        return replace(self, cookie_params=_frozen_mapping(cookies))
    
    def with_query_params(self, query: Mapping[str, Any]) -> "ServerRequest":
        """Create a new request with different query parameters."""
        return replace(self, query_params=_frozen_mapping(query))
    
    def with_parsed_body(self, data: Optional[Any]) -> "ServerRequest":
        """
        Create a new request with a different parsed body.
        
        Raises:
            InvalidArgumentError: If data is a scalar
        """
        _validate_parsed_body(data)
        return replace(self, parsed_body=data)
    
    def with_uploaded_files(self, uploaded_files: Mapping[str, Any]) -> "ServerRequest":
        """
        Create a new request with a different uploaded files tree.
        
        Raises:
            InvalidArgumentError: If any leaf is not an UploadedFile
        """
        validate_uploaded_files(uploaded_files)
        return replace(self, uploaded_files=_frozen_mapping(uploaded_files))
    
    def get_attribute(self, name: str, default: Any = None) -> Any:
        """Get a single attribute, or default if it is not set."""
        return self.attributes.get(name, default)
    
    def with_attribute(self, name: str, value: Any) -> "ServerRequest":
        """Create a new request with an attribute set."""
        attributes = dict(self.attributes)
        attributes[name] = value
        return replace(self, attributes=MappingProxyType(attributes))
    
    def without_attribute(self, name: str) -> "ServerRequest":
        """Create a new request without an attribute."""
        attributes = dict(self.attributes)
        attributes.pop(name, None)
        return replace(self, attributes=MappingProxyType(attributes))


def _reason_phrase_for(status_code: int) -> str:
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return ""


@dataclass(frozen=True)
class Response:
    """
    Immutable HTTP response representation.
    
    This class represents an HTTP response with status, headers,
    and an opaque stream for the response body.
    """
    
    MIN_STATUS_CODE: ClassVar[int] = 100
    MAX_STATUS_CODE: ClassVar[int] = 599
    
    status_code: int = 200
    reason_phrase: str = "OK"
    head: MessageHead = field(default_factory=MessageHead)
    stream: Optional[Any] = None
    
    def __post_init__(self) -> None:
        """Validate response data after initialization."""
        if isinstance(self.status_code, bool) or not isinstance(self.status_code, int):
            raise InvalidArgumentError("status_code must be int")
        
        if not self.MIN_STATUS_CODE <= self.status_code <= self.MAX_STATUS_CODE:
            raise InvalidArgumentError(
                f"Invalid status code {self.status_code}; must be an integer between "
                f"{self.MIN_STATUS_CODE} and {self.MAX_STATUS_CODE}, inclusive"
            )
        
        if not isinstance(self.reason_phrase, str) or "\r" in self.reason_phrase or "\n" in self.reason_phrase:
            raise InvalidArgumentError("reason_phrase must be a single-line string")
        
        if not isinstance(self.head, MessageHead):
            raise InvalidArgumentError("head must be a MessageHead")
    
    @classmethod
    def create(
        cls,
        status_code: int = 200,
        headers: Optional[HeadersInput] = None,
        stream: Optional[Any] = None,
        reason_phrase: str = "",
        protocol_version: str = MessageHead.DEFAULT_PROTOCOL_VERSION,
    ) -> "Response":
        """
        Create a Response with proper validation.
        
        Args:
            status_code: HTTP status code
            headers: Optional mapping or list of (name, value) header pairs
            stream: Optional opaque body handle
            reason_phrase: Reason phrase; the standard one is used when empty
            protocol_version: HTTP protocol version
        
        Returns:
            New Response instance
        """
        if not reason_phrase and isinstance(status_code, int):
            reason_phrase = _reason_phrase_for(status_code)
        
        return cls(
            status_code=status_code,
            reason_phrase=reason_phrase,
            head=MessageHead(headers=HeaderStore(headers), protocol_version=protocol_version),
            stream=stream,
        )
    
    @property
    def headers(self) -> Dict[str, List[str]]:
        """All headers as {name: [values]}, names in their registered casing."""
        return self.head.headers.as_dict()
    
    @property
    def protocol_version(self) -> str:
        return self.head.protocol_version
    
    def has_header(self, name: str) -> bool:
        """Check if a header exists (case-insensitive)."""
        return self.head.headers.has_header(name)
    
    def get_header(self, name: str) -> List[str]:
        """Get all values of a header (case-insensitive)."""
        return self.head.headers.get_header(name)
    
    def get_header_line(self, name: str) -> str:
        """Get the values of a header joined with a comma."""
        return self.head.headers.get_header_line(name)
    
    def with_header(self, name: str, value: HeaderValues) -> "Response":
        """Create a new response with the header replaced."""
        return replace(self, head=self.head.with_header(name, value))
    
    def with_added_header(self, name: str, value: HeaderValues) -> "Response":
        """Create a new response with values appended to a header."""
        return replace(self, head=self.head.with_added_header(name, value))
    
    def without_header(self, name: str) -> "Response":
        """Create a new response without the header."""
        return replace(self, head=self.head.without_header(name))
    
    def with_protocol_version(self, version: str) -> "Response":
        """Create a new response with a different protocol version."""
        return replace(self, head=self.head.with_protocol_version(version))
    
    def with_stream(self, stream: Optional[Any]) -> "Response":
        """Create a new response with a different stream."""
        return replace(self, stream=stream)
    
    def with_status(self, status_code: int, reason_phrase: str = "") -> "Response":
        """
        Create a new response with a different status.
        
        Raises:
            InvalidArgumentError: For codes outside 100-599
        """
        if not reason_phrase and isinstance(status_code, int):
            reason_phrase = _reason_phrase_for(status_code)
        return replace(self, status_code=status_code, reason_phrase=reason_phrase)
