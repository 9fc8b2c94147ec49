"""
Server request filters for http_message_core.

A server request filter takes a ServerRequest and returns either the same
request or a new one. FilterUsingXForwardedHeaders rewrites the request URI
from the X-Forwarded-Host, X-Forwarded-Port and X-Forwarded-Proto headers,
but only when the immediate peer (REMOTE_ADDR) is a trusted proxy.

Filters are immutable and hold no per-request state, so a single instance
can be shared by every request a server handles.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import (
    Any,
    FrozenSet,
    Iterable,
    Mapping,
    Optional,
    Tuple,
    Union,
)

from .exceptions import InvalidForwardedHeaderNameError
from .http_primitives import ServerRequest
from .network.subnet import RESERVED_SUBNETS, SubnetMatcher
from .network.utils import split_host_port, validate_port

logger = logging.getLogger(__name__)


class ForwardedHeader(str, Enum):
    """The X-Forwarded-* headers a proxy can be trusted with."""
    HOST = "X-Forwarded-Host"
    PORT = "X-Forwarded-Port"
    PROTO = "X-Forwarded-Proto"
    
    @classmethod
    def from_name(cls, name: Any) -> "ForwardedHeader":
        """
        Resolve a header name (case-insensitive) to a ForwardedHeader.
        
        Raises:
            InvalidForwardedHeaderNameError: If name is not an X-Forwarded-* header
        """
        if isinstance(name, cls):
            return name
        
        if isinstance(name, str):
            for member in cls:
                if member.value.lower() == name.lower():
                    return member
        
        raise InvalidForwardedHeaderNameError(name)


HeaderNames = Union[str, ForwardedHeader, Iterable[Union[str, ForwardedHeader]]]

ALL_FORWARDED_HEADERS: FrozenSet[ForwardedHeader] = frozenset(ForwardedHeader)


def _normalize_trusted_headers(headers: Optional[HeaderNames]) -> FrozenSet[ForwardedHeader]:
    if headers is None:
        return ALL_FORWARDED_HEADERS
    
    if isinstance(headers, str):
        headers = [headers]
    
    return frozenset(ForwardedHeader.from_name(name) for name in headers)


@dataclass(frozen=True)
class TrustedProxy:
    """A proxy subnet and the forwarded headers proxies in it may set."""
    
    subnet: SubnetMatcher
    trusted_headers: FrozenSet[ForwardedHeader] = ALL_FORWARDED_HEADERS


@dataclass(frozen=True)
class TrustPolicy:
    """
    Which peers are trusted proxies, and with which headers.
    
    Proxies are checked in order and the first subnet containing the
    peer address decides the trusted headers. With trust_any set, every
    peer is trusted with any_headers and the proxy list is ignored.
    """
    
    proxies: Tuple[TrustedProxy, ...] = ()
    trust_any: bool = False
    any_headers: FrozenSet[ForwardedHeader] = field(default=ALL_FORWARDED_HEADERS)
    
    @classmethod
    def for_proxies(
        cls, proxy_cidrs: Iterable[str], trusted_headers: Optional[HeaderNames] = None
    ) -> "TrustPolicy":
        """
        Trust every listed subnet with the same set of headers.
        
        Raises:
            InvalidProxyAddressError: For malformed CIDRs
            InvalidForwardedHeaderNameError: For headers other than X-Forwarded-*
        """
        if isinstance(proxy_cidrs, str):
            proxy_cidrs = [proxy_cidrs]
        
        headers = _normalize_trusted_headers(trusted_headers)
        return cls(proxies=tuple(TrustedProxy(SubnetMatcher(cidr), headers) for cidr in proxy_cidrs))
    
    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Optional[HeaderNames]]) -> "TrustPolicy":
        """
        Trust each subnet with its own set of headers.
        
        Args:
            mapping: {cidr: trusted header names}, checked in mapping order;
                a None value trusts all forwarded headers
        
        Raises:
            InvalidProxyAddressError: For malformed CIDRs
            InvalidForwardedHeaderNameError: For headers other than X-Forwarded-*
        """
        return cls(
            proxies=tuple(
                TrustedProxy(SubnetMatcher(cidr), _normalize_trusted_headers(headers))
                for cidr, headers in mapping.items()
            )
        )
    
    @classmethod
    def any(cls, trusted_headers: Optional[HeaderNames] = None) -> "TrustPolicy":
        """Trust every peer with the given headers."""
        return cls(trust_any=True, any_headers=_normalize_trusted_headers(trusted_headers))
    
    def trusted_headers_for(self, address: str) -> Optional[FrozenSet[ForwardedHeader]]:
        """
        Return the headers the peer at address is trusted with.
        
        Returns:
            The trusted header set, or None if the peer is not a trusted proxy
        """
        if self.trust_any:
            return self.any_headers
        
        for proxy in self.proxies:
            if proxy.subnet.contains(address):
                return proxy.trusted_headers
        
        return None


class ServerRequestFilter(ABC):
    """
    Base interface for server request filters.
    
    A filter returns the request unchanged or a new, modified request.
    """
    
    @abstractmethod
    def __call__(self, request: ServerRequest) -> ServerRequest:
        """Filter a server request."""
        pass


class DoNotFilter(ServerRequestFilter):
    """Filter that returns every request unchanged."""
    
    def __call__(self, request: ServerRequest) -> ServerRequest:
        return request


class FilterUsingXForwardedHeaders(ServerRequestFilter):
    """
    Rewrite the request URI from X-Forwarded-* headers sent by trusted proxies.
    
    Only the headers the matched proxy is trusted with are considered, and
    a header whose value lists several entries (a comma) is ignored, since
    any hop of the chain could have added them. X-Forwarded-Proto only
    upgrades the scheme on an exact (case-insensitive) "https"; any other
    value means "http". A trusted X-Forwarded-Port wins over a port
    embedded in X-Forwarded-Host.
    
    Filtering never raises: whenever something cannot be trusted the
    request is returned as-is, as the same instance.
    """
    
    HEADER_HOST = ForwardedHeader.HOST
    HEADER_PORT = ForwardedHeader.PORT
    HEADER_PROTO = ForwardedHeader.PROTO
    
    DEFAULT_TRUSTED_HEADERS: FrozenSet[ForwardedHeader] = ALL_FORWARDED_HEADERS
    RESERVED_SUBNETS: Tuple[str, ...] = RESERVED_SUBNETS
    
    def __init__(self, policy: TrustPolicy) -> None:
        """
        Initialize FilterUsingXForwardedHeaders.
        
        Args:
            policy: Trust policy deciding which peers may set which headers
        """
        self._policy = policy
    
    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._policy!r})"
    
    @property
    def policy(self) -> TrustPolicy:
        return self._policy
    
    @classmethod
    def _headers_or_default(cls, trusted_headers: Optional[HeaderNames]) -> HeaderNames:
        if trusted_headers is None:
            return cls.DEFAULT_TRUSTED_HEADERS
        return trusted_headers
    
    @classmethod
    def trust_proxies(
        cls, proxy_cidrs: Iterable[str], trusted_headers: Optional[HeaderNames] = None
    ) -> "FilterUsingXForwardedHeaders":
        """
        Trust the given proxy subnets.
        
        Args:
            proxy_cidrs: IPv4/IPv6 addresses or CIDR subnets of trusted proxies
            trusted_headers: Forwarded headers to trust; all of them by default
        
        Raises:
            InvalidProxyAddressError: For malformed CIDRs
            InvalidForwardedHeaderNameError: For headers other than X-Forwarded-*
        """
        return cls(TrustPolicy.for_proxies(proxy_cidrs, cls._headers_or_default(trusted_headers)))
    
    @classmethod
    def trust_reserved_subnets(
        cls, trusted_headers: Optional[HeaderNames] = None
    ) -> "FilterUsingXForwardedHeaders":
        """
        Trust proxies on private, loopback and link-local networks.
        
        Raises:
            InvalidForwardedHeaderNameError: For headers other than X-Forwarded-*
        """
        return cls(
            TrustPolicy.for_proxies(cls.RESERVED_SUBNETS, cls._headers_or_default(trusted_headers))
        )
    
    @classmethod
    def trust_any(
        cls, trusted_headers: Optional[HeaderNames] = None
    ) -> "FilterUsingXForwardedHeaders":
        """
        Trust every peer.
        
        Only use this when the application is reachable exclusively
        through proxies you control.
        
        Raises:
            InvalidForwardedHeaderNameError: For headers other than X-Forwarded-*
        """
        return cls(TrustPolicy.any(cls._headers_or_default(trusted_headers)))
    
    def __call__(self, request: ServerRequest) -> ServerRequest:
        return self.apply(request)
    
    def apply(self, request: ServerRequest) -> ServerRequest:
        """
        Filter a server request.
        
        Returns:
            The same request when the peer is not trusted or no trusted
            header changes the URI; otherwise a new request with the
            resolved scheme, host and port.
        """
        remote_address = request.server_params.get("REMOTE_ADDR")
        if not isinstance(remote_address, str) or not remote_address:
            logger.debug("No REMOTE_ADDR server parameter; forwarded headers ignored")
            return request
        
        trusted = self._policy.trusted_headers_for(remote_address)
        if trusted is None:
            logger.debug(f"Peer {remote_address} is not a trusted proxy; forwarded headers ignored")
            return request
        
        original_uri = request.uri
        
        scheme = original_uri.scheme
        proto = self._trusted_value(request, self.HEADER_PROTO, trusted)
        if proto is not None:
            scheme = "https" if proto.lower() == "https" else "http"
        
        host: Optional[str] = None
        embedded_port: Optional[int] = None
        forwarded_host = self._trusted_value(request, self.HEADER_HOST, trusted)
        if forwarded_host:
            try:
                host, embedded_port = split_host_port(forwarded_host)
            except ValueError:
                logger.debug(f"Ignoring unparseable {self.HEADER_HOST.value} header")
        
        forwarded_port: Optional[int] = None
        port_value = self._trusted_value(request, self.HEADER_PORT, trusted)
        if port_value:
            try:
                forwarded_port = validate_port(port_value)
            except ValueError:
                logger.debug(f"Ignoring invalid {self.HEADER_PORT.value} header")
        
        uri = original_uri.with_scheme(scheme)
        if host is not None:
            uri = uri.with_host(host)
        if forwarded_port is not None:
            uri = uri.with_port(forwarded_port)
        elif embedded_port is not None:
            uri = uri.with_port(embedded_port)
        
        if uri == original_uri:
            return request
        
        logger.debug(f"Rewrote request URI from trusted proxy {remote_address}: {original_uri} -> {uri}")
        return request.with_uri(uri)
    
    def _trusted_value(
        self,
        request: ServerRequest,
        header: ForwardedHeader,
        trusted: FrozenSet[ForwardedHeader],
    ) -> Optional[str]:
        """Return the single value of a trusted forwarded header, if usable."""
        if header not in trusted or not request.has_header(header.value):
            return None
        
        value = request.get_header_line(header.value)
        if "," in value:
            logger.debug(f"Ignoring {header.value} header listing several values")
            return None
        
        return value
