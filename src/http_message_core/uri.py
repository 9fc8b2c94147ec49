"""
URI value type for http_message_core.

Uri is an immutable representation of an RFC 3986 URI restricted to
the http and https schemes. Every with_* method validates its input
and returns a new instance; when nothing changes the same instance
is returned, which lets callers detect a no-op by identity.
"""

import re
from typing import Any, Dict, Optional, Tuple, Union
from urllib.parse import quote, urlsplit

from typing_extensions import Final

from .exceptions import InvalidArgumentError
from .network.utils import split_host_port, validate_port

_UNRESERVED = r"a-zA-Z0-9_\-\.~"
_SUB_DELIMS = r"!\$&'\(\)\*\+,;="

_PATH_ESCAPE = re.compile(r"(?:[^" + _UNRESERVED + r")(:@&=\+\$,/;%]+|%(?![A-Fa-f0-9]{2}))")
_QUERY_ESCAPE = re.compile(
    r"(?:[^" + _UNRESERVED + _SUB_DELIMS + r"%:@/\?]+|%(?![A-Fa-f0-9]{2}))"
)
_USER_INFO_ESCAPE = re.compile(r"(?:[^%" + _UNRESERVED + _SUB_DELIMS + r"]+|%(?![A-Fa-f0-9]{2}))")


def _encode(pattern: "re.Pattern[str]", value: str) -> str:
    """Percent-encode everything the pattern matches, leaving %XX escapes alone."""
    return pattern.sub(lambda match: quote(match.group(0), safe=""), value)


class Uri:
    """
    Immutable URI value.
    
    The stored port is kept as given; the port property reports None
    when it equals the default port of the current scheme, so that
    "http://example.com:80/" and "http://example.com/" compare and
    serialize the same way.
    """
    
    DEFAULT_PORTS: Final[Dict[str, int]] = {
        "http": 80,
        "https": 443,
    }
    
    __slots__ = ("_scheme", "_user_info", "_host", "_port", "_path", "_query", "_fragment")
    
    def __init__(self, uri: str = "") -> None:
        """
        Parse a URI string.
        
        Args:
            uri: Absolute or relative URI; empty for an empty URI
        
        Raises:
            InvalidArgumentError: If the string is malformed, uses an
                unsupported scheme, or carries an invalid port
        """
        if not isinstance(uri, str):
            raise InvalidArgumentError(
                f"URI must be a string; received {type(uri).__name__}"
            )
        
        scheme = user_info = host = path = query = fragment = ""
        port: Optional[int] = None
        
        if uri:
            try:
                parsed = urlsplit(uri)
                user_info, _, host_port = parsed.netloc.rpartition("@")
                if host_port:
                    host, port = split_host_port(host_port)
            except ValueError as exc:
                raise InvalidArgumentError(
                    f"The source URI string appears to be malformed: {uri!r}", cause=exc
                ) from exc
            
            scheme = self._filter_scheme(parsed.scheme)
            user_info = self._filter_user_info(*user_info.split(":", 1))
            path = self._filter_path(parsed.path)
            query = self._filter_query(parsed.query)
            fragment = self._filter_fragment(parsed.fragment)
        
        self._scheme = scheme
        self._user_info = user_info
        self._host = host
        self._port = port
        self._path = path
        self._query = query
        self._fragment = fragment
    
    def __setattr__(self, name: str, value: Any) -> None:
        if hasattr(self, name):
            raise AttributeError(f"{type(self).__name__} is immutable")
        object.__setattr__(self, name, value)
    
    def _replace(self, **changes: Any) -> "Uri":
        """Clone this URI with some private fields replaced."""
        new = Uri.__new__(Uri)
        for slot in self.__slots__:
            object.__setattr__(new, slot, changes.get(slot, getattr(self, slot)))
        return new
    
    def _components(self) -> Tuple[Any, ...]:
        return (
            self._scheme,
            self._user_info,
            self._host,
            self.port,
            self._path,
            self._query,
            self._fragment,
        )
    
    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Uri):
            return NotImplemented
        return self._components() == other._components()
    
    def __hash__(self) -> int:
        return hash(self._components())
    
    def __repr__(self) -> str:
        return f"Uri({str(self)!r})"
    
    def __str__(self) -> str:
        uri = ""
        
        if self._scheme:
            uri += f"{self._scheme}:"
        
        authority = self.authority
        if authority:
            uri += f"//{authority}"
        
        path = self._path
        if path:
            if authority and not path.startswith("/"):
                path = "/" + path
            elif not authority and path.startswith("//"):
                path = "/" + path.lstrip("/")
            uri += path
        
        if self._query:
            uri += f"?{self._query}"
        
        if self._fragment:
            uri += f"#{self._fragment}"
        
        return uri
    
    @property
    def scheme(self) -> str:
        return self._scheme
    
    @property
    def user_info(self) -> str:
        return self._user_info
    
    @property
    def host(self) -> str:
        return self._host
    
    @property
    def port(self) -> Optional[int]:
        """The port, or None if absent or the default for the scheme."""
        if self._port is None or self.is_standard_port(self._scheme, self._port):
            return None
        return self._port
    
    @property
    def path(self) -> str:
        return self._path
    
    @property
    def query(self) -> str:
        return self._query
    
    @property
    def fragment(self) -> str:
        return self._fragment
    
    @property
    def authority(self) -> str:
        """The "[user-info@]host[:port]" authority, or "" without a host."""
        if not self._host:
            return ""
        
        authority = self._host
        if self._user_info:
            authority = f"{self._user_info}@{authority}"
        
        port = self.port
        if port is not None:
            authority += f":{port}"
        
        return authority
    
    @classmethod
    def is_standard_port(cls, scheme: str, port: Optional[int]) -> bool:
        """Check whether port is the default port of scheme."""
        return port is not None and cls.DEFAULT_PORTS.get(scheme) == port
    
    def with_scheme(self, scheme: str) -> "Uri":
        """
        Return a URI with the given scheme.
        
        Raises:
            InvalidArgumentError: For non-string or unsupported schemes
        """
        if not isinstance(scheme, str):
            raise InvalidArgumentError(
                f"Scheme must be a string; received {type(scheme).__name__}"
            )
        
        scheme = self._filter_scheme(scheme)
        if scheme == self._scheme:
            return self
        return self._replace(_scheme=scheme)
    
    def with_user_info(self, user: str, password: Optional[str] = None) -> "Uri":
        """Return a URI with the given user and optional password."""
        if not isinstance(user, str):
            raise InvalidArgumentError(
                f"User must be a string; received {type(user).__name__}"
            )
        if password is not None and not isinstance(password, str):
            raise InvalidArgumentError(
                f"Password must be a string; received {type(password).__name__}"
            )
        
        info = self._filter_user_info(user, password)
        if info == self._user_info:
            return self
        return self._replace(_user_info=info)
    
    def with_host(self, host: str) -> "Uri":
        """Return a URI with the given (lowercased) host."""
        if not isinstance(host, str):
            raise InvalidArgumentError(
                f"Host must be a string; received {type(host).__name__}"
            )
        
        host = host.lower()
        if host == self._host:
            return self
        return self._replace(_host=host)
    
    def with_port(self, port: Union[int, str, None]) -> "Uri":
        """
        Return a URI with the given port.
        
        Args:
            port: Port number, numeric string, or None to remove it
        
        Raises:
            InvalidArgumentError: For ports outside 1-65535
        """
        if port is not None:
            try:
                port = validate_port(port)
            except ValueError as exc:
                raise InvalidArgumentError(
                    f"Invalid port {port!r} specified; must be a valid TCP/UDP port",
                    cause=exc,
                ) from exc
        
        if port == self._port:
            return self
        return self._replace(_port=port)
    
    def with_path(self, path: str) -> "Uri":
        """
        Return a URI with the given path.
        
        Raises:
            InvalidArgumentError: If the path carries a query or fragment
        """
        if not isinstance(path, str):
            raise InvalidArgumentError(
                f"Path must be a string; received {type(path).__name__}"
            )
        if "?" in path:
            raise InvalidArgumentError("Invalid path provided; must not contain a query string")
        if "#" in path:
            raise InvalidArgumentError("Invalid path provided; must not contain a URI fragment")
        
        path = self._filter_path(path)
        if path == self._path:
            return self
        return self._replace(_path=path)
    
    def with_query(self, query: str) -> "Uri":
        """
        Return a URI with the given query (a leading "?" is dropped).
        
        Raises:
            InvalidArgumentError: If the query carries a fragment
        """
        if not isinstance(query, str):
            raise InvalidArgumentError(
                f"Query string must be a string; received {type(query).__name__}"
            )
        if "#" in query:
            raise InvalidArgumentError("Query string must not include a URI fragment")
        
        query = self._filter_query(query)
        if query == self._query:
            return self
        return self._replace(_query=query)
    
    def with_fragment(self, fragment: str) -> "Uri":
        """Return a URI with the given fragment (a leading "#" is dropped)."""
        if not isinstance(fragment, str):
            raise InvalidArgumentError(
                f"Fragment must be a string; received {type(fragment).__name__}"
            )
        
        fragment = self._filter_fragment(fragment)
        if fragment == self._fragment:
            return self
        return self._replace(_fragment=fragment)
    
    def _filter_scheme(self, scheme: str) -> str:
        scheme = re.sub(r":(//)?$", "", scheme.lower())
        if not scheme:
            return ""
        
        if scheme not in self.DEFAULT_PORTS:
            raise InvalidArgumentError(
                f"Unsupported scheme {scheme!r}; must be any empty string or in the set "
                f"({', '.join(self.DEFAULT_PORTS)})"
            )
        return scheme
    
    @staticmethod
    def _filter_user_info(user: str, password: Optional[str] = None) -> str:
        info = _encode(_USER_INFO_ESCAPE, user)
        if password:
            info += ":" + _encode(_USER_INFO_ESCAPE, password)
        return info
    
    @staticmethod
    def _filter_path(path: str) -> str:
        path = _encode(_PATH_ESCAPE, path)
        if path.startswith("/"):
            # Ensure only one leading slash, to prevent XSS attempts
            return "/" + path.lstrip("/")
        return path
    
    @staticmethod
    def _filter_query(query: str) -> str:
        if query.startswith("?"):
            query = query[1:]
        return _encode(_QUERY_ESCAPE, query)
    
    @staticmethod
    def _filter_fragment(fragment: str) -> str:
        if fragment.startswith("#"):
            fragment = fragment[1:]
        return _encode(_QUERY_ESCAPE, fragment)
