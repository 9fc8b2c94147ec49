"""
Header storage for http_message_core.

HeaderStore is the case-insensitive, order-preserving header map
embedded in every message. It is immutable: every mutator validates
its input and returns a new store, leaving the original untouched.
"""

from typing import (
    Any,
    Dict,
    Iterable,
    Iterator,
    List,
    Mapping,
    Optional,
    Sequence,
    Tuple,
    Union,
)

from . import header_security
from .exceptions import InvalidArgumentError

HeaderValues = Union[header_security.HeaderValue, Sequence[header_security.HeaderValue]]
HeadersInput = Union[
    Mapping[str, HeaderValues],
    Iterable[Tuple[str, HeaderValues]],
]


def _filter_header_values(values: Any) -> Tuple[str, ...]:
    """Validate and normalize one or many header values."""
    if isinstance(values, (list, tuple)):
        values = list(values)
    else:
        values = [values]
    
    if not values:
        raise InvalidArgumentError(
            "Invalid header value: must be a string or list of strings; "
            "cannot be an empty list"
        )
    
    filtered = []
    for value in values:
        header_security.assert_valid(value)
        value = str(value)
        
        # Normalize line folding to a single space (RFC 7230#3.2.4)
        value = value.replace("\r\n\t", " ").replace("\r\n ", " ")
        
        # Remove optional whitespace (OWS, RFC 7230#3.2.3)
        filtered.append(value.strip("\t "))
    
    return tuple(filtered)


class HeaderStore:
    """
    Immutable, case-insensitive header map.
    
    Header names keep the casing they were first registered with;
    lookups ignore case. Values are kept as ordered tuples of
    validated strings and a name is never stored without values.
    """
    
    __slots__ = ("_names", "_values")
    
    def __init__(self, headers: Optional[HeadersInput] = None) -> None:
        """
        Initialize HeaderStore.
        
        Args:
            headers: Optional mapping of name to value(s), or an iterable
                of (name, value) pairs. Repeated names accumulate values.
        
        Raises:
            InvalidArgumentError: For invalid header names or values
        """
        self._names: Dict[str, str] = {}
        self._values: Dict[str, Tuple[str, ...]] = {}
        
        if headers is None:
            return
        
        items = headers.items() if isinstance(headers, Mapping) else headers
        for name, value in items:
            header_security.assert_valid_name(name)
            values = _filter_header_values(value)
            normalized = name.lower()
            existing = self._names.get(normalized)
            if existing is None:
                self._names[normalized] = name
                self._values[name] = values
            else:
                self._values[existing] = self._values[existing] + values
    
    @classmethod
    def _from_state(
        cls, names: Dict[str, str], values: Dict[str, Tuple[str, ...]]
    ) -> "HeaderStore":
        store = cls.__new__(cls)
        store._names = names
        store._values = values
        return store
    
    def __setattr__(self, name: str, value: Any) -> None:
        if hasattr(self, name):
            raise AttributeError(f"{type(self).__name__} is immutable")
        object.__setattr__(self, name, value)
    
    def __eq__(self, other: object) -> bool:
        if not isinstance(other, HeaderStore):
            return NotImplemented
        return self._values == other._values
    
    def __hash__(self) -> int:
        return hash(tuple(self._values.items()))
    
    def __repr__(self) -> str:
        return f"HeaderStore({self.as_dict()!r})"
    
    def __len__(self) -> int:
        return len(self._values)
    
    def __iter__(self) -> Iterator[str]:
        return iter(self._values)
    
    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.has_header(name)
    
    def as_dict(self) -> Dict[str, List[str]]:
        """Return a copy of all headers as {name: [values]}."""
        return {name: list(values) for name, values in self._values.items()}
    
    def items(self) -> List[Tuple[str, str]]:
        """Return every (name, value) pair in order, one pair per value."""
        return [(name, value) for name, values in self._values.items() for value in values]
    
    def has_header(self, name: str) -> bool:
        """Check if a header exists (case-insensitive)."""
        return name.lower() in self._names
    
    def get_header(self, name: str) -> List[str]:
        """
        Get all values of a header (case-insensitive).
        
        Returns:
            List of values; empty if the header is absent
        """
        original = self._names.get(name.lower())
        if original is None:
            return []
        return list(self._values[original])
    
    def get_header_line(self, name: str) -> str:
        """
        Get the values of a header joined with a comma.
        
        Not every header can be represented with comma concatenation
        (Set-Cookie, or values that contain commas themselves); use
        get_header() for those and join them yourself.
        
        Returns:
            Comma-joined values; empty string if the header is absent
        """
        return ",".join(self.get_header(name))
    
    def with_header(self, name: str, value: HeaderValues) -> "HeaderStore":
        """
        Return a store with the header replaced.
        
        Existing values under any casing of the name are dropped and the
        new casing is kept.
        
        Raises:
            InvalidArgumentError: For invalid header names or values
        """
        header_security.assert_valid_name(name)
        values = _filter_header_values(value)
        normalized = name.lower()
        
        names = dict(self._names)
        header_values = dict(self._values)
        
        existing = names.get(normalized)
        if existing is not None:
            del header_values[existing]
        
        names[normalized] = name
        header_values[name] = values
        return self._from_state(names, header_values)
    
    def with_added_header(self, name: str, value: HeaderValues) -> "HeaderStore":
        """
        Return a store with values appended to a header.
        
        The casing the header was first registered with is kept. If the
        header is absent this behaves like with_header().
        
        Raises:
            InvalidArgumentError: For invalid header names or values
        """
        header_security.assert_valid_name(name)
        
        existing = self._names.get(name.lower())
        if existing is None:
            return self.with_header(name, value)
        
        values = _filter_header_values(value)
        header_values = dict(self._values)
        header_values[existing] = header_values[existing] + values
        return self._from_state(dict(self._names), header_values)
    
    def without_header(self, name: str) -> "HeaderStore":
        """Return a store without the header (case-insensitive)."""
        if name == "" or not self.has_header(name):
            return self
        
        normalized = name.lower()
        names = dict(self._names)
        header_values = dict(self._values)
        original = names.pop(normalized)
        del header_values[original]
        return self._from_state(names, header_values)
