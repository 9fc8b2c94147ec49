"""
Header security for http_message_core.

Validation and filtering of header names and values against the
RFC 7230 grammar, preventing CRLF header injection (response
splitting). Values are treated as latin-1 text: every character
stands for one octet on the wire.

See: http://en.wikipedia.org/wiki/HTTP_response_splitting
"""

import re
from typing import Any, Union

from .exceptions import InvalidArgumentError

HeaderValue = Union[str, int, float]

# \n not preceded by \r, \r not followed by \n, or \r\n not followed
# by space or horizontal tab.
_CRLF_ATTACK = re.compile(r"(?:(?<!\r)\n)|(?:\r(?!\n))|(?:\r\n(?![ \t]))")

# HT, LF, CR, visible ASCII and obs-text; DEL (127) and 255 are excluded.
_INVALID_VALUE_CHAR = re.compile(r"[^\x09\x0a\x0d\x20-\x7e\x80-\xfe]")

_TOKEN = re.compile(r"[a-zA-Z0-9'`#$%&*+.^_|~!-]+")


def filter_value(value: str) -> str:
    """
    Filter a header value.
    
    Only visible characters, spaces and horizontal tabs survive;
    a continuation (CRLF followed by a space or horizontal tab) is
    kept as-is. Every other CR, LF and control character is dropped.
    
    This filter is lossy.
    
    Args:
        value: Raw header value
    
    Returns:
        The filtered value
    """
    length = len(value)
    result = []
    i = 0
    
    while i < length:
        char = value[i]
        code = ord(char)
        
        # Detect continuation sequences
        if code == 13:
            if value[i + 1:i + 2] == "\n" and value[i + 2:i + 3] in ("\t", " "):
                result.append("\r\n")
                i += 2
                continue
            i += 1
            continue
        
        # 9 is horizontal tab, 127 is DEL, 255 is outside obs-text
        if (code < 32 and code != 9) or code == 127 or code > 254:
            i += 1
            continue
        
        result.append(char)
        i += 1
    
    return "".join(result)


def is_valid(value: HeaderValue) -> bool:
    """
    Validate a header value.
    
    Header continuations must consist of a single CRLF sequence
    followed by a space or horizontal tab.
    
    Args:
        value: Header value; numbers are checked in their text form
    
    Returns:
        True if the value is safe to emit
    """
    value = str(value)
    
    if _CRLF_ATTACK.search(value):
        return False
    
    if _INVALID_VALUE_CHAR.search(value):
        return False
    
    return True


def assert_valid(value: Any) -> None:
    """
    Assert a header value is valid.
    
    Args:
        value: Value to be tested; must be a string or a number
    
    Raises:
        InvalidArgumentError: For invalid values
    """
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        raise InvalidArgumentError(
            "Invalid header value type; must be a string or numeric; "
            f"received {type(value).__name__}"
        )
    
    if not is_valid(value):
        raise InvalidArgumentError(f"{value!r} is not valid header value")


def assert_valid_name(name: Any) -> None:
    """
    Assert a header name is a valid RFC 7230 token.
    
    See: http://tools.ietf.org/html/rfc7230#section-3.2
    
    Raises:
        InvalidArgumentError: For non-string or non-token names
    """
    if not isinstance(name, str):
        raise InvalidArgumentError(
            f"Invalid header name type; expected string; received {type(name).__name__}"
        )
    
    if not _TOKEN.fullmatch(name):
        raise InvalidArgumentError(f"{name!r} is not valid header name")


def is_token(value: str) -> bool:
    """Check whether a string is a non-empty RFC 7230 token."""
    return bool(_TOKEN.fullmatch(value))
