"""
Custom exceptions for http_message_core.

This module defines the exception hierarchy used throughout
the library for error handling and debugging.
"""

from typing import Optional


class HTTPMessageError(Exception):
    """Base exception for all http_message_core errors."""
    
    def __init__(self, message: str, cause: Optional[Exception] = None) -> None:
        super().__init__(message)
        self.message = message
        self.cause = cause


class InvalidArgumentError(HTTPMessageError, ValueError):
    """
    Raised when a message, header, URI or filter receives an invalid value.
    
    Also a ValueError, so callers validating plain input can catch
    either type.
    """


class InvalidProxyAddressError(InvalidArgumentError):
    """Raised when a trusted proxy address is not a valid IP or CIDR."""
    
    def __init__(self, address: object, cause: Optional[Exception] = None) -> None:
        super().__init__(
            f"Invalid proxy address: {address!r} is not a valid IPv4/IPv6 address or CIDR",
            cause,
        )
        self.address = address


class InvalidForwardedHeaderNameError(InvalidArgumentError):
    """Raised when a trusted header is not one of the X-Forwarded-* headers."""
    
    def __init__(self, name: object, cause: Optional[Exception] = None) -> None:
        super().__init__(
            f"Invalid forwarded header name: {name!r}; expected one of "
            "X-Forwarded-Host, X-Forwarded-Port, X-Forwarded-Proto",
            cause,
        )
        self.name = name
