"""
Network utilities for http_message_core.

This module provides small helpers for working with textual
addresses, hosts and ports: IPv6 literal detection, port
validation, and formatting/splitting of host[:port] authorities.
"""

import socket
from typing import Optional, Tuple, Union
from urllib.parse import urlsplit


def is_ipv6_address(host: str) -> bool:
    """
    Check if a host string is an IPv6 address.
    
    Args:
        host: Host string to check (without brackets)
    
    Returns:
        True if the host is an IPv6 address
    """
    try:
        socket.inet_pton(socket.AF_INET6, host)
        return True
    except (OSError, ValueError):
        return False


def validate_port(port: Union[int, str]) -> int:
    """
    Validate and convert port to integer.
    
    Args:
        port: Port number (int or string)
    
    Returns:
        Port as integer
    
    Raises:
        ValueError: If port is invalid
    """
    if isinstance(port, bool):
        raise ValueError(f"Invalid port: {port}")
    
    if isinstance(port, str) and not port.strip().isdigit():
        raise ValueError(f"Invalid port: {port}")
    
    try:
        port_int = int(port)
    except (ValueError, TypeError):
        raise ValueError(f"Invalid port: {port}")
    
    if not (1 <= port_int <= 65535):
        raise ValueError(f"Port must be between 1 and 65535, got {port_int}")
    
    return port_int


def format_host_header(host: str, port: Optional[int] = None) -> str:
    """
    Format a Host header value.
    
    Args:
        host: Hostname (IPv6 literals are expected in brackets already)
        port: Port to append, or None to omit it
    
    Returns:
        "host" or "host:port"
    """
    if port is None:
        return host
    return f"{host}:{port}"


def split_host_port(authority: str) -> Tuple[str, Optional[int]]:
    """
    Split a "host[:port]" authority into its parts.
    
    IPv6 literals must be enclosed in brackets and are returned with
    their brackets, ready to be used as a URI host.
    
    Args:
        authority: Authority string without scheme, user info or path
    
    Returns:
        Tuple of (lowercased host, port or None)
    
    Raises:
        ValueError: If the authority is empty, contains characters that do
            not belong in an authority, or carries an invalid port
    """
    if not authority or any(char in authority for char in "/?#@\\ \t"):
        raise ValueError(f"Invalid authority: {authority!r}")
    
    parsed = urlsplit(f"//{authority}")
    host = parsed.hostname
    if not host:
        raise ValueError(f"Invalid authority: {authority!r}")
    
    if ":" in host:
        host = f"[{host}]"
    
    # urlsplit accepts out-of-range ports and extra colons; check them ourselves
    port_text = parsed.netloc.rpartition("]")[2] if host.startswith("[") else parsed.netloc
    if port_text.count(":") > 1 or (port_text and not port_text.startswith(":") and host.startswith("[")):
        raise ValueError(f"Invalid authority: {authority!r}")
    
    _, sep, port_part = port_text.rpartition(":")
    if not sep or port_part == "":
        return host, None
    return host, validate_port(port_part)
