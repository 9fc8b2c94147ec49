"""
Network address components for http_message_core.

This module provides the address-level helpers used by the URI model
and the proxy trust filter: CIDR subnet matching and small utilities
for hosts and ports.
"""

from .subnet import RESERVED_SUBNETS, SubnetMatcher, parse_address
from .utils import (
    format_host_header,
    is_ipv6_address,
    split_host_port,
    validate_port,
)

__all__ = [
    "RESERVED_SUBNETS",
    "SubnetMatcher",
    "parse_address",
    "format_host_header",
    "is_ipv6_address",
    "split_host_port",
    "validate_port",
]
