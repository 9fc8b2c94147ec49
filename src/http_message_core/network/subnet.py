"""
CIDR subnet matching for http_message_core.

SubnetMatcher answers one question: does a textual IPv4/IPv6 address
belong to a configured subnet? The subnet is held as an ipaddress
network, and membership is only tested for addresses of its own family.
"""

import ipaddress
from typing import Optional, Tuple, Union

from typing_extensions import Final

from ..exceptions import InvalidProxyAddressError

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]
IPNetwork = Union[ipaddress.IPv4Network, ipaddress.IPv6Network]

# Private, loopback and link-local ranges of both address families.
RESERVED_SUBNETS: Final[Tuple[str, ...]] = (
    "10.0.0.0/8",
    "127.0.0.0/8",
    "172.16.0.0/12",
    "192.168.0.0/16",
    "::1/128",
    "fc00::/7",
    "fe80::/10",
)


def parse_address(address: str) -> Optional[IPAddress]:
    """
    Parse a textual IP address.
    
    IPv6 addresses may be given in brackets, as they appear in URIs.
    
    Returns:
        The parsed address, or None if address is not an IP address
    """
    if not isinstance(address, str):
        return None
    
    address = address.strip()
    if address.startswith("[") and address.endswith("]"):
        address = address[1:-1]
    
    try:
        return ipaddress.ip_address(address)
    except ValueError:
        return None


class SubnetMatcher:
    """
    Immutable CIDR membership test.
    
    A CIDR without a "/prefix" denotes a single address. Host bits
    below the prefix are allowed and ignored, so "192.168.1.7/24"
    matches the same addresses as "192.168.1.0/24".
    """
    
    __slots__ = ("_cidr", "_network")
    
    def __init__(self, cidr: str) -> None:
        """
        Initialize SubnetMatcher.
        
        Args:
            cidr: Subnet in "address/prefix" or plain "address" notation
        
        Raises:
            InvalidProxyAddressError: If cidr is not a valid IPv4/IPv6 CIDR
        """
        if not isinstance(cidr, str) or not cidr:
            raise InvalidProxyAddressError(cidr)
        
        address_text, sep, prefix_text = cidr.partition("/")
        address = parse_address(address_text)
        if address is None or address_text != address_text.strip():
            raise InvalidProxyAddressError(cidr)
        
        # ip_network also takes netmasks after the slash; only digits are a prefix
        if sep and not (prefix_text.isascii() and prefix_text.isdigit()):
            raise InvalidProxyAddressError(cidr)
        
        prefix = int(prefix_text) if sep else address.max_prefixlen
        try:
            network = ipaddress.ip_network((address, prefix), strict=False)
        except ValueError as exc:
            raise InvalidProxyAddressError(cidr) from exc
        
        object.__setattr__(self, "_cidr", cidr)
        object.__setattr__(self, "_network", network)
    
    def __setattr__(self, name: str, value: object) -> None:
        raise AttributeError(f"{type(self).__name__} is immutable")
    
    def __repr__(self) -> str:
        return f"SubnetMatcher({self._cidr!r})"
    
    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SubnetMatcher):
            return NotImplemented
        return self._network == other._network
    
    def __hash__(self) -> int:
        return hash(self._network)
    
    @property
    def cidr(self) -> str:
        return self._cidr
    
    @property
    def network(self) -> IPNetwork:
        return self._network
    
    @property
    def prefix_length(self) -> int:
        return self._network.prefixlen
    
    def contains(self, address: Union[str, IPAddress]) -> bool:
        """
        Check whether an address belongs to this subnet.
        
        Addresses of the other family, and strings that are not IP
        addresses at all, never match.
        """
        if isinstance(address, str):
            parsed = parse_address(address)
        else:
            parsed = address
        
        # ip_network membership does not compare address families
        if parsed is None or parsed.version != self._network.version:
            return False
        
        return parsed in self._network
    
    def __contains__(self, address: object) -> bool:
        if not isinstance(address, (str, ipaddress.IPv4Address, ipaddress.IPv6Address)):
            return False
        return self.contains(address)
