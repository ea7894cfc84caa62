"""CIDR helpers for checking the spoke address plan"""

import ipaddress
from itertools import combinations
from typing import Iterable


def parse_prefix(prefix: str):
    """Parse a CIDR prefix, rejecting host bits (10.0.0.1/24 is an error)."""
    return ipaddress.ip_network(prefix, strict=True)


def is_ip_address(value: str) -> bool:
    try:
        ipaddress.ip_address(value)
    except ValueError:
        return False
    return True


def is_address_or_prefix(value: str) -> bool:
    """True for 10.0.2.4 or 10.0.2.0/26, false for service tags such as VirtualNetwork."""
    try:
        ipaddress.ip_network(value, strict=False)
    except ValueError:
        return False
    return True


def contained_in(prefix: str, address_space: Iterable[str]) -> bool:
    net = parse_prefix(prefix)
    for space in address_space:
        outer = parse_prefix(space)
        if net.version == outer.version and net.subnet_of(outer):
            return True
    return False


def overlapping(prefixes: Iterable[str]) -> list[tuple[str, str]]:
    """Every pair of prefixes that share at least one address."""
    pairs = []
    for left, right in combinations(prefixes, 2):
        if parse_prefix(left).overlaps(parse_prefix(right)):
            pairs.append((left, right))
    return pairs
