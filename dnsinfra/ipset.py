"""Sets of IP networks with aggregation and membership tests."""

from __future__ import annotations

import ipaddress
from collections.abc import Iterable, Iterator
from typing import Union

Network = Union[ipaddress.IPv4Network, ipaddress.IPv6Network]
Address = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]


def _to_network(value: object) -> Network:
    if isinstance(value, (ipaddress.IPv4Network, ipaddress.IPv6Network)):
        return value
    if isinstance(value, (ipaddress.IPv4Address, ipaddress.IPv6Address)):
        return ipaddress.ip_network(value)
    return ipaddress.ip_network(str(value), strict=False)


def _to_target(value: object) -> Network | Address:
    if isinstance(
        value,
        (
            ipaddress.IPv4Network,
            ipaddress.IPv6Network,
            ipaddress.IPv4Address,
            ipaddress.IPv6Address,
        ),
    ):
        return value
    text = str(value)
    if "/" in text:
        return ipaddress.ip_network(text, strict=False)
    return ipaddress.ip_address(text)


def _aggregate(nets: Iterable[object]) -> list[Network]:
    networks = [_to_network(net) for net in nets]
    v4 = [net for net in networks if net.version == 4]
    v6 = [net for net in networks if net.version == 6]
    return [*ipaddress.collapse_addresses(v4), *ipaddress.collapse_addresses(v6)]


class IpSet:
    """A list of IP networks, aggregated when built."""

    def __init__(self, nets: Iterable[object] = ()) -> None:
        self._nets: list[Network] = _aggregate(nets)

    def contains(self, other: object) -> bool:
        """Whether an address or a whole network lies inside one of the networks."""
        target = _to_target(other)
        if isinstance(target, (ipaddress.IPv4Network, ipaddress.IPv6Network)):
            return any(
                net.version == target.version and target.subnet_of(net)
                for net in self._nets
            )
        return any(target in net for net in self._nets)

    __contains__ = contains

    def compact(self) -> IpSet:
        """Return a new set with overlapping and adjacent networks merged."""
        return IpSet(self._nets)

    def __add__(self, other: object) -> IpSet:
        if isinstance(other, IpSet):
            return IpSet([*self._nets, *other._nets])
        return IpSet([*self._nets, _to_network(other)])

    def __iadd__(self, other: object) -> IpSet:
        self._nets.append(_to_network(other))
        return self

    def __iter__(self) -> Iterator[Network]:
        return iter(self._nets)

    def __len__(self) -> int:
        return len(self._nets)

    def __getitem__(self, index: int) -> Network:
        return self._nets[index]

    def __eq__(self, other: object) -> bool:
        if isinstance(other, IpSet):
            return self._nets == other._nets
        return NotImplemented

    def __repr__(self) -> str:
        return f"IpSet({[str(net) for net in self._nets]!r})"


def to_ip_set(nets: Iterable[object]) -> IpSet:
    """Build an aggregated IpSet from networks or their text form."""
    return IpSet(nets)