"""Well-known public DNS resolvers."""

from ipaddress import IPv4Address, IPv6Address, ip_address

CLOUDFLARE = "cloudflare-dns.com"
GOOGLE = "dns.google"
QUAD9 = "dns.quad9.net"

ALIDNS_IPS: tuple[IPv4Address | IPv6Address, ...] = (
    ip_address("223.5.5.5"),
    ip_address("223.6.6.6"),
    ip_address("2400:3200:baba::1"),
    ip_address("2400:3200::1"),
)
ALIDNS = "dns.alidns.com"

DNSPOD_IPS: tuple[IPv4Address | IPv6Address, ...] = (
    ip_address("119.29.29.29"),
    ip_address("2402:4e00::"),
)