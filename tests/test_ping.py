import asyncio
import contextlib
import ipaddress
import socket

import pytest

from dnsinfra.ping import (
    DurationAgg,
    PingAddr,
    PingAddrParseError,
    PingError,
    PingKind,
    PingNoAddress,
    PingOptions,
    PingOutput,
    PingTimeout,
    aggregate,
    ping,
    ping_fastest,
    ping_one,
)


@contextlib.asynccontextmanager
async def serve(handler):
    server = await asyncio.start_server(handler, "127.0.0.1", 0)
    port = server.sockets[0].getsockname()[1]
    try:
        yield port
    finally:
        server.close()
        await server.wait_closed()


async def close_at_once(reader, writer):
    writer.close()


async def http_ok(reader, writer):
    await reader.readline()
    writer.write(b"HTTP/1.1 200 OK\r\n\r\n")
    await writer.drain()
    writer.close()


async def silent(reader, writer):
    await reader.read()
    writer.close()


def closed_port():
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


def test_ping_addr_equation():
    assert PingAddr.parse("127.0.0.1") == ipaddress.ip_address("127.0.0.1")
    assert PingAddr.parse("tcp://223.5.5.5:80") == ipaddress.IPv4Address("223.5.5.5")


def test_parse_ping_addr_icmp():
    a = PingAddr.parse("127.0.0.1")
    assert a.kind is PingKind.ICMP
    assert a.ip() == ipaddress.ip_address("127.0.0.1")
    b = PingAddr.parse("icmp://127.0.0.1")
    assert b.kind is PingKind.ICMP
    assert b.ip() == ipaddress.ip_address("127.0.0.1")


def test_parse_ping_addr_icmp_ipv6():
    a = PingAddr.parse("::1")
    assert a.kind is PingKind.ICMP and a.ip() == ipaddress.ip_address("::1")
    b = PingAddr.parse("icmp://::1")
    assert b.kind is PingKind.ICMP and b.ip() == ipaddress.ip_address("::1")


def test_parse_ping_addr_tcp():
    c = PingAddr.parse("tcp://223.5.5.5:80")
    assert c == PingAddr(PingKind.TCP, ipaddress.ip_address("223.5.5.5"), 80)


def test_parse_ping_addr_tcp_ipv6():
    c = PingAddr.parse("tcp://[fe80::ec37:e7ff:fe56:bba7]:80")
    assert c.kind is PingKind.TCP
    assert c.ip() == ipaddress.ip_address("fe80::ec37:e7ff:fe56:bba7")
    assert c.port == 80


def test_parse_ping_addr_tcp_err():
    with pytest.raises(PingAddrParseError):
        PingAddr.parse("tcp://223.5.5.5")


def test_parse_ping_addr_http():
    c = PingAddr.parse("http://223.5.5.5:80")
    assert c == PingAddr(PingKind.HTTP, ipaddress.ip_address("223.5.5.5"), 80)


def test_parse_ping_addr_http_omit_port():
    c = PingAddr.parse("http://223.5.5.5")
    assert c == PingAddr(PingKind.HTTP, ipaddress.ip_address("223.5.5.5"), 80)


def test_parse_ping_addr_https():
    c = PingAddr.parse("https://223.5.5.5:4431")
    assert c == PingAddr(PingKind.HTTPS, ipaddress.ip_address("223.5.5.5"), 4431)


def test_parse_ping_addr_https_omit_port():
    c = PingAddr.parse("https://223.5.5.5")
    assert c == PingAddr(PingKind.HTTPS, ipaddress.ip_address("223.5.5.5"), 443)


@pytest.mark.parametrize(
    "text",
    ["not-an-ip", "tcp://1.2.3.4:70000", "tcp://[::1]", "http://host.invalid"],
)
def test_parse_errors_are_value_errors(text):
    with pytest.raises(ValueError):
        PingAddr.parse(text)


@pytest.mark.parametrize(
    ("text", "shown"),
    [
        ("127.0.0.1", "icmp://127.0.0.1"),
        ("icmp://::1", "icmp://::1"),
        ("tcp://[fe80::ec37:e7ff:fe56:bba7]:80", "tcp://[fe80::ec37:e7ff:fe56:bba7]:80"),
        ("http://223.5.5.5", "http://223.5.5.5:80"),
        ("  https://223.5.5.5  ", "https://223.5.5.5:443"),
    ],
)
def test_display(text, shown):
    assert str(PingAddr.parse(text)) == shown


def test_display_round_trip_and_hash():
    a = PingAddr.parse("tcp://[::1]:53")
    b = PingAddr.parse(str(a))
    assert a == b
    assert len({a, b}) == 1


def test_kinds_differ():
    assert PingAddr.parse("tcp://1.2.3.4:80") != PingAddr.parse("http://1.2.3.4:80")


def test_aggregate():
    durations = [1.0, 3.0, 2.0]
    assert aggregate(durations, DurationAgg.MIN) == 1.0
    assert aggregate(durations, DurationAgg.MAX) == 3.0
    assert aggregate(durations, DurationAgg.MEAN) == 2.0
    assert aggregate([], DurationAgg.MEAN) is None
    assert aggregate([], DurationAgg.MIN) is None


@pytest.mark.asyncio
async def test_tcp_ping_success():
    async with serve(close_at_once) as port:
        out = await ping_one(f"tcp://127.0.0.1:{port}", PingOptions(times=3, timeout=3))
    assert isinstance(out, PingOutput)
    assert out.destination == PingAddr.parse(f"tcp://127.0.0.1:{port}")
    assert out.seq == 0
    assert 0 <= out.duration < 3


@pytest.mark.asyncio
async def test_tcp_ping_refused():
    with pytest.raises(PingError) as info:
        await ping_one(
            f"tcp://127.0.0.1:{closed_port()}", PingOptions(timeout=3, all_success=True)
        )
    assert not isinstance(info.value, PingNoAddress)


@pytest.mark.asyncio
async def test_all_failures_raise_last_error():
    with pytest.raises(PingError) as info:
        await ping_one(f"tcp://127.0.0.1:{closed_port()}", PingOptions(times=2, timeout=3))
    assert not isinstance(info.value, PingNoAddress)


@pytest.mark.asyncio
async def test_zero_times_raises_no_address():
    with pytest.raises(PingNoAddress) as info:
        await ping_one("tcp://127.0.0.1:9", PingOptions(times=0))
    assert str(info.value) == "No address"


@pytest.mark.asyncio
async def test_http_ping_success():
    async with serve(http_ok) as port:
        dest = PingAddr.parse(f"http://127.0.0.1:{port}")
        out = await ping_one(dest, PingOptions(timeout=3))
    assert out.destination == dest
    assert out.duration >= 0


@pytest.mark.asyncio
async def test_http_ping_timeout():
    async with serve(silent) as port:
        with pytest.raises(PingTimeout) as info:
            await ping_one(f"http://127.0.0.1:{port}", PingOptions(timeout=0.2))
    assert str(info.value) == "Ping timeout"


@pytest.mark.asyncio
async def test_ping_many_keeps_order():
    refused = closed_port()
    async with serve(close_at_once) as port:
        results = await ping(
            [f"tcp://127.0.0.1:{port}", f"tcp://127.0.0.1:{refused}"],
            PingOptions(timeout=3, all_success=True),
        )
    assert len(results) == 2
    assert isinstance(results[0], PingOutput)
    assert results[0].destination.port == port
    assert isinstance(results[1], PingError)


@pytest.mark.asyncio
async def test_ping_fastest_picks_success():
    refused = closed_port()
    async with serve(close_at_once) as port:
        out = await ping_fastest(
            [f"tcp://127.0.0.1:{refused}", f"tcp://127.0.0.1:{port}"],
            PingOptions(timeout=3),
        )
    assert out.destination == PingAddr.parse(f"tcp://127.0.0.1:{port}")


@pytest.mark.asyncio
async def test_ping_fastest_all_fail():
    with pytest.raises(PingError):
        await ping_fastest(
            [f"tcp://127.0.0.1:{closed_port()}", f"tcp://127.0.0.1:{closed_port()}"],
            PingOptions(timeout=3),
        )


@pytest.mark.asyncio
async def test_ping_fastest_empty():
    with pytest.raises(ValueError):
        await ping_fastest([], PingOptions())