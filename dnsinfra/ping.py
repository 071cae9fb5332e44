"""Reachability probes over ICMP, TCP, HTTP and HTTPS with timing."""

from __future__ import annotations

import asyncio
import contextlib
import ipaddress
import random
import re
import socket
import ssl
import struct
import time
from collections.abc import Awaitable, Callable, Iterable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Union

IpAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]

_PORT = re.compile(r"[0-9]+")
_ICMP_PAYLOAD = bytes(56)
_HTTP_PING = b"GET / HTTP/1.1\r\n\r\n"


class DurationAgg(Enum):
    """How the round-trip times of repeated probes are combined."""

    MIN = "min"
    MEAN = "mean"
    MAX = "max"


@dataclass(frozen=True)
class PingOptions:
    """Probe settings; ``timeout`` is in seconds and applies to each probe."""

    times: int = 1
    timeout: float = 5.0
    all_success: bool = False
    duration_agg: DurationAgg = DurationAgg.MEAN


class PingKind(Enum):
    ICMP = "icmp"
    TCP = "tcp"
    HTTP = "http"
    HTTPS = "https"


class PingError(Exception):
    """A probe failed."""


class PingTimeout(PingError):
    def __init__(self, message: str = "Ping timeout") -> None:
        super().__init__(message)


class PingNoAddress(PingError):
    def __init__(self, message: str = "No address") -> None:
        super().__init__(message)


class PingAddrParseError(PingError, ValueError):
    def __init__(self, detail: str) -> None:
        super().__init__(f"addr parse error {detail}")


def _parse_ip(text: str) -> IpAddress:
    try:
        return ipaddress.ip_address(text)
    except ValueError as err:
        raise PingAddrParseError(str(err)) from None


def _parse_port(text: str, whole: str) -> int:
    if not _PORT.fullmatch(text) or int(text) > 0xFFFF:
        raise PingAddrParseError(f"invalid socket address syntax: {whole!r}")
    return int(text)


def _parse_socket_addr(text: str) -> tuple[IpAddress, int]:
    if text.startswith("["):
        host, sep, port = text[1:].partition("]:")
        if not sep:
            raise PingAddrParseError(f"invalid socket address syntax: {text!r}")
        try:
            address: IpAddress = ipaddress.IPv6Address(host)
        except ValueError:
            raise PingAddrParseError(f"invalid socket address syntax: {text!r}") from None
    else:
        host, sep, port = text.rpartition(":")
        if not sep:
            raise PingAddrParseError(f"invalid socket address syntax: {text!r}")
        try:
            address = ipaddress.IPv4Address(host)
        except ValueError:
            raise PingAddrParseError(f"invalid socket address syntax: {text!r}") from None
    return address, _parse_port(port, text)


@dataclass(frozen=True, eq=False)
class PingAddr:
    """A probe target; ICMP targets have no port."""

    kind: PingKind
    address: IpAddress
    port: int | None = None

    @classmethod
    def parse(cls, text: str) -> PingAddr:
        """Parse ``tcp://ip:port``, ``http[s]://ip[:port]`` or ``[icmp://]ip``."""
        text = text.strip()
        for kind, default_port in (
            (PingKind.TCP, None),
            (PingKind.HTTP, 80),
            (PingKind.HTTPS, 443),
        ):
            prefix = f"{kind.value}://"
            if not text.startswith(prefix):
                continue
            rest = text[len(prefix):]
            try:
                address, port = _parse_socket_addr(rest)
            except PingAddrParseError:
                if default_port is None:
                    raise
                address, port = _parse_ip(rest), default_port
            return cls(kind, address, port)
        if text.startswith("icmp://"):
            text = text[len("icmp://"):]
        return cls(PingKind.ICMP, _parse_ip(text))

    def ip(self) -> IpAddress:
        return self.address

    def __str__(self) -> str:
        if self.kind is PingKind.ICMP:
            return f"icmp://{self.address}"
        host = f"[{self.address}]" if self.address.version == 6 else str(self.address)
        return f"{self.kind.value}://{host}:{self.port}"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, PingAddr):
            return (self.kind, self.address, self.port) == (
                other.kind,
                other.address,
                other.port,
            )
        if isinstance(other, (ipaddress.IPv4Address, ipaddress.IPv6Address)):
            return self.address == other
        return NotImplemented

    def __hash__(self) -> int:
        return hash((self.kind, self.address, self.port))


@dataclass(frozen=True)
class PingOutput:
    seq: int
    duration: float
    destination: PingAddr


def aggregate(durations: Sequence[float], agg: DurationAgg) -> float | None:
    """Combine durations; ``None`` when there are none."""
    if not durations:
        return None
    if agg is DurationAgg.MIN:
        return min(durations)
    if agg is DurationAgg.MAX:
        return max(durations)
    return sum(durations) / len(durations)


def _from_os_error(err: OSError) -> PingError:
    if isinstance(err, TimeoutError):
        return PingTimeout()
    return PingError(f"io error {err}")


async def _timed(coro: Awaitable[float], timeout: float) -> float:
    try:
        return await asyncio.wait_for(coro, timeout)
    except (asyncio.TimeoutError, TimeoutError):
        raise PingTimeout() from None
    except OSError as err:
        raise _from_os_error(err) from err


async def _repeat(
    dest: PingAddr, opts: PingOptions, probe: Callable[[int], Awaitable[float]]
) -> PingOutput:
    durations: list[float] = []
    last_err: PingError | None = None
    for seq in range(opts.times):
        try:
            durations.append(await probe(seq))
        except PingError as err:
            if opts.all_success:
                raise
            last_err = err
    duration = aggregate(durations, opts.duration_agg)
    if duration is None:
        raise last_err if last_err is not None else PingNoAddress()
    return PingOutput(seq=0, duration=duration, destination=dest)


# ICMP


def _checksum(data: bytes) -> int:
    if len(data) % 2:
        data += b"\x00"
    total = sum(struct.unpack(f"!{len(data) // 2}H", data))
    while total >> 16:
        total = (total & 0xFFFF) + (total >> 16)
    return ~total & 0xFFFF


def _open_icmp_socket(version: int) -> tuple[socket.socket, bool]:
    if version == 4:
        family, proto = socket.AF_INET, socket.IPPROTO_ICMP
    else:
        family, proto = socket.AF_INET6, getattr(socket, "IPPROTO_ICMPV6", 58)
    try:
        return socket.socket(family, socket.SOCK_DGRAM, proto), False
    except OSError:
        return socket.socket(family, socket.SOCK_RAW, proto), True


def _icmp_echo(
    sock: socket.socket, raw: bool, ip: IpAddress, ident: int, seq: int, timeout: float
) -> float:
    v4 = ip.version == 4
    request_type, reply_type = (8, 0) if v4 else (128, 129)
    checksum = 0
    if v4:
        checksum = _checksum(struct.pack("!BBHHH", request_type, 0, 0, ident, seq) + _ICMP_PAYLOAD)
    packet = struct.pack("!BBHHH", request_type, 0, checksum, ident, seq) + _ICMP_PAYLOAD
    target = (str(ip), 0) if v4 else (str(ip), 0, 0, 0)

    deadline = time.monotonic() + timeout
    start = time.perf_counter()
    sock.sendto(packet, target)
    while True:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise TimeoutError("icmp echo timed out")
        sock.settimeout(remaining)
        data, source = sock.recvfrom(65535)
        if v4 and data and data[0] >> 4 == 4:
            data = data[(data[0] & 0x0F) * 4:]
        if len(data) < 8:
            continue
        try:
            if ipaddress.ip_address(source[0].split("%")[0]) != ip:
                continue
        except ValueError:
            continue
        reply, _code, _sum, reply_id, reply_seq = struct.unpack_from("!BBHHH", data)
        if reply == reply_type and reply_seq == seq and (not raw or reply_id == ident):
            return time.perf_counter() - start


async def _icmp_ping(dest: PingAddr, opts: PingOptions) -> PingOutput:
    ip = dest.address
    try:
        sock, raw = _open_icmp_socket(ip.version)
    except OSError as err:
        raise _from_os_error(err) from err
    ident = random.getrandbits(16)

    async def probe(seq: int) -> float:
        try:
            return await asyncio.to_thread(
                _icmp_echo, sock, raw, ip, ident, seq & 0xFFFF, opts.timeout
            )
        except OSError as err:
            raise _from_os_error(err) from err

    with sock:
        return await _repeat(dest, opts, probe)


# TCP, HTTP and HTTPS


async def _tcp_connect(dest: PingAddr) -> float:
    start = time.perf_counter()
    _, writer = await asyncio.open_connection(str(dest.address), dest.port)
    writer.close()
    return time.perf_counter() - start


async def _send_ping(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> bool:
    writer.write(_HTTP_PING)
    await writer.drain()
    line = await reader.readline()
    return line.startswith(b"HTTP/")


async def _http_request(dest: PingAddr, tls: ssl.SSLContext | None) -> float:
    start = time.perf_counter()
    if tls is None:
        reader, writer = await asyncio.open_connection(str(dest.address), dest.port)
    else:
        reader, writer = await asyncio.open_connection(
            str(dest.address), dest.port, ssl=tls, server_hostname=""
        )
    try:
        await _send_ping(reader, writer)
        return time.perf_counter() - start
    finally:
        writer.close()


def _insecure_context() -> ssl.SSLContext:
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    context.check_hostname = False
    context.verify_mode = ssl.CERT_NONE
    return context


async def _stream_ping(dest: PingAddr, opts: PingOptions) -> PingOutput:
    async def probe(_seq: int) -> float:
        if dest.kind is PingKind.TCP:
            return await _timed(_tcp_connect(dest), opts.timeout)
        tls = _insecure_context() if dest.kind is PingKind.HTTPS else None
        return await _timed(_http_request(dest, tls), opts.timeout)

    return await _repeat(dest, opts, probe)


async def _ping_addr(dest: PingAddr, opts: PingOptions) -> PingOutput:
    if dest.kind is PingKind.ICMP:
        return await _icmp_ping(dest, opts)
    return await _stream_ping(dest, opts)


def _coerce(dest: PingAddr | str) -> PingAddr:
    return dest if isinstance(dest, PingAddr) else PingAddr.parse(dest)


async def ping(
    dests: Iterable[PingAddr | str], opts: PingOptions | None = None
) -> list[PingOutput | PingError]:
    """Probe each destination in turn; failures appear in the list as errors."""
    opts = opts or PingOptions()
    results: list[PingOutput | PingError] = []
    for dest in dests:
        try:
            results.append(await _ping_addr(_coerce(dest), opts))
        except PingError as err:
            results.append(err)
    return results


async def ping_one(dest: PingAddr | str, opts: PingOptions | None = None) -> PingOutput:
    """Probe one destination, raising PingError on failure."""
    return await _ping_addr(_coerce(dest), opts or PingOptions())


async def ping_fastest(
    dests: Iterable[PingAddr | str], opts: PingOptions | None = None
) -> PingOutput:
    """Probe all destinations at once; the first success wins.

    When every probe fails, the error of the last one to finish is raised.
    """
    opts = opts or PingOptions()
    targets = [_coerce(dest) for dest in dests]
    if not targets:
        raise ValueError("no destinations to ping")
    tasks = [asyncio.ensure_future(_ping_addr(target, opts)) for target in targets]
    last_err: PingError | None = None
    try:
        for finished in asyncio.as_completed(tasks):
            try:
                return await finished
            except PingError as err:
                last_err = err
    finally:
        for task in tasks:
            task.cancel()
        with contextlib.suppress(Exception):
            await asyncio.gather(*tasks, return_exceptions=True)
    assert last_err is not None
    raise last_err