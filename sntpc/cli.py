"""Command line front ends: a one-shot request, a system time sync and an asyncio query."""

from __future__ import annotations

import argparse
import asyncio
import socket
import sys
import time
from collections.abc import Sequence
from typing import Any

from . import sync
from .client import AsyncioUdpSocket, StdUdpSocket
from .client import get_time as async_get_time
from .protocol import fraction_to_microseconds
from .types import Error, NtpContext, SntpError, StdTimestampGen
from .utils import update_system_time

POOL_NTP_HOST = "pool.ntp.org"
GOOGLE_NTP_HOST = "time.google.com"
NTP_PORT = 123
DEFAULT_TIMEOUT = 2.0
RETRY_DELAY = 2.0


def _resolve(host: str, port: int) -> list[tuple[str, int]]:
    """Resolve ``host``/``port`` to the distinct IPv4 socket addresses it names."""
    try:
        infos = socket.getaddrinfo(host, port, socket.AF_INET, socket.SOCK_DGRAM)
    except (socket.gaierror, UnicodeError) as exc:
        raise SntpError(Error.ADDRESS_RESOLVE) from exc
    addresses = dict.fromkeys((info[4][0], info[4][1]) for info in infos)
    if not addresses:
        raise SntpError(Error.ADDRESS_RESOLVE)
    return list(addresses)


def _format_addr(addr: Any) -> str:
    return f"{addr[0]}:{addr[1]}"


def _parser(prog: str, default_server: str, description: str) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog=prog, description=description)
    parser.add_argument(
        "-s", "--server", default=default_server, help="NTP server hostname"
    )
    parser.add_argument(
        "-p", "--port", type=int, default=NTP_PORT, help="NTP server port"
    )
    parser.add_argument(
        "-t",
        "--timeout",
        type=float,
        default=DEFAULT_TIMEOUT,
        help="seconds to wait for a server response",
    )
    return parser


def _open_socket(timeout: float) -> StdUdpSocket:
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    sock.bind(("0.0.0.0", 0))
    sock.settimeout(timeout)
    return StdUdpSocket(sock)


def request_main(argv: Sequence[str] | None = None) -> int:
    """Query the server's addresses one by one until one answers; print its time."""
    args = _parser(
        "sntp-request", POOL_NTP_HOST, "Make a single SNTP request"
    ).parse_args(argv)
    server = f"{args.server}:{args.port}"

    try:
        addresses = _resolve(args.server, args.port)
    except SntpError:
        print(f"Unable to resolve host: {server}", file=sys.stderr)
        return 1

    udp = _open_socket(args.timeout)
    try:
        for index, addr in enumerate(addresses):
            context = NtpContext(StdTimestampGen())
            try:
                result = sync.get_time(addr, udp, context)
            except SntpError as exc:
                print(f"Err: {exc.kind.name}")
            else:
                microseconds = fraction_to_microseconds(result.seconds_fraction)
                print(
                    f"Got time from [{server}] {_format_addr(addr)}: "
                    f"{result.seconds}.{microseconds}"
                )
                return 0
            if index + 1 < len(addresses):
                time.sleep(RETRY_DELAY)
    finally:
        udp.sock.close()
    return 1


def timesync_main(argv: Sequence[str] | None = None) -> int:
    """Fetch the time from the server and set the system clock to it."""
    args = _parser(
        "timesync", GOOGLE_NTP_HOST, "Synchronise the system time with an NTP server"
    ).parse_args(argv)
    ntp_addr = f"{args.server}:{args.port}"

    try:
        addresses = _resolve(args.server, args.port)
    except SntpError:
        print(f"Unable to resolve host: {ntp_addr}", file=sys.stderr)
        return 1

    udp = _open_socket(args.timeout)
    try:
        for addr in addresses:
            context = NtpContext(StdTimestampGen())
            try:
                result = sync.get_time(addr, udp, context)
            except SntpError:
                print(f"Unable to receive time from: {ntp_addr}", file=sys.stderr)
                return 1
            print(f"Received time: {result!r}")
            update_system_time(result.seconds, result.seconds_fraction)
    finally:
        udp.sock.close()
    return 0


async def _query_all(host: str, port: int, timeout: float) -> int:
    loop = asyncio.get_running_loop()
    try:
        infos = await loop.getaddrinfo(
            host, port, family=socket.AF_INET, type=socket.SOCK_DGRAM
        )
    except (socket.gaierror, UnicodeError):
        print(f"Unable to resolve address: {host}:{port}", file=sys.stderr)
        return 1
    addresses = list(dict.fromkeys((info[4][0], info[4][1]) for info in infos))

    answered = False
    context = NtpContext(StdTimestampGen())
    async with await AsyncioUdpSocket.bind("0.0.0.0", 0) as udp:
        for addr in addresses:
            try:
                result = await asyncio.wait_for(
                    async_get_time(addr, udp, context), timeout
                )
            except asyncio.TimeoutError:
                print(f"TIMEOUT: address {_format_addr(addr)}")
            except SntpError as exc:
                print(f"ERROR: {exc.kind.name}")
            else:
                answered = True
                print(f"RESULT: {result!r}")
    return 0 if answered else 1


def async_main(argv: Sequence[str] | None = None) -> int:
    """Query every address of the server concurrently-safe on the asyncio loop."""
    args = _parser(
        "sntp-async", POOL_NTP_HOST, "Query an NTP server with asyncio"
    ).parse_args(argv)
    return asyncio.run(_query_all(args.server, args.port, args.timeout))