"""Asynchronous SNTP client and the UDP socket adapters it works with."""

from __future__ import annotations

import asyncio
import ipaddress
import socket as _socket_module
from typing import Any, Protocol, runtime_checkable

from .protocol import process_response
from .types import (
    PACKET_SIZE,
    Error,
    NtpContext,
    NtpPacket,
    NtpResult,
    SendRequestResult,
    SntpError,
    get_ntp_timestamp,
    logger,
)


@runtime_checkable
class NtpUdpSocket(Protocol):
    """UDP socket interface the SNTP client needs."""

    async def send_to(self, buf: bytes, addr: Any) -> int:
        """Send ``buf`` to ``addr``; return the number of bytes written."""

    async def recv_from(self, bufsize: int) -> tuple[bytes, Any]:
        """Receive one datagram of at most ``bufsize`` bytes and its origin."""


class StdUdpSocket:
    """Adapter over a blocking :class:`socket.socket`."""

    def __init__(self, sock: _socket_module.socket) -> None:
        self.sock = sock

    async def send_to(self, buf: bytes, addr: Any) -> int:
        try:
            return self.sock.sendto(buf, addr)
        except OSError as exc:
            raise SntpError(Error.NETWORK) from exc

    async def recv_from(self, bufsize: int) -> tuple[bytes, Any]:
        try:
            return self.sock.recvfrom(bufsize)
        except OSError as exc:
            raise SntpError(Error.NETWORK) from exc


class _DatagramQueue(asyncio.DatagramProtocol):
    def __init__(self) -> None:
        self.queue: asyncio.Queue[Any] = asyncio.Queue()

    def datagram_received(self, data: bytes, addr: Any) -> None:
        self.queue.put_nowait((data, addr))

    def error_received(self, exc: Exception) -> None:
        self.queue.put_nowait(exc)

    def connection_lost(self, exc: Exception | None) -> None:
        self.queue.put_nowait(exc or ConnectionError("socket closed"))


class AsyncioUdpSocket:
    """UDP socket driven by the asyncio event loop."""

    def __init__(self, transport: asyncio.DatagramTransport, protocol: _DatagramQueue) -> None:
        self._transport = transport
        self._protocol = protocol

    @classmethod
    async def bind(cls, host: str = "0.0.0.0", port: int = 0) -> AsyncioUdpSocket:
        """Create a socket bound to ``host``/``port``."""
        loop = asyncio.get_running_loop()
        try:
            transport, protocol = await loop.create_datagram_endpoint(
                _DatagramQueue, local_addr=(host, port)
            )
        except OSError as exc:
            raise SntpError(Error.NETWORK) from exc
        return cls(transport, protocol)

    @property
    def local_address(self) -> Any:
        """The address the socket is bound to."""
        return self._transport.get_extra_info("sockname")

    async def send_to(self, buf: bytes, addr: Any) -> int:
        if self._transport.is_closing():
            raise SntpError(Error.NETWORK)
        try:
            self._transport.sendto(bytes(buf), addr)
        except OSError as exc:
            raise SntpError(Error.NETWORK) from exc
        return len(buf)

    async def recv_from(self, bufsize: int) -> tuple[bytes, Any]:
        queue = self._protocol.queue
        if self._transport.is_closing() and queue.empty():
            raise SntpError(Error.NETWORK)
        item = await queue.get()
        if isinstance(item, BaseException):
            raise SntpError(Error.NETWORK) from item
        data, addr = item
        return data[:bufsize], addr

    def close(self) -> None:
        self._transport.close()

    async def __aenter__(self) -> AsyncioUdpSocket:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.close()


def _same_address(a: Any, b: Any) -> bool:
    try:
        host_a = ipaddress.ip_address(a[0])
        host_b = ipaddress.ip_address(b[0])
    except ValueError:
        return tuple(a[:2]) == tuple(b[:2])
    return host_a == host_b and a[1] == b[1]


async def get_time(addr: Any, socket: NtpUdpSocket, context: NtpContext) -> NtpResult:
    """Send a request to ``addr`` and process the server's answer."""
    result = await sntp_send_request(addr, socket, context)
    return await sntp_process_response(addr, socket, context, result)


async def sntp_send_request(
    dest: Any, socket: NtpUdpSocket, context: NtpContext
) -> SendRequestResult:
    """Send an SNTP request to ``dest``; raise :class:`SntpError` on failure."""
    logger.debug("send request - Address: %r", dest)
    request = NtpPacket.request(context.timestamp_gen)
    await _send_request(dest, request, socket)
    return SendRequestResult.from_packet(request)


async def _send_request(dest: Any, request: NtpPacket, socket: NtpUdpSocket) -> None:
    buf = request.to_bytes()
    try:
        size = await socket.send_to(buf, dest)
    except (SntpError, OSError) as exc:
        raise SntpError(Error.NETWORK) from exc
    if size != len(buf):
        raise SntpError(Error.NETWORK)


async def sntp_process_response(
    dest: Any,
    socket: NtpUdpSocket,
    context: NtpContext,
    send_req_result: SendRequestResult,
) -> NtpResult:
    """Receive the server's response, validate it and compute the result."""
    data, src = await socket.recv_from(PACKET_SIZE)
    context.timestamp_gen.init()
    recv_timestamp = get_ntp_timestamp(context.timestamp_gen)
    logger.debug("Response: %d", len(data))

    if not _same_address(dest, src):
        raise SntpError(Error.RESPONSE_ADDRESS_MISMATCH)
    if len(data) != PACKET_SIZE:
        raise SntpError(Error.INCORRECT_PAYLOAD)

    result = process_response(send_req_result, data, recv_timestamp)
    logger.debug("%r", result)
    return result