"""Blocking wrappers around the asynchronous SNTP client."""

from __future__ import annotations

import asyncio
from typing import Any

from . import client
from .client import NtpUdpSocket
from .types import NtpContext, NtpResult, SendRequestResult, logger


def get_time(addr: Any, socket: NtpUdpSocket, context: NtpContext) -> NtpResult:
    """Send a request to ``addr`` and process the answer in a single call.

    Raises :class:`~sntpc.types.SntpError` if the request cannot be sent or
    the response is rejected.
    """
    result = sntp_send_request(addr, socket, context)
    logger.debug("%r", result)
    return sntp_process_response(addr, socket, context, result)


def sntp_send_request(
    dest: Any, socket: NtpUdpSocket, context: NtpContext
) -> SendRequestResult:
    """Send an SNTP request to ``dest``, blocking until it has been sent."""
    return asyncio.run(client.sntp_send_request(dest, socket, context))


def sntp_process_response(
    dest: Any,
    socket: NtpUdpSocket,
    context: NtpContext,
    send_req_result: SendRequestResult,
) -> NtpResult:
    """Receive and validate the server's response, blocking until done."""
    return asyncio.run(
        client.sntp_process_response(dest, socket, context, send_req_result)
    )