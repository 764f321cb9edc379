# sntpc

A small SNTPv4 client. It sends a request to an NTP server, validates the
reply and reports the server time together with the estimated clock offset
and the roundtrip delay, both in microseconds. It can also set the system
clock from the result.

It has no dependencies outside the standard library and works both with
blocking sockets and with asyncio.

## Installation

```sh
pip install .
```

## Command line

All three commands take the same options:

- `-s`/`--server` — NTP server hostname
- `-p`/`--port` — NTP server port (default `123`)
- `-t`/`--timeout` — seconds to wait for a response (default `2`)

Only IPv4 addresses of the server are used.

Query `pool.ntp.org` (the default server), trying each resolved address in
turn, two seconds apart, until one answers; the first answer is printed as
`seconds.microseconds`:

```sh
sntpc-request
```

Query every resolved address of `pool.ntp.org` on the asyncio event loop and
print a `RESULT`, `ERROR` or `TIMEOUT` line for each:

```sh
sntpc-async
```

Fetch the time from `time.google.com` (the default server for this command)
and set the system clock from it. Setting the clock runs `date -s` on Unix
and PowerShell `Set-Date` on Windows, so it needs the rights to change the
system time:

```sh
sntpc-timesync --server time.google.com --port 123
```

Each command exits with status 0 on success and 1 when the host cannot be
resolved or no server answer is accepted.

## Library use

### Blocking

```python
import socket

from sntpc import sync
from sntpc.client import StdUdpSocket
from sntpc.types import NtpContext, StdTimestampGen

sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
sock.settimeout(2)
udp = StdUdpSocket(sock)
context = NtpContext(StdTimestampGen())

addr = socket.getaddrinfo("pool.ntp.org", 123, socket.AF_INET, socket.SOCK_DGRAM)[0][4]
result = sync.get_time(addr, udp, context)
print(result.seconds, result.offset, result.roundtrip)
```

`StdUdpSocket` turns any `OSError` from the socket, a timeout included, into
an `SntpError` of kind `Error.NETWORK`.

### asyncio

```python
import asyncio

from sntpc.client import AsyncioUdpSocket, get_time
from sntpc.types import NtpContext, StdTimestampGen


async def main():
    async with await AsyncioUdpSocket.bind("0.0.0.0", 0) as udp:
        result = await asyncio.wait_for(
            get_time(("192.0.2.1", 123), udp, NtpContext(StdTimestampGen())),
            timeout=2,
        )
        print(result)


asyncio.run(main())
```

### Split request and response

When the network stack has to be driven by hand, send and receive in two
steps with `sntp_send_request` and `sntp_process_response` (available in
both `sntpc.client` and `sntpc.sync`). The `SendRequestResult` returned by
the first call carries the originate timestamp and version that the second
one checks the response against.

### Results and errors

`NtpResult` holds `seconds`, `seconds_fraction`, `roundtrip`, `offset`,
`stratum` and `precision`. `sntpc.protocol` offers `fraction_to_milliseconds`,
`fraction_to_microseconds`, `fraction_to_nanoseconds` and
`fraction_to_picoseconds` to turn the NTP seconds fraction into whole units,
as well as `offset_calculate` and `roundtrip_calculate` for the raw
arithmetic on 64-bit NTP timestamps.

Failures raise `SntpError`; its `kind` is a member of the `Error` enum, such
as `Error.NETWORK`, `Error.INCORRECT_ORIGIN_TIMESTAMP`, `Error.INCORRECT_MODE`,
`Error.INCORRECT_RESPONSE_VERSION`, `Error.INCORRECT_STRATUM_HEADERS`,
`Error.INCORRECT_PAYLOAD` or `Error.RESPONSE_ADDRESS_MISMATCH`.

### Setting the clock

`sntpc.utils.update_system_time(sec, nsec)` converts seconds since the UNIX
epoch plus nanoseconds to local time and passes it to `sync_time`, which runs
the platform's command to set the clock. It returns the local time applied,
or `None` without doing anything when `nsec` is outside `0..999999999` or the
seconds do not form a valid date.

### Custom clocks and sockets

Implement `NtpTimestampGenerator` (`init`, `timestamp_sec`,
`timestamp_subsec_micros`) to supply timestamps from another clock, and
`NtpUdpSocket` (async `send_to` and `recv_from`) to run over any datagram
transport.

## What it does not do

The package is a client only: it does not serve time to others, does not
discipline the clock gradually, and speaks SNTP version 4 only; servers that
answer with another version are rejected with
`Error.INCORRECT_RESPONSE_VERSION`.