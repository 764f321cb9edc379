"""Core SNTP types: packets, results, errors and timestamp generators."""

from __future__ import annotations

import enum
import logging
import struct
import time
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

logger = logging.getLogger("sntpc")

MODE_MASK = 0b0000_0111
MODE_SHIFT = 0
VERSION_MASK = 0b0011_1000
VERSION_SHIFT = 3
LI_MASK = 0b1100_0000
LI_SHIFT = 6

PSEC_IN_SEC = 1_000_000_000_000
NSEC_IN_SEC = 1_000_000_000
USEC_IN_SEC = 1_000_000
MSEC_IN_SEC = 1_000

SECONDS_MASK = 0xFFFF_FFFF_0000_0000
SECONDS_FRAC_MASK = 0xFFFF_FFFF
U32_MAX = 0xFFFF_FFFF
U64_MASK = 0xFFFF_FFFF_FFFF_FFFF

# Seconds between 1900-01-01 (NTP era 0) and 1970-01-01 (UNIX epoch).
NTP_TIMESTAMP_DELTA = 2_208_988_800

_PACKET_FORMAT = struct.Struct(">BBbbIIIQQQQ")
PACKET_SIZE = _PACKET_FORMAT.size


def _field(value: int, mask: int, shift: int) -> int:
    return (value & mask) >> shift


class Error(enum.Enum):
    """Kinds of failure reported by the SNTP client."""

    INCORRECT_ORIGIN_TIMESTAMP = (
        "origin timestamp in the response differs from the one sent in the request"
    )
    INCORRECT_MODE = "incorrect mode value in the response"
    INCORRECT_LEAP_INDICATOR = "incorrect leap indicator value in the response"
    INCORRECT_RESPONSE_VERSION = "incorrect version in the response; only SNTPv4 is supported"
    INCORRECT_STRATUM_HEADERS = "incorrect stratum headers in the response"
    INCORRECT_PAYLOAD = "response payload size does not meet the SNTPv4 specification"
    NETWORK = "network error occurred"
    ADDRESS_RESOLVE = "NTP server address cannot be resolved"
    RESPONSE_ADDRESS_MISMATCH = (
        "response came from an address other than the one the request was sent to"
    )


class SntpError(Exception):
    """Raised when an SNTP exchange fails; ``kind`` tells why."""

    def __init__(self, kind: Error) -> None:
        super().__init__(kind.value)
        self.kind = kind

    def __eq__(self, other: object) -> bool:
        if isinstance(other, SntpError):
            return self.kind is other.kind
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.kind)


class Units(enum.Enum):
    """Units used for delay and offset values."""

    MILLISECONDS = "ms"
    MICROSECONDS = "us"

    def __str__(self) -> str:
        return self.value


@dataclass
class NtpResult:
    """Result of an SNTP request.

    ``roundtrip`` and ``offset`` are in microseconds; ``precision`` is log2 of
    the server clock precision in seconds.
    """

    seconds: int
    seconds_fraction: int
    roundtrip: int
    offset: int
    stratum: int
    precision: int

    def __post_init__(self) -> None:
        self.seconds += self.seconds_fraction // U32_MAX
        self.seconds_fraction %= U32_MAX


@runtime_checkable
class NtpTimestampGenerator(Protocol):
    """Source of system timestamps measured from the UNIX epoch."""

    def init(self) -> None:
        """Capture the current time; called before each pair of reads."""

    def timestamp_sec(self) -> int:
        """Whole seconds since the UNIX epoch for the captured time."""

    def timestamp_subsec_micros(self) -> int:
        """Fractional part of the captured time in whole microseconds."""


class StdTimestampGen(NtpTimestampGenerator):
    """Timestamp generator backed by the system clock."""

    __slots__ = ("_nanos",)

    def __init__(self) -> None:
        self._nanos = 0

    def init(self) -> None:
        self._nanos = time.time_ns()

    def timestamp_sec(self) -> int:
        return self._nanos // NSEC_IN_SEC

    def timestamp_subsec_micros(self) -> int:
        return (self._nanos % NSEC_IN_SEC) // 1_000


def get_ntp_timestamp(timestamp_gen: NtpTimestampGenerator) -> int:
    """Return the generator's current time as a 64-bit NTP timestamp."""
    seconds = (timestamp_gen.timestamp_sec() + NTP_TIMESTAMP_DELTA) << 32
    fraction = timestamp_gen.timestamp_subsec_micros() * U32_MAX // USEC_IN_SEC
    return (seconds + fraction) & U64_MASK


@dataclass
class NtpPacket:
    """An SNTP packet with fields in host representation."""

    SNTP_CLIENT_MODE = 3
    SNTP_VERSION = 4 << 3

    li_vn_mode: int = 0
    stratum: int = 0
    poll: int = 0
    precision: int = 0
    root_delay: int = 0
    root_dispersion: int = 0
    ref_id: int = 0
    ref_timestamp: int = 0
    origin_timestamp: int = 0
    recv_timestamp: int = 0
    tx_timestamp: int = 0

    @classmethod
    def request(cls, timestamp_gen: NtpTimestampGenerator) -> NtpPacket:
        """Build a client request stamped with the generator's current time."""
        timestamp_gen.init()
        tx_timestamp = get_ntp_timestamp(timestamp_gen)
        logger.debug("NtpPacket.request(tx_timestamp: %d)", tx_timestamp)
        return cls(
            li_vn_mode=cls.SNTP_CLIENT_MODE | cls.SNTP_VERSION,
            tx_timestamp=tx_timestamp,
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> NtpPacket:
        """Decode a packet from its network representation."""
        if len(data) != PACKET_SIZE:
            raise SntpError(Error.INCORRECT_PAYLOAD)
        return cls(*_PACKET_FORMAT.unpack(bytes(data)))

    def to_bytes(self) -> bytes:
        """Encode the packet into its network representation."""
        return _PACKET_FORMAT.pack(
            self.li_vn_mode,
            self.stratum,
            self.poll,
            self.precision,
            self.root_delay,
            self.root_dispersion,
            self.ref_id,
            self.ref_timestamp,
            self.origin_timestamp,
            self.recv_timestamp,
            self.tx_timestamp,
        )

    def describe(self, client_recv_timestamp: int) -> dict[str, Any]:
        """Return a readable breakdown of the packet for diagnostics."""
        try:
            reference_id = self.ref_id.to_bytes(4, "big").decode("utf-8")
        except UnicodeDecodeError:
            reference_id = ""
        return {
            "mode": _field(self.li_vn_mode, MODE_MASK, MODE_SHIFT),
            "version": _field(self.li_vn_mode, VERSION_MASK, VERSION_SHIFT),
            "leap": _field(self.li_vn_mode, LI_MASK, LI_SHIFT),
            "stratum": self.stratum,
            "poll": self.poll,
            "precision": self.precision,
            "root delay": self.root_delay,
            "root dispersion": self.root_dispersion,
            "reference ID": reference_id,
            "origin timestamp (client)": self.origin_timestamp,
            "receive timestamp (server)": self.recv_timestamp,
            "transmit timestamp (server)": self.tx_timestamp,
            "receive timestamp (client)": client_recv_timestamp,
            "reference timestamp (server)": self.ref_timestamp,
        }


@dataclass(frozen=True)
class NtpTimestamp:
    """An NTP timestamp split into UNIX seconds and a 32-bit fraction."""

    seconds: int
    seconds_fraction: int

    @classmethod
    def from_ntp(cls, value: int) -> NtpTimestamp:
        seconds = ((value & SECONDS_MASK) >> 32) - NTP_TIMESTAMP_DELTA
        return cls(seconds=seconds, seconds_fraction=value & SECONDS_FRAC_MASK)


@dataclass
class NtpContext:
    """Client context holding the timestamp generator."""

    timestamp_gen: NtpTimestampGenerator


@dataclass(frozen=True)
class SendRequestResult:
    """State kept from sending a request, needed to validate the response."""

    originate_timestamp: int
    version: int

    @classmethod
    def from_packet(cls, packet: NtpPacket) -> SendRequestResult:
        return cls(originate_timestamp=packet.tx_timestamp, version=packet.li_vn_mode)