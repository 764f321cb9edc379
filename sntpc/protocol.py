"""SNTP response validation and clock offset / roundtrip arithmetic."""

from __future__ import annotations

from .types import (
    LI_MASK,
    LI_SHIFT,
    MODE_MASK,
    MODE_SHIFT,
    MSEC_IN_SEC,
    NSEC_IN_SEC,
    PSEC_IN_SEC,
    SECONDS_FRAC_MASK,
    SECONDS_MASK,
    U32_MAX,
    U64_MASK,
    USEC_IN_SEC,
    VERSION_MASK,
    VERSION_SHIFT,
    Error,
    NtpPacket,
    NtpResult,
    NtpTimestamp,
    SendRequestResult,
    SntpError,
    Units,
    logger,
)

SNTP_UNICAST = 4
SNTP_BROADCAST = 5
LI_MAX_VALUE = 3

_I64_MIN = -(1 << 63)
_I64_MAX = (1 << 63) - 1


def _shifter(value: int, mask: int, shift: int) -> int:
    return (value & mask) >> shift


def _wrapping_sub(a: int, b: int) -> int:
    return (a - b) & U64_MASK


def _as_i64(value: int) -> int:
    return value - (1 << 64) if value & (1 << 63) else value


def _div_toward_zero(value: int, divisor: int) -> int:
    quotient = abs(value) // divisor
    return -quotient if value < 0 else quotient


def _per_second(units: Units) -> int:
    return MSEC_IN_SEC if units is Units.MILLISECONDS else USEC_IN_SEC


def _convert_delays(sec: int, fraction: int, units: int) -> int:
    return sec * units + fraction * units // U32_MAX


def roundtrip_calculate(t1: int, t2: int, t3: int, t4: int, units: Units) -> int:
    """Round-trip delay ``(T4 - T1) - (T3 - T2)`` in the given units, never negative."""
    delta = max(_wrapping_sub(t4, t1) - _wrapping_sub(t3, t2), 0)
    delta_sec = (delta & SECONDS_MASK) >> 32
    delta_fraction = delta & SECONDS_FRAC_MASK
    return _convert_delays(delta_sec, delta_fraction, _per_second(units))


def offset_calculate(t1: int, t2: int, t3: int, t4: int, units: Units) -> int:
    """Clock offset ``((T2 - T1) + (T3 - T4)) / 2`` in the given units, signed."""
    first = _div_toward_zero(_as_i64(_wrapping_sub(t2, t1)), 2)
    second = _div_toward_zero(_as_i64(_wrapping_sub(t3, t4)), 2)
    theta = min(max(first + second, _I64_MIN), _I64_MAX)
    magnitude = abs(theta)
    theta_sec = (magnitude & SECONDS_MASK) >> 32
    theta_fraction = magnitude & SECONDS_FRAC_MASK
    sign = (theta > 0) - (theta < 0)
    return _convert_delays(theta_sec, theta_fraction, _per_second(units)) * sign


def process_response(
    send_req_result: SendRequestResult, data: bytes, recv_timestamp: int
) -> NtpResult:
    """Validate a raw server response and compute the resulting time figures.

    Raises :class:`SntpError` when the response does not answer the request.
    """
    packet = NtpPacket.from_bytes(data)
    logger.debug("%r", packet.describe(recv_timestamp))

    if send_req_result.originate_timestamp != packet.origin_timestamp:
        raise SntpError(Error.INCORRECT_ORIGIN_TIMESTAMP)

    mode = _shifter(packet.li_vn_mode, MODE_MASK, MODE_SHIFT)
    li = _shifter(packet.li_vn_mode, LI_MASK, LI_SHIFT)
    resp_version = _shifter(packet.li_vn_mode, VERSION_MASK, VERSION_SHIFT)
    req_version = _shifter(send_req_result.version, VERSION_MASK, VERSION_SHIFT)

    if mode not in (SNTP_UNICAST, SNTP_BROADCAST):
        raise SntpError(Error.INCORRECT_MODE)
    if li > LI_MAX_VALUE:
        raise SntpError(Error.INCORRECT_LEAP_INDICATOR)
    if req_version != resp_version:
        raise SntpError(Error.INCORRECT_RESPONSE_VERSION)
    if packet.stratum == 0:
        raise SntpError(Error.INCORRECT_STRATUM_HEADERS)

    t1 = packet.origin_timestamp
    t2 = packet.recv_timestamp
    t3 = packet.tx_timestamp
    t4 = recv_timestamp
    units = Units.MICROSECONDS
    roundtrip = roundtrip_calculate(t1, t2, t3, t4, units)
    offset = offset_calculate(t1, t2, t3, t4, units)
    timestamp = NtpTimestamp.from_ntp(packet.tx_timestamp)

    logger.debug(
        "Roundtrip delay: %d %s. Offset: %d %s", roundtrip, units, offset, units
    )

    return NtpResult(
        seconds=timestamp.seconds & U32_MAX,
        seconds_fraction=timestamp.seconds_fraction & U32_MAX,
        roundtrip=roundtrip,
        offset=offset,
        stratum=packet.stratum,
        precision=packet.precision,
    )


def fraction_to_milliseconds(sec_fraction: int) -> int:
    """Convert a 32-bit seconds fraction to milliseconds."""
    return sec_fraction * MSEC_IN_SEC // U32_MAX


def fraction_to_microseconds(sec_fraction: int) -> int:
    """Convert a 32-bit seconds fraction to microseconds."""
    return sec_fraction * USEC_IN_SEC // U32_MAX


def fraction_to_nanoseconds(sec_fraction: int) -> int:
    """Convert a 32-bit seconds fraction to nanoseconds."""
    return sec_fraction * NSEC_IN_SEC // U32_MAX


def fraction_to_picoseconds(sec_fraction: int) -> int:
    """Convert a 32-bit seconds fraction to picoseconds."""
    return sec_fraction * PSEC_IN_SEC // U32_MAX