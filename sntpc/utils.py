"""Helpers to set the system clock from an SNTP result."""

from __future__ import annotations

import os
import subprocess
import sys
from datetime import datetime, timezone

from .types import NSEC_IN_SEC, logger

_IS_WINDOWS = os.name == "nt"


def update_system_time(sec: int, nsec: int) -> datetime | None:
    """Set the system time to ``sec`` seconds since the UNIX epoch plus ``nsec``.

    Returns the local time that was applied, or ``None`` when the values do not
    form a valid timestamp and nothing was done.
    """
    if not 0 <= nsec < NSEC_IN_SEC:
        return None
    try:
        utc_time = datetime.fromtimestamp(sec, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None
    utc_time = utc_time.replace(microsecond=nsec // 1_000)
    local_time = utc_time.astimezone()

    logger.debug(
        "UTC time: %02d:%02d:%02d", utc_time.hour, utc_time.minute, utc_time.second
    )
    logger.debug(
        "%s time: %02d:%02d:%02d",
        local_time.strftime("%z"),
        local_time.hour,
        local_time.minute,
        local_time.second,
    )

    sync_time(local_time)
    return local_time


def sync_time(time: datetime) -> None:
    """Set the system clock with the platform's command line tool."""
    if _IS_WINDOWS:
        _sync_time_windows(time)
    else:
        _sync_time_unix(time)


def _sync_time_unix(time: datetime) -> None:
    time_str = (
        f"{time.month}/{time.day}/{time.year} "
        f"{time.hour:02}:{time.minute:02}:{time.second:02}"
    )
    try:
        completed = subprocess.run(["date", "-s", time_str], check=False)
    except OSError as exc:
        raise RuntimeError("Unable to execute date command") from exc

    if completed.returncode != 0:
        print(f"Date command exit status {completed.returncode}", file=sys.stderr)


def _sync_time_windows(time: datetime) -> None:
    command = (
        f'powershell Set-Date -Date "{time.day}/{time.month}/{time.year} '
        f'{time.hour}:{time.minute}:{time.second}"'
    )
    try:
        subprocess.run(["cmd", "/C", command], check=False)
    except OSError as exc:
        print(f"Error occurred: {exc}", file=sys.stderr)