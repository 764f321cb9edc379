"""SNTPv4 client: query NTP servers, compute offset and roundtrip, set the system clock."""

__version__ = "0.7.0"