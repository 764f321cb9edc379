[build-system]
requires = ["setuptools>=68"]
build-backend = "setuptools.build_meta"

[project]
name = "sntpc"
version = "0.7.0"
description = "SNTPv4 client: query NTP servers, compute clock offset and roundtrip delay, and set the system clock"
requires-python = ">=3.10"
dependencies = []
keywords = ["sntp", "ntp", "sntp-client", "ntp-client", "time", "clock", "asyncio"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Framework :: AsyncIO",
    "Topic :: System :: Networking :: Time Synchronization",
]

[project.optional-dependencies]
test = ["pytest", "pytest-asyncio"]

[project.scripts]
sntpc-request = "sntpc.cli:request_main"
sntpc-timesync = "sntpc.cli:timesync_main"
sntpc-async = "sntpc.cli:async_main"

[tool.setuptools]
packages = ["sntpc"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]
