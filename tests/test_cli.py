import socket
import subprocess
import threading
from unittest import mock

import pytest

from sntpc.cli import async_main, request_main, timesync_main
from sntpc.types import NTP_TIMESTAMP_DELTA, NtpPacket

UNIX_SECONDS = 1_700_000_000
SERVER_TS = (NTP_TIMESTAMP_DELTA + UNIX_SECONDS) << 32


class FakeNtpServer:
    """Local UDP server answering SNTP requests with a fixed time."""

    def __init__(self, version=4, reply=True):
        self.version = version
        self.reply = reply
        self.sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        self.sock.bind(("127.0.0.1", 0))
        self.sock.settimeout(0.05)
        self.port = self.sock.getsockname()[1]
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._serve, daemon=True)

    def _serve(self):
        while not self._stop.is_set():
            try:
                data, addr = self.sock.recvfrom(1024)
            except OSError:
                continue
            if not self.reply:
                continue
            request = NtpPacket.from_bytes(data)
            response = NtpPacket(
                li_vn_mode=(self.version << 3) | 4,
                stratum=1,
                precision=-20,
                origin_timestamp=request.tx_timestamp,
                recv_timestamp=SERVER_TS,
                tx_timestamp=SERVER_TS,
            )
            self.sock.sendto(response.to_bytes(), addr)

    def __enter__(self):
        self._thread.start()
        return self

    def __exit__(self, *exc_info):
        self._stop.set()
        self._thread.join()
        self.sock.close()


def _args(server, timeout="0.5"):
    return ["--server", "127.0.0.1", "--port", str(server.port), "--timeout", timeout]


def test_request_main_prints_server_time(capsys):
    with FakeNtpServer() as server:
        code = request_main(_args(server))
    out = capsys.readouterr().out
    assert code == 0
    endpoint = f"127.0.0.1:{server.port}"
    assert f"Got time from [{endpoint}] {endpoint}: {UNIX_SECONDS}.0" in out


def test_request_main_reports_version_mismatch(capsys):
    with FakeNtpServer(version=3) as server:
        code = request_main(_args(server))
    out = capsys.readouterr().out
    assert code == 1
    assert "Err: INCORRECT_RESPONSE_VERSION" in out


def test_request_main_reports_network_error_on_silence(capsys):
    with FakeNtpServer(reply=False) as server:
        code = request_main(_args(server, timeout="0.2"))
    out = capsys.readouterr().out
    assert code == 1
    assert "Err: NETWORK" in out


def test_request_main_unresolvable_host(capsys):
    with mock.patch("socket.getaddrinfo", side_effect=socket.gaierror("no host")):
        code = request_main(["--server", "nowhere.example.com"])
    err = capsys.readouterr().err
    assert code == 1
    assert "Unable to resolve host: nowhere.example.com:123" in err


def test_timesync_main_sets_clock(capsys):
    completed = subprocess.CompletedProcess(args=[], returncode=0)
    with FakeNtpServer() as server, mock.patch(
        "subprocess.run", return_value=completed
    ) as run:
        code = timesync_main(_args(server))
    out = capsys.readouterr().out
    assert code == 0
    assert f"seconds={UNIX_SECONDS}" in out
    assert out.startswith("Received time: ")
    assert run.call_count == 1


def test_timesync_main_fails_without_answer(capsys):
    with FakeNtpServer(reply=False) as server:
        code = timesync_main(_args(server, timeout="0.2"))
    err = capsys.readouterr().err
    assert code == 1
    assert f"Unable to receive time from: 127.0.0.1:{server.port}" in err


def test_async_main_prints_result(capsys):
    with FakeNtpServer() as server:
        code = async_main(_args(server))
    out = capsys.readouterr().out
    assert code == 0
    assert out.startswith("RESULT: ")
    assert f"seconds={UNIX_SECONDS}" in out
    assert "stratum=1" in out


def test_async_main_reports_error(capsys):
    with FakeNtpServer(version=3) as server:
        code = async_main(_args(server))
    out = capsys.readouterr().out
    assert code == 1
    assert "ERROR: INCORRECT_RESPONSE_VERSION" in out


def test_async_main_reports_timeout(capsys):
    with FakeNtpServer(reply=False) as server:
        code = async_main(_args(server, timeout="0.2"))
    out = capsys.readouterr().out
    assert code == 1
    assert f"TIMEOUT: address 127.0.0.1:{server.port}" in out


@pytest.mark.parametrize("entry", [request_main, timesync_main, async_main])
def test_invalid_port_is_rejected(entry):
    with pytest.raises(SystemExit) as excinfo:
        entry(["--port", "not-a-port"])
    assert excinfo.value.code == 2