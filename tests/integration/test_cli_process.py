"""Run main.py as a subprocess and check wire behavior and exit codes."""

from __future__ import annotations

import json
import socket
from pathlib import Path

import pytest
import requests

from tests.conftest import HOST, run_cli

pytestmark = pytest.mark.integration


def _events(stderr: str) -> list[str]:
    events = []
    for line in stderr.splitlines():
        try:
            events.append(json.loads(line).get("event"))
        except json.JSONDecodeError:
            continue
    return events


def test_file_download_then_exit_zero(launch_server, sample_file: Path):
    """Scenario A: hello.txt is served once and the process exits 0."""
    server = launch_server(str(sample_file))

    response = requests.get(f"{server.base_url}/", timeout=5)

    assert response.status_code == 200
    assert response.headers["Content-Disposition"] == 'attachment; filename="hello.txt"'
    assert response.headers["Content-Length"] == "5"
    assert response.content == b"hello"

    stdout, stderr = server.process.communicate(timeout=10)
    assert server.process.returncode == 0
    assert "Serving 'hello.txt'" in stdout
    events = _events(stderr)
    assert "response_sent" in events
    assert "server_stopped" in events


def test_redirect_then_exit_zero(launch_server):
    """Scenario B: any path is redirected and the process exits 0."""
    server = launch_server("http://example.com")

    response = requests.get(
        f"{server.base_url}/anything", allow_redirects=False, timeout=5
    )

    assert response.status_code == 307
    assert response.headers["Location"] == "http://example.com"
    stdout, _ = server.process.communicate(timeout=10)
    assert server.process.returncode == 0
    assert "Forwarding to 'http://example.com'" in stdout


def test_missing_argument_exits_nonzero():
    result = run_cli([])
    assert result.returncode == 1
    assert "Missing file or URL" in result.stderr
    assert result.stdout == ""


def test_directory_argument_exits_nonzero(tmp_path: Path):
    result = run_cli([str(tmp_path)])
    assert result.returncode == 1
    assert "must be a file" in result.stderr


def test_missing_file_exits_nonzero(tmp_path: Path):
    result = run_cli([str(tmp_path / "nope.txt")])
    assert result.returncode == 1
    assert "nope.txt" in result.stderr


def test_port_in_use_exits_nonzero(sample_file: Path):
    with socket.create_server((HOST, 0)) as occupied:
        port = occupied.getsockname()[1]
        result = run_cli(["--host", HOST, "-p", str(port), str(sample_file)])
    assert result.returncode == 1
    assert "cannot listen" in result.stderr
    assert "Serving" not in result.stdout


def test_bad_port_is_a_usage_error(sample_file: Path):
    result = run_cli(["-p", "not-a-port", str(sample_file)])
    assert result.returncode == 2


def test_text_logs_to_file(launch_server, tmp_path: Path):
    """Logs can be routed to a file in text format."""
    log_file = tmp_path / "oneshot.log"
    server = launch_server(
        "https://example.com",
        ["--log-destination", str(log_file), "--log-format", "text"],
    )

    requests.get(server.base_url, allow_redirects=False, timeout=5)
    server.process.communicate(timeout=10)

    assert server.process.returncode == 0
    contents = log_file.read_text()
    assert "Response sent" in contents
    assert "oneshot.handlers" in contents


def test_reserved_port_is_free_again_after_exit(launch_server, sample_file: Path):
    """The listener is released once the process has exited."""
    server = launch_server(str(sample_file))
    requests.get(server.base_url, timeout=5)
    server.process.communicate(timeout=10)

    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.bind((HOST, server.port))


def test_out_of_range_port_is_a_usage_error():
    result = run_cli(["-p", "70000", "http://example.com"])
    assert result.returncode == 2
    assert "port must be 0-65535" in result.stderr
    assert "Traceback" not in result.stderr
