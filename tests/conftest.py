"""Shared pytest fixtures for integration and unit tests."""

from __future__ import annotations

import subprocess
import sys
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Generator, Optional

import pytest

from oneshot.bootstrap.config import ServeConfig
from oneshot.domain.targets import FileTarget, RedirectTarget, Target
from oneshot.lifecycle.coordinator import OneShotServer
from tests.utils.http import reserve_port, wait_for_port

PROJECT_ROOT = Path(__file__).resolve().parent.parent
SERVER_ENTRYPOINT = PROJECT_ROOT / "main.py"
HOST = "127.0.0.1"


@dataclass
class RunningServer:
    """An in-process server running on a background thread."""

    server: OneShotServer
    thread: threading.Thread
    banners: list[str] = field(default_factory=list)
    errors: list[BaseException] = field(default_factory=list)

    @property
    def port(self) -> int:
        assert self.server.bound_port is not None
        return self.server.bound_port

    @property
    def base_url(self) -> str:
        return f"http://{HOST}:{self.port}"

    def join(self, timeout: float = 5.0) -> None:
        self.thread.join(timeout)


def start_in_process(target: Target, grace_seconds: int = 5) -> RunningServer:
    """Start a OneShotServer on an ephemeral port and wait until it serves."""
    config = ServeConfig(
        port=0, target=target, host=HOST, shutdown_grace_seconds=grace_seconds
    )
    banners: list[str] = []
    server = OneShotServer(config, announce=banners.append)
    running = RunningServer(server, threading.Thread(), banners)

    def _run() -> None:
        try:
            server.serve()
        except BaseException as error:  # pylint: disable=broad-except
            running.errors.append(error)

    running.thread = threading.Thread(target=_run, daemon=True)
    running.thread.start()
    if not server.wait_until_serving(timeout=5.0):
        raise RuntimeError("in-process server did not start")
    return running


@pytest.fixture()
def sample_file(tmp_path: Path) -> Path:
    """A five byte text file named hello.txt."""

    path = tmp_path / "hello.txt"
    path.write_bytes(b"hello")
    return path


@pytest.fixture()
def file_target(sample_file: Path) -> FileTarget:
    """FileTarget for the sample file."""

    return FileTarget(str(sample_file), sample_file.name, sample_file.stat().st_size)


@pytest.fixture()
def serve_in_process() -> Generator[Callable[..., RunningServer], None, None]:
    """Factory starting in-process servers; all are shut down on teardown."""

    started: list[RunningServer] = []

    def _factory(target: Target, grace_seconds: int = 5) -> RunningServer:
        running = start_in_process(target, grace_seconds)
        started.append(running)
        return running

    yield _factory

    for running in started:
        running.server.request_shutdown("test_teardown")
        running.join()


@pytest.fixture()
def redirect_target() -> RedirectTarget:
    """RedirectTarget pointing at example.com."""

    return RedirectTarget("http://example.com")


@dataclass
class ServerProcess:
    """A oneshot-serve subprocess launched through main.py."""

    process: subprocess.Popen
    host: str
    port: int

    @property
    def base_url(self) -> str:
        return f"http://{self.host}:{self.port}"


def run_cli(args: list[str], timeout: float = 10.0) -> subprocess.CompletedProcess:
    """Run main.py to completion and capture its output."""
    return subprocess.run(
        [sys.executable, str(SERVER_ENTRYPOINT), *args],
        cwd=PROJECT_ROOT,
        capture_output=True,
        text=True,
        timeout=timeout,
        check=False,
    )


@pytest.fixture()
def launch_server() -> Generator[Callable[..., ServerProcess], None, None]:
    """Factory launching main.py as a subprocess and waiting for its port."""

    processes: list[subprocess.Popen] = []

    def _launch(target_arg: str, extra_args: Optional[list[str]] = None) -> ServerProcess:
        port = reserve_port(HOST)
        args = [
            sys.executable,
            str(SERVER_ENTRYPOINT),
            "--host",
            HOST,
            "-p",
            str(port),
            "--log-level",
            "DEBUG",
            *(extra_args or []),
            target_arg,
        ]
        process = subprocess.Popen(  # pylint: disable=consider-using-with
            args,
            cwd=PROJECT_ROOT,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
        )
        processes.append(process)
        try:
            wait_for_port(HOST, port)
        except Exception:
            process.terminate()
            stdout, stderr = process.communicate(timeout=5)
            print(f"\nServer stdout:\n{stdout}")
            print(f"\nServer stderr:\n{stderr}")
            raise
        return ServerProcess(process, HOST, port)

    yield _launch

    for process in processes:
        if process.poll() is None:
            process.terminate()
            try:
                process.wait(timeout=5)
            except subprocess.TimeoutExpired:
                process.kill()
        for stream in (process.stdout, process.stderr):
            if stream is not None:
                stream.close()
