"""Shared fixtures: real HTTP servers on background threads or in child processes."""

import multiprocessing
import socket
import threading
import time

import httpx
import pytest
import uvicorn

from mock_service.app import serve


@pytest.fixture
def serve_app():
    """Start ASGI apps under uvicorn on free local ports; returns their base URLs."""
    running = []

    def start(app) -> str:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.bind(("127.0.0.1", 0))
        host, port = sock.getsockname()

        server = uvicorn.Server(uvicorn.Config(app, log_level="warning", lifespan="off"))
        thread = threading.Thread(target=server.run, kwargs={"sockets": [sock]}, daemon=True)
        thread.start()
        running.append((server, thread, sock))

        deadline = time.monotonic() + 10
        while not server.started:
            if time.monotonic() > deadline:
                raise RuntimeError("uvicorn did not start")
            time.sleep(0.01)
        return f"http://{host}:{port}"

    yield start

    for server, thread, sock in running:
        server.should_exit = True
        thread.join(timeout=10)
        sock.close()


@pytest.fixture
def closed_port_url():
    """A URL nothing is listening on."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    host, port = sock.getsockname()
    sock.close()
    return f"http://{host}:{port}"


@pytest.fixture
def mock_service_process():
    """Start mock services in their own processes; returns their base URLs."""
    processes = []

    def start(body="hello, world", latency_ms=0) -> str:
        ports = multiprocessing.Queue()
        process = multiprocessing.Process(target=serve, args=(body, latency_ms, ports), daemon=True)
        process.start()
        processes.append(process)

        url = f"http://127.0.0.1:{ports.get(timeout=30)}"
        _wait_until_serving(url, timeout=30 + latency_ms / 1000)
        return url

    yield start

    for process in processes:
        process.terminate()
        process.join(timeout=10)


def _wait_until_serving(url, timeout):
    deadline = time.monotonic() + timeout
    while True:
        try:
            httpx.get(url + "/ready", timeout=timeout)
            return
        except httpx.TransportError:
            if time.monotonic() > deadline:
                raise
            time.sleep(0.05)
