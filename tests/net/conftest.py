import socket
import threading
import time
from typing import Generator

import pytest

from piccross.net.registry import SessionRegistry
from piccross.net.server import PiccrossServer

LOCALHOST = "127.0.0.1"


def wait_until(predicate, timeout: float = 3.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


class LineClient:
    """Raw socket peer that speaks the line protocol by hand."""

    def __init__(self, port: int):
        self.sock = socket.create_connection((LOCALHOST, port), timeout=3)
        self.reader = self.sock.makefile("r", encoding="utf-8", newline="\n")

    def send(self, line: str) -> None:
        self.sock.sendall((line + "\n").encode("utf-8"))

    def recv(self) -> str:
        return self.reader.readline().rstrip("\n")

    def close(self) -> None:
        self.reader.close()
        self.sock.close()


@pytest.fixture
def registry() -> SessionRegistry:
    return SessionRegistry()


@pytest.fixture
def server(registry: SessionRegistry) -> Generator[PiccrossServer, None, None]:
    srv = PiccrossServer((LOCALHOST, 0), registry=registry, idle_timeout=5)
    thread = threading.Thread(target=srv.serve_forever, daemon=True)
    thread.start()
    yield srv
    srv.shutdown()
    srv.server_close()
    thread.join(timeout=3)


@pytest.fixture
def connect(server: PiccrossServer):
    clients = []

    def _connect() -> LineClient:
        client = LineClient(server.port)
        clients.append(client)
        return client

    yield _connect
    for client in clients:
        client.close()
