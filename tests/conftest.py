import asyncio
import os
import socket
from typing import Callable, List, Optional


def pytest_configure(config):
    # caplog listens on the root logger
    os.environ.setdefault("DYB_LOG_PROPAGATE", "1")
    os.environ.setdefault("DYB_ENV", "dev")


class DummyTransport:
    def __init__(self) -> None:
        self.written: List[bytes] = []
        self.aborted = False
        self.closed = False

    def write(self, data: bytes) -> None:
        self.written.append(data)

    def abort(self) -> None:
        self.aborted = True

    def close(self) -> None:
        self.closed = True

    def is_closing(self) -> bool:
        return self.aborted or self.closed


def attach_dummy_transport(client) -> DummyTransport:
    """Put ``client`` into the CONNECTED state over a DummyTransport."""
    from dybclient.connection import _GameProtocol

    transport = DummyTransport()
    protocol = _GameProtocol(client)
    client._protocol = protocol
    protocol.connection_made(transport)
    return transport


class GameStub:
    """Throw-away TCP server standing in for the game."""

    def __init__(self) -> None:
        self.server: Optional[asyncio.AbstractServer] = None
        self.port = 0
        self.connections = 0
        self.writers: List[asyncio.StreamWriter] = []
        self.received = bytearray()

    async def start(self) -> "GameStub":
        self.server = await asyncio.start_server(self._handle, "127.0.0.1", 0)
        self.port = self.server.sockets[0].getsockname()[1]
        return self

    async def _handle(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        self.connections += 1
        self.writers.append(writer)
        try:
            while True:
                data = await reader.read(4096)
                if not data:
                    break
                self.received.extend(data)
        except ConnectionError:
            pass
        finally:
            if writer in self.writers:
                self.writers.remove(writer)
            writer.close()

    def frames(self) -> List[bytes]:
        """Outbound client frames received so far, terminators stripped."""
        return [f for f in bytes(self.received).split(b"\0") if f]

    async def push(self, data: bytes) -> None:
        for writer in list(self.writers):
            writer.write(data)
            await writer.drain()

    async def drop_clients(self) -> None:
        for writer in list(self.writers):
            writer.close()
        self.writers.clear()

    async def stop(self) -> None:
        await self.drop_clients()
        if self.server is not None:
            self.server.close()
            await asyncio.wait_for(self.server.wait_closed(), timeout=2.0)


def free_port() -> int:
    """A local port with nothing listening on it."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


async def wait_for(predicate: Callable[[], bool], timeout: float = 3.0) -> bool:
    loop = asyncio.get_running_loop()
    end = loop.time() + timeout
    while loop.time() < end:
        if predicate():
            return True
        await asyncio.sleep(0.01)
    return predicate()
