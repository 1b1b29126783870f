"""Shared fixtures.

Instead of a real server, every connection made by ``socket.create_connection``
is one end of a ``socket.socketpair()``; the other end is a ``Peer`` that the
test drives by hand.
"""

import collections
import collections.abc
import io
import socket

import pytest

from respite import Redis, connection


class Peer:
    """The server side of a socket pair, standing in for a real server."""

    def __init__(self, sock: socket.socket) -> None:
        self.sock = sock
        self.sock.settimeout(5)
        self.reader = sock.makefile("rb")

    def reply(self, *chunks: bytes) -> None:
        self.sock.sendall(b"".join(chunks))

    def read_line(self) -> bytes:
        line = self.reader.readline()
        assert line.endswith(b"\r\n"), line
        return line[:-2]

    def read_exactly(self, n: int) -> bytes:
        data = self.reader.read(n)
        assert len(data) == n
        return data

    def read_command(self) -> list[bytes]:
        """Decode one multi-bulk request."""
        header = self.read_line()
        assert header.startswith(b"*"), header

        args = []
        for _ in range(int(header[1:])):
            length = self.read_line()
            assert length.startswith(b"$"), length
            data = self.read_exactly(int(length[1:]) + 2)
            assert data.endswith(b"\r\n")
            args.append(data[:-2])

        return args

    def close(self) -> None:
        self.reader.close()
        self.sock.close()


class FakeNetwork:
    def __init__(self) -> None:
        self.peers: list[Peer] = []
        self.addresses: list[tuple[str, int]] = []
        self._primed: collections.deque[bytes] = collections.deque()

    def prime(self, *chunks: bytes) -> None:
        """Queue data for the next peer to send as soon as it is connected."""
        self._primed.append(b"".join(chunks))

    def create_connection(
        self,
        address: tuple[str, int],
        timeout: float | None = None,
        *_args: object,
        **_kwargs: object,
    ) -> socket.socket:
        client, server = socket.socketpair()
        client.settimeout(timeout)

        peer = Peer(server)
        if self._primed:
            peer.reply(self._primed.popleft())

        self.addresses.append(address)
        self.peers.append(peer)
        return client

    @property
    def peer(self) -> Peer:
        return self.peers[-1]


@pytest.fixture
def network(monkeypatch: pytest.MonkeyPatch) -> collections.abc.Iterator[FakeNetwork]:
    net = FakeNetwork()
    monkeypatch.setattr(connection.socket, "create_connection", net.create_connection)
    yield net

    for peer in net.peers:
        peer.close()


@pytest.fixture
def redis(network: FakeNetwork) -> collections.abc.Iterator[Redis]:
    # A read timeout turns a missing reply into a failure instead of a hang.
    client = Redis.from_host_port("redis.test", 6379, read_timeout=5)
    yield client
    client.disconnect()


class BytesTransport:
    """In-memory transport reading from a fixed buffer."""

    def __init__(self, data: bytes) -> None:
        self.buffer = io.BytesIO(data)
        self.written = bytearray()

    def connect(self) -> None:
        pass

    def disconnect(self) -> None:
        pass

    def is_alive(self) -> bool:
        return True

    def read(self, n: int, /, *, strip_newline: bool = True) -> bytes:
        data = self.buffer.read(n + 2 if strip_newline else n)
        return data[:-2] if strip_newline else data

    def read_line(self, *, terminator: bytes = b"\r\n") -> bytes:
        line = self.buffer.readline()
        assert line.endswith(terminator), line
        return line[: -len(terminator)]

    def write(self, data: bytes, /, *, append_newline: bool = True) -> None:
        self.written += data + (b"\r\n" if append_newline else b"")

    def remaining(self) -> bytes:
        return self.buffer.read()


@pytest.fixture
def make_transport() -> type[BytesTransport]:
    return BytesTransport
