"""Module containing a Memcached text protocol client."""

import collections.abc
import dataclasses
import types
import typing

from respite import codec, connection, error

if typing.TYPE_CHECKING:
    import typing_extensions

__all__: collections.abc.Sequence[str] = ("Memcached", "DEFAULT_PORT")

DEFAULT_PORT: typing.Final = 11211
DEFAULT_COMPRESSION_THRESHOLD: typing.Final = 256

_ERROR_PREFIXES: typing.Final = (b"ERROR", b"CLIENT_ERROR", b"SERVER_ERROR")


class _Item(typing.NamedTuple):
    value: typing.Any
    cas: int | None


@dataclasses.dataclass(slots=True)
class Memcached:
    """Memcached client over the text protocol.

    Values are encoded with a ``ValueCodec``: strings and numbers are stored
    as-is, anything else as JSON, and payloads of 256 bytes or more are
    compressed. The flags written are compatible with the PHP memcached
    extension.
    """

    connection: connection.Connection
    value_codec: codec.ValueCodec = dataclasses.field(
        default_factory=lambda: codec.ValueCodec(DEFAULT_COMPRESSION_THRESHOLD),
    )

    @classmethod
    def from_host_port(
        cls,
        host: str = "127.0.0.1",
        port: int = DEFAULT_PORT,
        /,
        *,
        timeout: float = connection.DEFAULT_TIMEOUT,
        read_timeout: float | None = None,
    ) -> "typing_extensions.Self":
        """Create a client for Memcached at the provided host and port."""
        return cls(connection.Connection(host, port, timeout=timeout, read_timeout=read_timeout))

    @classmethod
    def from_url(cls, url: str, /) -> "typing_extensions.Self":
        """Create a client from a ``memcached://host[:port]`` or ``unix:///path`` url."""
        return cls(connection.Connection.from_url(url, default_port=DEFAULT_PORT))

    def __enter__(self) -> "typing_extensions.Self":
        return self

    def __exit__(
        self,
        _exc_type: type[BaseException] | None,
        _exc_value: BaseException | None,
        _exc_tb: types.TracebackType | None,
    ) -> None:
        self.disconnect()

    def disconnect(self) -> None:
        """Close the connection to the server."""
        self.connection.disconnect()

    def set_compression_threshold(self, threshold: int | None = DEFAULT_COMPRESSION_THRESHOLD) -> None:
        """Compress values of at least ``threshold`` bytes; ``None`` or 0 disables compression."""
        self.value_codec.compression_threshold = threshold or None

    def _unexpected(self, line: bytes, exc: BaseException | None = None) -> typing.NoReturn:
        # The rest of the reply cannot be framed any more.
        self.connection.disconnect()
        msg = f"Unexpected response from '{self.connection.address}': {line!r}"
        raise error.ProtocolError(msg) from exc

    def _read_line(self) -> bytes:
        line = self.connection.read_line()
        if line.startswith(_ERROR_PREFIXES):
            raise error.ServerError.from_response(line)

        return line

    def _read_items(self) -> dict[bytes, _Item]:
        items: dict[bytes, _Item] = {}

        while (line := self._read_line()) != b"END":
            # VALUE <key> <flags> <bytes> [<cas unique>]
            parts = line.split(b" ")
            if parts[0] != b"VALUE" or len(parts) not in (4, 5):
                self._unexpected(line)

            try:
                flags, size = int(parts[2]), int(parts[3])
                cas = int(parts[4]) if len(parts) == 5 else None  # noqa: PLR2004
            except ValueError as exc:
                self._unexpected(line, exc)

            if size < 0:
                self._unexpected(line)

            data = self.connection.read(size)
            items[parts[1]] = _Item(self.value_codec.loads(data, flags), cas)

        return items

    def get(self, key: str | bytes) -> typing.Any:  # noqa: ANN401
        """Retrieve an item; None if the key does not exist."""
        key = connection.validate_key(key)
        item = self._read_items_for(b"get", key).get(key)
        return None if item is None else item.value

    def gets(self, key: str | bytes) -> tuple[typing.Any, int] | None:
        """Retrieve an item together with its CAS token, for use with ``cas``."""
        key = connection.validate_key(key)
        item = self._read_items_for(b"gets", key).get(key)
        return None if item is None else (item.value, typing.cast(int, item.cas))

    def _read_items_for(self, verb: bytes, *keys: str | bytes) -> dict[bytes, _Item]:
        validated = [connection.validate_key(key) for key in keys]
        self.connection.write(b" ".join([verb, *validated]))
        return self._read_items()

    def get_multi(self, keys: collections.abc.Iterable[str | bytes]) -> dict[str | bytes, typing.Any]:
        """Retrieve multiple items in one round trip.

        Only keys that exist are present in the result, keyed as passed in.
        """
        requested = {connection.validate_key(key): key for key in keys}
        if not requested:
            return {}

        items = self._read_items_for(b"get", *requested)
        return {requested[key]: item.value for key, item in items.items() if key in requested}

    def _store(  # noqa: PLR0913
        self,
        verb: bytes,
        key: str | bytes,
        value: typing.Any,  # noqa: ANN401
        expiry: int,
        cas_token: int | None = None,
        *,
        encode: bool = True,
    ) -> bool:
        key = connection.validate_key(key)

        if encode:
            flags, data = self.value_codec.dumps(value)
        else:
            flags, data = codec.Flag.NONE, value.encode() if isinstance(value, str) else value

        header = b"%s %s %i %i %i" % (verb, key, flags, expiry, len(data))
        if cas_token is not None:
            header += b" %i" % cas_token

        self.connection.write(header + b"\r\n" + data)
        return self._read_line() == b"STORED"

    def set(self, key: str | bytes, value: typing.Any, expiry: int = 0) -> bool:  # noqa: ANN401
        """Store an item."""
        return self._store(b"set", key, value, expiry)

    def add(self, key: str | bytes, value: typing.Any, expiry: int = 0) -> bool:  # noqa: ANN401
        """Store an item, only if the key does not exist yet."""
        return self._store(b"add", key, value, expiry)

    def replace(self, key: str | bytes, value: typing.Any, expiry: int = 0) -> bool:  # noqa: ANN401
        """Store an item, only if the key already exists."""
        return self._store(b"replace", key, value, expiry)

    def append(self, key: str | bytes, value: str | bytes) -> bool:
        """Append raw bytes to an existing item. Do not use on compressed items."""
        return self._store(b"append", key, value, 0, encode=False)

    def prepend(self, key: str | bytes, value: str | bytes) -> bool:
        """Prepend raw bytes to an existing item. Do not use on compressed items."""
        return self._store(b"prepend", key, value, 0, encode=False)

    def cas(self, cas_token: int, key: str | bytes, value: typing.Any, expiry: int = 0) -> bool:  # noqa: ANN401
        """Store an item, only if it was not modified since ``gets`` returned ``cas_token``."""
        return self._store(b"cas", key, value, expiry, cas_token)

    def _count(self, verb: bytes, key: str | bytes, diff: int, fallback: int) -> int:
        key = connection.validate_key(key)
        self.connection.write(b"%s %s %i" % (verb, key, diff))

        response = self._read_line()
        if response.isdigit():
            return int(response)

        # NOT_FOUND: start counting from scratch.
        self._store(b"set", key, fallback, 0)
        return fallback

    def incr(self, key: str | bytes, diff: int = 1) -> int:
        """Increment a counter, creating it with value ``diff`` if it does not exist."""
        return self._count(b"incr", key, diff, diff)

    def decr(self, key: str | bytes, diff: int = 1) -> int:
        """Decrement a counter (not below zero), creating it at 0 if it does not exist."""
        return self._count(b"decr", key, diff, 0)

    def delete(self, key: str | bytes) -> bool:
        """Delete an item, returning whether it existed."""
        self.connection.write(b"delete " + connection.validate_key(key))
        return self._read_line() == b"DELETED"

    def flush(self, delay: int = 0) -> bool:
        """Invalidate all items, after ``delay`` seconds."""
        self.connection.write(b"flush_all %i" % delay)
        return self._read_line() == b"OK"

    def stats(self) -> dict[str, str]:
        """Return the general-purpose server statistics."""
        self.connection.write(b"stats")

        stats: dict[str, str] = {}
        while (line := self._read_line()) != b"END":
            prefix, _, rest = line.decode("utf-8", errors="replace").partition(" ")
            name, _, value = rest.partition(" ")
            if prefix != "STAT" or not name:
                self._unexpected(line)

            stats[name] = value

        return stats
