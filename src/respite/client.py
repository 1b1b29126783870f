"""Module containing Redis client implementation."""

import collections
import collections.abc
import dataclasses
import functools
import types
import typing
import urllib.parse

from respite import codec, command, connection, error, log, resp, stream, transform

if typing.TYPE_CHECKING:
    import typing_extensions

__all__: collections.abc.Sequence[str] = ("Redis", "DEFAULT_PORT")

_LOGGER = log.get_logger(__name__)

DEFAULT_PORT: typing.Final = 6379
DEFAULT_COMPRESSION_THRESHOLD: typing.Final = 1024

_SCHEMES: typing.Final = frozenset({"redis", "rediss", "unix"})
_SUCCESS_STATUSES: typing.Final = frozenset({"OK", "PONG", "QUEUED"})
_KEYED_LOOKUPS: typing.Final = frozenset({"MGET", "HMGET"})


def _handshake(*args: command.ArgumentT) -> connection.PostConnectHook:
    def hook(con: connection.Connection) -> None:
        con.write(command.Command(*args).encode(), append_newline=False)
        resp.read_reply(con)

    return hook


def _parse_version(text: str) -> tuple[int, ...]:
    return tuple(int(part) for part in text.split(".") if part.isdigit())


@dataclasses.dataclass(slots=True)
class _Pending:
    """A command that was sent, and whose reply has not been read yet."""

    command: command.Command
    # Sent between MULTI and EXEC, so the reply is just QUEUED.
    queued: bool = False
    # For EXEC: the commands whose replies make up the EXEC reply.
    transaction: list[command.Command] | None = None


@dataclasses.dataclass(slots=True)
class Redis:
    """Redis client implementation.

    The client wraps a single ``Connection`` and is not safe to share between
    threads; use one client per thread instead. Nothing is sent until the
    first command is executed.

    Besides executing commands one at a time, the client supports:

    - pipelining: after ``open_pipeline``, commands are sent without reading
      their replies. Each call returns the number of queued replies, which
      are read in order with ``fetch_response``.
    - transactions: replies to ``EXEC`` are post-processed per queued
      command, so e.g. an ``MGET`` inside ``MULTI``/``EXEC`` still produces
      a dict.
    - streaming: with ``streaming`` enabled, multi-bulk replies are returned
      as a ``StreamCursor`` that reads elements on demand.
    """

    connection: connection.Connection
    value_codec: codec.ValueCodec | None = None
    streaming: bool = False

    _server_version: tuple[int, ...] | None = dataclasses.field(default=None, repr=False)
    _last_status: str | None = dataclasses.field(default=None, repr=False)
    _pipeline: collections.deque[_Pending] | None = dataclasses.field(default=None, repr=False)
    _transaction: list[command.Command] | None = dataclasses.field(default=None, repr=False)

    @classmethod
    def from_host_port(
        cls,
        host: str,
        port: int = DEFAULT_PORT,
        /,
        *,
        timeout: float = connection.DEFAULT_TIMEOUT,
        read_timeout: float | None = None,
    ) -> "typing_extensions.Self":
        """Create a client for Redis at the provided host and port."""
        return cls(connection.Connection(host, port, timeout=timeout, read_timeout=read_timeout))

    @classmethod
    def from_unix_socket(
        cls,
        path: str,
        /,
        *,
        timeout: float = connection.DEFAULT_TIMEOUT,
        read_timeout: float | None = None,
    ) -> "typing_extensions.Self":
        """Create a client for Redis listening on a UNIX-domain socket."""
        return cls(connection.Connection(path=path, timeout=timeout, read_timeout=read_timeout))

    @classmethod
    def from_url(cls, url: str, /) -> "typing_extensions.Self":
        """Create a client from a Redis url.

        Supported are ``redis://[[user]:password@]host[:port][/db]``, the same
        with ``rediss://`` for TLS, and ``unix:///path/to/socket?db=<db>``.
        ``timeout`` and ``read_timeout`` may be passed as query parameters.

        This performs URL validation, but does *not* make any connections.
        """
        parsed = urllib.parse.urlparse(url)
        if parsed.scheme not in _SCHEMES:
            msg = "Only urls of scheme 'redis://', 'rediss://' or 'unix://' are supported"
            raise ValueError(msg)

        self = cls(connection.Connection.from_url(url, default_port=DEFAULT_PORT))
        options = dict(urllib.parse.parse_qsl(parsed.query))

        password = parsed.password or options.get("password")
        if password:
            credentials = (parsed.username, password) if parsed.username else (password,)
            self.connection.add_post_connect_hook("AUTH", _handshake("AUTH", *credentials))

        db = options.get("db") if parsed.scheme == "unix" else parsed.path.strip("/")
        if db:
            if not db.isdigit():
                msg = f"Invalid database number: {db!r}"
                raise ValueError(msg)

            self.connection.add_post_connect_hook("SELECT", _handshake("SELECT", int(db)))

        return self

    def __enter__(self) -> "typing_extensions.Self":
        return self

    def __exit__(
        self,
        _exc_type: type[BaseException] | None,
        _exc_value: BaseException | None,
        _exc_tb: types.TracebackType | None,
    ) -> None:
        self.disconnect()

    # Configuration.

    def enable_compression(self, threshold: int = DEFAULT_COMPRESSION_THRESHOLD) -> None:
        """Compress values of at least ``threshold`` bytes passed to typed commands.

        This also enables JSON serialization of non-scalar values. Compressed
        and serialized values are marked with a prefix that other Redis
        clients will not understand.
        """
        if self.value_codec is None:
            self.value_codec = codec.ValueCodec(threshold)
        else:
            self.value_codec.compression_threshold = threshold

    def disable_compression(self) -> None:
        """Stop compressing values. Compressed values can still be read."""
        if self.value_codec is not None:
            self.value_codec.compression_threshold = None

    def enable_streaming(self) -> None:
        """Return multi-bulk replies as ``StreamCursor`` objects."""
        self.streaming = True

    def disable_streaming(self) -> None:
        """Return multi-bulk replies as lists again."""
        self.streaming = False

    @property
    def last_status(self) -> str | None:
        """The most recent status reply, usually ``OK``."""
        return self._last_status

    @property
    def server_version(self) -> tuple[int, ...]:
        """The Redis server version, e.g. ``(7, 2, 4)``.

        This is read from ``INFO`` the first time it is needed, unless it was
        set explicitly.
        """
        if self._server_version is None:
            self._server_version = self.detect_server_version()

        return self._server_version

    @server_version.setter
    def server_version(self, version: tuple[int, ...] | str) -> None:
        self._server_version = _parse_version(version) if isinstance(version, str) else version

    def detect_server_version(self) -> tuple[int, ...]:
        """Ask the server for its version."""
        if self.pipeline_open or self.transaction_open:
            msg = "Cannot detect the server version while a pipeline or transaction is open."
            raise error.StateError(msg)

        info = self.execute_command(command.Command("INFO", "server"))
        return _parse_version(info.get("redis_version", ""))

    # Session state.

    @property
    def pipeline_open(self) -> bool:
        """Whether commands are being queued without reading their replies."""
        return self._pipeline is not None

    @property
    def pending_responses(self) -> int:
        """The number of pipelined replies that have not been fetched."""
        return len(self._pipeline) if self._pipeline is not None else 0

    @property
    def transaction_open(self) -> bool:
        """Whether a MULTI block is open."""
        return self._transaction is not None

    def _reset_session(self) -> None:
        if self._pipeline or self._transaction is not None:
            _LOGGER.warning(
                "discarding session state",
                address=self.connection.address,
                pending_responses=self.pending_responses,
                transaction_open=self.transaction_open,
            )

        self._pipeline = None
        self._transaction = None

    def disconnect(self) -> None:
        """Close the connection. Open pipelines and transactions are discarded."""
        self._reset_session()
        self.connection.disconnect()

    # Request/response cycle.

    def _send(self, cmd: command.Command) -> _Pending:
        try:
            self.connection.write(cmd.encode(), append_newline=False)

        except (error.TransportError, error.ConnectionError):
            self._reset_session()
            raise

        name = cmd.name

        if name == "MULTI":
            if self._transaction is None:
                self._transaction = []

            return _Pending(cmd)

        if name == "EXEC":
            queued, self._transaction = self._transaction, None
            return _Pending(cmd, transaction=queued)

        if name == "DISCARD":
            self._transaction = None
            return _Pending(cmd)

        if self._transaction is not None:
            self._transaction.append(cmd)
            return _Pending(cmd, queued=True)

        return _Pending(cmd)

    def _receive(self, pending: _Pending) -> typing.Any:  # noqa: ANN401
        if self.connection.is_borrowed():
            msg = "Cannot read a reply while a stream cursor still has unread elements."
            raise error.StateError(msg)

        stream_factory: resp.StreamFactory | None = None
        if self.streaming and pending.transaction is None:
            keys = pending.command.context if pending.command.name in _KEYED_LOOKUPS else None
            stream_factory = functools.partial(stream.StreamCursor, keys=keys)

        try:
            reply = resp.read_reply(self.connection, stream_factory=stream_factory)

        except error.ProtocolError:
            _LOGGER.warning("protocol error, disconnecting", address=self.connection.address)
            self.disconnect()
            raise

        except (error.TransportError, error.ConnectionError):
            self._reset_session()
            raise

        return self._postprocess(pending, reply)

    def _status(self, reply: resp.Status) -> bool | str:
        self._last_status = str(reply)
        return True if reply in _SUCCESS_STATUSES else str(reply)

    def _postprocess(self, pending: _Pending, reply: typing.Any) -> typing.Any:  # noqa: ANN401
        if isinstance(reply, resp.Status):
            reply = self._status(reply)

        if pending.queued or isinstance(reply, stream.StreamCursor):
            return reply

        if pending.transaction is not None:
            return self._postprocess_transaction(pending.transaction, reply)

        cmd = pending.command
        reply = transform.transform(cmd.name, reply, cmd.context)

        if cmd.decode_values and self.value_codec is not None:
            reply = self._unpack_values(reply)

        return reply

    def _postprocess_transaction(
        self,
        queued: list[command.Command],
        reply: list[typing.Any] | None,
    ) -> list[typing.Any] | None:
        if reply is None:
            # Aborted, because a WATCHed key changed.
            return None

        if len(reply) != len(queued):
            msg = f"EXEC returned {len(reply)} replies for {len(queued)} queued commands."
            raise error.ProtocolError(msg)

        return [self._postprocess(_Pending(cmd), item) for cmd, item in zip(queued, reply, strict=True)]

    def execute_command(self, cmd: command.Command, /) -> typing.Any:  # noqa: ANN401
        """Send a command and read its reply.

        While a pipeline is open, the reply is not read; the number of queued
        replies is returned instead.
        """
        pending = self._send(cmd)

        if self._pipeline is not None:
            self._pipeline.append(pending)
            return len(self._pipeline)

        return self._receive(pending)

    def execute(self, name: str | bytes, /, *args: typing.Any) -> typing.Any:  # noqa: ANN401
        """Execute any command by name.

        Arguments are flattened; ``MSET``-style commands accept a mapping.
        See ``Command.build``.
        """
        return self.execute_command(command.Command.build(name, *args))

    # Pipelining.

    def open_pipeline(self) -> None:
        """Start queueing commands without reading their replies."""
        if self._pipeline is not None:
            msg = "A pipeline is already open."
            raise error.PipelineError(msg)

        self._pipeline = collections.deque()

    def fetch_response(self) -> typing.Any:  # noqa: ANN401
        """Read the reply to the oldest pipelined command."""
        if self._pipeline is None:
            msg = "No pipeline is open."
            raise error.PipelineError(msg)

        if not self._pipeline:
            msg = "All pipelined responses have been fetched already."
            raise error.PipelineError(msg)

        return self._receive(self._pipeline.popleft())

    def close_pipeline(self, *, force_flush: bool = False) -> list[typing.Any]:
        """Stop pipelining.

        If replies are still pending, this raises ``PipelineError`` unless
        ``force_flush`` is set, in which case they are read and returned in
        order. Error replies are returned in place as ``ServerError``
        instances, so one failed command does not hide the replies after it.

        The pipeline is closed even if flushing fails. If replies would be
        left unread, the connection is closed too.
        """
        if self._pipeline is None:
            msg = "No pipeline is open."
            raise error.PipelineError(msg)

        if self._pipeline and not force_flush:
            msg = f"{len(self._pipeline)} pipelined responses have not been fetched."
            raise error.PipelineError(msg)

        flushed: list[typing.Any] = []
        try:
            while self._pipeline:
                try:
                    flushed.append(self.fetch_response())
                except error.ServerError as exc:
                    flushed.append(exc)

        finally:
            if self._pipeline:
                # Replies are left unread on the socket.
                self.disconnect()

            self._pipeline = None

        return flushed

    # Value coding.

    def _pack(self, value: typing.Any) -> typing.Any:  # noqa: ANN401
        return value if self.value_codec is None else self.value_codec.pack(value)

    def _unpack_values(self, reply: typing.Any) -> typing.Any:  # noqa: ANN401
        assert self.value_codec is not None

        if isinstance(reply, bytes):
            return self.value_codec.unpack(reply)

        if isinstance(reply, list):
            return [self.value_codec.unpack(item) if isinstance(item, bytes) else item for item in reply]

        if isinstance(reply, dict):
            return {
                key: self.value_codec.unpack(value) if isinstance(value, bytes) else value
                for key, value in reply.items()
            }

        return reply

    def _call(self, name: str, /, *args: typing.Any, decode: bool = False) -> typing.Any:  # noqa: ANN401
        cmd = command.Command.build(name, *args).set_decode_values(decode)
        return self.execute_command(cmd)

    # Connection commands.

    def ping(self) -> typing.Any:  # noqa: ANN401
        """Ping the server."""
        return self._call("PING")

    def echo(self, message: str | bytes) -> typing.Any:  # noqa: ANN401
        """Have the server echo ``message`` back."""
        return self._call("ECHO", message)

    def auth(self, password: str, username: str | None = None) -> typing.Any:  # noqa: ANN401
        """Authenticate the current connection.

        This does not survive reconnects; use ``Redis.from_url`` with a
        password for that.
        """
        return self._call("AUTH", *((username,) if username else ()), password)

    def select(self, db: int) -> typing.Any:  # noqa: ANN401
        """Switch to the database numbered ``db``."""
        return self._call("SELECT", db)

    def quit(self) -> typing.Any:  # noqa: ANN401
        """Ask the server to close the connection, then disconnect."""
        try:
            return self._call("QUIT")
        finally:
            if not self.pipeline_open:
                self.disconnect()

    # Key commands.

    def exists(self, *keys: str | bytes) -> typing.Any:  # noqa: ANN401
        """Return the number of the given keys that exist."""
        return self._call("EXISTS", *map(connection.validate_key, keys))

    def delete(self, *keys: str | bytes) -> typing.Any:  # noqa: ANN401
        """Delete keys, returning how many were removed."""
        return self._call("DEL", *map(connection.validate_key, keys))

    def type(self, key: str | bytes) -> typing.Any:  # noqa: ANN401
        """Return the type of the value at ``key``, or None if there is none."""
        return self._call("TYPE", connection.validate_key(key))

    def keys(self, pattern: str | bytes = "*") -> typing.Any:  # noqa: ANN401
        """Return the keys matching ``pattern``."""
        return self._call("KEYS", pattern)

    def rename(self, src: str | bytes, dst: str | bytes) -> typing.Any:  # noqa: ANN401
        """Rename ``src`` to ``dst``."""
        return self._call("RENAME", connection.validate_key(src), connection.validate_key(dst))

    def expire(self, key: str | bytes, seconds: int) -> typing.Any:  # noqa: ANN401
        """Set a timeout of ``seconds`` on ``key``."""
        return self._call("EXPIRE", connection.validate_key(key), seconds)

    def ttl(self, key: str | bytes) -> typing.Any:  # noqa: ANN401
        """Return the remaining time to live of ``key`` in seconds."""
        return self._call("TTL", connection.validate_key(key))

    def persist(self, key: str | bytes) -> typing.Any:  # noqa: ANN401
        """Remove the timeout from ``key``."""
        return self._call("PERSIST", connection.validate_key(key))

    # Server commands.

    def dbsize(self) -> typing.Any:  # noqa: ANN401
        """Return the number of keys in the current database."""
        return self._call("DBSIZE")

    def flushdb(self) -> typing.Any:  # noqa: ANN401
        """Delete every key in the current database."""
        return self._call("FLUSHDB")

    def info(self, section: str | None = None) -> typing.Any:  # noqa: ANN401
        """Return server information as a dict of strings."""
        return self._call("INFO", *((section,) if section else ()))

    # String commands.

    def get(self, key: str | bytes) -> typing.Any:  # noqa: ANN401
        """Get the value of ``key``, or None if it does not exist."""
        return self._call("GET", connection.validate_key(key), decode=True)

    def set(  # noqa: PLR0913
        self,
        key: str | bytes,
        value: typing.Any,  # noqa: ANN401
        *,
        ex: int | None = None,
        px: int | None = None,
        nx: bool = False,
        xx: bool = False,
    ) -> typing.Any:  # noqa: ANN401
        """Set ``key`` to ``value``.

        ``ex``/``px`` set an expiry in seconds/milliseconds; ``nx`` only sets
        missing keys, ``xx`` only existing ones. A set that did not happen
        because of ``nx``/``xx`` returns None.
        """
        cmd = command.Command("SET", connection.validate_key(key), self._pack(value))

        if ex is not None:
            cmd.arg(b"EX").arg(ex)

        if px is not None:
            cmd.arg(b"PX").arg(px)

        if nx:
            cmd.arg(b"NX")

        if xx:
            cmd.arg(b"XX")

        return self.execute_command(cmd)

    def setnx(self, key: str | bytes, value: typing.Any) -> typing.Any:  # noqa: ANN401
        """Set ``key`` only if it does not exist yet."""
        return self._call("SETNX", connection.validate_key(key), self._pack(value))

    def setex(self, key: str | bytes, seconds: int, value: typing.Any) -> typing.Any:  # noqa: ANN401
        """Set ``key`` with a timeout of ``seconds``."""
        return self._call("SETEX", connection.validate_key(key), seconds, self._pack(value))

    def getset(self, key: str | bytes, value: typing.Any) -> typing.Any:  # noqa: ANN401
        """Set ``key`` and return its old value."""
        return self._call("GETSET", connection.validate_key(key), self._pack(value), decode=True)

    def mget(self, *keys: str | bytes | collections.abc.Sequence[str | bytes]) -> typing.Any:  # noqa: ANN401
        """Get multiple values at once, as a dict of key to value.

        Missing keys map to None.
        """
        cmd = command.Command.build("MGET", *keys)
        for key in cmd.context:
            connection.validate_key(key)

        return self.execute_command(cmd.set_decode_values(True))

    def mset(self, mapping: collections.abc.Mapping[str | bytes, typing.Any]) -> typing.Any:  # noqa: ANN401
        """Set multiple keys at once."""
        return self._call(
            "MSET",
            {connection.validate_key(key): self._pack(value) for key, value in mapping.items()},
        )

    def msetnx(self, mapping: collections.abc.Mapping[str | bytes, typing.Any]) -> typing.Any:  # noqa: ANN401
        """Set multiple keys at once, only if none of them exist."""
        return self._call(
            "MSETNX",
            {connection.validate_key(key): self._pack(value) for key, value in mapping.items()},
        )

    def incr(self, key: str | bytes) -> typing.Any:  # noqa: ANN401
        """Increment the integer at ``key`` by one."""
        return self._call("INCR", connection.validate_key(key))

    def incrby(self, key: str | bytes, amount: int) -> typing.Any:  # noqa: ANN401
        """Increment the integer at ``key`` by ``amount``."""
        return self._call("INCRBY", connection.validate_key(key), amount)

    def decr(self, key: str | bytes) -> typing.Any:  # noqa: ANN401
        """Decrement the integer at ``key`` by one."""
        return self._call("DECR", connection.validate_key(key))

    def decrby(self, key: str | bytes, amount: int) -> typing.Any:  # noqa: ANN401
        """Decrement the integer at ``key`` by ``amount``."""
        return self._call("DECRBY", connection.validate_key(key), amount)

    def append(self, key: str | bytes, value: str | bytes) -> typing.Any:  # noqa: ANN401
        """Append raw ``value`` to the string at ``key``."""
        return self._call("APPEND", connection.validate_key(key), value)

    def strlen(self, key: str | bytes) -> typing.Any:  # noqa: ANN401
        """Return the length of the string at ``key``."""
        return self._call("STRLEN", connection.validate_key(key))

    # List commands.

    def lpush(self, key: str | bytes, *values: typing.Any) -> typing.Any:  # noqa: ANN401
        """Prepend values to a list."""
        return self._call("LPUSH", connection.validate_key(key), *map(self._pack, values))

    def rpush(self, key: str | bytes, *values: typing.Any) -> typing.Any:  # noqa: ANN401
        """Append values to a list."""
        return self._call("RPUSH", connection.validate_key(key), *map(self._pack, values))

    def lpop(self, key: str | bytes) -> typing.Any:  # noqa: ANN401
        """Remove and return the first element of a list."""
        return self._call("LPOP", connection.validate_key(key), decode=True)

    def rpop(self, key: str | bytes) -> typing.Any:  # noqa: ANN401
        """Remove and return the last element of a list."""
        return self._call("RPOP", connection.validate_key(key), decode=True)

    def llen(self, key: str | bytes) -> typing.Any:  # noqa: ANN401
        """Return the length of a list."""
        return self._call("LLEN", connection.validate_key(key))

    def lrange(self, key: str | bytes, start: int, stop: int) -> typing.Any:  # noqa: ANN401
        """Return the list elements between ``start`` and ``stop``, inclusive."""
        return self._call("LRANGE", connection.validate_key(key), start, stop, decode=True)

    def lindex(self, key: str | bytes, index: int) -> typing.Any:  # noqa: ANN401
        """Return the list element at ``index``."""
        return self._call("LINDEX", connection.validate_key(key), index, decode=True)

    # Set commands.

    def sadd(self, key: str | bytes, *members: typing.Any) -> typing.Any:  # noqa: ANN401
        """Add members to a set."""
        return self._call("SADD", connection.validate_key(key), *map(self._pack, members))

    def srem(self, key: str | bytes, *members: typing.Any) -> typing.Any:  # noqa: ANN401
        """Remove members from a set."""
        return self._call("SREM", connection.validate_key(key), *map(self._pack, members))

    def smembers(self, key: str | bytes) -> typing.Any:  # noqa: ANN401
        """Return all members of a set."""
        return self._call("SMEMBERS", connection.validate_key(key), decode=True)

    def sismember(self, key: str | bytes, member: typing.Any) -> typing.Any:  # noqa: ANN401
        """Check whether ``member`` is in the set."""
        return self._call("SISMEMBER", connection.validate_key(key), self._pack(member))

    def scard(self, key: str | bytes) -> typing.Any:  # noqa: ANN401
        """Return the number of members in a set."""
        return self._call("SCARD", connection.validate_key(key))

    # Sorted set commands.

    def zadd(self, key: str | bytes, mapping: collections.abc.Mapping[typing.Any, float]) -> typing.Any:  # noqa: ANN401
        """Add members with their scores, given as a ``{member: score}`` mapping."""
        cmd = command.Command("ZADD", connection.validate_key(key))
        for member, score in mapping.items():
            cmd.arg(score).arg(member)

        return self.execute_command(cmd)

    def zrem(self, key: str | bytes, *members: str | bytes) -> typing.Any:  # noqa: ANN401
        """Remove members from a sorted set."""
        return self._call("ZREM", connection.validate_key(key), *members)

    def zscore(self, key: str | bytes, member: str | bytes) -> typing.Any:  # noqa: ANN401
        """Return the score of ``member``."""
        return self._call("ZSCORE", connection.validate_key(key), member)

    def zcard(self, key: str | bytes) -> typing.Any:  # noqa: ANN401
        """Return the number of members in a sorted set."""
        return self._call("ZCARD", connection.validate_key(key))

    def zrange(
        self,
        key: str | bytes,
        start: int,
        stop: int,
        *,
        withscores: bool = False,
    ) -> typing.Any:  # noqa: ANN401
        """Return a range of members by index.

        With ``withscores``, the reply is the flat ``[member, score, ...]``
        list as sent by the server.
        """
        cmd = command.Command("ZRANGE", connection.validate_key(key), start, stop)
        if withscores:
            cmd.arg(b"WITHSCORES")

        return self.execute_command(cmd)

    # Hash commands.

    def hset(self, key: str | bytes, field: str | bytes, value: typing.Any) -> typing.Any:  # noqa: ANN401
        """Set a single hash field."""
        return self._call("HSET", connection.validate_key(key), field, self._pack(value))

    def hmset(
        self,
        key: str | bytes,
        mapping: collections.abc.Mapping[str | bytes, typing.Any],
    ) -> typing.Any:  # noqa: ANN401
        """Set multiple hash fields at once."""
        return self._call(
            "HMSET",
            connection.validate_key(key),
            {field: self._pack(value) for field, value in mapping.items()},
        )

    def hget(self, key: str | bytes, field: str | bytes) -> typing.Any:  # noqa: ANN401
        """Get the value of a hash field."""
        return self._call("HGET", connection.validate_key(key), field, decode=True)

    def hmget(
        self,
        key: str | bytes,
        *fields: str | bytes | collections.abc.Sequence[str | bytes],
    ) -> typing.Any:  # noqa: ANN401
        """Get multiple fields at once, as a dict of field to value."""
        return self._call("HMGET", connection.validate_key(key), *fields, decode=True)

    def hgetall(self, key: str | bytes) -> typing.Any:  # noqa: ANN401
        """Return a whole hash as a dict."""
        return self._call("HGETALL", connection.validate_key(key), decode=True)

    def hdel(self, key: str | bytes, *fields: str | bytes) -> typing.Any:  # noqa: ANN401
        """Delete hash fields."""
        return self._call("HDEL", connection.validate_key(key), *fields)

    def hexists(self, key: str | bytes, field: str | bytes) -> typing.Any:  # noqa: ANN401
        """Check whether a hash field exists."""
        return self._call("HEXISTS", connection.validate_key(key), field)

    def hlen(self, key: str | bytes) -> typing.Any:  # noqa: ANN401
        """Return the number of fields in a hash."""
        return self._call("HLEN", connection.validate_key(key))

    def hkeys(self, key: str | bytes) -> typing.Any:  # noqa: ANN401
        """Return the field names of a hash."""
        return self._call("HKEYS", connection.validate_key(key))

    def hvals(self, key: str | bytes) -> typing.Any:  # noqa: ANN401
        """Return the values of a hash."""
        return self._call("HVALS", connection.validate_key(key), decode=True)

    # Transaction commands.

    def multi(self) -> typing.Any:  # noqa: ANN401
        """Start a transaction."""
        return self._call("MULTI")

    def exec(self) -> typing.Any:  # noqa: ANN401
        """Execute the queued commands, returning one reply per command.

        Returns None if the transaction was aborted because of ``WATCH``.
        """
        return self._call("EXEC")

    def discard(self) -> typing.Any:  # noqa: ANN401
        """Discard the queued commands of a transaction."""
        return self._call("DISCARD")

    def watch(self, *keys: str | bytes) -> typing.Any:  # noqa: ANN401
        """Watch keys for changes until the transaction executes."""
        return self._call("WATCH", *map(connection.validate_key, keys))

    def unwatch(self) -> typing.Any:  # noqa: ANN401
        """Forget all watched keys."""
        return self._call("UNWATCH")
