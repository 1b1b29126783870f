"""Module containing the socket transport implementation."""

import collections.abc
import dataclasses
import io
import re
import socket
import ssl
import types
import typing
import urllib.parse
import weakref

from respite import error, log

if typing.TYPE_CHECKING:
    import typing_extensions

__all__: collections.abc.Sequence[str] = ("Connection", "validate_key", "MAX_KEY_LENGTH")

_LOGGER = log.get_logger(__name__)

MAX_KEY_LENGTH: typing.Final = 250
DEFAULT_TIMEOUT: typing.Final = 5.0

_CRLF: typing.Final = b"\r\n"
_ILLEGAL_KEY_BYTES: typing.Final = re.compile(rb"[^\x21-\x7e]")

_TCP_SCHEMES: typing.Final = frozenset({"tcp", "redis", "memcached", "clamd"})
_TLS_SCHEMES: typing.Final = frozenset({"tls", "rediss"})
_UNIX_SCHEMES: typing.Final = frozenset({"unix"})

PostConnectHook: typing.TypeAlias = typing.Callable[["Connection"], None]


def validate_key(key: str | bytes) -> bytes:
    """Check that a key is usable by Redis and Memcached alike.

    Keys must be non-empty, at most 250 bytes long, and consist of printable
    ASCII only (``0x21`` to ``0x7E``, so no spaces or control characters).

    Returns the key as bytes.
    """
    if isinstance(key, str):
        key = key.encode()

    if not key:
        msg = "Key is empty."
        raise error.ValidationError(msg)

    if len(key) > MAX_KEY_LENGTH:
        msg = f"Key is too long ({len(key)} > {MAX_KEY_LENGTH} bytes): {key[:32]!r}..."
        raise error.ValidationError(msg)

    if _ILLEGAL_KEY_BYTES.search(key):
        msg = f"Illegal character in key: {key!r}"
        raise error.ValidationError(msg)

    return key


def _describe(exc: OSError) -> str:
    if len(exc.args) >= 2:  # noqa: PLR2004
        error_code, error_msg, *_ = exc.args
        return f"{error_code}: {error_msg}"

    return f"UNKNOWN: {exc}"


def timeouts_from_query(query: str) -> dict[str, float | None]:
    """Parse ``timeout`` and ``read_timeout`` from a url query string."""
    options = dict(urllib.parse.parse_qsl(query))
    timeouts: dict[str, float | None] = {}

    if "timeout" in options:
        timeouts["timeout"] = float(options["timeout"])

    if "read_timeout" in options:
        timeouts["read_timeout"] = float(options["read_timeout"]) or None

    return timeouts


@dataclasses.dataclass(slots=True)
class Connection:
    """Lazily connecting, line and length oriented socket transport.

    No I/O happens at instantiation; the socket is opened by ``connect``, or
    implicitly by the first ``read``, ``read_line`` or ``write``. Any I/O
    error closes the socket again, so the next call reconnects from scratch.

    When ``host`` is empty, ``path`` is used as a UNIX-domain socket instead.

    ``timeout`` only applies while connecting. Reads and writes block without
    a deadline unless ``read_timeout`` is set.
    """

    host: str | None = None
    port: int = 0
    path: str | None = None
    timeout: float = DEFAULT_TIMEOUT
    read_timeout: float | None = None
    use_tls: bool = False
    _post_connect_hooks: dict[str, PostConnectHook] = dataclasses.field(
        default_factory=dict,
        repr=False,
    )
    _socket: socket.socket | None = dataclasses.field(default=None, repr=False)
    _reader: io.BufferedReader | None = dataclasses.field(default=None, repr=False)
    _borrower: weakref.ref[typing.Any] | None = dataclasses.field(default=None, repr=False)

    def __post_init__(self) -> None:
        if self.host:
            # IPv6 literals may come in bracketed; sockets want them bare.
            self.host = self.host.removeprefix("[").removesuffix("]")
            if not self.port:
                msg = f"A port is required to connect to '{self.host}'."
                raise ValueError(msg)

        elif not self.path:
            msg = "Either a host and port or a socket path is required."
            raise ValueError(msg)

    @classmethod
    def from_url(cls, url: str, /, *, default_port: int | None = None) -> "typing_extensions.Self":
        """Create an (unconnected) transport from a url.

        Supported are ``tcp://host:port``, ``tls://host:port`` and
        ``unix:///path/to/socket``, as well as the ``redis``, ``rediss`` and
        ``memcached`` aliases. ``timeout`` and ``read_timeout`` can be passed
        as query parameters.
        """
        parsed = urllib.parse.urlparse(url)
        timeouts = timeouts_from_query(parsed.query)

        if parsed.scheme in _UNIX_SCHEMES:
            if not parsed.path:
                msg = "Urls of scheme 'unix' require a socket path, e.g. 'unix:///tmp/redis.sock'"
                raise ValueError(msg)

            return cls(path=parsed.path, **timeouts)

        port = parsed.port or default_port
        if not parsed.hostname or not port or parsed.scheme not in _TCP_SCHEMES | _TLS_SCHEMES:
            msg = f"Only urls of scheme '<scheme>://host:port' are supported, got {url!r}"
            raise ValueError(msg)

        return cls(
            parsed.hostname,
            port,
            use_tls=parsed.scheme in _TLS_SCHEMES,
            **timeouts,
        )

    @property
    def address(self) -> str:
        """Human-readable address of the remote end."""
        if not self.host:
            return str(self.path)

        if ":" in self.host:
            return f"[{self.host}]:{self.port}"

        return f"{self.host}:{self.port}"

    def __del__(self) -> None:
        if getattr(self, "_socket", None) is not None:
            self._close()

    def __enter__(self) -> "typing_extensions.Self":
        return self

    def __exit__(
        self,
        _exc_type: type[BaseException] | None,
        _exc_value: BaseException | None,
        _exc_tb: types.TracebackType | None,
    ) -> None:
        self.disconnect()

    def _close(self) -> None:
        reader, sock = self._reader, self._socket
        self._reader = self._socket = None
        self._borrower = None

        if reader is not None:
            reader.close()

        if sock is not None:
            sock.close()

    def _open_socket(self) -> socket.socket:
        if not self.host:
            sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
            sock.settimeout(self.timeout)
            try:
                sock.connect(str(self.path))
            except OSError:
                sock.close()
                raise

            return sock

        sock = socket.create_connection((self.host, self.port), timeout=self.timeout)
        if sock.family in (socket.AF_INET, socket.AF_INET6):
            sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)

        if self.use_tls:
            try:
                sock = ssl.create_default_context().wrap_socket(sock, server_hostname=self.host)
            except OSError:
                sock.close()
                raise

        return sock

    def _fail(self, msg: str, exc: BaseException | None = None) -> typing.NoReturn:
        _LOGGER.warning("transport failure", address=self.address, reason=msg)
        self._close()
        raise error.TransportError(msg) from exc

    def add_post_connect_hook(self, name: str, hook: PostConnectHook, /) -> None:
        """Register a callable to run after every successful connect.

        Hooks run in registration order, and may use the connection for I/O
        (e.g. to authenticate). Registering under an existing name replaces
        the previous hook.
        """
        self._post_connect_hooks[name] = hook

    def remove_post_connect_hook(self, name: str, /) -> None:
        """Unregister a post-connect hook. Unknown names are ignored."""
        self._post_connect_hooks.pop(name, None)

    def is_alive(self) -> bool:
        """Check whether this transport currently has an open socket."""
        return self._socket is not None and self._reader is not None

    def connect(self) -> None:
        """Open the socket, unless it is open already."""
        if self.is_alive():
            return

        try:
            sock = self._open_socket()
            sock.settimeout(self.read_timeout)

        except OSError as exc:
            msg = f"Cannot connect to '{self.address}': {_describe(exc)}"
            raise error.ConnectionError(msg) from exc

        self._socket = sock
        self._reader = sock.makefile("rb")
        _LOGGER.debug("connected", address=self.address)

        try:
            for hook in list(self._post_connect_hooks.values()):
                hook(self)

        except BaseException:
            self.disconnect()
            raise

    def disconnect(self) -> None:
        """Close the socket. Does nothing if it is closed already."""
        if self._socket is None:
            self._borrower = None
            return

        self._close()
        _LOGGER.debug("disconnected", address=self.address)

    def _current_borrower(self) -> object | None:
        return None if self._borrower is None else self._borrower()

    def _abandoned(self, ref: weakref.ref[typing.Any]) -> None:
        # The borrower was collected with its reply still (partly) unread.
        if self._borrower is ref:
            _LOGGER.warning("unfinished reply abandoned, disconnecting", address=self.address)
            self.disconnect()

    def borrow(self, owner: object, /) -> None:
        """Reserve this transport for reading by ``owner`` only.

        While borrowed, ``write`` raises ``StateError``. This guards replies
        that are still being consumed incrementally from being interleaved
        with a new request.

        ``owner`` is only referenced weakly. If it is garbage-collected
        before releasing the borrow, the connection is closed, since the rest
        of its reply is still waiting on the socket.
        """
        current = self._current_borrower()
        if current is owner:
            return

        if current is not None:
            msg = f"Connection to '{self.address}' is already borrowed by {current!r}."
            raise error.StateError(msg)

        self._borrower = weakref.ref(owner, self._abandoned)

    def release(self, owner: object, /) -> None:
        """Release a borrow made by ``owner``."""
        if self._current_borrower() is owner:
            self._borrower = None

    def is_borrowed(self) -> bool:
        """Check whether a reader currently holds this transport."""
        return self._current_borrower() is not None

    def _ensure_reader(self) -> io.BufferedReader:
        self.connect()
        assert self._reader is not None
        return self._reader

    def read(self, n: int, /, *, strip_newline: bool = True) -> bytes:
        """Read exactly ``n`` bytes.

        With ``strip_newline`` (the default) a trailing CRLF is read as well
        and removed from the result.
        """
        assert n >= 0

        reader = self._ensure_reader()
        size = n + len(_CRLF) if strip_newline else n

        try:
            data = reader.read(size)
        except OSError as exc:
            self._fail(f"Cannot read {size} bytes from '{self.address}': {_describe(exc)}", exc)

        if len(data) != size:
            self._fail(f"Cannot read {size} bytes from '{self.address}': got {len(data)}")

        if not strip_newline:
            return data

        if data[-2:] != _CRLF:
            self._close()
            msg = f"Data read from '{self.address}' is not terminated by CRLF."
            raise error.ProtocolError(msg)

        return data[:-2]

    def read_line(self, *, terminator: bytes = _CRLF) -> bytes:
        """Read a single line and return it without its terminator.

        Lines end in CRLF, unless a different ``terminator`` (ending in LF) is
        given for protocols that use bare newlines.
        """
        reader = self._ensure_reader()

        try:
            data = reader.readline()
        except OSError as exc:
            self._fail(f"Cannot read a line from '{self.address}': {_describe(exc)}", exc)

        if not data.endswith(terminator):
            self._fail(f"Cannot read a line from '{self.address}': connection closed")

        return data[: -len(terminator)]

    def write(self, data: bytes, /, *, append_newline: bool = True) -> None:
        """Write ``data``, followed by CRLF unless ``append_newline`` is false.

        Partial writes are retried until everything has been sent.
        """
        if self.is_borrowed():
            msg = (
                f"Cannot write to '{self.address}' while an unfinished reply is being read; "
                "drain or close the stream first."
            )
            raise error.StateError(msg)

        self.connect()
        assert self._socket is not None

        if append_newline:
            data += _CRLF

        view = memoryview(data)
        try:
            while view:
                written = self._socket.send(view)
                if not written:
                    self._fail(f"Cannot write to '{self.address}': connection closed")

                view = view[written:]

        except OSError as exc:
            self._fail(f"Cannot write to '{self.address}': {_describe(exc)}", exc)
