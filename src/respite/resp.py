"""Module containing the RESP reply decoder."""

import collections.abc
import enum
import typing

from respite import error, protocol

__all__: collections.abc.Sequence[str] = (
    "ReplyType",
    "Status",
    "read_reply",
    "discard_reply",
)

StreamFactory: typing.TypeAlias = typing.Callable[[protocol.TransportProto, int], typing.Any]


class ReplyType(bytes, enum.Enum):
    # https://redis.io/docs/latest/develop/reference/protocol-spec/
    STATUS = b"+"
    ERROR = b"-"
    INTEGER = b":"
    BULK = b"$"
    MULTI_BULK = b"*"


class Status(str):
    """A status reply, such as ``OK`` or ``string`` (for ``TYPE``)."""

    __slots__ = ()


def _to_int(line: bytes) -> int:
    try:
        return int(line[1:])
    except ValueError as exc:
        msg = f"Malformed {line[:1]!r} reply: {line[:64]!r}"
        raise error.ProtocolError(msg) from exc


def _first_error(items: collections.abc.Iterable[typing.Any]) -> error.ServerError | None:
    for item in items:
        if isinstance(item, error.ServerError):
            return item

        if isinstance(item, list) and (nested := _first_error(item)) is not None:
            return nested

    return None


def _decode(
    transport: protocol.TransportProto,
    line: bytes,
    *,
    stream_factory: StreamFactory | None = None,
) -> typing.Any:  # noqa: ANN401
    # First byte determines the reply type, the rest is the actual data.
    byte = line[:1]

    if byte == ReplyType.ERROR:
        return error.ServerError.from_response(line[1:])

    if byte == ReplyType.STATUS:
        return Status(line[1:].decode("utf-8", errors="replace"))

    if byte == ReplyType.INTEGER:
        return _to_int(line)

    if byte == ReplyType.BULK:
        length = _to_int(line)
        if length == -1:
            return None

        if length < 0:
            msg = f"Invalid bulk length: {line!r}"
            raise error.ProtocolError(msg)

        return transport.read(length)

    if byte == ReplyType.MULTI_BULK:
        count = _to_int(line)
        if count < 0:
            return None

        if stream_factory is not None and count:
            return stream_factory(transport, count)

        return [_decode(transport, transport.read_line()) for _ in range(count)]

    msg = f"Unexpected reply type {byte!r}: {line[:64]!r}"
    raise error.ProtocolError(msg)


def read_reply(
    transport: protocol.TransportProto,
    *,
    stream_factory: StreamFactory | None = None,
) -> typing.Any:  # noqa: ANN401
    """Read and decode one reply.

    Returns ``Status`` for status replies, ``int`` for integers, ``bytes`` or
    ``None`` for bulk replies and a list (or ``None``) for multi-bulk replies.
    Error replies are raised as ``ServerError``. Arrays are read completely
    before an error reply nested inside them is raised, so the stream is
    always left at a reply boundary.

    When ``stream_factory`` is given, non-empty multi-bulk replies are handed
    to it (with the transport and element count) instead of being read.
    """
    value = _decode(transport, transport.read_line(), stream_factory=stream_factory)

    if isinstance(value, error.ServerError):
        raise value

    if isinstance(value, list) and (exc := _first_error(value)) is not None:
        raise exc

    return value


def discard_reply(transport: protocol.TransportProto) -> None:
    """Consume one reply without decoding it, error replies included."""
    line = transport.read_line()
    byte = line[:1]

    if byte in (ReplyType.STATUS, ReplyType.ERROR, ReplyType.INTEGER):
        return

    if byte == ReplyType.BULK:
        length = _to_int(line)
        if length >= 0:
            transport.read(length)

        return

    if byte == ReplyType.MULTI_BULK:
        for _ in range(max(_to_int(line), 0)):
            discard_reply(transport)

        return

    msg = f"Unexpected reply type {byte!r}: {line[:64]!r}"
    raise error.ProtocolError(msg)
