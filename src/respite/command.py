"""Module containing command implementation."""

import collections.abc
import dataclasses
import typing

if typing.TYPE_CHECKING:
    import typing_extensions

__all__: collections.abc.Sequence[str] = ("Command", "ArgumentT")


ArgumentT: typing.TypeAlias = str | bytes | int | float

_INTERLEAVED: typing.Final = frozenset({"MSET", "MSETNX"})
_KEYED_INTERLEAVED: typing.Final = frozenset({"HMSET", "HSET"})
_KEYED_LOOKUPS: typing.Final = frozenset({"MGET", "HMGET"})


def _interleave(mapping: collections.abc.Mapping[typing.Any, typing.Any]) -> list[typing.Any]:
    return [item for pair in mapping.items() for item in pair]


def _flatten(args: collections.abc.Iterable[typing.Any]) -> list[typing.Any]:
    flat: list[typing.Any] = []
    for arg in args:
        if isinstance(arg, list | tuple):
            flat.extend(arg)
        else:
            flat.append(arg)

    return flat


@dataclasses.dataclass(slots=True)
class Command:
    """A Redis command.

    This class handles encoding of arguments before they're written to a
    ``Connection``. ``context`` carries whatever the reply needs to be
    post-processed, such as the keys passed to ``MGET``.
    """

    arguments: list[bytes]
    context: typing.Any
    decode_values: bool

    def __init__(self, name: str | bytes, *args: ArgumentT) -> None:
        self.context = None
        self.decode_values = False

        self.arguments = []
        self.arg(name)
        for arg in args:
            self.arg(arg)

    @classmethod
    def build(cls, name: str | bytes, *args: typing.Any) -> "typing_extensions.Self":  # noqa: ANN401
        """Build a command from loosely shaped arguments.

        ``MSET``/``MSETNX`` accept a single mapping, ``HMSET``/``HSET`` a key
        followed by a mapping; both are interleaved into key/value pairs.
        Other commands accept a single list of arguments, or lists mixed in
        with scalars, which are flattened one level.
        """
        upper = (name.decode() if isinstance(name, bytes) else name).upper()

        if upper in _INTERLEAVED and len(args) == 1 and isinstance(args[0], collections.abc.Mapping):
            args = tuple(_interleave(args[0]))

        elif (
            upper in _KEYED_INTERLEAVED
            and len(args) == 2  # noqa: PLR2004
            and isinstance(args[1], collections.abc.Mapping)
        ):
            args = (args[0], *_interleave(args[1]))

        else:
            args = tuple(_flatten(args))

        self = cls(upper, *args)
        if upper in _KEYED_LOOKUPS:
            # MGET keys everything; HMGET's first argument is the hash key.
            self.context = list(args if upper == "MGET" else args[1:])

        return self

    @property
    def name(self) -> str:
        """The upper-cased command name."""
        return self.arguments[0].decode("utf-8", errors="replace").upper()

    def arg(self, value: ArgumentT) -> "typing_extensions.Self":
        """Add an argument to this command."""
        if isinstance(value, bytes):
            pass
        elif isinstance(value, str):
            value = value.encode()
        elif isinstance(value, bool):
            msg = "Booleans are ambiguous as Redis arguments; pass 0/1 or a string instead."
            raise TypeError(msg)
        elif isinstance(value, int | float):
            value = str(value).encode()
        else:
            msg = (
                f"Cannot send a value of type {type(value).__name__!r}; "
                "serialize it to bytes first (see respite.codec)."
            )
            raise TypeError(msg)

        self.arguments.append(value)
        return self

    def set_context(self, context: typing.Any, /) -> "typing_extensions.Self":  # noqa: ANN401
        """Set the post-processing context for this command's reply."""
        self.context = context
        return self

    def set_decode_values(self, decode_values: bool, /) -> "typing_extensions.Self":  # noqa: FBT001
        """Set whether values in the reply should be run through the client's codec."""
        self.decode_values = decode_values
        return self

    def encode(self) -> bytes:
        """Serialize this command as a RESP multi-bulk request."""
        parts = [b"*%i\r\n" % len(self.arguments)]
        for arg in self.arguments:
            parts.append(b"$%i\r\n" % len(arg))
            parts.append(arg)
            parts.append(b"\r\n")

        return b"".join(parts)

    def __bytes__(self) -> bytes:
        return self.encode()

    def __str__(self) -> str:
        return " ".join(arg.decode("utf-8", errors="replace") for arg in self.arguments)

    def __len__(self) -> int:
        return len(self.arguments)

    def __iter__(self) -> collections.abc.Iterator[bytes]:
        return iter(self.arguments)
