"""Module containing the opt-in value codec.

Neither the transport nor the RESP layer look inside values; they move
bytes. Clients that want to store structured values or compress large ones
apply a ``ValueCodec`` explicitly before handing bytes to a command, and
after reading them back.
"""

import collections.abc
import dataclasses
import enum
import json
import typing
import zlib

__all__: collections.abc.Sequence[str] = ("ValueCodec", "Flag")


class Flag(enum.IntFlag):
    # Bit layout used by the PHP memcached extension, so flags written by
    # either side can be read by the other.
    NONE = 0
    LEGACY_SERIALIZED = 1
    LEGACY_COMPRESSED = 2
    SERIALIZED = 4
    COMPRESSED = 16


_SERIALIZED_MASK: typing.Final = Flag.SERIALIZED | Flag.LEGACY_SERIALIZED
_COMPRESSED_MASK: typing.Final = Flag.COMPRESSED | Flag.LEGACY_COMPRESSED

# Prefixes for protocols without a flags field.
_SERIALIZED_MARKER: typing.Final = b"#json:"
_COMPRESSED_MARKER: typing.Final = b"&zlib:"


@dataclasses.dataclass(slots=True)
class ValueCodec:
    """Serialize non-scalar values as JSON and compress large payloads.

    ``compression_threshold`` is the payload size (in bytes) from which values
    are zlib-compressed; ``None`` disables compression.
    """

    compression_threshold: int | None = None

    def _serialize(self, value: typing.Any) -> tuple[bool, bytes]:  # noqa: ANN401
        if isinstance(value, bytes):
            return False, value

        if isinstance(value, str):
            return False, value.encode()

        if isinstance(value, int | float) and not isinstance(value, bool):
            return False, str(value).encode()

        return True, json.dumps(value, separators=(",", ":")).encode()

    def _compress(self, data: bytes) -> tuple[bool, bytes]:
        if self.compression_threshold is None or len(data) < self.compression_threshold:
            return False, data

        return True, zlib.compress(data)

    def dumps(self, value: typing.Any) -> tuple[Flag, bytes]:  # noqa: ANN401
        """Encode a value, returning the flags that describe the encoding."""
        flags = Flag.NONE

        serialized, data = self._serialize(value)
        if serialized:
            flags |= Flag.SERIALIZED

        compressed, data = self._compress(data)
        if compressed:
            flags |= Flag.COMPRESSED

        return flags, data

    def loads(self, data: bytes, flags: int = 0) -> typing.Any:  # noqa: ANN401
        """Decode a value previously encoded with the given flags."""
        if flags & _COMPRESSED_MASK:
            data = zlib.decompress(data)

        if flags & _SERIALIZED_MASK:
            return json.loads(data)

        return data

    def pack(self, value: typing.Any) -> bytes:  # noqa: ANN401
        """Encode a value with its encoding recorded as a prefix."""
        serialized, data = self._serialize(value)
        if serialized:
            data = _SERIALIZED_MARKER + data

        compressed, data = self._compress(data)
        if compressed:
            data = _COMPRESSED_MARKER + data

        return data

    def unpack(self, data: bytes | None) -> typing.Any:  # noqa: ANN401
        """Reverse ``pack``. ``None`` (a missing value) passes through."""
        if data is None:
            return None

        if data.startswith(_COMPRESSED_MARKER):
            data = zlib.decompress(data[len(_COMPRESSED_MARKER) :])

        if data.startswith(_SERIALIZED_MARKER):
            return json.loads(data[len(_SERIALIZED_MARKER) :])

        return data
