"""Module containing protocols that prescribe respite implementations."""

import collections.abc
import typing

__all__: collections.abc.Sequence[str] = ("TransportProto",)


class TransportProto(typing.Protocol):
    """Byte stream protocol consumed by every protocol client."""

    def connect(self) -> None:
        """Open the stream, if it is not open already."""
        ...

    def disconnect(self) -> None:
        """Close the stream. Calling this on a closed stream is a no-op."""
        ...

    def is_alive(self) -> bool:
        """Check whether the stream is currently open."""
        ...

    def read(self, n: int, /, *, strip_newline: bool = True) -> bytes:
        """Read exactly ``n`` bytes, plus the trailing CRLF if ``strip_newline``."""
        ...

    def read_line(self, *, terminator: bytes = b"\r\n") -> bytes:
        """Read a single line, without its terminator."""
        ...

    def write(self, data: bytes, /, *, append_newline: bool = True) -> None:
        """Write all of ``data`` to the stream."""
        ...
