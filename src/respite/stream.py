"""Module containing the incremental multi-bulk reply cursor."""

import collections.abc
import dataclasses
import enum
import types
import typing

from respite import connection, error, resp

if typing.TYPE_CHECKING:
    import typing_extensions

__all__: collections.abc.Sequence[str] = ("StreamCursor", "EXHAUSTED")


class _Sentinel(enum.Enum):
    EXHAUSTED = enum.auto()

    def __repr__(self) -> str:
        return self.name


EXHAUSTED: typing.Final = _Sentinel.EXHAUSTED


@dataclasses.dataclass(eq=False)
class StreamCursor:
    """Cursor over a multi-bulk reply that is read one element at a time.

    The cursor borrows its connection until every element has been read,
    either through ``fetch``/iteration or by ``close``. Until then, writing
    to the connection raises ``StateError``: unread elements are still in
    the socket, and a new request would desync every reply after it. A cursor
    that is dropped before it was drained closes the connection instead;
    the next command reconnects.

    ```
    with client.lrange("big-list", 0, -1) as cursor:
        for item in cursor:
            ...
    ```
    """

    connection: connection.Connection
    count: int
    keys: collections.abc.Sequence[typing.Any] | None = None
    _fetched: int = dataclasses.field(default=0, repr=False)

    def __post_init__(self) -> None:
        self.connection.borrow(self)

    @property
    def remaining(self) -> int:
        """The number of elements that have not been read yet."""
        return self.count - self._fetched

    def is_exhausted(self) -> bool:
        """Check whether every element has been read (or discarded)."""
        return self._fetched >= self.count

    def _finish(self) -> None:
        self._fetched = self.count
        self.connection.release(self)

    def _abort(self) -> None:
        # The rest of the reply cannot be read reliably any more.
        self._fetched = self.count
        self.connection.disconnect()

    def fetch(self) -> typing.Any:  # noqa: ANN401
        """Read the next element.

        Returns ``EXHAUSTED`` once all elements have been read, and on every
        call after that.
        """
        if self.is_exhausted():
            return EXHAUSTED

        if not self.connection.is_alive():
            self._finish()
            msg = "The connection was closed while the reply was still being read."
            raise error.StateError(msg)

        self._fetched += 1
        try:
            return resp.read_reply(self.connection)

        except error.ServerError:
            # The element was fully consumed, the cursor is still in sync.
            raise

        except BaseException:
            self._abort()
            raise

        finally:
            if self.is_exhausted():
                self.connection.release(self)

    def close(self) -> None:
        """Drain all remaining elements, leaving the connection ready for reuse."""
        while not self.is_exhausted():
            if not self.connection.is_alive():
                self._finish()
                return

            self._fetched += 1
            try:
                resp.discard_reply(self.connection)
            except BaseException:
                self._abort()
                raise

        self.connection.release(self)

    def items(self) -> collections.abc.Iterator[tuple[typing.Any, typing.Any]]:
        """Iterate over ``(key, value)`` pairs.

        Keys are the keys (or fields) requested for ``MGET``/``HMGET``
        replies, and element indices otherwise.
        """
        while (value := self.fetch()) is not EXHAUSTED:
            index = self._fetched - 1
            yield (index if self.keys is None else self.keys[index]), value

    def __iter__(self) -> collections.abc.Iterator[typing.Any]:
        while (value := self.fetch()) is not EXHAUSTED:
            yield value

    def __len__(self) -> int:
        return self.count

    def __enter__(self) -> "typing_extensions.Self":
        return self

    def __exit__(
        self,
        _exc_type: type[BaseException] | None,
        _exc_value: BaseException | None,
        _exc_tb: types.TracebackType | None,
    ) -> None:
        self.close()
