import collections.abc
import dataclasses

__all__: collections.abc.Sequence[str] = (
    "ClientError",
    "ConnectionError",
    "TransportError",
    "ProtocolError",
    "ServerError",
    "PipelineError",
    "ValidationError",
    "StateError",
)


class ClientError(Exception):
    ...


class ConnectionError(ClientError):
    ...


class TransportError(ClientError):
    ...


class ProtocolError(ClientError):
    ...


class PipelineError(ClientError):
    ...


class ValidationError(ClientError, ValueError):
    ...


class StateError(ClientError):
    ...


@dataclasses.dataclass
class ServerError(ClientError):
    message: str

    def __str__(self) -> str:
        return self.message

    @property
    def code(self) -> str:
        """The leading word of the error, e.g. ``ERR`` or ``WRONGTYPE``."""
        return self.message.split(" ", 1)[0]

    @classmethod
    def from_response(cls, response: bytes) -> "ServerError":
        """Build an error from the text of an error reply."""
        return cls(response.decode("utf-8", errors="replace"))
