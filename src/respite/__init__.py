"""Lazily connecting socket transport, with Redis, Memcached and ClamAV clients on top."""

import collections.abc

from respite.clamd import Clamd, ScanResult
from respite.client import Redis
from respite.codec import ValueCodec
from respite.command import Command
from respite.connection import Connection, validate_key
from respite.error import (
    ClientError,
    ConnectionError,
    PipelineError,
    ProtocolError,
    ServerError,
    StateError,
    TransportError,
    ValidationError,
)
from respite.log import setup_logging
from respite.memcached import Memcached
from respite.stream import EXHAUSTED, StreamCursor

__all__: collections.abc.Sequence[str] = (
    "EXHAUSTED",
    "Clamd",
    "ClientError",
    "Command",
    "Connection",
    "ConnectionError",
    "Memcached",
    "PipelineError",
    "ProtocolError",
    "Redis",
    "ScanResult",
    "ServerError",
    "StateError",
    "StreamCursor",
    "TransportError",
    "ValidationError",
    "ValueCodec",
    "setup_logging",
    "validate_key",
)
