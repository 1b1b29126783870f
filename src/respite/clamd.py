"""Module containing a ClamAV daemon client."""

import collections.abc
import dataclasses
import enum
import os
import pathlib
import re
import typing

from respite import connection, error, log

__all__: collections.abc.Sequence[str] = ("Clamd", "ScanResult", "DEFAULT_SOCKET", "DEFAULT_PORT")

_LOGGER = log.get_logger(__name__)

DEFAULT_SOCKET: typing.Final = "/var/run/clamav/clamd.ctl"
DEFAULT_PORT: typing.Final = 3310

_ILLEGAL_FILENAME: typing.Final = re.compile(r"[\x00\r\n]")


class ScanResult(enum.IntEnum):
    OK = 0
    FOUND = 1
    ERROR = 2


@dataclasses.dataclass(slots=True)
class Clamd:
    """Client for ``clamd``'s ``SCAN`` command.

    Without a host, the daemon's default UNIX-domain socket is used. Each
    scan uses its own short-lived connection, since clamd closes the
    connection after answering.

    ```
    clamd = Clamd()
    if clamd.scan("/tmp/upload") is ScanResult.FOUND:
        print("virus found:", clamd.last_virus)
    ```
    """

    host: str | None = None
    port: int = DEFAULT_PORT
    path: str = DEFAULT_SOCKET
    timeout: float = connection.DEFAULT_TIMEOUT

    last_virus: str = dataclasses.field(default="", init=False)
    last_error: str = dataclasses.field(default="", init=False)

    def _connection(self) -> connection.Connection:
        if self.host:
            return connection.Connection(self.host, self.port, timeout=self.timeout)

        return connection.Connection(path=self.path, timeout=self.timeout)

    def scan(self, filename: str | os.PathLike[str]) -> ScanResult:
        """Scan a single file, which must be readable by the clamd process.

        Details of the outcome are available as ``last_virus`` (for
        ``FOUND``) and ``last_error`` (for ``ERROR``).
        """
        if _ILLEGAL_FILENAME.search(str(filename)):
            msg = f"Illegal filename: {str(filename)!r}"
            raise error.ValidationError(msg)

        path = pathlib.Path(filename).resolve()
        if not path.is_file():
            msg = f"{path} does not exist"
            raise FileNotFoundError(msg)

        if not os.access(path, os.R_OK):
            msg = f"{path} is not readable"
            raise PermissionError(msg)

        with self._connection() as con:
            con.write(b"SCAN " + os.fsencode(path) + b"\n", append_newline=False)
            response = con.read_line(terminator=b"\n").decode("utf-8", errors="replace").strip()

        return self._parse(str(path), response)

    def _parse(self, filename: str, response: str) -> ScanResult:
        # <filename>: OK | <filename>: <virus> FOUND | <filename>: <reason> ERROR
        prefix = f"{filename}: "
        if response.startswith(prefix):
            verdict = response[len(prefix) :]

            if verdict == "OK":
                return ScanResult.OK

            if verdict.endswith(" FOUND"):
                self.last_virus = verdict.removesuffix(" FOUND")
                _LOGGER.info("virus found", filename=filename, virus=self.last_virus)
                return ScanResult.FOUND

            if verdict.endswith(" ERROR"):
                self.last_error = verdict.removesuffix(" ERROR")
                return ScanResult.ERROR

        self.last_error = response
        return ScanResult.ERROR
