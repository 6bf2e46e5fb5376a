"""Wire format used between BLINK DB clients and the server."""

from __future__ import annotations

import re
from collections.abc import Iterable

_CRLF = b"\r\n"
_INT = re.compile(rb"[ \t\n\v\f\r]*([+-]?\d+)")
_ENCODED_PREFIXES = ("+", "-", ":", "$", "*")


def _decode(raw: bytes) -> str:
    return raw.decode("utf-8", errors="surrogateescape")


def _encode(text: str) -> bytes:
    return text.encode("utf-8", errors="surrogateescape")


def _parse_int(raw: bytes) -> int:
    match = _INT.match(raw)
    if match is None:
        raise ValueError(f"invalid length field {raw!r}")
    return int(match.group(1))


class CommandParser:
    """Incremental parser that turns received bytes into command lines.

    Arrays of bulk strings are joined with single spaces; any other
    non-empty line is taken as an inline command. Data that does not yet
    hold a whole command is kept until more arrives.
    """

    def __init__(self) -> None:
        self._buffer = bytearray()

    @property
    def pending(self) -> bytes:
        """Bytes received but not yet parsed into a command."""
        return bytes(self._buffer)

    def feed(self, data: bytes) -> list[str]:
        """Add ``data`` and return every command it completes.

        Raises ``ValueError`` when a length field is not a number; the
        offending line is dropped first, so the parser stays usable.
        """
        self._buffer += data
        commands: list[str] = []
        while True:
            end = self._buffer.find(_CRLF)
            if end < 0:
                break
            line = bytes(self._buffer[:end])
            if not line:
                del self._buffer[: end + 2]
                continue
            if not line.startswith(b"*"):
                del self._buffer[: end + 2]
                commands.append(_decode(line))
                continue
            taken = self._take_array(line, end + 2)
            if taken is None:
                break
            args, consumed = taken
            del self._buffer[:consumed]
            if args:
                commands.append(" ".join(args))
        return commands

    def _take_array(self, header: bytes, start: int) -> tuple[list[str], int] | None:
        """Parse an array whose header ends at ``start``.

        Returns the arguments and the number of bytes they span, or ``None``
        when parsing must wait: either the array is incomplete (the buffer
        is left as it is) or an argument header is malformed (everything
        read so far is discarded).
        """
        try:
            count = _parse_int(header[1:])
        except ValueError:
            del self._buffer[:start]
            raise

        pos = start
        args: list[str] = []
        for _ in range(count):
            end = self._buffer.find(_CRLF, pos)
            if end < 0:
                return None
            arg_header = bytes(self._buffer[pos:end])
            pos = end + 2
            if not arg_header.startswith(b"$"):
                del self._buffer[:pos]
                return None
            try:
                length = _parse_int(arg_header[1:])
            except ValueError:
                del self._buffer[:pos]
                raise
            if length < 0:
                args.append("")
                continue
            if len(self._buffer) - pos < length + 2:
                return None
            args.append(_decode(bytes(self._buffer[pos : pos + length])))
            pos += length + 2
        return args, pos


def encode_command(args: Iterable[str]) -> bytes:
    """Encode arguments as an array of bulk strings."""
    encoded = [_encode(arg) for arg in args]
    parts = [b"*%d\r\n" % len(encoded)]
    for arg in encoded:
        parts.append(b"$%d\r\n" % len(arg) + arg + _CRLF)
    return b"".join(parts)


def encode_resp(response: str) -> str:
    """Encode a plain reply; replies that are already encoded pass through."""
    if response.startswith(_ENCODED_PREFIXES):
        return response
    if response == "NULL":
        return "$-1\r\n"
    if response == "PONG":
        return "+PONG\r\n"
    if response == "OK":
        return "+OK\r\n"
    if response.startswith("Error:"):
        return "-" + response + "\r\n"
    return f"${len(_encode(response))}\r\n{response}\r\n"