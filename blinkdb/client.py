"""Interactive network client for a BLINK DB server."""

from __future__ import annotations

import argparse
import re
import socket
import sys

from blinkdb.resp import encode_command

_WHITESPACE = " \t\n\v\f\r"
_INT = re.compile(r"[ \t\n\v\f\r]*([+-]?\d+)")
_RECV_SIZE = 1024


def _read_int(text: str) -> tuple[int, str] | None:
    match = _INT.match(text)
    if match is None:
        return None
    return int(match.group(1)), text[match.end():]


def _first_line(text: str) -> str:
    return text.split("\n", 1)[0].removesuffix("\r")


def parse_response(resp: str) -> str:
    """Turn one raw server reply into the text shown to the user."""
    stripped = resp.lstrip(_WHITESPACE)
    if not stripped:
        return "Unknown response type"
    kind, body = stripped[0], stripped[1:]

    if kind == "+":
        return _first_line(body)
    if kind == "-":
        return "Error: " + _first_line(body)
    if kind == ":":
        parsed = _read_int(body)
        return str(parsed[0]) if parsed is not None else "0"
    if kind == "$":
        parsed = _read_int(body)
        if parsed is None:
            return ""
        length, rest = parsed
        if length == -1:
            return "NULL"
        return rest[2:].split("\r", 1)[0]
    return "Unknown response type"


def _connect(host: str, port: int) -> socket.socket:
    try:
        socket.inet_pton(socket.AF_INET, host)
    except OSError as exc:
        raise ValueError("Invalid address") from exc
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    try:
        sock.connect((host, port))
    except OSError as exc:
        sock.close()
        raise ConnectionError("Connection failed") from exc
    return sock


class NetworkClient:
    """Connection that sends each command line as a single bulk string."""

    def __init__(self, host: str = "127.0.0.1", port: int = 9001) -> None:
        self._sock = _connect(host, port)

    def send_command(self, command: str) -> str:
        """Send ``command`` and return the parsed reply."""
        try:
            self._sock.sendall(encode_command([command]))
        except OSError as exc:
            raise ConnectionError("Send failed") from exc
        try:
            received = self._sock.recv(_RECV_SIZE)
        except OSError as exc:
            raise ConnectionError("Receive failed") from exc
        return parse_response(received.decode("utf-8", errors="surrogateescape"))

    def close(self) -> None:
        """Close the connection."""
        self._sock.close()

    def __enter__(self) -> "NetworkClient":
        return self

    def __exit__(self, *args) -> None:
        self.close()


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="blinkdb-client", description="BLINK DB client")
    parser.add_argument("--host", default="127.0.0.1", help="server address")
    parser.add_argument("--port", type=int, default=9001, help="server port")
    args = parser.parse_args(argv)

    try:
        client = NetworkClient(args.host, args.port)
    except (OSError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    with client:
        print("Connected to BLINK DB server. Enter commands (EXIT to quit):")
        while True:
            print("User> ", end="", flush=True)
            line = sys.stdin.readline()
            if not line:
                break
            command = line.rstrip("\n")
            if command == "EXIT":
                break
            if not command:
                continue
            try:
                response = client.send_command(command)
            except OSError as exc:
                print(f"Error: {exc}", file=sys.stderr)
                break
            print(response, flush=True)
    return 0


if __name__ == "__main__":
    sys.exit(main())