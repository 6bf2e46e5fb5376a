"""Interactive command loop over a LogStorageEngine."""

from __future__ import annotations

import argparse
import re
import sys
from typing import TextIO

from blinkdb.logstore import LogStorageEngine

_WORD_PATTERN = re.compile(r"[ \t\n\v\f\r]*([^ \t\n\v\f\r]*)")

UNKNOWN_COMMAND = "Unknown command. Type 'help' for usage."


def _next_word(text: str) -> tuple[str, str]:
    match = _WORD_PATTERN.match(text)
    return match.group(1), text[match.end():]


def usage() -> str:
    """Text listing the available commands."""
    return (
        "Available commands:\n"
        "1. SET <key> <value> - Set a key-value pair\n"
        "2. GET <key> - Get value for a key\n"
        "3. DEL <key> - Delete a key-value pair\n"
        "4. SIZE - Get current size of database\n"
        "5. CLEAR - Clear all data\n"
        "6. EXIT - Exit the program\n"
    )


def execute(engine: LogStorageEngine, line: str) -> str | None:
    """Run one command line and return its output; ``None`` means EXIT."""
    command, rest = _next_word(line)

    if command == "EXIT":
        return None

    if command == "SET":
        key, value = _next_word(rest)
        if value.startswith(" "):
            value = value[1:]
        if not key or not value:
            return "Error: SET requires both key and value"
        return "OK" if engine.set(key, value) else "Error: Database is full"

    if command == "GET":
        key, _ = _next_word(rest)
        if not key:
            return "Error: GET requires a key"
        return engine.get(key)

    if command == "DEL":
        key, _ = _next_word(rest)
        if not key:
            return "Error: DEL requires a key"
        return "OK" if engine.delete(key) else "Error: Key does not exist"

    if command == "SIZE":
        return str(engine.size())

    if command == "CLEAR":
        engine.clear()
        return "OK"

    return UNKNOWN_COMMAND


def run_repl(engine: LogStorageEngine, stdin: TextIO, stdout: TextIO) -> None:
    """Read commands from ``stdin`` until EXIT or end of input."""
    stdout.write("BLINK DB REPL\n")
    stdout.write(usage())
    while True:
        stdout.write("\nUser> ")
        stdout.flush()
        line = stdin.readline()
        if not line:
            break
        line = line.rstrip("\n")
        if not line:
            continue
        output = execute(engine, line)
        if output is None:
            break
        stdout.write(output + "\n")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="blinkdb-repl", description="BLINK DB REPL")
    parser.add_argument(
        "--directory",
        default="disk_storage",
        help="directory holding the data and index files",
    )
    args = parser.parse_args(argv)
    with LogStorageEngine(args.directory) as engine:
        run_repl(engine, sys.stdin, sys.stdout)
    return 0


if __name__ == "__main__":
    sys.exit(main())