"""Throughput benchmark that drives a BLINK DB server over several connections."""

from __future__ import annotations

import argparse
import math
import socket
import sys
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

from blinkdb.resp import encode_command

_RECV_SIZE = 1024


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


class BenchmarkClient:
    """Connection that sends whitespace-separated commands as arrays."""

    def __init__(self, host: str = "127.0.0.1", port: int = 9001) -> None:
        self._sock = _connect(host, port)
        try:
            if self.send_command("PING") != "+PONG\r\n":
                raise RuntimeError("PING test failed")
        except BaseException:
            self._sock.close()
            raise

    def send_command(self, command: str) -> str:
        """Send ``command`` and return the raw reply."""
        try:
            self._sock.sendall(encode_command(command.split()))
        except OSError as exc:
            raise ConnectionError("Send failed") from exc
        try:
            received = self._sock.recv(_RECV_SIZE)
        except OSError as exc:
            raise ConnectionError("Receive failed") from exc
        return received.decode("utf-8", errors="surrogateescape")

    def close(self) -> None:
        """Close the connection."""
        self._sock.close()

    def __enter__(self) -> "BenchmarkClient":
        return self

    def __exit__(self, *args) -> None:
        self.close()


@dataclass
class BenchmarkResults:
    set_ops_per_sec: float = 0.0
    get_ops_per_sec: float = 0.0


def _rate(operations: int, micros: int) -> float:
    if micros == 0:
        return math.inf if operations else math.nan
    return operations * 1_000_000.0 / micros


def _elapsed_micros(start_ns: int) -> int:
    return (time.perf_counter_ns() - start_ns) // 1000


def run_client_benchmark(
    num_operations: int, host: str = "127.0.0.1", port: int = 9001
) -> BenchmarkResults:
    """Time SET then GET of ``num_operations`` keys over one connection.

    Errors are reported on stderr; the rates measured so far are returned.
    """
    results = BenchmarkResults()
    try:
        with BenchmarkClient(host, port) as client:
            start = time.perf_counter_ns()
            for i in range(num_operations):
                if client.send_command(f"SET key{i} value{i}") != "+OK\r\n":
                    raise RuntimeError("SET operation failed")
            results.set_ops_per_sec = _rate(num_operations, _elapsed_micros(start))

            start = time.perf_counter_ns()
            for i in range(num_operations):
                value = f"value{i}"
                expected = f"${len(value)}\r\n{value}\r\n"
                if client.send_command(f"GET key{i}") != expected:
                    raise RuntimeError("GET operation failed")
            results.get_ops_per_sec = _rate(num_operations, _elapsed_micros(start))
    except (OSError, RuntimeError, ValueError) as exc:
        print(f"Benchmark error: {exc}", file=sys.stderr)
    return results


def run_parallel_benchmark(
    num_operations: int,
    num_connections: int,
    host: str = "127.0.0.1",
    port: int = 9001,
) -> BenchmarkResults:
    """Split the operations over parallel connections and sum their rates."""
    if num_connections <= 0:
        raise ValueError("number of connections must be positive")
    ops_per_connection = num_operations // num_connections
    with ThreadPoolExecutor(max_workers=num_connections) as pool:
        runs = list(
            pool.map(
                lambda _: run_client_benchmark(ops_per_connection, host, port),
                range(num_connections),
            )
        )
    return BenchmarkResults(
        set_ops_per_sec=sum(run.set_ops_per_sec for run in runs),
        get_ops_per_sec=sum(run.get_ops_per_sec for run in runs),
    )


def format_report(num_operations: int, num_connections: int, results: BenchmarkResults) -> str:
    """Text summarising a parallel benchmark run."""
    return (
        "====== BENCHMARK RESULTS ======\n"
        f"Number of operations: {num_operations}\n"
        f"Number of parallel connections: {num_connections}\n"
        f"Total SET operations per second: {results.set_ops_per_sec:.2f}\n"
        f"Total GET operations per second: {results.get_ops_per_sec:.2f}\n"
    )


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="blinkdb-benchmark", description="BLINK DB benchmark")
    parser.add_argument("num_operations", type=int)
    parser.add_argument("num_connections", type=int)
    parser.add_argument("--host", default="127.0.0.1", help="server address")
    parser.add_argument("--port", type=int, default=9001, help="server port")
    args = parser.parse_args(argv)

    try:
        results = run_parallel_benchmark(
            args.num_operations, args.num_connections, args.host, args.port
        )
    except (OSError, RuntimeError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    print(format_report(args.num_operations, args.num_connections, results), end="")
    return 0


if __name__ == "__main__":
    sys.exit(main())