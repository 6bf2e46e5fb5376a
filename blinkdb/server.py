"""TCP server answering BLINK DB commands from a StorageEngine."""

from __future__ import annotations

import argparse
import logging
import selectors
import signal
import socket
import sys
import time

from blinkdb.kvstore import StorageEngine
from blinkdb.resp import CommandParser

logger = logging.getLogger(__name__)


class Server:
    """Single-threaded, event-driven server over a :class:`StorageEngine`."""

    PORT = 9001
    LISTEN_BACKLOG = 128
    READ_SIZE = 4096
    SEND_BUFFER_SIZE = 65536
    BIND_ATTEMPTS = 5
    BIND_RETRY_DELAY = 1.0

    def __init__(
        self,
        storage: StorageEngine | None = None,
        host: str = "0.0.0.0",
        port: int = PORT,
    ) -> None:
        self._owns_storage = storage is None
        self.storage = storage if storage is not None else StorageEngine()
        self._should_stop = False
        self._serving = False
        self._closed = False
        self._clients: dict[socket.socket, CommandParser] = {}
        self._selector = selectors.DefaultSelector()
        self._wake_reader, self._wake_writer = socket.socketpair()
        self._wake_reader.setblocking(False)
        self._wake_writer.setblocking(False)
        try:
            self._listener = self._setup_server(host, port)
            self._selector.register(self._listener, selectors.EVENT_READ)
            self._selector.register(self._wake_reader, selectors.EVENT_READ)
        except BaseException:
            self._selector.close()
            self._wake_reader.close()
            self._wake_writer.close()
            raise

    @property
    def address(self) -> tuple[str, int]:
        """Host and port the server is listening on."""
        host, port = self._listener.getsockname()[:2]
        return host, port

    def _setup_server(self, host: str, port: int) -> socket.socket:
        listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            listener.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            for attempt in range(1, self.BIND_ATTEMPTS + 1):
                try:
                    listener.bind((host, port))
                    break
                except OSError as exc:
                    if attempt == self.BIND_ATTEMPTS:
                        raise OSError(
                            exc.errno,
                            f"Failed to bind socket after {self.BIND_ATTEMPTS} attempts: "
                            f"{exc.strerror}",
                        ) from exc
                    print(f"Bind attempt {attempt} failed, retrying...", flush=True)
                    time.sleep(self.BIND_RETRY_DELAY)
            listener.listen(self.LISTEN_BACKLOG)
            listener.setblocking(False)
        except BaseException:
            listener.close()
            raise
        return listener

    # -- commands ---------------------------------------------------------

    def process_command(self, command: str) -> str:
        """Run one command line and return its encoded reply."""
        tokens = command.split()
        cmd = tokens[0] if tokens else ""
        args = tokens[1:]
        name = cmd.upper()

        if name == "PING":
            return "+PONG\r\n"
        if name == "SET":
            if len(args) < 2:
                return "-ERR wrong number of arguments for 'set' command\r\n"
            if self.storage.set(args[0], args[1]):
                return "+OK\r\n"
            return "-ERR invalid key or value\r\n"
        if name == "GET":
            if not args:
                return "-ERR wrong number of arguments for 'get' command\r\n"
            value = self.storage.get(args[0])
            if not value:
                return "$-1\r\n"
            size = len(value.encode("utf-8", errors="surrogateescape"))
            return f"${size}\r\n{value}\r\n"
        if name == "DEL":
            if not args:
                return "-ERR wrong number of arguments for 'del' command\r\n"
            return ":1\r\n" if self.storage.delete(args[0]) else ":0\r\n"
        if name in ("CLEAR", "FLUSHALL", "FLUSHDB"):
            self.storage.clear()
            return "+OK\r\n"
        if name == "EXIT":
            self._should_stop = True
            self.storage.stop_async_writer()
            return "+OK\r\n"
        return f"-ERR unknown command '{cmd}'\r\n"

    # -- event loop -------------------------------------------------------

    def serve_forever(self) -> None:
        """Handle connections until :meth:`stop` or an EXIT command."""
        if self._closed:
            return
        self._serving = True
        try:
            while not self._should_stop:
                for key, _mask in self._selector.select():
                    sock = key.fileobj
                    if sock is self._listener:
                        self._accept()
                    elif sock is self._wake_reader:
                        self._drain_wakeups()
                    else:
                        self._handle_client(sock)
        finally:
            self._serving = False
            self._close_all()

    def stop(self) -> None:
        """Stop serving and close every socket."""
        self._should_stop = True
        if self._serving:
            try:
                self._wake_writer.send(b"\0")
            except OSError:
                pass
        else:
            self._close_all()

    def _drain_wakeups(self) -> None:
        try:
            while self._wake_reader.recv(64):
                pass
        except (BlockingIOError, OSError):
            pass

    def _accept(self) -> None:
        try:
            conn, _ = self._listener.accept()
        except BlockingIOError:
            return
        except OSError as exc:
            logger.error("Failed to accept connection: %s", exc)
            return
        try:
            conn.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        except OSError:
            logger.warning("Failed to set TCP_NODELAY")
        try:
            conn.setsockopt(socket.SOL_SOCKET, socket.SO_SNDBUF, self.SEND_BUFFER_SIZE)
        except OSError:
            logger.warning("Failed to set send buffer size")
        conn.setblocking(False)
        try:
            self._selector.register(conn, selectors.EVENT_READ)
        except (OSError, ValueError) as exc:
            logger.error("Failed to watch client: %s", exc)
            conn.close()
            return
        self._clients[conn] = CommandParser()

    def _handle_client(self, conn: socket.socket) -> None:
        parser = self._clients.get(conn)
        if parser is None:
            return
        while True:
            try:
                data = conn.recv(self.READ_SIZE)
            except BlockingIOError:
                return
            except OSError:
                self._drop(conn)
                return
            if not data:
                self._drop(conn)
                return
            try:
                commands = parser.feed(data)
            except ValueError as exc:
                logger.error("Malformed request: %s", exc)
                self._drop(conn)
                return
            for command in commands:
                reply = self.process_command(command)
                try:
                    self._send_all(conn, reply.encode("utf-8", errors="surrogateescape"))
                except OSError:
                    self._drop(conn)
                    return

    @staticmethod
    def _send_all(conn: socket.socket, payload: bytes) -> None:
        view = memoryview(payload)
        while view:
            try:
                sent = conn.send(view)
            except BlockingIOError:
                with selectors.DefaultSelector() as waiter:
                    waiter.register(conn, selectors.EVENT_WRITE)
                    waiter.select()
                continue
            view = view[sent:]

    def _drop(self, conn: socket.socket) -> None:
        self._clients.pop(conn, None)
        try:
            self._selector.unregister(conn)
        except (KeyError, ValueError):
            pass
        conn.close()

    def _close_all(self) -> None:
        if self._closed:
            return
        self._closed = True
        for conn in list(self._clients):
            conn.close()
        self._clients.clear()
        self._selector.close()
        self._listener.close()
        self._wake_reader.close()
        self._wake_writer.close()
        if self._owns_storage:
            self.storage.close()


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="blinkdb-server", description="BLINK DB server")
    parser.add_argument("--host", default="0.0.0.0", help="address to listen on")
    parser.add_argument("--port", type=int, default=Server.PORT, help="port to listen on")
    parser.add_argument(
        "--directory", default="disk_storage", help="directory holding the data file"
    )
    parser.add_argument("--cache-size", type=int, default=1, help="entries kept in memory")
    args = parser.parse_args(argv)

    try:
        storage = StorageEngine(args.directory, args.cache_size)
        try:
            server = Server(storage, args.host, args.port)

            def handle_signal(signum, _frame):
                print(f"\nReceived signal {signum}, shutting down server...", flush=True)
                server.stop()

            signal.signal(signal.SIGINT, handle_signal)
            signal.signal(signal.SIGTERM, handle_signal)
            print(f"Server listening on port {server.address[1]}")
            print(f"Starting BLINK DB server on port {server.address[1]}...", flush=True)
            server.serve_forever()
        finally:
            storage.close()
    except (OSError, RuntimeError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())