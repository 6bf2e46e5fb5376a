"""Append-only key/value store with an in-memory cache and an on-disk index."""

from __future__ import annotations

import logging
import os
import struct
import threading
from collections import deque
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

_LEN = struct.Struct("<I")
_POSITION = struct.Struct("<QQ")

DATA_FILE = "data.dat"
INDEX_FILE = "index.dat"


class _CorruptRecord(Exception):
    """A record in the data file could not be read back."""


@dataclass(frozen=True)
class _DiskEntry:
    offset: int
    size: int


def _encode(text: str) -> bytes:
    return text.encode("utf-8", errors="surrogateescape")


def _decode(raw: bytes) -> str:
    return raw.decode("utf-8", errors="surrogateescape")


def _read_exact(stream, count: int) -> bytes:
    chunk = stream.read(count)
    if len(chunk) != count:
        raise _CorruptRecord(f"expected {count} bytes, got {len(chunk)}")
    return chunk


def _read_len(stream) -> int:
    return _LEN.unpack(_read_exact(stream, _LEN.size))[0]


def _encode_record(key: bytes, value: bytes) -> bytes:
    return _LEN.pack(len(key)) + key + _LEN.pack(len(value)) + value


class LogStorageEngine:
    """Key/value store that appends every write to a data file.

    Entries live in a memory cache ordered by access; the oldest fifth is
    dropped once the cache outgrows ``MAX_CACHE_SIZE``. Every key written
    is recorded in an index of data-file offsets, so evicted entries can be
    read back from disk.
    """

    MAX_KEY_SIZE = 256
    MAX_VALUE_SIZE = 1024
    MAX_CACHE_SIZE = 10_000_000
    BATCH_SIZE = 1_000_000

    def __init__(self, directory: str | os.PathLike = "disk_storage") -> None:
        self._directory = Path(directory)
        self._directory.mkdir(parents=True, exist_ok=True)
        self._data_path = self._directory / DATA_FILE
        self._index_path = self._directory / INDEX_FILE
        self._lock = threading.RLock()
        self._data: dict[str, str] = {}
        self._access_order: deque[str] = deque()
        self._pending_writes = 0
        self._write_buffer: list[tuple[str, str]] = []
        self._disk_index: dict[str, _DiskEntry] = {}
        self._closed = False
        self._load_disk_index()

    # -- index handling -------------------------------------------------

    def _load_disk_index(self) -> None:
        try:
            index_file = open(self._index_path, "rb")
        except FileNotFoundError:
            self._data_path.touch()
            self._index_path.touch()
            return

        with index_file:
            while True:
                try:
                    key_raw = _read_exact(index_file, _read_len(index_file))
                    offset, size = _POSITION.unpack(
                        _read_exact(index_file, _POSITION.size)
                    )
                except _CorruptRecord:
                    break
                key = _decode(key_raw)
                self._disk_index[key] = _DiskEntry(offset, size)
                value = self._load_value(offset)
                if value is not None:
                    self._data[key] = value
                    self._access_order.append(key)

    def _load_value(self, offset: int) -> str | None:
        try:
            with open(self._data_path, "rb") as data_file:
                data_file.seek(offset)
                data_file.seek(_read_len(data_file), os.SEEK_CUR)
                return _decode(_read_exact(data_file, _read_len(data_file)))
        except (OSError, _CorruptRecord):
            return None

    def _save_disk_index(self) -> None:
        parts = []
        for key in sorted(self._disk_index, key=_encode):
            entry = self._disk_index[key]
            raw = _encode(key)
            parts.append(_LEN.pack(len(raw)) + raw + _POSITION.pack(entry.offset, entry.size))
        self._index_path.write_bytes(b"".join(parts))

    def _update_disk_index(self, key: str, offset: int, size: int) -> None:
        self._disk_index[key] = _DiskEntry(offset, size)
        self._save_disk_index()

    def _remove_from_disk_index(self, key: str) -> None:
        self._disk_index.pop(key, None)
        self._save_disk_index()

    def _flush_write_buffer(self) -> None:
        if not self._write_buffer:
            return
        with open(self._data_path, "ab") as data_file:
            data_file.seek(0, os.SEEK_END)
            for key, value in self._write_buffer:
                offset = data_file.tell()
                data_file.write(_encode_record(_encode(key), _encode(value)))
                data_file.flush()
                self._update_disk_index(key, offset, data_file.tell() - offset)
        self._write_buffer.clear()
        self._pending_writes = 0

    # -- public interface -----------------------------------------------

    def size(self) -> int:
        """Number of cached entries plus number of indexed entries."""
        with self._lock:
            return len(self._data) + len(self._disk_index)

    def __len__(self) -> int:
        return self.size()

    def set(self, key: str, value: str) -> bool:
        """Store ``value`` under ``key`` and write it to disk."""
        with self._lock:
            self._data[key] = value
            self._access_order.append(key)
            self._pending_writes += 1
            self._write_buffer.append((key, value))

            if len(self._data) > self.MAX_CACHE_SIZE:
                for _ in range(self.MAX_CACHE_SIZE // 5):
                    if not self._access_order:
                        break
                    self._data.pop(self._access_order.popleft(), None)

            self._flush_write_buffer()
            return True

    def get(self, key: str) -> str:
        """Return the value for ``key``, or an empty string if there is none."""
        with self._lock:
            if key in self._data:
                self._forget_access(key)
                self._access_order.append(key)
                return self._data[key]

            entry = self._disk_index.get(key)
            if entry is None:
                return ""

            try:
                value = self._read_from_disk(key, entry)
            except OSError as exc:
                logger.error("Failed to read data file: %s", exc)
                return ""
            except _CorruptRecord as exc:
                logger.error("Failed to read record for %r: %s", key, exc)
                return ""

            self._data[key] = value
            self._access_order.append(key)
            return value

    def _read_from_disk(self, key: str, entry: _DiskEntry) -> str:
        with open(self._data_path, "rb") as data_file:
            data_file.seek(entry.offset)
            key_len = _read_len(data_file)
            if key_len > self.MAX_KEY_SIZE:
                raise _CorruptRecord(f"invalid key length {key_len}")
            if _read_exact(data_file, key_len) != _encode(key):
                raise _CorruptRecord("key mismatch")
            value_len = _read_len(data_file)
            if value_len > self.MAX_VALUE_SIZE:
                raise _CorruptRecord(f"invalid value length {value_len}")
            return _decode(_read_exact(data_file, value_len))

    def _forget_access(self, key: str) -> None:
        self._access_order = deque(k for k in self._access_order if k != key)

    def delete(self, key: str) -> bool:
        """Remove ``key``; return whether it existed."""
        with self._lock:
            if key not in self._data and key not in self._disk_index:
                return False
            self._data.pop(key, None)
            self._forget_access(key)
            self._remove_from_disk_index(key)
            return True

    def clear(self) -> None:
        """Drop every entry from memory and empty both files."""
        with self._lock:
            self._data.clear()
            self._access_order.clear()
            self._pending_writes = 0
            self._write_buffer.clear()
            self._disk_index.clear()
            self._data_path.write_bytes(b"")
            self._index_path.write_bytes(b"")

    def force_flush(self) -> None:
        """Write any buffered entries to the data file."""
        with self._lock:
            self._flush_write_buffer()

    def close(self) -> None:
        """Flush pending writes and save the index."""
        with self._lock:
            if self._closed:
                return
            self._flush_write_buffer()
            self._save_disk_index()
            self._closed = True

    def __enter__(self) -> "LogStorageEngine":
        return self

    def __exit__(self, *args) -> None:
        self.close()