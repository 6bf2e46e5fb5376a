"""Key/value store with an LRU cache in front of a text file on disk."""

from __future__ import annotations

import logging
import os
import threading
from collections import deque
from pathlib import Path

from blinkdb.lru import LRUCache

logger = logging.getLogger(__name__)

DATA_FILE = "data.txt"


class DiskStorage:
    """All entries held in memory and saved as ``key=value`` lines."""

    def __init__(self, path: str | os.PathLike) -> None:
        self._path = Path(path)
        self._lock = threading.Lock()
        self._data: dict[str, str] = {}
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._load()
        except (OSError, UnicodeError) as exc:
            logger.warning("Starting with empty storage: %s", exc)
            self._data.clear()

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> None:
        try:
            with open(self._path, encoding="utf-8", errors="surrogateescape", newline="") as fh:
                text = fh.read()
        except FileNotFoundError:
            return
        for line in text.split("\n"):
            key, sep, value = line.partition("=")
            if sep:
                self._data[key] = value

    def _write(self) -> None:
        try:
            with open(self._path, "w", encoding="utf-8", errors="surrogateescape", newline="") as fh:
                fh.writelines(f"{key}={value}\n" for key, value in self._data.items())
        except OSError as exc:
            logger.error("Failed to save %s: %s", self._path, exc)

    def save(self) -> None:
        """Write every entry to the data file."""
        with self._lock:
            self._write()

    def get(self, key: str) -> str | None:
        """Return the stored value, or ``None``."""
        with self._lock:
            return self._data.get(key)

    def put(self, key: str, value: str) -> bool:
        """Store ``value`` under ``key`` and save the file."""
        with self._lock:
            self._data[key] = value
            self._write()
            return True

    def remove(self, key: str) -> None:
        """Drop ``key`` and save the file."""
        with self._lock:
            self._data.pop(key, None)
            self._write()


class StorageEngine:
    """Cache-first store whose writes reach disk through a background thread."""

    def __init__(self, directory: str | os.PathLike = "disk_storage", cache_size: int = 1) -> None:
        self._cache = LRUCache(cache_size)
        self._disk_path = Path(directory) / DATA_FILE
        self._disk = DiskStorage(self._disk_path)
        self._queue: deque[tuple[str, str]] = deque()
        self._write_lock = threading.Lock()
        self._write_cv = threading.Condition(self._write_lock)
        self._running = True
        self._closed = False
        self._writer = threading.Thread(target=self._async_write_worker, daemon=True)
        self._writer.start()

    def _async_write_worker(self) -> None:
        while self._running:
            with self._write_cv:
                while self._running and not self._queue:
                    self._write_cv.wait()
                if not self._running:
                    break
                key, value = self._queue.popleft()
            self._disk.put(key, value)

    def set(self, key: str, value: str) -> bool:
        """Store ``value`` under ``key``."""
        return self.put(key, value)

    def put(self, key: str, value: str) -> bool:
        """Cache the entry and queue it for writing to disk."""
        if self._cache.put(key, value):
            with self._write_cv:
                self._queue.append((key, value))
                self._write_cv.notify()
            return True
        return self._disk.put(key, value)

    def get(self, key: str) -> str:
        """Return the value for ``key``, or an empty string if there is none."""
        value = self._cache.get(key)
        if value is not None:
            return value
        value = self._disk.get(key)
        if value is not None:
            self._cache.put(key, value)
            return value
        return ""

    def delete(self, key: str) -> bool:
        """Remove ``key`` from cache and disk; return whether it existed."""
        try:
            exists = False
            if self._cache.get(key) is not None:
                exists = True
                self._cache.remove(key)
            if self._disk.get(key) is not None:
                exists = True
                self._disk.remove(key)
            return exists
        except OSError as exc:
            logger.error("Failed to delete %r: %s", key, exc)
            return False

    def clear(self) -> None:
        """Reset the cache and reload disk storage from its saved file."""
        self._cache = LRUCache(self._cache.capacity)
        self._disk.save()
        self._disk = DiskStorage(self._disk_path)

    def force_flush(self) -> None:
        """Write every queued entry to disk now."""
        with self._write_cv:
            while self._queue:
                key, value = self._queue.popleft()
                self._disk.put(key, value)

    def sync(self) -> None:
        """Same as :meth:`force_flush`."""
        self.force_flush()

    def size(self) -> int:
        """Number of entries in the cache."""
        return len(self._cache)

    def __len__(self) -> int:
        return self.size()

    def pending_write_count(self) -> int:
        """Number of entries still waiting to be written to disk."""
        with self._write_cv:
            return len(self._queue)

    def stop_async_writer(self) -> None:
        """Stop the background writer; queued entries stay queued."""
        with self._write_cv:
            self._running = False
            self._write_cv.notify_all()
        if self._writer.is_alive() and self._writer is not threading.current_thread():
            self._writer.join()

    def close(self) -> None:
        """Stop the writer and save disk storage."""
        if self._closed:
            return
        self.stop_async_writer()
        self._disk.save()
        self._closed = True

    def __enter__(self) -> "StorageEngine":
        return self

    def __exit__(self, *args) -> None:
        self.close()