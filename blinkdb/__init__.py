"""A small key-value store: two disk-backed engines, an LRU cache, a RESP server, a client and a benchmark."""

__version__ = "0.1.0"

__all__ = ["benchmark", "client", "kvstore", "logstore", "lru", "repl", "resp", "server"]