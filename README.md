# blinkdb

A small key-value store. It has two storage engines and a set of tools built on them:

- `blinkdb.logstore.LogStorageEngine` appends every write to `data.dat` and keeps a binary index of record offsets in `index.dat`. Entries are also held in an in-memory cache.
- `blinkdb.kvstore.StorageEngine` puts an LRU cache (`blinkdb.lru.LRUCache`) in front of `blinkdb.kvstore.DiskStorage`. `DiskStorage` saves all entries as `key=value` lines in `data.txt`. Writes reach the file through a background thread.
- `blinkdb.resp` provides the wire format: `CommandParser`, `encode_command` and `encode_resp`.
- `blinkdb.server.Server` is a single-threaded, event-driven TCP server over a `StorageEngine`. It listens on port 9001 by default.
- There is a line-oriented client (`blinkdb.client`) and a throughput benchmark (`blinkdb.benchmark`), both for talking to that server.

No third-party libraries are needed at run time.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Interactive shell

```
blinkdb-repl [--directory DIR]
```

The shell opens a `LogStorageEngine` in `DIR`, which defaults to `disk_storage`. It reads these commands, one per line:

```
SET <key> <value>   store a value; the value is the rest of the line
GET <key>           print the value, or an empty line if the key is absent
DEL <key>           delete a key
SIZE                number of cached entries plus number of indexed entries
CLEAR               empty the cache and both files
EXIT                leave the shell (end of input does the same)
```

Command names are case-sensitive in the shell. Any other input prints `Unknown command. Type 'help' for usage.`

## Server

```
blinkdb-server [--host HOST] [--port PORT] [--directory DIR] [--cache-size N]
```

The defaults are host `0.0.0.0`, port `9001`, directory `disk_storage` and a cache of 1 entry. Requests may be RESP arrays of bulk strings or plain lines ending in CRLF. Command names are case-insensitive:

| Command | Reply |
|---|---|
| `PING` | `+PONG` |
| `SET key value` | `+OK` |
| `GET key` | the value as a bulk string, or `$-1` if it is absent or empty |
| `DEL key` | `:1` if the key existed, otherwise `:0` |
| `CLEAR`, `FLUSHALL`, `FLUSHDB` | `+OK` |
| `EXIT` | `+OK`, then the server stops |

Arguments are split on whitespace, so a value is a single word, and `SET` ignores any words after the value. Ctrl-C or SIGTERM stops the server.

## Client

```
blinkdb-client [--host HOST] [--port PORT]
```

The client connects to `127.0.0.1:9001` by default. It sends each line you type and prints the reply:

```
User> SET greeting hello
OK
User> GET greeting
hello
User> DEL greeting
1
User> EXIT
```

Typing `EXIT` in the client closes the client only. The command is not sent to the server.

## Benchmark

With a server running:

```
blinkdb-benchmark NUM_OPERATIONS NUM_CONNECTIONS [--host HOST] [--port PORT]
```

The operations are split evenly across the parallel connections, using integer division. Each connection first runs `SET keyN valueN` for each of its keys, then `GET keyN` for the same keys, and checks every reply. The benchmark then prints the summed SET and GET operations per second.

If a connection hits an error, it reports the error on stderr. It then contributes whatever rates it had measured by that point.

## Using the engines from Python

```python
from blinkdb.logstore import LogStorageEngine

with LogStorageEngine("disk_storage") as db:
    db.set("name", "blink")
    print(db.get("name"))   # "blink"
    db.delete("name")
    print(len(db))
```

```python
from blinkdb.kvstore import StorageEngine

with StorageEngine("disk_storage", cache_size=100) as store:
    store.set("k", "v")
    store.sync()             # write queued entries to disk now
    print(store.get("k"))
    print(store.pending_write_count())
```

`get` returns an empty string for a missing key on both engines.

## Behaviour to be aware of

- `LogStorageEngine.delete` removes a key from the index only. Its records stay in `data.dat` until `clear` is called.
- `StorageEngine.size()` counts only the entries in the LRU cache, not those on disk.
- `StorageEngine.clear()` resets the cache, then reloads `DiskStorage` from its saved file. Entries already written to `data.txt` are therefore still there afterwards. The server's `CLEAR`, `FLUSHALL` and `FLUSHDB` behave the same way.
- The server implements only the commands listed above. It has no authentication, no expiry and no replication.