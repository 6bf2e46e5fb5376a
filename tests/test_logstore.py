import struct

import pytest

from blinkdb.logstore import DATA_FILE, INDEX_FILE, LogStorageEngine


@pytest.fixture
def engine(tmp_path):
    with LogStorageEngine(tmp_path / "store") as eng:
        yield eng


@pytest.fixture
def small_engine(tmp_path):
    with LogStorageEngine(tmp_path / "store") as eng:
        eng.MAX_CACHE_SIZE = 5
        yield eng


def test_creates_directory_and_files(tmp_path):
    directory = tmp_path / "fresh"
    with LogStorageEngine(directory):
        pass
    assert (directory / DATA_FILE).is_file()
    assert (directory / INDEX_FILE).is_file()


def test_set_then_get(engine):
    assert engine.set("alpha", "one") is True
    assert engine.get("alpha") == "one"


def test_get_missing_returns_empty(engine):
    assert engine.get("missing") == ""


def test_overwrite_returns_latest(engine):
    engine.set("k", "first")
    engine.set("k", "second")
    assert engine.get("k") == "second"


def test_delete(engine):
    engine.set("k", "v")
    assert engine.delete("k") is True
    assert engine.get("k") == ""
    assert engine.delete("k") is False


def test_size_counts_cache_and_index(engine):
    for name in ("a", "b", "c"):
        engine.set(name, "x")
    assert engine.size() == 2 * 3
    assert len(engine) == engine.size()


def test_clear_empties_everything(tmp_path):
    directory = tmp_path / "store"
    with LogStorageEngine(directory) as eng:
        eng.set("a", "1")
        eng.clear()
        assert eng.size() == 0
        assert eng.get("a") == ""
        assert (directory / DATA_FILE).read_bytes() == b""


def test_data_file_layout(tmp_path):
    directory = tmp_path / "store"
    with LogStorageEngine(directory) as eng:
        eng.set("ab", "xyz")
    expected = struct.pack("<I", 2) + b"ab" + struct.pack("<I", 3) + b"xyz"
    assert (directory / DATA_FILE).read_bytes() == expected


def test_index_file_layout(tmp_path):
    directory = tmp_path / "store"
    with LogStorageEngine(directory) as eng:
        eng.set("ab", "xyz")
    record_size = 4 + 2 + 4 + 3
    expected = struct.pack("<I", 2) + b"ab" + struct.pack("<QQ", 0, record_size)
    assert (directory / INDEX_FILE).read_bytes() == expected


def test_values_persist_across_reopen(tmp_path):
    directory = tmp_path / "store"
    with LogStorageEngine(directory) as eng:
        eng.set("a", "apple")
        eng.set("b", "banana")
        eng.set("a", "avocado")
    with LogStorageEngine(directory) as eng:
        assert eng.get("a") == "avocado"
        assert eng.get("b") == "banana"


def test_deleted_key_stays_deleted_after_reopen(tmp_path):
    directory = tmp_path / "store"
    with LogStorageEngine(directory) as eng:
        eng.set("a", "apple")
        eng.set("b", "banana")
        eng.delete("a")
    with LogStorageEngine(directory) as eng:
        assert eng.get("a") == ""
        assert eng.get("b") == "banana"


def test_evicted_entry_is_read_back_from_disk(small_engine):
    for i in range(6):
        assert small_engine.set(f"key{i}", f"value{i}") is True
    assert small_engine.get("key0") == "value0"
    assert small_engine.get("key5") == "value5"


def test_corrupt_data_file_yields_empty(tmp_path, small_engine):
    for i in range(6):
        small_engine.set(f"key{i}", f"value{i}")
    (tmp_path / "store" / DATA_FILE).write_bytes(b"")
    assert small_engine.get("key0") == ""


def test_unicode_round_trip(tmp_path):
    directory = tmp_path / "store"
    with LogStorageEngine(directory) as eng:
        eng.set("clé", "värde")
    with LogStorageEngine(directory) as eng:
        assert eng.get("clé") == "värde"


def test_close_is_idempotent(tmp_path):
    directory = tmp_path / "store"
    eng = LogStorageEngine(directory)
    eng.set("a", "1")
    eng.close()
    eng.close()
    with LogStorageEngine(directory) as reopened:
        assert reopened.get("a") == "1"


def test_force_flush_keeps_data(engine):
    engine.set("a", "1")
    engine.force_flush()
    assert engine.get("a") == "1"