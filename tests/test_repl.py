import io

import pytest

from blinkdb.logstore import INDEX_FILE, LogStorageEngine
from blinkdb.repl import UNKNOWN_COMMAND, execute, main, run_repl, usage


@pytest.fixture
def engine(tmp_path):
    with LogStorageEngine(tmp_path / "store") as eng:
        yield eng


def test_usage_lists_commands():
    text = usage()
    assert text.startswith("Available commands:\n")
    assert "6. EXIT - Exit the program\n" in text


def test_set_and_get_with_spaces(engine):
    assert execute(engine, "SET a hello world") == "OK"
    assert execute(engine, "GET a") == "hello world"


def test_set_keeps_extra_leading_space(engine):
    assert execute(engine, "SET a  b") == "OK"
    assert engine.get("a") == " b"


def test_set_requires_value(engine):
    assert execute(engine, "SET a") == "Error: SET requires both key and value"


def test_get_requires_key(engine):
    assert execute(engine, "GET") == "Error: GET requires a key"


def test_del_requires_key(engine):
    assert execute(engine, "DEL") == "Error: DEL requires a key"


def test_del_missing_and_present(engine):
    assert execute(engine, "DEL x") == "Error: Key does not exist"
    execute(engine, "SET x 1")
    assert execute(engine, "DEL x") == "OK"
    assert engine.get("x") == ""


def test_get_missing_prints_empty(engine):
    assert execute(engine, "GET nothing") == ""


def test_size_reports_engine_size(engine):
    execute(engine, "SET a 1")
    assert execute(engine, "SIZE") == str(engine.size())


def test_clear(engine):
    execute(engine, "SET a 1")
    assert execute(engine, "CLEAR") == "OK"
    assert engine.size() == 0


def test_exit_returns_none(engine):
    assert execute(engine, "EXIT") is None


@pytest.mark.parametrize("line", ["FOO", "set a b", "   "])
def test_unknown_commands(engine, line):
    assert execute(engine, line) == UNKNOWN_COMMAND


def test_run_repl_transcript(engine):
    stdin = io.StringIO("SET k v\n\nGET k\nEXIT\nGET k\n")
    stdout = io.StringIO()
    run_repl(engine, stdin, stdout)
    expected = (
        "BLINK DB REPL\n"
        + usage()
        + "\nUser> OK\n"
        + "\nUser> "
        + "\nUser> v\n"
        + "\nUser> "
    )
    assert stdout.getvalue() == expected


def test_run_repl_stops_at_end_of_input(engine):
    stdout = io.StringIO()
    run_repl(engine, io.StringIO("SET a 1\n"), stdout)
    assert stdout.getvalue().endswith("\nUser> OK\n\nUser> ")
    assert engine.get("a") == "1"


def test_main_runs_against_directory(tmp_path, monkeypatch, capsys):
    directory = tmp_path / "db"
    monkeypatch.setattr("sys.stdin", io.StringIO("SET a 1\nEXIT\n"))
    assert main(["--directory", str(directory)]) == 0
    assert "User> OK" in capsys.readouterr().out
    assert (directory / INDEX_FILE).stat().st_size > 0