import logging
import sqlite3

import pytest

from mapperkit.adapters import AdapterConnectionError, AdapterExecutionError, ConnectionConfig, SQLiteAdapter


@pytest.fixture
def adapter(tmp_path):
    adapter = SQLiteAdapter()
    adapter.connect(ConnectionConfig(url=f"sqlite:///{tmp_path / 'test.db'}"))
    yield adapter
    adapter.close()


def test_connect_creates_database(tmp_path):
    adapter = SQLiteAdapter()
    connection = adapter.connect(ConnectionConfig(url=f"sqlite:///{tmp_path / 'connect.db'}"))
    assert isinstance(connection, sqlite3.Connection)
    assert (tmp_path / "connect.db").exists()
    adapter.close()
    adapter.close()


def test_execute_and_last_insert_id(adapter):
    adapter.execute("CREATE TABLE example (id INTEGER PRIMARY KEY, name TEXT NOT NULL)")
    cursor = adapter.execute("INSERT INTO example (name) VALUES (?)", ("Alice",))
    inserted_id = adapter.last_insert_id(cursor, "example", "id")
    assert inserted_id == 1
    row = adapter.execute("SELECT name FROM example WHERE id = ?", (inserted_id,)).fetchone()
    assert row["name"] == "Alice"


def test_statements_are_autocommitted(tmp_path):
    path = tmp_path / "auto.db"
    adapter = SQLiteAdapter()
    adapter.connect(ConnectionConfig(url=f"sqlite:///{path}"))
    adapter.execute("CREATE TABLE item (id INTEGER PRIMARY KEY, value INTEGER)")
    adapter.execute("INSERT INTO item (value) VALUES (?)", (10,))

    other = sqlite3.connect(path)
    assert other.execute("SELECT COUNT(*) FROM item").fetchone()[0] == 1
    other.close()
    adapter.close()


def test_explicit_transaction_rollback(adapter):
    adapter.execute("CREATE TABLE item (id INTEGER PRIMARY KEY, value INTEGER)")
    adapter.begin()
    adapter.execute("INSERT INTO item (value) VALUES (?)", (20,))
    adapter.rollback()
    assert adapter.execute("SELECT COUNT(*) FROM item").fetchone()[0] == 0


def test_update_reports_rowcount(adapter):
    adapter.execute("CREATE TABLE item (id INTEGER PRIMARY KEY, value INTEGER)")
    adapter.executemany("INSERT INTO item (value) VALUES (?)", [(1,), (1,), (2,)])
    cursor = adapter.execute("UPDATE item SET value = ? WHERE value = ?", (5, 1))
    assert cursor.rowcount == 2


def test_sql_errors_are_wrapped(adapter):
    with pytest.raises(AdapterExecutionError) as excinfo:
        adapter.execute("SELECT * FROM missing_table")
    assert isinstance(excinfo.value.__cause__, sqlite3.Error)


def test_execute_without_connection_fails():
    with pytest.raises(AdapterConnectionError):
        SQLiteAdapter().execute("SELECT 1")


def test_in_memory_database():
    adapter = SQLiteAdapter()
    adapter.connect(ConnectionConfig(url="sqlite:///:memory:"))
    adapter.execute("CREATE TABLE sample (value TEXT)")
    adapter.execute("INSERT INTO sample (value) VALUES (?)", ("hello",))
    assert adapter.execute("SELECT value FROM sample").fetchone()[0] == "hello"
    adapter.close()


def test_slow_query_threshold_from_environment(monkeypatch):
    monkeypatch.setenv("MAPPERKIT_SLOW_QUERY_MS", "250")
    assert SQLiteAdapter().slow_query_ms == 250
    assert SQLiteAdapter(slow_query_ms=5).slow_query_ms == 5


def test_slow_statements_log_warning_with_redacted_params(adapter, caplog):
    adapter.slow_query_ms = 0
    adapter.execute("CREATE TABLE account (secret TEXT)")
    caplog.set_level(logging.DEBUG, logger="mapperkit.adapters.sqlite")
    adapter.execute("INSERT INTO account (secret) VALUES (?)", ("my-password",))

    warnings = [record for record in caplog.records if record.levelno == logging.WARNING]
    assert warnings
    assert warnings[-1].params == ["***"]


def test_database_path_from_url():
    assert SQLiteAdapter.database_path("sqlite://") == ":memory:"
    assert SQLiteAdapter.database_path("sqlite:///:memory:") == ":memory:"
    assert SQLiteAdapter.database_path("sqlite:///data/app.db") == "data/app.db"
    assert SQLiteAdapter.database_path("/tmp/raw.db") == "/tmp/raw.db"


def test_connection_state_is_reported(tmp_path):
    adapter = SQLiteAdapter()
    assert not adapter.connected
    assert repr(adapter) == "<SQLiteAdapter disconnected>"
    adapter.connect(ConnectionConfig(url="sqlite://"))
    assert adapter.connected
    assert repr(adapter) == "<SQLiteAdapter sqlite://>"
    adapter.close()
    with pytest.raises(AdapterConnectionError):
        adapter.connection
