import sqlite3
import pytest
from dbhandle import DatabaseHandle, HandleConfig

SCHEMA = "CREATE TABLE t(id INTEGER PRIMARY KEY, name TEXT);"


@pytest.fixture()
def props():
    return {"applicationName": "X", "databaseVersion": "1"}


@pytest.fixture()
def db_path(tmp_path):
    return tmp_path / 'app.db'


@pytest.fixture()
def config():
    return HandleConfig()


@pytest.fixture()
def created_db(db_path, props, config):
    """A closed database file created with ``props`` and the test schema."""
    h = DatabaseHandle(db_path, props, config=config)
    h.create_new(SCHEMA)
    h.close()
    return db_path


def raw_rows(path, sql):
    conn = sqlite3.connect(path)
    try:
        return conn.execute(sql).fetchall()
    finally:
        conn.close()
