from __future__ import annotations

import sqlite3
from collections.abc import Generator
from pathlib import Path

import pytest

from sqlbind.core.cache import reset_caches

here = Path(__file__).parent
root_path = here.parent


@pytest.fixture(autouse=True)
def _clear_caches() -> Generator[None, None, None]:
    reset_caches()
    yield
    reset_caches()


@pytest.fixture
def sqlite_connection() -> Generator[sqlite3.Connection, None, None]:
    connection = sqlite3.connect(":memory:")
    connection.executescript(
        """
        CREATE TABLE person (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            first_name TEXT NOT NULL,
            last_name TEXT,
            age INTEGER,
            status TEXT,
            birth_date TEXT
        );
        """
    )
    yield connection
    connection.close()
