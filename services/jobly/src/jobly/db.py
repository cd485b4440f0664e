from __future__ import annotations

import logging
import sqlite3
import threading
from pathlib import Path

LOGGER = logging.getLogger("jobly.db")

SCHEMA = """
CREATE TABLE IF NOT EXISTS companies (
    handle TEXT PRIMARY KEY,
    name TEXT NOT NULL UNIQUE,
    num_employees INTEGER CHECK (num_employees >= 0),
    description TEXT NOT NULL,
    logo_url TEXT
);

CREATE TABLE IF NOT EXISTS jobs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    title TEXT NOT NULL,
    salary INTEGER CHECK (salary >= 0),
    equity TEXT CHECK (CAST(equity AS REAL) <= 1.0),
    company_handle TEXT NOT NULL REFERENCES companies(handle) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS users (
    username TEXT PRIMARY KEY,
    password TEXT NOT NULL,
    first_name TEXT NOT NULL,
    last_name TEXT NOT NULL,
    email TEXT NOT NULL CHECK (instr(email, '@') > 1),
    is_admin INTEGER NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS applications (
    username TEXT NOT NULL REFERENCES users(username) ON DELETE CASCADE,
    job_id INTEGER NOT NULL REFERENCES jobs(id) ON DELETE CASCADE,
    PRIMARY KEY (username, job_id)
);
"""


class Database:
    """Owns the SQLite connection shared by the Jobly repositories."""

    def __init__(self, database_path: str) -> None:
        self.database_path = Path(database_path)
        self._connection: sqlite3.Connection | None = None
        self.lock = threading.RLock()

    @property
    def connection(self) -> sqlite3.Connection:
        if self._connection is None:
            raise RuntimeError("Database connection is not initialized")
        return self._connection

    def connect(self) -> None:
        with self.lock:
            self.database_path.parent.mkdir(parents=True, exist_ok=True)
            self._connection = sqlite3.connect(self.database_path, check_same_thread=False)
            self._connection.row_factory = sqlite3.Row
            self._connection.execute("PRAGMA foreign_keys=ON")
            self._connection.executescript(SCHEMA)
            self._connection.commit()
            LOGGER.debug("connected to %s", self.database_path)

    def close(self) -> None:
        with self.lock:
            if self._connection is None:
                return
            self._connection.close()
            self._connection = None
