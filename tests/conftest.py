from __future__ import annotations

import sqlite3
from pathlib import Path

import pytest

from sqlity.shared import paths
from sqlity.shared.config import ENV_OVERRIDE_SPEC


@pytest.fixture(autouse=True)
def _isolated_config_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv(paths.CONFIG_DIR_ENV, str(tmp_path / "config"))
    monkeypatch.delenv(paths.CONFIG_FILE_ENV, raising=False)
    for env_key, _ in ENV_OVERRIDE_SPEC.values():
        monkeypatch.delenv(env_key, raising=False)


@pytest.fixture
def users_db(tmp_path: Path) -> Path:
    """A small database file with a users table, an orders table and a view."""
    db_path = tmp_path / "app.db"
    connection = sqlite3.connect(db_path)
    connection.executescript(
        """
        CREATE TABLE users (
            id INTEGER PRIMARY KEY,
            name TEXT NOT NULL,
            age INTEGER,
            score REAL DEFAULT 0,
            joined DATETIME
        );
        CREATE UNIQUE INDEX idx_users_name ON users(name);
        CREATE TABLE orders (
            id INTEGER PRIMARY KEY,
            user_id INTEGER REFERENCES users(id),
            total NUMERIC
        );
        CREATE VIEW adults AS SELECT name FROM users WHERE age >= 18;
        INSERT INTO users (name, age, score, joined) VALUES
            ('Ada', 36, 9.5, '2024-01-15'),
            ('Grace', 45, 8.0, '2023-06-01'),
            ('Linus', 12, 4.25, NULL);
        INSERT INTO orders (user_id, total) VALUES (1, 19.99), (2, 5);
        """
    )
    connection.commit()
    connection.close()
    return db_path
