"""SQLite connection management shared by the session repository and the store."""

from __future__ import annotations

import sqlite3
from pathlib import Path
from threading import Lock
from typing import Dict, Iterable


class SQLiteManager:
    """Manage SQLite connections and apply schema statements on first connect."""

    def __init__(self) -> None:
        self._connections: Dict[Path, sqlite3.Connection] = {}
        self._lock = Lock()

    def connect(self, path: Path, schema: Iterable[str] = ()) -> sqlite3.Connection:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with self._lock:
            if path not in self._connections:
                conn = sqlite3.connect(path, check_same_thread=False)
                conn.row_factory = sqlite3.Row
                self._connections[path] = conn
            conn = self._connections[path]
        self._ensure_schema(conn, schema)
        return conn

    def _ensure_schema(self, conn: sqlite3.Connection, schema: Iterable[str]) -> None:
        for statement in schema:
            conn.execute(statement)
        conn.commit()

    def close(self, path: Path) -> None:
        path = Path(path)
        with self._lock:
            conn = self._connections.pop(path, None)
        if conn is not None:
            conn.close()

    def reset(self, path: Path) -> None:
        path = Path(path)
        with self._lock:
            if path in self._connections:
                self._connections[path].close()
                del self._connections[path]
        if path.exists():
            path.unlink()

    def close_all(self) -> None:
        with self._lock:
            for conn in self._connections.values():
                conn.close()
            self._connections.clear()


__all__ = ["SQLiteManager"]
