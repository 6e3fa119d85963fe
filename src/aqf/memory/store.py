"""Durable key-value storage for quick-fix state such as preferred routes."""

from __future__ import annotations

import hashlib
import json
import logging
import os
import shutil
import sqlite3
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Mapping, Protocol

DEFAULT_DB_PATH = Path("data/aqf.sqlite")
LOGGER = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    """Minimal get/update surface used by the route resolver."""

    def get(self, key: str, default: Any = None) -> Any:
        ...

    def update(self, key: str, value: Any) -> None:
        ...


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _dump_json(data: Any) -> str:
    """Convert arbitrary JSON-like payloads into a persisted string."""
    if isinstance(data, set):
        data = sorted(data)
    return json.dumps(data, sort_keys=True)


def _load_json(value: str | None, *, default: Any) -> Any:
    """Decode a stored value while falling back to the provided default."""
    if not value:
        return default
    data = json.loads(value)
    if data is None:
        return default
    return data


class StateStore:
    """SQLite-backed JSON key-value store."""

    @staticmethod
    def _is_writable(path: Path) -> bool:
        parent = path.parent
        try:
            parent.mkdir(parents=True, exist_ok=True)
        except OSError:
            return False
        if path.exists():
            return os.access(path, os.W_OK)
        return os.access(parent, os.W_OK)

    @staticmethod
    def _fallback_db_path(source: Path) -> Path:
        digest = hashlib.sha1(source.as_posix().encode("utf-8")).hexdigest()[:12]
        fallback_dir = Path(tempfile.gettempdir()) / "ai-quick-fix" / "db" / digest
        fallback_dir.mkdir(parents=True, exist_ok=True)
        return fallback_dir / source.name

    @classmethod
    def _resolve_db_path(cls, requested: Path) -> Path:
        resolved = requested.resolve()
        if cls._is_writable(resolved):
            return resolved
        fallback = cls._fallback_db_path(resolved)
        if not fallback.exists() and resolved.exists() and os.access(resolved, os.R_OK):
            try:
                shutil.copy2(resolved, fallback)
            except OSError:
                pass
        if not cls._is_writable(fallback):
            raise OSError(f"Unable to locate writable database path (attempted {requested})")
        return fallback

    def __init__(self, db_path: Path | str = DEFAULT_DB_PATH) -> None:
        requested_path = Path(db_path)
        self.db_path = self._resolve_db_path(requested_path)
        if self.db_path != requested_path.resolve():
            LOGGER.warning(
                "Database path %s is not writable; using fallback %s",
                requested_path,
                self.db_path,
            )
        self._conn: sqlite3.Connection | None = self._open_connection()
        self._bootstrap()

    @classmethod
    def from_config(cls, config: Mapping[str, Any], *, base_dir: Path | None = None) -> "StateStore":
        paths = config.get("paths") or {}
        db_value = paths.get("db_path") if isinstance(paths, Mapping) else None
        db_path = Path(db_value) if isinstance(db_value, str) and db_value.strip() else DEFAULT_DB_PATH
        if base_dir is not None and not db_path.is_absolute():
            db_path = base_dir / db_path
        return cls(db_path)

    def close(self) -> None:
        if self._conn is not None:
            try:
                self._conn.close()
            finally:
                self._conn = None

    def __enter__(self) -> "StateStore":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def _open_connection(self) -> sqlite3.Connection:
        connection = sqlite3.connect(str(self.db_path))
        connection.row_factory = sqlite3.Row
        return connection

    @property
    def connection(self) -> sqlite3.Connection:
        if self._conn is None:
            raise RuntimeError("StateStore is closed.")
        return self._conn

    def _bootstrap(self) -> None:
        self.connection.executescript(
            """
            CREATE TABLE IF NOT EXISTS state (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at TEXT NOT NULL
            );
            """
        )
        self.connection.commit()

    def get(self, key: str, default: Any = None) -> Any:
        """Return the decoded value stored under ``key`` or ``default``."""
        row = self.connection.execute("SELECT value FROM state WHERE key = ?", (key,)).fetchone()
        if row is None:
            return default
        return _load_json(row["value"], default=default)

    def update(self, key: str, value: Any) -> None:
        """Upsert ``value`` under ``key``; ``None`` removes the record."""
        with self.connection:
            if value is None:
                self.connection.execute("DELETE FROM state WHERE key = ?", (key,))
                return
            self.connection.execute(
                """
                INSERT INTO state (key, value, updated_at) VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
                """,
                (key, _dump_json(value), _utc_now_iso()),
            )

    def items(self) -> Dict[str, Any]:
        """Return every stored record keyed by name."""
        rows = self.connection.execute("SELECT key, value FROM state ORDER BY key").fetchall()
        return {row["key"]: _load_json(row["value"], default=None) for row in rows}


__all__ = ["DEFAULT_DB_PATH", "KeyValueStore", "StateStore"]
