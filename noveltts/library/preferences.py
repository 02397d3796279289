"""SQLite-backed key/value preferences store."""

import sqlite3
import threading
import logging
from pathlib import Path

logger = logging.getLogger(__name__)


class PreferencesStore:
    """Persistent string key/value storage backed by SQLite."""

    SCHEMA = """
    CREATE TABLE IF NOT EXISTS preferences (
        key         TEXT PRIMARY KEY,
        value       TEXT NOT NULL
    );
    """

    def __init__(self, db_path: str | Path = "data/preferences.db"):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.executescript(self.SCHEMA)
        self._conn.commit()
        logger.info("Preferences store opened: %s", self.db_path)

    def close(self) -> None:
        self._conn.close()

    def get(self, key: str) -> str | None:
        with self._lock:
            row = self._conn.execute(
                "SELECT value FROM preferences WHERE key = ?", (key,)
            ).fetchone()
        return row["value"] if row else None

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._conn.execute(
                "INSERT OR REPLACE INTO preferences (key, value) VALUES (?, ?)",
                (key, value),
            )
            self._conn.commit()

    def remove(self, key: str) -> None:
        with self._lock:
            self._conn.execute("DELETE FROM preferences WHERE key = ?", (key,))
            self._conn.commit()

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None
