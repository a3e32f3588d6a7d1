"""
State Storage Module

Provides an abstract store for whole-ledger state plus in-memory (testing),
JSON file and SQLite implementations. The ledger treats stored state as an
opaque JSON-compatible dict; all monetary values inside it are Decimal
strings.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Union
from datetime import datetime, timezone
from pathlib import Path
import json
import logging
import os
import sqlite3
import tempfile
import threading

from .exceptions import PersistenceError, CorruptStateError

logger = logging.getLogger(__name__)


class StateStore(ABC):
    """Abstract interface for ledger state backends"""

    @abstractmethod
    def save(self, state: Dict[str, Any], destination: Optional[str] = None) -> None:
        """Persist state, replacing anything previously saved at destination"""
        pass

    @abstractmethod
    def load(self, source: Optional[str] = None) -> Optional[Dict[str, Any]]:
        """Return the saved state, or None if nothing was saved at source"""
        pass

    def close(self) -> None:
        """Release backend resources (default no-op)"""
        pass


def _decode_state(text: str, origin: str) -> Dict[str, Any]:
    try:
        state = json.loads(text)
    except json.JSONDecodeError as e:
        raise CorruptStateError(f"Ledger state at {origin} is not valid JSON: {e}") from e
    if not isinstance(state, dict):
        raise CorruptStateError(f"Ledger state at {origin} is not a JSON object")
    return state


class InMemoryStateStore(StateStore):
    """In-memory store for testing"""

    def __init__(self):
        self._data: Dict[str, str] = {}
        self._lock = threading.RLock()

    def save(self, state: Dict[str, Any], destination: Optional[str] = None) -> None:
        with self._lock:
            # Serialize to prevent external mutation
            self._data[destination or "default"] = json.dumps(state)

    def load(self, source: Optional[str] = None) -> Optional[Dict[str, Any]]:
        with self._lock:
            text = self._data.get(source or "default")
        if text is None:
            return None
        return _decode_state(text, f"memory:{source or 'default'}")


class JSONFileStore(StateStore):
    """
    JSON file store

    Writes go to a temporary file in the target directory and are moved into
    place with os.replace, so a crash mid-save never leaves a truncated file.
    """

    def __init__(self, path: Union[str, Path] = "bank_data.json"):
        self.path = Path(path)

    def _resolve(self, location: Optional[str]) -> Path:
        return Path(location) if location else self.path

    def save(self, state: Dict[str, Any], destination: Optional[str] = None) -> None:
        path = self._resolve(destination)
        try:
            payload = json.dumps(state, indent=2, sort_keys=True)
        except (TypeError, ValueError) as e:
            raise PersistenceError(f"Ledger state is not serializable: {e}") from e

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=str(path.parent))
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    handle.write(payload)
                    handle.flush()
                    os.fsync(handle.fileno())
                os.replace(tmp_name, path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except OSError as e:
            logger.error(f"Failed to save ledger state to {path}: {e}")
            raise PersistenceError(f"Cannot write ledger state to {path}: {e}") from e

    def load(self, source: Optional[str] = None) -> Optional[Dict[str, Any]]:
        path = self._resolve(source)
        if not path.exists():
            return None
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.error(f"Failed to read ledger state from {path}: {e}")
            raise PersistenceError(f"Cannot read ledger state from {path}: {e}") from e
        return _decode_state(text, str(path))


class SQLiteStore(StateStore):
    """SQLite store; each destination is one row holding the JSON state"""

    def __init__(self, db_path: Union[str, Path] = ":memory:", table: str = "ledger_state"):
        self.db_path = str(db_path)
        self.table = table
        self._lock = threading.RLock()
        try:
            self._connection = sqlite3.connect(self.db_path, check_same_thread=False)
            self._connection.row_factory = sqlite3.Row

            # Enable WAL mode for better concurrent access
            if self.db_path != ":memory:":
                self._connection.execute("PRAGMA journal_mode = WAL")
                self._connection.execute("PRAGMA synchronous = NORMAL")
            self._ensure_table()
        except sqlite3.Error as e:
            raise PersistenceError(f"Cannot open SQLite store {self.db_path}: {e}") from e

    def _ensure_table(self) -> None:
        with self._lock:
            self._connection.execute(f"""
                CREATE TABLE IF NOT EXISTS {self.table} (
                    id TEXT PRIMARY KEY,
                    data TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            self._connection.commit()

    def save(self, state: Dict[str, Any], destination: Optional[str] = None) -> None:
        record_id = destination or "default"
        try:
            data_json = json.dumps(state)
        except (TypeError, ValueError) as e:
            raise PersistenceError(f"Ledger state is not serializable: {e}") from e

        now = datetime.now(timezone.utc).isoformat()
        with self._lock:
            try:
                self._connection.execute(f"""
                    INSERT OR REPLACE INTO {self.table} (id, data, created_at, updated_at)
                    VALUES (?, ?,
                        COALESCE((SELECT created_at FROM {self.table} WHERE id = ?), ?),
                        ?)
                """, (record_id, data_json, record_id, now, now))
                self._connection.commit()
            except sqlite3.Error as e:
                self._connection.rollback()
                raise PersistenceError(f"Cannot save ledger state '{record_id}': {e}") from e

    def load(self, source: Optional[str] = None) -> Optional[Dict[str, Any]]:
        record_id = source or "default"
        with self._lock:
            try:
                cursor = self._connection.execute(f"""
                    SELECT data FROM {self.table} WHERE id = ?
                """, (record_id,))
                row = cursor.fetchone()
            except sqlite3.Error as e:
                raise PersistenceError(f"Cannot load ledger state '{record_id}': {e}") from e
        if row is None:
            return None
        return _decode_state(row['data'], f"{self.db_path}:{record_id}")

    def close(self) -> None:
        with self._lock:
            if self._connection:
                self._connection.close()
                self._connection = None


def create_store(backend: str, location: str) -> StateStore:
    """Build a store from configuration values ("json" or "sqlite")"""
    if backend == "json":
        return JSONFileStore(location)
    if backend == "sqlite":
        return SQLiteStore(location)
    raise ValueError(f"Unknown state backend: {backend}")
