"""
Local database for MedicFácil.

The app keeps everything on the device, in a single SQLite file. Each
collection is a table of JSON records keyed by a string id:

- medications: the medications the user registered
- logs: dose events (the adherence history)
- family: family members with their access codes
- settings: a single record with id 'main'

The rest of the package only talks to the Storage class below: get, get_all,
put, add, delete, plus simple equality/prefix queries on a record field.
Every call opens its own short-lived connection, so no two operations overlap
and nothing spans more than one collection.
"""

import json
import sqlite3
from pathlib import Path
from typing import Optional

from . import config
from .errors import StorageError
from .logger import get_logger


logger = get_logger(__name__)

COLLECTIONS = ('medications', 'logs', 'family', 'settings')


def get_connection(db_path: Path = None):
    """
    Get a connection to the database.

    Returns a sqlite3 Connection whose rows can be read by column name.
    """
    if db_path is None:
        db_path = config.DB_PATH
    db_path = Path(db_path)

    # Make sure the data directory exists
    db_path.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    return conn


class Storage:
    """Key-value record store over SQLite, one table per collection."""

    def __init__(self, db_path: Path = None):
        self.db_path = Path(db_path) if db_path is not None else config.DB_PATH

    def init(self):
        """
        Create all the collection tables if they don't exist.

        This is safe to run multiple times - it won't delete existing data.
        """
        statements = []
        for collection in COLLECTIONS:
            statements.append(f"""
                CREATE TABLE IF NOT EXISTS {collection} (
                    id TEXT PRIMARY KEY,
                    data TEXT NOT NULL
                )
            """)

        # Dose events are looked up by medication and by day
        statements.append(
            "CREATE INDEX IF NOT EXISTS idx_logs_medication "
            "ON logs (json_extract(data, '$.medication_id'))"
        )
        statements.append(
            "CREATE INDEX IF NOT EXISTS idx_logs_scheduled "
            "ON logs (json_extract(data, '$.scheduled_time'))"
        )

        self._execute_script(statements)
        logger.info("Database initialized at %s", self.db_path)

    # ============================================================
    # READ OPERATIONS
    # ============================================================

    def get(self, collection: str, record_id: str) -> Optional[dict]:
        """Get one record, or None if there is no record with that id."""
        rows = self._query(
            f"SELECT data FROM {self._table(collection)} WHERE id = ?",
            (record_id,)
        )
        return json.loads(rows[0]['data']) if rows else None

    def get_all(self, collection: str) -> list:
        """Get every record of a collection, in insertion order."""
        rows = self._query(f"SELECT data FROM {self._table(collection)} ORDER BY rowid")
        return [json.loads(row['data']) for row in rows]

    def find(self, collection: str, field: str, value) -> list:
        """Get the records whose `field` equals `value`, in insertion order."""
        rows = self._query(
            f"SELECT data FROM {self._table(collection)} "
            f"WHERE json_extract(data, ?) = ? ORDER BY rowid",
            (f'$.{field}', value)
        )
        return [json.loads(row['data']) for row in rows]

    def find_prefix(self, collection: str, field: str, prefix: str) -> list:
        """Get the records whose text `field` starts with `prefix`."""
        rows = self._query(
            f"SELECT data FROM {self._table(collection)} "
            f"WHERE substr(json_extract(data, ?), 1, ?) = ? ORDER BY rowid",
            (f'$.{field}', len(prefix), prefix)
        )
        return [json.loads(row['data']) for row in rows]

    # ============================================================
    # WRITE OPERATIONS
    # ============================================================

    def put(self, collection: str, record: dict):
        """Insert a record, or replace the one with the same id."""
        self._write(
            f"""INSERT INTO {self._table(collection)} (id, data) VALUES (?, ?)
                ON CONFLICT(id) DO UPDATE SET data = excluded.data""",
            (self._record_id(record), json.dumps(record))
        )

    def add(self, collection: str, record: dict):
        """Insert a new record. Fails with StorageError if the id already exists."""
        self._write(
            f"INSERT INTO {self._table(collection)} (id, data) VALUES (?, ?)",
            (self._record_id(record), json.dumps(record))
        )

    def delete(self, collection: str, record_id: str) -> bool:
        """
        Delete a record.

        Returns:
            True if a record was deleted, False if there was none
        """
        return self._write(
            f"DELETE FROM {self._table(collection)} WHERE id = ?",
            (record_id,)
        ) > 0

    # ============================================================
    # HELPERS
    # ============================================================

    @staticmethod
    def _table(collection: str) -> str:
        # Collection names end up in SQL text, so only known ones are allowed
        if collection not in COLLECTIONS:
            raise ValueError(f"Unknown collection: {collection}")
        return collection

    @staticmethod
    def _record_id(record: dict) -> str:
        record_id = record.get('id')
        if not record_id:
            raise ValueError("Record has no id")
        return str(record_id)

    def _query(self, sql: str, params: tuple = ()) -> list:
        try:
            conn = get_connection(self.db_path)
            try:
                cursor = conn.cursor()
                cursor.execute(sql, params)
                return cursor.fetchall()
            finally:
                conn.close()
        except (sqlite3.Error, OSError) as e:
            logger.error("Read failed on %s: %s", self.db_path, e)
            raise StorageError(f"Could not read from the database: {e}") from e

    def _write(self, sql: str, params: tuple = ()) -> int:
        try:
            conn = get_connection(self.db_path)
            try:
                cursor = conn.cursor()
                cursor.execute(sql, params)
                conn.commit()
                return cursor.rowcount
            finally:
                conn.close()
        except (sqlite3.Error, OSError) as e:
            logger.error("Write failed on %s: %s", self.db_path, e)
            raise StorageError(f"Could not write to the database: {e}") from e

    def _execute_script(self, statements: list):
        try:
            conn = get_connection(self.db_path)
            try:
                cursor = conn.cursor()
                for statement in statements:
                    cursor.execute(statement)
                conn.commit()
            finally:
                conn.close()
        except (sqlite3.Error, OSError) as e:
            logger.error("Schema setup failed on %s: %s", self.db_path, e)
            raise StorageError(f"Could not initialize the database: {e}") from e
