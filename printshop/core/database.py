"""
Document storage for Printshop Orders.
Keeps schemaless JSON documents grouped in collections on top of SQLite.
"""

import json
import re
import sqlite3
import logging
import uuid
from pathlib import Path
from typing import Optional, List, Dict, Any, Tuple, Iterator
from contextlib import contextmanager

logger = logging.getLogger(__name__)

# Table and collection names
DOCUMENTS_TABLE = "documents"
ORDERS_COLLECTION = "orders"
REFRESH_QUEUE_COLLECTION = "refresh_queue"

_FIELD_PATTERN = re.compile(r'^[A-Za-z_][A-Za-z0-9_]*$')
_OPERATORS = {
    '==': '=',
    '!=': '!=',
    '<': '<',
    '<=': '<=',
    '>': '>',
    '>=': '>=',
}

Filter = Tuple[str, str, Any]
Ordering = Tuple[str, str]


class _DeleteField:
    """Marker removing a field in update()."""

    def __repr__(self) -> str:
        return "DELETE_FIELD"


DELETE_FIELD = _DeleteField()


def _field_expr(field: str) -> str:
    """SQL expression reading a top-level document field."""
    if not _FIELD_PATTERN.match(field):
        raise ValueError(f"Invalid field name: {field!r}")
    return f"json_extract(data, '$.{field}')"


def _find_null(value: Any, path: str) -> Optional[str]:
    """Return the path of the first None value inside a document, if any."""
    if value is None:
        return path
    if isinstance(value, dict):
        for key, item in value.items():
            found = _find_null(item, f"{path}.{key}" if path else key)
            if found:
                return found
    elif isinstance(value, (list, tuple)):
        for index, item in enumerate(value):
            found = _find_null(item, f"{path}[{index}]")
            if found:
                return found
    return None


class WriteBatch:
    """Collects writes and applies them in a single transaction."""

    def __init__(self, store: 'DocumentStore'):
        self._store = store
        self._operations: List[Tuple[str, str, str, Optional[Dict[str, Any]], bool]] = []

    def set(self, collection: str, doc_id: str, data: Dict[str, Any], merge: bool = False) -> None:
        self._store._check_values(data)
        self._operations.append(('set', collection, doc_id, dict(data), merge))

    def update(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> None:
        self._store._check_values(fields)
        self._operations.append(('update', collection, doc_id, dict(fields), False))

    def delete(self, collection: str, doc_id: str) -> None:
        self._operations.append(('delete', collection, doc_id, None, False))

    def __len__(self) -> int:
        return len(self._operations)

    def commit(self) -> None:
        """Apply every collected write, or none of them."""
        if not self._operations:
            return
        with self._store._connection(write=True) as conn:
            cursor = conn.cursor()
            for op, collection, doc_id, data, merge in self._operations:
                if op == 'set':
                    self._store._apply_set(cursor, collection, doc_id, data, merge)
                elif op == 'update':
                    self._store._apply_update(cursor, collection, doc_id, data)
                else:
                    self._store._apply_delete(cursor, collection, doc_id)
        logger.debug(f"Committed batch of {len(self._operations)} writes")
        self._operations = []


class DocumentStore:
    """
    SQLite-backed key/document store.

    Documents live in a single table keyed by (collection, id) with the body
    stored as JSON. Queries support equality and range filters on top-level
    fields, ordering, limit/offset pagination and counting. Single document
    writes are atomic; ``batch()`` groups several writes into one
    transaction.
    """

    def __init__(self, db_path: Path, reject_null_values: bool = True):
        self.db_path = db_path
        self.reject_null_values = reject_null_values
        self._ensure_tables()

    @contextmanager
    def _connection(self, write: bool = False):
        """
        Context manager for database connections.
        With write=True the whole block runs in one IMMEDIATE transaction, so
        documents read inside it cannot change before they are written back.
        """
        conn = sqlite3.connect(self.db_path, timeout=30, isolation_level=None)
        conn.row_factory = sqlite3.Row
        try:
            if write:
                conn.execute("BEGIN IMMEDIATE")
            yield conn
            if write:
                conn.execute("COMMIT")
        except Exception:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise
        finally:
            conn.close()

    def _ensure_tables(self) -> None:
        """Create tables if they don't exist."""
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        with self._connection(write=True) as conn:
            cursor = conn.cursor()

            cursor.execute(f"""
                CREATE TABLE IF NOT EXISTS {DOCUMENTS_TABLE} (
                    collection TEXT NOT NULL,
                    id TEXT NOT NULL,
                    data TEXT NOT NULL,
                    PRIMARY KEY (collection, id)
                )
            """)

            # Orders are filtered by SKU and listed by last sync
            cursor.execute(f"""
                CREATE INDEX IF NOT EXISTS idx_documents_sku
                ON {DOCUMENTS_TABLE}(collection, json_extract(data, '$.sku'))
            """)
            cursor.execute(f"""
                CREATE INDEX IF NOT EXISTS idx_documents_synced
                ON {DOCUMENTS_TABLE}(collection, json_extract(data, '$.syncedAt'))
            """)
            cursor.execute(f"""
                CREATE INDEX IF NOT EXISTS idx_documents_created
                ON {DOCUMENTS_TABLE}(collection, json_extract(data, '$.createdAt'))
            """)

            logger.info(f"Document store initialized at {self.db_path}")

    def _check_values(self, data: Dict[str, Any]) -> None:
        """Reject None values when the store is configured to do so."""
        if not self.reject_null_values:
            return
        found = _find_null(data, '')
        if found:
            raise ValueError(f"Null value not allowed for field '{found}'")

    # ==================== Low-level operations ====================

    @staticmethod
    def _read(cursor: sqlite3.Cursor, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        cursor.execute(
            f"SELECT id, data FROM {DOCUMENTS_TABLE} WHERE collection = ? AND id = ?",
            (collection, doc_id)
        )
        row = cursor.fetchone()
        return _row_to_document(row) if row else None

    @staticmethod
    def _write(cursor: sqlite3.Cursor, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        cursor.execute(f"""
            INSERT INTO {DOCUMENTS_TABLE} (collection, id, data)
            VALUES (?, ?, ?)
            ON CONFLICT(collection, id) DO UPDATE SET data = excluded.data
        """, (collection, doc_id, json.dumps(data, ensure_ascii=False)))

    def _apply_set(
        self,
        cursor: sqlite3.Cursor,
        collection: str,
        doc_id: str,
        data: Dict[str, Any],
        merge: bool
    ) -> bool:
        existing = self._read(cursor, collection, doc_id)
        if merge and existing is not None:
            existing.update(data)
            data = existing
        self._write(cursor, collection, doc_id, data)
        return existing is None

    def _apply_update(
        self,
        cursor: sqlite3.Cursor,
        collection: str,
        doc_id: str,
        fields: Dict[str, Any]
    ) -> None:
        existing = self._read(cursor, collection, doc_id)
        if existing is None:
            raise KeyError(f"No document '{doc_id}' in collection '{collection}'")
        for field, value in fields.items():
            if value is DELETE_FIELD:
                existing.pop(field, None)
            else:
                existing[field] = value
        self._write(cursor, collection, doc_id, existing)

    @staticmethod
    def _apply_delete(cursor: sqlite3.Cursor, collection: str, doc_id: str) -> bool:
        cursor.execute(
            f"DELETE FROM {DOCUMENTS_TABLE} WHERE collection = ? AND id = ?",
            (collection, doc_id)
        )
        return cursor.rowcount > 0

    # ==================== Document Operations ====================

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        """Get a single document, or None if it doesn't exist."""
        with self._connection() as conn:
            return self._read(conn.cursor(), collection, str(doc_id))

    def create(self, collection: str, data: Dict[str, Any], doc_id: Optional[str] = None) -> str:
        """
        Create a new document.
        Generates an id when none is given. Raises ValueError if the id is taken.
        """
        self._check_values(data)
        doc_id = str(doc_id) if doc_id is not None else uuid.uuid4().hex
        with self._connection(write=True) as conn:
            cursor = conn.cursor()
            try:
                cursor.execute(f"""
                    INSERT INTO {DOCUMENTS_TABLE} (collection, id, data)
                    VALUES (?, ?, ?)
                """, (collection, doc_id, json.dumps(data, ensure_ascii=False)))
            except sqlite3.IntegrityError:
                raise ValueError(f"Document '{doc_id}' already exists in '{collection}'")
        return doc_id

    def set(self, collection: str, doc_id: str, data: Dict[str, Any], merge: bool = False) -> bool:
        """
        Write a document.
        With merge=True top-level fields are merged into the existing document
        instead of replacing it. Returns True if the document was created.
        """
        self._check_values(data)
        with self._connection(write=True) as conn:
            return self._apply_set(conn.cursor(), collection, str(doc_id), dict(data), merge)

    def update(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> None:
        """
        Update the given top-level fields; DELETE_FIELD as a value removes the
        field. Raises KeyError if the document is missing.
        """
        self._check_values(fields)
        with self._connection(write=True) as conn:
            self._apply_update(conn.cursor(), collection, str(doc_id), dict(fields))

    def delete(self, collection: str, doc_id: str) -> bool:
        """Delete a document. Returns True if it existed."""
        with self._connection(write=True) as conn:
            return self._apply_delete(conn.cursor(), collection, str(doc_id))

    @contextmanager
    def batch(self) -> Iterator[WriteBatch]:
        """Group writes into one all-or-nothing transaction, committed on exit."""
        batch = WriteBatch(self)
        yield batch
        batch.commit()

    # ==================== Queries ====================

    @staticmethod
    def _build_where(collection: str, where: Optional[List[Filter]]) -> Tuple[str, List[Any]]:
        clauses = ["collection = ?"]
        params: List[Any] = [collection]
        for field, op, value in where or []:
            if op not in _OPERATORS:
                raise ValueError(f"Unsupported operator: {op!r}")
            clauses.append(f"{_field_expr(field)} {_OPERATORS[op]} ?")
            params.append(value)
        return " WHERE " + " AND ".join(clauses), params

    def query(
        self,
        collection: str,
        where: Optional[List[Filter]] = None,
        order_by: Optional[List[Ordering]] = None,
        limit: Optional[int] = None,
        offset: int = 0
    ) -> List[Dict[str, Any]]:
        """
        Query documents in a collection.

        Args:
            collection: Collection name
            where: List of (field, operator, value) filters, all must match
            order_by: List of (field, 'asc'|'desc'); insertion order breaks ties
            limit: Max number of documents to return
            offset: Pagination offset
        """
        sql, params = self._build_where(collection, where)
        query = f"SELECT id, data FROM {DOCUMENTS_TABLE}" + sql

        orderings = []
        for field, direction in order_by or []:
            direction = direction.upper()
            if direction not in ('ASC', 'DESC'):
                raise ValueError(f"Invalid sort direction: {direction!r}")
            orderings.append(f"{_field_expr(field)} {direction}")
        orderings.append("rowid ASC")
        query += " ORDER BY " + ", ".join(orderings)

        if limit is not None or offset:
            query += " LIMIT ? OFFSET ?"
            params.extend([limit if limit is not None else -1, offset])

        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return [_row_to_document(row) for row in cursor.fetchall()]

    def count(self, collection: str, where: Optional[List[Filter]] = None) -> int:
        """Count documents matching the filters."""
        sql, params = self._build_where(collection, where)
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(f"SELECT COUNT(*) as count FROM {DOCUMENTS_TABLE}" + sql, params)
            return cursor.fetchone()['count']


def _row_to_document(row: sqlite3.Row) -> Dict[str, Any]:
    document = json.loads(row['data'])
    document.setdefault('id', row['id'])
    return document


# Global database instance
_db_instance: Optional[DocumentStore] = None


def get_database(db_path: Optional[Path] = None) -> DocumentStore:
    """Get the global document store instance."""
    global _db_instance
    if _db_instance is None:
        reject_null_values = True
        if db_path is None:
            from .config import get_config
            config = get_config()
            db_path = config.db_path
            reject_null_values = config.get_bool('general', 'reject_null_values', default=True)
        _db_instance = DocumentStore(db_path, reject_null_values=reject_null_values)
    return _db_instance
