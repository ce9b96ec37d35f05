"""
MineSafe Store - SQLite JSON Document Store

Each record is one row of the ``documents`` table; field access goes
through SQLite's JSON1 functions so the query surface matches a simple
document database (equality/range/in filters, one sort key, offset/limit).
"""
import json
import logging
import sqlite3
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple, Union

from ..errors import StoreUnavailable
from .base import EntityStore, Filter, normalize_value, validate_filters, validate_kind

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS documents (
    seq INTEGER PRIMARY KEY AUTOINCREMENT,
    kind TEXT NOT NULL,
    id TEXT NOT NULL,
    data TEXT NOT NULL,
    UNIQUE (kind, id)
);

CREATE INDEX IF NOT EXISTS idx_documents_kind ON documents(kind);
"""


def _json_path(field: str) -> str:
    return "$." + field


def _encode(record: Dict) -> str:
    return json.dumps(normalize_value_tree(record), sort_keys=True)


def normalize_value_tree(value):
    """Recursively normalise datetimes/dates inside a record."""
    if isinstance(value, dict):
        return {k: normalize_value_tree(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [normalize_value_tree(v) for v in value]
    return normalize_value(value)


def _sql_param(value):
    # JSON booleans come back from json_extract as 1/0
    if isinstance(value, bool):
        return int(value)
    return value


def _where_clause(filters: Sequence[Filter]) -> Tuple[str, list]:
    sql = ""
    params = []
    for field, op, value in filters:
        expr = "json_extract(data, ?)"
        if value is None and op in ("==", "!="):
            sql += f" AND {expr} IS {'NOT ' if op == '!=' else ''}NULL"
            params.append(_json_path(field))
        elif op == "in":
            if not value:
                sql += " AND 0"
                continue
            placeholders = ", ".join("?" for _ in value)
            sql += f" AND {expr} IN ({placeholders})"
            params.append(_json_path(field))
            params.extend(_sql_param(v) for v in value)
        else:
            sql_op = "=" if op == "==" else op
            sql += f" AND {expr} {sql_op} ?"
            params.append(_json_path(field))
            params.append(_sql_param(value))
    return sql, params


class SQLiteEntityStore(EntityStore):
    """EntityStore backed by a single SQLite file."""

    def __init__(self, db_path: Union[str, Path] = "minesafe.db"):
        self.db_path = str(db_path)
        self.init_schema()

    def _get_conn(self):
        conn = sqlite3.connect(self.db_path, timeout=30, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    def _execute(self, fn):
        """Run fn(conn) inside one transaction; map driver errors to StoreUnavailable."""
        try:
            conn = self._get_conn()
        except sqlite3.Error as e:
            raise StoreUnavailable(f"Cannot open store {self.db_path}: {e}") from e
        try:
            with conn:
                return fn(conn)
        except sqlite3.Error as e:
            logger.error(f"[Store] SQLite error: {e}")
            raise StoreUnavailable(str(e)) from e
        finally:
            conn.close()

    def init_schema(self):
        """Create the documents table if it doesn't exist."""
        self._execute(lambda conn: conn.executescript(SCHEMA_SQL))

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, kind: str, entity_id: str) -> Optional[Dict]:
        validate_kind(kind)

        def _get(conn):
            return conn.execute(
                "SELECT data FROM documents WHERE kind = ? AND id = ?", (kind, entity_id)
            ).fetchone()

        row = self._execute(_get)
        return json.loads(row["data"]) if row else None

    def query(
        self,
        kind: str,
        filters: Sequence[Filter] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> List[Dict]:
        validate_kind(kind)
        checked = validate_filters(filters)
        if order_by is not None:
            validate_filters([(order_by, "==", None)])

        where, params = _where_clause(checked)
        sql = f"SELECT data FROM documents WHERE kind = ?{where}"
        params = [kind] + params

        direction = "DESC" if descending else "ASC"
        if order_by:
            sql += f" ORDER BY json_extract(data, ?) {direction}, seq {direction}"
            params.append(_json_path(order_by))
        else:
            sql += f" ORDER BY seq {direction}"

        if limit is not None or offset:
            sql += " LIMIT ? OFFSET ?"
            params.extend([limit if limit is not None else -1, offset or 0])

        rows = self._execute(lambda conn: conn.execute(sql, params).fetchall())
        return [json.loads(r["data"]) for r in rows]

    def count(self, kind: str, filters: Sequence[Filter] = ()) -> int:
        validate_kind(kind)
        where, params = _where_clause(validate_filters(filters))
        sql = f"SELECT COUNT(*) FROM documents WHERE kind = ?{where}"
        row = self._execute(lambda conn: conn.execute(sql, [kind] + params).fetchone())
        return row[0]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def set(self, kind: str, entity_id: str, record: Dict) -> None:
        validate_kind(kind)
        data = dict(record, id=entity_id)
        self._execute(lambda conn: conn.execute(
            """INSERT INTO documents (kind, id, data) VALUES (?, ?, ?)
               ON CONFLICT(kind, id) DO UPDATE SET data = excluded.data""",
            (kind, entity_id, _encode(data)),
        ))

    def update(self, kind: str, entity_id: str, fields: Dict) -> bool:
        validate_kind(kind)
        return self._execute(lambda conn: self._merge(conn, kind, entity_id, fields))

    def _merge(self, conn, kind: str, entity_id: str, fields: Dict) -> bool:
        row = conn.execute(
            "SELECT data FROM documents WHERE kind = ? AND id = ?", (kind, entity_id)
        ).fetchone()
        if not row:
            return False
        data = json.loads(row["data"])
        data.update(fields)
        data["id"] = entity_id
        conn.execute(
            "UPDATE documents SET data = ? WHERE kind = ? AND id = ?",
            (_encode(data), kind, entity_id),
        )
        return True

    def batch_update(self, kind: str, updates: Sequence[Tuple[str, Dict]]) -> int:
        """Apply all updates in one transaction; all or nothing."""
        validate_kind(kind)

        def _batch(conn):
            return sum(1 for entity_id, fields in updates if self._merge(conn, kind, entity_id, fields))

        return self._execute(_batch)

    def delete(self, kind: str, entity_id: str) -> bool:
        validate_kind(kind)
        deleted = self._execute(lambda conn: conn.execute(
            "DELETE FROM documents WHERE kind = ? AND id = ?", (kind, entity_id)
        ).rowcount)
        return deleted > 0

    def increment(
        self, kind: str, entity_id: str, deltas: Dict[str, int], defaults: Optional[Dict] = None
    ) -> None:
        """Single UPDATE with json_set so concurrent increments never clobber each other."""
        validate_kind(kind)
        if not deltas:
            return
        validate_filters([(field, "==", None) for field in deltas])

        initial = dict(defaults or {}, id=entity_id)
        set_args = []
        params = []
        for field, delta in deltas.items():
            set_args.append("?, COALESCE(json_extract(data, ?), 0) + ?")
            params.extend([_json_path(field), _json_path(field), delta])

        def _increment(conn):
            conn.execute(
                "INSERT OR IGNORE INTO documents (kind, id, data) VALUES (?, ?, ?)",
                (kind, entity_id, _encode(initial)),
            )
            conn.execute(
                f"UPDATE documents SET data = json_set(data, {', '.join(set_args)}) "
                f"WHERE kind = ? AND id = ?",
                params + [kind, entity_id],
            )

        self._execute(_increment)
