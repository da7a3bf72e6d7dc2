"""Persistencia SQLite para historial y configuracion."""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import pandas as pd

from kaikanakku.errors import StorageError
from kaikanakku.model import HistoryRecord, SortOrder
from kaikanakku.streams import ChangeSource

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS app_config (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS history (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    input_text TEXT NOT NULL,
    output_text TEXT NOT NULL,
    total_cm REAL NOT NULL,
    timestamp INTEGER NOT NULL,
    is_favorite INTEGER NOT NULL DEFAULT 0
);

CREATE INDEX IF NOT EXISTS idx_history_timestamp ON history(timestamp);
"""

_ORDER_BY: dict[SortOrder, str] = {
    SortOrder.BY_DATE: "timestamp DESC, id DESC",
    SortOrder.BY_SIZE_ASC: "total_cm ASC, id ASC",
    SortOrder.BY_SIZE_DESC: "total_cm DESC, id DESC",
}

HISTORY_COLUMNS = [
    "id",
    "input_text",
    "output_text",
    "total_cm",
    "timestamp",
    "is_favorite",
]


class SQLiteStore:
    """Repositorio SQLite: historial + tabla key/value de configuracion."""

    def __init__(self, db_path: Path) -> None:
        """Create store and ensure schema exists."""
        self._db_path = db_path
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self.history_changes = ChangeSource("history")
        self.config_changes = ChangeSource("app_config")
        self._init_schema()

    @property
    def db_path(self) -> Path:
        return self._db_path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, timeout=10)
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def _session(self) -> Iterator[sqlite3.Connection]:
        """Conexion por operacion; errores sqlite -> StorageError."""
        try:
            conn = self._connect()
        except sqlite3.Error as exc:
            raise StorageError(f"Cannot open {self._db_path}: {exc}") from exc
        try:
            with conn:
                yield conn
        except sqlite3.Error as exc:
            raise StorageError(str(exc)) from exc
        finally:
            conn.close()

    def _init_schema(self) -> None:
        with self._session() as conn:
            conn.executescript(SCHEMA_SQL)
            self._migrate(conn)

    def _migrate(self, conn: sqlite3.Connection) -> None:
        """Apply lightweight schema/data migrations."""
        cols = {row["name"] for row in conn.execute("PRAGMA table_info(history)")}
        if "is_favorite" not in cols:
            conn.execute(
                "ALTER TABLE history ADD COLUMN is_favorite INTEGER NOT NULL DEFAULT 0"
            )

        # Remove historical duplicates before enforcing uniqueness.
        conn.execute(
            """
            DELETE FROM history
            WHERE id NOT IN (
                SELECT MIN(id) FROM history
                GROUP BY input_text, output_text
            )
            """
        )
        conn.execute(
            """
            CREATE UNIQUE INDEX IF NOT EXISTS idx_history_input_output_unique
            ON history(input_text, output_text)
            """
        )

    # --- historial: escrituras ---

    def insert(self, record: HistoryRecord) -> int | None:
        """Inserta el registro salvo duplicado (input_text, output_text).

        Returns:
            New row id, or None when an identical entry already exists.
        """
        with self._session() as conn:
            cur = conn.execute(
                """
                INSERT OR IGNORE INTO history(
                    input_text, output_text, total_cm, timestamp, is_favorite
                ) VALUES (?, ?, ?, ?, ?)
                """,
                (
                    record.input_text,
                    record.output_text,
                    float(record.total_cm),
                    int(record.timestamp),
                    int(record.is_favorite),
                ),
            )
            inserted = cur.rowcount == 1
            row_id = int(cur.lastrowid) if inserted else None
        if not inserted:
            logger.info(
                "Skipped duplicate history entry %r -> %r",
                record.input_text,
                record.output_text,
            )
            return None
        self.history_changes.notify()
        return row_id

    def update(self, record: HistoryRecord) -> bool:
        """Actualiza un registro existente. Nunca re-crea uno borrado."""
        if record.id is None:
            raise ValueError("Cannot update a history record without id")
        with self._session() as conn:
            cur = conn.execute(
                """
                UPDATE history
                SET input_text = ?, output_text = ?, total_cm = ?,
                    timestamp = ?, is_favorite = ?
                WHERE id = ?
                """,
                (
                    record.input_text,
                    record.output_text,
                    float(record.total_cm),
                    int(record.timestamp),
                    int(record.is_favorite),
                    record.id,
                ),
            )
            changed = cur.rowcount > 0
        if changed:
            self.history_changes.notify()
        return changed

    def delete(self, record: HistoryRecord) -> bool:
        if record.id is None:
            return False
        return self._delete_where("id = ?", (record.id,)) > 0

    def delete_all(self) -> int:
        return self._delete_where("1 = 1", ())

    def delete_older_than(self, cutoff_millis: int) -> int:
        """Borra registros con timestamp < cutoff. Devuelve cantidad borrada."""
        return self._delete_where("timestamp < ?", (int(cutoff_millis),))

    def _delete_where(self, clause: str, params: tuple[object, ...]) -> int:
        with self._session() as conn:
            deleted = conn.execute(f"DELETE FROM history WHERE {clause}", params).rowcount
        if deleted:
            self.history_changes.notify()
        return deleted

    # --- historial: lecturas ---

    def get(self, record_id: int) -> HistoryRecord | None:
        rows = self._select("WHERE id = ?", (record_id,))
        return rows[0] if rows else None

    def history(self, sort_order: SortOrder = SortOrder.BY_DATE) -> list[HistoryRecord]:
        """Lista completa en el orden pedido."""
        order = _ORDER_BY[SortOrder(sort_order)]
        return self._select(f"ORDER BY {order}", ())

    def favorites(self) -> list[HistoryRecord]:
        return self._select(
            f"WHERE is_favorite = 1 ORDER BY {_ORDER_BY[SortOrder.BY_DATE]}", ()
        )

    def search(self, query: str) -> list[HistoryRecord]:
        """Substring search over input and output text, newest first."""
        pattern = f"%{_escape_like(query)}%"
        return self._select(
            f"""
            WHERE input_text LIKE ? ESCAPE '\\' OR output_text LIKE ? ESCAPE '\\'
            ORDER BY {_ORDER_BY[SortOrder.BY_DATE]}
            """,
            (pattern, pattern),
        )

    def recent(self, limit: int = 5) -> list[HistoryRecord]:
        return self._select(
            f"ORDER BY {_ORDER_BY[SortOrder.BY_DATE]} LIMIT ?", (int(limit),)
        )

    def count(self) -> int:
        with self._session() as conn:
            row = conn.execute("SELECT COUNT(*) AS n FROM history").fetchone()
        return int(row["n"])

    def history_frame(self) -> pd.DataFrame:
        """Carga el historial como DataFrame (orden por fecha)."""
        records = [_record_to_dict(r) for r in self.history(SortOrder.BY_DATE)]
        out = pd.DataFrame(records, columns=HISTORY_COLUMNS)
        if out.empty:
            return out
        out["timestamp"] = pd.to_datetime(out["timestamp"], unit="ms", utc=True)
        out["is_favorite"] = out["is_favorite"].astype(bool)
        return out

    def _select(self, tail: str, params: tuple[object, ...]) -> list[HistoryRecord]:
        with self._session() as conn:
            rows = conn.execute(
                f"""
                SELECT id, input_text, output_text, total_cm, timestamp, is_favorite
                FROM history
                {tail}
                """,
                params,
            ).fetchall()
        return [_row_to_record(row) for row in rows]

    # --- configuracion ---

    def load_config(self) -> dict[str, str]:
        """Devuelve todos los pares key/value guardados."""
        with self._session() as conn:
            rows = conn.execute("SELECT key, value FROM app_config").fetchall()
        return {row["key"]: row["value"] for row in rows}

    def save_config(self, values: dict[str, str]) -> None:
        """Guarda (upsert) pares key/value."""
        if not values:
            return
        with self._session() as conn:
            conn.executemany(
                """
                INSERT INTO app_config(key, value) VALUES(?, ?)
                ON CONFLICT(key) DO UPDATE SET value=excluded.value
                """,
                values.items(),
            )
        self.config_changes.notify()

    def clear_config(self, keys: list[str] | None = None) -> None:
        """Borra las claves indicadas, o todas si keys es None."""
        with self._session() as conn:
            if keys is None:
                conn.execute("DELETE FROM app_config")
            else:
                conn.executemany(
                    "DELETE FROM app_config WHERE key = ?", [(k,) for k in keys]
                )
        self.config_changes.notify()


def _row_to_record(row: sqlite3.Row) -> HistoryRecord:
    return HistoryRecord(
        id=int(row["id"]),
        input_text=row["input_text"],
        output_text=row["output_text"],
        total_cm=float(row["total_cm"]),
        timestamp=int(row["timestamp"]),
        is_favorite=bool(row["is_favorite"]),
    )


def _record_to_dict(record: HistoryRecord) -> dict[str, object]:
    return {
        "id": record.id,
        "input_text": record.input_text,
        "output_text": record.output_text,
        "total_cm": record.total_cm,
        "timestamp": record.timestamp,
        "is_favorite": record.is_favorite,
    }


def _escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")

