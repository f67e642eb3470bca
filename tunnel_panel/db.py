from __future__ import annotations

import json
import os
import sqlite3
import time
from typing import Any, Dict, List, Optional

from .utils.normalize import parse_order_ids

DB_PATH = os.getenv("TUNNEL_PANEL_ORDER_DB", "/etc/tunnel-panel/order.db")


def now() -> int:
    return int(time.time())


def _encode_ids(ids: List[int]) -> str:
    return json.dumps([int(x) for x in ids])


class SqliteOrderStore:
    """Order cache persisted in SQLite: one JSON id list per scope key.

    Each ``set`` replaces a single row, so readers see either the previous
    list or the new one.
    """

    def __init__(self, path: Optional[str] = None):
        self.path = path or DB_PATH
        self._ready = False

    def _connect(self) -> sqlite3.Connection:
        d = os.path.dirname(self.path)
        if d:
            os.makedirs(d, exist_ok=True)
        conn = sqlite3.connect(self.path)
        conn.row_factory = sqlite3.Row
        return conn

    def init_db(self) -> None:
        """Create tables if they don't exist.

        This function is idempotent and safe to call frequently.
        """
        if self._ready:
            return
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS order_cache (
                  scope TEXT PRIMARY KEY,
                  ids TEXT NOT NULL,
                  updated_at INTEGER NOT NULL
                );
                """
            )
            conn.commit()
        self._ready = True

    def get(self, scope: str) -> Optional[List[int]]:
        self.init_db()
        with self._connect() as conn:
            row = conn.execute("SELECT ids FROM order_cache WHERE scope=?", (str(scope),)).fetchone()
        if not row:
            return None
        return parse_order_ids(row["ids"])

    def set(self, scope: str, ids: List[int]) -> None:
        self.init_db()
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO order_cache(scope, ids, updated_at)
                VALUES(?,?,?)
                ON CONFLICT(scope) DO UPDATE SET
                  ids=excluded.ids,
                  updated_at=excluded.updated_at
                """,
                (str(scope), _encode_ids(ids), now()),
            )
            conn.commit()

    def delete(self, scope: str) -> None:
        self.init_db()
        with self._connect() as conn:
            conn.execute("DELETE FROM order_cache WHERE scope=?", (str(scope),))
            conn.commit()

    def list_scopes(self) -> Dict[str, Any]:
        self.init_db()
        with self._connect() as conn:
            rows = conn.execute("SELECT scope, updated_at FROM order_cache ORDER BY scope").fetchall()
        return {str(r["scope"]): int(r["updated_at"]) for r in rows}
