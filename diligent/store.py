# diligent/store.py

import sqlite3
from datetime import datetime
from typing import List, Optional

from diligent.errors import StoreError

DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class ReportStore:
    """
    Append-only log of finished reports, keyed by run timestamp.
    One row per run: (id, date, content) with content the full report JSON.
    """

    def __init__(self, db_path: str):
        self.db_path = db_path
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self.db_path)

    def _init_db(self):
        try:
            conn = self._connect()
            cur = conn.cursor()
            cur.execute("""
                CREATE TABLE IF NOT EXISTS logs (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    date TEXT NOT NULL,
                    content TEXT NOT NULL
                )
            """)
            conn.commit()
            conn.close()
        except sqlite3.Error as e:
            raise StoreError(f"cannot initialize report store at {self.db_path}: {e}") from e

    def create_log(self, date: datetime, content: str) -> int:
        conn = self._connect()
        try:
            cur = conn.cursor()
            cur.execute(
                "INSERT INTO logs (date, content) VALUES (?, ?)",
                (date.strftime(DATE_FORMAT), content),
            )
            conn.commit()
            return cur.lastrowid
        finally:
            conn.close()

    def recent(self, limit: int = 10) -> List[dict]:
        conn = self._connect()
        try:
            cur = conn.cursor()
            cur.execute(
                "SELECT id, date, length(content) FROM logs ORDER BY id DESC LIMIT ?",
                (limit,),
            )
            rows = cur.fetchall()
        finally:
            conn.close()

        return [{"id": i, "date": d, "size": n} for i, d, n in rows]

    def get(self, log_id: int) -> Optional[dict]:
        conn = self._connect()
        try:
            cur = conn.cursor()
            cur.execute("SELECT id, date, content FROM logs WHERE id = ?", (log_id,))
            row = cur.fetchone()
        finally:
            conn.close()

        if row is None:
            return None
        return {"id": row[0], "date": row[1], "content": row[2]}
