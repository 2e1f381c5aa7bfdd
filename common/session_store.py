import json, sqlite3
from pathlib import Path
from typing import Optional, List, Tuple, Iterable, Dict

from .config import DB_PATH
from .models import UploadSession, UploadSessionRow, RowStatus, utcnow_iso


class SessionStore:
    """Upload sessions and their rows, one JSON document per record."""

    def __init__(self, db_path: Path = DB_PATH):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init()

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self.db_path)

    def _init(self):
        con = self._connect()
        try:
            con.executescript(
                '''
                CREATE TABLE IF NOT EXISTS upload_sessions (
                  id TEXT PRIMARY KEY,
                  user_id TEXT NOT NULL,
                  json TEXT NOT NULL,
                  created_at TEXT NOT NULL,
                  updated_at TEXT NOT NULL
                );
                CREATE INDEX IF NOT EXISTS ix_sessions_user ON upload_sessions(user_id, created_at);

                CREATE TABLE IF NOT EXISTS upload_rows (
                  id TEXT PRIMARY KEY,
                  session_id TEXT NOT NULL,
                  row_number INTEGER NOT NULL,
                  status TEXT NOT NULL,
                  json TEXT NOT NULL
                );
                CREATE INDEX IF NOT EXISTS ix_rows_session ON upload_rows(session_id, status, row_number);
                '''
            )
            con.commit()
        finally:
            con.close()

    # ---- sessions ----

    def create_session(self, session: UploadSession) -> UploadSession:
        con = self._connect()
        try:
            con.execute(
                "INSERT INTO upload_sessions(id, user_id, json, created_at, updated_at) VALUES (?, ?, ?, ?, ?)",
                (session.id, session.user_id, _dump(session), session.created_at, session.updated_at),
            )
            con.commit()
        finally:
            con.close()
        return session

    def get_session(self, session_id: str) -> Optional[UploadSession]:
        con = self._connect()
        try:
            row = con.execute("SELECT json FROM upload_sessions WHERE id=?", (session_id,)).fetchone()
            if not row:
                return None
            return UploadSession(**json.loads(row[0]))
        finally:
            con.close()

    def update_session(self, session: UploadSession, **fields) -> UploadSession:
        for k, v in fields.items():
            setattr(session, k, v)
        session.updated_at = utcnow_iso()
        con = self._connect()
        try:
            con.execute(
                "UPDATE upload_sessions SET json=?, updated_at=? WHERE id=?",
                (_dump(session), session.updated_at, session.id),
            )
            con.commit()
        finally:
            con.close()
        return session

    def list_sessions(self, user_id: str, page: int = 1, limit: int = 10) -> Tuple[List[UploadSession], int]:
        con = self._connect()
        try:
            total = con.execute(
                "SELECT COUNT(*) FROM upload_sessions WHERE user_id=?", (user_id,)
            ).fetchone()[0]
            cur = con.execute(
                "SELECT json FROM upload_sessions WHERE user_id=? ORDER BY created_at DESC, rowid DESC LIMIT ? OFFSET ?",
                (user_id, limit, (page - 1) * limit),
            )
            return [UploadSession(**json.loads(r[0])) for r in cur.fetchall()], total
        finally:
            con.close()

    # ---- rows ----

    def replace_rows(self, session_id: str, rows: Iterable[UploadSessionRow]) -> int:
        con = self._connect()
        try:
            con.execute("DELETE FROM upload_rows WHERE session_id=?", (session_id,))
            cur = con.executemany(
                "INSERT INTO upload_rows(id, session_id, row_number, status, json) VALUES (?, ?, ?, ?, ?)",
                ((r.id, session_id, r.row_number, r.status.value, _dump(r)) for r in rows),
            )
            con.commit()
            return cur.rowcount
        finally:
            con.close()

    def get_row(self, session_id: str, row_id: str) -> Optional[UploadSessionRow]:
        con = self._connect()
        try:
            row = con.execute(
                "SELECT json FROM upload_rows WHERE id=? AND session_id=?", (row_id, session_id)
            ).fetchone()
            return UploadSessionRow(**json.loads(row[0])) if row else None
        finally:
            con.close()

    def update_row(self, row: UploadSessionRow) -> UploadSessionRow:
        con = self._connect()
        try:
            con.execute(
                "UPDATE upload_rows SET status=?, json=? WHERE id=?",
                (row.status.value, _dump(row), row.id),
            )
            con.commit()
        finally:
            con.close()
        return row

    def list_rows(
        self,
        session_id: str,
        page: int = 1,
        limit: int = 25,
        status: Optional[RowStatus] = None,
    ) -> Tuple[List[UploadSessionRow], int]:
        where, params = "session_id=?", [session_id]
        if status is not None:
            where += " AND status=?"
            params.append(status.value)
        con = self._connect()
        try:
            total = con.execute(f"SELECT COUNT(*) FROM upload_rows WHERE {where}", params).fetchone()[0]
            cur = con.execute(
                f"SELECT json FROM upload_rows WHERE {where} ORDER BY row_number LIMIT ? OFFSET ?",
                params + [limit, (page - 1) * limit],
            )
            return [UploadSessionRow(**json.loads(r[0])) for r in cur.fetchall()], total
        finally:
            con.close()

    def iter_rows(self, session_id: str, statuses: Optional[Iterable[RowStatus]] = None) -> List[UploadSessionRow]:
        where, params = "session_id=?", [session_id]
        if statuses:
            values = [s.value for s in statuses]
            where += f" AND status IN ({','.join('?' * len(values))})"
            params.extend(values)
        con = self._connect()
        try:
            cur = con.execute(f"SELECT json FROM upload_rows WHERE {where} ORDER BY row_number", params)
            return [UploadSessionRow(**json.loads(r[0])) for r in cur.fetchall()]
        finally:
            con.close()

    def count_rows_by_status(self, session_id: str) -> Dict[str, int]:
        con = self._connect()
        try:
            cur = con.execute(
                "SELECT status, COUNT(*) FROM upload_rows WHERE session_id=? GROUP BY status", (session_id,)
            )
            return {status: n for status, n in cur.fetchall()}
        finally:
            con.close()


def _dump(model) -> str:
    return json.dumps(model.model_dump(mode="json"), ensure_ascii=False)
