import json, sqlite3
from pathlib import Path
from typing import Optional, List, Tuple, Dict, Iterable

from .config import DB_PATH
from .models import Part, Listing, SyncStatus, utcnow_iso


def normalize_part_number(raw: str) -> str:
    """Strip dashes, spaces and leading zeros; upper-case."""
    return "".join(ch for ch in (raw or "") if ch not in "- \t").lstrip("0").upper()


class CatalogStore:
    """Parts master data and the listings created from imported rows."""

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
                CREATE TABLE IF NOT EXISTS parts (
                  id TEXT PRIMARY KEY,
                  part_number TEXT NOT NULL,
                  normalized TEXT NOT NULL,
                  search_text TEXT NOT NULL,
                  json TEXT NOT NULL
                );
                CREATE INDEX IF NOT EXISTS ix_parts_number ON parts(part_number);

                CREATE TABLE IF NOT EXISTS listings (
                  id TEXT PRIMARY KEY,
                  user_id TEXT NOT NULL,
                  session_id TEXT,
                  sync_status TEXT NOT NULL,
                  json TEXT NOT NULL,
                  created_at TEXT NOT NULL
                );
                CREATE INDEX IF NOT EXISTS ix_listings_sync ON listings(sync_status, created_at);
                '''
            )
            con.commit()
        finally:
            con.close()

    # ---- parts ----

    def upsert_parts(self, parts: Iterable[Part]) -> int:
        rows = []
        for p in parts:
            search = " ".join(
                x for x in [p.part_number, normalize_part_number(p.part_number), p.title, p.description] if x
            ).lower()
            rows.append((p.id, p.part_number, normalize_part_number(p.part_number), search,
                         json.dumps(p.model_dump(mode="json"), ensure_ascii=False)))
        con = self._connect()
        try:
            con.executemany(
                "REPLACE INTO parts(id, part_number, normalized, search_text, json) VALUES (?, ?, ?, ?, ?)",
                rows,
            )
            con.commit()
        finally:
            con.close()
        return len(rows)

    def list_parts(self) -> List[Part]:
        con = self._connect()
        try:
            cur = con.execute("SELECT json FROM parts ORDER BY part_number")
            return [Part(**json.loads(r[0])) for r in cur.fetchall()]
        finally:
            con.close()

    def get_part(self, part_id: str) -> Optional[Part]:
        con = self._connect()
        try:
            row = con.execute("SELECT json FROM parts WHERE id=?", (part_id,)).fetchone()
            return Part(**json.loads(row[0])) if row else None
        finally:
            con.close()

    def search_parts(self, q: str, limit: int = 5) -> List[Part]:
        q = (q or "").strip()
        if not q:
            return []
        like = f"%{q.lower()}%"
        norm = normalize_part_number(q)
        con = self._connect()
        try:
            cur = con.execute(
                '''
                SELECT json FROM parts
                WHERE search_text LIKE ? OR (? != '' AND normalized LIKE ?)
                ORDER BY CASE WHEN upper(part_number) = upper(?) THEN 0 ELSE 1 END, part_number
                LIMIT ?
                ''',
                (like, norm, f"%{norm}%", q, limit),
            )
            return [Part(**json.loads(r[0])) for r in cur.fetchall()]
        finally:
            con.close()

    # ---- listings ----

    def create_listing(self, listing: Listing) -> Listing:
        con = self._connect()
        try:
            con.execute(
                "INSERT INTO listings(id, user_id, session_id, sync_status, json, created_at) VALUES (?, ?, ?, ?, ?, ?)",
                (listing.id, listing.user_id, listing.session_id, listing.sync_status.value,
                 json.dumps(listing.model_dump(mode="json"), ensure_ascii=False), listing.created_at),
            )
            con.commit()
        finally:
            con.close()
        return listing

    def get_listing(self, listing_id: str) -> Optional[Listing]:
        con = self._connect()
        try:
            row = con.execute("SELECT json FROM listings WHERE id=?", (listing_id,)).fetchone()
            return Listing(**json.loads(row[0])) if row else None
        finally:
            con.close()

    def update_listing(self, listing: Listing, **fields) -> Listing:
        for k, v in fields.items():
            setattr(listing, k, v)
        listing.updated_at = utcnow_iso()
        con = self._connect()
        try:
            con.execute(
                "UPDATE listings SET sync_status=?, json=? WHERE id=?",
                (listing.sync_status.value, json.dumps(listing.model_dump(mode="json"), ensure_ascii=False), listing.id),
            )
            con.commit()
        finally:
            con.close()
        return listing

    def list_listings(
        self,
        sync_status: Optional[SyncStatus] = None,
        page: int = 1,
        limit: int = 20,
        user_id: Optional[str] = None,
        session_id: Optional[str] = None,
    ) -> Tuple[List[Listing], int]:
        clauses, params = [], []
        if sync_status is not None:
            clauses.append("sync_status=?")
            params.append(sync_status.value)
        if user_id:
            clauses.append("user_id=?")
            params.append(user_id)
        if session_id:
            clauses.append("session_id=?")
            params.append(session_id)
        where = ("WHERE " + " AND ".join(clauses)) if clauses else ""
        con = self._connect()
        try:
            total = con.execute(f"SELECT COUNT(*) FROM listings {where}", params).fetchone()[0]
            cur = con.execute(
                f"SELECT json FROM listings {where} ORDER BY created_at DESC, rowid DESC LIMIT ? OFFSET ?",
                params + [limit, (page - 1) * limit],
            )
            return [Listing(**json.loads(r[0])) for r in cur.fetchall()], total
        finally:
            con.close()

    def count_by_sync_status(self, user_id: Optional[str] = None) -> Dict[str, int]:
        where, params = ("WHERE user_id=?", [user_id]) if user_id else ("", [])
        con = self._connect()
        try:
            cur = con.execute(f"SELECT sync_status, COUNT(*) FROM listings {where} GROUP BY sync_status", params)
            counts = {s.value: 0 for s in SyncStatus}
            counts.update({status: n for status, n in cur.fetchall()})
            return counts
        finally:
            con.close()
