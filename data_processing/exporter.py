# -*- coding: utf-8 -*-
"""
exporter.py
- Writes a session's reviewed rows to an Excel workbook under OUTPUT_DIR
- Returns {path, filename, url, mime} so the client can offer a download link
- Two sheets: "Rows" (one line per row) and "Summary" (counts per status)
"""
from __future__ import annotations
import os, time
from pathlib import Path
from typing import Dict, List, Any

import pandas as pd

from common.config import OUTPUT_DIR
from common.models import UploadSession, UploadSessionRow, TARGET_FIELDS, RowStatus

MIME_XLSX = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _output_dir() -> str:
    Path(OUTPUT_DIR).mkdir(parents=True, exist_ok=True)
    return str(OUTPUT_DIR)


def rows_frame(rows: List[UploadSessionRow]) -> pd.DataFrame:
    records = []
    for r in rows:
        mapped = r.mapped_data or {}
        rec: Dict[str, Any] = {
            "Row": r.row_number,
            "Status": r.status.value,
            "Confidence": r.match_confidence,
            "Matched Part": r.matched_part_id or "",
            "Listing": r.listing_id or "",
            "Errors": "; ".join(r.errors),
        }
        for f in TARGET_FIELDS:
            rec[f] = mapped.get(f, "")
        records.append(rec)
    columns = ["Row", "Status", "Confidence", "Matched Part", "Listing", "Errors"] + TARGET_FIELDS
    return pd.DataFrame(records, columns=columns)


def save_session_excel(session: UploadSession, rows: List[UploadSessionRow]) -> Dict[str, Any]:
    out_dir = _output_dir()
    ts = time.strftime("%Y%m%d_%H%M%S")
    stem = os.path.splitext(session.original_name)[0].replace(" ", "_")[:40] or "upload"
    filename = f"{stem}_{session.id[:8]}_{ts}.xlsx"
    path = os.path.join(out_dir, filename)

    summary = pd.DataFrame(
        [(s.value, sum(1 for r in rows if r.status == s)) for s in RowStatus]
        + [("imported", sum(1 for r in rows if r.listing_id))],
        columns=["Status", "Rows"],
    )
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        rows_frame(rows).to_excel(writer, sheet_name="Rows", index=False)
        summary.to_excel(writer, sheet_name="Summary", index=False)

    return {
        "path": path,
        "filename": filename,
        "url": f"/static/{filename}",
        "mime": MIME_XLSX,
    }
