# -*- coding: utf-8 -*-
"""
file_parser.py
Turn an uploaded inventory file into (headers, rows of str -> str).

- CSV / Excel: pandas, everything read as text, fully empty rows dropped
- PDF: pdfplumber text, then tab / multi-space table detection, then the LLM
- .pages: printable text salvaged from the archive, then the LLM
- images (camera captures): LLM vision
"""
from __future__ import annotations

import io
import os
import re
import mimetypes
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Any

import pandas as pd
import pdfplumber
import structlog

from common.config import MAX_ROWS, MAX_FILE_SIZE_BYTES, IMAGE_EXTENSIONS
from common.errors import ParseError
from services import llm_client
from services.ai_mapping import extract_table_from_text, extract_table_from_image

logger = structlog.get_logger(__name__)

_MULTI_SPACE = re.compile(r" {2,}")
_TABS = re.compile(r"\t+")


@dataclass
class ParseResult:
    headers: List[str]
    rows: List[Dict[str, str]]
    total_rows: int
    parse_warnings: List[str] = field(default_factory=list)


def parse_file(
    file_path: str,
    sheet_name: Optional[str] = None,
    max_rows: int = MAX_ROWS,
    max_bytes: int = MAX_FILE_SIZE_BYTES,
) -> ParseResult:
    size = os.path.getsize(file_path)
    if size > max_bytes:
        raise ParseError(f"File exceeds maximum allowed size of {round(max_bytes / (1024 * 1024))}MB")

    ext = os.path.splitext(file_path)[1].lower()
    if ext == ".csv":
        result = _parse_csv(file_path, max_rows)
    elif ext in (".xlsx", ".xls"):
        result = _parse_excel(file_path, max_rows, sheet_name)
    elif ext == ".pdf":
        result = _parse_pdf(file_path, max_rows)
    elif ext == ".pages":
        result = _parse_pages(file_path, max_rows)
    elif ext in IMAGE_EXTENSIONS:
        result = _parse_image(file_path, max_rows)
    else:
        raise ParseError(f"Unsupported file type: {ext or 'unknown'}")

    logger.info("file_parsed", ext=ext, headers=len(result.headers),
                total_rows=result.total_rows, warnings=len(result.parse_warnings))
    return result


# ---------- spreadsheets ----------

def _parse_csv(file_path: str, max_rows: int) -> ParseResult:
    warnings: List[str] = []

    def _too_long(bad: List[str]) -> List[str]:
        warnings.append(f"A row has {len(bad)} columns, more than the header; extra cells dropped")
        return bad

    with open(file_path, "rb") as f:
        text = f.read().decode("utf-8-sig", errors="replace")
    if not text.strip():
        raise ParseError("CSV file is empty or contains no headers")
    try:
        df = pd.read_csv(
            io.StringIO(text),
            header=None,
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
            engine="python",
            on_bad_lines=_too_long,
        )
    except (pd.errors.ParserError, pd.errors.EmptyDataError) as e:
        raise ParseError(f"CSV parsing failed: {e}")
    result = _frame_to_result(df, max_rows, "File")
    result.parse_warnings = warnings + result.parse_warnings
    return result


def _parse_excel(file_path: str, max_rows: int, sheet_name: Optional[str] = None) -> ParseResult:
    try:
        xls = pd.ExcelFile(file_path)
    except (ValueError, ImportError, OSError) as e:
        raise ParseError(f"Excel parsing failed: {e}")
    sheet = sheet_name or (xls.sheet_names[0] if xls.sheet_names else None)
    if sheet is None or sheet not in xls.sheet_names:
        raise ParseError(f'Sheet "{sheet}" not found. Available sheets: {", ".join(xls.sheet_names)}')
    df = pd.read_excel(xls, sheet_name=sheet, header=None, dtype=str)
    if df.empty:
        raise ParseError("Excel sheet is empty")
    return _frame_to_result(df, max_rows, "Sheet")


def _frame_to_result(df: pd.DataFrame, max_rows: int, noun: str) -> ParseResult:
    df = df.fillna("").astype(str).apply(lambda col: col.str.strip())
    df = df[(df != "").any(axis=1)]
    if df.empty:
        raise ParseError(f"{noun} is empty or contains no headers")

    headers = _dedupe_headers(list(df.iloc[0]))
    data = df.iloc[1:]
    warnings: List[str] = []
    if len(data) > max_rows:
        warnings.append(f"{noun} contains {len(data)} rows; truncated to {max_rows}")

    rows = [dict(zip(headers, values)) for values in data.head(max_rows).itertuples(index=False, name=None)]
    return ParseResult(headers=headers, rows=rows, total_rows=len(rows), parse_warnings=warnings)


def _dedupe_headers(raw: List[Any]) -> List[str]:
    seen: Dict[str, int] = {}
    out: List[str] = []
    for i, h in enumerate(raw):
        name = str(h).strip() or f"Column {i + 1}"
        if name in seen:
            seen[name] += 1
            name = f"{name} ({seen[name]})"
        else:
            seen[name] = 1
        out.append(name)
    return out


# ---------- documents ----------

def _parse_pdf(file_path: str, max_rows: int) -> ParseResult:
    text = ""
    try:
        with pdfplumber.open(file_path) as pdf:
            for page in pdf.pages:
                page_text = page.extract_text()
                if page_text:
                    text += page_text + "\n"
    except Exception as e:
        raise ParseError(f"PDF could not be read: {e}")
    if not text.strip():
        raise ParseError("PDF contains no extractable text")

    tabular = extract_tabular_text(text, max_rows)
    if tabular:
        tabular.parse_warnings.append("Extracted tabular data from PDF text")
        return tabular
    return _extract_with_ai(text, max_rows, ["PDF does not contain obvious tabular data; using AI extraction"])


def _parse_pages(file_path: str, max_rows: int) -> ParseResult:
    with open(file_path, "rb") as f:
        raw = f.read().decode("utf-8", errors="ignore")
    text = re.sub(r"[^\x20-\x7E\n\t]", " ", raw)
    text = re.sub(r"\s{3,}", "\n", text).strip()
    if len(text) < 10:
        raise ParseError("Pages file contains no extractable text content")
    return _extract_with_ai(text, max_rows, ["Pages file detected; using AI extraction (limited support)"])


def _parse_image(file_path: str, max_rows: int) -> ParseResult:
    if not llm_client.is_configured():
        raise ParseError("Photo uploads need AI extraction, which is not configured")
    mime = mimetypes.guess_type(file_path)[0] or "image/jpeg"
    with open(file_path, "rb") as f:
        data = f.read()
    return _ai_result(extract_table_from_image(data, mime, max_rows), max_rows,
                      ["Data extracted from photo using AI; please verify accuracy"])


def extract_tabular_text(text: str, max_rows: int) -> Optional[ParseResult]:
    """Tab or multi-space delimited lines -> table, or None when the text is not tabular."""
    lines = [l.strip() for l in text.split("\n") if l.strip()]
    if len(lines) < 2:
        return None

    if lines[0].count("\t") >= 2:
        delimiter = _TABS
    elif len(_MULTI_SPACE.findall(lines[0])) >= 2:
        delimiter = _MULTI_SPACE
    else:
        return None

    headers = [h.strip() for h in delimiter.split(lines[0])]
    if len(headers) < 2:
        return None
    data_lines = lines[1:]
    fitting = sum(1 for l in data_lines if abs(len(delimiter.split(l)) - len(headers)) <= 1)
    if fitting < len(data_lines) * 0.5:
        return None

    warnings: List[str] = []
    if len(data_lines) > max_rows:
        warnings.append(f"PDF contains {len(data_lines)} rows; truncated to {max_rows}")
    rows = []
    for idx, line in enumerate(data_lines[:max_rows]):
        cells = delimiter.split(line)
        if len(cells) != len(headers):
            warnings.append(f"Row {idx + 2} has {len(cells)} columns, expected {len(headers)}")
        rows.append({h: (cells[i].strip() if i < len(cells) else "") for i, h in enumerate(headers)})
    return ParseResult(headers=headers, rows=rows, total_rows=len(rows), parse_warnings=warnings)


def _extract_with_ai(text: str, max_rows: int, warnings: List[str]) -> ParseResult:
    if not llm_client.is_configured():
        raise ParseError("No table found and AI extraction is not configured")
    if len(text) > 15_000:
        warnings.append("Text content truncated to 15,000 characters for AI processing")
    return _ai_result(extract_table_from_text(text, max_rows), max_rows,
                      warnings + ["Data extracted using AI; please verify accuracy"])


def _ai_result(parsed: Dict[str, Any], max_rows: int, warnings: List[str]) -> ParseResult:
    headers = parsed.get("headers")
    rows = parsed.get("rows")
    if not isinstance(headers, list) or not isinstance(rows, list) or not headers:
        raise ParseError("Failed to extract structured data: AI response missing headers or rows")
    headers = _dedupe_headers(headers)
    out = []
    for r in rows[:max_rows]:
        if isinstance(r, dict):
            out.append({h: str(r.get(h, "") if r.get(h) is not None else "").strip() for h in headers})
    return ParseResult(headers=headers, rows=out, total_rows=len(out), parse_warnings=warnings)
