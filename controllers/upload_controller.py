from fastapi import APIRouter, UploadFile, File, Form, Header, Query, Body
from typing import Optional, List, Dict, Any
import os, shutil, uuid, mimetypes

import structlog

from common.config import (
    UPLOAD_DIR, MAX_FILE_SIZE_BYTES, MAX_FILE_SIZE_MB, SAMPLE_ROW_COUNT, DEFAULT_USER,
    DOCUMENT_EXTENSIONS, IMAGE_EXTENSIONS,
)
from common.errors import (
    AppError, BadRequestError, ForbiddenError, InvalidStateError, NotFoundError, ParseError,
)
from common.models import (
    UploadSession, UploadStatus, RowStatus, SaveMappingIn, ImportIn, Pagination,
)
from common.session_store import SessionStore
from common.catalog_store import CatalogStore
from data_processing.file_parser import parse_file
from data_processing.column_mapper import map_columns
from data_processing.validators import validate_mappings
from data_processing.smart_matcher import SmartMatcher
from data_processing.row_builder import build_row, apply_edit
from data_processing.importer import import_rows
from data_processing.exporter import save_session_excel

router = APIRouter(prefix="/upload")
logger = structlog.get_logger(__name__)

ALLOWED_EXTENSIONS = DOCUMENT_EXTENSIONS + IMAGE_EXTENSIONS
MAPPABLE = (UploadStatus.PARSED, UploadStatus.MAPPED, UploadStatus.MATCHED, UploadStatus.MATCH_FAILED)
MATCHABLE = (UploadStatus.MAPPED, UploadStatus.MATCH_FAILED)
IMPORTABLE = (UploadStatus.MATCHED, UploadStatus.IMPORT_FAILED)
EDITABLE = (UploadStatus.MATCHED, UploadStatus.IMPORT_FAILED, UploadStatus.IMPORTED)

os.makedirs(UPLOAD_DIR, exist_ok=True)

store = SessionStore()
catalog = CatalogStore()


def _ok(code: str, **data) -> Dict[str, Any]:
    return {"ok": True, "code": code, "data": data}


def _load(session_id: str, user_id: str) -> UploadSession:
    session = store.get_session(session_id)
    if not session:
        raise NotFoundError("session", session_id)
    if session.user_id != user_id:
        raise ForbiddenError()
    return session


def _require(session: UploadSession, action: str, allowed) -> None:
    if session.status not in allowed:
        raise InvalidStateError(action, session.status.value)


def _file_path(session: UploadSession) -> str:
    return os.path.join(UPLOAD_DIR, session.filename)


def _refresh_counts(session: UploadSession) -> UploadSession:
    """processedRows follows the pipeline phase: non-error rows before import, imported non-error rows after."""
    counts = store.count_rows_by_status(session.id)
    errors = counts.get(RowStatus.ERROR.value, 0)
    if session.status in (UploadStatus.IMPORTED, UploadStatus.IMPORT_FAILED):
        processed = sum(1 for r in store.iter_rows(session.id)
                        if r.listing_id and r.status != RowStatus.ERROR)
    else:
        processed = sum(counts.values()) - errors
    return store.update_session(session, processed_rows=processed, error_rows=errors)


# ===========================
# INTAKE + PARSE
# ===========================

@router.post("/session")
async def create_session(
    file: UploadFile = File(...),
    x_user_id: str = Header(DEFAULT_USER, alias="X-User-Id"),
):
    original_name = file.filename or "upload"
    ext = os.path.splitext(original_name)[1].lower()
    if ext not in ALLOWED_EXTENSIONS:
        raise BadRequestError(
            f"Unsupported file type: {ext or 'unknown'}. Allowed: {', '.join(ALLOWED_EXTENSIONS)}",
            code="UNSUPPORTED_FILE_TYPE",
        )

    session_id = str(uuid.uuid4())
    filename = f"{session_id}{ext}"
    saved_path = os.path.join(UPLOAD_DIR, filename)
    with open(saved_path, "wb") as f:
        shutil.copyfileobj(file.file, f)

    size = os.path.getsize(saved_path)
    if size > MAX_FILE_SIZE_BYTES:
        os.remove(saved_path)
        raise BadRequestError(f"File exceeds maximum allowed size of {MAX_FILE_SIZE_MB}MB",
                              code="FILE_TOO_LARGE", details={"size": size})
    if size == 0:
        os.remove(saved_path)
        raise BadRequestError("File is empty", code="EMPTY_FILE")

    session = store.create_session(UploadSession(
        id=session_id,
        user_id=x_user_id,
        filename=filename,
        original_name=original_name,
        mime_type=file.content_type or mimetypes.guess_type(original_name)[0] or "application/octet-stream",
        file_size=size,
    ))
    logger.info("session_created", session_id=session_id, user_id=x_user_id, ext=ext, size=size)
    return _ok("SESSION_CREATED", session=session.to_wire())


@router.post("/session/{session_id}/parse")
def parse_session(
    session_id: str,
    sheet_name: Optional[str] = Form(None, alias="sheetName"),
    x_user_id: str = Header(DEFAULT_USER, alias="X-User-Id"),
):
    session = _load(session_id, x_user_id)
    _require(session, "parse", (UploadStatus.CREATED, UploadStatus.PARSE_FAILED))

    try:
        result = parse_file(_file_path(session), sheet_name=sheet_name)
    except ParseError as e:
        store.update_session(session, status=UploadStatus.PARSE_FAILED, parse_warnings=[e.message])
        logger.warning("parse_failed", session_id=session_id, error=e.message)
        raise

    session = store.update_session(
        session,
        status=UploadStatus.PARSED,
        sheet_name=sheet_name,
        headers=result.headers,
        sample_rows=result.rows[:SAMPLE_ROW_COUNT],
        total_rows=result.total_rows,
        parse_warnings=result.parse_warnings,
    )
    logger.info("session_parsed", session_id=session_id, total_rows=result.total_rows)
    return _ok(
        "PARSED",
        session=session.to_wire(),
        headers=result.headers,
        sampleRows=session.sample_rows,
        totalRows=result.total_rows,
        parseWarnings=result.parse_warnings,
    )


# ===========================
# MAPPING
# ===========================

@router.post("/session/{session_id}/map")
def suggest_mapping(
    session_id: str,
    x_user_id: str = Header(DEFAULT_USER, alias="X-User-Id"),
):
    session = _load(session_id, x_user_id)
    _require(session, "map", MAPPABLE)

    suggestion = map_columns(session.headers, session.sample_rows)
    confidences = [m.confidence for m in suggestion.mappings]
    session = store.update_session(
        session,
        ai_mapping_confidence=round(sum(confidences) / len(confidences), 2) if confidences else None,
    )
    return _ok("MAPPING_SUGGESTED", session=session.to_wire(), **suggestion.to_wire())


@router.put("/session/{session_id}/mapping")
def save_mapping(
    session_id: str,
    payload: SaveMappingIn,
    x_user_id: str = Header(DEFAULT_USER, alias="X-User-Id"),
):
    session = _load(session_id, x_user_id)
    _require(session, "save mapping for", MAPPABLE)

    kept = validate_mappings(payload.mappings, headers=session.headers)
    avg = round(sum(m.confidence for m in kept) / len(kept), 2)
    session = store.update_session(
        session, status=UploadStatus.MAPPED, column_mapping=kept, ai_mapping_confidence=avg,
    )
    logger.info("mapping_saved", session_id=session_id, mapped=len(kept),
                overridden=sum(1 for m in kept if m.user_overridden))
    return _ok("MAPPING_SAVED", session=session.to_wire())


# ===========================
# MATCHING + ROWS
# ===========================

@router.post("/session/{session_id}/match")
def match_session(
    session_id: str,
    x_user_id: str = Header(DEFAULT_USER, alias="X-User-Id"),
):
    session = _load(session_id, x_user_id)
    _require(session, "match", MATCHABLE)

    try:
        parsed = parse_file(_file_path(session), sheet_name=session.sheet_name)
        matcher = SmartMatcher(catalog.list_parts())
        rows = [
            build_row(session.id, idx + 1, raw, session.column_mapping or [], matcher)
            for idx, raw in enumerate(parsed.rows)
        ]
        store.replace_rows(session.id, rows)
    except (AppError, OSError) as e:
        store.update_session(session, status=UploadStatus.MATCH_FAILED)
        logger.error("match_failed", session_id=session_id, error=str(e))
        raise

    session.status = UploadStatus.MATCHED
    session.total_rows = len(rows)
    session = _refresh_counts(session)
    by_status = {s.value: sum(1 for r in rows if r.status == s) for s in RowStatus}
    logger.info("session_matched", session_id=session_id, **by_status)
    return _ok("MATCHED", session=session.to_wire(), summary=by_status)


@router.get("/session/{session_id}/rows")
def list_rows(
    session_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(25, ge=1, le=100),
    status: Optional[RowStatus] = Query(None),
    x_user_id: str = Header(DEFAULT_USER, alias="X-User-Id"),
):
    _load(session_id, x_user_id)
    rows, total = store.list_rows(session_id, page=page, limit=limit, status=status)
    return _ok(
        "ROWS",
        rows=[r.to_wire() for r in rows],
        pagination=Pagination(page=page, limit=limit, total=total).to_wire(),
    )


@router.put("/session/{session_id}/rows/{row_id}")
def update_row(
    session_id: str,
    row_id: str,
    values: Dict[str, Any] = Body(...),
    x_user_id: str = Header(DEFAULT_USER, alias="X-User-Id"),
):
    session = _load(session_id, x_user_id)
    _require(session, "edit rows of", EDITABLE)
    row = store.get_row(session_id, row_id)
    if not row:
        raise NotFoundError("row", row_id)

    values = dict(values)
    manual_part_id = values.pop("matchedPartId", None) or None
    matcher = SmartMatcher(catalog.list_parts())
    if manual_part_id and not matcher.get_part(manual_part_id):
        raise NotFoundError("part", manual_part_id)

    row = store.update_row(apply_edit(row, values, matcher, manual_part_id=manual_part_id))
    session = _refresh_counts(session)
    logger.info("row_updated", session_id=session_id, row_id=row_id,
                status=row.status.value, manual=bool(manual_part_id))
    return _ok("ROW_UPDATED", row=row.to_wire(), session=session.to_wire())


# ===========================
# IMPORT + EXPORT
# ===========================

@router.post("/session/{session_id}/import")
def import_session(
    session_id: str,
    payload: Optional[ImportIn] = Body(None),
    x_user_id: str = Header(DEFAULT_USER, alias="X-User-Id"),
):
    session = _load(session_id, x_user_id)
    _require(session, "import", IMPORTABLE)

    row_ids: Optional[List[str]] = payload.row_ids if payload else None
    outcome = import_rows(session, store, catalog, row_ids=row_ids)
    failed_all = outcome.attempted > 0 and outcome.imported == 0
    session.status = UploadStatus.IMPORT_FAILED if failed_all else UploadStatus.IMPORTED
    session = _refresh_counts(session)
    return _ok(
        "IMPORTED",
        session=session.to_wire(),
        imported=outcome.imported,
        skipped=outcome.skipped,
        errors=outcome.errors,
    )


@router.get("/session/{session_id}/export")
def export_session(
    session_id: str,
    x_user_id: str = Header(DEFAULT_USER, alias="X-User-Id"),
):
    session = _load(session_id, x_user_id)
    rows = store.iter_rows(session_id)
    if not rows:
        raise BadRequestError("Session has no rows to export", code="NOTHING_TO_EXPORT")
    export = save_session_excel(session, rows)
    logger.info("session_exported", session_id=session_id, filename=export["filename"])
    return _ok("EXPORTED", **export)


# ===========================
# SESSIONS
# ===========================

@router.get("/sessions")
def list_sessions(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    x_user_id: str = Header(DEFAULT_USER, alias="X-User-Id"),
):
    sessions, total = store.list_sessions(x_user_id, page=page, limit=limit)
    return _ok(
        "SESSIONS",
        sessions=[s.to_wire() for s in sessions],
        pagination=Pagination(page=page, limit=limit, total=total).to_wire(),
    )


@router.get("/session/{session_id}")
def get_session(
    session_id: str,
    x_user_id: str = Header(DEFAULT_USER, alias="X-User-Id"),
):
    session = _load(session_id, x_user_id)
    counts = {s.value: 0 for s in RowStatus}
    counts.update(store.count_rows_by_status(session_id))
    return _ok("SESSION", session=session.to_wire(), rowCounts=counts)
