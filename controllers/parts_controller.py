from fastapi import APIRouter, Query
import uuid

import structlog

from common.models import Part, PartsIn
from . import upload_controller

router = APIRouter(prefix="/parts")
logger = structlog.get_logger(__name__)


@router.get("/search")
def search_parts(
    q: str = Query("", max_length=100),
    limit: int = Query(5, ge=1, le=20),
):
    parts = upload_controller.catalog.search_parts(q, limit=limit)
    return {"ok": True, "code": "PARTS", "data": {"parts": [p.to_wire() for p in parts]}}


@router.post("")
def upsert_parts(payload: PartsIn):
    parts = [
        Part(id=p.id or str(uuid.uuid4()), **p.model_dump(exclude={"id"}))
        for p in payload.parts
    ]
    n = upload_controller.catalog.upsert_parts(parts)
    logger.info("parts_upserted", count=n)
    return {"ok": True, "code": "PARTS_SAVED", "data": {"count": n, "parts": [p.to_wire() for p in parts]}}
