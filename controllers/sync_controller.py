from fastapi import APIRouter, Header, Query
from typing import Optional

from common.config import DEFAULT_USER
from common.models import SyncStatus, SyncBatchIn, Pagination
from services.sync_service import SyncService, SYNCABLE_CATEGORIES
from . import upload_controller

router = APIRouter(prefix="/sync")

_service: Optional[SyncService] = None


def get_service() -> SyncService:
    # the HTTP client is created on first use
    global _service
    if _service is None:
        _service = SyncService(upload_controller.catalog)
    return _service


@router.get("/stats")
def sync_stats(x_user_id: str = Header(DEFAULT_USER, alias="X-User-Id")):
    return {"ok": True, "code": "SYNC_STATS",
            "data": {"counts": get_service().stats(user_id=x_user_id), "syncableCategories": SYNCABLE_CATEGORIES}}


@router.get("/health")
def sync_health():
    return {"ok": True, "code": "SYNC_HEALTH", "data": get_service().health()}


@router.get("/listings")
def list_listings(
    sync_status: Optional[SyncStatus] = Query(None, alias="syncStatus"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    session_id: Optional[str] = Query(None, alias="sessionId"),
    x_user_id: str = Header(DEFAULT_USER, alias="X-User-Id"),
):
    listings, total = upload_controller.catalog.list_listings(
        sync_status=sync_status, page=page, limit=limit, user_id=x_user_id, session_id=session_id,
    )
    return {
        "ok": True,
        "code": "LISTINGS",
        "data": {
            "listings": [l.to_wire() for l in listings],
            "pagination": Pagination(page=page, limit=limit, total=total).to_wire(),
        },
    }


@router.post("/listings/{listing_id}")
def sync_listing(listing_id: str, x_user_id: str = Header(DEFAULT_USER, alias="X-User-Id")):
    listing = get_service().sync_listing(listing_id, user_id=x_user_id)
    return {"ok": True, "code": "SYNCED" if listing.sync_status == SyncStatus.SYNCED else "SYNC_FAILED",
            "data": {"listing": listing.to_wire()}}


@router.delete("/listings/{listing_id}")
def unsync_listing(listing_id: str, x_user_id: str = Header(DEFAULT_USER, alias="X-User-Id")):
    listing = get_service().unsync_listing(listing_id, user_id=x_user_id)
    return {"ok": True, "code": "UNSYNCED", "data": {"listing": listing.to_wire()}}


@router.post("/listings")
def sync_batch(payload: SyncBatchIn, x_user_id: str = Header(DEFAULT_USER, alias="X-User-Id")):
    return {"ok": True, "code": "BATCH_SYNCED", "data": get_service().sync_many(payload.listing_ids, user_id=x_user_id)}
