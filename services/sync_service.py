"""
Publishing imported listings to Flying411.com.

Listing lifecycle on the sync side:
    not_synced -> (pending) -> syncing -> synced | failed
    synced -> not_synced   (unsync)
"""
from typing import Any, Dict, List, Optional

import structlog

from common.catalog_store import CatalogStore
from common.errors import BadRequestError, ExternalServiceError, ForbiddenError, NotFoundError
from common.models import Listing, SyncStatus, utcnow_iso
from services.flying411_client import Flying411Client

logger = structlog.get_logger(__name__)

PRODUCT_TYPES = {"Aircraft": "aircraft", "Engines": "engine", "Parts": "part"}
SYNCABLE_CATEGORIES = list(PRODUCT_TYPES)
MAX_BATCH = 50


def to_payload(listing: Listing) -> Dict[str, Any]:
    """Flying411 sync payload; the data block depends on the product type."""
    product_type = PRODUCT_TYPES.get(listing.category)
    if product_type is None:
        raise BadRequestError(f'Category "{listing.category}" is not syncable', code="CATEGORY_NOT_SYNCABLE")

    common = {
        "manufacturer": listing.manufacturer,
        "price": listing.price,
        "currency": "USD",
        "condition": listing.condition,
        "description": listing.description,
        "quantity": listing.quantity,
        "city": listing.location,
        "serial_number": listing.serial_number,
        "images": [],
    }
    if product_type == "part":
        data = {"part_name": listing.title, "part_number": listing.part_number, **common}
    else:
        data = {"model": listing.model or listing.title, **common}
    return {"source_uuid": listing.id, "product_type": product_type, "data": data}


class SyncService:
    def __init__(self, catalog: CatalogStore, client: Optional[Flying411Client] = None):
        self.catalog = catalog
        self.client = client or Flying411Client()

    def _get(self, listing_id: str, user_id: Optional[str] = None) -> Listing:
        listing = self.catalog.get_listing(listing_id)
        if not listing:
            raise NotFoundError("listing", listing_id)
        if user_id and listing.user_id != user_id:
            raise ForbiddenError("Not authorized to access this listing")
        return listing

    def stats(self, user_id: Optional[str] = None) -> Dict[str, int]:
        counts = self.catalog.count_by_sync_status(user_id=user_id)
        counts["total"] = sum(counts.values())
        return counts

    def sync_listing(self, listing_id: str, user_id: Optional[str] = None) -> Listing:
        listing = self._get(listing_id, user_id)
        payload = to_payload(listing)

        self.catalog.update_listing(listing, sync_status=SyncStatus.SYNCING)
        try:
            if listing.external_id:
                external_id = self.client.update_listing(listing.external_id, payload)
            else:
                external_id = self.client.create_listing(payload)
        except ExternalServiceError as e:
            logger.warning("listing_sync_failed", listing_id=listing.id, error=e.message)
            return self.catalog.update_listing(listing, sync_status=SyncStatus.FAILED, sync_error=e.message)

        logger.info("listing_synced", listing_id=listing.id, external_id=external_id)
        return self.catalog.update_listing(
            listing,
            sync_status=SyncStatus.SYNCED,
            external_id=external_id,
            sync_error=None,
            last_synced_at=utcnow_iso(),
        )

    def unsync_listing(self, listing_id: str, user_id: Optional[str] = None) -> Listing:
        listing = self._get(listing_id, user_id)
        if not listing.external_id:
            raise BadRequestError("Listing is not synced", code="LISTING_NOT_SYNCED")
        self.client.delete_listing(listing.external_id)
        logger.info("listing_unsynced", listing_id=listing.id, external_id=listing.external_id)
        return self.catalog.update_listing(
            listing,
            sync_status=SyncStatus.NOT_SYNCED,
            external_id=None,
            sync_error=None,
            last_synced_at=None,
        )

    def sync_many(self, listing_ids: List[str], user_id: Optional[str] = None) -> Dict[str, Any]:
        if not listing_ids:
            raise BadRequestError("listingIds array is required")
        if len(listing_ids) > MAX_BATCH:
            raise BadRequestError(f"Maximum {MAX_BATCH} items per batch")

        eligible: List[Listing] = []
        results: List[Dict[str, Any]] = []
        for lid in listing_ids:
            listing = self.catalog.get_listing(lid)
            if listing is None or (user_id and listing.user_id != user_id):
                results.append({"listingId": lid, "status": "failed", "error": "Listing not found"})
            elif listing.category not in PRODUCT_TYPES:
                results.append({"listingId": lid, "status": "failed",
                                "error": f'Category "{listing.category}" is not syncable'})
            else:
                eligible.append(self.catalog.update_listing(listing, sync_status=SyncStatus.PENDING))

        for listing in eligible:
            done = self.sync_listing(listing.id)
            entry = {"listingId": done.id, "externalId": done.external_id,
                     "status": "success" if done.sync_status == SyncStatus.SYNCED else "failed"}
            if done.sync_error:
                entry["error"] = done.sync_error
            results.append(entry)

        succeeded = sum(1 for r in results if r["status"] == "success")
        logger.info("batch_sync_done", total=len(results), succeeded=succeeded)
        return {"results": results,
                "summary": {"total": len(results), "succeeded": succeeded, "failed": len(results) - succeeded}}

    def health(self) -> Dict[str, Any]:
        return {"healthy": self.client.health_check(), "checkedAt": utcnow_iso()}
