"""
Row -> draft listing conversion for the import step.
"""
import uuid
from dataclasses import dataclass, field
from typing import List, Optional

import structlog

from common.catalog_store import CatalogStore
from common.models import (
    Listing, MappedFields, RowStatus, UploadSession, UploadSessionRow, MATCHED_STATUSES,
)
from common.session_store import SessionStore
from data_processing.validators import normalize_price, normalize_quantity

logger = structlog.get_logger(__name__)

DEFAULT_CATEGORY = "Parts"
DEFAULT_CONDITION = "As Removed"


@dataclass
class ImportOutcome:
    imported: int = 0
    skipped: int = 0
    errors: List[dict] = field(default_factory=list)

    @property
    def attempted(self) -> int:
        return self.imported + len(self.errors)


def row_to_listing(row: UploadSessionRow, user_id: str) -> Listing:
    """Raises ValueError when the row's price or quantity cannot be used."""
    fields = MappedFields.from_flat(row.mapped_data or {})

    price, err = normalize_price(fields.price or "")
    if err:
        raise ValueError(err)
    qty, err = normalize_quantity(fields.quantity or "")
    if err:
        raise ValueError(err)

    title = fields.title or fields.description or fields.part_number or "Untitled"
    return Listing(
        id=str(uuid.uuid4()),
        user_id=user_id,
        session_id=row.session_id,
        row_id=row.id,
        part_id=row.matched_part_id,
        title=title,
        description=fields.description or "",
        category=fields.category or DEFAULT_CATEGORY,
        condition=fields.condition or DEFAULT_CONDITION,
        price=float(price) if price is not None else 0.0,
        quantity=int(qty) if qty is not None else 1,
        location=fields.location,
        manufacturer=fields.manufacturer,
        model=fields.model,
        serial_number=fields.serial_number,
        part_number=fields.part_number,
    )


def import_rows(
    session: UploadSession,
    store: SessionStore,
    catalog: CatalogStore,
    row_ids: Optional[List[str]] = None,
) -> ImportOutcome:
    """Create listings for matched/partial rows that have none yet."""
    wanted = set(row_ids) if row_ids else None
    outcome = ImportOutcome()

    for row in store.iter_rows(session.id, MATCHED_STATUSES):
        if wanted is not None and row.id not in wanted:
            continue
        if row.listing_id:
            outcome.skipped += 1
            continue
        try:
            listing = catalog.create_listing(row_to_listing(row, session.user_id))
        except ValueError as e:
            row.status = RowStatus.ERROR
            row.errors = [str(e)]
            row.matched_part_id = None
            row.match_confidence = None
            store.update_row(row)
            outcome.errors.append({"rowId": row.id, "rowNumber": row.row_number, "error": str(e)})
            continue
        row.listing_id = listing.id
        store.update_row(row)
        outcome.imported += 1

    logger.info("rows_imported", session_id=session.id, imported=outcome.imported,
                skipped=outcome.skipped, failed=len(outcome.errors))
    return outcome
