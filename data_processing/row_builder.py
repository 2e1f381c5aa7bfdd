import uuid
from typing import Dict, List, Optional

from common.models import (
    ColumnMapping, MappedFields, RowStatus, UploadSessionRow,
)
from data_processing.smart_matcher import SmartMatcher, status_for
from data_processing.validators import normalize_and_validate


def apply_mapping(raw: Dict[str, str], mappings: List[ColumnMapping]) -> MappedFields:
    fields = MappedFields()
    for m in mappings:
        if m.source_column and m.target_field:
            fields.set(m.target_field, raw.get(m.source_column, ""))
    return fields


def evaluate(row: UploadSessionRow, fields: MappedFields, matcher: SmartMatcher) -> UploadSessionRow:
    """Validate + match `fields` and write the outcome onto `row`."""
    errors = normalize_and_validate(fields)
    if errors:
        row.status = RowStatus.ERROR
        row.errors = errors
        row.match_confidence = None
        row.matched_part_id = None
    else:
        match = matcher.match_part(fields)
        row.status = status_for(match)
        row.errors = []
        row.match_confidence = match.confidence if match else 0.0
        row.matched_part_id = match.part_id if row.status != RowStatus.UNMATCHED else None
        if row.matched_part_id:
            part = matcher.get_part(row.matched_part_id)
            if part:
                matcher.enrich(fields, part)
    row.mapped_data = fields.to_flat()
    return row


def build_row(
    session_id: str,
    row_number: int,
    raw: Dict[str, str],
    mappings: List[ColumnMapping],
    matcher: SmartMatcher,
) -> UploadSessionRow:
    row = UploadSessionRow(id=str(uuid.uuid4()), session_id=session_id, row_number=row_number, raw_data=raw)
    try:
        return evaluate(row, apply_mapping(raw, mappings), matcher)
    except (ValueError, KeyError, TypeError) as e:
        row.status = RowStatus.ERROR
        row.errors = [f"Row could not be processed: {e}"]
        row.match_confidence = None
        row.matched_part_id = None
        return row


def apply_edit(
    row: UploadSessionRow,
    values: Dict[str, str],
    matcher: SmartMatcher,
    manual_part_id: Optional[str] = None,
) -> UploadSessionRow:
    """Replace the row's mapped data with `values`, re-validate, then re-match or attach the chosen part."""
    fields = MappedFields.from_flat(values)
    if manual_part_id is None:
        return evaluate(row, fields, matcher)

    errors = normalize_and_validate(fields)
    part = matcher.get_part(manual_part_id)
    # a hand-picked part settles the match even when the typed part number is blank
    errors = [e for e in errors if "partNumber" not in e]
    if part and not fields.part_number:
        fields.part_number = part.part_number
    if errors:
        row.status = RowStatus.ERROR
        row.errors = errors
        row.match_confidence = None
        row.matched_part_id = None
    else:
        row.status = RowStatus.MATCHED
        row.errors = []
        row.match_confidence = 1.0
        row.matched_part_id = manual_part_id
        if part:
            matcher.enrich(fields, part)
    row.mapped_data = fields.to_flat()
    return row
