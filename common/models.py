from datetime import datetime
from enum import Enum
from typing import Optional, List, Dict, Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def utcnow_iso() -> str:
    return datetime.utcnow().isoformat() + "Z"


class WireModel(BaseModel):
    """camelCase on the wire, snake_case in Python; either accepted on input."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class UploadStatus(str, Enum):
    CREATED = "created"
    PARSED = "parsed"
    MAPPED = "mapped"
    MATCHED = "matched"
    IMPORTED = "imported"
    PARSE_FAILED = "parse_failed"
    MATCH_FAILED = "match_failed"
    IMPORT_FAILED = "import_failed"


class RowStatus(str, Enum):
    MATCHED = "matched"
    PARTIAL = "partial"
    UNMATCHED = "unmatched"
    ERROR = "error"


class SyncStatus(str, Enum):
    NOT_SYNCED = "not_synced"
    PENDING = "pending"
    SYNCING = "syncing"
    SYNCED = "synced"
    FAILED = "failed"


class TargetField(str, Enum):
    PART_NUMBER = "partNumber"
    TITLE = "title"
    DESCRIPTION = "description"
    CATEGORY = "category"
    CONDITION = "condition"
    PRICE = "price"
    QUANTITY = "quantity"
    LOCATION = "location"
    MANUFACTURER = "manufacturer"
    MODEL = "model"
    SERIAL_NUMBER = "serialNumber"
    NOTES = "notes"


TARGET_FIELDS: List[str] = [f.value for f in TargetField]
REQUIRED_FIELDS: List[str] = [TargetField.PART_NUMBER.value]
# rows in these states carry a part reference and are importable
MATCHED_STATUSES = (RowStatus.MATCHED, RowStatus.PARTIAL)


class ColumnMapping(WireModel):
    source_column: str
    target_field: str = ""
    confidence: float = Field(0.0, ge=0.0, le=1.0)
    suggested_confidence: Optional[float] = None
    user_overridden: bool = False


class MappedFields(BaseModel):
    """Row field map: the known target fields plus an `extra` bag for anything else."""
    part_number: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    condition: Optional[str] = None
    price: Optional[str] = None
    quantity: Optional[str] = None
    location: Optional[str] = None
    manufacturer: Optional[str] = None
    model: Optional[str] = None
    serial_number: Optional[str] = None
    notes: Optional[str] = None
    extra: Dict[str, str] = Field(default_factory=dict)

    @classmethod
    def from_flat(cls, values: Dict[str, Any]) -> "MappedFields":
        known: Dict[str, Any] = {}
        extra: Dict[str, str] = {}
        for key, value in (values or {}).items():
            text = "" if value is None else str(value)
            if key in TARGET_FIELDS:
                known[_field_attr(key)] = text
            else:
                extra[str(key)] = text
        return cls(**known, extra=extra)

    def get(self, field: str) -> Optional[str]:
        if field in TARGET_FIELDS:
            return getattr(self, _field_attr(field))
        return self.extra.get(field)

    def set(self, field: str, value: Optional[str]) -> None:
        if field in TARGET_FIELDS:
            setattr(self, _field_attr(field), value)
        elif value is not None:
            self.extra[field] = value

    def to_flat(self) -> Dict[str, str]:
        out: Dict[str, str] = {}
        for field in TARGET_FIELDS:
            value = getattr(self, _field_attr(field))
            if value is not None:
                out[field] = value
        out.update(self.extra)
        return out


def _field_attr(field: str) -> str:
    # partNumber -> part_number
    return "".join("_" + c.lower() if c.isupper() else c for c in field)


class UploadSession(WireModel):
    id: str
    user_id: str
    filename: str
    original_name: str
    mime_type: str
    file_size: int
    sheet_name: Optional[str] = None
    status: UploadStatus = UploadStatus.CREATED
    total_rows: int = 0
    processed_rows: int = 0
    error_rows: int = 0
    headers: List[str] = Field(default_factory=list)
    sample_rows: List[Dict[str, str]] = Field(default_factory=list)
    column_mapping: Optional[List[ColumnMapping]] = None
    ai_mapping_confidence: Optional[float] = None
    parse_warnings: List[str] = Field(default_factory=list)
    created_at: str = Field(default_factory=utcnow_iso)
    updated_at: str = Field(default_factory=utcnow_iso)


class UploadSessionRow(WireModel):
    id: str
    session_id: str
    row_number: int
    raw_data: Dict[str, str] = Field(default_factory=dict)
    mapped_data: Optional[Dict[str, str]] = None
    status: RowStatus = RowStatus.UNMATCHED
    match_confidence: Optional[float] = None
    matched_part_id: Optional[str] = None
    errors: List[str] = Field(default_factory=list)
    listing_id: Optional[str] = None
    created_at: str = Field(default_factory=utcnow_iso)


class Part(WireModel):
    id: str
    part_number: str
    alternates: List[str] = Field(default_factory=list)
    title: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    manufacturer: Optional[str] = None
    model: Optional[str] = None


class Listing(WireModel):
    id: str
    user_id: str
    session_id: Optional[str] = None
    row_id: Optional[str] = None
    part_id: Optional[str] = None
    title: str
    description: str = ""
    category: str = "Parts"
    condition: str = "As Removed"
    price: float = 0.0
    quantity: int = 1
    location: Optional[str] = None
    manufacturer: Optional[str] = None
    model: Optional[str] = None
    serial_number: Optional[str] = None
    part_number: Optional[str] = None
    status: str = "draft"
    sync_status: SyncStatus = SyncStatus.NOT_SYNCED
    external_id: Optional[str] = None
    sync_error: Optional[str] = None
    last_synced_at: Optional[str] = None
    created_at: str = Field(default_factory=utcnow_iso)
    updated_at: str = Field(default_factory=utcnow_iso)


class Pagination(WireModel):
    page: int
    limit: int
    total: int


# ---- request bodies ----

class SaveMappingIn(WireModel):
    mappings: List[ColumnMapping]


class ImportIn(WireModel):
    row_ids: Optional[List[str]] = None


class PartIn(WireModel):
    id: Optional[str] = None
    part_number: str
    alternates: List[str] = Field(default_factory=list)
    title: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    manufacturer: Optional[str] = None
    model: Optional[str] = None


class PartsIn(WireModel):
    parts: List[PartIn]


class SyncBatchIn(WireModel):
    listing_ids: List[str]
