import math
import re
from typing import List, Optional, Tuple

from common.errors import ValidationError
from common.models import ColumnMapping, MappedFields, TARGET_FIELDS, REQUIRED_FIELDS

_CURRENCY_NOISE = re.compile(r"[\s$€£,]|USD", re.IGNORECASE)


# ===========================
# COLUMN MAPPINGS
# ===========================

def validate_mappings(mappings: List[ColumnMapping], headers: Optional[List[str]] = None) -> List[ColumnMapping]:
    """
    Drop unmapped entries and enforce: known target fields, unique targets,
    unique sources, partNumber present. Raises ValidationError.
    """
    kept = [m for m in mappings if m.target_field and m.source_column]
    seen_targets, seen_sources = set(), set()
    for m in kept:
        if m.target_field not in TARGET_FIELDS:
            raise ValidationError(f"Unknown target field: {m.target_field}", code="UNKNOWN_TARGET_FIELD",
                                  details={"targetField": m.target_field})
        if headers is not None and m.source_column not in headers:
            raise ValidationError(f"Unknown source column: {m.source_column}", code="UNKNOWN_SOURCE_COLUMN",
                                  details={"sourceColumn": m.source_column})
        if m.target_field in seen_targets:
            raise ValidationError(f"Target field {m.target_field} is mapped more than once",
                                  code="DUPLICATE_TARGET_FIELD", details={"targetField": m.target_field})
        if m.source_column in seen_sources:
            raise ValidationError(f"Column {m.source_column} is mapped more than once",
                                  code="DUPLICATE_SOURCE_COLUMN", details={"sourceColumn": m.source_column})
        seen_targets.add(m.target_field)
        seen_sources.add(m.source_column)
    for required in REQUIRED_FIELDS:
        if required not in seen_targets:
            raise ValidationError("Part Number must be mapped to a column", code="PART_NUMBER_NOT_MAPPED")
    return kept


# ===========================
# ROW VALUES
# ===========================

def normalize_price(raw: str) -> Tuple[Optional[str], Optional[str]]:
    """'$1,250.00' -> ('1250.00', None); returns (None, error) when unparseable."""
    cleaned = _CURRENCY_NOISE.sub("", raw or "")
    if cleaned == "":
        return None, None
    try:
        value = float(cleaned)
    except ValueError:
        return None, f"Invalid price: {raw}"
    if not math.isfinite(value):
        return None, f"Invalid price: {raw}"
    if value < 0:
        return None, f"Price cannot be negative: {raw}"
    return cleaned, None


def normalize_quantity(raw: str) -> Tuple[Optional[str], Optional[str]]:
    cleaned = (raw or "").replace(",", "").strip()
    if cleaned == "":
        return None, None
    try:
        value = float(cleaned)
    except ValueError:
        return None, f"Invalid quantity: {raw}"
    if not math.isfinite(value) or value != int(value) or value < 1:
        return None, f"Quantity must be a positive whole number: {raw}"
    return str(int(value)), None


def normalize_and_validate(fields: MappedFields) -> List[str]:
    """Normalise values in place; return the row's validation errors."""
    errors: List[str] = []
    for name in TARGET_FIELDS:
        value = fields.get(name)
        if value is not None:
            fields.set(name, value.strip())

    for name in REQUIRED_FIELDS:
        if not (fields.get(name) or "").strip():
            errors.append(f"Missing required field: {name}")

    if fields.price is not None:
        price, err = normalize_price(fields.price)
        if err:
            errors.append(err)
        else:
            fields.price = price
    if fields.quantity is not None:
        qty, err = normalize_quantity(fields.quantity)
        if err:
            errors.append(err)
        else:
            fields.quantity = qty
    return errors
