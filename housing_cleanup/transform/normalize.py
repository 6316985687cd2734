"""Sale-date, flag and key normalization, deduplication and column pruning."""

import logging
import re
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Iterable, Optional

from housing_cleanup.errors import ColumnNotFoundError, MalformedDateError

logger = logging.getLogger(__name__)

ID_FIELD = "unique_id"
SALE_DATE_FIELD = "sale_date"
SALE_DATE_CONVERTED_FIELD = "sale_date_converted"
SOLD_AS_VACANT_FIELD = "sold_as_vacant"

# Sale date formats seen in county exports
SALE_DATE_FORMATS = [
    "%Y-%m-%d",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M:%S.%f",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%dT%H:%M:%S.%f",
    "%Y-%m-%dT%H:%M:%SZ",
    "%Y-%m-%dT%H:%M:%S.%fZ",
    "%Y-%m-%dT%H:%M:%S%z",
    "%B %d, %Y",
    "%b %d, %Y",
    "%m/%d/%Y",
    "%m/%d/%Y %H:%M",
    "%m/%d/%Y %H:%M:%S",
]

SOLD_AS_VACANT_LABELS = {
    "Y": "Yes",
    "N": "No",
}

DEDUPE_KEY_FIELDS = [
    "parcel_id",
    "property_address",
    "sale_price",
    "sale_date",
    "legal_reference",
]

# Superseded column -> columns that must hold its replacement before the drop
COLUMN_REPLACEMENTS = {
    "sale_date": ("sale_date_converted",),
    "property_address": ("property_address_street", "property_address_city"),
    "owner_address": (
        "owner_address_street",
        "owner_address_city",
        "owner_address_state",
    ),
    "tax_district": (),
}

SUPERSEDED_COLUMNS = list(COLUMN_REPLACEMENTS)


def normalize_key(key: str) -> str:
    """Normalize a column name to snake_case.

    ``"UniqueID "`` becomes ``"unique_id"``, ``"SoldAsVacant"`` becomes
    ``"sold_as_vacant"``.
    """
    key = re.sub(r"[-\s]+", "_", key.strip())
    key = re.sub(r"[^a-zA-Z0-9_]", "", key)
    key = re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", key)
    key = re.sub(r"_+", "_", key.lower())
    return key.strip("_")


def normalize_string(value: Any) -> Optional[str]:
    """Trim a string value; blank strings become None."""
    if value is None:
        return None

    if not isinstance(value, str):
        return value

    value = value.strip()
    return value or None


def unique_id_key(value: Any) -> tuple:
    """Sort key for unique row identifiers.

    Numbers (ints, floats, Decimals) and ASCII digit strings order
    numerically ahead of any other ids, which order as strings.
    """
    if isinstance(value, (int, float, Decimal)) and not isinstance(value, bool):
        if value == value:
            return (0, value, str(value))
    if isinstance(value, str):
        text = value.strip()
        if text.isascii() and text.isdigit():
            return (0, int(text), value)
    return (1, 0, str(value))


# ============================================
# Sale dates
# ============================================

def normalize_sale_date(value: Any) -> date:
    """Convert a raw sale date to a calendar date without time of day.

    Args:
        value: A date, a datetime or a string in one of SALE_DATE_FORMATS

    Returns:
        The calendar date

    Raises:
        MalformedDateError: If the value is not a recognizable date
    """
    if isinstance(value, datetime):
        return value.date()

    if isinstance(value, date):
        return value

    if isinstance(value, str):
        text = value.strip()
        for fmt in SALE_DATE_FORMATS:
            try:
                return datetime.strptime(text, fmt).date()
            except ValueError:
                continue

    raise MalformedDateError(value)


def convert_sale_dates(
    records: list[dict],
    source_field: str = SALE_DATE_FIELD,
    target_field: str = SALE_DATE_CONVERTED_FIELD,
) -> tuple[list[dict], list[dict]]:
    """Add the converted sale date to every record.

    A record whose date cannot be parsed keeps a null converted date and is
    reported in the failures list; the rest of the batch is still converted.
    Records without the source column keep their existing converted value.

    Returns:
        Tuple of (converted_records, failures)
    """
    converted = []
    failures = []

    for record in records:
        result = dict(record)

        if source_field not in record:
            converted.append(result)
            continue

        raw = record[source_field]
        if raw is None:
            result[target_field] = None
        else:
            try:
                result[target_field] = normalize_sale_date(raw)
            except MalformedDateError as e:
                result[target_field] = None
                failures.append({
                    ID_FIELD: record.get(ID_FIELD),
                    "field": source_field,
                    "value": raw,
                    "error": str(e),
                })
                logger.warning(
                    f"Malformed sale date for record {record.get(ID_FIELD)}",
                    extra={"unique_id": record.get(ID_FIELD), "value": raw},
                )

        converted.append(result)

    logger.info(
        f"Converted sale dates: {len(converted) - len(failures)} ok, {len(failures)} malformed",
        extra={"record_count": len(converted), "failure_count": len(failures)},
    )

    return converted, failures


# ============================================
# Sold-as-vacant flag
# ============================================

def normalize_sold_as_vacant(value: Any) -> Any:
    """Map ``Y``/``N`` to ``Yes``/``No``; other values pass through."""
    if isinstance(value, str):
        return SOLD_AS_VACANT_LABELS.get(value, value)
    return value


def normalize_flags(
    records: list[dict],
    field_name: str = SOLD_AS_VACANT_FIELD,
) -> list[dict]:
    normalized = []
    changed = 0

    for record in records:
        result = dict(record)
        if field_name in record:
            result[field_name] = normalize_sold_as_vacant(record[field_name])
            if result[field_name] != record[field_name]:
                changed += 1
        normalized.append(result)

    logger.info(
        f"Normalized {changed} {field_name} values",
        extra={"field": field_name, "changed_count": changed},
    )
    return normalized


# ============================================
# Deduplication
# ============================================

def dedupe_sales(
    records: list[dict],
    key_fields: Optional[list[str]] = None,
    id_field: str = ID_FIELD,
) -> tuple[list[dict], list[Any]]:
    """Keep the lowest-id record of every natural-key partition.

    Records are partitioned by ``key_fields`` (nulls compare equal) and ranked
    by ``id_field`` ascending; every record ranked after the first is removed.
    The result does not depend on the input order.

    Args:
        records: Records to deduplicate
        key_fields: Natural key (defaults to DEDUPE_KEY_FIELDS)
        id_field: Unique row identifier used for ranking

    Returns:
        Tuple of (surviving_records, removed_ids). Survivors keep their input
        order, removed ids are sorted.

    Example:
        >>> records = [
        ...     {"unique_id": 9, "parcel_id": "A", "sale_price": 100},
        ...     {"unique_id": 5, "parcel_id": "A", "sale_price": 100},
        ... ]
        >>> dedupe_sales(records, key_fields=["parcel_id", "sale_price"])
        ([{'unique_id': 5, 'parcel_id': 'A', 'sale_price': 100}], [9])
    """
    if key_fields is None:
        key_fields = DEDUPE_KEY_FIELDS

    if not records:
        return [], []

    missing = [f for f in key_fields if not any(f in r for r in records)]
    if missing:
        logger.info(
            "Skipping deduplication, key columns already pruned",
            extra={"missing_fields": missing},
        )
        return [dict(r) for r in records], []

    partitions: dict[tuple, list[int]] = {}
    for index, record in enumerate(records):
        key = tuple(record.get(f) for f in key_fields)
        partitions.setdefault(key, []).append(index)

    keep = set()
    removed_ids = []
    for indexes in partitions.values():
        ranked = sorted(indexes, key=lambda i: unique_id_key(records[i].get(id_field)))
        keep.add(ranked[0])
        removed_ids.extend(records[i].get(id_field) for i in ranked[1:])

    deduped = [dict(r) for i, r in enumerate(records) if i in keep]
    removed_ids.sort(key=unique_id_key)

    if removed_ids:
        logger.info(
            f"Removed {len(removed_ids)} duplicate sale records",
            extra={
                "original_count": len(records),
                "deduped_count": len(deduped),
                "duplicate_count": len(removed_ids),
            },
        )

    return deduped, removed_ids


# ============================================
# Column pruning
# ============================================

def record_schema(records: Iterable[dict]) -> list[str]:
    """Ordered union of the column names used by ``records``."""
    columns: dict[str, None] = {}
    for record in records:
        columns.update(dict.fromkeys(record))
    return list(columns)


def plan_column_drops(
    records: list[dict],
    schema: list[str],
    columns: Optional[list[str]] = None,
    missing_ok: bool = True,
) -> list[str]:
    """Work out which superseded columns can be dropped from ``schema``.

    A column is kept while any record holds a value in it that none of its
    replacement columns carry (a sale date that failed to parse, say).

    Raises:
        ColumnNotFoundError: If a column is missing and ``missing_ok`` is
            False, or if a replacement column has not been created yet
    """
    columns = SUPERSEDED_COLUMNS if columns is None else columns
    present = set(schema)
    to_drop = []

    for column in columns:
        if column not in present:
            if not missing_ok:
                raise ColumnNotFoundError(column)
            logger.debug(f"Column {column} already dropped")
            continue

        replacements = COLUMN_REPLACEMENTS.get(column, ())
        for replacement in replacements:
            if replacement not in present:
                raise ColumnNotFoundError(replacement)

        if replacements:
            unreplaced = sum(
                1 for r in records
                if r.get(column) is not None
                and all(r.get(rep) is None for rep in replacements)
            )
            if unreplaced:
                logger.warning(
                    f"Keeping {column}: {unreplaced} values not carried into {', '.join(replacements)}",
                    extra={"column": column, "unreplaced_count": unreplaced},
                )
                continue

        to_drop.append(column)

    return to_drop


def prune_columns(
    records: list[dict],
    columns: Optional[list[str]] = None,
    missing_ok: bool = True,
) -> list[dict]:
    """Remove superseded columns from every record.

    Args:
        records: Records to prune
        columns: Columns to remove (defaults to SUPERSEDED_COLUMNS)
        missing_ok: Treat already-absent columns as a no-op

    Returns:
        New records without the dropped columns
    """
    to_drop = set(plan_column_drops(records, record_schema(records), columns, missing_ok))

    if to_drop:
        logger.info(
            f"Dropping columns: {', '.join(sorted(to_drop))}",
            extra={"columns": sorted(to_drop)},
        )

    return [{k: v for k, v in r.items() if k not in to_drop} for r in records]
