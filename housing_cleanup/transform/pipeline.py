"""In-memory cleaning pipeline over a list of sale records."""

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from housing_cleanup.transform.address import impute_property_addresses, split_addresses
from housing_cleanup.transform.normalize import (
    convert_sale_dates,
    dedupe_sales,
    normalize_flags,
    prune_columns,
)

logger = logging.getLogger(__name__)

STAGE_NAMES = [
    "normalize_dates",
    "impute_addresses",
    "split_addresses",
    "normalize_flags",
    "dedupe",
    "prune_columns",
]


@dataclass
class CleaningResult:
    """Output of a cleaning run."""

    records: list[dict]
    removed_ids: list[Any] = field(default_factory=list)
    date_failures: list[dict] = field(default_factory=list)

    @property
    def record_count(self) -> int:
        return len(self.records)


def clean_records(
    records: list[dict],
    strict_addresses: bool = False,
    prune_missing_ok: bool = True,
    columns_to_prune: Optional[list[str]] = None,
) -> CleaningResult:
    """Full cleaning pipeline: dates → imputation → split → flags → dedupe → prune.

    The input records are not modified.

    Args:
        records: Sale records with snake_case column names
        strict_addresses: Raise MalformedAddressError on addresses missing a comma
        prune_missing_ok: Treat already-dropped columns as a no-op
        columns_to_prune: Columns to drop at the end (defaults to the superseded ones)

    Returns:
        CleaningResult with the cleaned records, removed duplicate ids and
        malformed-date reports

    Example:
        >>> result = clean_records(load_records("nashville_housing.csv"))
        >>> result.records[0]["property_address_city"]
        'GOODLETTSVILLE'
    """
    input_count = len(records)

    records, date_failures = convert_sale_dates(records)
    records = impute_property_addresses(records)
    records = split_addresses(records, strict=strict_addresses)
    records = normalize_flags(records)
    records, removed_ids = dedupe_sales(records)
    records = prune_columns(records, columns=columns_to_prune, missing_ok=prune_missing_ok)

    logger.info(
        "Cleaning complete",
        extra={
            "input_count": input_count,
            "output_count": len(records),
            "duplicate_count": len(removed_ids),
            "malformed_date_count": len(date_failures),
        }
    )

    return CleaningResult(
        records=records,
        removed_ids=removed_ids,
        date_failures=date_failures,
    )
