"""Cleaning stages for property-sale records.

Handles:
- Sale date conversion
- Property address imputation
- Address splitting
- Sold-as-vacant flag normalization
- Deduplication
- Column pruning
"""

from .address import (
    build_parcel_address_index,
    impute_property_addresses,
    split_addresses,
    split_owner_address,
    split_property_address,
)
from .normalize import (
    convert_sale_dates,
    dedupe_sales,
    normalize_flags,
    normalize_key,
    normalize_sale_date,
    normalize_sold_as_vacant,
    plan_column_drops,
    prune_columns,
)
from .pipeline import CleaningResult, clean_records

__all__ = [
    # Dates
    "normalize_sale_date",
    "convert_sale_dates",
    # Addresses
    "build_parcel_address_index",
    "impute_property_addresses",
    "split_property_address",
    "split_owner_address",
    "split_addresses",
    # Flags
    "normalize_sold_as_vacant",
    "normalize_flags",
    # Deduplication
    "dedupe_sales",
    # Pruning
    "plan_column_drops",
    "prune_columns",
    # Keys
    "normalize_key",
    # Full pipeline
    "clean_records",
    "CleaningResult",
]
