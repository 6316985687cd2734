"""Property address imputation and compound address splitting."""

import logging
from typing import Any, Optional

from housing_cleanup.errors import MalformedAddressError
from housing_cleanup.transform.normalize import ID_FIELD, unique_id_key

logger = logging.getLogger(__name__)

PARCEL_FIELD = "parcel_id"
PROPERTY_ADDRESS_FIELD = "property_address"
OWNER_ADDRESS_FIELD = "owner_address"

PROPERTY_ADDRESS_PARTS = ("property_address_street", "property_address_city")
OWNER_ADDRESS_PARTS = (
    "owner_address_street",
    "owner_address_city",
    "owner_address_state",
)


# ============================================
# Imputation
# ============================================

def build_parcel_address_index(
    records: list[dict],
    parcel_field: str = PARCEL_FIELD,
    address_field: str = PROPERTY_ADDRESS_FIELD,
    id_field: str = ID_FIELD,
) -> dict[Any, str]:
    """Map each parcel id to a known address for that parcel.

    When several records of a parcel carry an address, the one with the
    lowest unique id wins.
    """
    index: dict[Any, tuple[tuple, str]] = {}

    for record in records:
        parcel = record.get(parcel_field)
        address = record.get(address_field)
        if parcel is None or address is None:
            continue

        rank = unique_id_key(record.get(id_field))
        current = index.get(parcel)
        if current is None or rank < current[0]:
            index[parcel] = (rank, address)

    return {parcel: address for parcel, (_, address) in index.items()}


def impute_property_addresses(
    records: list[dict],
    parcel_field: str = PARCEL_FIELD,
    address_field: str = PROPERTY_ADDRESS_FIELD,
    id_field: str = ID_FIELD,
) -> list[dict]:
    """Fill null property addresses from other records of the same parcel.

    Parcels where no record has an address stay null.

    Args:
        records: Sale records
        parcel_field: Parcel identifier column
        address_field: Property address column
        id_field: Unique row identifier used as tie-break

    Returns:
        New records with imputed addresses
    """
    if not any(address_field in r for r in records):
        logger.info(f"Skipping imputation, {address_field} already pruned")
        return [dict(r) for r in records]

    index = build_parcel_address_index(records, parcel_field, address_field, id_field)

    imputed = []
    filled = 0
    unresolved = 0

    for record in records:
        result = dict(record)
        if address_field in record and record[address_field] is None:
            address = index.get(record.get(parcel_field))
            if address is None:
                unresolved += 1
            else:
                result[address_field] = address
                filled += 1
        imputed.append(result)

    logger.info(
        f"Imputed {filled} property addresses, {unresolved} left empty",
        extra={"filled_count": filled, "unresolved_count": unresolved},
    )
    return imputed


# ============================================
# Splitting
# ============================================

def _split_parts(value: str, expected_parts: int, from_right: bool, strict: bool) -> tuple:
    if from_right:
        parts = value.rsplit(",", expected_parts - 1)
    else:
        parts = value.split(",", expected_parts - 1)

    if len(parts) < expected_parts:
        if strict:
            raise MalformedAddressError(value, expected_parts)
        parts.extend([""] * (expected_parts - len(parts)))

    return tuple(part.strip() for part in parts)


def split_property_address(
    value: Optional[str],
    strict: bool = False,
) -> tuple[Optional[str], Optional[str]]:
    """Split ``"STREET, CITY"`` at the first comma.

    A value without a comma is treated as a street with an empty city unless
    ``strict`` is set.

    Example:
        >>> split_property_address("1808  FOX CHASE DR, GOODLETTSVILLE")
        ("1808  FOX CHASE DR", "GOODLETTSVILLE")
    """
    if value is None:
        return None, None
    return _split_parts(value, 2, from_right=False, strict=strict)


def split_owner_address(
    value: Optional[str],
    strict: bool = False,
) -> tuple[Optional[str], Optional[str], Optional[str]]:
    """Split ``"STREET, CITY, STATE"`` from the right.

    With two or more commas the state is the last segment and the city the
    one before it; the street keeps any commas of its own.

    With fewer than two commas the right-to-left rule is not applied: the
    segments fill street, then city, and the missing trailing fields are
    empty strings, so ``"A, B"`` gives ``("A", "B", "")`` rather than a
    null street with city ``"A"`` and state ``"B"``. ``strict`` raises
    MalformedAddressError instead.
    """
    if value is None:
        return None, None, None
    return _split_parts(value, 3, from_right=True, strict=strict)


def split_addresses(
    records: list[dict],
    strict: bool = False,
) -> list[dict]:
    """Add street/city(/state) columns derived from both compound addresses.

    If a compound column has already been pruned from a record, its derived
    columns are left as they are.

    Raises:
        MalformedAddressError: In strict mode, on the first address missing
            a delimiter
    """
    split = []

    for record in records:
        result = dict(record)

        if PROPERTY_ADDRESS_FIELD in record:
            parts = split_property_address(record[PROPERTY_ADDRESS_FIELD], strict=strict)
            result.update(zip(PROPERTY_ADDRESS_PARTS, parts))

        if OWNER_ADDRESS_FIELD in record:
            parts = split_owner_address(record[OWNER_ADDRESS_FIELD], strict=strict)
            result.update(zip(OWNER_ADDRESS_PARTS, parts))

        split.append(result)

    logger.debug(f"Split addresses for {len(split)} records")
    return split
