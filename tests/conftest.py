"""Pytest configuration and fixtures."""

import pytest
from datetime import date

from housing_cleanup.store import SaleTable


@pytest.fixture
def raw_sales():
    """Sale records as they come out of the county export, keys normalized."""
    return [
        {
            "unique_id": 2045,
            "parcel_id": "007 00 0 125.00",
            "land_use": "SINGLE FAMILY",
            "property_address": "1808  FOX CHASE DR, GOODLETTSVILLE",
            "sale_date": "April 9, 2013",
            "sale_price": 240000,
            "legal_reference": "20130412-0036474",
            "sold_as_vacant": "N",
            "owner_address": "1808  FOX CHASE DR, GOODLETTSVILLE, TN",
            "tax_district": "GENERAL SERVICES DISTRICT",
        },
        {
            "unique_id": 16918,
            "parcel_id": "007 00 0 130.00",
            "land_use": "SINGLE FAMILY",
            "property_address": "1832  FOX CHASE DR, GOODLETTSVILLE",
            "sale_date": "2014-06-10 00:00:00",
            "sale_price": 366000,
            "legal_reference": "20140619-0053768",
            "sold_as_vacant": "Y",
            "owner_address": "1832  FOX CHASE DR, GOODLETTSVILLE, TN",
            "tax_district": "GENERAL SERVICES DISTRICT",
        },
        {
            "unique_id": 43070,
            "parcel_id": "025 07 0 031.00",
            "land_use": "SINGLE FAMILY",
            "property_address": None,
            "sale_date": "2016-06-01",
            "sale_price": 155000,
            "legal_reference": "20160602-0055621",
            "sold_as_vacant": "No",
            "owner_address": None,
            "tax_district": "GENERAL SERVICES DISTRICT",
        },
        {
            "unique_id": 43071,
            "parcel_id": "025 07 0 031.00",
            "land_use": "SINGLE FAMILY",
            "property_address": "410  ROSEHILL CT, GOODLETTSVILLE",
            "sale_date": "2016-09-14",
            "sale_price": 160000,
            "legal_reference": "20160916-0097440",
            "sold_as_vacant": "No",
            "owner_address": "410  ROSEHILL CT, GOODLETTSVILLE, TN",
            "tax_district": "GENERAL SERVICES DISTRICT",
        },
        {
            "unique_id": 50000,
            "parcel_id": "081 10 0 265.00",
            "land_use": "VACANT RESIDENTIAL LAND",
            "property_address": None,
            "sale_date": "2015-02-20",
            "sale_price": 25000,
            "legal_reference": "20150224-0015931",
            "sold_as_vacant": "Yes",
            "owner_address": None,
            "tax_district": "URBAN SERVICES DISTRICT",
        },
        {
            "unique_id": 2046,
            "parcel_id": "007 00 0 125.00",
            "land_use": "SINGLE FAMILY",
            "property_address": "1808  FOX CHASE DR, GOODLETTSVILLE",
            "sale_date": "April 9, 2013",
            "sale_price": 240000,
            "legal_reference": "20130412-0036474",
            "sold_as_vacant": "N",
            "owner_address": "1808  FOX CHASE DR, GOODLETTSVILLE, TN",
            "tax_district": "GENERAL SERVICES DISTRICT",
        },
    ]


@pytest.fixture
def duplicate_pair():
    """Two records sharing the natural key, unique ids 9 and 5."""
    base = {
        "parcel_id": "105 03 0D 008.00",
        "property_address": "123 Main St, Nashville",
        "sale_price": 120000,
        "sale_date": date(2014, 1, 24),
        "legal_reference": "20140128-0008147",
    }
    return [
        {"unique_id": 9, **base, "sold_as_vacant": "N"},
        {"unique_id": 5, **base, "sold_as_vacant": "N"},
    ]


@pytest.fixture
def database_url(tmp_path):
    """SQLite database in a temp directory."""
    return f"sqlite:///{tmp_path / 'housing.db'}"


@pytest.fixture
def sale_table(database_url, raw_sales):
    """Sales table created from raw_sales."""
    table = SaleTable(database_url=database_url, table_name="nashville_housing")
    table.create(raw_sales)
    return table
