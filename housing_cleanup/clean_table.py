"""Main cleaning entrypoint: source file → sales table → cleaned table.

Usage:
    python -m housing_cleanup.clean_table
    python -m housing_cleanup.clean_table --load data/nashville_housing.csv --replace
    python -m housing_cleanup.clean_table --table nashville_housing --export out/clean.parquet
"""

import argparse
import json
import logging
import sys
import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy.exc import SQLAlchemyError

from housing_cleanup.config import get_settings
from housing_cleanup.errors import CleaningError, StageError
from housing_cleanup.store import SaleTable, TableTransaction
from housing_cleanup.transform.address import (
    OWNER_ADDRESS_FIELD,
    OWNER_ADDRESS_PARTS,
    PROPERTY_ADDRESS_FIELD,
    PROPERTY_ADDRESS_PARTS,
    impute_property_addresses,
    split_addresses,
)
from housing_cleanup.transform.normalize import (
    ID_FIELD,
    SALE_DATE_CONVERTED_FIELD,
    SOLD_AS_VACANT_FIELD,
    convert_sale_dates,
    dedupe_sales,
    normalize_flags,
    plan_column_drops,
)
from housing_cleanup.utils import (
    PipelineLogger,
    export_records,
    load_records,
    setup_logging,
    timed_operation,
)

logger = logging.getLogger(__name__)


def _changed_values(
    before: list[dict],
    after: list[dict],
    column: str,
    id_field: str = ID_FIELD,
) -> dict[Any, Any]:
    """Values of ``column`` that a row-aligned stage changed, keyed by unique id."""
    return {
        new[id_field]: new.get(column)
        for old, new in zip(before, after)
        if column in new and old.get(column) != new.get(column)
    }


def _write_changes(
    tx: TableTransaction,
    before: list[dict],
    after: list[dict],
    columns: list[str],
) -> int:
    updated = 0
    for column in columns:
        changes = _changed_values(before, after, column, tx.id_field)
        if changes:
            updated += tx.update_column(column, changes)
    return updated


# ============================================
# Stages against the store
# ============================================

def normalize_dates_stage(tx: TableTransaction, **options) -> dict:
    tx.add_column(SALE_DATE_CONVERTED_FIELD, "date")
    records = tx.read_records()
    converted, failures = convert_sale_dates(records)
    updated = _write_changes(tx, records, converted, [SALE_DATE_CONVERTED_FIELD])
    return {
        "row_count": len(records),
        "updated_count": updated,
        "failures": failures,
    }


def impute_addresses_stage(tx: TableTransaction, **options) -> dict:
    records = tx.read_records()
    imputed = impute_property_addresses(records)
    updated = _write_changes(tx, records, imputed, [PROPERTY_ADDRESS_FIELD])
    return {"row_count": len(records), "updated_count": updated}


def split_addresses_stage(tx: TableTransaction, strict_addresses: bool = False, **options) -> dict:
    derived_columns = []
    if tx.has_column(PROPERTY_ADDRESS_FIELD):
        derived_columns.extend(PROPERTY_ADDRESS_PARTS)
    if tx.has_column(OWNER_ADDRESS_FIELD):
        derived_columns.extend(OWNER_ADDRESS_PARTS)

    for column in derived_columns:
        tx.add_column(column, "string")

    records = tx.read_records()
    split = split_addresses(records, strict=strict_addresses)
    updated = _write_changes(tx, records, split, derived_columns)
    return {"row_count": len(records), "updated_count": updated}


def normalize_flags_stage(tx: TableTransaction, **options) -> dict:
    records = tx.read_records()
    normalized = normalize_flags(records)
    updated = _write_changes(tx, records, normalized, [SOLD_AS_VACANT_FIELD])
    return {"row_count": len(records), "updated_count": updated}


def dedupe_stage(tx: TableTransaction, **options) -> dict:
    records = tx.read_records()
    _, removed_ids = dedupe_sales(records, id_field=tx.id_field)
    deleted = tx.delete_rows(removed_ids)
    return {
        "row_count": len(records) - deleted,
        "deleted_count": deleted,
        "removed_ids": removed_ids,
    }


def prune_columns_stage(
    tx: TableTransaction,
    prune_missing_ok: bool = True,
    columns_to_prune: Optional[list[str]] = None,
    **options,
) -> dict:
    records = tx.read_records()
    to_drop = plan_column_drops(
        records,
        tx.columns(),
        columns=columns_to_prune,
        missing_ok=prune_missing_ok,
    )
    for column in to_drop:
        tx.drop_column(column, missing_ok=prune_missing_ok)
    return {"row_count": len(records), "dropped_columns": to_drop}


STAGES = [
    ("normalize_dates", normalize_dates_stage),
    ("impute_addresses", impute_addresses_stage),
    ("split_addresses", split_addresses_stage),
    ("normalize_flags", normalize_flags_stage),
    ("dedupe", dedupe_stage),
    ("prune_columns", prune_columns_stage),
]


def run_table_pipeline(
    table: SaleTable,
    run_id: Optional[str] = None,
    strict_addresses: bool = False,
    prune_missing_ok: bool = True,
    columns_to_prune: Optional[list[str]] = None,
) -> dict:
    """Run every cleaning stage against the table, one transaction per stage.

    A failing stage is rolled back; the stages before it stay committed.

    Args:
        table: Sales table to clean in place
        run_id: Optional run ID (auto-generated if not provided)
        strict_addresses: Fail on addresses missing a comma delimiter
        prune_missing_ok: Treat already-dropped columns as a no-op
        columns_to_prune: Columns to drop at the end (defaults to the superseded ones)

    Returns:
        Run summary with per-stage results

    Raises:
        StageError: Naming the stage that failed
    """
    if run_id is None:
        run_id = uuid.uuid4().hex[:12]

    options = {
        "strict_addresses": strict_addresses,
        "prune_missing_ok": prune_missing_ok,
        "columns_to_prune": columns_to_prune,
    }

    pipeline_logger = PipelineLogger(table.table_name, run_id)
    start_time = datetime.now(timezone.utc)
    results = {}

    for name, stage in STAGES:
        pipeline_logger.start(name)
        try:
            with table.transaction() as tx:
                result = stage(tx, **options)
        except Exception as e:
            pipeline_logger.error(name, e)
            logger.error(f"Stage {name} failed: {e}", exc_info=True)
            raise StageError(name, e) from e

        pipeline_logger.success(
            name,
            row_count=result["row_count"],
            extra={k: v for k, v in result.items() if k.endswith("_count")},
        )
        results[name] = result

    end_time = datetime.now(timezone.utc)

    summary = {
        "run_id": run_id,
        "table": table.table_name,
        "status": "success",
        "row_count": results["prune_columns"]["row_count"],
        "started_at": start_time.isoformat(),
        "completed_at": end_time.isoformat(),
        "metrics": pipeline_logger.get_metrics(),
        "stages": results,
    }

    logger.info(
        f"Cleaning run complete: {summary['row_count']} rows in {table.table_name}",
        extra={"run_id": run_id, "table": table.table_name, "row_count": summary["row_count"]},
    )

    return summary


def main(argv: Optional[list[str]] = None):
    """CLI entrypoint."""
    parser = argparse.ArgumentParser(
        description="Clean the property-sale table in place"
    )
    parser.add_argument(
        "--load",
        type=str,
        default=None,
        help="CSV, JSONL or Parquet file to create the table from before cleaning",
    )
    parser.add_argument(
        "--replace",
        action="store_true",
        help="Drop an existing table before loading",
    )
    parser.add_argument(
        "--database-url",
        type=str,
        default=None,
        help="SQLAlchemy database URL (default: DATABASE_URL)",
    )
    parser.add_argument(
        "--table",
        type=str,
        default=None,
        help="Sales table name (default: SALES_TABLE)",
    )
    parser.add_argument(
        "--export",
        type=str,
        default=None,
        help="Write the cleaned table to a .jsonl or .parquet file",
    )
    parser.add_argument(
        "--strict-addresses",
        action="store_true",
        help="Fail on addresses without comma delimiters",
    )
    parser.add_argument(
        "--strict-columns",
        action="store_true",
        help="Fail if a column to drop is already gone",
    )
    parser.add_argument(
        "--run-id",
        type=str,
        default=None,
        help="Run ID (auto-generated if not provided)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Log level (default: LOG_LEVEL or INFO)",
    )
    parser.add_argument(
        "--env-file",
        type=str,
        default=None,
        help="Path to a .env file",
    )

    args = parser.parse_args(argv)

    settings = get_settings(args.env_file)
    setup_logging(level=args.log_level or settings.log_level, json_format=settings.log_json)

    run_id = args.run_id or uuid.uuid4().hex[:12]
    table = SaleTable(
        database_url=args.database_url or settings.database_url,
        table_name=args.table or settings.sales_table,
    )

    try:
        if args.load:
            with timed_operation("load_source", logger):
                table.create(load_records(args.load), replace=args.replace)

        summary = run_table_pipeline(
            table,
            run_id=run_id,
            strict_addresses=args.strict_addresses,
            prune_missing_ok=not args.strict_columns,
        )

        if args.export:
            with timed_operation("export", logger):
                summary["export"] = export_records(table.read_records(), args.export, run_id=run_id)

    except (CleaningError, SQLAlchemyError, ValueError, OSError) as e:
        logger.error(f"Cleaning run failed: {e}", extra={"run_id": run_id})
        sys.exit(1)

    print(json.dumps(summary, indent=2, default=str))


if __name__ == "__main__":
    main()
