"""Reading source files and exporting cleaned tables."""

import csv
import json
import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Union

import pyarrow as pa
import pyarrow.parquet as pq

from housing_cleanup.transform.normalize import normalize_key, normalize_string

logger = logging.getLogger(__name__)


def _normalize_source_record(record: dict) -> dict:
    return {normalize_key(k): normalize_string(v) for k, v in record.items() if k}


def read_csv(file_path: Union[str, Path]) -> list[dict]:
    """Read a CSV export; every value is a string or None."""
    with open(file_path, "r", encoding="utf-8-sig", newline="") as f:
        return list(csv.DictReader(f))


def read_jsonl(file_path: Union[str, Path]) -> list[dict]:
    """Read records from a JSONL file.

    Args:
        file_path: Path to JSONL file

    Returns:
        List of parsed records
    """
    records = []

    with open(file_path, "r", encoding="utf-8") as f:
        for line in f:
            if line.strip():
                records.append(json.loads(line))

    logger.debug(f"Read {len(records)} records from {file_path}")
    return records


def read_parquet(file_path: Union[str, Path]) -> list[dict]:
    return pq.read_table(file_path).to_pylist()


READERS = {
    ".csv": read_csv,
    ".jsonl": read_jsonl,
    ".parquet": read_parquet,
}


def load_records(file_path: Union[str, Path]) -> list[dict]:
    """Load sale records from a CSV, JSONL or Parquet file.

    Column names are converted to snake_case, strings are trimmed and blank
    strings become None.

    Raises:
        ValueError: If the file extension is not supported
    """
    file_path = Path(file_path)
    reader = READERS.get(file_path.suffix.lower())
    if reader is None:
        raise ValueError(f"Unsupported source file type: {file_path.suffix}")

    records = [_normalize_source_record(r) for r in reader(file_path)]

    logger.info(
        f"Loaded {len(records)} records from {file_path}",
        extra={"file_path": str(file_path), "record_count": len(records)},
    )
    return records


def _with_metadata(records: list[dict], run_id: str, exported_at: str) -> list[dict]:
    return [
        {
            "_run_id": run_id,
            "_exported_at": exported_at,
            **record,
        }
        for record in records
    ]


def write_jsonl(
    records: list[dict],
    output_path: Union[str, Path],
    run_id: Optional[str] = None,
) -> dict:
    """Write cleaned records to a JSONL file with run metadata.

    Args:
        records: List of records to write
        output_path: Output file path
        run_id: Optional run identifier (generated if not provided)

    Returns:
        Metadata dict with file info
    """
    if run_id is None:
        run_id = uuid.uuid4().hex[:12]

    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    exported_at = datetime.now(timezone.utc).isoformat()

    with open(output_path, "w", encoding="utf-8") as f:
        for record in _with_metadata(records, run_id, exported_at):
            f.write(json.dumps(record, default=str) + "\n")

    metadata = {
        "file_path": str(output_path),
        "run_id": run_id,
        "exported_at": exported_at,
        "record_count": len(records),
        "file_size_bytes": output_path.stat().st_size,
    }

    logger.info(
        f"Wrote {len(records)} records to {output_path}",
        extra=metadata
    )

    return metadata


def write_parquet(
    records: list[dict],
    output_path: Union[str, Path],
    run_id: Optional[str] = None,
) -> dict:
    """Write cleaned records to a Parquet file with run metadata.

    Args:
        records: List of records to write
        output_path: Output file path
        run_id: Optional run identifier (generated if not provided)

    Returns:
        Metadata dict with file info
    """
    if run_id is None:
        run_id = uuid.uuid4().hex[:12]

    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    exported_at = datetime.now(timezone.utc).isoformat()

    table = pa.Table.from_pylist(_with_metadata(records, run_id, exported_at))
    pq.write_table(table, output_path)

    metadata = {
        "file_path": str(output_path),
        "run_id": run_id,
        "exported_at": exported_at,
        "record_count": len(records),
        "file_size_bytes": output_path.stat().st_size,
    }

    logger.info(
        f"Wrote {len(records)} records to Parquet at {output_path}",
        extra=metadata
    )

    return metadata


WRITERS = {
    ".jsonl": write_jsonl,
    ".parquet": write_parquet,
}


def export_records(
    records: list[dict],
    output_path: Union[str, Path],
    run_id: Optional[str] = None,
) -> dict:
    """Write records with the writer matching the file extension."""
    output_path = Path(output_path)
    writer = WRITERS.get(output_path.suffix.lower())
    if writer is None:
        raise ValueError(f"Unsupported export file type: {output_path.suffix}")
    return writer(records, output_path, run_id=run_id)
