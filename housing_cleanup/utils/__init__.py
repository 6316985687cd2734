"""Utility modules for the pipeline.

Includes:
- Logging configuration
- Structured pipeline logging
- Source file loading and table export
"""

from .logging_config import setup_logging, get_logger
from .file_io import load_records, export_records, write_jsonl, write_parquet
from .pipeline_logger import PipelineLogger, timed_operation

__all__ = [
    "setup_logging",
    "get_logger",
    "load_records",
    "export_records",
    "write_jsonl",
    "write_parquet",
    "PipelineLogger",
    "timed_operation",
]
