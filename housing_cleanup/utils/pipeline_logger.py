"""Structured logging for pipeline stages.

Every stage event carries:
- table
- run_id
- step
- row_count
- duration_ms
- status
"""

import json
import logging
import time
from contextlib import contextmanager
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass
class PipelineLogContext:
    """Context for a single stage log event."""

    table: str
    run_id: str
    step: str = ""
    row_count: Optional[int] = None
    duration_ms: Optional[float] = None
    status: str = "started"
    error: Optional[str] = None
    extra: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["timestamp"] = datetime.now(timezone.utc).isoformat()
        return {k: v for k, v in data.items() if v is not None}

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)


class PipelineLogger:
    """Structured logger for one cleaning run over one table."""

    def __init__(self, table: str, run_id: str):
        """Initialize pipeline logger.

        Args:
            table: Name of the table being cleaned
            run_id: Unique run identifier
        """
        self.table = table
        self.run_id = run_id
        self.logger = logging.getLogger(f"pipeline.{table}")
        self._start_time: Optional[float] = None
        self._stage_durations: dict[str, float] = {}
        self._failed_stage: Optional[str] = None

    def _log(self, level: int, step: str, **kwargs) -> None:
        ctx = PipelineLogContext(
            table=self.table,
            run_id=self.run_id,
            step=step,
            **kwargs
        )
        self.logger.log(level, ctx.to_json(), extra=ctx.to_dict())

    def _elapsed_ms(self) -> Optional[float]:
        if self._start_time is None:
            return None
        return (time.time() - self._start_time) * 1000

    def start(self, step: str) -> None:
        """Log stage start."""
        self._start_time = time.time()
        self._log(logging.INFO, step, status="started")

    def success(self, step: str, **kwargs) -> None:
        """Log stage success."""
        duration = self._elapsed_ms()
        if duration is not None:
            self._stage_durations[step] = duration
        self._log(
            logging.INFO,
            step,
            status="success",
            duration_ms=duration,
            **kwargs
        )

    def error(self, step: str, error: Exception, **kwargs) -> None:
        """Log stage failure."""
        self._failed_stage = step
        self._log(
            logging.ERROR,
            step,
            status="error",
            error=str(error),
            duration_ms=self._elapsed_ms(),
            **kwargs
        )

    def get_metrics(self) -> dict:
        """Aggregated timings for the run."""
        return {
            "table": self.table,
            "run_id": self.run_id,
            "stage_durations_ms": {k: round(v, 2) for k, v in self._stage_durations.items()},
            "total_duration_ms": round(sum(self._stage_durations.values()), 2),
            "failed_stage": self._failed_stage,
        }


@contextmanager
def timed_operation(name: str, logger: logging.Logger = None):
    """Context manager to time an operation.

    Usage:
        with timed_operation("load_source", logger) as timer:
            records = load_records(path)
        print(f"Took {timer.duration_ms}ms")

    Yields:
        Timer object with duration_ms attribute
    """
    class Timer:
        def __init__(self):
            self.start_time = time.time()
            self.end_time = None
            self.duration_ms = 0

    timer = Timer()

    try:
        yield timer
    finally:
        timer.end_time = time.time()
        timer.duration_ms = (timer.end_time - timer.start_time) * 1000

        if logger:
            logger.debug(
                f"Operation '{name}' completed",
                extra={"operation": name, "duration_ms": timer.duration_ms}
            )
