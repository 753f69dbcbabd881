"""Timing and structured sync records for repository synchronization."""

import logging
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, Generator, List, Optional

from .utils import SyncResult


SLOW_SYNC_THRESHOLD = 60.0


@dataclass
class PerformanceMetrics:
    """Timing of one named operation."""
    operation: str
    duration: float
    start_time: float
    end_time: float
    context: Optional[Dict[str, Any]] = None
    success: bool = True


class SyncPerformanceLogger:
    """
    Performance logger for repository syncs.

    Emits one structured record per sync to the ``reposync.sync.records``
    logger (``name``, ``outcome``, ``headCommit`` or ``error``, ``durationMs``,
    attached to the log record as ``sync_record``) and keeps the records for the run summary.
    """

    def __init__(self, logger_name: str = 'reposync.git_sync.performance'):
        self.logger = logging.getLogger(logger_name)
        self.record_logger = logging.getLogger('reposync.sync.records')
        self._metrics: Dict[str, PerformanceMetrics] = {}
        self._records: List[Dict[str, Any]] = []
        self._lock = threading.Lock()

    @contextmanager
    def time_operation(
        self,
        operation: str,
        context: Optional[Dict[str, Any]] = None,
        log_level: int = logging.DEBUG
    ) -> Generator[PerformanceMetrics, None, None]:
        """
        Context manager for timing operations.

        Yields:
            PerformanceMetrics filled in when the block exits
        """
        start_time = time.monotonic()
        metrics = PerformanceMetrics(
            operation=operation,
            duration=0.0,
            start_time=start_time,
            end_time=start_time,
            context=context
        )
        self.logger.log(log_level, f"Starting {operation}")

        try:
            yield metrics
        except BaseException:
            metrics.success = False
            raise
        finally:
            metrics.end_time = time.monotonic()
            metrics.duration = metrics.end_time - start_time
            with self._lock:
                self._metrics[operation] = metrics

            status = "completed" if metrics.success else "failed"
            self.logger.log(log_level, f"{operation} {status} in {metrics.duration:.3f}s")

            if metrics.duration > SLOW_SYNC_THRESHOLD:
                self.logger.warning(f"Slow operation detected: '{operation}' took {metrics.duration:.3f}s")

    def record_sync(self, result: SyncResult) -> Dict[str, Any]:
        """Emit the structured record for a finished sync."""
        record = result.to_dict()
        with self._lock:
            self._records.append(record)

        level = logging.INFO if result.success else logging.WARNING
        fields = " ".join(f"{key}={value}" for key, value in record.items() if key != "message")
        self.record_logger.log(level, f"sync record {fields}", extra={'operation': 'sync_record', 'sync_record': record})
        return record

    def get_records(self) -> List[Dict[str, Any]]:
        with self._lock:
            return list(self._records)

    def get_metrics(self) -> Dict[str, PerformanceMetrics]:
        with self._lock:
            return dict(self._metrics)

    def log_performance_summary(self) -> None:
        """Log a summary of sync timings."""
        metrics = self.get_metrics()
        if not metrics:
            self.logger.info("No sync operations recorded")
            return

        total = sum(m.duration for m in metrics.values())
        slowest = max(metrics.values(), key=lambda m: m.duration)
        failed = sum(1 for m in metrics.values() if not m.success)
        self.logger.info(
            f"Sync timings: {len(metrics)} operations, {total:.3f}s total, "
            f"slowest '{slowest.operation}' {slowest.duration:.3f}s, {failed} failed"
        )
