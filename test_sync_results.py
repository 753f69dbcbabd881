#!/usr/bin/env python3
"""
Test sync results, error responses and the structured sync records.
"""

import logging
from pathlib import Path

# Add the project root to the path
import sys
sys.path.insert(0, str(Path(__file__).parent))

from reposync.errors import (
    DivergedHistoryError, ErrorKind, LockContentionError, SyncError, error_handler
)
from reposync.git_sync import SyncOutcome, create_sync_result
from reposync.git_sync.performance_logger import SyncPerformanceLogger
from reposync.runner import StructuredFormatter


class RecordCollector(logging.Handler):
    """Keeps emitted log records in memory."""

    def __init__(self):
        super().__init__()
        self.records = []

    def emit(self, record):
        self.records.append(record)


def test_sync_result_records():
    """Successful results carry a head commit, failed ones an error kind."""
    print("Testing sync result records...")

    head = "0123456789abcdef0123456789abcdef01234567"
    result = create_sync_result("assisted-service", SyncOutcome.UP_TO_DATE, head_commit=head)
    result.duration_ms = 42
    assert result.success
    assert result.to_dict() == {
        "name": "assisted-service",
        "outcome": "upToDate",
        "durationMs": 42,
        "headCommit": head,
    }
    print("  ✓ upToDate record")

    failed = create_sync_result("docs", SyncOutcome.FAILED, error=ErrorKind.LOCK_CONTENTION, message="busy")
    assert not failed.success
    assert failed.to_dict() == {
        "name": "docs",
        "outcome": "failed",
        "durationMs": 0,
        "error": "LockContention",
        "message": "busy",
    }
    print("  ✓ failed record")

    assert create_sync_result("x", SyncOutcome.FAILED).error is ErrorKind.UNEXPECTED
    assert create_sync_result("x", SyncOutcome.CLONED, error=ErrorKind.INVALID_SPEC).error is None
    print("  ✓ Error kind present exactly on failures")


def test_error_handler():
    """Exceptions map to error kinds and structured responses."""
    print("Testing error handler...")

    diverged = DivergedHistoryError("cannot fast-forward", local_commit="a" * 40, remote_commit="b" * 40)
    response = error_handler.handle_sync_error(diverged, {"name": "repo"})
    assert response.error_code == "DivergedHistory"
    assert response.to_dict()["context"] == {"name": "repo"}
    assert error_handler.kind_of(diverged) is ErrorKind.DIVERGED_HISTORY
    print("  ✓ Sync errors keep their kind")

    assert error_handler.kind_of(LockContentionError("held")) is ErrorKind.LOCK_CONTENTION
    assert error_handler.kind_of(SyncError("x", kind=ErrorKind.INVALID_SPEC)) is ErrorKind.INVALID_SPEC
    assert error_handler.kind_of(PermissionError("read-only volume")) is ErrorKind.CORRUPT_WORKSPACE
    assert error_handler.kind_of(RuntimeError("boom")) is ErrorKind.UNEXPECTED

    response = error_handler.handle_sync_error(RuntimeError("boom"))
    assert response.error_code == "Unexpected"
    assert "boom" in response.message
    print("  ✓ Filesystem and unexpected errors classified")


def test_structured_sync_record_logged():
    """Each recorded sync is logged once with its record attached."""
    print("Testing structured sync record logging...")

    collector = RecordCollector()
    record_logger = logging.getLogger('reposync.sync.records')
    record_logger.addHandler(collector)
    previous_level = record_logger.level
    record_logger.setLevel(logging.DEBUG)

    try:
        perf_logger = SyncPerformanceLogger()
        with perf_logger.time_operation("sync docs"):
            pass
        perf_logger.record_sync(create_sync_result("docs", SyncOutcome.CLONED, head_commit="c" * 40))
        perf_logger.record_sync(
            create_sync_result("api", SyncOutcome.FAILED, error=ErrorKind.NETWORK_UNAVAILABLE, message="down")
        )
        perf_logger.log_performance_summary()
    finally:
        record_logger.removeHandler(collector)
        record_logger.setLevel(previous_level)

    assert len(collector.records) == 2
    cloned, failed = collector.records
    assert cloned.levelno == logging.INFO
    assert cloned.sync_record["outcome"] == "cloned"
    assert "name=docs" in cloned.getMessage()
    assert failed.levelno == logging.WARNING
    assert failed.sync_record["error"] == "NetworkUnavailable"
    print("  ✓ One log record per sync, failures at warning level")

    assert "sync docs" in perf_logger.get_metrics()
    assert len(perf_logger.get_records()) == 2
    print("  ✓ Timings and records kept for the run summary")


def test_structured_formatter_leaves_record_alone():
    """The operation prefix is added once per format call and never stored on the record."""
    print("Testing structured log formatter...")

    formatter = StructuredFormatter('%(levelname)s - %(message)s')
    record = logging.makeLogRecord({
        "name": "reposync.git_sync", "levelno": logging.INFO, "levelname": "INFO",
        "msg": "fetched %s", "args": ("main",), "operation": "fetch assisted-service",
    })

    first = formatter.format(record)
    second = formatter.format(record)
    assert first == "INFO - [fetch assisted-service] fetched main", first
    assert second == first
    assert record.msg == "fetched %s"
    assert logging.Formatter('%(message)s').format(record) == "fetched main"
    print("  ✓ Prefix added once, other handlers see the original message")

    plain = logging.makeLogRecord({"msg": "no operation", "levelname": "INFO"})
    assert formatter.format(plain) == "INFO - no operation"
    print("  ✓ Records without an operation are unchanged")


def run_all_tests():
    """Run all result tests."""
    print("Sync Result Test Suite")
    print("=" * 60)

    tests = [
        test_sync_result_records,
        test_error_handler,
        test_structured_sync_record_logged,
        test_structured_formatter_leaves_record_alone,
    ]

    passed = 0
    failed = 0

    for test in tests:
        try:
            test()
            passed += 1
            print("  PASSED\n")
        except Exception as e:
            failed += 1
            print(f"  FAILED: {e!r}\n")

    print("=" * 60)
    print(f"Test Results: {passed} passed, {failed} failed")

    if failed == 0:
        print("All tests passed! ✓")
        return True
    else:
        print(f"{failed} test(s) failed! ✗")
        return False


if __name__ == "__main__":
    success = run_all_tests()
    sys.exit(0 if success else 1)
