"""Process entry point for reposync runs (init containers, cron jobs)."""

import logging
import signal
import sys
from typing import Optional

from .config import Config, load_configuration, validate_configuration
from .driver import SyncDriver, SyncReport
from .git_sync.cancellation import CancelToken


EXIT_SUCCESS = 0
EXIT_SYNC_FAILED = 1
EXIT_CONFIG_ERROR = 2


class StructuredFormatter(logging.Formatter):
    """Formatter that prefixes records carrying an ``operation`` extra."""

    def format(self, record):
        # Add structured data if available, on a copy so other handlers see the original
        if hasattr(record, 'operation'):
            record = logging.makeLogRecord(record.__dict__)
            record.msg = f"[{record.operation}] {record.msg}"
        return super().format(record)


def setup_logging(config: Config) -> None:
    """Setup logging configuration with structured logging."""
    logging.basicConfig(
        level=getattr(logging, config.log_level),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    formatter = StructuredFormatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    logger = logging.getLogger('reposync')
    logger.setLevel(getattr(logging, config.log_level))

    # Add console handler if not already present
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(formatter)
        logger.addHandler(handler)
        logger.propagate = False

    # GitPython logs every command at debug level
    logging.getLogger('git').setLevel(max(logging.INFO, getattr(logging, config.log_level)))


def install_signal_handlers(token: CancelToken) -> None:
    """Cancel running syncs on SIGTERM/SIGINT so locks and sentinels are handled cleanly."""
    def handle_signal(signum, frame):
        logging.getLogger('reposync.runner').warning(
            f"Received signal {signum}, cancelling running syncs"
        )
        token.cancel()

    for signum in (signal.SIGTERM, signal.SIGINT):
        signal.signal(signum, handle_signal)


def run(config: Config, cancel_token: Optional[CancelToken] = None) -> SyncReport:
    """Run one synchronization pass over the configured repositories."""
    driver = SyncDriver(config)
    report = driver.run(cancel_token=cancel_token)
    driver.syncer.perf_logger.log_performance_summary()
    return report


def exit_code_for(report: SyncReport) -> int:
    """Process exit status for a finished run."""
    return EXIT_SUCCESS if report.success else EXIT_SYNC_FAILED


def main() -> None:
    """Main entry point: sync every configured repository and exit with the aggregate status."""
    startup_logger = logging.getLogger('reposync.startup')

    try:
        config = load_configuration()
    except ValueError as e:
        logging.basicConfig(level=logging.ERROR)
        startup_logger.critical(str(e))
        sys.exit(EXIT_CONFIG_ERROR)

    setup_logging(config)
    startup_logger.info("=" * 60)
    startup_logger.info("reposync - repository synchronization")
    startup_logger.info(f"Workspace root: {config.workspace_root}")
    startup_logger.info("=" * 60)

    # Report configuration validation issues
    validation_issues = validate_configuration(config)
    for issue in validation_issues:
        if issue.startswith("ERROR:"):
            startup_logger.error(issue[7:])  # Remove "ERROR: " prefix
        elif issue.startswith("WARNING:"):
            startup_logger.warning(issue[9:])  # Remove "WARNING: " prefix

    error_count = sum(1 for issue in validation_issues if issue.startswith("ERROR:"))
    if error_count > 0:
        startup_logger.critical(f"Sync aborted due to {error_count} configuration error(s)")
        sys.exit(EXIT_CONFIG_ERROR)

    token = CancelToken()
    install_signal_handlers(token)

    report = run(config, cancel_token=token)

    summary_logger = logging.getLogger('reposync.summary')
    for line in report.summary().splitlines():
        summary_logger.info(line)

    if report.failures and report.success:
        summary_logger.warning(
            f"Best-effort run finished with failures: {', '.join(result.name for result in report.failures)}"
        )

    sys.exit(exit_code_for(report))
