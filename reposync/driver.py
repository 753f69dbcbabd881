"""Multi-repository orchestration for reposync."""

import logging
from concurrent.futures import FIRST_COMPLETED, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from .config import Config
from .errors import ErrorKind
from .git_sync import RepositorySyncer, RepositorySpec, SyncOutcome, SyncResult, create_sync_result
from .git_sync.cancellation import CancelToken


@dataclass
class SyncReport:
    """Aggregate outcome of a sync run, in configuration order."""
    results: List[SyncResult] = field(default_factory=list)
    fail_fast: bool = False

    @property
    def failures(self) -> List[SyncResult]:
        return [result for result in self.results if not result.success]

    @property
    def success(self) -> bool:
        """
        Overall status of the run.

        Under fail-fast any failed repository fails the run. Under
        best-effort the run succeeds and failures are reported in
        ``failures``.
        """
        if self.fail_fast:
            return not self.failures
        return True

    def summary(self) -> str:
        """One line per repository, failures included."""
        lines = []
        for result in self.results:
            if result.success:
                lines.append(f"{result.name}: {result.outcome.value} {result.head_commit} ({result.duration_ms}ms)")
            else:
                lines.append(f"{result.name}: failed [{result.error.value}] {result.message}")
        mode = "fail-fast" if self.fail_fast else "best-effort"
        lines.append(
            f"{len(self.results) - len(self.failures)} synced, {len(self.failures)} failed ({mode})"
        )
        return "\n".join(lines)


class SyncDriver:
    """
    Runs RepositorySyncer.sync for every configured repository.

    Repositories are synced independently on a thread pool bounded by
    ``concurrency_limit``. In best-effort mode every repository is attempted
    whatever happens to the others. In fail-fast mode the first failure stops
    new syncs from being scheduled; syncs already running are left to finish
    and the repositories never started are reported as Cancelled.
    """

    def __init__(self, config: Config, syncer: Optional[RepositorySyncer] = None):
        self.config = config
        self.syncer = syncer or RepositorySyncer(config)
        self.logger = logging.getLogger('reposync.driver')

    def run(
        self,
        specs: Optional[Sequence[RepositorySpec]] = None,
        cancel_token: Optional[CancelToken] = None
    ) -> SyncReport:
        """
        Synchronize repositories and aggregate the results.

        Args:
            specs: Repositories to sync; defaults to the configured list
            cancel_token: Token cancelling every sync of this run

        Returns:
            SyncReport listing the outcome of every repository
        """
        specs = list(self.config.repositories if specs is None else specs)
        token = cancel_token or CancelToken()
        fail_fast = self.config.fail_fast
        results: Dict[int, SyncResult] = {}

        runnable = []
        for index, spec in enumerate(specs):
            duplicate = self._duplicate_reason(spec, specs[:index])
            if duplicate:
                self.logger.error(duplicate)
                results[index] = create_sync_result(
                    spec.name, SyncOutcome.FAILED, error=ErrorKind.INVALID_SPEC, message=duplicate
                )
            else:
                runnable.append((index, spec))

        self.logger.info(
            f"Syncing {len(runnable)} repositories with concurrency {self.config.concurrency_limit} "
            f"({'fail-fast' if fail_fast else 'best-effort'})"
        )

        stopped = fail_fast and bool(results)
        pending = list(runnable)
        with ThreadPoolExecutor(
            max_workers=self.config.concurrency_limit,
            thread_name_prefix="reposync"
        ) as executor:
            running = {}
            while pending or running:
                # Submit lazily so a fail-fast stop leaves the rest unscheduled
                while pending and not stopped and len(running) < self.config.concurrency_limit:
                    index, spec = pending.pop(0)
                    running[executor.submit(self.syncer.sync, spec, token)] = index
                if not running:
                    break

                done, _ = wait(running, return_when=FIRST_COMPLETED)
                for future in done:
                    result = future.result()
                    results[running.pop(future)] = result
                    if not result.success:
                        self.logger.warning(f"Repository '{result.name}' failed: {result.error.value}")
                        if fail_fast and not stopped:
                            stopped = True
                            self.logger.error(
                                f"Fail-fast: not scheduling further syncs after '{result.name}' failed"
                            )

        for index, spec in pending:
            results[index] = create_sync_result(
                spec.name, SyncOutcome.FAILED, error=ErrorKind.CANCELLED,
                message="not attempted, fail-fast stopped the run after an earlier failure",
                attempts=0
            )

        report = SyncReport(
            results=[results[index] for index in sorted(results)],
            fail_fast=fail_fast
        )
        if not report.success:
            self.logger.error(
                f"Run failed under fail-fast: {', '.join(result.name for result in report.failures)}"
            )
        return report

    @staticmethod
    def _duplicate_reason(spec: RepositorySpec, earlier: Sequence[RepositorySpec]) -> Optional[str]:
        for other in earlier:
            if other.name == spec.name:
                return f"Duplicate repository name '{spec.name}'"
            if Path(other.local_path).resolve() == Path(spec.local_path).resolve():
                return f"Repository '{spec.name}' uses the same local path as '{other.name}': {spec.local_path}"
        return None
