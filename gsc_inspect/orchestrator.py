from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Iterator, List, Optional, Sequence

from .checkpoint import CheckpointStore
from .controller import ThreadPoolController
from .executor import InspectionExecutor
from .metrics import MetricsCollector
from .models import RunConfig, RunReport, Success, Task, TaskOutcome
from .rate_limiter import RateLimiter
from .storage import JsonlPartialStore, ResultWriter

logger = logging.getLogger(__name__)


def iter_batches(tasks: Sequence[Task], batch_size: int) -> Iterator[List[Task]]:
    """Consecutive slices of batch_size; the last one may be shorter."""
    if batch_size <= 0:
        raise ValueError("batch_size must be positive")
    for start in range(0, len(tasks), batch_size):
        yield list(tasks[start:start + batch_size])


class BatchOrchestrator:
    """Drives one pass over a task list in sequential, internally concurrent batches.

    Each batch runs its tasks in parallel (rate limiter acquire, then the
    executor) and is fully settled before its successes are appended to the
    partial store and marked processed. Cancellation is checked between
    batches: the current batch always finishes, then the checkpoint is saved
    and whatever was collected is written out.
    """

    def __init__(
        self,
        config: RunConfig,
        rate_limiter: RateLimiter,
        executor: InspectionExecutor,
        checkpoint: CheckpointStore,
        partial_store: JsonlPartialStore,
        writer: ResultWriter,
        metrics: Optional[MetricsCollector] = None,
        sleep: Optional[Callable[[float], None]] = None,
    ) -> None:
        self._config = config
        self._rate_limiter = rate_limiter
        self._executor = executor
        self._checkpoint = checkpoint
        self._partial = partial_store
        self._writer = writer
        self._metrics = metrics
        self._sleep = sleep

    def run(self, tasks: Sequence[Task], cancel_event: Optional[threading.Event] = None) -> RunReport:
        config = self._config
        config.validate()
        cancel_event = cancel_event or threading.Event()
        started = time.time()

        report = RunReport()
        if config.resume:
            report.processed_urls = self._checkpoint.load()
            # a crash can leave durable successes the checkpoint never saw
            for record in self._partial.read_all():
                url = record.get("url")
                if isinstance(url, str):
                    report.processed_urls.add(url)
                    report.results.append(record)
        else:
            self._partial.discard()

        pending = [t for t in tasks if t.url not in report.processed_urls]
        report.skipped = len(tasks) - len(pending)
        if report.skipped:
            logger.info("Skipping %d already-processed URL(s)", report.skipped)

        batches = list(iter_batches(pending, config.batch_size))
        total = len(batches)
        logger.info("Processing %d URL(s) in %d batch(es) of up to %d", len(pending), total, config.batch_size)

        controller = ThreadPoolController(max_workers=config.batch_size)
        try:
            for index, batch in enumerate(batches):
                if cancel_event.is_set():
                    break

                outcomes = controller.run_batch(self._process, batch)
                self._settle(report, outcomes)
                report.batches_run += 1
                logger.info(
                    "Batch %d/%d done: %d ok, %d failed (total ok=%d failed=%d)",
                    index + 1, total,
                    sum(1 for o in outcomes if isinstance(o, Success)),
                    sum(1 for o in outcomes if not isinstance(o, Success)),
                    report.success_count, report.error_count,
                )

                if index < total - 1 and config.delay_ms > 0 and not cancel_event.is_set():
                    self._pause(config.delay_ms / 1000.0, cancel_event)
        finally:
            controller.stop(wait=True)

        report.elapsed_seconds = time.time() - started
        if cancel_event.is_set() and report.batches_run < total:
            self._shutdown(report)
        else:
            self._finish(report)
        return report

    def _process(self, task: Task) -> TaskOutcome:
        self._rate_limiter.acquire(task.property)
        outcome = self._executor.execute(task)
        if self._metrics:
            self._metrics.record_outcome(isinstance(outcome, Success))
        return outcome

    def _settle(self, report: RunReport, outcomes: Sequence[TaskOutcome]) -> None:
        successes = [o.payload for o in outcomes if isinstance(o, Success)]
        # durable append first: a url is only marked processed once its result is on disk
        self._partial.write(successes)
        for payload in successes:
            report.results.append(payload)
            report.processed_urls.add(payload["url"])
        for outcome in outcomes:
            if not isinstance(outcome, Success):
                report.errors.append(outcome.error)

    def _pause(self, seconds: float, cancel_event: threading.Event) -> None:
        if self._sleep is not None:
            self._sleep(seconds)
        else:
            cancel_event.wait(seconds)

    def _finish(self, report: RunReport) -> None:
        self._write_output(report, keep_partial=False)
        self._checkpoint.clear()

    def _shutdown(self, report: RunReport) -> None:
        report.interrupted = True
        logger.warning("Interrupted after %d batch(es); saving checkpoint", report.batches_run)
        self._checkpoint.save(report.processed_urls)
        if report.results or report.errors:
            self._write_output(report, keep_partial=True)

    def _write_output(self, report: RunReport, keep_partial: bool) -> None:
        self._writer.write(
            report.results,
            report.errors,
            filter_verdict=self._config.filter_verdict,
            only_not_indexed=self._config.only_not_indexed,
            partial_store=None if keep_partial else self._partial,
        )
