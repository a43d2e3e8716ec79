from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Sequence

from .models import ErrorRecord, Task, TaskOutcome, TerminalFailure

logger = logging.getLogger(__name__)


class ThreadPoolController:
    """Runs task functions on a bounded thread pool.

    Every submitted task settles to an outcome: an exception escaping the
    task function becomes a TerminalFailure instead of cancelling its
    siblings.
    """

    def __init__(self, max_workers: int) -> None:
        self._executor = ThreadPoolExecutor(max_workers=max(1, max_workers), thread_name_prefix="inspect")

    def stop(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait, cancel_futures=False)

    def run_batch(self, fn: Callable[[Task], TaskOutcome], tasks: Sequence[Task]) -> List[TaskOutcome]:
        """Dispatch every task, then wait for all of them; outcomes keep task order."""
        futures = [self._executor.submit(self._wrap_task, fn, task) for task in tasks]
        return [fut.result() for fut in futures]

    @staticmethod
    def _wrap_task(fn: Callable[[Task], TaskOutcome], task: Task) -> TaskOutcome:
        try:
            return fn(task)
        except Exception as exc:  # noqa: BLE001
            logger.exception("url=%s unexpected error in worker", task.url)
            return TerminalFailure(ErrorRecord(task.url, None, f"{type(exc).__name__}: {exc}"))
