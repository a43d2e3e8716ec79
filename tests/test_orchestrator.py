"""Tests for the BatchOrchestrator: batching, pacing, checkpointing and resume."""

import json
import os
import tempfile
import threading
import time
import unittest
from unittest.mock import MagicMock, patch

import requests

from gsc_inspect.auth import StaticTokenProvider
from gsc_inspect.checkpoint import CheckpointStore
from gsc_inspect.controller import ThreadPoolController
from gsc_inspect.errors import ConfigError
from gsc_inspect.executor import InspectionExecutor
from gsc_inspect.metrics import MetricsCollector
from gsc_inspect.models import ErrorRecord, RunConfig, Success, Task, TerminalFailure
from gsc_inspect.orchestrator import BatchOrchestrator, iter_batches
from gsc_inspect.rate_limiter import RateLimiter
from gsc_inspect.storage import JsonlPartialStore, ResultWriter, partial_path

PROPERTY = "https://example.com/"


def _tasks(n: int):
    return [Task(f"https://example.com/page-{i}", PROPERTY) for i in range(n)]


def _payload(url: str):
    return {"url": url, "inspectionResult": {"indexStatusResult": {"verdict": "PASS"}}}


class FakeExecutor:
    """Records calls; fails urls listed in fail_urls, raises for raise_urls."""

    def __init__(self, fail_urls=(), raise_urls=(), delay: float = 0.0) -> None:
        self.fail_urls = set(fail_urls)
        self.raise_urls = set(raise_urls)
        self.delay = delay
        self.calls = []
        self.in_flight = 0
        self.max_in_flight = 0
        self._lock = threading.Lock()

    def execute(self, task):
        with self._lock:
            self.calls.append(task.url)
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                time.sleep(self.delay)
            if task.url in self.raise_urls:
                raise RuntimeError("boom")
            if task.url in self.fail_urls:
                return TerminalFailure(ErrorRecord(task.url, 404, "Request failed with status code 404"))
            return Success(_payload(task.url))
        finally:
            with self._lock:
                self.in_flight -= 1


class OrchestratorTestCase(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.dir = self._tmp.name
        self.pauses = []

    def _orchestrator(self, executor, pause=None, metrics=None, **config):
        config.setdefault("batch_size", 2)
        config.setdefault("delay_ms", 1500)
        config.setdefault("requests_per_minute", 60000)
        self.config = RunConfig(output_dir=self.dir, **config)
        self.checkpoint = CheckpointStore(self.dir)
        self.partial = JsonlPartialStore(partial_path(self.dir))
        return BatchOrchestrator(
            config=self.config,
            rate_limiter=RateLimiter(self.config.requests_per_minute),
            executor=executor,
            checkpoint=self.checkpoint,
            partial_store=self.partial,
            writer=ResultWriter(self.dir),
            metrics=metrics,
            sleep=pause or self.pauses.append,
        )

    def _read_json(self, name):
        with open(os.path.join(self.dir, name), encoding="utf-8") as f:
            return json.load(f)


class TestIterBatches(unittest.TestCase):
    def test_last_batch_may_be_smaller(self):
        sizes = [len(b) for b in iter_batches(_tasks(5), 2)]
        self.assertEqual(sizes, [2, 2, 1])

    def test_empty(self):
        self.assertEqual(list(iter_batches([], 3)), [])

    def test_rejects_non_positive_size(self):
        with self.assertRaises(ValueError):
            list(iter_batches(_tasks(1), 0))


class TestFullRun(OrchestratorTestCase):
    def test_five_tasks_batch_size_two(self):
        """3 batches (2, 2, 1), delay applied twice, 5 successes and no errors."""
        session = MagicMock()
        session.post.side_effect = lambda *a, **kw: _ok_response()
        executor = InspectionExecutor(StaticTokenProvider("t"), max_retries=3, session=session, sleep=lambda s: None)
        orchestrator = self._orchestrator(executor)

        with patch.object(
            ThreadPoolController, "run_batch", autospec=True, side_effect=ThreadPoolController.run_batch
        ) as run_batch:
            report = orchestrator.run(_tasks(5))

        self.assertEqual([len(c.args[2]) for c in run_batch.call_args_list], [2, 2, 1])
        self.assertEqual(report.batches_run, 3)
        self.assertEqual(self.pauses, [1.5, 1.5])
        self.assertEqual(report.success_count, 5)
        self.assertEqual(report.error_count, 0)
        self.assertFalse(report.interrupted)

    def test_checkpoint_and_partial_absent_after_success(self):
        report = self._orchestrator(FakeExecutor()).run(_tasks(3))
        self.assertEqual(len(report.processed_urls), 3)
        self.assertFalse(self.checkpoint.exists())
        self.assertFalse(os.path.exists(self.partial.path))
        self.assertEqual(len(self._read_json("coverage.json")), 3)

    def test_results_keep_task_order(self):
        report = self._orchestrator(FakeExecutor(delay=0.01), batch_size=3).run(_tasks(7))
        self.assertEqual([r["url"] for r in report.results], [t.url for t in _tasks(7)])

    def test_no_delay_when_zero(self):
        self._orchestrator(FakeExecutor(), delay_ms=0).run(_tasks(5))
        self.assertEqual(self.pauses, [])

    def test_concurrency_bounded_by_batch_size(self):
        executor = FakeExecutor(delay=0.05)
        self._orchestrator(executor, batch_size=3, delay_ms=0).run(_tasks(7))
        self.assertLessEqual(executor.max_in_flight, 3)
        self.assertEqual(len(executor.calls), 7)

    def test_task_failure_does_not_abort_run(self):
        tasks = _tasks(4)
        executor = FakeExecutor(fail_urls=[tasks[1].url], raise_urls=[tasks[2].url])
        report = self._orchestrator(executor).run(tasks)
        self.assertEqual(report.success_count, 2)
        self.assertEqual([e.url for e in report.errors], [tasks[1].url, tasks[2].url])
        self.assertIn("RuntimeError", report.errors[1].message)
        self.assertNotIn(tasks[1].url, report.processed_urls)
        self.assertEqual(len(self._read_json("errors.json")), 2)
        self.assertFalse(self.checkpoint.exists())

    def test_metrics_count_outcomes(self):
        tasks = _tasks(3)
        metrics = MetricsCollector()
        self._orchestrator(FakeExecutor(fail_urls=[tasks[0].url]), metrics=metrics).run(tasks)
        snap = metrics.snapshot()
        self.assertEqual(snap.success_count, 2)
        self.assertEqual(snap.failure_count, 1)

    def test_quota_403_task_succeeds_after_retries(self):
        """403 quota twice then 200 with max_retries=3 ends as a success."""
        quota = _make_response(403, {"error": {"code": 403, "message": "Quota exceeded for quota metric"}})
        session = MagicMock()
        session.post.side_effect = [quota, quota, _ok_response()]
        sleeps = []
        executor = InspectionExecutor(StaticTokenProvider("t"), max_retries=3, session=session, sleep=sleeps.append)
        report = self._orchestrator(executor).run(_tasks(1))
        self.assertEqual(report.success_count, 1)
        self.assertEqual(sleeps, [1.0, 2.0])
        self.assertEqual(session.post.call_count, 3)
        self.assertEqual(report.errors, [])

    def test_empty_task_list_is_noop_success(self):
        executor = FakeExecutor()
        report = self._orchestrator(executor).run([])
        self.assertEqual(executor.calls, [])
        self.assertEqual(report.batches_run, 0)
        self.assertEqual(self._read_json("coverage.json"), [])

    def test_invalid_batch_size_rejected_before_run(self):
        executor = FakeExecutor()
        for size in (0, -1):
            with self.assertRaises(ConfigError):
                self._orchestrator(executor, batch_size=size).run(_tasks(3))
        self.assertEqual(executor.calls, [])


class TestInterruptAndResume(OrchestratorTestCase):
    def test_interrupt_then_resume(self):
        """k of n done before interruption; resume processes n - k and covers all n."""
        tasks = _tasks(5)
        cancel = threading.Event()

        first = FakeExecutor()
        report = self._orchestrator(first, pause=lambda s: cancel.set()).run(tasks, cancel_event=cancel)

        self.assertTrue(report.interrupted)
        self.assertEqual(report.batches_run, 1)
        self.assertEqual(len(first.calls), 2)
        self.assertTrue(self.checkpoint.exists())
        self.assertEqual(self.checkpoint.load(), {t.url for t in tasks[:2]})
        self.assertEqual(len(self._read_json("coverage.json")), 2)

        second = FakeExecutor()
        resumed = self._orchestrator(second, resume=True).run(tasks)

        self.assertEqual(second.calls, [t.url for t in tasks[2:]])
        self.assertEqual(resumed.skipped, 2)
        self.assertEqual(resumed.processed_urls, {t.url for t in tasks})
        self.assertEqual(sorted(r["url"] for r in resumed.results), sorted(t.url for t in tasks))
        self.assertEqual(len(self._read_json("coverage.json")), 5)
        self.assertFalse(self.checkpoint.exists())

    def test_cancel_before_start_saves_empty_checkpoint(self):
        cancel = threading.Event()
        cancel.set()
        executor = FakeExecutor()
        report = self._orchestrator(executor).run(_tasks(3), cancel_event=cancel)
        self.assertTrue(report.interrupted)
        self.assertEqual(executor.calls, [])
        self.assertEqual(self.checkpoint.load(), set())
        self.assertTrue(self.checkpoint.exists())

    def test_interrupted_run_with_only_failures_writes_errors(self):
        tasks = _tasks(4)
        cancel = threading.Event()
        executor = FakeExecutor(fail_urls=[t.url for t in tasks])
        report = self._orchestrator(executor, pause=lambda s: cancel.set()).run(tasks, cancel_event=cancel)

        self.assertTrue(report.interrupted)
        self.assertEqual(report.success_count, 0)
        self.assertEqual([e["url"] for e in self._read_json("errors.json")], [t.url for t in tasks[:2]])
        self.assertEqual(self._read_json("coverage.json"), [])
        self.assertEqual(self.checkpoint.load(), set())

    def test_cancel_during_last_batch_completes_normally(self):
        cancel = threading.Event()

        class CancellingExecutor(FakeExecutor):
            def execute(self, task):
                cancel.set()
                return super().execute(task)

        report = self._orchestrator(CancellingExecutor(), batch_size=5).run(_tasks(3), cancel_event=cancel)
        self.assertFalse(report.interrupted)
        self.assertFalse(self.checkpoint.exists())

    def test_resume_recovers_successes_from_partial_file(self):
        """After a hard crash only the partial file survives; resume skips what it holds."""
        tasks = _tasks(4)
        self._orchestrator(FakeExecutor())
        self.partial.write([_payload(tasks[0].url), _payload(tasks[1].url)])

        executor = FakeExecutor()
        report = self._orchestrator(executor, resume=True).run(tasks)
        self.assertEqual(executor.calls, [tasks[2].url, tasks[3].url])
        self.assertEqual(report.success_count, 4)

    def test_corrupt_checkpoint_on_resume_reprocesses_everything(self):
        with open(os.path.join(self.dir, ".checkpoint.json"), "w", encoding="utf-8") as f:
            f.write("garbage")
        executor = FakeExecutor()
        self._orchestrator(executor, resume=True).run(_tasks(3))
        self.assertEqual(len(executor.calls), 3)

    def test_fresh_run_ignores_stale_partial(self):
        tasks = _tasks(2)
        self._orchestrator(FakeExecutor())
        self.partial.write([_payload(tasks[0].url)])
        executor = FakeExecutor()
        self._orchestrator(executor).run(tasks)
        self.assertEqual(len(executor.calls), 2)


def _make_response(status, body):
    resp = requests.Response()
    resp.status_code = status
    resp._content = json.dumps(body).encode("utf-8")
    resp.encoding = "utf-8"
    return resp


def _ok_response():
    return _make_response(200, {"inspectionResult": {"indexStatusResult": {"verdict": "PASS"}}})


if __name__ == "__main__":
    unittest.main()
