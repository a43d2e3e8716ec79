from __future__ import annotations

import argparse
import logging
import signal
import sys
import threading
import time
from typing import Optional, Sequence

from gsc_inspect.auth import authenticate
from gsc_inspect.backoff import BackoffStrategy
from gsc_inspect.checkpoint import CheckpointStore
from gsc_inspect.constants import DAILY_QUOTA_PER_PROPERTY, DEFAULTS
from gsc_inspect.errors import InspectorError
from gsc_inspect.executor import InspectionExecutor
from gsc_inspect.formatter import generate_summary
from gsc_inspect.metrics import MetricsCollector
from gsc_inspect.models import RunConfig, RunReport
from gsc_inspect.orchestrator import BatchOrchestrator
from gsc_inspect.rate_limiter import RateLimiter
from gsc_inspect.storage import JsonlPartialStore, ResultWriter, partial_path
from gsc_inspect.validator import group_by_property, read_tasks_csv

DEFAULT_AUTHORIZED_USER_PATH = ".gsc-token-cache.json"
MAX_INVALID_ROWS_SHOWN = 10

logger = logging.getLogger("gsc_inspect")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gsc-inspect",
        description="Bulk-check URL indexing status via the Google Search Console URL Inspection API",
    )
    parser.add_argument("--input", default=DEFAULTS["input_file"], help="Input CSV file path (columns: url, property)")
    parser.add_argument("--output", default=DEFAULTS["output_dir"], help="Output directory")
    parser.add_argument("--batch-size", type=int, default=DEFAULTS["batch_size"], help="URLs inspected in parallel per batch")
    parser.add_argument("--delay", type=int, default=DEFAULTS["delay_ms"], help="Delay between batches in milliseconds")
    parser.add_argument("--max-retries", type=int, default=DEFAULTS["max_retries"], help="Maximum retry attempts per request")
    parser.add_argument("--rate-limit", type=float, default=DEFAULTS["rate_limit"], help="Requests per minute per property")
    parser.add_argument("--service-account", help="Service account JSON key file")
    parser.add_argument(
        "--authorized-user",
        default=DEFAULT_AUTHORIZED_USER_PATH,
        help="Authorized-user JSON (cached refresh token) used when ADC is unavailable",
    )
    parser.add_argument("--language", default=DEFAULTS["language"], help="Language code for inspection")
    parser.add_argument("--dry-run", action="store_true", help="Validate input and show quota estimate only")
    parser.add_argument("--resume", action="store_true", help="Resume from checkpoint")
    parser.add_argument("--filter-verdict", help="Filter output by verdict (PASS, FAIL, NEUTRAL)")
    parser.add_argument("--only-not-indexed", action="store_true", help="Only include non-indexed URLs in output")
    parser.add_argument("--log-level", default="INFO", help="Logging level (DEBUG, INFO, WARNING)")
    return parser


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def install_signal_handlers(cancel_event: threading.Event) -> None:
    def _handle(signum, _frame) -> None:
        if not cancel_event.is_set():
            print("\nInterrupted! Finishing the current batch, then saving checkpoint...")
            cancel_event.set()

    signal.signal(signal.SIGINT, _handle)
    signal.signal(signal.SIGTERM, _handle)


def print_summary(report: RunReport, metrics: MetricsCollector, output_dir: str) -> None:
    print("\n-- Summary ------------------------------\n")
    print(f"Total processed:  {report.success_count}")
    print(f"Errors:           {report.error_count}")
    if report.skipped:
        print(f"Skipped (resume): {report.skipped}")

    if report.results:
        summary = generate_summary(report.results)
        print("\nBy verdict:")
        for verdict, count in summary["by_verdict"].items():
            print(f"  {verdict}  {count}")
        print("\nBy coverage state:")
        for state, count in summary["by_coverage_state"].items():
            print(f"  {state}  {count}")
        if summary["mobile_issues_count"] > 0:
            print(f"\nMobile usability issues: {summary['mobile_issues_count']}")
        if summary["rich_result_types"]:
            print(f"\nRich result types: {', '.join(summary['rich_result_types'])}")

    snap = metrics.snapshot()
    print(
        f"\nRequests: {snap.total_attempts} (retries={snap.retry_count} 429={snap.http_429_count} "
        f"403={snap.http_403_count} 5xx={snap.http_5xx_count} transport={snap.transport_error_count} "
        f"avg_latency_ms={snap.avg_latency_ms:.0f})"
    )
    print(f"\nCompleted in {report.elapsed_seconds:.1f}s")
    print(f"Results written to {output_dir}/")
    if report.interrupted:
        print("Checkpoint saved. Use --resume to continue.")


def run(args: argparse.Namespace) -> int:
    config = RunConfig(
        batch_size=args.batch_size,
        delay_ms=args.delay,
        max_retries=args.max_retries,
        requests_per_minute=args.rate_limit,
        resume=args.resume,
        language=args.language,
        output_dir=args.output,
        filter_verdict=args.filter_verdict,
        only_not_indexed=args.only_not_indexed,
    )
    config.validate()

    print(f"Reading {args.input}...")
    validation = read_tasks_csv(args.input)
    if validation.invalid:
        print(f"\nFound {len(validation.invalid)} invalid row(s):")
        for inv in validation.invalid[:MAX_INVALID_ROWS_SHOWN]:
            print(f"  Row {inv.row}: {'; '.join(inv.reasons)}")
        if len(validation.invalid) > MAX_INVALID_ROWS_SHOWN:
            print(f"  ... and {len(validation.invalid) - MAX_INVALID_ROWS_SHOWN} more")

    tasks = validation.valid
    if not tasks:
        print("Error: No valid URLs to process. Exiting.", file=sys.stderr)
        return 1

    by_property = group_by_property(tasks)
    print(f"\n{len(tasks)} valid URL(s) across {len(by_property)} property/properties:\n")
    for prop, prop_tasks in by_property.items():
        print(f"  {prop}  {len(prop_tasks)} URL(s)")
    print(f"\nQuota estimate: {len(tasks)} requests (daily limit: {DAILY_QUOTA_PER_PROPERTY:,}/property)")

    if args.dry_run:
        print("\n--dry-run flag set. Exiting without making API calls.")
        return 0

    print("\nAuthenticating...")
    credentials, method = authenticate(
        service_account_file=args.service_account,
        authorized_user_file=args.authorized_user,
    )
    print(f"Authenticated via {method}.")

    metrics = MetricsCollector()
    executor = InspectionExecutor(
        credentials=credentials,
        max_retries=config.max_retries,
        language=config.language,
        backoff=BackoffStrategy(),
        metrics=metrics,
    )
    orchestrator = BatchOrchestrator(
        config=config,
        rate_limiter=RateLimiter(config.requests_per_minute),
        executor=executor,
        checkpoint=CheckpointStore(config.output_dir),
        partial_store=JsonlPartialStore(partial_path(config.output_dir)),
        writer=ResultWriter(config.output_dir),
        metrics=metrics,
    )

    cancel_event = threading.Event()
    install_signal_handlers(cancel_event)
    report = orchestrator.run(tasks, cancel_event=cancel_event)

    print_summary(report, metrics, config.output_dir)
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)
    print("\nGSC URL Inspection Tool\n")
    started = time.time()
    try:
        code = run(args)
    except InspectorError as exc:
        print(f"Error: {exc.message}", file=sys.stderr)
        logger.debug("fatal error: %s", exc.to_dict())
        return 1
    logger.debug("exiting after %.1fs with status %d", time.time() - started, code)
    return code


if __name__ == "__main__":
    sys.exit(main())
