"""Bulk URL inspection against the Google Search Console URL Inspection API.

Turns a list of (url, property) tasks into inspection results or classified
errors while respecting per-property rate limits, retrying by failure class
and checkpointing progress so an interrupted run can resume.

Key modules:
    orchestrator -- BatchOrchestrator driving sequential, concurrent batches
    executor     -- InspectionExecutor with the per-status retry policy
    rate_limiter -- RateLimiter, one token bucket per property
    checkpoint   -- CheckpointStore for resume
    controller   -- ThreadPoolController for bounded in-batch concurrency
    backoff      -- BackoffStrategy for deterministic exponential delays
    storage      -- JsonlPartialStore and ResultWriter for output files
    formatter    -- API response to CSV row flattening and run summary
    validator    -- input CSV loading and validation
    auth         -- credential providers built on google-auth
    metrics      -- MetricsCollector for per-run request statistics
    models       -- Task, outcomes, ErrorRecord, RunConfig, RunReport
"""

__version__ = "0.1.0"
