"""Flatten URL Inspection API responses into CSV-friendly rows."""

from __future__ import annotations

from collections import Counter
from datetime import timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional

from dateutil import parser as date_parser

from .constants import (
    AMP_VERDICT_LABELS,
    COVERAGE_STATE_LABELS,
    CRAWL_USER_AGENT_LABELS,
    INDEXING_STATE_LABELS,
    MOBILE_ISSUE_LABELS,
    MOBILE_USABILITY_VERDICT_LABELS,
    PAGE_FETCH_STATE_LABELS,
    ROBOTS_TXT_STATE_LABELS,
    VERDICT_LABELS,
)

NEVER_CRAWLED = "1970-01-01T00:00:00Z"

Row = Dict[str, Any]


def format_date(value: Optional[str]) -> str:
    if not value or value == NEVER_CRAWLED:
        return "Not crawled"
    try:
        parsed = date_parser.isoparse(value)
    except (ValueError, OverflowError):
        return value
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc)
    return parsed.strftime("%Y-%m-%d, %H:%M:%S")


def label(mapping: Mapping[str, str], value: Optional[str]) -> str:
    if not value:
        return ""
    return mapping.get(value, value)


def format_index_status(url: str, inspection_result: Optional[Mapping[str, Any]]) -> Optional[Row]:
    idx = (inspection_result or {}).get("indexStatusResult")
    if not idx:
        return None

    row: Row = {
        "url": url,
        "verdict": label(VERDICT_LABELS, idx.get("verdict")),
        "coverageState": label(COVERAGE_STATE_LABELS, idx.get("coverageState")),
        "robotsTxtState": label(ROBOTS_TXT_STATE_LABELS, idx.get("robotsTxtState")),
        "indexingState": label(INDEXING_STATE_LABELS, idx.get("indexingState")),
        "lastCrawlTime": format_date(idx.get("lastCrawlTime")),
        "pageFetchState": label(PAGE_FETCH_STATE_LABELS, idx.get("pageFetchState")),
        "crawledAs": label(CRAWL_USER_AGENT_LABELS, idx.get("crawlingUserAgent")),
        "userCanonical": idx.get("userCanonical") or "None",
        "googleCanonical": idx.get("googleCanonical") or "Inspected URL",
        "inspectionResultLink": inspection_result.get("inspectionResultLink") or "",
    }

    for i, sitemap in enumerate(idx.get("sitemap") or [], start=1):
        row[f"sitemap-{i}"] = sitemap
    for i, ref_url in enumerate(idx.get("referringUrls") or [], start=1):
        row[f"referringUrl-{i}"] = ref_url
    return row


def format_mobile_usability(url: str, inspection_result: Optional[Mapping[str, Any]]) -> Optional[Row]:
    mobile = (inspection_result or {}).get("mobileUsabilityResult")
    if not mobile:
        return None

    row: Row = {"url": url, "verdict": label(MOBILE_USABILITY_VERDICT_LABELS, mobile.get("verdict"))}
    for i, issue in enumerate(mobile.get("issues") or [], start=1):
        row[f"issue-{i}"] = label(MOBILE_ISSUE_LABELS, issue.get("issueType"))
        if issue.get("message"):
            row[f"issue-{i}-message"] = issue["message"]
    return row


def format_rich_results(url: str, inspection_result: Optional[Mapping[str, Any]]) -> Optional[Row]:
    rich = (inspection_result or {}).get("richResultsResult")
    if not rich:
        return None

    row: Row = {"url": url, "verdict": label(VERDICT_LABELS, rich.get("verdict"))}
    for i, item in enumerate(rich.get("detectedItems") or [], start=1):
        row[f"richResultType-{i}"] = item.get("richResultType") or ""
        for j, sub_item in enumerate(item.get("items") or [], start=1):
            for k, issue in enumerate(sub_item.get("issues") or [], start=1):
                row[f"type-{i}-item-{j}-issue-{k}"] = f"{issue.get('severity')}: {issue.get('issueMessage')}"
    return row


def format_amp(url: str, inspection_result: Optional[Mapping[str, Any]]) -> Optional[Row]:
    amp = (inspection_result or {}).get("ampResult")
    if not amp:
        return None

    row: Row = {
        "url": url,
        "verdict": label(AMP_VERDICT_LABELS, amp.get("verdict")),
        "ampUrl": amp.get("ampUrl") or "",
        "ampIndexStatusVerdict": label(VERDICT_LABELS, amp.get("ampIndexStatusVerdict")),
        "robotsTxtState": label(ROBOTS_TXT_STATE_LABELS, amp.get("robotsTxtState")),
        "indexingState": label(INDEXING_STATE_LABELS, amp.get("indexingState")),
        "lastCrawlTime": format_date(amp.get("lastCrawlTime")),
        "pageFetchState": label(PAGE_FETCH_STATE_LABELS, amp.get("pageFetchState")),
    }
    for i, issue in enumerate(amp.get("issues") or [], start=1):
        row[f"issue-{i}"] = f"{issue.get('severity')}: {issue.get('issueMessage')}"
    return row


def index_verdict(result: Mapping[str, Any]) -> Optional[str]:
    """Raw indexStatusResult.verdict of one API result, if any."""
    inspection = result.get("inspectionResult") or {}
    return (inspection.get("indexStatusResult") or {}).get("verdict")


def generate_summary(results: Iterable[Mapping[str, Any]]) -> Dict[str, Any]:
    """Counts by verdict and coverage state, mobile issues and rich result types."""
    by_verdict: Counter = Counter()
    by_coverage: Counter = Counter()
    mobile_issues = 0
    rich_types: List[str] = []
    total = 0

    for result in results:
        total += 1
        inspection = result.get("inspectionResult") or {}
        idx = inspection.get("indexStatusResult") or {}
        by_verdict[idx.get("verdict") or "UNKNOWN"] += 1
        by_coverage[idx.get("coverageState") or "UNKNOWN"] += 1

        mobile_issues += len((inspection.get("mobileUsabilityResult") or {}).get("issues") or [])

        for item in (inspection.get("richResultsResult") or {}).get("detectedItems") or []:
            rtype = item.get("richResultType")
            if rtype and rtype not in rich_types:
                rich_types.append(rtype)

    return {
        "total": total,
        "by_verdict": dict(by_verdict),
        "by_coverage_state": dict(by_coverage),
        "mobile_issues_count": mobile_issues,
        "rich_result_types": rich_types,
    }
