from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence
from urllib.parse import urlsplit

import pandas as pd

from .errors import InputError
from .models import Task

REQUIRED_COLUMNS = ("url", "property")
DOMAIN_PROPERTY_PREFIX = "sc-domain:"

URL_REASON = "Invalid or missing URL (must be fully-qualified, e.g. https://example.com/page)"
PROPERTY_REASON = "Invalid or missing property (must be https://... with trailing slash, or sc-domain:...)"


@dataclass(frozen=True)
class InvalidRow:
    row: int
    reasons: List[str]
    url: Optional[str] = None
    property: Optional[str] = None


@dataclass
class ValidationResult:
    valid: List[Task] = field(default_factory=list)
    invalid: List[InvalidRow] = field(default_factory=list)


def read_tasks_csv(path: str) -> ValidationResult:
    """Read a url/property CSV and split it into valid tasks and rejected rows."""
    try:
        df = pd.read_csv(path, dtype=str, keep_default_na=False, skipinitialspace=True)
    except pd.errors.EmptyDataError:
        return ValidationResult(invalid=[InvalidRow(0, ["CSV file is empty"])])
    except (OSError, pd.errors.ParserError, UnicodeDecodeError) as exc:
        raise InputError(f"Failed to read input file: {exc}", context={"path": path}) from exc

    df.columns = [str(c).strip() for c in df.columns]
    return validate_rows(df.to_dict(orient="records"), columns=list(df.columns))


def validate_rows(rows: Sequence[Mapping[str, Any]], columns: Optional[Sequence[str]] = None) -> ValidationResult:
    if not rows:
        return ValidationResult(invalid=[InvalidRow(0, ["CSV file is empty"])])

    present = set(columns if columns is not None else rows[0].keys())
    for col in REQUIRED_COLUMNS:
        if col not in present:
            return ValidationResult(invalid=[InvalidRow(0, [f'Missing required column: "{col}"'])])

    result = ValidationResult()
    for i, row in enumerate(rows, start=1):
        url = _clean(row.get("url"))
        prop = _clean(row.get("property"))
        reasons: List[str] = []
        if not url or not is_valid_url(url):
            reasons.append(URL_REASON)
        if not prop or not is_valid_property(prop):
            reasons.append(PROPERTY_REASON)

        if reasons:
            result.invalid.append(InvalidRow(i, reasons, url=url, property=prop))
        else:
            result.valid.append(Task(url=url, property=prop))
    return result


def is_valid_url(url: str) -> bool:
    try:
        parts = urlsplit(url)
    except ValueError:
        return False
    return parts.scheme in ("http", "https") and bool(parts.netloc)


def is_valid_property(prop: str) -> bool:
    if prop.startswith(DOMAIN_PROPERTY_PREFIX):
        return len(prop) > len(DOMAIN_PROPERTY_PREFIX)
    return is_valid_url(prop) and prop.endswith("/")


def group_by_property(tasks: Sequence[Task]) -> Dict[str, List[Task]]:
    grouped: Dict[str, List[Task]] = OrderedDict()
    for task in tasks:
        grouped.setdefault(task.property, []).append(task)
    return grouped


def _clean(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()
