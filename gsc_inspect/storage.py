from __future__ import annotations

import json
import logging
import os
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

import pandas as pd

from .constants import ERRORS_FILE, PARTIAL_FILE, RESULTS_JSON_FILE
from .formatter import (
    format_amp,
    format_index_status,
    format_mobile_usability,
    format_rich_results,
    index_verdict,
)
from .models import ErrorRecord

logger = logging.getLogger(__name__)

CSV_OUTPUTS: Sequence[tuple[str, Callable[[str, Any], Optional[Dict[str, Any]]]]] = (
    ("coverage.csv", format_index_status),
    ("mobile-usability.csv", format_mobile_usability),
    ("rich-results.csv", format_rich_results),
    ("amp.csv", format_amp),
)


class StorageBase(ABC):
    """Abstract base class for append-only result stores."""

    @abstractmethod
    def write(self, records: Iterable[Dict[str, Any]]) -> None:
        """Persist a group of successful inspection payloads."""


class JsonlPartialStore(StorageBase):
    """Crash-resilient JSON Lines store for successful payloads.

    Each write() appends one line per record and fsyncs before returning,
    so anything written survives a crash of the process right after.
    """

    def __init__(self, path: str) -> None:
        self._path = path

    @property
    def path(self) -> str:
        return self._path

    def write(self, records: Iterable[Dict[str, Any]]) -> None:
        lines = [json.dumps(r, ensure_ascii=False) + "\n" for r in records]
        if not lines:
            return
        parent = os.path.dirname(self._path)
        if parent:
            os.makedirs(parent, exist_ok=True)
        with open(self._path, "a", encoding="utf-8") as f:
            f.writelines(lines)
            f.flush()
            os.fsync(f.fileno())

    def read_all(self) -> List[Dict[str, Any]]:
        """Load every complete record; a torn trailing line from a crash is skipped."""
        if not os.path.isfile(self._path):
            return []
        records: List[Dict[str, Any]] = []
        with open(self._path, "r", encoding="utf-8") as f:
            for lineno, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    record = json.loads(line)
                except json.JSONDecodeError:
                    logger.warning("Skipping unreadable line %d in %s", lineno, self._path)
                    continue
                if isinstance(record, dict):
                    records.append(record)
        return records

    def discard(self) -> None:
        try:
            os.remove(self._path)
        except FileNotFoundError:
            pass


class ResultWriter:
    """Writes the final output files for a run into one directory."""

    def __init__(self, output_dir: str) -> None:
        self._dir = output_dir

    @property
    def output_dir(self) -> str:
        return self._dir

    def write(
        self,
        results: Sequence[Dict[str, Any]],
        errors: Sequence[ErrorRecord],
        filter_verdict: Optional[str] = None,
        only_not_indexed: bool = False,
        partial_store: Optional[JsonlPartialStore] = None,
    ) -> List[str]:
        """Write coverage.json, the per-section CSVs and errors.json; returns written paths.

        The partial store, if given, is discarded afterwards.
        """
        os.makedirs(self._dir, exist_ok=True)
        selected = filter_results(results, filter_verdict=filter_verdict, only_not_indexed=only_not_indexed)
        written: List[str] = []

        path = os.path.join(self._dir, RESULTS_JSON_FILE)
        _write_json(path, list(selected))
        written.append(path)

        for filename, formatter in CSV_OUTPUTS:
            rows = [row for row in (formatter(r.get("url", ""), r.get("inspectionResult")) for r in selected) if row]
            if not rows:
                continue
            path = os.path.join(self._dir, filename)
            pd.DataFrame(rows).to_csv(path, index=False)
            written.append(path)

        if errors:
            path = os.path.join(self._dir, ERRORS_FILE)
            _write_json(path, [e.to_dict() for e in errors])
            written.append(path)

        if partial_store is not None:
            partial_store.discard()

        logger.info("Wrote %d output file(s) to %s", len(written), self._dir)
        return written


def filter_results(
    results: Iterable[Dict[str, Any]],
    filter_verdict: Optional[str] = None,
    only_not_indexed: bool = False,
) -> List[Dict[str, Any]]:
    """Apply the presentation filters; only_not_indexed wins over filter_verdict."""
    if only_not_indexed:
        return [r for r in results if index_verdict(r) != "PASS"]
    if filter_verdict:
        wanted = filter_verdict.upper()
        return [r for r in results if index_verdict(r) == wanted]
    return list(results)


def partial_path(output_dir: str) -> str:
    return os.path.join(output_dir, PARTIAL_FILE)


def _write_json(path: str, data: Any) -> None:
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)
