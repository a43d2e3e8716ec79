from __future__ import annotations

import json
import logging
import os
import tempfile
from datetime import datetime, timezone
from typing import Iterable, Set

from .constants import CHECKPOINT_FILE

logger = logging.getLogger(__name__)


class CheckpointStore:
    """Durable record of URLs already inspected successfully.

    The file holds {"processedUrls": [...], "timestamp": "<ISO-8601>"}. A
    missing or unreadable file loads as an empty set, so a corrupt checkpoint
    only costs re-inspection, never the run.
    """

    def __init__(self, output_dir: str, filename: str = CHECKPOINT_FILE) -> None:
        self._dir = output_dir
        self._path = os.path.join(output_dir, filename)

    @property
    def path(self) -> str:
        return self._path

    def exists(self) -> bool:
        return os.path.isfile(self._path)

    def load(self) -> Set[str]:
        if not self.exists():
            return set()
        try:
            with open(self._path, "r", encoding="utf-8") as f:
                data = json.load(f)
            urls = data["processedUrls"]
            if not isinstance(urls, list):
                raise TypeError("processedUrls is not a list")
            processed = {u for u in urls if isinstance(u, str)}
        except (OSError, ValueError, KeyError, TypeError) as exc:
            logger.warning("Ignoring unreadable checkpoint %s: %s", self._path, exc)
            return set()

        logger.info(
            "Resuming from checkpoint (%d URLs already processed, saved at %s)",
            len(processed), data.get("timestamp"),
        )
        return processed

    def save(self, processed_urls: Iterable[str]) -> None:
        """Overwrite the checkpoint; the file is complete on disk when this returns."""
        os.makedirs(self._dir, exist_ok=True)
        record = {
            "processedUrls": sorted(processed_urls),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        fd, tmp_path = tempfile.mkstemp(prefix=".checkpoint-", suffix=".tmp", dir=self._dir)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(record, f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self._path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise
        logger.debug("Checkpoint saved with %d URLs", len(record["processedUrls"]))

    def clear(self) -> None:
        try:
            os.remove(self._path)
        except FileNotFoundError:
            pass
