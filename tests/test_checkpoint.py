"""Tests for the CheckpointStore class."""

import json
import os
import tempfile
import unittest
from datetime import datetime

from gsc_inspect.checkpoint import CheckpointStore


class TestCheckpointStore(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.dir = self._tmp.name
        self.store = CheckpointStore(self.dir)

    def test_load_missing_returns_empty_set(self):
        self.assertEqual(self.store.load(), set())
        self.assertFalse(self.store.exists())

    def test_save_then_load(self):
        urls = {"https://example.com/a", "https://example.com/b"}
        self.store.save(urls)
        self.assertTrue(self.store.exists())
        self.assertEqual(self.store.load(), urls)

    def test_saved_record_format(self):
        """The file holds processedUrls and an ISO-8601 timestamp."""
        self.store.save(["https://example.com/a"])
        with open(self.store.path, encoding="utf-8") as f:
            data = json.load(f)
        self.assertEqual(data["processedUrls"], ["https://example.com/a"])
        self.assertIsNotNone(datetime.fromisoformat(data["timestamp"]).tzinfo)

    def test_save_overwrites_previous_record(self):
        self.store.save(["https://example.com/a"])
        self.store.save(["https://example.com/b"])
        self.assertEqual(self.store.load(), {"https://example.com/b"})

    def test_save_leaves_no_temp_files(self):
        self.store.save(["https://example.com/a"])
        self.assertEqual(os.listdir(self.dir), [".checkpoint.json"])

    def test_save_creates_output_dir(self):
        nested = os.path.join(self.dir, "out", "deeper")
        store = CheckpointStore(nested)
        store.save(["https://example.com/a"])
        self.assertTrue(store.exists())

    def test_corrupt_file_treated_as_no_checkpoint(self):
        with open(self.store.path, "w", encoding="utf-8") as f:
            f.write("{not json")
        self.assertEqual(self.store.load(), set())

    def test_wrong_shape_treated_as_no_checkpoint(self):
        with open(self.store.path, "w", encoding="utf-8") as f:
            json.dump({"processedUrls": "https://example.com/a"}, f)
        self.assertEqual(self.store.load(), set())
        with open(self.store.path, "w", encoding="utf-8") as f:
            json.dump(["https://example.com/a"], f)
        self.assertEqual(self.store.load(), set())

    def test_clear_is_idempotent(self):
        self.store.save(["https://example.com/a"])
        self.store.clear()
        self.assertFalse(self.store.exists())
        self.store.clear()
        self.assertFalse(self.store.exists())


if __name__ == "__main__":
    unittest.main()
