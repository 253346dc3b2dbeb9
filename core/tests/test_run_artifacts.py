"""Tests for run artifact writers."""

import json
import tempfile
import unittest
from pathlib import Path

from core.run_artifacts import write_jsonl, write_run_report


class TestRunArtifacts(unittest.TestCase):
    def test_write_run_report(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = write_run_report(
                report={"status": "success", "coverage": {"Foundation": {"classes": 3}}},
                run_id="run-123",
                output_dir=tmpdir,
            )
            self.assertTrue(Path(path).is_file())
            payload = json.loads(Path(path).read_text(encoding="utf-8"))
            self.assertEqual(payload["run_id"], "run-123")
            self.assertEqual(payload["status"], "success")
            self.assertEqual(payload["coverage"]["Foundation"]["classes"], 3)
            self.assertIn("timestamp_utc", payload)

    def test_write_jsonl_streams_records(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = str(Path(tmpdir) / "nested" / "model.jsonl")
            count = write_jsonl(({"name": n, "record_type": "class"} for n in ("A", "B")), path)
            self.assertEqual(count, 2)
            lines = Path(path).read_text(encoding="utf-8").splitlines()
            self.assertEqual([json.loads(line)["name"] for line in lines], ["A", "B"])


if __name__ == "__main__":
    unittest.main()
