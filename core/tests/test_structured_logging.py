"""Tests for run correlation context."""

import logging
import threading
import unittest

from core.structured_logging import (
    _RunContextFilter,
    batch_scope,
    bind_context,
    get_phase,
    get_run_id,
    phase_scope,
    set_run_id,
)


class TestStructuredLogging(unittest.TestCase):
    def test_filter_injects_context(self) -> None:
        set_run_id("run-abc")
        record = logging.LogRecord("x", logging.INFO, __file__, 1, "msg", None, None)
        with phase_scope("extraction"), batch_scope("Foundation[3]"):
            _RunContextFilter().filter(record)
        self.assertEqual(record.run_id, "run-abc")
        self.assertEqual(record.phase, "extraction")
        self.assertEqual(record.batch, "Foundation[3]")

    def test_phase_scope_resets(self) -> None:
        with phase_scope("resolution"):
            self.assertEqual(get_phase(), "resolution")
        self.assertEqual(get_phase(), "-")

    def test_bind_context_crosses_threads(self) -> None:
        set_run_id("run-thread")
        seen = []

        with phase_scope("extraction"):
            task = bind_context(lambda: seen.append((get_run_id(), get_phase())))
        thread = threading.Thread(target=task)
        thread.start()
        thread.join()

        self.assertEqual(seen, [("run-thread", "extraction")])


if __name__ == "__main__":
    unittest.main()
