"""
Layer 2: Batch Scheduling

Batches header sets into compiler invocations, runs them on a bounded worker
pool with a fallback pass in the other compiler mode, and merges the results.
"""

from scheduling.tasks import BatchTask, build_batches, sort_batches
from scheduling.worker_pool import WorkerPool
from scheduling.worker import BatchResult, run_batch
from scheduling.collector import (
    BatchOutcome,
    GlobalTables,
    collect_results,
    coverage_report,
    run_batches,
)

__all__ = [
    "BatchTask",
    "build_batches",
    "sort_batches",
    "WorkerPool",
    "BatchResult",
    "run_batch",
    "BatchOutcome",
    "GlobalTables",
    "collect_results",
    "coverage_report",
    "run_batches",
]
