"""
Batch execution and result collection.

``run_batches`` drives every batch through the worker pool and waits for all
of them; ``collect_results`` merges the per-batch records into global tables
keyed by name; ``coverage_report`` compares what was parsed against what
discovery expected.
"""

from __future__ import annotations

import logging
from concurrent.futures import Future, wait
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

from extraction.clang import ClangInvoker
from extraction.discovery import DiscoveryResult
from extraction.models import (
    ClassDecl,
    IntegerEnumDecl,
    ProtocolDecl,
    StringEnumDecl,
    StructDecl,
)
from scheduling.tasks import BatchTask, sort_batches
from scheduling.worker import BatchResult, run_batch
from scheduling.worker_pool import WorkerPool

logger = logging.getLogger(__name__)


@dataclass
class BatchOutcome:
    """Result or error of one batch; a failed batch never aborts the run."""

    task: BatchTask
    result: Optional[BatchResult] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.result is not None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = dict(self.task.describe())
        payload["ok"] = self.ok
        if self.error is not None:
            payload["error"] = self.error
        if self.result is not None:
            payload["used_fallback"] = self.result.used_fallback
            payload["fallback_added"] = self.result.fallback_added_count
            payload["ambiguous"] = list(self.result.ambiguous)
            payload["elapsed_seconds"] = round(self.result.elapsed_seconds, 3)
        return payload


@dataclass
class FrameworkTables:
    """Records parsed for one framework."""

    classes: Dict[str, ClassDecl] = field(default_factory=dict)
    protocols: Dict[str, ProtocolDecl] = field(default_factory=dict)
    integer_enums: Dict[str, IntegerEnumDecl] = field(default_factory=dict)
    string_enums: Dict[str, StringEnumDecl] = field(default_factory=dict)


@dataclass
class GlobalTables:
    """Write-once tables built after every batch has finished."""

    frameworks: Dict[str, FrameworkTables] = field(default_factory=dict)
    structs: Dict[str, StructDecl] = field(default_factory=dict)
    struct_aliases: Dict[str, str] = field(default_factory=dict)
    typedefs: Dict[str, str] = field(default_factory=dict)

    def framework(self, name: str) -> FrameworkTables:
        return self.frameworks.setdefault(name, FrameworkTables())

    def _union(self, attr: str) -> Dict[str, Any]:
        merged: Dict[str, Any] = {}
        for tables in self.frameworks.values():
            for name, record in getattr(tables, attr).items():
                merged.setdefault(name, record)
        return merged

    @property
    def classes(self) -> Dict[str, ClassDecl]:
        return self._union("classes")

    @property
    def protocols(self) -> Dict[str, ProtocolDecl]:
        return self._union("protocols")

    @property
    def integer_enums(self) -> Dict[str, IntegerEnumDecl]:
        return {n: e for n, e in self._union("integer_enums").items() if e.is_complete}

    @property
    def string_enums(self) -> Dict[str, StringEnumDecl]:
        return self._union("string_enums")


def run_batches(
    tasks: Sequence[BatchTask],
    invoker: ClangInvoker,
    pool_size: Optional[int] = None,
) -> List[BatchOutcome]:
    """Run every batch on a worker pool and wait for all of them.

    Batches are submitted largest-first. A batch that raises is recorded as
    an error outcome with enough identity to re-run it alone.
    """
    ordered = sort_batches(tasks)
    futures: Dict[Future, BatchTask] = {}
    with WorkerPool(pool_size) as pool:
        logger.info("Running %d batch(es) on %d worker(s)", len(ordered), pool.size)
        for task in ordered:
            futures[pool.submit(run_batch, task, invoker)] = task
        wait(futures)

    outcomes: List[BatchOutcome] = []
    for future, task in futures.items():
        exc = future.exception()
        if exc is not None:
            logger.error(
                "Batch failed: framework=%s headers=%d first_header=%s error=%s",
                task.framework,
                task.header_count,
                task.headers[0] if task.headers else "-",
                exc,
            )
            outcomes.append(BatchOutcome(task=task, error=f"{type(exc).__name__}: {exc}"))
        else:
            outcomes.append(BatchOutcome(task=task, result=future.result()))
    return outcomes


def _merge_integer_enum(table: Dict[str, IntegerEnumDecl], enum: IntegerEnumDecl) -> None:
    """A complete definition is authoritative; a forward declaration never shadows one."""
    existing = table.get(enum.name)
    if existing is None or (not existing.is_complete and enum.is_complete):
        table[enum.name] = enum


def _merge_string_enum(table: Dict[str, StringEnumDecl], enum: StringEnumDecl) -> None:
    existing = table.get(enum.name)
    if existing is None:
        table[enum.name] = enum
        return
    known = {v.symbol_name for v in existing.values}
    for value in enum.values:
        if value.symbol_name not in known:
            existing.values.append(value)
            known.add(value.symbol_name)


def collect_results(outcomes: Sequence[BatchOutcome]) -> GlobalTables:
    """Merge batch records into global tables.

    Regular batches are merged first; extra-header batches then add members
    to classes that already exist (or introduce the class when it does not).
    Every merge is additive, so the order batches finished in does not matter.
    """
    tables = GlobalTables()
    regular = [o for o in outcomes if o.ok and not o.task.is_extra]
    extra = [o for o in outcomes if o.ok and o.task.is_extra]

    for outcome in regular:
        result = outcome.result.result
        fw = tables.framework(outcome.task.framework)
        for name, cls in result.classes.items():
            if name in fw.classes:
                fw.classes[name].merge(cls)
            else:
                fw.classes[name] = cls
        for name, proto in result.protocols.items():
            if name in fw.protocols:
                existing = fw.protocols[name]
                existing.merge_members(proto)
                for parent in proto.extended_protocols:
                    if parent not in existing.extended_protocols:
                        existing.extended_protocols.append(parent)
            else:
                fw.protocols[name] = proto
        for enum in result.integer_enums.values():
            _merge_integer_enum(fw.integer_enums, enum)
        for enum in result.string_enums.values():
            _merge_string_enum(fw.string_enums, enum)
        for name, struct in result.structs.items():
            tables.structs.setdefault(name, struct)
        for alias in result.struct_aliases:
            tables.struct_aliases.setdefault(alias.name, alias.target)
        for name, underlying in result.typedefs.items():
            tables.typedefs.setdefault(name, underlying)

    for outcome in extra:
        fw = tables.framework(outcome.task.framework)
        for name, cls in outcome.result.result.classes.items():
            existing = fw.classes.get(name)
            if existing is None:
                fw.classes[name] = cls
                logger.info("Extra header added class %s", name)
            else:
                added = existing.merge(cls)
                logger.info("Extra header merged %d member(s) into %s", added, name)

    for name in list(tables.struct_aliases):
        if name in tables.structs:
            del tables.struct_aliases[name]
    return tables


def coverage_report(
    discoveries: Mapping[str, DiscoveryResult],
    tables: GlobalTables,
    outcomes: Sequence[BatchOutcome],
) -> Dict[str, Dict[str, Any]]:
    """Per-framework expected vs. parsed counts, batch errors and fallback use."""
    report: Dict[str, Dict[str, Any]] = {}
    for fw_name in sorted(discoveries):
        discovery = discoveries[fw_name]
        fw = tables.frameworks.get(fw_name, FrameworkTables())
        fw_outcomes = [o for o in outcomes if o.task.framework == fw_name]
        complete_enums = sum(1 for e in fw.integer_enums.values() if e.is_complete)
        entry = {
            "classes": {"expected": len(discovery.classes), "parsed": len(fw.classes)},
            "protocols": {"expected": len(discovery.protocols), "parsed": len(fw.protocols)},
            "integer_enums": {"expected": len(discovery.integer_enums), "parsed": complete_enums},
            "string_enums": {"expected": len(discovery.string_enums), "parsed": len(fw.string_enums)},
            "unsupported_enums": len(discovery.unsupported_enums),
            "batches": len(fw_outcomes),
            "batch_errors": [o.to_dict() for o in fw_outcomes if not o.ok],
            "fallback_batches": sum(1 for o in fw_outcomes if o.ok and o.result.used_fallback),
            "ambiguous": sorted(a for o in fw_outcomes if o.ok for a in o.result.ambiguous),
        }
        report[fw_name] = entry
        logger.info(
            "%s: parsed %d/%d classes, %d/%d protocols, %d/%d enums",
            fw_name,
            entry["classes"]["parsed"],
            entry["classes"]["expected"],
            entry["protocols"]["parsed"],
            entry["protocols"]["expected"],
            entry["integer_enums"]["parsed"] + entry["string_enums"]["parsed"],
            entry["integer_enums"]["expected"] + entry["string_enums"]["expected"],
        )
    return report
