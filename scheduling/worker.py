"""
Per-batch worker routine: compile, extract, fall back when incomplete.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from core.structured_logging import batch_scope
from extraction.clang import ClangInvocationError, ClangInvoker, CompilerMode
from extraction.extractor import MergeReport, extract, merge_missing
from extraction.models import ExtractionResult, ExtractionTargets
from extraction.source_scan import HeaderLineCache
from scheduling.tasks import BatchTask

logger = logging.getLogger(__name__)

# One fallback compile: headers, mode, names requested from them.
_FallbackUnit = Tuple[Tuple[str, ...], CompilerMode, ExtractionTargets]


@dataclass
class BatchResult:
    """Records extracted for one batch plus how they were obtained."""

    task: BatchTask
    result: ExtractionResult
    primary_mode: CompilerMode = CompilerMode.MODULES
    used_fallback: bool = False
    fallback_added: Dict[str, List[str]] = field(default_factory=dict)
    ambiguous: List[str] = field(default_factory=list)
    primary_error: Optional[str] = None
    elapsed_seconds: float = 0.0

    @property
    def fallback_added_count(self) -> int:
        return sum(len(v) for v in self.fallback_added.values())


def _missing_summary(missing: ExtractionTargets) -> str:
    return (
        f"classes={len(missing.classes)} protocols={len(missing.protocols)} "
        f"integer_enums={len(missing.integer_enums)} string_enums={len(missing.string_enums)}"
    )


def _compile(invoker: ClangInvoker, task: BatchTask, headers: Sequence[str], mode: CompilerMode):
    pre_includes = task.pre_includes if mode is CompilerMode.PRE_INCLUDE else ()
    return invoker.dump(tuple(headers), pre_includes=pre_includes, mode=mode)


def _fallback_units(task: BatchTask, missing: ExtractionTargets) -> List[_FallbackUnit]:
    """Compiles that may recover ``missing``.

    A single header is recompiled with the pre-include stack. A merged unit
    was already compiled that way, so each header owning a missing name is
    compiled on its own with modules instead.
    """
    if not task.is_merged:
        return [(task.headers, CompilerMode.PRE_INCLUDE, task.targets)]
    return [
        ((header,), CompilerMode.MODULES, task.targets_for(header))
        for header in task.headers_for(missing)
    ]


def run_batch(task: BatchTask, invoker: ClangInvoker) -> BatchResult:
    """Extract one batch, recompiling for missing targets in the other mode.

    The primary pass compiles a single header with modules and a merged unit
    with the pre-include stack. If it misses any requested name (or cannot
    run at all), the fallback compiles in the other mode and only the missing
    records are taken from it.

    Raises:
        ClangInvocationError: If no pass produced a declaration tree.
    """
    started = time.monotonic()
    with batch_scope(task.label):
        lines = HeaderLineCache()
        mode = task.primary_mode
        primary_error: Optional[str] = None
        try:
            tree = _compile(invoker, task, task.headers, mode)
        except ClangInvocationError as e:
            if not task.allows_fallback:
                raise
            primary_error = str(e)
            logger.warning("Primary %s pass failed (%s); running fallback", mode.value, e)
            result = ExtractionResult()
        else:
            result = extract(tree, task.targets, lines)
            del tree

        outcome = BatchResult(task=task, result=result, primary_mode=mode, primary_error=primary_error)
        missing = result.missing(task.targets)
        if not task.allows_fallback or missing.is_empty():
            outcome.elapsed_seconds = time.monotonic() - started
            return outcome

        units = _fallback_units(task, missing)
        logger.info(
            "Primary pass incomplete (%s); running %d fallback compile(s)",
            _missing_summary(missing),
            len(units),
        )
        report = MergeReport()
        compiled = 0
        last_error: Optional[ClangInvocationError] = None
        for headers, fallback_mode, wanted in units:
            try:
                fallback_tree = _compile(invoker, task, headers, fallback_mode)
            except ClangInvocationError as e:
                logger.warning("Fallback %s pass failed for %s (%s)", fallback_mode.value, headers[0], e)
                last_error = e
                continue
            compiled += 1
            fallback = extract(fallback_tree, wanted, lines)
            del fallback_tree
            report.absorb(merge_missing(result, fallback, wanted))

        if not compiled:
            if primary_error is not None:
                raise last_error or ClangInvocationError(primary_error, headers=task.headers)
            logger.warning("No fallback compile succeeded; keeping primary results")
            outcome.elapsed_seconds = time.monotonic() - started
            return outcome

        outcome.used_fallback = True
        outcome.fallback_added = report.added
        outcome.ambiguous = report.ambiguous
        logger.info(
            "Fallback contributed %d record(s); still missing: %s",
            report.added_count,
            _missing_summary(result.missing(task.targets)),
        )
        outcome.elapsed_seconds = time.monotonic() - started
        return outcome
