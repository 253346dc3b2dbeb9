"""
Batch construction.

One compiler invocation per logical framework: every header that declares a
requested name goes into a single synthetic unit. Extra headers (classes
declared outside the framework's header directory) become their own
single-class batches.

A merged unit is always compiled with the pre-include stack, since the
module system deduplicates the headers it has already imported and leaves
the merged tree incomplete. Module mode is reserved for single-header units.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from core.framework_manifest import FrameworkSpec
from extraction.clang import CompilerMode
from extraction.discovery import DiscoveryResult, header_path_for
from extraction.models import ExtractionTargets

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BatchTask:
    """Headers of one framework and the names requested from them.

    Immutable once built; a task is owned by one worker at a time.

    Attributes:
        pre_includes: Header stack made visible before the unit in
            pre-include mode.
        header_targets: Names requested from each header, used to recompile
            only the headers whose names the merged pass missed.
    """

    framework: str
    headers: Tuple[str, ...]
    targets: ExtractionTargets
    pre_includes: Tuple[str, ...] = ()
    is_extra: bool = False
    part: int = 0
    header_targets: Tuple[Tuple[str, ExtractionTargets], ...] = ()

    @property
    def header_count(self) -> int:
        return len(self.headers)

    @property
    def is_merged(self) -> bool:
        return len(self.headers) > 1

    @property
    def primary_mode(self) -> CompilerMode:
        return CompilerMode.PRE_INCLUDE if self.is_merged else CompilerMode.MODULES

    @property
    def label(self) -> str:
        kind = "extra" if self.is_extra else "batch"
        suffix = f".{self.part}" if self.part else ""
        return f"{self.framework}:{kind}{suffix}[{self.header_count}]"

    @property
    def allows_fallback(self) -> bool:
        return not self.is_extra and bool(self.pre_includes)

    def headers_for(self, missing: ExtractionTargets) -> List[str]:
        """Headers declaring any of ``missing``; every header when unmapped."""
        if not self.header_targets:
            return list(self.headers)
        return [h for h, wanted in self.header_targets if not wanted.intersection(missing).is_empty()]

    def targets_for(self, header: str) -> ExtractionTargets:
        for h, wanted in self.header_targets:
            if h == header:
                return wanted
        return self.targets

    def describe(self) -> Dict[str, object]:
        """Identity of the batch for logs and run reports."""
        return {
            "framework": self.framework,
            "label": self.label,
            "header_count": self.header_count,
            "first_header": self.headers[0] if self.headers else None,
            "is_extra": self.is_extra,
            "primary_mode": self.primary_mode.value,
        }


@dataclass
class _HeaderTargets:
    classes: List[str] = field(default_factory=list)
    protocols: List[str] = field(default_factory=list)
    integer_enums: List[str] = field(default_factory=list)
    string_enums: List[str] = field(default_factory=list)

    def as_targets(self) -> ExtractionTargets:
        return ExtractionTargets.of(self.classes, self.protocols, self.integer_enums, self.string_enums)


def _group_by_header(
    headers_path: str,
    discovery: DiscoveryResult,
) -> Dict[str, _HeaderTargets]:
    grouped: Dict[str, _HeaderTargets] = {}
    categories = (
        ("classes", discovery.classes),
        ("protocols", discovery.protocols),
        ("integer_enums", discovery.integer_enums),
        ("string_enums", discovery.string_enums),
    )
    for category, names in categories:
        for name in sorted(names):
            path = header_path_for(headers_path, names[name])
            if not os.path.isfile(path):
                logger.info("Header not found for %s: %s", name, path)
                continue
            getattr(grouped.setdefault(path, _HeaderTargets()), category).append(name)
    return grouped


def _chunk(items: Sequence[str], size: Optional[int]) -> List[Sequence[str]]:
    if not size or size <= 0 or len(items) <= size:
        return [items]
    return [items[i:i + size] for i in range(0, len(items), size)]


def sort_batches(tasks: Iterable[BatchTask]) -> List[BatchTask]:
    """Largest header count first so expensive units do not become the tail."""
    return sorted(tasks, key=lambda t: (-t.header_count, t.framework, t.part, t.is_extra))


def build_batches(
    frameworks: Sequence[FrameworkSpec],
    discoveries: Mapping[str, DiscoveryResult],
    max_headers_per_batch: Optional[int] = None,
) -> List[BatchTask]:
    """Build the batch list for a run, sorted largest-first.

    Args:
        frameworks: Frameworks selected for this run.
        discoveries: Discovery result per framework name.
        max_headers_per_batch: Optional cap splitting a very large framework
            into several units; ``None`` keeps one unit per framework.

    Returns:
        Batch tasks, largest header count first.
    """
    tasks: List[BatchTask] = []
    for fw in frameworks:
        discovery = discoveries.get(fw.name)
        if discovery is None or discovery.is_empty():
            logger.info("Skipping %s: nothing discovered", fw.name)
            continue

        grouped = _group_by_header(fw.headers_path, discovery)
        pre_includes = tuple(fw.fallback_pre_includes)
        header_paths = sorted(grouped)
        for part, chunk in enumerate(_chunk(header_paths, max_headers_per_batch)):
            if not chunk:
                continue
            targets = ExtractionTargets.of(
                classes=[n for h in chunk for n in grouped[h].classes],
                protocols=[n for h in chunk for n in grouped[h].protocols],
                integer_enums=[n for h in chunk for n in grouped[h].integer_enums],
                string_enums=[n for h in chunk for n in grouped[h].string_enums],
            )
            tasks.append(BatchTask(
                framework=fw.name,
                headers=tuple(chunk),
                targets=targets,
                pre_includes=pre_includes,
                part=part,
                header_targets=tuple((h, grouped[h].as_targets()) for h in chunk),
            ))

        for class_name, header in sorted(fw.extra_headers.items()):
            if not os.path.isfile(header):
                logger.info("Extra header not found for %s: %s", class_name, header)
                continue
            tasks.append(BatchTask(
                framework=fw.name,
                headers=(header,),
                targets=ExtractionTargets.of(classes=[class_name]),
                is_extra=True,
            ))

    ordered = sort_batches(tasks)
    logger.info(
        "Built %d batch(es) covering %d header(s)",
        len(ordered),
        sum(t.header_count for t in ordered),
    )
    return ordered
