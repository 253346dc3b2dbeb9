#!/usr/bin/env python3
"""End-to-end declaration generator pipeline.

Discovery -> batched clang extraction (modules for single headers, pre-include
stack for merged units, the other mode as fallback)
-> merge -> string constant resolution -> type resolution -> model dump.

Usage:
    python run_generator.py --manifest frameworks.yaml
    python run_generator.py --manifest frameworks.yaml --framework Foundation --framework AppKit
    python run_generator.py --manifest frameworks.yaml --jobs 4 --strict-config
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
import time
from typing import Any, Optional

from core.framework_manifest import FrameworkManifest, load_framework_manifest, select_frameworks
from core.run_artifacts import write_jsonl, write_run_report
from core.structured_logging import configure_structured_logging, phase_scope, set_run_id
from core.startup_config import resolve_strict_config_validation, validate_startup_config
from extraction.clang import ClangInvoker
from extraction.discovery import DiscoveryResult, discover_framework
from extraction.struct_fields import load_struct_field_table
from resolution.context import ResolutionContext
from resolution.resolved_model import build_resolved_model
from resolution.string_constants import apply_string_values, resolve_string_constants
from scheduling.collector import GlobalTables, collect_results, coverage_report, run_batches
from scheduling.tasks import build_batches

logger = logging.getLogger(__name__)


def _final_status(total: int, failed: int) -> str:
    if total and failed >= total:
        return "failed"
    if failed:
        return "partial_success"
    return "success"


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Framework header extraction and host type resolution",
    )
    parser.add_argument(
        "--manifest",
        required=True,
        help="Path to the framework manifest (YAML or JSON).",
    )
    parser.add_argument(
        "--framework",
        action="append",
        default=[],
        help="Restrict the run to this framework (repeatable).",
    )
    parser.add_argument(
        "--jobs",
        type=int,
        default=None,
        help="Worker pool size. Default: GENERATOR_POOL_SIZE or min(cpu, 8).",
    )
    parser.add_argument(
        "--max-headers-per-batch",
        type=int,
        default=None,
        help="Split frameworks into batches of at most this many headers.",
    )
    parser.add_argument(
        "--output-dir",
        default=None,
        help="Directory for the resolved model JSONL. Default: manifest output_dir.",
    )
    parser.add_argument(
        "--skip-string-values",
        action="store_true",
        default=False,
        help="Do not load framework binaries to resolve string enum values.",
    )
    parser.add_argument(
        "--strict-config",
        action="store_true",
        default=resolve_strict_config_validation(),
        help="Fail fast on missing compiler or SDK.",
    )
    return parser.parse_args(argv)


def _discover(frameworks) -> dict[str, DiscoveryResult]:
    discoveries: dict[str, DiscoveryResult] = {}
    for fw in frameworks:
        if not os.path.isdir(fw.headers_path):
            logger.warning("Headers directory missing for %s: %s", fw.name, fw.headers_path)
            continue
        discoveries[fw.name] = discover_framework(fw.headers_path, extra_classes=fw.extra_headers.keys())
        logger.info("%s: discovered %s", fw.name, discoveries[fw.name].counts())
    return discoveries


def _resolve_string_values(frameworks, tables: GlobalTables) -> dict[str, int]:
    resolved: dict[str, int] = {}
    for fw in frameworks:
        fw_tables = tables.frameworks.get(fw.name)
        if fw_tables is None or not fw_tables.string_enums:
            continue
        symbols = [v.symbol_name for e in fw_tables.string_enums.values() for v in e.values]
        values = resolve_string_constants(fw.library_path, symbols)
        resolved[fw.name] = apply_string_values(fw_tables.string_enums, values)
    return resolved


def execute_generator_pipeline(
    manifest: FrameworkManifest,
    framework_names: list[str],
    jobs: Optional[int] = None,
    max_headers_per_batch: Optional[int] = None,
    output_dir: Optional[str] = None,
    strict_config: bool = False,
    resolve_strings: bool = True,
    invoker: Optional[ClangInvoker] = None,
) -> dict[str, Any]:
    """Run every phase and return the run report payload."""
    frameworks = select_frameworks(manifest, framework_names)
    if not frameworks:
        raise ValueError("No enabled frameworks selected")

    toolchain = validate_startup_config(
        sdk_path=manifest.sdk_path,
        pool_size=jobs,
        strict=strict_config,
    )
    invoker = invoker or ClangInvoker(clang_path=toolchain.clang_path, sdk_path=toolchain.sdk_path)
    report: dict[str, Any] = {"frameworks": [fw.name for fw in frameworks]}
    t0 = time.time()

    with phase_scope("discovery"):
        discoveries = _discover(frameworks)

    with phase_scope("extraction"):
        tasks = build_batches(frameworks, discoveries, max_headers_per_batch)
        outcomes = run_batches(tasks, invoker, pool_size=toolchain.pool_size)
        tables = collect_results(outcomes)

    with phase_scope("string_values"):
        report["string_values_resolved"] = _resolve_string_values(frameworks, tables) if resolve_strings else {}

    with phase_scope("resolution"):
        field_names = load_struct_field_table(manifest.struct_fields_header)
        ctx = ResolutionContext.from_global_tables(tables, field_names)
        model = build_resolved_model(
            ctx,
            classes=tables.classes,
            protocols=tables.protocols,
            structs=tables.structs,
            integer_enums=tables.integer_enums,
            string_enums=tables.string_enums,
            struct_aliases=tables.struct_aliases,
        )

    with phase_scope("output"):
        out_dir = output_dir or manifest.output_dir
        model_path = os.path.join(out_dir, "resolved_model.jsonl")
        written = write_jsonl(model.records(), model_path)
        logger.info("Wrote %d record(s) to %s", written, model_path)

    failed = sum(1 for o in outcomes if not o.ok)
    report.update({
        "status": _final_status(len(outcomes), failed),
        "batches": len(outcomes),
        "batch_errors": failed,
        "coverage": coverage_report(discoveries, tables, outcomes),
        "model_counts": model.counts(),
        "model_path": model_path,
        "elapsed_seconds": round(time.time() - t0, 2),
    })
    return report


def main() -> None:
    configure_structured_logging(level=logging.INFO)
    args = parse_args()
    run_id = set_run_id()

    run_report: dict[str, Any] = {
        "run_id": run_id,
        "pipeline": "generator",
        "status": "failed",
    }
    try:
        manifest = load_framework_manifest(args.manifest)
        result = execute_generator_pipeline(
            manifest=manifest,
            framework_names=args.framework,
            jobs=args.jobs,
            max_headers_per_batch=args.max_headers_per_batch,
            output_dir=args.output_dir,
            strict_config=args.strict_config,
            resolve_strings=not args.skip_string_values,
        )
        run_report.update(result)
        report_path = write_run_report(run_report, run_id)
        logger.info("Run report written: %s", report_path)
        if run_report["status"] == "failed":
            sys.exit(1)
    except Exception as exc:
        run_report["error"] = str(exc)
        report_path = write_run_report(run_report, run_id)
        logger.info("Run report written: %s", report_path)
        logger.error("Generator pipeline failed: %s", exc, exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
