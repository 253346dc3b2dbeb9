"""Core shared contracts and utilities."""

from core.structured_logging import (
    batch_scope,
    bind_context,
    configure_structured_logging,
    get_run_id,
    phase_scope,
    set_run_id,
)
from core.startup_config import (
    ConfigValidationError,
    ToolchainConfig,
    resolve_pool_size,
    resolve_strict_config_validation,
    validate_startup_config,
)
from core.run_artifacts import write_jsonl, write_run_report
from core.framework_manifest import (
    FrameworkManifest,
    FrameworkSpec,
    load_framework_manifest,
    select_frameworks,
)

__all__ = [
    "batch_scope",
    "bind_context",
    "configure_structured_logging",
    "get_run_id",
    "phase_scope",
    "set_run_id",
    "ConfigValidationError",
    "ToolchainConfig",
    "resolve_pool_size",
    "resolve_strict_config_validation",
    "validate_startup_config",
    "write_jsonl",
    "write_run_report",
    "FrameworkManifest",
    "FrameworkSpec",
    "load_framework_manifest",
    "select_frameworks",
]
