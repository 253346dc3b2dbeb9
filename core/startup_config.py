"""Startup configuration helpers.

Resolves toolchain locations and worker pool sizing from the environment and
validates them before any compiler invocation is attempted. Environment
variables are loaded from a .env file at module import time via python-dotenv.
"""

from __future__ import annotations

import logging
import os
import shutil
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

# Idempotent; does nothing if already loaded or missing.
load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_CLANG_PATH: str = "clang"
DEFAULT_SDK_PATH: str = (
    "/Applications/Xcode.app/Contents/Developer/Platforms/MacOSX.platform/"
    "Developer/SDKs/MacOSX.sdk"
)

# Compiler subprocesses hold a full declaration tree in memory each; beyond
# this many concurrent parses peak memory grows faster than throughput.
MAX_POOL_SIZE: int = 8


class ConfigValidationError(RuntimeError):
    """Raised when strict startup validation fails."""


def _env_flag(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str) -> Optional[int]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return None
    try:
        return int(raw.strip())
    except ValueError:
        logger.warning("Ignoring non-integer %s=%r", name, raw)
        return None


def resolve_strict_config_validation(default: bool = False) -> bool:
    """Resolve strict validation mode from ``STRICT_CONFIG_VALIDATION`` env."""
    return _env_flag("STRICT_CONFIG_VALIDATION", default=default)


def resolve_clang_path() -> str:
    """Resolve the compiler executable from ``CLANG_PATH``."""
    return os.getenv("CLANG_PATH", DEFAULT_CLANG_PATH).strip() or DEFAULT_CLANG_PATH


def resolve_sdk_path(override: Optional[str] = None) -> str:
    """Resolve the platform SDK root (explicit override, ``SDK_PATH``, default)."""
    if override:
        return override
    return os.getenv("SDK_PATH", DEFAULT_SDK_PATH).strip() or DEFAULT_SDK_PATH


def resolve_pool_size(requested: Optional[int] = None) -> int:
    """Worker count: min(available CPUs, 8) unless explicitly overridden.

    An explicit ``requested`` value or ``GENERATOR_POOL_SIZE`` wins but is
    still clamped to at least one worker.
    """
    explicit = requested if requested is not None else _env_int("GENERATOR_POOL_SIZE")
    if explicit is not None:
        return max(1, explicit)
    cpus = os.cpu_count() or 4
    return max(1, min(cpus, MAX_POOL_SIZE))


@dataclass(frozen=True)
class ToolchainConfig:
    """Resolved compiler settings shared by every worker."""

    clang_path: str
    sdk_path: str
    pool_size: int


def validate_startup_config(
    clang_path: Optional[str] = None,
    sdk_path: Optional[str] = None,
    pool_size: Optional[int] = None,
    strict: bool = False,
) -> ToolchainConfig:
    """Resolve and check toolchain settings.

    In non-strict mode problems are logged and the resolved values are still
    returned; each batch will then report its own invocation failure. In strict
    mode a missing compiler or SDK raises ``ConfigValidationError``.
    """
    resolved_clang = clang_path or resolve_clang_path()
    resolved_sdk = resolve_sdk_path(sdk_path)
    resolved_pool = resolve_pool_size(pool_size)

    if shutil.which(resolved_clang) is None and not os.path.isfile(resolved_clang):
        msg = f"Compiler not found on PATH: {resolved_clang}"
        if strict:
            raise ConfigValidationError(msg)
        logger.warning("%s; batches will report invocation failures", msg)

    if not os.path.isdir(resolved_sdk):
        msg = f"SDK directory not found: {resolved_sdk}"
        if strict:
            raise ConfigValidationError(msg)
        logger.warning("%s; continuing without validation", msg)

    logger.debug(
        "Toolchain config: clang=%s sdk=%s pool_size=%d",
        resolved_clang,
        resolved_sdk,
        resolved_pool,
    )
    return ToolchainConfig(
        clang_path=resolved_clang,
        sdk_path=resolved_sdk,
        pool_size=resolved_pool,
    )
