"""
Compiler invocation producing JSON declaration trees.

Runs clang's syntax-only frontend with ``-ast-dump=json`` over one header or a
synthetic translation unit that includes many, and returns the pruned,
location-resolved declaration tree.
"""

from __future__ import annotations

import json
import logging
import os
import subprocess
import tempfile
from enum import Enum
from typing import Any, Dict, Optional, Sequence

from core.startup_config import resolve_clang_path, resolve_sdk_path
from extraction.ast_nodes import ClangNode, build_tree

logger = logging.getLogger(__name__)

# Tail of stderr kept on invocation errors.
_STDERR_TAIL_LINES = 20


class CompilerMode(str, Enum):
    """How macros and framework headers are made visible to the frontend."""

    MODULES = "modules"
    PRE_INCLUDE = "pre_include"


class ClangInvocationError(RuntimeError):
    """The compiler could not be started or produced no parseable tree."""

    def __init__(self, message: str, headers: Sequence[str] = (), returncode: Optional[int] = None):
        super().__init__(message)
        self.headers = list(headers)
        self.returncode = returncode


def build_command(
    clang_path: str,
    sdk_path: str,
    source_path: str,
    mode: CompilerMode,
    pre_includes: Sequence[str] = (),
    extra_args: Sequence[str] = (),
) -> list[str]:
    """Assemble the clang argument vector for one invocation."""
    cmd = [
        clang_path,
        "-Xclang", "-ast-dump=json",
        "-fsyntax-only",
        "-x", "objective-c",
        "-isysroot", sdk_path,
    ]
    if mode is CompilerMode.MODULES:
        cmd.append("-fmodules")
    else:
        for inc in pre_includes:
            cmd.extend(["-include", inc])
    cmd.extend(extra_args)
    cmd.extend(["-Xclang", "-fparse-all-comments"])
    cmd.append(source_path)
    return cmd


def _write_synthetic_unit(headers: Sequence[str]) -> str:
    """Write a temporary .m file that #includes every header, return its path."""
    fd, path = tempfile.mkstemp(prefix="decl-batch-", suffix=".m")
    with os.fdopen(fd, "w", encoding="utf-8") as f:
        for header in headers:
            f.write(f'#include "{header}"\n')
    return path


def _parse_output(stdout: bytes, headers: Sequence[str], returncode: int) -> Dict[str, Any]:
    if not stdout.strip():
        raise ClangInvocationError(
            f"clang produced no output for {len(headers)} header(s) (exit {returncode})",
            headers=headers,
            returncode=returncode,
        )
    try:
        payload = json.loads(stdout)
    except json.JSONDecodeError as e:
        raise ClangInvocationError(
            f"clang output is not valid JSON for {len(headers)} header(s): {e}",
            headers=headers,
            returncode=returncode,
        ) from e
    if not isinstance(payload, dict) or "kind" not in payload:
        raise ClangInvocationError(
            "clang output is not a declaration tree",
            headers=headers,
            returncode=returncode,
        )
    return payload


class ClangInvoker:
    """Runs the compiler frontend for a fixed toolchain configuration.

    One invoker is shared by every worker thread; it keeps no per-call state.
    """

    def __init__(
        self,
        clang_path: Optional[str] = None,
        sdk_path: Optional[str] = None,
        extra_args: Sequence[str] = (),
    ):
        self.clang_path = clang_path or resolve_clang_path()
        self.sdk_path = resolve_sdk_path(sdk_path)
        self.extra_args = list(extra_args)

    def dump_raw(
        self,
        headers: Sequence[str],
        pre_includes: Sequence[str] = (),
        mode: CompilerMode = CompilerMode.MODULES,
    ) -> Dict[str, Any]:
        """Run clang and return the unpruned JSON translation unit.

        A single header is compiled directly; several headers are merged into
        one synthetic unit so the frontend runs once per batch. A merged unit
        is never compiled with modules: the module system deduplicates
        headers it has already imported, so it always uses ``pre_includes``.

        Raises:
            ClangInvocationError: If clang cannot be started or emits no
                parseable tree. A non-zero exit status alone is not an error.
        """
        if not headers:
            raise ClangInvocationError("No headers to compile")

        synthetic: Optional[str] = None
        if len(headers) == 1:
            source_path = headers[0]
        else:
            if mode is CompilerMode.MODULES:
                logger.debug("Merged unit of %d headers compiled in pre-include mode", len(headers))
                mode = CompilerMode.PRE_INCLUDE
            synthetic = _write_synthetic_unit(headers)
            source_path = synthetic

        cmd = build_command(
            self.clang_path,
            self.sdk_path,
            source_path,
            mode,
            pre_includes=pre_includes,
            extra_args=self.extra_args,
        )
        logger.debug("Running clang (%s) on %d header(s): %s", mode.value, len(headers), " ".join(cmd))

        try:
            proc = subprocess.run(cmd, stdout=subprocess.PIPE, stderr=subprocess.PIPE, check=False)
        except OSError as e:
            logger.error("Failed to start clang: %s", e)
            raise ClangInvocationError(f"Failed to start {self.clang_path}: {e}", headers=headers) from e
        finally:
            if synthetic is not None:
                try:
                    os.unlink(synthetic)
                except OSError:
                    logger.debug("Could not remove synthetic unit %s", synthetic)

        if proc.returncode != 0:
            tail = proc.stderr.decode("utf-8", errors="replace").splitlines()[-_STDERR_TAIL_LINES:]
            logger.debug(
                "clang exited with %d for %s; stderr tail: %s",
                proc.returncode,
                headers[0],
                "\n".join(tail),
            )

        return _parse_output(proc.stdout, headers, proc.returncode)

    def dump(
        self,
        headers: Sequence[str],
        pre_includes: Sequence[str] = (),
        mode: CompilerMode = CompilerMode.MODULES,
    ) -> ClangNode:
        """Run clang and return the pruned, location-resolved declaration tree."""
        raw = self.dump_raw(headers, pre_includes=pre_includes, mode=mode)
        return build_tree(raw)


def clang_ast_dump(
    headers: Sequence[str],
    pre_includes: Sequence[str] = (),
    mode: CompilerMode = CompilerMode.MODULES,
    clang_path: Optional[str] = None,
    sdk_path: Optional[str] = None,
) -> ClangNode:
    """One-shot convenience wrapper around ``ClangInvoker.dump``."""
    return ClangInvoker(clang_path=clang_path, sdk_path=sdk_path).dump(
        headers, pre_includes=pre_includes, mode=mode
    )
