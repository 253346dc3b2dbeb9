"""Manifest contract for the framework generation pipeline."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml

DEFAULT_FALLBACK_PRE_INCLUDE: str = "Foundation/Foundation.h"


@dataclass(frozen=True)
class FrameworkSpec:
    """One native framework to extract declarations from."""

    name: str
    library_path: str
    headers_path: str
    pre_includes: list[str] = field(default_factory=list)
    extra_headers: dict[str, str] = field(default_factory=dict)
    enabled: bool = True

    @property
    def fallback_pre_includes(self) -> list[str]:
        """Pre-include stack used by the fallback compiler mode."""
        stack = [DEFAULT_FALLBACK_PRE_INCLUDE]
        for inc in self.pre_includes:
            if inc not in stack:
                stack.append(inc)
        return stack


@dataclass(frozen=True)
class FrameworkManifest:
    """Top-level manifest payload."""

    frameworks: list[FrameworkSpec]
    sdk_path: Optional[str] = None
    output_dir: str = "output/model"
    struct_fields_header: Optional[str] = None


def _expect_dict(payload: Any, ctx: str) -> dict[str, Any]:
    if not isinstance(payload, dict):
        raise ValueError(f"{ctx} must be an object")
    return payload


def _load_manifest_payload(path: str) -> dict[str, Any]:
    manifest_path = Path(path)
    if not manifest_path.is_file():
        raise FileNotFoundError(f"Manifest file not found: {manifest_path}")

    text = manifest_path.read_text(encoding="utf-8")
    suffix = manifest_path.suffix.lower()
    if suffix == ".json":
        payload = json.loads(text)
    else:
        payload = yaml.safe_load(text)
    return _expect_dict(payload, "manifest")


def _resolve_sdk_relative(path: str, sdk_path: Optional[str]) -> str:
    """Paths starting with ``/`` are absolute; others hang off the SDK root."""
    if os.path.isabs(path) or not sdk_path:
        return path
    return os.path.join(sdk_path, path)


def _parse_framework_spec(payload: dict[str, Any], sdk_path: Optional[str]) -> FrameworkSpec:
    name = str(payload.get("name", "")).strip()
    library_path = str(payload.get("library_path", "")).strip()
    headers_path = str(payload.get("headers_path", "")).strip()
    enabled = bool(payload.get("enabled", True))

    if not name:
        raise ValueError("framework.name is required")
    if not library_path:
        raise ValueError(f"framework '{name}': library_path is required")
    if not headers_path:
        raise ValueError(f"framework '{name}': headers_path is required")

    pre_raw = payload.get("pre_includes", []) or []
    if not isinstance(pre_raw, list):
        raise ValueError(f"framework '{name}': pre_includes must be a list")
    pre_includes = [str(item).strip() for item in pre_raw if str(item).strip()]

    extra_raw = _expect_dict(payload.get("extra_headers", {}) or {}, f"framework '{name}' extra_headers")
    extra_headers: dict[str, str] = {}
    for class_name, header in extra_raw.items():
        header_path = str(header).strip()
        if not header_path:
            raise ValueError(f"framework '{name}': extra header for {class_name} is empty")
        extra_headers[str(class_name)] = _resolve_sdk_relative(header_path, sdk_path)

    return FrameworkSpec(
        name=name,
        library_path=library_path,
        headers_path=_resolve_sdk_relative(headers_path, sdk_path),
        pre_includes=pre_includes,
        extra_headers=extra_headers,
        enabled=enabled,
    )


def load_framework_manifest(path: str) -> FrameworkManifest:
    """Load and validate a framework manifest from a YAML/JSON file."""
    payload = _load_manifest_payload(path)
    sdk_raw = payload.get("sdk_path")
    sdk_path = str(sdk_raw).strip() if sdk_raw else None

    frameworks_raw = payload.get("frameworks")
    if not isinstance(frameworks_raw, list) or len(frameworks_raw) == 0:
        raise ValueError("frameworks must be a non-empty list")

    frameworks: list[FrameworkSpec] = []
    seen: set[str] = set()
    for raw in frameworks_raw:
        spec = _parse_framework_spec(_expect_dict(raw, "framework entry"), sdk_path)
        if spec.name in seen:
            raise ValueError(f"Duplicate framework name in manifest: {spec.name}")
        seen.add(spec.name)
        frameworks.append(spec)

    struct_fields = payload.get("struct_fields_header")
    return FrameworkManifest(
        frameworks=frameworks,
        sdk_path=sdk_path,
        output_dir=str(payload.get("output_dir", "output/model")),
        struct_fields_header=str(struct_fields) if struct_fields else None,
    )


def select_frameworks(manifest: FrameworkManifest, names: list[str]) -> list[FrameworkSpec]:
    """Return enabled frameworks, optionally filtered by name.

    Raises:
        ValueError: If a requested name is not in the manifest.
    """
    enabled = [fw for fw in manifest.frameworks if fw.enabled]
    if not names:
        return enabled
    known = {fw.name for fw in enabled}
    unknown = [n for n in names if n not in known]
    if unknown:
        raise ValueError(
            f"Unknown framework(s): {', '.join(unknown)}. "
            f"Available: {', '.join(sorted(known))}"
        )
    wanted = set(names)
    return [fw for fw in enabled if fw.name in wanted]
