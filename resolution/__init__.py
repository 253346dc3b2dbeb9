"""
Layer 3: Type Resolution

Maps extracted declarations to host-language types against one shared,
read-only context built after every batch has been collected.
"""

from resolution.conformance import build_conformer_map
from resolution.context import ResolutionContext
from resolution.block_types import parse_block_signature
from resolution.type_mapper import (
    resolve_param_type,
    resolve_return_type,
    resolve_type,
    selector_to_member_name,
)
from resolution.resolved_model import (
    ResolvedModel,
    build_resolved_model,
    resolve_class,
    resolve_protocol,
    resolve_struct,
)
from resolution.string_constants import apply_string_values, resolve_string_constants

__all__ = [
    "build_conformer_map",
    "ResolutionContext",
    "parse_block_signature",
    "resolve_type",
    "resolve_return_type",
    "resolve_param_type",
    "selector_to_member_name",
    "ResolvedModel",
    "build_resolved_model",
    "resolve_class",
    "resolve_protocol",
    "resolve_struct",
    "resolve_string_constants",
    "apply_string_values",
]
