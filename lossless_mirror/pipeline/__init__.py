"""
Batch conversion pipeline.
"""

from lossless_mirror.pipeline.orchestrator import (
    Orchestrator,
    RunSummary,
    convert_file,
    partial_path,
    validate_roots,
)

__all__ = ["Orchestrator", "RunSummary", "convert_file", "partial_path", "validate_roots"]
