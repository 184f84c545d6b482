"""Incremental build planning, snapshot restore and snapshot creation."""

from build_engine.orchestrator.incremental import (
    IncrementalBuilder,
    collect_output_files,
    get_incremental_build,
    output_folders,
)

__all__ = [
    "IncrementalBuilder",
    "collect_output_files",
    "get_incremental_build",
    "output_folders",
]
