"""External build-tool integration."""

from build_engine.executor.dotnet import build_order, build_projects, create_view
from build_engine.executor.process import BuildToolError, ProcessRunner, run_process

__all__ = [
    "BuildToolError",
    "ProcessRunner",
    "build_order",
    "build_projects",
    "create_view",
    "run_process",
]
