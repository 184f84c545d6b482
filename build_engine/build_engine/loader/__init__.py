"""Project-file discovery and parsing."""

from build_engine.loader.project_loader import (
    PROJECT_FILE_SUFFIXES,
    ProjectParseError,
    discover_project_files,
    load_project_structure,
    parse_project_file,
)

__all__ = [
    "PROJECT_FILE_SUFFIXES",
    "ProjectParseError",
    "discover_project_files",
    "load_project_structure",
    "parse_project_file",
]
