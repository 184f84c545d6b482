"""Run external build tooling (``dotnet``) as subprocesses."""

from __future__ import annotations

import logging
import subprocess
from collections.abc import Callable
from pathlib import Path

logger = logging.getLogger(__name__)

_BUILD_TIMEOUT = 3600  # seconds

ProcessRunner = Callable[[list[str], Path], str]


class BuildToolError(Exception):
    """Raised when an external build tool exits unsuccessfully or cannot be started."""


def run_process(cmd: list[str], cwd: Path) -> str:
    """Run *cmd* in *cwd* and return its standard output.

    Raises
    ------
    BuildToolError
        On non-zero exit, timeout, or if the executable is missing.
    """
    logger.debug("Running %s in '%s'.", " ".join(cmd), cwd)
    try:
        result = subprocess.run(
            cmd,
            cwd=cwd,
            capture_output=True,
            text=True,
            check=True,
            timeout=_BUILD_TIMEOUT,
        )
    except subprocess.CalledProcessError as exc:
        output = ((exc.stdout or "") + (exc.stderr or "")).strip()
        raise BuildToolError(f"Command failed: {' '.join(cmd)}\nExit code {exc.returncode}: {output}") from exc
    except subprocess.TimeoutExpired as exc:
        raise BuildToolError(f"Command timed out after {_BUILD_TIMEOUT}s: {' '.join(cmd)}") from exc
    except FileNotFoundError as exc:
        raise BuildToolError(f"Executable not found: {cmd[0]}") from exc
    return result.stdout
