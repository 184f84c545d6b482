"""Pack build outputs into a single zip blob and unpack them again.

Entry names are stored relative to the base folder in POSIX form so an
archive can be restored into any checkout of the repository.  The format
is an implementation detail of this module; callers only rely on
``unpack(pack(files))`` reproducing the same relative paths and bytes.
"""

from __future__ import annotations

import logging
import shutil
import zipfile
import zlib
from collections.abc import Callable, Iterable
from pathlib import Path, PurePosixPath

logger = logging.getLogger(__name__)

_COPY_CHUNK = 1024 * 1024


class ArchiveError(Exception):
    """Raised when an archive cannot be written, read or extracted."""


def _entry_name(base_folder: Path, file_path: Path) -> str:
    try:
        relative = file_path.resolve().relative_to(base_folder)
    except ValueError as exc:
        raise ArchiveError(f"File '{file_path}' is outside the archive base folder '{base_folder}'.") from exc
    return relative.as_posix()


def pack(base_folder: Path, files: Iterable[Path], output_path: Path) -> Path:
    """Write *files* into a zip archive at *output_path*.

    Parameters
    ----------
    base_folder:
        Entry names are recorded relative to this directory.
    files:
        Files to include.  Duplicates are not filtered; an empty iterable
        produces a valid empty archive.
    output_path:
        Destination of the archive; overwritten if it exists.

    Returns
    -------
    Path
        *output_path*, for chaining into a snapshot store.

    Raises
    ------
    ArchiveError
        If a file lies outside *base_folder* or any I/O operation fails.
    """
    base = base_folder.resolve()
    count = 0
    try:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with zipfile.ZipFile(output_path, mode="w", compression=zipfile.ZIP_DEFLATED) as archive:
            for file_path in files:
                archive.write(file_path, arcname=_entry_name(base, file_path))
                count += 1
    except (OSError, zipfile.BadZipFile) as exc:
        raise ArchiveError(f"Failed to write archive '{output_path}': {exc}") from exc

    logger.info("Packed %d file(s) from '%s' into '%s'.", count, base, output_path)
    return output_path


def _safe_target(target: Path, name: str) -> Path:
    entry = PurePosixPath(name)
    if entry.is_absolute() or ".." in entry.parts:
        raise ArchiveError(f"Archive entry '{name}' escapes the extraction folder.")
    return target.joinpath(*entry.parts)


def unpack(
    archive_path: Path,
    target_folder: Path,
    skip: Callable[[str], bool] | None = None,
) -> list[Path]:
    """Extract *archive_path* under *target_folder*, creating directories as needed.

    Parameters
    ----------
    archive_path:
        Archive produced by :func:`pack`.
    target_folder:
        Root the relative entry names are restored under.
    skip:
        Optional predicate on entry names; matching entries are not extracted.

    Returns
    -------
    list[Path]
        The files written, in archive order.

    Raises
    ------
    ArchiveError
        If the archive is missing or corrupt, an entry escapes
        *target_folder*, or the target is not writable.  Files extracted
        before the failure are left on disk.
    """
    written: list[Path] = []
    try:
        with zipfile.ZipFile(archive_path, mode="r") as archive:
            for info in archive.infolist():
                if info.is_dir():
                    continue
                if skip is not None and skip(info.filename):
                    continue
                destination = _safe_target(target_folder, info.filename)
                destination.parent.mkdir(parents=True, exist_ok=True)
                with archive.open(info) as source, destination.open("wb") as sink:
                    shutil.copyfileobj(source, sink, _COPY_CHUNK)
                written.append(destination)
    except ArchiveError:
        raise
    except (OSError, EOFError, zipfile.BadZipFile, zlib.error) as exc:
        raise ArchiveError(
            f"Failed to extract archive '{archive_path}' into '{target_folder}' "
            f"after {len(written)} file(s): {exc}"
        ) from exc

    logger.info("Unpacked %d file(s) from '%s' into '%s'.", len(written), archive_path, target_folder)
    return written
