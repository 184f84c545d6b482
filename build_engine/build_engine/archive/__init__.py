"""Archive codec for build output snapshots."""

from build_engine.archive.zip_codec import ArchiveError, pack, unpack

__all__ = ["ArchiveError", "pack", "unpack"]
