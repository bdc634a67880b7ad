"""On-disk archive cache keyed by (owner, name, revision)."""
import logging
import os
import re
import tempfile
from pathlib import Path
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from gitter.core.errors import GitterIOError
from gitter.forge.identifier import RepositoryRef

logger = logging.getLogger(__name__)

ARCHIVE_SUFFIX = ".tar.gz"
REVISION_PATTERN = re.compile(r"[0-9A-Za-z]+", re.ASCII)


class CacheEntry(BaseModel):
    """One cached archive on disk."""

    owner: str = Field(..., description="Repository owner")
    name: str = Field(..., description="Repository name")
    revision: str = Field(..., description="Commit sha the archive was taken at")
    path: Path = Field(..., description="Location of the archive")
    size_bytes: int = Field(default=0, ge=0, description="Archive size on disk")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "owner": "octocat",
                "name": "Hello-World",
                "revision": "7fd1a60b01f91b314f59955a4e4d4e80d8edf11d",
                "path": "/home/user/.gitter/archives/octocat_Hello-World-7fd1a60b01f91b314f59955a4e4d4e80d8edf11d.tar.gz",
                "size_bytes": 1024,
            }
        }
    )

    @property
    def repository(self) -> str:
        return f"{self.owner}/{self.name}"


def parse_archive_name(filename: str) -> Optional[Tuple[str, str, str]]:
    """Split "<owner>_<name>-<revision>.tar.gz" into its parts.

    Owners never contain "_" and revisions never contain "-", so the first
    underscore and the last hyphen are the boundaries.

    Returns:
        (owner, name, revision), or None for files gitter did not write
    """
    if not filename.endswith(ARCHIVE_SUFFIX):
        return None
    stem = filename[: -len(ARCHIVE_SUFFIX)]
    owner, sep, rest = stem.partition("_")
    if not sep or not owner:
        return None
    name, sep, revision = rest.rpartition("-")
    if not sep or not name or not revision:
        return None
    return owner, name, revision


class CacheStore:
    """Archive cache rooted at a single directory.

    At most one archive per repository is kept once a fresh download has
    been saved; older revisions are evicted.
    """

    def __init__(self, cache_root: Path) -> None:
        self.cache_root = Path(cache_root).expanduser()

    def cache_path(self, ref: RepositoryRef, revision: str) -> Path:
        """Return <cache_root>/<owner>_<name>-<revision>.tar.gz (no I/O).

        Raises:
            ValueError: If revision is not alphanumeric, since such a name
                could not be parsed back or would point outside cache_root
        """
        if not REVISION_PATTERN.fullmatch(revision):
            raise ValueError(f"Invalid revision for cache key: {revision!r}")
        return self.cache_root / f"{ref.slug}-{revision}{ARCHIVE_SUFFIX}"

    def exists(self, ref: RepositoryRef, revision: str) -> bool:
        """True if an archive for this exact revision is cached."""
        return self.cache_path(ref, revision).is_file()

    def save(self, data: bytes, ref: RepositoryRef, revision: str) -> Path:
        """Write archive bytes for a revision, replacing any existing file.

        The bytes go to a temporary file in the cache root first and are then
        moved into place, so an interrupted write never leaves a truncated
        archive under the final name.

        Raises:
            GitterIOError: If the cache root cannot be created or written
        """
        path = self.cache_path(ref, revision)
        try:
            self.cache_root.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=str(self.cache_root), prefix=".gitter-", suffix=".tmp"
            )
        except OSError as e:
            raise GitterIOError(f"Cannot prepare cache directory ({e.strerror or e})", self.cache_root) from e

        tmp_path = Path(tmp_name)
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.replace(tmp_path, path)
        except OSError as e:
            tmp_path.unlink(missing_ok=True)
            raise GitterIOError(f"Cannot write archive ({e.strerror or e})", path) from e

        logger.info(f"Saved {len(data)} bytes to {path}")
        return path

    def entries(self, ref: Optional[RepositoryRef] = None) -> List[CacheEntry]:
        """List cached archives, optionally only those of one repository."""
        if not self.cache_root.is_dir():
            return []

        found = []
        for path in sorted(self.cache_root.iterdir()):
            parts = parse_archive_name(path.name)
            if parts is None or not path.is_file():
                continue
            owner, name, revision = parts
            if ref is not None and (owner, name) != (ref.owner, ref.name):
                continue
            found.append(
                CacheEntry(
                    owner=owner,
                    name=name,
                    revision=revision,
                    path=path,
                    size_bytes=path.stat().st_size,
                )
            )
        return found

    def evict_stale(self, ref: RepositoryRef, keep: Optional[str] = None) -> List[Path]:
        """Delete cached archives of a repository, except revision `keep`.

        Matching is on the parsed (owner, name) pair, never on a raw prefix,
        so evicting "foo" leaves "foo2" and "foo-bar" alone. A file that
        cannot be deleted is logged and skipped.

        Returns:
            Paths that were deleted
        """
        stale = [entry for entry in self.entries(ref) if entry.revision != keep]
        return self._remove(entry.path for entry in stale)

    def clear(self, ref: Optional[RepositoryRef] = None) -> List[Path]:
        """Delete every cached archive, or every archive of one repository."""
        return self._remove(entry.path for entry in self.entries(ref))

    def _remove(self, paths) -> List[Path]:
        removed = []
        for path in paths:
            try:
                path.unlink()
            except OSError as e:
                logger.warning(f"Could not remove stale archive {path}: {e}")
                continue
            logger.info(f"Removed cached archive {path.name}")
            removed.append(path)
        return removed
