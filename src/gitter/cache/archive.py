"""Unpack forge tarballs, dropping the single top-level wrapper directory."""
import gzip
import logging
import posixpath
import tarfile
import zlib
from pathlib import Path
from typing import Optional

from gitter.core.errors import ExtractionError, GitterIOError

logger = logging.getLogger(__name__)

# extraction filters (PEP 706) exist from 3.12 and in later security releases of 3.9-3.11
EXTRACT_KWARGS = {"filter": "data"} if hasattr(tarfile, "data_filter") else {}


def strip_top_level(name: str) -> Optional[str]:
    """Drop the first path component of an archive member name.

    Examples:
        octocat-Hello-World-7fd1a60/README -> README
        octocat-Hello-World-7fd1a60/ -> None
    """
    parts = [part for part in name.split("/") if part not in ("", ".")]
    if len(parts) <= 1:
        return None
    return "/".join(parts[1:])


def _is_within(path: Path, root: Path) -> bool:
    try:
        path.relative_to(root)
    except ValueError:
        return False
    return True


def _check_member(member: tarfile.TarInfo, target_dir: Path) -> None:
    """Reject a (stripped) member that would land outside target_dir.

    Raises:
        ExtractionError: On absolute paths, '..' components, or links whose
            destination resolves outside target_dir
    """
    name = member.name
    if name.startswith(("/", "\\")) or ".." in name.replace("\\", "/").split("/"):
        raise ExtractionError(f"Refusing to extract unsafe path: {name}")

    destination = (target_dir / name).resolve()
    if not _is_within(destination, target_dir):
        raise ExtractionError(f"Refusing to extract outside {target_dir}: {name}")

    if member.issym():
        link_target = (destination.parent / member.linkname).resolve()
        if posixpath.isabs(member.linkname) or not _is_within(link_target, target_dir):
            raise ExtractionError(f"Refusing symlink escaping {target_dir}: {name} -> {member.linkname}")
    elif member.islnk():
        link_target = (target_dir / member.linkname).resolve()
        if not _is_within(link_target, target_dir):
            raise ExtractionError(f"Refusing hardlink escaping {target_dir}: {name} -> {member.linkname}")


def extract_archive(archive_path: Path, target_dir: Path) -> int:
    """Extract a gzip tarball into target_dir without its wrapper folder.

    Forge tarballs put everything under "<owner>-<repo>-<sha>/"; that
    component is removed so target_dir receives the repository contents
    directly.

    Args:
        archive_path: Path to the .tar.gz file
        target_dir: Directory to unpack into (created if missing)

    Returns:
        Number of regular files written

    Raises:
        GitterIOError: If the archive cannot be opened or is not gzip/tar
            (path is the archive), or if writing into target_dir fails
            (path is the destination file)
        ExtractionError: If an entry would be written outside target_dir
    """
    archive_path = Path(archive_path)
    target_dir = Path(target_dir)

    try:
        target_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise GitterIOError(f"Cannot create target directory ({e.strerror or e})", target_dir) from e
    root = target_dir.resolve()

    file_count = 0
    try:
        with tarfile.open(archive_path, "r:gz") as tar:
            for member in tar:
                stripped = strip_top_level(member.name)
                if stripped is None:
                    continue
                member.name = stripped
                if member.islnk():
                    linkname = strip_top_level(member.linkname)
                    if linkname is None:
                        raise ExtractionError(f"Hardlink to archive root: {stripped} -> {member.linkname}")
                    member.linkname = linkname

                _check_member(member, root)
                try:
                    tar.extract(member, path=str(root), set_attrs=False, **EXTRACT_KWARGS)
                except gzip.BadGzipFile:
                    raise
                except OSError as e:
                    raise GitterIOError(f"Cannot write ({e.strerror or e})", root / member.name) from e
                if member.isfile():
                    file_count += 1
    except FileNotFoundError as e:
        raise GitterIOError("Archive not found", archive_path) from e
    except (tarfile.TarError, gzip.BadGzipFile, zlib.error, EOFError) as e:
        raise GitterIOError(f"Corrupt archive ({e})", archive_path) from e
    except OSError as e:
        raise GitterIOError(f"Cannot read archive ({e.strerror or e})", archive_path) from e

    logger.info(f"Extracted {file_count} files from {archive_path.name} into {target_dir}")
    return file_count
