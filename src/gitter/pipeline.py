"""Fetch pipeline: resolve, check cache, download on miss, extract."""
import logging
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field

from gitter.cache import CacheStore, extract_archive
from gitter.config import GitterConfig
from gitter.forge import ForgeClient, parse_repository

logger = logging.getLogger(__name__)


class FetchResult(BaseModel):
    """Outcome of one pipeline run."""

    repository: str = Field(..., description="owner/repo")
    branch: str = Field(..., description="Branch the revision was resolved on")
    revision: str = Field(..., description="Commit sha that was extracted")
    archive_path: Path = Field(..., description="Cached archive used for extraction")
    target_dir: Path = Field(..., description="Directory the contents were unpacked into")
    cache_hit: bool = Field(..., description="True if no download was needed")
    file_count: int = Field(default=0, ge=0, description="Regular files extracted")
    evicted: List[Path] = Field(default_factory=list, description="Stale archives removed")


def fetch_repository(
    identifier: str,
    target_dir: Optional[Path] = None,
    config: Optional[GitterConfig] = None,
    client: Optional[ForgeClient] = None,
    store: Optional[CacheStore] = None,
    force_refresh: bool = False,
) -> FetchResult:
    """Fetch the latest snapshot of a repository and unpack it.

    The archive is downloaded only when no cached archive exists for the
    resolved commit (or when force_refresh is set). Stale archives of the
    same repository are evicted only after a successful download, so a
    failed download leaves the previous cache entry in place.

    Args:
        identifier: "owner/repo"
        target_dir: Where to unpack; defaults to ./<repo>
        config: Runtime configuration; read from GITTER_* variables when omitted
        client: Forge client; built from config when omitted
        store: Cache store; built from config when omitted
        force_refresh: Download even if the revision is cached

    Returns:
        FetchResult describing what was done

    Raises:
        InvalidIdentifierError, NetworkError, NotFoundError,
        UnknownStatusCodeError, TooManyRedirectsError, GitterIOError,
        ExtractionError, ConfigurationError (invalid GITTER_* variables)
    """
    config = config or GitterConfig.from_env()
    client = client or ForgeClient(config)
    store = store or CacheStore(config.cache_root)

    ref = parse_repository(identifier)
    target = Path(target_dir) if target_dir is not None else Path(ref.name)

    branch = config.branch or client.default_branch(ref)
    revision = client.resolve_latest(ref, branch)

    cache_hit = store.exists(ref, revision) and not force_refresh
    evicted: List[Path] = []
    if cache_hit:
        logger.info(f"Cached archive found for {ref}@{revision[:12]}, unpacking")
    else:
        logger.info(f"Downloading {ref}@{branch} ({revision[:12]})")
        data = client.fetch_tarball(ref, branch)
        evicted = store.evict_stale(ref, keep=revision)
        store.save(data, ref, revision)

    archive_path = store.cache_path(ref, revision)
    file_count = extract_archive(archive_path, target)

    return FetchResult(
        repository=str(ref),
        branch=branch,
        revision=revision,
        archive_path=archive_path,
        target_dir=target,
        cache_hit=cache_hit,
        file_count=file_count,
        evicted=evicted,
    )
