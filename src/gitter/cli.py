"""gitter CLI - fetch and unpack the latest snapshot of a GitHub repository."""
import logging
import sys
from pathlib import Path
from typing import Optional

import click

from gitter.cache import CacheStore
from gitter.config import DEFAULT_API_URL, GitterConfig, default_cache_root
from gitter.core.errors import (
    ExtractionError,
    GitterError,
    GitterIOError,
    InvalidIdentifierError,
    NetworkError,
    NotFoundError,
    TooManyRedirectsError,
    UnknownStatusCodeError,
)
from gitter.forge import parse_repository
from gitter.pipeline import fetch_repository

logger = logging.getLogger("gitter")

EXIT_FAILURE = 1
EXIT_INVALID_IDENTIFIER = 2
EXIT_NOT_FOUND = 3
EXIT_NETWORK = 4
EXIT_IO = 5


def _exit_code_for(error: GitterError) -> int:
    if isinstance(error, InvalidIdentifierError):
        return EXIT_INVALID_IDENTIFIER
    if isinstance(error, NotFoundError):
        return EXIT_NOT_FOUND
    if isinstance(error, (NetworkError, UnknownStatusCodeError, TooManyRedirectsError)):
        return EXIT_NETWORK
    if isinstance(error, (GitterIOError, ExtractionError)):
        return EXIT_IO
    return EXIT_FAILURE


cache_dir_option = click.option(
    "--cache-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=default_cache_root,
    envvar="GITTER_CACHE_DIR",
    show_default="~/.gitter/archives",
    help="Directory holding cached archives",
)


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
def main(verbose: bool):
    """gitter - fetch the latest snapshot of a GitHub repository."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(name)s: %(message)s",
    )


@main.command()
@click.argument("repo")
@click.argument("target", required=False, type=click.Path(file_okay=False, path_type=Path))
@cache_dir_option
@click.option(
    "--api-url",
    default=DEFAULT_API_URL,
    envvar="GITTER_API_URL",
    show_default=True,
    help="Base URL of the forge REST API",
)
@click.option(
    "--branch",
    default=None,
    envvar="GITTER_BRANCH",
    help="Branch to fetch (default: the repository's default branch)",
)
@click.option(
    "--token",
    default=None,
    envvar="GITHUB_TOKEN",
    help="API token (default: $GITHUB_TOKEN)",
)
@click.option(
    "--timeout",
    type=click.FloatRange(min=0, min_open=True),
    default=None,
    envvar="GITTER_TIMEOUT",
    help="Per-request timeout in seconds (default: none)",
)
@click.option(
    "--force-refresh",
    is_flag=True,
    help="Ignore the cache and download again",
)
def fetch(
    repo: str,
    target: Optional[Path],
    cache_dir: Path,
    api_url: str,
    branch: Optional[str],
    token: Optional[str],
    timeout: Optional[float],
    force_refresh: bool,
):
    """Fetch REPO (owner/repo) and unpack it into TARGET.

    TARGET defaults to a directory named after the repository.

    Examples:
        gitter fetch octocat/Hello-World
        gitter fetch pallets/click vendor/click --branch main

    Exit codes:
        0: Success
        1: Generic runtime failure
        2: Invalid repository identifier
        3: Repository, branch or tarball not found
        4: Network or unexpected HTTP failure
        5: Local filesystem or archive failure
    """
    try:
        config = GitterConfig(
            cache_root=cache_dir,
            api_url=api_url,
            branch=branch,
            token=token,
            timeout=timeout,
        )
    except ValueError as e:
        raise click.BadParameter(str(e)) from e

    logger.info(f"Fetching latest {repo}...")
    try:
        result = fetch_repository(
            repo,
            target_dir=target,
            config=config,
            force_refresh=force_refresh,
        )
    except GitterError as e:
        logger.error(f"{e.stage} stage failed: {e}")
        sys.exit(_exit_code_for(e))
    except Exception as e:
        logger.error(f"Fetch failed: {e}")
        sys.exit(EXIT_FAILURE)

    click.echo(f"[OK] {result.repository}@{result.branch} unpacked")
    click.echo(f"  Commit: {result.revision[:12]}")
    click.echo(f"  Cache: {'hit' if result.cache_hit else 'miss'} ({result.archive_path})")
    click.echo(f"  Target: {result.target_dir} ({result.file_count} files)")
    if result.evicted:
        click.echo(f"  Evicted: {len(result.evicted)} stale archive(s)")
    sys.exit(0)


@main.group()
def cache():
    """Inspect or clean the archive cache."""


def _optional_ref(repo: Optional[str]):
    if repo is None:
        return None
    try:
        return parse_repository(repo)
    except InvalidIdentifierError as e:
        logger.error(str(e))
        sys.exit(EXIT_INVALID_IDENTIFIER)


@cache.command("list")
@click.argument("repo", required=False)
@cache_dir_option
def list_cache(repo: Optional[str], cache_dir: Path):
    """List cached archives, optionally only those of REPO."""
    store = CacheStore(cache_dir)
    entries = store.entries(_optional_ref(repo))
    if not entries:
        click.echo("No cached archives")
        return
    for entry in entries:
        click.echo(f"{entry.repository}  {entry.revision[:12]}  {entry.size_bytes} bytes  {entry.path}")


@cache.command("clean")
@click.argument("repo", required=False)
@cache_dir_option
def clean_cache(repo: Optional[str], cache_dir: Path):
    """Delete cached archives, or only those of REPO."""
    store = CacheStore(cache_dir)
    removed = store.clear(_optional_ref(repo))
    click.echo(f"[OK] Removed {len(removed)} archive(s)")


if __name__ == "__main__":
    main()
