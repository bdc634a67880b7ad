"""Forge HTTP client: resolve the latest commit and download tarballs."""
import logging
from typing import Dict, Optional, Type, TypeVar
from urllib.parse import urljoin, urlparse

import requests
from pydantic import BaseModel, ValidationError

from gitter import __version__
from gitter.config import GitterConfig
from gitter.core.errors import (
    MalformedResponseError,
    NetworkError,
    NotFoundError,
    TooManyRedirectsError,
    UnknownStatusCodeError,
)
from gitter.forge.identifier import RepositoryRef
from gitter.forge.schemas import BranchInfo, RepositoryInfo

logger = logging.getLogger(__name__)

GITHUB_MEDIA_TYPE = "application/vnd.github+json"
REDIRECT_STATUSES = {301, 302, 303, 307, 308}

ModelT = TypeVar("ModelT", bound=BaseModel)


class ForgeClient:
    """Thin wrapper over a requests session for the forge REST API.

    Every call is a single blocking request; nothing is retried.
    """

    def __init__(
        self,
        config: Optional[GitterConfig] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.config = config or GitterConfig()
        self.session = session or requests.Session()
        self.session.headers.update(self._build_headers())

    def _build_headers(self) -> Dict[str, str]:
        headers = {
            "Accept": GITHUB_MEDIA_TYPE,
            "User-Agent": f"gitter/{__version__}",
        }
        if self.config.token:
            headers["Authorization"] = f"Bearer {self.config.token}"
        return headers

    def repository_url(self, ref: RepositoryRef) -> str:
        return f"{self.config.api_url}/repos/{ref.owner}/{ref.name}"

    def branch_url(self, ref: RepositoryRef, branch: str) -> str:
        return f"{self.repository_url(ref)}/branches/{branch}"

    def tarball_url(self, ref: RepositoryRef, branch: str) -> str:
        return f"{self.repository_url(ref)}/tarball/{branch}"

    def _get(
        self,
        url: str,
        allow_redirects: bool = True,
        headers: Optional[Dict[str, Optional[str]]] = None,
    ) -> requests.Response:
        """Issue one GET, mapping transport failures to NetworkError.

        headers are merged over the session headers; a None value removes
        that session header from this request.
        """
        logger.debug(f"GET {url}")
        try:
            response = self.session.get(
                url,
                allow_redirects=allow_redirects,
                timeout=self.config.timeout,
                headers=headers,
            )
        except requests.RequestException as e:
            raise NetworkError(f"Request to {url} failed: {e}") from e
        logger.debug(f"GET {url} -> {response.status_code}")
        return response

    def _get_json(self, url: str, model: Type[ModelT], what: str) -> ModelT:
        response = self._get(url)
        if response.status_code == 404:
            raise NotFoundError(f"{what} not found: {url}")
        if response.status_code != 200:
            raise UnknownStatusCodeError(response.status_code, url)
        try:
            return model.model_validate_json(response.content)
        except ValidationError as e:
            raise MalformedResponseError(f"Could not decode {what} response ({e.error_count()} errors)", url) from e

    def default_branch(self, ref: RepositoryRef) -> str:
        """Ask the forge which branch is canonical for the repository.

        Raises:
            NetworkError, NotFoundError, UnknownStatusCodeError, MalformedResponseError
        """
        info = self._get_json(self.repository_url(ref), RepositoryInfo, f"Repository {ref}")
        logger.debug(f"Default branch of {ref} is {info.default_branch}")
        return info.default_branch

    def resolve_latest(self, ref: RepositoryRef, branch: Optional[str] = None) -> str:
        """Resolve the commit sha at the tip of a branch.

        Args:
            ref: Repository to query
            branch: Branch name; the configured or default branch when omitted

        Returns:
            Commit sha, exactly as reported by the forge

        Raises:
            NetworkError: Transport failure
            NotFoundError: Repository or branch does not exist
            UnknownStatusCodeError: Any other non-200 status
            MalformedResponseError: Body is not JSON or lacks commit.sha
        """
        branch = branch or self.config.branch or self.default_branch(ref)
        info = self._get_json(self.branch_url(ref, branch), BranchInfo, f"Branch {ref}@{branch}")
        sha = info.commit.sha
        logger.info(f"Resolved {ref}@{branch} → {sha[:12]}")
        return sha

    def fetch_tarball(self, ref: RepositoryRef, branch: Optional[str] = None) -> bytes:
        """Download the gzip tarball of a branch.

        One redirect hop is followed (API host to CDN); a second redirect is
        an error rather than a chain. The Authorization header is not sent
        when the redirect leaves the API host.

        Raises:
            NetworkError: Transport failure
            NotFoundError: 404 on the first or the redirected request
            TooManyRedirectsError: The redirected request did not return 200
            UnknownStatusCodeError: Any other status on the first request
        """
        branch = branch or self.config.branch or self.default_branch(ref)
        url = self.tarball_url(ref, branch)
        response = self._get(url, allow_redirects=False)
        status = response.status_code

        if status == 200:
            return response.content
        if status == 404:
            raise NotFoundError(f"Tarball for {ref}@{branch} not found: {url}")
        if status not in REDIRECT_STATUSES:
            raise UnknownStatusCodeError(status, url)

        location = response.headers.get("location")
        if not location:
            raise UnknownStatusCodeError(status, url)
        location = urljoin(url, location)

        headers = None
        if urlparse(location).hostname != urlparse(url).hostname:
            # the bearer token belongs to the API host only
            headers = {"Authorization": None}
        logger.debug(f"Following redirect to {location}")
        redirected = self._get(location, allow_redirects=False, headers=headers)
        if redirected.status_code == 200:
            return redirected.content
        if redirected.status_code == 404:
            raise NotFoundError(f"Tarball for {ref}@{branch} not found: {location}")
        raise TooManyRedirectsError(
            f"Tarball for {ref}@{branch} still not available after one redirect "
            f"(status {redirected.status_code} from {location})"
        )
