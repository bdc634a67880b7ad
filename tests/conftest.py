"""Pytest fixtures for gitter tests."""
import io
import json
import tarfile
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union

import pytest
import requests
from requests.structures import CaseInsensitiveDict

from gitter.config import GitterConfig

API_URL = "https://api.example.test"
SETTINGS_VARIABLES = ("GITTER_CACHE_DIR", "GITTER_API_URL", "GITTER_BRANCH", "GITTER_TIMEOUT", "GITHUB_TOKEN")
WRAPPER = "octocat-Hello-World-abc123"


class FakeResponse:
    """Stand-in for requests.Response with just what ForgeClient reads."""

    def __init__(
        self,
        status_code: int,
        content: bytes = b"",
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        self.status_code = status_code
        self.content = content
        self.headers = CaseInsensitiveDict(headers or {})

    @classmethod
    def json_body(cls, payload: object, status_code: int = 200) -> "FakeResponse":
        return cls(status_code, json.dumps(payload).encode("utf-8"))

    @classmethod
    def redirect(cls, location: str, status_code: int = 302) -> "FakeResponse":
        return cls(status_code, headers={"Location": location})


class FakeSession:
    """Serves queued responses per URL and records every request."""

    def __init__(self, routes: Dict[str, Union[FakeResponse, Exception, List]]) -> None:
        self.routes = {url: list(v) if isinstance(v, list) else [v] for url, v in routes.items()}
        self.headers: Dict[str, str] = {}
        self.calls: List[str] = []
        self.sent_headers: List[Dict[str, str]] = []

    def get(self, url: str, *, allow_redirects: bool = True, timeout=None, headers=None):
        _ = allow_redirects, timeout
        self.calls.append(url)
        # requests merges per-request headers over the session and drops None values
        merged = dict(self.headers)
        merged.update(headers or {})
        self.sent_headers.append({k: v for k, v in merged.items() if v is not None})
        queue = self.routes.get(url)
        if not queue:
            raise AssertionError(f"unexpected request: {url}")
        item = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(item, Exception):
            raise item
        return item

    def count(self, url: str) -> int:
        return self.calls.count(url)


def build_tarball(
    files: Dict[str, bytes],
    wrapper: str = WRAPPER,
    extra: Optional[List[tarfile.TarInfo]] = None,
) -> bytes:
    """Build a forge-style .tar.gz with every file under a wrapper directory."""
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w:gz") as tar:
        top = tarfile.TarInfo(wrapper)
        top.type = tarfile.DIRTYPE
        top.mode = 0o755
        tar.addfile(top)
        for name, data in files.items():
            info = tarfile.TarInfo(f"{wrapper}/{name}")
            info.size = len(data)
            info.mode = 0o644
            tar.addfile(info, io.BytesIO(data))
        for info in extra or []:
            tar.addfile(info)
    return buf.getvalue()


@pytest.fixture(autouse=True)
def clean_settings_env(monkeypatch):
    """Keep GITTER_* and GITHUB_TOKEN from the developer shell out of every test."""
    for name in SETTINGS_VARIABLES:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def tarball_factory() -> Callable[..., bytes]:
    return build_tarball


@pytest.fixture
def hello_world_tarball() -> bytes:
    return build_tarball(
        {
            "README.md": b"Hello World!\n",
            "src/main.c": b"int main(void) { return 0; }\n",
        }
    )


@pytest.fixture
def config(tmp_path: Path) -> GitterConfig:
    """Config with a private cache root and a fixed branch."""
    return GitterConfig(
        cache_root=tmp_path / "cache",
        api_url=API_URL,
        branch="master",
    )


@pytest.fixture
def forge_routes(hello_world_tarball) -> Dict[str, object]:
    """Routes for octocat/Hello-World: sha abc123, tarball behind one redirect."""
    repo = f"{API_URL}/repos/octocat/Hello-World"
    return {
        repo: FakeResponse.json_body({"full_name": "octocat/Hello-World", "default_branch": "master"}),
        f"{repo}/branches/master": FakeResponse.json_body(
            {"name": "master", "commit": {"sha": "abc123"}}
        ),
        f"{repo}/tarball/master": FakeResponse.redirect("https://codeload.example.test/octocat/Hello-World/tar.gz/master"),
        "https://codeload.example.test/octocat/Hello-World/tar.gz/master": FakeResponse(200, hello_world_tarball),
    }


@pytest.fixture
def fake_session(forge_routes) -> FakeSession:
    return FakeSession(forge_routes)


@pytest.fixture
def connection_error() -> requests.ConnectionError:
    return requests.ConnectionError("Name or service not known")
