"""Runtime configuration passed explicitly to the client, cache and pipeline."""
from pathlib import Path
from typing import Optional

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from gitter.core.errors import ConfigurationError

DEFAULT_API_URL = "https://api.github.com"


def default_cache_root() -> Path:
    """Return the default cache root, ~/.gitter/archives."""
    return Path.home() / ".gitter" / "archives"


class GitterConfig(BaseSettings):
    """Settings for one pipeline run.

    Values passed to the constructor win over the environment
    (GITTER_CACHE_DIR, GITTER_API_URL, GITTER_BRANCH, GITTER_TIMEOUT and
    GITHUB_TOKEN). Nothing here is global: tests build their own instance
    pointing at a temporary cache root.
    """

    cache_root: Path = Field(
        default_factory=default_cache_root,
        validation_alias="GITTER_CACHE_DIR",
        description="Directory holding cached archives",
    )
    api_url: str = Field(default=DEFAULT_API_URL, description="Base URL of the forge REST API")
    branch: Optional[str] = Field(default=None, description="Branch to fetch; None means the repository default")
    token: Optional[str] = Field(
        default=None,
        validation_alias="GITHUB_TOKEN",
        description="Bearer token sent to the forge",
    )
    timeout: Optional[float] = Field(default=None, gt=0, description="Per-request timeout in seconds")

    model_config = SettingsConfigDict(
        env_prefix="GITTER_",
        env_ignore_empty=True,
        populate_by_name=True,
        extra="ignore",
        frozen=True,
        json_schema_extra={
            "example": {
                "cache_root": "/home/user/.gitter/archives",
                "api_url": "https://api.github.com",
                "branch": None,
                "token": None,
                "timeout": None,
            }
        },
    )

    @field_validator("cache_root")
    @classmethod
    def expand_cache_root(cls, v: Path) -> Path:
        return Path(v).expanduser()

    @field_validator("api_url")
    @classmethod
    def validate_api_url(cls, v: str) -> str:
        """Require an http(s) URL and drop any trailing slash."""
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"api_url must be an http(s) URL, got: {v}")
        return v.rstrip("/")

    @field_validator("branch", "token")
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            return None
        return v

    @classmethod
    def from_env(cls) -> "GitterConfig":
        """Build a config from the environment alone.

        Raises:
            ConfigurationError: If a variable holds an invalid value
        """
        try:
            return cls()
        except ValidationError as e:
            problems = ", ".join(
                f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in e.errors()
            )
            raise ConfigurationError(f"Invalid environment configuration ({problems})") from e
