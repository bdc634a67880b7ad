"""Repository identifier parsing: "owner/repo" -> RepositoryRef."""
import re

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from gitter.core.errors import InvalidIdentifierError

OWNER_PATTERN = r"[A-Za-z0-9]+(?:-[A-Za-z0-9]+)*"
NAME_PATTERN = r"[\w.-]+"

IDENTIFIER_PATTERN = re.compile(
    rf"(?P<owner>{OWNER_PATTERN})/(?P<name>{NAME_PATTERN})",
    re.ASCII,
)

_OWNER_RE = re.compile(OWNER_PATTERN, re.ASCII)
_NAME_RE = re.compile(NAME_PATTERN, re.ASCII)


class RepositoryRef(BaseModel):
    """Immutable reference to a repository on the forge."""

    owner: str = Field(..., description="Account or organisation owning the repository")
    name: str = Field(..., description="Repository name")

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={"example": {"owner": "octocat", "name": "Hello-World"}},
    )

    @field_validator("owner")
    @classmethod
    def validate_owner(cls, v: str) -> str:
        """Alphanumeric with single internal hyphens."""
        if not _OWNER_RE.fullmatch(v):
            raise ValueError(f"invalid repository owner: {v!r}")
        return v

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Word characters, hyphens and periods; never '.' or '..'."""
        if not _NAME_RE.fullmatch(v) or v in (".", ".."):
            raise ValueError(f"invalid repository name: {v!r}")
        return v

    @property
    def slug(self) -> str:
        """Cache filename prefix, owner_name."""
        return f"{self.owner}_{self.name}"

    def __str__(self) -> str:
        return f"{self.owner}/{self.name}"


def parse_repository(text: str, pattern: re.Pattern = IDENTIFIER_PATTERN) -> RepositoryRef:
    """Parse an "owner/repo" identifier.

    Args:
        text: User input, e.g. "octocat/Hello-World"
        pattern: Compiled grammar with ``owner`` and ``name`` groups

    Returns:
        RepositoryRef with owner and name exactly as matched

    Raises:
        InvalidIdentifierError: If the input does not match the grammar
    """
    candidate = (text or "").strip()
    match = pattern.fullmatch(candidate)
    if match is None or match.group("name") in (".", ".."):
        raise InvalidIdentifierError(
            f"Invalid repository '{text}': expected owner/repo, e.g. octocat/Hello-World"
        )
    try:
        return RepositoryRef(owner=match.group("owner"), name=match.group("name"))
    except ValidationError as e:
        raise InvalidIdentifierError(f"Invalid repository '{text}': {e}") from e
