"""Forge JSON response shapes."""
from pydantic import BaseModel, ConfigDict, Field


# hex object name, full or abbreviated; it becomes part of a cache filename
SHA_PATTERN = r"^[0-9A-Fa-f]{4,64}$"


class Commit(BaseModel):
    sha: str = Field(..., pattern=SHA_PATTERN, description="Commit hash")


class BranchInfo(BaseModel):
    """Body of GET /repos/{owner}/{repo}/branches/{branch}.

    Only the fields gitter reads are declared; the rest are ignored.
    """

    name: str = Field(default="", description="Branch name")
    commit: Commit

    model_config = ConfigDict(
        extra="ignore",
        json_schema_extra={
            "example": {
                "name": "master",
                "commit": {"sha": "7fd1a60b01f91b314f59955a4e4d4e80d8edf11d"},
            }
        },
    )


class RepositoryInfo(BaseModel):
    """Body of GET /repos/{owner}/{repo}."""

    full_name: str = Field(default="", description="owner/repo as reported by the forge")
    default_branch: str = Field(..., min_length=1, description="Branch the forge treats as canonical")

    model_config = ConfigDict(extra="ignore")
