"""Forge access: identifier parsing, API schemas and the HTTP client."""
from gitter.forge.client import ForgeClient
from gitter.forge.identifier import RepositoryRef, parse_repository
from gitter.forge.schemas import BranchInfo, RepositoryInfo

__all__ = [
    "BranchInfo",
    "ForgeClient",
    "RepositoryInfo",
    "RepositoryRef",
    "parse_repository",
]
