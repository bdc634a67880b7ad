"""Core exception types for gitter."""
from pathlib import Path
from typing import Optional, Union


class GitterError(Exception):
    """Base exception for all gitter errors."""

    stage = "gitter"


class InvalidIdentifierError(GitterError):
    """Raised when a repository identifier is not of the form owner/repo."""

    stage = "identifier"


class NetworkError(GitterError):
    """Raised when the transport fails (DNS, connection, TLS, timeout)."""

    stage = "network"


class NotFoundError(GitterError):
    """Raised when the forge reports the repository, branch or tarball missing."""

    stage = "forge"


class UnknownStatusCodeError(GitterError):
    """Raised when the forge answers with a status we do not handle."""

    stage = "forge"

    def __init__(self, status_code: int, url: Optional[str] = None):
        self.status_code = status_code
        self.url = url
        message = f"Unexpected HTTP status {status_code}"
        if url:
            message += f" from {url}"
        super().__init__(message)


class TooManyRedirectsError(GitterError):
    """Raised when a download needs more than one redirect hop."""

    stage = "forge"


class GitterIOError(GitterError):
    """Raised on local IO failures: permissions, disk space, corrupt archives."""

    stage = "io"

    def __init__(self, message: str, path: Optional[Union[str, Path]] = None):
        self.path = Path(path) if path is not None else None
        if path is not None:
            message = f"{message}: {path}"
        super().__init__(message)


class MalformedResponseError(GitterIOError):
    """Raised when a forge response body cannot be decoded."""

    stage = "decode"


class ExtractionError(GitterError):
    """Raised when an archive entry would be written outside the target."""

    stage = "extract"


class ConfigurationError(GitterError):
    """Raised when settings (e.g. GITTER_* variables) hold invalid values."""

    stage = "config"
