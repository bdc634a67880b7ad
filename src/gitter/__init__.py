"""gitter - fetch, cache and unpack the latest snapshot of a GitHub repository."""

__version__ = "0.1.0"
