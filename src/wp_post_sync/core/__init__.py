"""WordPress REST gateway used by the sync engine and the CLI."""

from .client import WordPressClient

__all__ = ["WordPressClient"]
