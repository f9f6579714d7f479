"""Exception hierarchy for wp_post_sync.

- ``WordPressApiError`` / ``PostNotFoundError`` -- raised by the REST
  gateway for non-2xx responses and undecodable bodies.
- ``CacheError`` / ``CacheFormatError`` -- local cache artifacts that
  cannot be read back.
- ``CacheLockError`` -- another process holds the cache root.
- ``SyncError`` -- a synchronization pass aborted while processing one
  post; carries the post id and the failing operation.
"""

from __future__ import annotations


class WordPressApiError(Exception):
    """WordPress REST API returned an error response.

    Attributes:
        status_code: HTTP status code (``None`` when the response body,
            not the status, was the problem).
        body: Raw response body, possibly truncated.
    """

    def __init__(
        self,
        status_code: int | None,
        body: str = "",
        message: str | None = None,
    ) -> None:
        self.status_code = status_code
        self.body = body
        if message is None:
            message = f"WordPress API returned {status_code}"
            if body:
                message += f": {body[:200]}"
        super().__init__(message)


class PostNotFoundError(WordPressApiError):
    """The requested post does not exist on the remote backend."""

    def __init__(self, post_id: int, body: str = "") -> None:
        self.post_id = post_id
        super().__init__(404, body, f"Post {post_id} not found")


class CacheError(Exception):
    """Base class for local cache failures."""


class CacheFormatError(CacheError):
    """A cache artifact exists but cannot be parsed."""


class CacheLockError(CacheError):
    """The cache root is locked by another sync process."""


class SyncError(Exception):
    """A synchronization pass failed while processing one post.

    Attributes:
        post_id: Id of the post being processed, or ``None`` when the
            failure happened before per-post processing (listing).
        operation: Name of the failing step, e.g. ``"update_post"``.
    """

    def __init__(
        self, message: str, post_id: int | None, operation: str
    ) -> None:
        self.post_id = post_id
        self.operation = operation
        super().__init__(message)
