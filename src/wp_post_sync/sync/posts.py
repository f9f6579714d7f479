"""Create and delete posts while keeping the local cache in step.

A post created here is cached straight from the server's response, so
the next sync pass sees identical baselines on both sides and skips it.
A deleted post loses its cached triad at once instead of waiting for a
pass to confirm the deletion.

Both operations hold the cache lock, so they never interleave with a
running pass.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Protocol

from wp_post_sync.sync.cache import CacheStore
from wp_post_sync.sync.lock import DEFAULT_STALE_AFTER, CacheLock
from wp_post_sync.sync.models import CachedSnapshot, Post

logger = logging.getLogger(__name__)


class PostWriter(Protocol):
    def create_post(self, fields: dict[str, Any]) -> Post: ...

    def delete_post(self, post_id: int, force: bool = True) -> dict[str, Any]: ...


def create_post(
    client: PostWriter,
    cache_path: str | Path,
    *,
    title: str,
    content: str,
    status: str = "draft",
    lock_timeout: float = DEFAULT_STALE_AFTER,
) -> CachedSnapshot:
    """Create a post on the server and cache the result.

    Raises:
        ValueError: If *title*, *content* or *status* is blank.
        CacheLockError: If a sync pass holds the cache root.
        WordPressApiError: If the server rejects the post.
    """
    if not title.strip() or not content.strip() or not status.strip():
        raise ValueError("Title, content and status are required to create a post")

    store = CacheStore(Path(cache_path))
    with CacheLock(store.root, stale_after=lock_timeout):
        post = client.create_post(
            {"title": title, "content": content, "status": status}
        )
        snapshot = store.save(post)
    logger.info("Created post %d (%s)", post.id, post.status)
    return snapshot


def delete_post(
    client: PostWriter,
    cache_path: str | Path,
    post_id: int,
    *,
    force: bool = True,
    lock_timeout: float = DEFAULT_STALE_AFTER,
) -> dict[str, Any]:
    """Delete (or trash) a post on the server and drop its cached files.

    The cache is left untouched if the server call fails.

    Returns:
        The server's response body.
    """
    store = CacheStore(Path(cache_path))
    with CacheLock(store.root, stale_after=lock_timeout):
        result = client.delete_post(post_id, force=force)
        store.delete(post_id)
    logger.info(
        "%s post %d", "Deleted" if force else "Trashed", post_id
    )
    return result
