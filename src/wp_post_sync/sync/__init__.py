"""WordPress post cache synchronization.

Public API for reconciling a directory of cached WordPress posts with the
live site.

Architecture
------------
Each cached post carries a baseline: the content hash and the editable
metadata hash of the last state known to be identical on both replicas.
A pass compares each replica against that baseline, per axis, and pushes,
pulls, caches, deletes or reports a conflict.

Modules:

- ``engine``      -- ``SyncEngine`` and ``synchronize()``: one sync pass.
- ``cache``       -- ``CacheStore``: the on-disk file triad per post.
- ``fingerprint`` -- Content and editable metadata hashing.
- ``lock``        -- ``CacheLock``: one pass per cache root.
- ``posts``       -- ``create_post()`` / ``delete_post()``: remote writes
  that update the cache in the same step.
- ``models``      -- ``Post``, ``EditableMetadata``, ``CachedSnapshot``,
  ``SyncAction``, ``SyncReport``: core data contracts.

Usage example
-------------
::

    from wp_post_sync.config import load_config
    from wp_post_sync.core import WordPressClient
    from wp_post_sync.sync import synchronize

    config = load_config()
    report = synchronize(
        config.cache_path,
        config.sync_limit,
        client=WordPressClient(config),
    )
    print(report.summary())
"""

from .cache import CacheStore
from .engine import SyncEngine, synchronize
from .fingerprint import content_hash, metadata_hash
from .lock import CacheLock
from .models import (
    CachedSnapshot,
    EditableMetadata,
    Post,
    RenderedText,
    SyncAction,
    SyncReport,
)
from .posts import create_post, delete_post

__all__ = [
    "CacheLock",
    "CacheStore",
    "CachedSnapshot",
    "EditableMetadata",
    "Post",
    "RenderedText",
    "SyncAction",
    "SyncEngine",
    "SyncReport",
    "content_hash",
    "create_post",
    "delete_post",
    "metadata_hash",
    "synchronize",
]
