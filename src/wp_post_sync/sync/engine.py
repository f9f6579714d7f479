"""Core sync engine that orchestrates one synchronization pass.

The ``SyncEngine`` reconciles the local cache with a bounded window of
remote posts.  It:

1. Locks the cache root for the duration of the pass.
2. Loads the local index (cached snapshots).
3. Fetches the remote window: the newest ``window_size`` posts for each
   configured status, de-duplicated by id (first copy wins).
4. For each id in the union, local ids first, compares content and
   metadata fingerprints of both replicas against the cached baseline.
5. Pushes, pulls, caches, deletes or flags a conflict.
6. Builds and returns an immutable ``SyncReport``.

Decision table for posts present on both sides (content and metadata are
evaluated independently; a conflict on either axis wins):

=============  ==============  =========
local changed  remote changed  outcome
=============  ==============  =========
no             no              skip
yes            no              push
no             yes             pull
yes            yes             conflict
=============  ==============  =========

Posts only in the window are cached.  Cached posts missing from the
window are re-fetched by id when unchanged locally; a 404 confirms the
remote deletion.  Locally changed posts outside the window are left for
a later pass.

A failure is fatal to the pass: processing stops
at the failing post and a ``SyncError`` naming it is raised.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Protocol

from wp_post_sync.errors import PostNotFoundError, SyncError
from wp_post_sync.sync.cache import CacheStore
from wp_post_sync.sync.fingerprint import content_hash, metadata_hash
from wp_post_sync.sync.lock import DEFAULT_STALE_AFTER, CacheLock
from wp_post_sync.sync.models import (
    CachedSnapshot,
    EditableMetadata,
    Post,
    SyncAction,
    SyncReport,
)

logger = logging.getLogger(__name__)

DEFAULT_STATUSES: tuple[str, ...] = ("publish", "draft")


class RemoteGateway(Protocol):
    """The remote operations the engine needs (see ``WordPressClient``)."""

    def list_posts(
        self,
        status: str | None = None,
        per_page: int | None = None,
        page: int | None = None,
    ) -> list[Post]: ...

    def get_post(self, post_id: int) -> Post: ...

    def update_post(self, post_id: int, fields: dict[str, Any]) -> Post: ...


class CancelSignal(Protocol):
    """Anything with ``is_set()``, typically a ``threading.Event``."""

    def is_set(self) -> bool: ...


@dataclass(frozen=True)
class _LocalState:
    """Current on-disk content and metadata of one cached post."""

    content: str
    metadata: EditableMetadata | None
    content_hash: str
    metadata_hash: str


class _ReportBuilder:
    """Mutable accumulator owned by a single ``run()`` call."""

    _FIELDS = {
        SyncAction.PUSH: "pushed_to_server",
        SyncAction.PULL: "pulled_from_server",
        SyncAction.DELETE_LOCAL: "deleted_from_local",
        SyncAction.CONFLICT: "conflicted",
        SyncAction.CREATE_LOCAL: "newly_cached",
    }

    def __init__(self) -> None:
        self._ids: dict[str, list[int]] = {
            field: [] for field in self._FIELDS.values()
        }
        self._recorded: set[int] = set()

    def record(self, action: SyncAction, post_id: int) -> None:
        if action == SyncAction.SKIP:
            return
        if post_id in self._recorded:
            raise RuntimeError(f"Post {post_id} recorded twice in one pass")
        self._recorded.add(post_id)
        self._ids[self._FIELDS[action]].append(post_id)

    def build(self, started_at: str, cancelled: bool) -> SyncReport:
        return SyncReport(
            **{field: tuple(ids) for field, ids in self._ids.items()},
            cancelled=cancelled,
            started_at=started_at,
            completed_at=datetime.now(timezone.utc).isoformat(),
        )


@contextmanager
def _operation(name: str, post_id: int | None) -> Iterator[None]:
    """Wrap failures of one step in a ``SyncError`` naming the post."""
    try:
        yield
    except SyncError:
        raise
    except Exception as exc:
        target = f" for post {post_id}" if post_id is not None else ""
        raise SyncError(
            f"{name} failed{target}: {exc}", post_id, name
        ) from exc


class SyncEngine:
    """Reconcile a local post cache with the WordPress backend.

    Args:
        client: Remote gateway (normally a ``WordPressClient``).
        store: Local cache store.
        statuses: Statuses listed to build the remote window; earlier
            statuses win when an id appears more than once.
        lock_timeout: Seconds after which a leftover cache lock is
            treated as stale.
    """

    def __init__(
        self,
        client: RemoteGateway,
        store: CacheStore,
        statuses: Sequence[str] = DEFAULT_STATUSES,
        lock_timeout: float = DEFAULT_STALE_AFTER,
    ) -> None:
        if not statuses:
            raise ValueError("At least one post status is required")
        self.client = client
        self.store = store
        self.statuses = tuple(statuses)
        self.lock_timeout = lock_timeout

    # ------------------------------------------------------------------
    # Main entry point
    # ------------------------------------------------------------------

    def run(
        self,
        window_size: int,
        cancel_event: CancelSignal | None = None,
    ) -> SyncReport:
        """Execute one synchronization pass.

        Args:
            window_size: Posts fetched per status.
            cancel_event: Checked before each post; once set, the pass
                stops and returns what it has done so far.

        Returns:
            A ``SyncReport`` of the posts that were acted on.

        Raises:
            ValueError: If *window_size* is not positive.
            CacheLockError: If another pass holds the cache root.
            SyncError: If a remote call or cache write fails.
        """
        if window_size < 1:
            raise ValueError(f"window_size must be positive, got {window_size}")

        started_at = datetime.now(timezone.utc).isoformat()
        report = _ReportBuilder()
        cancelled = False

        with CacheLock(self.store.root, stale_after=self.lock_timeout) as lock:
            local = {snapshot.post_id: snapshot for snapshot in self.store.list()}
            remote = self._fetch_window(window_size)

            post_ids = list(local)
            post_ids.extend(post_id for post_id in remote if post_id not in local)
            logger.info(
                "Syncing %d posts (%d cached, %d in remote window)",
                len(post_ids),
                len(local),
                len(remote),
            )

            for post_id in post_ids:
                if cancel_event is not None and cancel_event.is_set():
                    logger.info("Sync cancelled before post %d", post_id)
                    cancelled = True
                    break
                lock.refresh()
                action = self._sync_post(
                    post_id, local.get(post_id), remote.get(post_id)
                )
                report.record(action, post_id)

        result = report.build(started_at, cancelled)
        logger.info("Sync finished: %d posts changed", result.total)
        return result

    # ------------------------------------------------------------------
    # Per-post sync
    # ------------------------------------------------------------------

    def _sync_post(
        self,
        post_id: int,
        snapshot: CachedSnapshot | None,
        remote: Post | None,
    ) -> SyncAction:
        if snapshot is not None and remote is not None:
            return self._reconcile(snapshot, remote)

        if remote is not None:
            with _operation("save", post_id):
                self.store.save(remote)
            logger.info("Cached new post %d", post_id)
            return SyncAction.CREATE_LOCAL

        assert snapshot is not None
        return self._sync_outside_window(snapshot)

    def _sync_outside_window(self, snapshot: CachedSnapshot) -> SyncAction:
        """Handle a cached post that the remote window did not include."""
        post_id = snapshot.post_id
        local = self._read_local(post_id)

        if (
            local.content_hash != snapshot.content_hash
            or local.metadata_hash != snapshot.editable_meta_hash
        ):
            logger.info(
                "Post %d has local changes but is outside the remote "
                "window; not pushed this pass",
                post_id,
            )
            return SyncAction.SKIP

        with _operation("get_post", post_id):
            try:
                remote = self.client.get_post(post_id)
            except PostNotFoundError:
                remote = None

        if remote is None:
            with _operation("delete", post_id):
                self.store.delete(post_id)
            logger.info("Post %d was deleted remotely; removed from cache", post_id)
            return SyncAction.DELETE_LOCAL

        return self._reconcile(snapshot, remote, local)

    def _reconcile(
        self,
        snapshot: CachedSnapshot,
        remote: Post,
        local: _LocalState | None = None,
    ) -> SyncAction:
        """Apply the decision table to a post present on both sides."""
        post_id = snapshot.post_id
        if local is None:
            local = self._read_local(post_id)

        local_content_changed = local.content_hash != snapshot.content_hash
        local_meta_changed = local.metadata_hash != snapshot.editable_meta_hash
        remote_content_changed = (
            content_hash(remote.body) != snapshot.content_hash
        )
        remote_meta_changed = (
            metadata_hash(remote.editable_metadata())
            != snapshot.editable_meta_hash
        )

        if (local_content_changed and remote_content_changed) or (
            local_meta_changed and remote_meta_changed
        ):
            logger.warning(
                "Conflict on post %d: changed both locally and on the server",
                post_id,
            )
            return SyncAction.CONFLICT

        if local_content_changed or local_meta_changed:
            fields: dict[str, Any] = {}
            if local_content_changed:
                fields["content"] = local.content
            if local_meta_changed and local.metadata is not None:
                fields.update(local.metadata.to_update_fields())

            with _operation("update_post", post_id):
                updated = self.client.update_post(post_id, fields)
            with _operation("save", post_id):
                self.store.save(updated)
            logger.info(
                "Pushed post %d (%s)", post_id, ", ".join(sorted(fields)) or "no fields"
            )
            return SyncAction.PUSH

        if remote_content_changed or remote_meta_changed:
            with _operation("save", post_id):
                self.store.save(remote)
            logger.info("Pulled post %d", post_id)
            return SyncAction.PULL

        return SyncAction.SKIP

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _fetch_window(self, window_size: int) -> dict[int, Post]:
        """List the newest posts per status, first copy of an id wins."""
        window: dict[int, Post] = {}
        for status in self.statuses:
            with _operation("list_posts", None):
                posts = self.client.list_posts(
                    status=status, per_page=window_size, page=1
                )
            logger.debug("Listed %d %s posts", len(posts), status)
            for post in posts:
                window.setdefault(post.id, post)
        return window

    def _read_local(self, post_id: int) -> _LocalState:
        """Read and fingerprint the cached files of *post_id*.

        A missing editable file hashes as all-empty metadata, so it
        reads as a local change that carries no metadata fields.
        """
        with _operation("read_local", post_id):
            content = self.store.read_content(post_id)
            metadata = self.store.read_editable_metadata(post_id)
        return _LocalState(
            content=content,
            metadata=metadata,
            content_hash=content_hash(content),
            metadata_hash=metadata_hash(metadata or EditableMetadata()),
        )


def synchronize(
    cache_path: str | Path,
    window_size: int,
    cancel_signal: CancelSignal | None = None,
    *,
    client: RemoteGateway,
    statuses: Sequence[str] = DEFAULT_STATUSES,
    lock_timeout: float = DEFAULT_STALE_AFTER,
) -> SyncReport:
    """Run one synchronization pass against the cache at *cache_path*.

    Args:
        cache_path: Cache root directory.
        window_size: Posts fetched per status.
        cancel_signal: Optional cancellation flag (``is_set()``).
        client: Remote gateway to sync with.
        statuses: Statuses listed to build the remote window.
        lock_timeout: Seconds before a cache lock is treated as stale.

    Returns:
        The ``SyncReport`` for the pass.
    """
    engine = SyncEngine(
        client=client,
        store=CacheStore(Path(cache_path)),
        statuses=statuses,
        lock_timeout=lock_timeout,
    )
    return engine.run(window_size, cancel_signal)
