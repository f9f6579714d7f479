"""Local cache store: the on-disk replica of WordPress posts.

Every cached post is a *triad* of files under ``<root>/posts/``, all
named after the post id and a filesystem-safe version of its title:

* ``{id}-{title}_editable.yaml`` -- editable metadata, user-editable.
* ``{id}-{title}_content.md`` -- raw post body, user-editable.
* ``{id}-{title}_meta.json`` -- full post plus baseline hashes.

Artifacts are always located by globbing ``{id}-*`` so a title change
on the server never leaves the store unable to find a post.

Key design choices:

* **Staged writes** -- ``save()`` writes all three payloads to hidden
  temp files, removes stale artifacts, then ``os.replace()``s each temp
  file into place with the snapshot last.  A crash never leaves a
  snapshot whose hashes describe payloads that were not written.
* **Byte-exact text** -- bodies are written and read as UTF-8 bytes
  with no newline translation, so the content hash of a freshly cached
  file always equals its baseline.
* **Forgiving listing** -- a missing directory is an empty cache and a
  malformed snapshot is logged and skipped.
"""

from __future__ import annotations

import logging
import os
import re
import tempfile
from pathlib import Path

from pydantic import ValidationError

from wp_post_sync.errors import CacheFormatError
from wp_post_sync.sync.fingerprint import (
    content_hash,
    deserialize_editable,
    hash_text,
    serialize_editable,
)
from wp_post_sync.sync.models import (
    CachedSnapshot,
    EditableMetadata,
    Post,
)

logger = logging.getLogger(__name__)

POSTS_DIR = "posts"
EDITABLE_SUFFIX = "_editable.yaml"
CONTENT_SUFFIX = "_content.md"
SNAPSHOT_SUFFIX = "_meta.json"

MAX_TITLE_LENGTH = 100

# Characters rejected in file names on Windows, the strictest target.
_INVALID_FILENAME_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')
_DASH_RUN = re.compile(r"-{2,}")


def sanitize_title(title: str | None) -> str:
    """Turn a post title into a filesystem-safe file name fragment.

    Invalid characters become ``-``, runs of ``-`` collapse to one and
    the result is truncated to ``MAX_TITLE_LENGTH`` characters.

    Returns:
        The sanitized title, or ``"untitled"`` if nothing is left.
    """
    if not title or not title.strip():
        return "untitled"

    sanitized = _INVALID_FILENAME_CHARS.sub("-", title).strip()
    sanitized = _DASH_RUN.sub("-", sanitized)
    sanitized = sanitized[:MAX_TITLE_LENGTH]
    return sanitized or "untitled"


class CacheStore:
    """Persist, enumerate and delete cached posts under *root*.

    Args:
        root: Cache root directory.  Created lazily on first save.
    """

    def __init__(self, root: Path) -> None:
        self.root = Path(root)
        self.posts_dir = self.root / POSTS_DIR

    # ------------------------------------------------------------------
    # Writing
    # ------------------------------------------------------------------

    def save(self, post: Post) -> CachedSnapshot:
        """Cache *post*, replacing any existing triad for its id.

        Args:
            post: Post as returned by the server.

        Returns:
            The snapshot that was written, carrying the new baseline.
        """
        self.posts_dir.mkdir(parents=True, exist_ok=True)

        if post.title is not None and post.title.raw is not None:
            title = post.title.raw
        else:
            title = post.slug
        base_name = f"{post.id}-{sanitize_title(title)}"

        editable_text = serialize_editable(post.editable_metadata())
        body = post.body
        snapshot = CachedSnapshot(
            post=post,
            content_hash=content_hash(body),
            editable_meta_hash=hash_text(editable_text),
        )
        snapshot_text = snapshot.model_dump_json(
            by_alias=True, exclude_none=True, indent=2
        )

        # Snapshot goes last: it is what makes the triad visible.
        targets = [
            (self.posts_dir / f"{base_name}{EDITABLE_SUFFIX}", editable_text),
            (self.posts_dir / f"{base_name}{CONTENT_SUFFIX}", body),
            (self.posts_dir / f"{base_name}{SNAPSHOT_SUFFIX}", snapshot_text),
        ]

        staged: list[tuple[Path, Path]] = []
        try:
            for target, text in targets:
                staged.append((self._stage(post.id, text), target))

            keep = {target for _, target in staged}
            for stale in self._artifacts(post.id):
                if stale not in keep:
                    stale.unlink(missing_ok=True)

            for tmp_path, target in staged:
                os.replace(tmp_path, target)
        except BaseException:
            for tmp_path, _ in staged:
                try:
                    tmp_path.unlink(missing_ok=True)
                except OSError:
                    pass
            raise

        logger.debug("Cached post %d as %s", post.id, base_name)
        return snapshot

    def delete(self, post_id: int) -> None:
        """Remove every artifact of *post_id*.  No-op if none exist."""
        for path in self._artifacts(post_id):
            path.unlink(missing_ok=True)
            logger.debug("Deleted %s", path.name)

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def list(self) -> list[CachedSnapshot]:
        """Load every cached snapshot, ordered by post id.

        Snapshot files that cannot be read or validated are skipped with
        a warning.
        """
        if not self.posts_dir.is_dir():
            return []

        snapshots: list[CachedSnapshot] = []
        for path in self.posts_dir.glob(f"*{SNAPSHOT_SUFFIX}"):
            try:
                snapshots.append(
                    CachedSnapshot.model_validate_json(path.read_bytes())
                )
            except (OSError, ValidationError, ValueError) as exc:
                logger.warning(
                    "Skipping malformed snapshot file %s: %s",
                    path.name,
                    exc,
                )
        snapshots.sort(key=lambda snapshot: snapshot.post_id)
        return snapshots

    def read_content(self, post_id: int) -> str:
        """Return the cached body of *post_id*, or ``""`` if absent.

        Raises:
            CacheFormatError: If the file is not valid UTF-8.
        """
        path = self._find(post_id, CONTENT_SUFFIX)
        if path is None:
            return ""
        return self._read_text(path)

    def read_editable_metadata(
        self, post_id: int
    ) -> EditableMetadata | None:
        """Parse the editable metadata of *post_id*.

        Returns:
            The metadata, or ``None`` if no editable file exists.

        Raises:
            CacheFormatError: If the file exists but cannot be parsed.
        """
        path = self._find(post_id, EDITABLE_SUFFIX)
        if path is None:
            return None
        try:
            return deserialize_editable(self._read_text(path))
        except CacheFormatError as exc:
            raise CacheFormatError(f"{path.name}: {exc}") from exc

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _artifacts(self, post_id: int) -> list[Path]:
        if not self.posts_dir.is_dir():
            return []
        return sorted(self.posts_dir.glob(f"{post_id}-*"))

    def _find(self, post_id: int, suffix: str) -> Path | None:
        if not self.posts_dir.is_dir():
            return None
        matches = sorted(self.posts_dir.glob(f"{post_id}-*{suffix}"))
        return matches[0] if matches else None

    def _stage(self, post_id: int, text: str) -> Path:
        """Write *text* to a hidden temp file next to its target."""
        fd, tmp_name = tempfile.mkstemp(
            dir=str(self.posts_dir), prefix=f".{post_id}-", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(text.encode("utf-8"))
        except BaseException:
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
            raise
        return Path(tmp_name)

    @staticmethod
    def _read_text(path: Path) -> str:
        try:
            return path.read_bytes().decode("utf-8")
        except UnicodeDecodeError as exc:
            raise CacheFormatError(
                f"{path.name} is not valid UTF-8: {exc}"
            ) from exc
