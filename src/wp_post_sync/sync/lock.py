"""Advisory lock on a cache root.

A sync pass owns the cache directory for its whole duration.  The lock
is a ``.sync.lock`` file created atomically with ``O_CREAT | O_EXCL``;
its JSON body records who holds it.  Locks older than ``stale_after``
seconds are assumed to belong to a crashed process and are broken.  A
holder calls ``refresh()`` while it works to keep the lock fresh.
"""

from __future__ import annotations

import json
import logging
import os
import platform
import time
from datetime import datetime, timezone
from pathlib import Path

from wp_post_sync.errors import CacheLockError

logger = logging.getLogger(__name__)

LOCK_FILE = ".sync.lock"
DEFAULT_STALE_AFTER = 600.0


class CacheLock:
    """Context manager holding the lock file of a cache root.

    Args:
        root: Cache root directory (created if missing).
        stale_after: Age in seconds after which an existing lock is
            considered abandoned.
    """

    def __init__(
        self, root: Path, stale_after: float = DEFAULT_STALE_AFTER
    ) -> None:
        self.path = Path(root) / LOCK_FILE
        self.stale_after = stale_after
        self._held = False

    def __enter__(self) -> CacheLock:
        self.acquire()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.release()

    def acquire(self) -> None:
        """Create the lock file.

        Raises:
            CacheLockError: If a non-stale lock is held by someone else.
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._break_if_stale()

        info = {
            "pid": os.getpid(),
            "hostname": platform.node(),
            "locked_at": datetime.now(timezone.utc).isoformat(),
        }
        try:
            fd = os.open(
                str(self.path), os.O_CREAT | os.O_EXCL | os.O_WRONLY
            )
        except FileExistsError:
            raise CacheLockError(
                f"Cache {self.path.parent} is locked by "
                f"{self._describe_holder()}"
            ) from None
        try:
            os.write(fd, json.dumps(info).encode("utf-8"))
        finally:
            os.close(fd)
        self._held = True
        logger.debug("Acquired cache lock %s", self.path)

    def refresh(self) -> None:
        """Touch the lock file so a long pass is not mistaken for a stale one."""
        if not self._held:
            return
        try:
            os.utime(self.path)
        except FileNotFoundError:
            logger.warning("Cache lock %s vanished while held", self.path)

    def release(self) -> None:
        """Remove the lock file if this instance holds it."""
        if not self._held:
            return
        self._held = False
        try:
            self.path.unlink()
        except FileNotFoundError:
            logger.warning("Cache lock %s vanished before release", self.path)
        else:
            logger.debug("Released cache lock %s", self.path)

    def _break_if_stale(self) -> None:
        try:
            age = time.time() - self.path.stat().st_mtime
        except FileNotFoundError:
            return
        if age < self.stale_after:
            return
        logger.warning(
            "Removing stale cache lock %s (held by %s, %.0fs old)",
            self.path,
            self._describe_holder(),
            age,
        )
        self.path.unlink(missing_ok=True)

    def _describe_holder(self) -> str:
        try:
            info = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            return "an unknown process"
        if not isinstance(info, dict):
            return "an unknown process"
        return f"pid {info.get('pid', '?')} on {info.get('hostname', '?')}"
