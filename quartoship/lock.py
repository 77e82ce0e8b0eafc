"""Per-branch run lock so overlapping runs cannot publish concurrently."""

from __future__ import annotations

import json
import logging
import os
import re
import time
from pathlib import Path
from types import TracebackType

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


class RunLockedError(RuntimeError):
    """Raised when another run already holds the lock for the hosting branch."""

    def __init__(self, path: Path, holder: dict[str, object]) -> None:
        owner = holder.get("commit") or holder.get("pid") or "unknown"
        super().__init__(f"Another run ({owner}) holds {path}; wait for it to finish.")
        self.path = path
        self.holder = holder


class RunLock:
    """Exclusive lock file created with O_EXCL under the cache directory."""

    def __init__(
        self,
        cache_dir: Path,
        branch: str,
        *,
        stale_after: float = 3600.0,
        commit: str | None = None,
    ) -> None:
        name = _UNSAFE_CHARS.sub("-", branch).strip("-") or "default"
        self.path = cache_dir / "locks" / f"{name}.lock"
        self._stale_after = stale_after
        self._commit = commit
        self._held = False

    @property
    def held(self) -> bool:
        return self._held

    def acquire(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps(
            {"pid": os.getpid(), "commit": self._commit, "acquired_at": time.time()},
            ensure_ascii=False,
        )
        for _ in range(2):
            try:
                fd = os.open(self.path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
            except FileExistsError:
                holder = self._read_holder()
                if self._is_stale():
                    logger.warning("Breaking stale run lock %s held by %s", self.path, holder)
                    self.path.unlink(missing_ok=True)
                    continue
                raise RunLockedError(self.path, holder) from None
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(payload)
            self._held = True
            logger.debug("Acquired run lock %s", self.path)
            return
        raise RunLockedError(self.path, self._read_holder())

    def release(self) -> None:
        if not self._held:
            return
        self.path.unlink(missing_ok=True)
        self._held = False
        logger.debug("Released run lock %s", self.path)

    def __enter__(self) -> "RunLock":
        self.acquire()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.release()

    def _read_holder(self) -> dict[str, object]:
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            return {}
        return data if isinstance(data, dict) else {}

    def _is_stale(self) -> bool:
        try:
            age = time.time() - self.path.stat().st_mtime
        except FileNotFoundError:
            return True
        return age > self._stale_after
