from __future__ import annotations

import json
import os
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path


LOCK_POLL_INTERVAL_S = 0.05


@dataclass(frozen=True)
class LockOwner:
    pid: int | None
    token: str | None
    created_at: datetime | None


NO_OWNER = LockOwner(pid=None, token=None, created_at=None)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _pid_alive(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        # Signalling is denied, so the process exists.
        return True
    except OSError:
        return False
    return True


def read_lock_owner(path: Path) -> LockOwner:
    """Owner recorded in a lock file written by :class:`FileLock`."""
    try:
        modified = datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc)
    except OSError:
        return NO_OWNER
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError, RecursionError):
        payload = None
    # A half-written file has no owner yet; its age comes from the mtime.
    if not isinstance(payload, dict):
        return LockOwner(pid=None, token=None, created_at=modified)
    pid = payload.get("pid")
    if not isinstance(pid, int) or isinstance(pid, bool):
        pid = None
    token = payload.get("token")
    if not isinstance(token, str):
        token = None
    created_at = modified
    if isinstance(payload.get("created_at"), str):
        try:
            parsed = datetime.fromisoformat(payload["created_at"])
        except ValueError:
            parsed = None
        if parsed is not None:
            created_at = parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return LockOwner(pid=pid, token=token, created_at=created_at)


@dataclass
class FileLock:
    """Exclusive lock file guarding the loop state across processes.

    A holder whose pid is gone, or whose lock is older than
    ``stale_after_s``, may be displaced; ``release`` then leaves the new
    holder's file alone.
    """

    path: Path
    stale_after_s: float | None = None
    _token: str | None = field(default=None, repr=False)

    @property
    def held(self) -> bool:
        return self._token is not None

    def acquire(self) -> bool:
        if self._create():
            return True
        if self._displace_stale():
            return self._create()
        return False

    def acquire_within(self, timeout_s: float) -> bool:
        deadline = time.monotonic() + max(timeout_s, 0.0)
        while True:
            expired = time.monotonic() >= deadline
            if self.acquire():
                return True
            if expired:
                return False
            time.sleep(LOCK_POLL_INTERVAL_S)

    def release(self) -> None:
        token, self._token = self._token, None
        if token is None:
            return
        if read_lock_owner(self.path).token != token:
            return
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass

    def _create(self) -> bool:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        try:
            fd = os.open(self.path, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
        except FileExistsError:
            return False
        token = uuid.uuid4().hex
        payload = {"pid": os.getpid(), "token": token, "created_at": _utcnow().isoformat()}
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(json.dumps(payload))
        self._token = token
        return True

    def _displace_stale(self) -> bool:
        if not self.path.exists():
            return False
        if not self._is_stale(read_lock_owner(self.path)):
            return False
        try:
            self.path.unlink()
        except OSError:
            return False
        return True

    def _is_stale(self, owner: LockOwner) -> bool:
        if owner.pid is not None and not _pid_alive(owner.pid):
            return True
        if self.stale_after_s is None or owner.created_at is None:
            return owner.pid is None
        return (_utcnow() - owner.created_at).total_seconds() >= self.stale_after_s
