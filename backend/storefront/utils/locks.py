import os
import re
from contextlib import contextmanager
from typing import Iterator

from filelock import FileLock, Timeout

from storefront.errors import Conflict

_SAFE = re.compile(r"[^A-Za-z0-9_.-]")


class LockFactory:
    """
    Named cross-process locks backed by lock files under ``lock_dir``.
    Every worker process on the host serializes on the same file.
    """

    def __init__(self, lock_dir: str, timeout: float = 10.0):
        self.lock_dir = lock_dir
        self.timeout = timeout
        os.makedirs(lock_dir, exist_ok=True)

    def path_for(self, name: str) -> str:
        return os.path.join(self.lock_dir, f"{_SAFE.sub('_', name)}.lock")

    @contextmanager
    def hold(self, name: str) -> Iterator[None]:
        lock = FileLock(self.path_for(name))
        try:
            with lock.acquire(timeout=self.timeout):
                yield
        except Timeout:
            raise Conflict(f"Could not acquire lock {name!r}; try again", {"retryable": True})
