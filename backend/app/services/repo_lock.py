from __future__ import annotations

import logging
import threading
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator

from ..errors import RepositoryBusyError

logger = logging.getLogger(__name__)

_REGISTRY_LOCK = threading.Lock()
_LOCKS: Dict[str, threading.Lock] = {}


def lock_for(repo_root: Path) -> threading.Lock:
    key = str(Path(repo_root).resolve())
    with _REGISTRY_LOCK:
        lock = _LOCKS.get(key)
        if lock is None:
            lock = threading.Lock()
            _LOCKS[key] = lock
        return lock


@contextmanager
def repository_lock(repo_root: Path, timeout: float) -> Iterator[None]:
    """
    Serialize every mutation of one repository working tree. Waiters queue
    until `timeout` seconds, then get RepositoryBusyError.
    """
    lock = lock_for(repo_root)
    t0 = time.perf_counter()
    if not lock.acquire(timeout=timeout if timeout and timeout > 0 else -1):
        logger.warning("repo_lock_timeout root=%s waited=%.3f", repo_root, time.perf_counter() - t0)
        raise RepositoryBusyError("Another update is in progress, try again later")
    waited = time.perf_counter() - t0
    if waited > 0.5:
        logger.info("repo_lock_wait root=%s waited=%.3f", repo_root, waited)
    try:
        yield
    finally:
        lock.release()


__all__ = ["repository_lock", "lock_for"]
