"""Per-resource advisory locks."""
from contextlib import contextmanager
import threading

import redis
from redis.exceptions import LockError, RedisError

from attendance_integrity.utils.exceptions import TransientError

class LocalLockBackend:
    """In-process locks; only safe with a single worker process."""

    def __init__(self):
        self._locks = {}
        self._guard = threading.Lock()

    def _lock_for(self, key: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    def acquire(self, key: str, timeout: float):
        lock = self._lock_for(key)
        if not lock.acquire(timeout=timeout):
            return None
        return lock

    def release(self, handle) -> None:
        handle.release()

class RedisLockBackend:
    """Locks shared by every worker through Redis."""

    def __init__(self, url: str, lease_seconds: float, logger=None):
        self.client = redis.Redis.from_url(url)
        self.lease_seconds = lease_seconds
        self.logger = logger

    def acquire(self, key: str, timeout: float):
        lock = self.client.lock(
            f'attendance-lock:{key}',
            timeout=self.lease_seconds,
            blocking_timeout=timeout
        )
        try:
            acquired = lock.acquire()
        except RedisError as e:
            raise TransientError(f"Lock service unavailable: {e}")
        return lock if acquired else None

    def release(self, handle) -> None:
        try:
            handle.release()
        except LockError as e:
            # Lease expired before release; another holder may already own it
            if self.logger:
                self.logger.warning(f"Lock release failed for {handle.name}: {e}")

class ResourceLockManager:
    """Acquires named locks in sorted order and releases them in reverse."""

    def __init__(self, backend, timeout: float = 10.0, logger=None):
        self.backend = backend
        self.timeout = timeout
        self.logger = logger

    @classmethod
    def from_config(cls, config, logger=None) -> 'ResourceLockManager':
        timeout = float(config.get('LOCK_TIMEOUT_SECONDS', 10))
        if config.get('LOCK_BACKEND', 'local') == 'redis':
            if not config.get('REDIS_URL'):
                raise RuntimeError("LOCK_BACKEND=redis requires REDIS_URL")
            backend = RedisLockBackend(
                config['REDIS_URL'],
                float(config.get('LOCK_LEASE_SECONDS', 30)),
                logger=logger
            )
        else:
            backend = LocalLockBackend()
        return cls(backend, timeout=timeout, logger=logger)

    @contextmanager
    def hold(self, *keys):
        """Hold every lock in ``keys`` for the duration of the block."""
        held = []
        try:
            for key in sorted(set(keys)):
                handle = self.backend.acquire(key, self.timeout)
                if handle is None:
                    if self.logger:
                        self.logger.warning(f"Timed out waiting for lock {key}")
                    raise TransientError(
                        "Resource is busy, retry later",
                        details={'lock': key}
                    )
                held.append(handle)
            yield
        finally:
            for handle in reversed(held):
                self.backend.release(handle)
