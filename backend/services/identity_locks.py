"""
Per-artifact mutual exclusion for pipeline operations.

Operations on the same (package_id, version_id) share an object store key and
staging paths, so they are serialized here. Different identities never block
each other.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Dict, Optional

from models.artifact import ArtifactIdentity


class IdentityLockRegistry:
    """
    Hands out one asyncio.Lock per artifact identity.

    Locks are reference counted and dropped once no operation holds or waits
    on them, so the registry only grows with concurrently active identities.
    Serialization is per event loop and per process.

    Example:
        locks = IdentityLockRegistry()

        async with locks.hold(ArtifactIdentity(12, 3)):
            # No other operation on 12-3 runs here
            await do_work()
    """

    def __init__(self):
        self._locks: Dict[ArtifactIdentity, asyncio.Lock] = {}
        self._holders: Dict[ArtifactIdentity, int] = {}

    @asynccontextmanager
    async def hold(self, identity: ArtifactIdentity):
        """
        Hold the lock for an identity for the duration of an async with-block.

        Args:
            identity: Artifact being operated on

        Yields:
            None (the identity is exclusively held for the duration of the context)
        """
        lock = self._locks.setdefault(identity, asyncio.Lock())
        self._holders[identity] = self._holders.get(identity, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._holders[identity] -= 1
            if self._holders[identity] == 0:
                del self._holders[identity]
                del self._locks[identity]

    def is_locked(self, identity: ArtifactIdentity) -> bool:
        lock = self._locks.get(identity)
        return lock is not None and lock.locked()

    def active_count(self) -> int:
        """Number of identities currently held or waited on."""
        return len(self._locks)


# Global singleton instance
_lock_registry: Optional[IdentityLockRegistry] = None


def get_lock_registry() -> IdentityLockRegistry:
    """Get or create the global identity lock registry singleton."""
    global _lock_registry
    if _lock_registry is None:
        _lock_registry = IdentityLockRegistry()
    return _lock_registry
