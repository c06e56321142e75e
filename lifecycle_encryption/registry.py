"""
Decoded-state registry.

Records which tracked objects currently hold plaintext in memory. Absence of
an entry means ciphertext.
"""

import threading
import weakref
from collections import deque
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Dict, NamedTuple, Optional


class TrackedIdentity(NamedTuple):
    """(type name, primary key) of a persistent object, plus an optional instance token."""

    type_name: str
    pk: Any
    instance: Optional[str] = None

    def __str__(self):
        if self.instance is None:
            return f"{self.type_name}#{self.pk}"
        return f"{self.type_name}#{self.pk}@{self.instance[:8]}"


class DecodedStateRegistry:
    """
    Thread-safe map from :class:`TrackedIdentity` to "currently plaintext".

    ``locked(identity)`` serialises check-then-update sequences for one
    identity. Locks are striped so their number stays bounded.

    An entry marked with an ``owner`` is dropped once the owner is garbage
    collected, so per-instance identities do not accumulate.
    """

    LOCK_STRIPES = 64

    def __init__(self, stripes: int = LOCK_STRIPES):
        self._entries: Dict[TrackedIdentity, bool] = {}
        self._finalizers: Dict[TrackedIdentity, weakref.finalize] = {}
        # filled by finalizers, which may run inside a locked section
        self._dead: deque = deque()
        self._lock = threading.Lock()
        self._stripes = [threading.RLock() for _ in range(stripes)]

    def has(self, identity: TrackedIdentity) -> bool:
        with self._lock:
            self._purge()
            return self._entries.get(identity, False)

    def mark_decrypted(self, identity: TrackedIdentity, owner: Any = None) -> None:
        with self._lock:
            self._purge()
            self._entries[identity] = True
            if owner is not None and identity not in self._finalizers:
                finalizer = weakref.finalize(owner, self._dead.append, identity)
                finalizer.atexit = False
                self._finalizers[identity] = finalizer

    def mark_encrypted(self, identity: TrackedIdentity) -> None:
        with self._lock:
            self._purge()
            self._entries.pop(identity, None)
            finalizer = self._finalizers.pop(identity, None)
        if finalizer is not None:
            finalizer.detach()

    def _purge(self) -> None:
        while self._dead:
            identity = self._dead.popleft()
            self._entries.pop(identity, None)
            self._finalizers.pop(identity, None)

    @contextmanager
    def locked(self, identity: TrackedIdentity):
        lock = self._stripes[hash(identity) % len(self._stripes)]
        with lock:
            yield

    def clear(self) -> None:
        with self._lock:
            for finalizer in self._finalizers.values():
                finalizer.detach()
            self._finalizers.clear()
            self._dead.clear()
            self._entries.clear()

    def snapshot(self) -> Dict[str, bool]:
        with self._lock:
            self._purge()
            return {str(identity): flag for identity, flag in self._entries.items()}

    def __contains__(self, identity) -> bool:
        return self.has(identity)

    def __len__(self) -> int:
        with self._lock:
            self._purge()
            return len(self._entries)


class ScopedRegistry:
    """
    Registry that follows the active unit of work.

    Inside ``scope()`` every call goes to a fresh :class:`DecodedStateRegistry`
    bound to the current context; outside it calls go to the fallback.
    """

    def __init__(self, fallback: Optional[DecodedStateRegistry] = None):
        self.fallback = fallback if fallback is not None else DecodedStateRegistry()
        self._current: ContextVar[Optional[DecodedStateRegistry]] = ContextVar(
            f'lifecycle_encryption_registry_{id(self)}', default=None
        )

    @property
    def current(self) -> DecodedStateRegistry:
        registry = self._current.get()
        return registry if registry is not None else self.fallback

    @contextmanager
    def scope(self):
        registry = DecodedStateRegistry()
        token = self._current.set(registry)
        try:
            yield registry
        finally:
            self._current.reset(token)
            registry.clear()

    def has(self, identity: TrackedIdentity) -> bool:
        return self.current.has(identity)

    def mark_decrypted(self, identity: TrackedIdentity, owner: Any = None) -> None:
        self.current.mark_decrypted(identity, owner)

    def mark_encrypted(self, identity: TrackedIdentity) -> None:
        self.current.mark_encrypted(identity)

    def locked(self, identity: TrackedIdentity):
        return self.current.locked(identity)

    def clear(self) -> None:
        self.current.clear()

    def snapshot(self) -> Dict[str, bool]:
        return self.current.snapshot()

    def __contains__(self, identity) -> bool:
        return self.has(identity)

    def __len__(self) -> int:
        return len(self.current)
