"""Deduplicating payload cache shared by every dataset of a scene.

Fetches run on worker threads; completions are turned into ``CacheEvent``
messages that the owner thread drains with :meth:`DataCache.dispatch_events`.
Subscriber callbacks therefore never run on a worker thread and never run
while the cache lock is held.
"""

from __future__ import annotations

import itertools
import logging
import threading
from collections import deque
from collections.abc import Callable
from concurrent.futures import Executor, ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from duality_client.errors import CacheInvalidatedError, DualityError, RemoteFetchError
from duality_client.utils.debug_logging import enable_debug_logger

from .providers import ProviderIdentity
from .store import CacheStore

logger = logging.getLogger(__name__)
_CACHE_DEBUG = enable_debug_logger(logger, "DUALITY_CACHE_DEBUG")

FetchFn = Callable[[], bytes]


@dataclass(frozen=True)
class CacheEvent:
    identity: ProviderIdentity
    payload: Optional[bytes] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def invalidated(self) -> bool:
        return isinstance(self.error, CacheInvalidatedError)


CacheCallback = Callable[[CacheEvent], None]


class CacheHandle:
    """Result slot shared by every caller requesting the same identity."""

    def __init__(self, identity: ProviderIdentity) -> None:
        self.identity = identity
        self._done = threading.Event()
        self._payload: Optional[bytes] = None
        self._error: Optional[BaseException] = None

    def done(self) -> bool:
        return self._done.is_set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        return self._done.wait(timeout)

    @property
    def error(self) -> Optional[BaseException]:
        return self._error

    @property
    def payload(self) -> bytes:
        if not self._done.is_set():
            raise RuntimeError(f"payload for {self.identity!r} is not available yet")
        if self._error is not None:
            raise self._error
        assert self._payload is not None
        return self._payload

    def _resolve(self, payload: Optional[bytes], error: Optional[BaseException]) -> None:
        if self._done.is_set():
            return
        self._payload = payload
        self._error = error
        self._done.set()

    def __repr__(self) -> str:
        state = "pending" if not self.done() else ("failed" if self._error else "ready")
        return f"CacheHandle({self.identity!r}, {state})"


class _EntryState(str, Enum):
    PENDING = "pending"
    VALID = "valid"


@dataclass
class _Entry:
    identity: ProviderIdentity
    generation: int
    handle: CacheHandle
    state: _EntryState = _EntryState.PENDING


@dataclass(frozen=True)
class CacheStats:
    entries: int
    valid: int
    pending: int
    fetches: int
    hits: int
    subscribers: int
    queued_events: int


@dataclass
class _Counters:
    fetches: int = 0
    hits: int = 0


class DataCache:
    """Fetch each distinct identity at most once and fan results out to subscribers."""

    def __init__(
        self,
        *,
        executor: Optional[Executor] = None,
        max_workers: int = 2,
        store: Optional[CacheStore] = None,
        on_events_pending: Optional[Callable[[], None]] = None,
    ) -> None:
        self._lock = threading.Lock()
        self._entries: dict[ProviderIdentity, _Entry] = {}
        self._subscribers: dict[ProviderIdentity, list[CacheCallback]] = {}
        self._events: deque[tuple[CacheCallback, CacheEvent]] = deque()
        self._generations = itertools.count(1)
        self._counters = _Counters()
        self._store = store
        self._owns_executor = executor is None
        self._executor: Executor = executor or ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="duality-fetch"
        )
        self.on_events_pending = on_events_pending

    # ------------------------------------------------------------------
    def get_or_fetch(self, identity: ProviderIdentity, fetch: FetchFn) -> CacheHandle:
        with self._lock:
            entry = self._entries.get(identity)
            if entry is not None:
                if entry.state is _EntryState.VALID:
                    self._counters.hits += 1
                return entry.handle
            entry = _Entry(identity=identity, generation=next(self._generations), handle=CacheHandle(identity))
            self._entries[identity] = entry
            self._counters.fetches += 1
        if _CACHE_DEBUG:
            logger.debug("cache miss: identity=%r generation=%d", identity, entry.generation)
        try:
            self._executor.submit(self._run_fetch, identity, entry.generation, fetch)
        except RuntimeError as exc:
            self._complete(identity, entry.generation, None, RemoteFetchError(f"fetch executor unavailable: {exc}"))
        return entry.handle

    def peek(self, identity: ProviderIdentity) -> Optional[bytes]:
        """Return a valid cached payload without fetching."""
        with self._lock:
            entry = self._entries.get(identity)
            if entry is None or entry.state is not _EntryState.VALID:
                return None
            return entry.handle.payload

    def contains(self, identity: ProviderIdentity) -> bool:
        with self._lock:
            return identity in self._entries

    def subscribe(self, identity: ProviderIdentity, callback: CacheCallback) -> None:
        """Register *callback* to fire once when *identity* resolves or is invalidated."""
        queued = False
        with self._lock:
            entry = self._entries.get(identity)
            if entry is not None and entry.state is _EntryState.VALID:
                self._events.append((callback, CacheEvent(identity, payload=entry.handle.payload)))
                queued = True
            else:
                self._subscribers.setdefault(identity, []).append(callback)
        if queued:
            self._signal_pending()

    def unsubscribe(self, identity: ProviderIdentity, callback: CacheCallback) -> None:
        with self._lock:
            callbacks = self._subscribers.get(identity)
            if callbacks and callback in callbacks:
                callbacks.remove(callback)
                if not callbacks:
                    del self._subscribers[identity]

    # ------------------------------------------------------------------
    def invalidate(self, identity: ProviderIdentity) -> None:
        with self._lock:
            entry = self._entries.pop(identity, None)
            callbacks = self._subscribers.pop(identity, [])
            self._invalidate_queued_locked(lambda ident: ident == identity)
            error = CacheInvalidatedError(f"cache entry {identity!r} was invalidated")
            for callback in callbacks:
                self._events.append((callback, CacheEvent(identity, error=error)))
        if entry is not None:
            entry.handle._resolve(None, error)
        if _CACHE_DEBUG:
            logger.debug("cache invalidate: identity=%r had_entry=%s", identity, entry is not None)
        if callbacks:
            self._signal_pending()

    def discard(self, identity: ProviderIdentity) -> bool:
        """Invalidate *identity* unless another subscriber still waits for it."""
        with self._lock:
            if self._subscribers.get(identity):
                return False
        self.invalidate(identity)
        return True

    def invalidate_all(self) -> int:
        """Drop every in-memory entry; pending subscribers receive an invalidation event.

        Fetches still in flight complete against a dropped generation and their
        results are discarded. The persistent store is left untouched.
        """
        with self._lock:
            entries = list(self._entries.values())
            self._entries.clear()
            subscribers = self._subscribers
            self._subscribers = {}
            self._invalidate_queued_locked(lambda _ident: True)
            error = CacheInvalidatedError("cache cleared")
            for identity, callbacks in subscribers.items():
                for callback in callbacks:
                    self._events.append((callback, CacheEvent(identity, error=error)))
        for entry in entries:
            entry.handle._resolve(None, error)
        if _CACHE_DEBUG:
            logger.debug("cache invalidate all: entries=%d", len(entries))
        if subscribers:
            self._signal_pending()
        return len(entries)

    def clear(self) -> None:
        """Drop every entry and the persistent records; store I/O runs on a fetch worker."""
        dropped = self.invalidate_all()
        if self._store is not None:
            try:
                self._executor.submit(self._clear_stored)
            except RuntimeError:
                logger.warning("persistent cache clear skipped: fetch executor unavailable")
        logger.info("cache cleared: entries=%d", dropped)

    def clear_observers(self) -> None:
        """Drop all subscriptions and undelivered events but keep cached payloads."""
        with self._lock:
            dropped = sum(len(v) for v in self._subscribers.values()) + len(self._events)
            self._subscribers.clear()
            self._events.clear()
        if _CACHE_DEBUG:
            logger.debug("cache observers cleared: dropped=%d", dropped)

    def _invalidate_queued_locked(self, matches: Callable[[ProviderIdentity], bool]) -> None:
        # Undelivered payload events must not hand out data that was just invalidated.
        if not self._events:
            return
        rewritten: deque[tuple[CacheCallback, CacheEvent]] = deque()
        for callback, event in self._events:
            if matches(event.identity) and event.error is None:
                event = CacheEvent(event.identity, error=CacheInvalidatedError(f"cache entry {event.identity!r} was invalidated"))
            rewritten.append((callback, event))
        self._events = rewritten

    # ------------------------------------------------------------------
    def dispatch_events(self) -> int:
        """Run queued subscriber callbacks on the calling (owner) thread."""
        with self._lock:
            events = list(self._events)
            self._events.clear()
        for callback, event in events:
            try:
                callback(event)
            except Exception:
                logger.warning("cache subscriber failed for %r", event.identity, exc_info=True)
        return len(events)

    def pending_events(self) -> int:
        with self._lock:
            return len(self._events)

    def stats(self) -> CacheStats:
        with self._lock:
            valid = sum(1 for e in self._entries.values() if e.state is _EntryState.VALID)
            return CacheStats(
                entries=len(self._entries),
                valid=valid,
                pending=len(self._entries) - valid,
                fetches=self._counters.fetches,
                hits=self._counters.hits,
                subscribers=sum(len(v) for v in self._subscribers.values()),
                queued_events=len(self._events),
            )

    def close(self) -> None:
        if self._owns_executor:
            self._executor.shutdown(wait=False, cancel_futures=True)

    # ------------------------------------------------------------------
    def _run_fetch(self, identity: ProviderIdentity, generation: int, fetch: FetchFn) -> None:
        payload: Optional[bytes] = None
        error: Optional[BaseException] = None
        try:
            payload = self._load_stored(identity)
            if payload is None:
                payload = bytes(fetch())
                self._save_stored(identity, payload)
        except DualityError as exc:
            error = exc
        except Exception as exc:
            error = RemoteFetchError(f"fetch of {identity!r} failed: {exc}")
            error.__cause__ = exc
        self._complete(identity, generation, payload, error)

    def _load_stored(self, identity: ProviderIdentity) -> Optional[bytes]:
        if self._store is None:
            return None
        try:
            return self._store.load(identity)
        except OSError:
            logger.warning("persistent cache read failed for %r", identity, exc_info=True)
            return None

    def _save_stored(self, identity: ProviderIdentity, payload: bytes) -> None:
        if self._store is None:
            return
        try:
            self._store.save(identity, payload)
        except OSError:
            logger.warning("persistent cache write failed for %r", identity, exc_info=True)

    def _clear_stored(self) -> None:
        assert self._store is not None
        try:
            self._store.clear()
        except OSError:
            logger.warning("persistent cache clear failed", exc_info=True)

    def _complete(
        self,
        identity: ProviderIdentity,
        generation: int,
        payload: Optional[bytes],
        error: Optional[BaseException],
    ) -> None:
        with self._lock:
            entry = self._entries.get(identity)
            if entry is None or entry.generation != generation:
                stale = True
                callbacks: list[CacheCallback] = []
            else:
                stale = False
                if error is None:
                    entry.state = _EntryState.VALID
                else:
                    # failed identities are refetched on the next explicit request
                    del self._entries[identity]
                callbacks = self._subscribers.pop(identity, [])
                event = CacheEvent(identity, payload=payload, error=error)
                for callback in callbacks:
                    self._events.append((callback, event))
                entry.handle._resolve(payload, error)
        if stale:
            if _CACHE_DEBUG:
                logger.debug("discarding stale fetch result: identity=%r generation=%d", identity, generation)
            return
        if error is not None:
            logger.warning("fetch failed for %r: %s", identity, error)
        elif _CACHE_DEBUG:
            logger.debug("cache filled: identity=%r bytes=%d subscribers=%d", identity, len(payload or b""), len(callbacks))
        if callbacks:
            self._signal_pending()

    def _signal_pending(self) -> None:
        hook = self.on_events_pending
        if hook is None:
            return
        try:
            hook()
        except Exception:
            logger.warning("on_events_pending hook failed", exc_info=True)


__all__ = ["CacheCallback", "CacheEvent", "CacheHandle", "CacheStats", "DataCache", "FetchFn"]
