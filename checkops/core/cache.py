"""
In-process LRU cache with per-entry sliding TTL.

``LRUCache`` is a single bounded map. ``CheckOpsCache`` groups one LRU cache
per entity kind (forms, question batches, stats, submissions) and knows how
a mutation on one entity cascades to the others.

Expiry is a cancelable deferred callback per entry. Each slot owns its
expiry handle and every arm/cancel goes through ``_swap_handle``. By default
all caches share one ``TimerScheduler``, a single worker thread draining a
heap of due callbacks.
"""
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional
import heapq
import threading
import time
import logging

logger = logging.getLogger(__name__)

TimerFactory = Callable[[float, Callable[[], None]], Any]


class ScheduledCall:
    """Handle returned by ``TimerScheduler.schedule``; ``cancel()`` is idempotent."""

    __slots__ = ("due", "callback", "cancelled", "_scheduler")

    def __init__(self, scheduler: "TimerScheduler", due: float, callback: Callable[[], None]):
        self._scheduler = scheduler
        self.due = due
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self._scheduler._cancel(self)

    def __lt__(self, other: "ScheduledCall") -> bool:
        return self.due < other.due


class TimerScheduler:
    """Deferred callbacks on a single daemon worker thread.

    Pending calls sit in a heap ordered by due time. Cancelled calls are left
    in place and skipped when they reach the top; the heap is rebuilt once
    they outnumber the live ones.
    """

    COMPACT_THRESHOLD = 64

    def __init__(self, name: str = "checkops-cache-expiry"):
        self.name = name
        self._heap: List[ScheduledCall] = []
        self._cancelled = 0
        self._condition = threading.Condition()
        self._worker: Optional[threading.Thread] = None

    def schedule(self, delay: float, callback: Callable[[], None]) -> ScheduledCall:
        call = ScheduledCall(self, time.monotonic() + delay, callback)
        with self._condition:
            heapq.heappush(self._heap, call)
            if self._worker is None or not self._worker.is_alive():
                self._worker = threading.Thread(target=self._run, name=self.name, daemon=True)
                self._worker.start()
            if self._heap[0] is call:
                self._condition.notify()
        return call

    __call__ = schedule

    def pending(self) -> int:
        with self._condition:
            return len(self._heap) - self._cancelled

    def _cancel(self, call: ScheduledCall) -> None:
        with self._condition:
            if call.cancelled:
                return
            call.cancelled = True
            if call.callback is None:
                # already popped for execution
                return
            call.callback = None
            self._cancelled += 1
            if self._cancelled > self.COMPACT_THRESHOLD and self._cancelled * 2 > len(self._heap):
                self._heap = [c for c in self._heap if not c.cancelled]
                heapq.heapify(self._heap)
                self._cancelled = 0

    def _next_due(self) -> Optional[Callable[[], None]]:
        with self._condition:
            while True:
                while self._heap and self._heap[0].cancelled:
                    heapq.heappop(self._heap)
                    self._cancelled -= 1
                if not self._heap:
                    self._condition.wait()
                    continue
                wait = self._heap[0].due - time.monotonic()
                if wait > 0:
                    self._condition.wait(wait)
                    continue
                call = heapq.heappop(self._heap)
                callback, call.callback = call.callback, None
                return callback

    def _run(self) -> None:
        while True:
            callback = self._next_due()
            try:
                callback()
            except Exception as e:
                logger.warning(f"Scheduled callback failed: {e}")


default_scheduler = TimerScheduler()


@dataclass
class CacheSlot:
    value: Any
    ttl: float
    stored_at: float = field(default_factory=time.monotonic)
    handle: Any = None
    # bumped on every arm; a callback only expires the generation it was armed for
    generation: int = 0


@dataclass
class CacheCounters:
    hits: int = 0
    misses: int = 0
    sets: int = 0
    deletes: int = 0
    evictions: int = 0
    expirations: int = 0


class LRUCache:
    def __init__(
        self,
        max_size: int = 100,
        ttl: float = 300,
        timer_factory: Optional[TimerFactory] = None,
        name: str = "cache",
    ):
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self.max_size = max_size
        self.ttl = ttl
        self.name = name
        self._timer_factory = timer_factory or default_scheduler
        self._entries: "OrderedDict[str, CacheSlot]" = OrderedDict()
        self._lock = threading.RLock()
        self.counters = CacheCounters()

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            slot = self._entries.get(key)
            if slot is None:
                self.counters.misses += 1
                return default
            self.counters.hits += 1
            self._entries.move_to_end(key)
            # sliding expiry: re-arm with the entry's own TTL
            self._arm(key, slot)
            return slot.value

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        ttl = self.ttl if ttl is None else ttl
        with self._lock:
            previous = self._entries.get(key)
            if previous is not None:
                self._swap_handle(previous, None)
            elif len(self._entries) >= self.max_size:
                oldest = next(iter(self._entries))
                self._discard(oldest)
                self.counters.evictions += 1
            slot = CacheSlot(value=value, ttl=ttl)
            self._entries[key] = slot
            self._entries.move_to_end(key)
            self.counters.sets += 1
            self._arm(key, slot)

    def delete(self, key: str) -> bool:
        with self._lock:
            if key not in self._entries:
                return False
            self._discard(key)
            self.counters.deletes += 1
            return True

    def peek(self, key: str, default: Any = None) -> Any:
        """Read a value without touching recency or TTL."""
        with self._lock:
            slot = self._entries.get(key)
            return default if slot is None else slot.value

    def has(self, key: str) -> bool:
        with self._lock:
            return key in self._entries

    __contains__ = has

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._entries.keys())

    def __len__(self) -> int:
        return len(self._entries)

    def clear(self) -> None:
        with self._lock:
            for slot in self._entries.values():
                self._swap_handle(slot, None)
            self._entries.clear()
            self.counters = CacheCounters()

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            c = self.counters
            lookups = c.hits + c.misses
            return {
                "hits": c.hits,
                "misses": c.misses,
                "sets": c.sets,
                "deletes": c.deletes,
                "evictions": c.evictions,
                "expirations": c.expirations,
                "size": len(self._entries),
                "maxSize": self.max_size,
                "hitRate": c.hits / lookups if lookups else 0.0,
                "utilizationRate": len(self._entries) / self.max_size,
                "defaultTTL": self.ttl,
            }

    def inspect(self) -> List[Dict[str, Any]]:
        now = time.monotonic()
        with self._lock:
            return [
                {
                    "key": key,
                    "value": slot.value,
                    "age": now - slot.stored_at,
                    "ttl": slot.ttl,
                    "hasTimer": slot.handle is not None,
                }
                for key, slot in self._entries.items()
            ]

    def _arm(self, key: str, slot: CacheSlot) -> None:
        if slot.ttl is None or slot.ttl <= 0:
            self._swap_handle(slot, None)
            return
        slot.generation += 1
        generation = slot.generation
        self._swap_handle(slot, self._timer_factory(slot.ttl, lambda: self._expire(key, slot, generation)))

    @staticmethod
    def _swap_handle(slot: CacheSlot, handle: Any) -> None:
        previous, slot.handle = slot.handle, handle
        if previous is not None:
            previous.cancel()

    def _discard(self, key: str) -> None:
        slot = self._entries.pop(key)
        self._swap_handle(slot, None)

    def _expire(self, key: str, slot: CacheSlot, generation: int) -> None:
        with self._lock:
            # a stale timer must not drop a newer or re-armed slot
            if self._entries.get(key) is not slot or slot.generation != generation:
                return
            del self._entries[key]
            slot.handle = None
            self.counters.expirations += 1


def batch_key(ids: Iterable[str]) -> str:
    return "questions:" + ",".join(sorted(str(i) for i in ids))


class CheckOpsCache:
    """Sub-caches per entity kind with cascading invalidation.

    Errors raised inside the cache are logged and treated as a miss, so a
    broken cache degrades to reading from the store.
    """

    def __init__(
        self,
        form_size: int = 100,
        form_ttl: float = 300,
        question_size: int = 200,
        question_ttl: float = 600,
        stats_size: int = 50,
        stats_ttl: float = 180,
        submission_size: int = 500,
        submission_ttl: float = 120,
        timer_factory: Optional[TimerFactory] = None,
        enabled: bool = True,
    ):
        self.enabled = enabled
        self.form_cache = LRUCache(form_size, form_ttl, timer_factory, name="forms")
        self.question_cache = LRUCache(question_size, question_ttl, timer_factory, name="questions")
        self.stats_cache = LRUCache(stats_size, stats_ttl, timer_factory, name="stats")
        self.submission_cache = LRUCache(submission_size, submission_ttl, timer_factory, name="submissions")

    @classmethod
    def from_settings(cls, settings, timer_factory: Optional[TimerFactory] = None) -> "CheckOpsCache":
        return cls(
            form_size=settings.CACHE_FORM_MAX_SIZE,
            form_ttl=settings.CACHE_FORM_TTL,
            question_size=settings.CACHE_QUESTION_MAX_SIZE,
            question_ttl=settings.CACHE_QUESTION_TTL,
            stats_size=settings.CACHE_STATS_MAX_SIZE,
            stats_ttl=settings.CACHE_STATS_TTL,
            submission_size=settings.CACHE_SUBMISSION_MAX_SIZE,
            submission_ttl=settings.CACHE_SUBMISSION_TTL,
            timer_factory=timer_factory,
            enabled=settings.CACHE_ENABLED,
        )

    def _caches(self) -> Dict[str, LRUCache]:
        return {
            "forms": self.form_cache,
            "questions": self.question_cache,
            "stats": self.stats_cache,
            "submissions": self.submission_cache,
        }

    def _read(self, cache: LRUCache, key: str) -> Any:
        if not self.enabled:
            return None
        try:
            return cache.get(key)
        except Exception as e:
            logger.warning(f"Cache get error on {cache.name}:{key}: {e}")
            return None

    def _write(self, cache: LRUCache, key: str, value: Any, ttl: Optional[float]) -> None:
        if not self.enabled:
            return
        try:
            cache.set(key, value, ttl)
        except Exception as e:
            logger.warning(f"Cache set error on {cache.name}:{key}: {e}")

    def _drop(self, cache: LRUCache, key: str) -> bool:
        try:
            return cache.delete(key)
        except Exception as e:
            logger.warning(f"Cache delete error on {cache.name}:{key}: {e}")
            return False

    # Forms
    def get_form(self, form_id: str) -> Any:
        return self._read(self.form_cache, f"form:{form_id}")

    def set_form(self, form_id: str, form: Any, ttl: Optional[float] = None) -> None:
        self._write(self.form_cache, f"form:{form_id}", form, ttl)

    def delete_form(self, form_id: str) -> bool:
        return self._drop(self.form_cache, f"form:{form_id}")

    # Question batches
    def get_questions(self, ids: Iterable[str]) -> Any:
        return self._read(self.question_cache, batch_key(ids))

    def set_questions(self, ids: Iterable[str], questions: Any, ttl: Optional[float] = None) -> None:
        self._write(self.question_cache, batch_key(ids), questions, ttl)

    def delete_questions(self, ids: Iterable[str]) -> bool:
        return self._drop(self.question_cache, batch_key(ids))

    # Stats
    def get_stats(self, form_id: str) -> Any:
        return self._read(self.stats_cache, f"stats:{form_id}")

    def set_stats(self, form_id: str, stats: Any, ttl: Optional[float] = None) -> None:
        self._write(self.stats_cache, f"stats:{form_id}", stats, ttl)

    def delete_stats(self, form_id: str) -> bool:
        return self._drop(self.stats_cache, f"stats:{form_id}")

    # Submissions
    def get_submission(self, submission_id: str) -> Any:
        return self._read(self.submission_cache, f"submission:{submission_id}")

    def set_submission(self, submission_id: str, submission: Any, ttl: Optional[float] = None) -> None:
        self._write(self.submission_cache, f"submission:{submission_id}", submission, ttl)

    def delete_submission(self, submission_id: str) -> bool:
        return self._drop(self.submission_cache, f"submission:{submission_id}")

    def invalidate_form(self, form_id: str) -> None:
        """Drop a form together with its stats and cached submissions."""
        self.delete_form(form_id)
        self.delete_stats(form_id)
        try:
            for key in self.submission_cache.keys():
                submission = self.submission_cache.peek(key)
                if submission is not None and getattr(submission, "form_id", None) == form_id:
                    self.submission_cache.delete(key)
        except Exception as e:
            logger.warning(f"Cache invalidation error for form {form_id}: {e}")
        logger.debug(f"Invalidated cache entries for form {form_id}")

    def invalidate_question(self, question_id: str) -> None:
        """Drop every cached question batch that contains ``question_id``."""
        try:
            for key in self.question_cache.keys():
                if not key.startswith("questions:"):
                    continue
                if question_id in key[len("questions:"):].split(","):
                    self.question_cache.delete(key)
        except Exception as e:
            logger.warning(f"Cache invalidation error for question {question_id}: {e}")
        logger.debug(f"Invalidated question batches containing {question_id}")

    def get_cache_stats(self) -> Dict[str, Any]:
        per_cache = {name: cache.stats() for name, cache in self._caches().items()}
        per_cache["overall"] = {
            "totalSize": sum(s["size"] for s in per_cache.values()),
            "totalHits": sum(s["hits"] for s in per_cache.values()),
            "totalMisses": sum(s["misses"] for s in per_cache.values()),
        }
        return per_cache

    def clear(self) -> None:
        for cache in self._caches().values():
            cache.clear()
