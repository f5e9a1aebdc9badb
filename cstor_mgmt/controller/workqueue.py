"""Rate limited, de-duplicating work queue.

Items are hashable (usually :class:`QueueItem`). An item that is added
while pending is dropped; an item added while a worker holds it is parked
and queued again when the worker calls :meth:`RateLimitingQueue.done`.
Items that share a resource key are never handed to two workers at once.
"""

import heapq
import itertools
import logging
import threading
import time
from collections import deque
from typing import Any, Callable, Dict, Hashable, List, Optional, Tuple

logger = logging.getLogger(__name__)

DEFAULT_BASE_DELAY = 0.005  # seconds
DEFAULT_MAX_DELAY = 1000.0  # seconds
DEFAULT_QPS = 10.0
DEFAULT_BURST = 100


class ItemExponentialFailureRateLimiter:
    """Delay doubles with each failure of the same item: base * 2^failures."""

    def __init__(self, base_delay: float = DEFAULT_BASE_DELAY, max_delay: float = DEFAULT_MAX_DELAY):
        self.base_delay = base_delay
        self.max_delay = max_delay
        self._failures: Dict[Hashable, int] = {}
        self._lock = threading.Lock()

    def when(self, item: Hashable) -> float:
        with self._lock:
            exp = self._failures.get(item, 0)
            self._failures[item] = exp + 1
        # cap the exponent so the float never overflows
        if exp > 64:
            return self.max_delay
        return min(self.base_delay * (2 ** exp), self.max_delay)

    def num_requeues(self, item: Hashable) -> int:
        with self._lock:
            return self._failures.get(item, 0)

    def forget(self, item: Hashable) -> None:
        with self._lock:
            self._failures.pop(item, None)


class BucketRateLimiter:
    """Overall token bucket shared by all items."""

    def __init__(self, qps: float = DEFAULT_QPS, burst: int = DEFAULT_BURST,
                 clock: Callable[[], float] = time.monotonic):
        self.qps = qps
        self.burst = burst
        self._clock = clock
        self._tokens = float(burst)
        self._last = clock()
        self._lock = threading.Lock()

    def when(self, item: Hashable) -> float:
        with self._lock:
            now = self._clock()
            self._tokens = min(self.burst, self._tokens + (now - self._last) * self.qps)
            self._last = now
            self._tokens -= 1
            if self._tokens >= 0:
                return 0.0
            return -self._tokens / self.qps

    def num_requeues(self, item: Hashable) -> int:
        return 0

    def forget(self, item: Hashable) -> None:
        pass


class MaxOfRateLimiter:
    """Uses the longest delay of its limiters."""

    def __init__(self, *limiters):
        self.limiters = limiters

    def when(self, item: Hashable) -> float:
        return max(limiter.when(item) for limiter in self.limiters)

    def num_requeues(self, item: Hashable) -> int:
        return max(limiter.num_requeues(item) for limiter in self.limiters)

    def forget(self, item: Hashable) -> None:
        for limiter in self.limiters:
            limiter.forget(item)


def default_controller_rate_limiter() -> MaxOfRateLimiter:
    return MaxOfRateLimiter(
        ItemExponentialFailureRateLimiter(DEFAULT_BASE_DELAY, DEFAULT_MAX_DELAY),
        BucketRateLimiter(DEFAULT_QPS, DEFAULT_BURST),
    )


def _serial_key(item: Hashable) -> Hashable:
    return getattr(item, "key", item)


class RateLimitingQueue:
    """Multi-producer, multi-consumer work queue with delayed re-adds."""

    def __init__(self, name: str, rate_limiter=None, clock: Callable[[], float] = time.monotonic):
        self.name = name
        self.rate_limiter = rate_limiter or default_controller_rate_limiter()
        self._clock = clock

        self._queue: deque = deque()
        self._dirty: set = set()
        self._processing: set = set()
        self._active_keys: Dict[Hashable, int] = {}
        self._shutting_down = False
        self._cond = threading.Condition()

        self._waiting: List[Tuple[float, int, Hashable]] = []
        self._seq = itertools.count()
        self._waiting_cond = threading.Condition()
        self._waiter = threading.Thread(target=self._waiting_loop, name=f"{name}-delay", daemon=True)
        self._waiter.start()

    def add(self, item: Hashable) -> None:
        with self._cond:
            if self._shutting_down or item in self._dirty:
                return
            self._dirty.add(item)
            if item in self._processing:
                return
            self._queue.append(item)
            self._cond.notify()

    def __len__(self) -> int:
        with self._cond:
            return len(self._queue)

    def get(self) -> Tuple[Optional[Any], bool]:
        """Block until an item is available.

        Returns ``(item, False)``, or ``(None, True)`` once the queue is
        shut down.
        """
        with self._cond:
            while True:
                if self._shutting_down:
                    return None, True
                item = self._pop_ready()
                if item is not None:
                    return item, False
                self._cond.wait()

    def _pop_ready(self) -> Optional[Any]:
        for index, item in enumerate(self._queue):
            if self._active_keys.get(_serial_key(item), 0) == 0:
                del self._queue[index]
                self._processing.add(item)
                self._dirty.discard(item)
                key = _serial_key(item)
                self._active_keys[key] = self._active_keys.get(key, 0) + 1
                return item
        return None

    def done(self, item: Hashable) -> None:
        """Mark ``item`` finished; a re-add that arrived meanwhile is queued now."""
        with self._cond:
            if item not in self._processing:
                return
            self._processing.discard(item)
            key = _serial_key(item)
            remaining = self._active_keys.get(key, 0) - 1
            if remaining > 0:
                self._active_keys[key] = remaining
            else:
                self._active_keys.pop(key, None)
            if item in self._dirty and not self._shutting_down:
                self._queue.append(item)
            self._cond.notify_all()

    def shut_down(self) -> None:
        """Stop accepting items and discard everything pending."""
        with self._cond:
            self._shutting_down = True
            self._queue.clear()
            self._dirty.clear()
            self._cond.notify_all()
        with self._waiting_cond:
            self._waiting.clear()
            self._waiting_cond.notify_all()
        logger.info(f"Work queue {self.name} shut down")

    def shutting_down(self) -> bool:
        with self._cond:
            return self._shutting_down

    def add_after(self, item: Hashable, delay: float) -> None:
        if self.shutting_down():
            return
        if delay <= 0:
            self.add(item)
            return
        with self._waiting_cond:
            heapq.heappush(self._waiting, (self._clock() + delay, next(self._seq), item))
            self._waiting_cond.notify()

    def add_rate_limited(self, item: Hashable) -> None:
        self.add_after(item, self.rate_limiter.when(item))

    def forget(self, item: Hashable) -> None:
        self.rate_limiter.forget(item)

    def num_requeues(self, item: Hashable) -> int:
        return self.rate_limiter.num_requeues(item)

    def _waiting_loop(self) -> None:
        while True:
            with self._waiting_cond:
                while True:
                    if self.shutting_down():
                        return
                    if not self._waiting:
                        self._waiting_cond.wait()
                        continue
                    ready_at = self._waiting[0][0]
                    remaining = ready_at - self._clock()
                    if remaining <= 0:
                        _, _, item = heapq.heappop(self._waiting)
                        break
                    self._waiting_cond.wait(remaining)
            self.add(item)
