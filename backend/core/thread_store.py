"""
In-memory chat threads.

Threads are kept in last-used order. A thread idle for longer than the window,
or pushed past the size bound, is evicted; a later turn on it gets 404.
"""
import logging
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional

logger = logging.getLogger("thread_store")

DEFAULT_IDLE_SECONDS = 6 * 60 * 60
DEFAULT_MAX_THREADS = 10_000


@dataclass
class ChatThread:
    thread_id: str
    brand_key: Optional[str]
    history: List[Dict[str, str]] = field(default_factory=list)
    created_at: datetime = field(default_factory=datetime.utcnow)
    last_active: float = 0.0

    def append(self, role: str, content: str, limit: int) -> None:
        """Add a message, keeping only the newest `limit` entries."""
        self.history.append({"role": role, "content": content})
        if limit > 0 and len(self.history) > limit:
            del self.history[:-limit]


class ThreadStore:

    def __init__(
        self,
        idle_seconds: float = DEFAULT_IDLE_SECONDS,
        max_threads: int = DEFAULT_MAX_THREADS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.idle_seconds = idle_seconds
        self.max_threads = max_threads
        self.clock = clock
        self._threads: "OrderedDict[str, ChatThread]" = OrderedDict()

    def add(self, thread: ChatThread) -> ChatThread:
        now = self.clock()
        self._evict(now)
        thread.last_active = now
        self._threads[thread.thread_id] = thread
        self._threads.move_to_end(thread.thread_id)
        while len(self._threads) > self.max_threads:
            evicted, _ = self._threads.popitem(last=False)
            logger.info("[chat] thread %s evicted (capacity)", evicted)
        return thread

    def get(self, thread_id: str) -> Optional[ChatThread]:
        """Look up a live thread and mark it as used."""
        now = self.clock()
        self._evict(now)
        thread = self._threads.get(thread_id)
        if thread is not None:
            thread.last_active = now
            self._threads.move_to_end(thread_id)
        return thread

    def _evict(self, now: float) -> None:
        while self._threads:
            thread_id, thread = next(iter(self._threads.items()))
            if now - thread.last_active < self.idle_seconds:
                break
            del self._threads[thread_id]
            logger.info("[chat] thread %s evicted (idle)", thread_id)

    def __contains__(self, thread_id: str) -> bool:
        return thread_id in self._threads

    def __len__(self) -> int:
        return len(self._threads)
