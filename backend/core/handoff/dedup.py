"""
In-memory duplicate suppression for handoff submissions.

One entry per conversation: (content hash, timestamp). The map is bounded;
the least recently written conversation is evicted first. Process-local only.
"""
import hashlib
import json
import logging
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Optional

logger = logging.getLogger("handoff_dedup")

DEFAULT_WINDOW_SECONDS = 5 * 60
DEFAULT_MAX_ENTRIES = 10_000


@dataclass(frozen=True)
class DedupEntry:
    content_hash: str
    timestamp: float


def content_hash(payload: Any) -> str:
    canonical = json.dumps(payload or {}, sort_keys=True, ensure_ascii=False, separators=(",", ":"), default=str)
    return hashlib.sha1(canonical.encode("utf-8")).hexdigest()


class HandoffDeduplicator:

    def __init__(
        self,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.window_seconds = window_seconds
        self.max_entries = max_entries
        self.clock = clock
        self._entries: "OrderedDict[str, DedupEntry]" = OrderedDict()

    def is_duplicate(self, conversation_id: str, payload: Any) -> bool:
        """Check and record in one step. A suppressed submission does not refresh the timestamp."""
        digest = content_hash(payload)
        now = self.clock()
        prev = self._entries.get(conversation_id)

        if prev and prev.content_hash == digest and (now - prev.timestamp) < self.window_seconds:
            logger.info("[handoff][dedup] duplicate for conversation %s", conversation_id)
            return True

        self._entries[conversation_id] = DedupEntry(digest, now)
        self._entries.move_to_end(conversation_id)
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)
        return False

    def get(self, conversation_id: str) -> Optional[DedupEntry]:
        return self._entries.get(conversation_id)

    def __len__(self) -> int:
        return len(self._entries)
