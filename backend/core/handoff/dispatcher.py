"""
Fan-out of an accepted handoff to every configured delivery channel.

Channels run concurrently, each under its own timeout. A failing or slow
channel is logged and reported, never raised: it cannot block, cancel or roll
back another channel, and it never reaches the chat response.
"""
import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Sequence

from backend.core.handoff.dedup import HandoffDeduplicator, content_hash
from backend.core.handoff.errors import DispatchFailure, DuplicateSubmission
from backend.core.handoff.models import HandoffDelivery

logger = logging.getLogger("handoff_dispatcher")

DEFAULT_CHANNEL_TIMEOUT = 10.0


class HandoffChannel(Protocol):
    name: str
    timeout: Optional[float]

    async def deliver(self, delivery: HandoffDelivery) -> Dict[str, Any]:
        ...


@dataclass
class ChannelResult:
    channel: str
    ok: bool
    skipped: bool = False
    error: Optional[str] = None
    detail: Dict[str, Any] = field(default_factory=dict)
    elapsed_ms: float = 0.0


@dataclass
class DispatchReport:
    conversation_id: str
    results: List[ChannelResult] = field(default_factory=list)

    @property
    def delivered(self) -> List[str]:
        return [r.channel for r in self.results if r.ok and not r.skipped]

    @property
    def failed(self) -> List[str]:
        return [r.channel for r in self.results if not r.ok]


class HandoffDispatcher:

    def __init__(
        self,
        channels: Sequence[HandoffChannel],
        deduplicator: Optional[HandoffDeduplicator] = None,
        default_timeout: float = DEFAULT_CHANNEL_TIMEOUT,
    ):
        self.channels = list(channels)
        self.deduplicator = deduplicator or HandoffDeduplicator()
        self.default_timeout = default_timeout

    def check_duplicate(self, conversation_id: str, payload: Any) -> None:
        if self.deduplicator.is_duplicate(conversation_id, payload):
            raise DuplicateSubmission(conversation_id, content_hash(payload))

    async def submit(self, delivery: HandoffDelivery, candidate_payload: Any) -> DispatchReport:
        """Dedup check, then fan out. Raises DuplicateSubmission for a repeat inside the window."""
        self.check_duplicate(delivery.conversation_id, candidate_payload)
        return await self.dispatch(delivery)

    async def dispatch(self, delivery: HandoffDelivery) -> DispatchReport:
        results = await asyncio.gather(*(self._run(ch, delivery) for ch in self.channels))
        report = DispatchReport(conversation_id=delivery.conversation_id, results=list(results))
        logger.info(
            "[handoff][dispatch] conversation=%s delivered=%s failed=%s",
            delivery.conversation_id, report.delivered, report.failed,
        )
        return report

    async def _run(self, channel: HandoffChannel, delivery: HandoffDelivery) -> ChannelResult:
        timeout = getattr(channel, "timeout", None) or self.default_timeout
        start = time.perf_counter()
        try:
            detail = await asyncio.wait_for(channel.deliver(delivery), timeout=timeout)
            detail = detail or {}
            return ChannelResult(
                channel=channel.name,
                ok=bool(detail.get("ok", True)),
                skipped=bool(detail.get("skipped", False)),
                detail=detail,
                elapsed_ms=(time.perf_counter() - start) * 1000,
            )
        except asyncio.TimeoutError:
            logger.warning("[handoff][%s] timed out after %.1fs", channel.name, timeout)
            error = f"timeout after {timeout}s"
        except DispatchFailure as e:
            logger.warning("[handoff][%s] delivery failed: %s", channel.name, e.reason)
            error = e.reason
        except Exception as e:
            logger.exception("[handoff][%s] unexpected delivery error", channel.name)
            error = str(e) or type(e).__name__
        return ChannelResult(
            channel=channel.name,
            ok=False,
            error=error,
            elapsed_ms=(time.perf_counter() - start) * 1000,
        )
