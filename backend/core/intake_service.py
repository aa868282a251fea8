"""
Chat turn service.

Each turn proxies the upstream agent. Fragments go two ways: through a
per-stream StreamFilter to the visitor, and unfiltered into a
TranscriptAccumulator. When the turn ends the raw transcript runs through the
handoff pipeline. If the visitor disconnects mid-stream, consumption stops and
the pipeline still runs on what was accumulated, in a background task.
"""
import asyncio
import json
import logging
import time
import uuid
from dataclasses import dataclass
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional, Set

from backend.core.chat_log import ChatLog
from backend.core.channels.mail import EmailChannel
from backend.core.channels.persistence import PersistenceChannel
from backend.core.channels.sheets import SheetsWebhookChannel
from backend.core.config import BrandConfig, Config, config as default_config
from backend.core.handoff.dedup import HandoffDeduplicator
from backend.core.handoff.dispatcher import HandoffDispatcher
from backend.core.handoff.errors import UpstreamStreamFailure
from backend.core.handoff.fence_filter import StreamFilter, sanitize_text
from backend.core.handoff.pipeline import HandoffPipeline, PipelineResult, TurnContext
from backend.core.handoff.transcript import TranscriptAccumulator
from backend.core.llm import OllamaCloudLLM
from backend.core.prompts.prompt_loader import build_run_instructions
from backend.core.thread_store import ChatThread, ThreadStore

logger = logging.getLogger("intake_service")

DONE_EVENT = "data: [DONE]\n\n"
STREAM_FAILED = {"type": "error", "error": "stream_failed"}


def sse_event(payload: Dict[str, Any]) -> str:
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n"


def keepalive_event() -> str:
    # SSE comment line, ignored by EventSource clients
    return f": keep-alive {int(time.time() * 1000)}\n\n"


@dataclass
class ChatTurn:
    thread_id: str
    message: str
    brand_key: Optional[str] = None
    visitor_id: Optional[str] = None
    session_id: Optional[str] = None
    source: Optional[Any] = None
    meta: Optional[Dict[str, Any]] = None


@dataclass
class MessageTurnResult:
    thread_id: str
    message: str
    pipeline: PipelineResult


class IntakeService:

    def __init__(
        self,
        llm,
        pipeline: HandoffPipeline,
        cfg: Config = default_config,
        chat_log: Optional[ChatLog] = None,
        keepalive_seconds: Optional[float] = None,
        prompt_template: Optional[str] = None,
        threads: Optional[ThreadStore] = None,
    ):
        self.llm = llm
        self.pipeline = pipeline
        self.cfg = cfg
        self.chat_log = chat_log or ChatLog(cfg)
        self.keepalive_seconds = keepalive_seconds or cfg.KEEPALIVE_SECONDS
        self.history_limit = cfg.HISTORY_LIMIT
        self.prompt_template = prompt_template
        self.threads = threads if threads is not None else ThreadStore(cfg.THREAD_IDLE_SECONDS, cfg.MAX_THREADS)
        self._background: Set[asyncio.Task] = set()

    # ---- threads ----

    def create_thread(self, brand_key: Optional[str]) -> ChatThread:
        thread = self.threads.add(ChatThread(thread_id=f"thread_{uuid.uuid4().hex}", brand_key=brand_key))
        logger.info("[chat] new thread %s brand=%s", thread.thread_id, brand_key)
        return thread

    def get_thread(self, thread_id: str) -> Optional[ChatThread]:
        return self.threads.get(thread_id)

    def build_messages(self, thread: ChatThread, brand: Optional[BrandConfig]) -> List[Dict[str, str]]:
        system = build_run_instructions(brand, thread.brand_key or "", template=self.prompt_template)
        return [{"role": "system", "content": system}] + thread.history[-self.history_limit:]

    async def _start_turn(self, turn: ChatTurn, brand: Optional[BrandConfig]) -> List[Dict[str, str]]:
        thread = self.threads.get(turn.thread_id)
        if thread is None:
            raise KeyError(f"unknown thread {turn.thread_id}")
        thread.append("user", turn.message, self.history_limit)
        await self.chat_log.log(
            turn.thread_id, "user", turn.message, raw_content=turn.message,
            brand_key=turn.brand_key, visitor_id=turn.visitor_id, session_id=turn.session_id,
        )
        return self.build_messages(thread, brand)

    # ---- turns ----

    async def finish_turn(self, turn: ChatTurn, brand: Optional[BrandConfig], raw_transcript: str) -> PipelineResult:
        """Record the agent reply and run the handoff pipeline on the raw transcript."""
        thread = self.threads.get(turn.thread_id)
        if thread is not None and raw_transcript:
            thread.append("assistant", raw_transcript, self.history_limit)

        result = await self.pipeline.process_turn(TurnContext(
            conversation_id=turn.thread_id,
            user_message=turn.message,
            raw_transcript=raw_transcript,
            brand_key=turn.brand_key,
            brand=brand,
            visitor_id=turn.visitor_id,
            session_id=turn.session_id,
            source=turn.source,
            meta=turn.meta,
        ))

        await self.chat_log.log(
            turn.thread_id, "assistant", sanitize_text(raw_transcript), raw_content=raw_transcript,
            handoff_kind=result.candidate.kind if result.accepted else None,
            brand_key=turn.brand_key, visitor_id=turn.visitor_id, session_id=turn.session_id,
        )
        return result

    async def _finish_in_background(self, turn: ChatTurn, brand: Optional[BrandConfig], raw_transcript: str):
        try:
            return await self.finish_turn(turn, brand, raw_transcript)
        except Exception:
            logger.exception("[handoff] background pipeline failed for %s", turn.thread_id)
            return None

    def _spawn(self, coro: Awaitable) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def drain(self) -> None:
        """Wait for pending background pipeline runs."""
        if self._background:
            await asyncio.gather(*list(self._background))

    async def message_turn(self, turn: ChatTurn, brand: Optional[BrandConfig]) -> MessageTurnResult:
        """Non-streaming turn. Raises UpstreamStreamFailure when the agent call fails."""
        messages = await self._start_turn(turn, brand)
        raw = await self.llm.reply(messages, model=brand.model if brand else None)
        result = await self.finish_turn(turn, brand, raw)
        return MessageTurnResult(thread_id=turn.thread_id, message=sanitize_text(raw), pipeline=result)

    async def _with_keepalive(self, fragments: AsyncIterator[str]) -> AsyncIterator[Optional[str]]:
        """Re-yields fragments; yields None whenever the upstream stays silent for keepalive_seconds."""
        iterator = fragments.__aiter__()
        pending: Optional[asyncio.Future] = None
        try:
            while True:
                if pending is None:
                    pending = asyncio.ensure_future(iterator.__anext__())
                done, _ = await asyncio.wait({pending}, timeout=self.keepalive_seconds)
                if not done:
                    yield None
                    continue
                finished, pending = pending, None
                try:
                    fragment = finished.result()
                except StopAsyncIteration:
                    return
                yield fragment
        finally:
            if pending is not None:
                pending.cancel()

    async def stream_turn(
        self,
        turn: ChatTurn,
        brand: Optional[BrandConfig],
        is_disconnected: Optional[Callable[[], Awaitable[bool]]] = None,
    ) -> AsyncIterator[str]:
        """SSE lines for one streamed turn: deltas, at most one error event, then [DONE]."""
        messages = await self._start_turn(turn, brand)
        stream_filter = StreamFilter()
        transcript = TranscriptAccumulator()
        disconnected = False
        failed = False
        task = None
        fragments = self._with_keepalive(self.llm.stream_reply(messages, model=brand.model if brand else None))

        try:
            async for fragment in fragments:
                if is_disconnected is not None and await is_disconnected():
                    logger.info("[stream] client closed %s, stopping upstream consumption", turn.thread_id)
                    disconnected = True
                    break
                if fragment is None:
                    yield keepalive_event()
                    continue
                transcript.append(fragment)
                text = stream_filter.feed(fragment)
                if text:
                    yield sse_event({"type": "delta", "text": text})

            if not disconnected:
                tail = stream_filter.close()
                if tail:
                    yield sse_event({"type": "delta", "text": tail})
        except UpstreamStreamFailure as e:
            logger.error("[stream] upstream failed for %s: %s", turn.thread_id, e)
            failed = True
            yield sse_event(STREAM_FAILED)
        except Exception:
            logger.exception("[stream] unexpected upstream error for %s", turn.thread_id)
            failed = True
            yield sse_event(STREAM_FAILED)
        finally:
            await fragments.aclose()
            raw = transcript.seal()
            if failed:
                logger.info("[handoff] skipped for %s after upstream failure", turn.thread_id)
            else:
                # runs to completion even if this generator is cancelled
                task = self._spawn(self._finish_in_background(turn, brand, raw))

        if disconnected:
            return
        yield DONE_EVENT
        if task is not None:
            await asyncio.shield(task)


def build_intake_service(cfg: Config = default_config) -> IntakeService:
    """Wire the production service: upstream LLM, channels, dedup-owning dispatcher."""
    dispatcher = HandoffDispatcher(
        channels=[EmailChannel(cfg), SheetsWebhookChannel(cfg), PersistenceChannel(cfg)],
        deduplicator=HandoffDeduplicator(window_seconds=cfg.DEDUP_WINDOW_SECONDS),
    )
    pipeline = HandoffPipeline(dispatcher, fill_placeholders=cfg.FILL_MEETING_PLACEHOLDERS)
    return IntakeService(OllamaCloudLLM(), pipeline, cfg)
