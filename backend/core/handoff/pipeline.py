"""
Handoff pipeline for one completed agent turn.

    raw transcript -> extractor
                   -> (miss) inference on the user's message
                   -> normalizer -> gate -> dedup -> dispatcher

Every failure mode ends in a logged outcome; nothing is raised to the chat
flow and nothing here touches the user-visible reply.
"""
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from langsmith import traceable

from backend.core.config import BrandConfig
from backend.core.handoff.dispatcher import DispatchReport, HandoffDispatcher
from backend.core.handoff.errors import DuplicateSubmission, IncompleteRecord
from backend.core.handoff.extractor import extract_handoff
from backend.core.handoff.gate import require_minimum_handoff_data
from backend.core.handoff.inference import infer_handoff_from_text
from backend.core.handoff.models import HandoffCandidate, HandoffDelivery, NormalizedHandoff
from backend.core.handoff.normalizer import normalize_handoff_payload
from backend.core.tracing_config import get_metadata

logger = logging.getLogger("handoff_pipeline")


class HandoffOutcome(str, Enum):
    NO_HANDOFF = "no_handoff"
    INCOMPLETE = "incomplete"
    DUPLICATE = "duplicate"
    DISPATCHED = "dispatched"


@dataclass
class TurnContext:
    conversation_id: str
    user_message: str
    raw_transcript: str
    brand_key: Optional[str] = None
    brand: Optional[BrandConfig] = None
    visitor_id: Optional[str] = None
    session_id: Optional[str] = None
    source: Optional[Any] = None
    meta: Optional[Dict[str, Any]] = None


@dataclass
class PipelineResult:
    outcome: HandoffOutcome
    candidate: Optional[HandoffCandidate] = None
    record: Optional[NormalizedHandoff] = None
    missing: List[str] = field(default_factory=list)
    report: Optional[DispatchReport] = None

    @property
    def accepted(self) -> bool:
        return self.outcome is HandoffOutcome.DISPATCHED


class HandoffPipeline:

    def __init__(self, dispatcher: HandoffDispatcher, fill_placeholders: bool = True):
        self.dispatcher = dispatcher
        self.fill_placeholders = fill_placeholders

    def find_candidate(self, turn: TurnContext) -> Optional[HandoffCandidate]:
        candidate = extract_handoff(turn.raw_transcript)
        if candidate is None:
            # deliberately the user's message, not the agent's reply
            candidate = infer_handoff_from_text(turn.user_message, transcript=turn.raw_transcript)
        return candidate

    def normalize(self, candidate: HandoffCandidate, brand: Optional[BrandConfig]) -> NormalizedHandoff:
        return normalize_handoff_payload(
            candidate.payload,
            brand_emails=brand.own_emails() if brand else (),
            fill_placeholders=self.fill_placeholders,
        )

    @traceable(run_type="chain", name="handoff_pipeline", metadata=get_metadata("handoff_pipeline"))
    async def process_turn(self, turn: TurnContext) -> PipelineResult:
        candidate = self.find_candidate(turn)
        if candidate is None:
            logger.debug("[handoff] no candidate for conversation %s", turn.conversation_id)
            return PipelineResult(HandoffOutcome.NO_HANDOFF)

        record = self.normalize(candidate, turn.brand)

        try:
            require_minimum_handoff_data(record)
        except IncompleteRecord as e:
            logger.info("[handoff][gate] blocked for %s (missing %s)", turn.conversation_id, e.missing)
            return PipelineResult(HandoffOutcome.INCOMPLETE, candidate, record, missing=e.missing)

        delivery = HandoffDelivery(
            conversation_id=turn.conversation_id,
            kind=candidate.kind,
            record=record,
            brand_key=turn.brand_key,
            brand=turn.brand,
            visitor_id=turn.visitor_id,
            session_id=turn.session_id,
            source=turn.source,
            meta=turn.meta,
        )

        try:
            report = await self.dispatcher.submit(delivery, candidate.payload)
        except DuplicateSubmission:
            logger.info("[handoff][gate] blocked duplicate payload for %s", turn.conversation_id)
            return PipelineResult(HandoffOutcome.DUPLICATE, candidate, record)

        logger.info("[handoff] SENT kind=%s conversation=%s", candidate.kind, turn.conversation_id)
        return PipelineResult(HandoffOutcome.DISPATCHED, candidate, record, report=report)
