"""
FastAPI Routes for the Legal Intake Assistant
"""
from datetime import datetime
from functools import lru_cache
from typing import Optional, Tuple

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import StreamingResponse

from backend.api.schemas import (
    ChatInitRequest,
    ChatInitResponse,
    ChatMessageResponse,
    ChatTurnRequest,
    ErrorEnvelope,
    ErrorResponse,
    HandoffInfo,
    HealthResponse,
)
from backend.core.config import BrandConfig, Config, config
from backend.core.handoff.errors import UpstreamStreamFailure
from backend.core.intake_service import ChatTurn, IntakeService, build_intake_service

# ============================================================================
# Router Setup
# ============================================================================

router = APIRouter(prefix="/api/v1", tags=["legal-intake"])

SSE_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}

TURN_ERRORS = {code: {"model": ErrorEnvelope} for code in (400, 403, 404)}


def get_config() -> Config:
    return config


@lru_cache
def get_intake_service() -> IntakeService:
    return build_intake_service(config)


def _error(status_code: int, error: str, detail: str) -> HTTPException:
    return HTTPException(status_code=status_code, detail=ErrorResponse(error=error, detail=detail).model_dump())


def resolve_brand(cfg: Config, brand_key: Optional[str]) -> BrandConfig:
    brand = cfg.get_brand(brand_key)
    if brand is None:
        raise _error(403, "unknown_brand", "brand_key not allowed or missing")
    return brand


def resolve_turn(body: ChatTurnRequest, service: IntakeService, cfg: Config) -> Tuple[ChatTurn, BrandConfig]:
    """Validation order: params (400), brand whitelist (403), thread (404)."""
    if not (body.thread_id or "").strip() or not (body.message or "").strip():
        raise _error(400, "missing_params", "thread_id and message are required")
    brand = resolve_brand(cfg, body.brand_key)
    if service.get_thread(body.thread_id) is None:
        raise _error(404, "unknown_thread", "thread_id not found")

    turn = ChatTurn(
        thread_id=body.thread_id,
        message=body.message,
        brand_key=body.brand_key,
        visitor_id=body.visitor_id,
        session_id=body.session_id,
        source=body.source,
        meta=body.meta,
    )
    return turn, brand


# ============================================================================
# REST Endpoints
# ============================================================================

@router.post("/chat/init", response_model=ChatInitResponse, responses={403: {"model": ErrorEnvelope}})
async def chat_init(
    body: ChatInitRequest,
    service: IntakeService = Depends(get_intake_service),
    cfg: Config = Depends(get_config),
):
    """Create a new conversation thread"""
    if body.brand_key:
        resolve_brand(cfg, body.brand_key)
    thread = service.create_thread(body.brand_key)
    return ChatInitResponse(thread_id=thread.thread_id, brand_key=thread.brand_key)


@router.post("/chat/stream", responses=TURN_ERRORS)
async def chat_stream(
    body: ChatTurnRequest,
    request: Request,
    service: IntakeService = Depends(get_intake_service),
    cfg: Config = Depends(get_config),
):
    """
    Stream one agent turn as server-sent events.

    Events are `{"type": "delta", "text": ...}`, at most one
    `{"type": "error", "error": "stream_failed"}`, then `[DONE]`.
    """
    turn, brand = resolve_turn(body, service, cfg)
    return StreamingResponse(
        service.stream_turn(turn, brand, is_disconnected=request.is_disconnected),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


@router.post("/chat/message", response_model=ChatMessageResponse, responses={**TURN_ERRORS, 502: {"model": ErrorEnvelope}})
async def chat_message(
    body: ChatTurnRequest,
    service: IntakeService = Depends(get_intake_service),
    cfg: Config = Depends(get_config),
):
    """Non-streaming agent turn"""
    turn, brand = resolve_turn(body, service, cfg)
    try:
        result = await service.message_turn(turn, brand)
    except UpstreamStreamFailure:
        raise _error(502, "upstream_failed", "assistant is temporarily unavailable")

    handoff = HandoffInfo(kind=result.pipeline.candidate.kind) if result.pipeline.accepted else None
    return ChatMessageResponse(thread_id=result.thread_id, message=result.message, handoff=handoff)


@router.get("/health", response_model=HealthResponse)
async def health_check(cfg: Config = Depends(get_config)):
    """API health check"""
    return HealthResponse(
        status="healthy",
        timestamp=datetime.utcnow(),
        version="1.0.0",
        services={
            "llm": "configured" if cfg.OLLAMA_API_KEY else "no_api_key",
            "email": "configured" if cfg.BREVO_API_KEY else "disabled",
            "sheets": "configured" if cfg.SHEETS_WEBHOOK_URL else "disabled",
            "database": "configured" if cfg.DATABASE_URL else "disabled",
        },
    )
