"""
API Schemas for the Legal Intake Assistant
"""
from datetime import datetime
from typing import Optional, Dict, Any, Literal
from pydantic import BaseModel, ConfigDict, Field


# ============================================================================
# Requests
# ============================================================================

class ChatInitRequest(BaseModel):
    """Open a new chat thread for a brand"""
    model_config = ConfigDict(populate_by_name=True)

    brand_key: Optional[str] = Field(default=None, alias="brandKey")


class ChatTurnRequest(BaseModel):
    """One visitor message. Accepts snake_case or the widget's camelCase keys."""
    model_config = ConfigDict(populate_by_name=True)

    thread_id: Optional[str] = Field(default=None, alias="threadId")
    message: Optional[str] = None
    brand_key: Optional[str] = Field(default=None, alias="brandKey")
    visitor_id: Optional[str] = Field(default=None, alias="visitorId")
    session_id: Optional[str] = Field(default=None, alias="sessionId")
    source: Optional[Any] = None
    meta: Optional[Dict[str, Any]] = None


# ============================================================================
# Responses
# ============================================================================

class ChatInitResponse(BaseModel):
    thread_id: str
    brand_key: Optional[str] = None


class HandoffInfo(BaseModel):
    kind: str


class ChatMessageResponse(BaseModel):
    status: Literal["completed"] = "completed"
    thread_id: str
    message: str = Field(..., description="Sanitized agent reply, fenced payloads removed")
    handoff: Optional[HandoffInfo] = None


class ErrorResponse(BaseModel):
    error: str
    detail: Optional[str] = None


class ErrorEnvelope(BaseModel):
    """Body of every 4xx/5xx raised through HTTPException"""
    detail: ErrorResponse


class HealthResponse(BaseModel):
    """API health check"""
    status: str = "healthy"
    timestamp: datetime
    version: str
    services: Dict[str, str] = Field(..., description="Status of each service component")
