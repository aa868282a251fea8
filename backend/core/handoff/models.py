"""
Data models for handoff extraction and delivery
"""
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from backend.core.config import BrandConfig


DEFAULT_KIND = "customer_request"

SUMMARY_MAX_LEN = 180
DETAILS_MAX_LEN = 900


class Category(str, Enum):
    """Practice area of the request. Values are the wire format used by mail/sheets."""
    FAMILY = "aile"
    LABOR = "is"
    ENFORCEMENT = "icra"
    LEASE = "kira"
    DAMAGES = "tazminat"
    CRIMINAL = "ceza"
    OTHER = "diger"


CATEGORY_LABELS = {
    Category.FAMILY: "Aile Hukuku",
    Category.LABOR: "İş Hukuku",
    Category.CRIMINAL: "Ceza Hukuku",
    Category.ENFORCEMENT: "İcra / Alacak",
    Category.LEASE: "Kira / Tahliye",
    Category.DAMAGES: "Tazminat",
    Category.OTHER: "Diğer",
}


class Urgency(str, Enum):
    URGENT = "acil"
    NORMAL = "normal"


class HandoffCandidate(BaseModel):
    """Untrusted record pulled from a transcript or inferred from a user message"""
    kind: str = DEFAULT_KIND
    payload: Dict[str, Any] = Field(default_factory=dict)
    source: str = Field(default="", description="Which encoding or matcher produced it")


class Contact(BaseModel):
    name: str = ""
    phone: str = ""
    phone_digits: str = ""
    email: str = ""


class Matter(BaseModel):
    category: Category = Category.OTHER
    urgency: Urgency = Urgency.NORMAL


class Meeting(BaseModel):
    mode: str = ""
    date: str = ""
    time: str = ""


class RequestInfo(BaseModel):
    summary: str = Field(default="", max_length=SUMMARY_MAX_LEN + 1)
    details: str = Field(default="", max_length=DETAILS_MAX_LEN + 1)


class KeyDates(BaseModel):
    event: str = ""
    deadline: str = ""


class NormalizedHandoff(BaseModel):
    """Canonical handoff record, produced by the normalizer"""
    contact: Contact = Field(default_factory=Contact)
    matter: Matter = Field(default_factory=Matter)
    meeting: Meeting = Field(default_factory=Meeting)
    request: RequestInfo = Field(default_factory=RequestInfo)
    dates: KeyDates = Field(default_factory=KeyDates)
    documents: List[str] = Field(default_factory=list)

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")


class HandoffDelivery(BaseModel):
    """Everything a delivery channel needs for one accepted handoff"""
    conversation_id: str
    kind: str = DEFAULT_KIND
    record: NormalizedHandoff
    brand_key: Optional[str] = None
    brand: Optional[BrandConfig] = None
    visitor_id: Optional[str] = None
    session_id: Optional[str] = None
    source: Optional[Any] = None
    meta: Optional[Dict[str, Any]] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
