import uuid
from datetime import datetime
from sqlalchemy import String, DateTime, Column, ForeignKey
from sqlalchemy.dialects.postgresql import UUID, JSONB
from backend.database.models.Base import Base


class HandoffRequest(Base):
    __tablename__ = "handoff_requests"
    request_id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    thread_id = Column(String(64), ForeignKey("conversations.thread_id"), nullable=True, index=True)
    brand_key = Column(String(64), nullable=True)
    kind = Column(String(64), nullable=False)
    category = Column(String(32), nullable=True)
    urgency = Column(String(16), nullable=True)
    customer_name = Column(String(200), nullable=True)
    customer_phone = Column(String(64), nullable=True)
    customer_email = Column(String(200), nullable=True)
    payload = Column(JSONB, nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
