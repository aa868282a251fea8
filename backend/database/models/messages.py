import uuid
from datetime import datetime
from sqlalchemy import String, DateTime, Column, ForeignKey, Text
from sqlalchemy.dialects.postgresql import UUID
from backend.database.models.Base import Base


class ChatMessage(Base):
    __tablename__ = "messages"
    message_id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    thread_id = Column(String(64), ForeignKey("conversations.thread_id"), nullable=False, index=True)
    role = Column(String(16), nullable=False)
    content = Column(Text, nullable=False)
    raw_content = Column(Text, nullable=True)
    handoff_kind = Column(String(64), nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
