from datetime import datetime
from sqlalchemy import String, DateTime, Column
from backend.database.models.Base import Base


class Conversation(Base):
    __tablename__ = "conversations"
    thread_id = Column(String(64), primary_key=True)
    brand_key = Column(String(64), nullable=True)
    visitor_id = Column(String(128), nullable=True)
    session_id = Column(String(128), nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    last_message_at = Column(DateTime, nullable=True)
