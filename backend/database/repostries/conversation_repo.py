from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.database.models.conversations import Conversation
from backend.database.models.messages import ChatMessage


class ConversationRepository:

    async def get(self, db: AsyncSession, thread_id: str) -> Conversation | None:
        stmt = select(Conversation).where(Conversation.thread_id == thread_id)
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    async def ensure(self, db: AsyncSession, thread_id: str, conversation_data: Optional[Dict[str, Any]] = None) -> Conversation:
        conversation = await self.get(db, thread_id)
        if conversation is None:
            conversation = Conversation(thread_id=thread_id, **(conversation_data or {}))
            db.add(conversation)
            await db.flush()
        return conversation

    async def log_message(self, db: AsyncSession, thread_id: str, message_data: Dict[str, Any],
                          conversation_data: Optional[Dict[str, Any]] = None) -> ChatMessage:
        conversation = await self.ensure(db, thread_id, conversation_data)
        message = ChatMessage(thread_id=thread_id, **message_data)
        conversation.last_message_at = datetime.utcnow()
        db.add(message)
        await db.commit()
        await db.refresh(message)
        return message

    async def list_messages(self, db: AsyncSession, thread_id: str, limit: int = 50) -> List[ChatMessage]:
        stmt = (
            select(ChatMessage)
            .where(ChatMessage.thread_id == thread_id)
            .order_by(ChatMessage.created_at.desc())
            .limit(limit)
        )
        result = await db.execute(stmt)
        return list(reversed(result.scalars().all()))
