from typing import Any, Dict, List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.database.models.handoff_requests import HandoffRequest
from backend.database.repostries.conversation_repo import ConversationRepository


class HandoffRepository:

    def __init__(self, conversations: ConversationRepository | None = None):
        self.conversations = conversations or ConversationRepository()

    async def create(self, db: AsyncSession, handoff_data: Dict[str, Any]) -> HandoffRequest:
        thread_id = handoff_data.get("thread_id")
        if thread_id:
            await self.conversations.ensure(db, thread_id, {"brand_key": handoff_data.get("brand_key")})
        handoff = HandoffRequest(**handoff_data)
        db.add(handoff)
        await db.commit()
        await db.refresh(handoff)
        return handoff

    async def list_by_thread(self, db: AsyncSession, thread_id: str) -> List[HandoffRequest]:
        stmt = (
            select(HandoffRequest)
            .where(HandoffRequest.thread_id == thread_id)
            .order_by(HandoffRequest.created_at)
        )
        result = await db.execute(stmt)
        return list(result.scalars().all())
