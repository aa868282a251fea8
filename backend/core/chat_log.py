"""
Best-effort chat transcript logging into the conversations/messages tables.
"""
import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from backend.core.config import Config, config as default_config
from backend.database.db import NeonDatabase
from backend.database.repostries.conversation_repo import ConversationRepository

logger = logging.getLogger("chat_log")


class ChatLog:

    def __init__(self, cfg: Config = default_config, repository: Optional[ConversationRepository] = None,
                 database=NeonDatabase):
        self.enabled = bool(cfg.DATABASE_URL)
        self.repository = repository or ConversationRepository()
        self.database = database
        if not self.enabled:
            logger.info("DATABASE_URL not set, chat logging disabled")

    async def log(self, thread_id: str, role: str, content: str, *,
                  raw_content: Optional[str] = None, handoff_kind: Optional[str] = None,
                  brand_key: Optional[str] = None, visitor_id: Optional[str] = None,
                  session_id: Optional[str] = None):
        if not self.enabled:
            return None
        message_data = {"role": role, "content": content, "raw_content": raw_content, "handoff_kind": handoff_kind}
        conversation_data = {"brand_key": brand_key, "visitor_id": visitor_id, "session_id": session_id}
        try:
            async with self.database.get_session() as session:
                return await self.repository.log_message(session, thread_id, message_data, conversation_data)
        except (SQLAlchemyError, OSError) as e:
            logger.warning("[db] chat log failed for %s: %s", thread_id, e)
            return None
