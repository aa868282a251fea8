"""
Persistence of accepted handoff requests to the database.
"""
import logging
from typing import Any, Dict, Optional

from backend.core.config import Config, config as default_config
from backend.core.handoff.models import HandoffDelivery
from backend.database.db import NeonDatabase
from backend.database.repostries.handoff_repo import HandoffRepository

logger = logging.getLogger("handoff_persistence")


def build_handoff_row(delivery: HandoffDelivery) -> Dict[str, Any]:
    record = delivery.record
    return {
        "thread_id": delivery.conversation_id,
        "brand_key": delivery.brand_key,
        "kind": delivery.kind,
        "category": record.matter.category.value,
        "urgency": record.matter.urgency.value,
        "customer_name": record.contact.name or None,
        "customer_phone": record.contact.phone or None,
        "customer_email": record.contact.email or None,
        "payload": record.to_payload(),
        "created_at": delivery.created_at,
    }


class PersistenceChannel:
    name = "persistence"

    def __init__(self, cfg: Config = default_config, repository: Optional[HandoffRepository] = None,
                 database=NeonDatabase):
        self.cfg = cfg
        self.timeout = cfg.PERSISTENCE_TIMEOUT
        self.repository = repository or HandoffRepository()
        self.database = database

    async def deliver(self, delivery: HandoffDelivery) -> Dict[str, Any]:
        if not self.cfg.DATABASE_URL:
            return {"ok": True, "skipped": True, "reason": "DATABASE_URL missing"}

        async with self.database.get_session() as session:
            saved = await self.repository.create(session, build_handoff_row(delivery))

        logger.info("[persistence] saved handoff %s for %s", saved.request_id, delivery.conversation_id)
        return {"ok": True, "request_id": str(saved.request_id)}
