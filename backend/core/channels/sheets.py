"""
Spreadsheet webhook (Google Apps Script) delivery of handoff requests.
"""
import asyncio
import logging
from typing import Any, Dict, Optional

import requests

from backend.core.config import Config, config as default_config
from backend.core.handoff.errors import DispatchFailure
from backend.core.handoff.models import HandoffDelivery

logger = logging.getLogger("handoff_sheets")


def build_sheets_row(delivery: HandoffDelivery) -> Dict[str, Any]:
    payload = delivery.record.to_payload()
    return {
        "ts": delivery.created_at.isoformat() + "Z",
        "brand_key": delivery.brand_key,
        "kind": delivery.kind,
        "thread_id": delivery.conversation_id,
        "visitor_id": delivery.visitor_id,
        "session_id": delivery.session_id,
        "source": delivery.source,
        "meta": delivery.meta,
        "payload": payload,
        # flattened for easy spreadsheet columns
        "meeting_mode": payload["meeting"]["mode"],
        "meeting_date": payload["meeting"]["date"],
        "meeting_time": payload["meeting"]["time"],
    }


class SheetsWebhookChannel:
    name = "sheets"

    def __init__(self, cfg: Config = default_config, session: Optional[requests.Session] = None):
        self.url = (cfg.SHEETS_WEBHOOK_URL or "").strip()
        self.secret = (cfg.SHEETS_WEBHOOK_SECRET or "").strip()
        self.timeout = cfg.SHEETS_TIMEOUT
        self.session = session or requests.Session()

    def _post(self, row: Dict[str, Any]) -> requests.Response:
        headers = {"content-type": "application/json"}
        if self.secret:
            headers["x-webhook-secret"] = self.secret
        return self.session.post(self.url, json=row, headers=headers, timeout=self.timeout)

    async def deliver(self, delivery: HandoffDelivery) -> Dict[str, Any]:
        if not self.url:
            return {"ok": True, "skipped": True, "reason": "SHEETS_WEBHOOK_URL missing"}

        try:
            resp = await asyncio.to_thread(self._post, build_sheets_row(delivery))
        except requests.RequestException as e:
            raise DispatchFailure(self.name, f"push failed: {e}") from e

        if not resp.ok:
            raise DispatchFailure(self.name, f"webhook non-2xx: {resp.text[:300]}", status=resp.status_code)

        logger.info("[sheets] pushed status=%s", resp.status_code)
        return {"ok": True, "status": resp.status_code}
