"""
Email delivery of handoff requests through the Brevo transactional HTTP API.
"""
import asyncio
import html
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import requests

from backend.core.config import BrandConfig, Config, config as default_config
from backend.core.handoff.errors import DispatchFailure
from backend.core.handoff.models import CATEGORY_LABELS, DEFAULT_KIND, HandoffDelivery

logger = logging.getLogger("handoff_mail")

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PRIVACY_NOTE = "Not: Hassas veriler (TCKN/IBAN/kart/sağlık vb.) bu kanaldan istenmez/paylaşılmamalıdır."


@dataclass
class EmailRouting:
    to: Optional[str]
    sender: Optional[str]
    sender_name: str


@dataclass
class HandoffEmail:
    subject: str
    text: str
    html: str
    rows: List[Tuple[str, str]]
    reply_to: Optional[str] = None


def resolve_email_routing(brand: Optional[BrandConfig], cfg: Config = default_config) -> EmailRouting:
    """Recipient and verified sender. No personal fallback addresses."""
    brand = brand or BrandConfig()
    to = brand.handoff_email_to or cfg.HANDOFF_TO or brand.email_to or brand.contact_email
    sender = brand.noreply_email or cfg.EMAIL_FROM
    sender_name = cfg.EMAIL_FROM_NAME or brand.brand_name or brand.display_label or "Assistant"
    return EmailRouting(to=to, sender=sender, sender_name=sender_name)


def build_handoff_email(delivery: HandoffDelivery, cfg: Config = default_config) -> HandoffEmail:
    record = delivery.record
    brand = delivery.brand or BrandConfig(key=delivery.brand_key or "")
    brand_label = brand.display_label or delivery.brand_key or ""
    subject_prefix = brand.subject_prefix or f"[{brand_label}]"

    summary = record.request.summary
    category = CATEGORY_LABELS.get(record.matter.category, record.matter.category.value)
    urgency = record.matter.urgency.value

    intent = f"Hukuk Talebi — {summary}" if summary else "Hukuk Talebi"
    tail = " | ".join(bit for bit in (category and f"Alan: {category}", urgency and f"Aciliyet: {urgency}") if bit)
    subject = f"{subject_prefix} {intent} ({tail})" if tail else f"{subject_prefix} {intent}"

    rows: List[Tuple[str, str]] = []

    def add(label: str, value: Any) -> None:
        if value:
            rows.append((label, str(value)))

    add("Ad Soyad", record.contact.name)
    add("Telefon", record.contact.phone)
    add("E-posta", record.contact.email)
    add("Hukuk Alanı", category)
    add("Aciliyet", urgency)
    add("Olay Tarihi / Aralık", record.dates.event)
    add("Kritik Tarih / Son Gün", record.dates.deadline)
    add("Görüşme Tercihi", record.meeting.mode)
    add("Görüşme Tarihi", record.meeting.date)
    add("Görüşme Saati", record.meeting.time)
    add("Konu (Özet)", summary)
    add("Açıklama (Detay)", record.request.details)
    add("Belgeler", ", ".join(record.documents))
    add("Handoff Türü", delivery.kind or DEFAULT_KIND)
    add("Kaynak Marka", brand_label)

    text = "\n".join(f"{k}: {v}" for k, v in rows) + "\n\n" + PRIVACY_NOTE

    html_rows = "".join(
        "<tr>"
        f'<td style="padding:6px 10px;border:1px solid #eee;font-weight:600;white-space:nowrap;">{html.escape(k)}</td>'
        f'<td style="padding:6px 10px;border:1px solid #eee;">{html.escape(v)}</td>'
        "</tr>"
        for k, v in rows
    )
    html_body = (
        '<div style="font-family:system-ui, -apple-system, \'Segoe UI\', Roboto, Arial; line-height:1.5; color:#111;">'
        f'<table style="border-collapse:collapse;border:1px solid #eee;min-width:420px;">{html_rows}</table>'
        f'<p style="margin:10px 0 0 0; color:#777;font-size:12px;">{html.escape(PRIVACY_NOTE)}</p>'
        "</div>"
    )

    reply_to = (record.contact.email or cfg.REPLY_TO or "").strip()
    return HandoffEmail(
        subject=subject,
        text=text,
        html=html_body,
        rows=rows,
        reply_to=reply_to if EMAIL_RE.match(reply_to) else None,
    )


class EmailChannel:
    name = "email"

    def __init__(self, cfg: Config = default_config, session: Optional[requests.Session] = None):
        self.cfg = cfg
        self.timeout = cfg.EMAIL_TIMEOUT
        self.session = session or requests.Session()
        if not cfg.BREVO_API_KEY:
            logger.warning("[mail] Missing BREVO_API_KEY, email delivery will fail")

    def build_request(self, delivery: HandoffDelivery) -> Dict[str, Any]:
        routing = resolve_email_routing(delivery.brand, self.cfg)
        if not routing.to:
            raise DispatchFailure(self.name, "no recipient found for handoff email (to)")
        if not routing.sender:
            raise DispatchFailure(self.name, "no verified sender configured (from)")

        email = build_handoff_email(delivery, self.cfg)
        body: Dict[str, Any] = {
            "sender": {"email": routing.sender, "name": routing.sender_name},
            "to": [{"email": e.strip()} for e in routing.to.split(",") if e.strip()],
            "subject": email.subject,
            "htmlContent": email.html,
            "textContent": email.text,
        }
        if email.reply_to:
            body["replyTo"] = {"email": email.reply_to}
        return body

    def _post(self, body: Dict[str, Any]) -> requests.Response:
        return self.session.post(
            self.cfg.BREVO_API_URL,
            json=body,
            headers={"api-key": self.cfg.BREVO_API_KEY, "accept": "application/json"},
            timeout=self.timeout,
        )

    async def deliver(self, delivery: HandoffDelivery) -> Dict[str, Any]:
        if not self.cfg.BREVO_API_KEY:
            raise DispatchFailure(self.name, "BREVO_API_KEY missing")
        body = self.build_request(delivery)
        logger.info("[handoff] sendHandoffEmail kind=%s to=%s subject=%s", delivery.kind, body["to"], body["subject"])

        try:
            resp = await asyncio.to_thread(self._post, body)
        except requests.RequestException as e:
            raise DispatchFailure(self.name, f"request failed: {e}") from e

        if not resp.ok:
            raise DispatchFailure(self.name, f"non-2xx response: {resp.text[:300]}", status=resp.status_code)

        try:
            data = resp.json()
        except ValueError:
            data = {}
        message_id = data.get("messageId") or (data.get("messageIds") or [None])[0]
        logger.info("[handoff] sendHandoffEmail OK messageId=%s", message_id)
        return {"ok": True, "message_id": message_id}
