"""
Configuration for the intake assistant
"""
import json
import logging
import os
from typing import Dict, List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError

load_dotenv()
logger = logging.getLogger("config")


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in ("true", "1", "yes", "on")


class Office(BaseModel):
    city: Optional[str] = None


class BrandConfig(BaseModel):
    """One whitelisted brand (law office) from BRANDS_JSON."""
    key: str = ""
    label: Optional[str] = None
    brand_name: Optional[str] = Field(default=None, alias="brandName")
    subject_prefix: Optional[str] = None
    model: Optional[str] = None
    handoff_email_to: Optional[str] = Field(default=None, alias="handoffEmailTo")
    contact_email: Optional[str] = Field(default=None, alias="contactEmail")
    email_to: Optional[str] = None
    noreply_email: Optional[str] = Field(default=None, alias="noreplyEmail")
    office: Office = Field(default_factory=Office)
    practice_areas: List[str] = Field(default_factory=list, alias="practiceAreas")

    model_config = {"populate_by_name": True, "extra": "ignore"}

    @property
    def display_label(self) -> str:
        return self.label or self.brand_name or self.key

    def own_emails(self) -> List[str]:
        return [e for e in (self.contact_email, self.handoff_email_to, self.email_to) if e]


def load_brands(raw: Optional[str]) -> Dict[str, BrandConfig]:
    if not raw:
        return {}
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        logger.warning("[brand] JSON parse error: %s", e)
        return {}
    if not isinstance(data, dict):
        logger.warning("[brand] expected an object keyed by brand")
        return {}

    brands = {}
    for key, value in data.items():
        if not isinstance(value, dict):
            logger.warning("[brand] skipping %s: not an object", key)
            continue
        try:
            brands[key] = BrandConfig.model_validate({**value, "key": key})
        except ValidationError as e:
            logger.warning("[brand] skipping %s: %s", key, e)
    logger.info("[brand] keys: %s", list(brands))
    return brands


class Config:
    # Upstream conversational engine
    OLLAMA_BASE_URL = os.getenv("OLLAMA_BASE_URL", "https://ollama.com")
    OLLAMA_API_KEY = os.getenv("OLLAMA_API_KEY")
    INTAKE_MODEL = os.getenv("INTAKE_MODEL", "gpt-oss:20b-cloud")
    LLM_TEMPERATURE = float(os.getenv("LLM_TEMPERATURE", "0.3"))
    UPSTREAM_TIMEOUT = float(os.getenv("UPSTREAM_TIMEOUT", "180"))
    HISTORY_LIMIT = int(os.getenv("HISTORY_LIMIT", "20"))
    KEEPALIVE_SECONDS = float(os.getenv("KEEPALIVE_SECONDS", "20"))
    THREAD_IDLE_SECONDS = float(os.getenv("THREAD_IDLE_SECONDS", str(6 * 60 * 60)))
    MAX_THREADS = int(os.getenv("MAX_THREADS", "10000"))

    # Persistence
    DATABASE_URL = os.getenv("DATABASE_URL")

    # Email (Brevo transactional API)
    BREVO_API_KEY = os.getenv("BREVO_API_KEY", "")
    BREVO_API_URL = os.getenv("BREVO_API_URL", "https://api.brevo.com/v3/smtp/email")
    HANDOFF_TO = os.getenv("HANDOFF_TO")
    EMAIL_FROM = os.getenv("EMAIL_FROM")
    EMAIL_FROM_NAME = os.getenv("EMAIL_FROM_NAME")
    REPLY_TO = os.getenv("REPLY_TO")

    # Spreadsheet webhook
    SHEETS_WEBHOOK_URL = os.getenv("SHEETS_WEBHOOK_URL", "")
    SHEETS_WEBHOOK_SECRET = os.getenv("SHEETS_WEBHOOK_SECRET", "")

    # Dispatch timeouts (seconds)
    EMAIL_TIMEOUT = float(os.getenv("EMAIL_TIMEOUT", "10"))
    SHEETS_TIMEOUT = float(os.getenv("SHEETS_TIMEOUT", "8"))
    PERSISTENCE_TIMEOUT = float(os.getenv("PERSISTENCE_TIMEOUT", "10"))

    # Handoff pipeline
    DEDUP_WINDOW_SECONDS = float(os.getenv("DEDUP_WINDOW_SECONDS", "300"))
    FILL_MEETING_PLACEHOLDERS = _env_bool("HANDOFF_FILL_MEETING_PLACEHOLDERS", True)

    BRANDS: Dict[str, BrandConfig] = load_brands(os.getenv("BRAND_JSON") or os.getenv("BRANDS_JSON"))

    def get_brand(self, brand_key: Optional[str]) -> Optional[BrandConfig]:
        """Whitelist lookup; unknown or missing keys return None."""
        if not brand_key:
            return None
        return self.BRANDS.get(brand_key)


config = Config()
