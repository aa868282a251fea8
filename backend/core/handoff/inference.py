"""
Heuristic inference of a handoff from unstructured text.

Used only when the agent reply carried no structured record. It runs on the
user's own message: the agent's clarifying prose ("1. Ad soyad 2. Telefon ...")
would otherwise look like a submission.

Every field is produced by an ordered table of small named matchers. Each
matcher is a pure `text -> Optional[str]` function and the first non-empty
result wins, so the evaluation order lives in the tables below, not in
control flow.
"""
import logging
import re
from dataclasses import dataclass
from typing import Callable, Optional, Pattern, Sequence, Tuple

from backend.core.handoff.extractor import FENCED_BLOCK_RE, LOOSE_KEY_RE
from backend.core.handoff.models import Category, DEFAULT_KIND, HandoffCandidate, Urgency

logger = logging.getLogger("handoff_inference")

PHONE_PATTERN = r"\+?\d[\d\s().-]{9,}\d"
PHONE_RE = re.compile(rf"({PHONE_PATTERN})")
EMAIL_RE = re.compile(r"[^\s@]+@[^\s@]+\.[^\s@]+")

# A structured payload is already present; inference must not compete with it.
EXPLICIT_HANDOFF_RE = re.compile(r'```[\s\S]*"handoff"\s*:')

SUMMARY_MAX_LEN = 160
DETAILS_TAIL_LEN = 4000
DEFAULT_SUMMARY = "Hukuk Talebi"


@dataclass(frozen=True)
class Matcher:
    name: str
    extract: Callable[[str], Optional[str]]

    def __call__(self, text: str) -> Optional[str]:
        value = self.extract(text)
        if value is None:
            return None
        value = value.strip()
        return value or None


def regex_matcher(name: str, pattern: str, group: int = 1, flags: int = re.IGNORECASE) -> Matcher:
    compiled: Pattern = re.compile(pattern, flags)

    def _extract(text: str) -> Optional[str]:
        m = compiled.search(text)
        return m.group(group) if m else None

    return Matcher(name, _extract)


def first_match(matchers: Sequence[Matcher], text: str) -> Tuple[Optional[str], Optional[str]]:
    """Run matchers in order. Returns (value, matcher name) of the first hit."""
    for matcher in matchers:
        value = matcher(text)
        if value:
            return value, matcher.name
    return None, None


def fold_tr(text: str) -> str:
    """Lowercase with Turkish dotted/dotless i handled."""
    return (text or "").replace("İ", "i").replace("I", "ı").lower()


# ---------------------------------------------------------------------------
# Guards: agent prompts that must never be read as a submission
# ---------------------------------------------------------------------------

FORM_ASK_MATCHERS: Tuple[Matcher, ...] = (
    regex_matcher("please_share_below", r"(lütfen.*(aşağıdaki|bilgileri).*paylaşır mısınız)", flags=re.IGNORECASE),
    regex_matcher("numbered_name", r"(1\.\s*ad[ıi]\s*soyad)"),
    regex_matcher("numbered_phone", r"(2\.\s*telefon)"),
    regex_matcher("numbered_email", r"(3\.\s*e-?posta)"),
    regex_matcher("can_you_share_below", r"(aşağıdaki bilgileri paylaşabilir misiniz)"),
)

CONFIRM_ASK_MATCHERS: Tuple[Matcher, ...] = (
    regex_matcher("if_you_approve", r"(onay verirseniz)"),
    regex_matcher("do_you_approve", r"(onaylıyor musunuz)"),
    regex_matcher("shall_i_forward", r"(iletmemi ister misiniz)"),
    regex_matcher("i_can_forward", r"(iletebilirim)"),
)

# ---------------------------------------------------------------------------
# Field matchers
# ---------------------------------------------------------------------------

NAME_MATCHERS: Tuple[Matcher, ...] = (
    regex_matcher("labeled_full_name", r"(?:ad\s*soyad|full\s*name)\s*[:\-]\s*([^\n,]+)"),
    regex_matcher("contact_line", rf"(?:[İi]leti[şs]im|contact)\s*:\s*([^\n,]+)\s*,\s*(?:{PHONE_PATTERN})"),
    regex_matcher("my_name_is", r"(?:benim\s+adım|\badım|\bismim|\bisim|my\s+name\s+is)\s*[:\-]?\s*([^\n,]+)"),
)

SUMMARY_LINE_BLACKLIST_RE = re.compile(r"hukuk dalı|kritik tarih|belge|şehir|iletişim|görüşme tercihi")


def _first_meaningful_line(text: str) -> Optional[str]:
    for line in text.split("\n"):
        line = line.strip()
        if not line or line.startswith("-"):
            continue
        if SUMMARY_LINE_BLACKLIST_RE.search(fold_tr(line)):
            continue
        return line[:SUMMARY_MAX_LEN]
    return None


SUMMARY_MATCHERS: Tuple[Matcher, ...] = (
    regex_matcher("event_summary_line", r"(?:olay\s*[öo]zeti|event\s*summary)\s*:\s*([^\n]+)"),
    Matcher("first_meaningful_line", _first_meaningful_line),
)

# Declared order is the tie-break when several sets match.
CATEGORY_KEYWORDS: Tuple[Tuple[Category, Tuple[str, ...]], ...] = (
    (Category.FAMILY, ("boşan", "velayet", "nafaka", "mal rejimi")),
    (Category.LABOR, ("işten", "kıdem", "ihbar", "fazla mesai", "mobbing", "işe iade")),
    (Category.ENFORCEMENT, ("icra", "haciz", "takip", "tebligat", "ödeme emri")),
    (Category.LEASE, ("kira", "tahliye", "kiracı", "ev sahibi", "kontrat")),
    (Category.DAMAGES, ("tazminat", "trafik kazası", "maddi", "manevi")),
    (Category.CRIMINAL, ("ceza", "savcılık", "ifade", "duruşma", "şikayet")),
)

URGENCY_KEYWORDS: Tuple[str, ...] = ("acil", "bugün", "yarın", "son gün", "tebligat", "ifade", "duruşma")


def detect_category(text: str) -> Category:
    folded = fold_tr(text)
    for category, keywords in CATEGORY_KEYWORDS:
        if any(k in folded for k in keywords):
            return category
    return Category.OTHER


def detect_urgency(text: str) -> Urgency:
    folded = fold_tr(text)
    if any(k in folded for k in URGENCY_KEYWORDS):
        return Urgency.URGENT
    return Urgency.NORMAL


def find_phone(text: str) -> Optional[str]:
    m = PHONE_RE.search(text or "")
    return m.group(1).strip() if m else None


def find_email(text: str) -> Optional[str]:
    m = EMAIL_RE.search(text or "")
    return m.group(0).strip() if m else None


def is_agent_prompt(text: str) -> Optional[str]:
    """Name of the form/confirmation template the text matches, if any."""
    _, name = first_match(FORM_ASK_MATCHERS + CONFIRM_ASK_MATCHERS, text)
    return name


def has_explicit_handoff(text: Optional[str]) -> bool:
    """Same key test the extractor applies to fenced blocks, plus an unterminated fence."""
    if not text:
        return False
    if EXPLICIT_HANDOFF_RE.search(text):
        return True
    return any(LOOSE_KEY_RE.search(m.group(0)) for m in FENCED_BLOCK_RE.finditer(text))


def infer_handoff_from_text(text: str, transcript: Optional[str] = None) -> Optional[HandoffCandidate]:
    if not text:
        return None

    if has_explicit_handoff(text) or has_explicit_handoff(transcript):
        return None

    template = is_agent_prompt(text)
    if template:
        logger.debug("[handoff][infer] skipped, text matches template %s", template)
        return None

    phone = find_phone(text)
    email = find_email(text)
    if not phone and not email:
        return None

    name, name_source = first_match(NAME_MATCHERS, text)
    summary, _ = first_match(SUMMARY_MATCHERS, text)

    payload = {
        "contact": {"name": name, "phone": phone, "email": email},
        "matter": {
            "category": detect_category(text).value,
            "urgency": detect_urgency(text).value,
        },
        "request": {
            "summary": summary or DEFAULT_SUMMARY,
            "details": text[-DETAILS_TAIL_LEN:],
        },
    }
    logger.info("[handoff][infer] inferred from text (name via %s)", name_source or "none")
    return HandoffCandidate(kind=DEFAULT_KIND, payload=payload, source="inferred")
