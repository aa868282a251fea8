"""
Field normalizer: turns an untrusted candidate payload into a NormalizedHandoff.

Models and the inference fallback use several synonymous shapes
(`preferred_meeting` vs `meeting`, flat `phone` vs `contact.phone`, ...).
They are merged with one rule: the first non-empty source wins and later
duplicates never overwrite it.
"""
import logging
import re
from typing import Any, Dict, Iterable, Optional

from backend.core.handoff.fence_filter import strip_fenced_blocks
from backend.core.handoff.inference import (
    NAME_MATCHERS,
    PHONE_PATTERN,
    detect_category,
    detect_urgency,
    find_phone,
    first_match,
    fold_tr,
    regex_matcher,
)
from backend.core.handoff.models import (
    DETAILS_MAX_LEN,
    SUMMARY_MAX_LEN,
    Category,
    Contact,
    KeyDates,
    Matter,
    Meeting,
    NormalizedHandoff,
    RequestInfo,
    Urgency,
)

logger = logging.getLogger("handoff_normalizer")

MAX_UNWRAP_DEPTH = 2
ELLIPSIS = "…"

MODE_ONLINE = "Online Görüşme"
MODE_IN_PERSON = "Yüz Yüze Görüşme"
MODE_PLACEHOLDER = "İletişimde belirlenecek"
DATE_PLACEHOLDER_URGENT = "En kısa sürede (Tespit edilen)"
DATE_PLACEHOLDER = "Belirtilmedi"
TIME_PLACEHOLDER = "Müsaitlik durumuna göre"

ACK_SUMMARY_RE = re.compile(r"bilgilerinizi aldım", re.IGNORECASE)
ACK_SUMMARY_REPLACEMENT = "Randevu talebi"

ONLINE_RE = re.compile(r"online|çevrim ?içi|cevrim ?ici|görüntülü|video")
IN_PERSON_RE = re.compile(r"yüz ?yüze|yuz ?yuze|ofis|in person|face to face")

PLACEHOLDER_URGENCY_KEYWORDS = (
    "hemen", "acil", "kısa", "en kısa zamanda", "en kısa sürede",
    "müsaitlikte", "uygun zamanda", "dönüş yaparsanız", "haber bekliyorum",
)

CATEGORY_ALIASES = {
    "family": Category.FAMILY,
    "aile hukuku": Category.FAMILY,
    "labor": Category.LABOR,
    "labour": Category.LABOR,
    "employment": Category.LABOR,
    "iş": Category.LABOR,
    "iş hukuku": Category.LABOR,
    "enforcement": Category.ENFORCEMENT,
    "icra/iflas": Category.ENFORCEMENT,
    "lease": Category.LEASE,
    "rent": Category.LEASE,
    "gayrimenkul": Category.LEASE,
    "damages": Category.DAMAGES,
    "compensation": Category.DAMAGES,
    "criminal": Category.CRIMINAL,
    "ceza hukuku": Category.CRIMINAL,
    "other": Category.OTHER,
    "diğer": Category.OTHER,
}

URGENCY_ALIASES = {
    "acil": Urgency.URGENT,
    "urgent": Urgency.URGENT,
    "yüksek": Urgency.URGENT,
    "high": Urgency.URGENT,
    "normal": Urgency.NORMAL,
    "düşük": Urgency.NORMAL,
    "low": Urgency.NORMAL,
}

TR_MONTHS = {
    "ocak": 1, "şubat": 2, "subat": 2, "mart": 3, "nisan": 4,
    "mayıs": 5, "mayis": 5, "haziran": 6, "temmuz": 7,
    "ağustos": 8, "agustos": 8, "eylül": 9, "eylul": 9, "ekim": 10,
    "kasım": 11, "kasim": 11, "aralık": 12, "aralik": 12,
}

NUMERIC_DATE_RE = re.compile(r"^(\d{1,2})[.\-/ ](\d{1,2})[.\-/ ](\d{4})$")
NAMED_DATE_RE = re.compile(r"^(\d{1,2})\s+([a-zçğıöşü]+)\s+(\d{4})$")
ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
TIME_24_RE = re.compile(r"^(\d{1,2})(?::|\s)?(\d{2})?$")
TIME_12_RE = re.compile(r"^(\d{1,2})(?::(\d{2}))?\s*(am|pm)$")

# "Ali Veli 0555 111 22 33" with no label at all
NAME_BEFORE_PHONE = regex_matcher(
    "name_before_phone",
    rf"(?:^|\n)[ \t]*([a-zA-ZığüşöçİĞÜŞÖÇ]{{2,}}[ \t]+[a-zA-ZığüşöçİĞÜŞÖÇ]{{2,}}(?:[ \t]+[a-zA-ZığüşöçİĞÜŞÖÇ]{{2,}})?)[ \t]+(?:{PHONE_PATTERN})",
    flags=0,
)
NAME_FALLBACK_MATCHERS = NAME_MATCHERS + (NAME_BEFORE_PHONE,)


# ---------------------------------------------------------------------------
# Scalar helpers
# ---------------------------------------------------------------------------

def clean(value: Any) -> str:
    if value is None or isinstance(value, (dict, list)):
        return ""
    return re.sub(r"\s+", " ", str(value)).strip()


def first_non_empty(*values: Any) -> str:
    for value in values:
        text = clean(value)
        if text:
            return text
    return ""


def truncate(text: str, limit: int) -> str:
    if len(text) > limit:
        return text[:limit] + ELLIPSIS
    return text


def tr_title(name: str) -> str:
    words = []
    for word in name.split():
        head = word[0].replace("i", "İ").replace("ı", "I").upper()
        words.append(head + word[1:].replace("İ", "i").lower())
    return " ".join(words)


def _pad(n: int) -> str:
    return f"{n:02d}"


def normalize_date_tr(value: Any) -> Optional[str]:
    """Parse a Turkish-style date to yyyy-mm-dd. Returns None when unrecognized."""
    if not value:
        return None
    s = re.sub(r"\s+", " ", fold_tr(str(value)).strip())

    m = NUMERIC_DATE_RE.match(s)
    if m:
        dd, mm, yyyy = int(m.group(1)), int(m.group(2)), int(m.group(3))
        if 1 <= mm <= 12 and 1 <= dd <= 31:
            return f"{yyyy}-{_pad(mm)}-{_pad(dd)}"

    m = NAMED_DATE_RE.match(s)
    if m:
        dd, mm, yyyy = int(m.group(1)), TR_MONTHS.get(m.group(2)), int(m.group(3))
        if mm and 1 <= dd <= 31:
            return f"{yyyy}-{_pad(mm)}-{_pad(dd)}"

    if ISO_DATE_RE.match(s):
        return s
    return None


def normalize_time_tr(value: Any) -> Optional[str]:
    """Parse 14:00 / 14.00 / 14 00 / 14 / 2:30 pm to HH:MM. Returns None when unrecognized."""
    if not value:
        return None
    s = str(value).strip().lower().replace(".", ":")
    s = re.sub(r"\s+", " ", s)

    m = TIME_24_RE.match(s)
    if m:
        hh = int(m.group(1))
        mm = int(m.group(2)) if m.group(2) else 0
        if 0 <= hh <= 23 and 0 <= mm <= 59:
            return f"{_pad(hh)}:{_pad(mm)}"

    m = TIME_12_RE.match(s)
    if m:
        hh = int(m.group(1))
        mm = int(m.group(2)) if m.group(2) else 0
        if m.group(3) == "pm" and hh < 12:
            hh += 12
        if m.group(3) == "am" and hh == 12:
            hh = 0
        if 0 <= hh <= 23 and 0 <= mm <= 59:
            return f"{_pad(hh)}:{_pad(mm)}"
    return None


def normalize_meeting_mode(value: str) -> str:
    lowered = fold_tr(value)
    if ONLINE_RE.search(lowered):
        return MODE_ONLINE
    if IN_PERSON_RE.search(lowered):
        return MODE_IN_PERSON
    return value


def normalize_category(value: str, text: str) -> Category:
    key = fold_tr(value)
    if key:
        for category in Category:
            if key == category.value:
                return category
        if key in CATEGORY_ALIASES:
            return CATEGORY_ALIASES[key]
        by_keyword = detect_category(key)
        if by_keyword is not Category.OTHER:
            return by_keyword
    return detect_category(text)


def normalize_urgency(value: str, text: str) -> Urgency:
    key = fold_tr(value)
    if key in URGENCY_ALIASES:
        return URGENCY_ALIASES[key]
    return detect_urgency(text)


def split_date_time(raw_date: str) -> Optional[tuple]:
    """'2025-01-10 14:30' -> ('2025-01-10', '14:30') when both halves parse."""
    if " " not in raw_date:
        return None
    head, tail = raw_date.rsplit(" ", 1)
    date = normalize_date_tr(head)
    time = normalize_time_tr(tail)
    if date and time:
        return date, time
    return None


# ---------------------------------------------------------------------------
# Payload helpers
# ---------------------------------------------------------------------------

def _section(payload: Dict[str, Any], *keys: str) -> Dict[str, Any]:
    for key in keys:
        value = payload.get(key)
        if isinstance(value, dict):
            return value
    return {}


def unwrap_payload(payload: Any) -> Dict[str, Any]:
    """Peel {handoff|kind|type, payload} wrappers, at most MAX_UNWRAP_DEPTH levels."""
    if not isinstance(payload, dict):
        return {}
    for _ in range(MAX_UNWRAP_DEPTH):
        inner = payload.get("payload")
        if not isinstance(inner, dict):
            break
        if not any(payload.get(k) for k in ("handoff", "kind", "type")):
            break
        payload = inner
    return payload


def normalize_handoff_payload(
    payload: Dict[str, Any],
    *,
    brand_emails: Iterable[str] = (),
    fill_placeholders: bool = True,
) -> NormalizedHandoff:
    data = unwrap_payload(payload)

    contact = _section(data, "contact")
    request = _section(data, "request")
    matter = _section(data, "matter")
    meeting = _section(data, "preferred_meeting")
    meeting_alt = _section(data, "meeting")
    dates = _section(data, "dates")

    summary_text = strip_fenced_blocks(first_non_empty(request.get("summary"), data.get("summary")))
    details_raw = request.get("details") or data.get("details") or ""
    details_text = strip_fenced_blocks(str(details_raw)) if not isinstance(details_raw, (dict, list)) else ""
    combined = "\n".join(t for t in (summary_text, details_text) if t)

    # --- contact ---
    phone = first_non_empty(contact.get("phone"), data.get("phone"), find_phone(combined))
    phone_digits = re.sub(r"\D", "", phone)

    name = first_non_empty(contact.get("name"), data.get("full_name"), data.get("name"))
    if not name and combined:
        name = clean(first_match(NAME_FALLBACK_MATCHERS, combined)[0])
    if name:
        name = tr_title(name)

    email = first_non_empty(contact.get("email"), data.get("email"))
    own_addresses = {clean(e).lower() for e in brand_emails if clean(e)}
    if email and email.lower() in own_addresses:
        logger.info("[handoff] dropping brand address from customer email")
        email = ""

    # --- request text ---
    summary = clean(summary_text)
    if not summary or ACK_SUMMARY_RE.search(summary):
        summary = clean(details_text) or summary
    if ACK_SUMMARY_RE.search(summary):
        summary = ACK_SUMMARY_REPLACEMENT
    summary = truncate(summary, SUMMARY_MAX_LEN)

    details = details_text or summary_text
    details = re.sub(r"\n{3,}", "\n\n", details).strip()
    details = truncate(details, DETAILS_MAX_LEN)

    text_for_keywords = " ".join(t for t in (summary, details) if t)

    # --- matter ---
    category = normalize_category(first_non_empty(matter.get("category"), data.get("category")), text_for_keywords)
    urgency = normalize_urgency(first_non_empty(matter.get("urgency"), data.get("urgency")), text_for_keywords)

    # --- meeting ---
    mode = first_non_empty(meeting.get("mode"), meeting_alt.get("mode"), data.get("meeting_mode"))
    if mode:
        mode = normalize_meeting_mode(mode)

    raw_date = first_non_empty(
        meeting.get("date"), meeting_alt.get("date"), data.get("meeting_date"),
        meeting.get("datetime"), meeting_alt.get("datetime"), data.get("meeting_datetime"),
    )
    raw_time = first_non_empty(meeting.get("time"), meeting_alt.get("time"), data.get("meeting_time"))

    date = normalize_date_tr(raw_date) or raw_date
    time = normalize_time_tr(raw_time) or raw_time
    if raw_date and not raw_time and date == raw_date:
        parts = split_date_time(raw_date)
        if parts:
            date, time = parts

    if fill_placeholders:
        if not date:
            lowered = fold_tr(text_for_keywords)
            urgent = any(k in lowered for k in PLACEHOLDER_URGENCY_KEYWORDS)
            date = DATE_PLACEHOLDER_URGENT if urgent else DATE_PLACEHOLDER
        if not time:
            time = TIME_PLACEHOLDER
        if not mode:
            mode = MODE_PLACEHOLDER

    documents = data.get("documents")
    documents = [clean(d) for d in documents if clean(d)] if isinstance(documents, list) else []

    return NormalizedHandoff(
        contact=Contact(name=name, phone=phone, phone_digits=phone_digits, email=email),
        matter=Matter(category=category, urgency=urgency),
        meeting=Meeting(mode=mode, date=date, time=time),
        request=RequestInfo(summary=summary, details=details),
        dates=KeyDates(
            event=first_non_empty(dates.get("event"), data.get("event_date")),
            deadline=first_non_empty(dates.get("deadline"), data.get("deadline")),
        ),
        documents=documents,
    )
