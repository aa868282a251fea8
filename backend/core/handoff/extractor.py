"""
Handoff extractor: pulls a structured record out of a complete agent reply.

Accepted encodings, tried in this order:
    1. any ```fenced``` block whose body carries a handoff/kind/type key
    2. a ```handoff fenced block
    3. <handoff>{...}</handoff>
    4. [[HANDOFF: base64]]...[[/HANDOFF]]
"""
import base64
import binascii
import json
import logging
import re
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

from backend.core.handoff.errors import MalformedRecord
from backend.core.handoff.models import DEFAULT_KIND, HandoffCandidate

logger = logging.getLogger("handoff_extractor")

FENCED_BLOCK_RE = re.compile(r"```[\s\S]*?```")
FENCE_OPEN_RE = re.compile(r"^```[a-zA-Z0-9_-]*\s*")
FENCE_CLOSE_RE = re.compile(r"```$")
LOOSE_KEY_RE = re.compile(r'"?\b(?:handoff|kind|type)\b"?\s*:', re.IGNORECASE)
TAGGED_FENCE_RE = re.compile(r"```handoff\s*([\s\S]*?)```", re.IGNORECASE)
TAG_RE = re.compile(r"<handoff>\s*([\s\S]*?)\s*</handoff>", re.IGNORECASE)
BASE64_RE = re.compile(r"\[\[HANDOFF:\s*base64\]\]\s*([\s\S]*?)\s*\[\[/HANDOFF\]\]", re.IGNORECASE)

KIND_ALIASES = {
    "reservation": DEFAULT_KIND,
    "reservation_request": DEFAULT_KIND,
}


def _fence_body(block: str) -> str:
    inner = FENCE_OPEN_RE.sub("", block, count=1)
    inner = FENCE_CLOSE_RE.sub("", inner)
    return inner.strip()


def _generic_fenced(text: str) -> Iterator[str]:
    for m in FENCED_BLOCK_RE.finditer(text):
        inner = _fence_body(m.group(0))
        if inner and LOOSE_KEY_RE.search(inner):
            yield inner


def _tagged_fence(text: str) -> Iterator[str]:
    m = TAGGED_FENCE_RE.search(text)
    if m and m.group(1).strip():
        yield m.group(1).strip()


def _xml_tag(text: str) -> Iterator[str]:
    m = TAG_RE.search(text)
    if m:
        yield m.group(1).strip()


def _base64_block(text: str) -> Iterator[str]:
    m = BASE64_RE.search(text)
    if not m:
        return
    # models drop the padding and sometimes use the URL-safe alphabet
    raw = re.sub(r"\s+", "", m.group(1)).replace("-", "+").replace("_", "/")
    raw += "=" * (-len(raw) % 4)
    try:
        yield base64.b64decode(raw, validate=True).decode("utf-8")
    except (binascii.Error, ValueError) as e:
        logger.debug("[handoff] base64 block not decodable: %s", e)


ENCODINGS: List[Tuple[str, Callable[[str], Iterator[str]]]] = [
    ("fenced", _generic_fenced),
    ("fenced_handoff", _tagged_fence),
    ("tag", _xml_tag),
    ("base64", _base64_block),
]


def parse_json_object(raw: str, encoding: str = "json") -> Dict[str, Any]:
    try:
        obj = json.loads(raw)
    except json.JSONDecodeError as e:
        raise MalformedRecord(encoding, f"invalid JSON ({e.msg})") from e
    if not isinstance(obj, dict):
        raise MalformedRecord(encoding, f"expected an object, got {type(obj).__name__}")
    return obj


def resolve_kind(obj: Dict[str, Any]) -> str:
    for key in ("handoff", "kind", "type"):
        value = obj.get(key)
        if isinstance(value, str) and value.strip():
            value = value.strip()
            return KIND_ALIASES.get(value, value)
    return DEFAULT_KIND


def to_candidate(obj: Dict[str, Any], source: str = "") -> HandoffCandidate:
    payload = obj.get("payload")
    if not isinstance(payload, dict):
        payload = obj
    return HandoffCandidate(kind=resolve_kind(obj), payload=payload, source=source)


def extract_handoff(text: str) -> Optional[HandoffCandidate]:
    """Return the first candidate that parses, or None."""
    if not text or not isinstance(text, str):
        return None

    for encoding, candidates in ENCODINGS:
        for raw in candidates(text):
            try:
                obj = parse_json_object(raw, encoding)
            except MalformedRecord as e:
                logger.info("[handoff] skipping malformed candidate: %s", e)
                continue
            candidate = to_candidate(obj, source=encoding)
            logger.info("[handoff] extracted kind=%s via %s", candidate.kind, encoding)
            return candidate
    return None
