"""
Minimum-data gate applied to a normalized record before any side effect.
"""
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Union

from backend.core.handoff.errors import IncompleteRecord
from backend.core.handoff.models import NormalizedHandoff

logger = logging.getLogger("handoff_gate")

MIN_NAME_LEN = 2
MIN_PHONE_DIGITS = 10
MIN_TEXT_LEN = 3


@dataclass
class GateResult:
    missing: List[str] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return not self.missing

    def __bool__(self) -> bool:
        return self.passed


def _get(data: Dict[str, Any], *path: str) -> str:
    node: Any = data
    for key in path:
        if not isinstance(node, dict):
            return ""
        node = node.get(key)
    if node is None or isinstance(node, (dict, list)):
        return ""
    return str(node).strip()


def _first(data: Dict[str, Any], *paths: tuple) -> str:
    for path in paths:
        value = _get(data, *path)
        if value:
            return value
    return ""


def has_minimum_handoff_data(record: Union[NormalizedHandoff, Dict[str, Any]]) -> GateResult:
    data = record.to_payload() if isinstance(record, NormalizedHandoff) else (record or {})

    name = _first(data, ("contact", "name"), ("full_name",))
    phone_digits = _first(data, ("contact", "phone_digits",)) or re.sub(
        r"\D", "", _first(data, ("contact", "phone"), ("phone",))
    )
    summary = _first(data, ("request", "summary"), ("summary",))
    details = _first(data, ("request", "details"), ("details",))
    mode = _first(data, ("meeting", "mode"), ("preferred_meeting", "mode"), ("meeting_mode",))
    date = _first(
        data,
        ("meeting", "date"), ("preferred_meeting", "date"), ("meeting_date",),
        ("meeting", "datetime"), ("preferred_meeting", "datetime"), ("meeting_datetime",),
    )
    time = _first(data, ("meeting", "time"), ("preferred_meeting", "time"), ("meeting_time",))

    missing = []
    if len(name) < MIN_NAME_LEN:
        missing.append("name")
    if len(phone_digits) < MIN_PHONE_DIGITS:
        missing.append("phone")
    if len(summary) < MIN_TEXT_LEN and len(details) < MIN_TEXT_LEN:
        missing.append("summary_or_details")
    if not mode:
        missing.append("meeting_mode")
    if not ((date and time) or (date and not time and " " in date)):
        missing.append("meeting_datetime")

    result = GateResult(missing)
    if not result:
        logger.info("[handoff][gate] rejected, missing=%s", missing)
        logger.debug(
            "[handoff][gate][debug] name=%r phone_digits=%r summary=%r mode=%r date=%r time=%r",
            name, phone_digits, summary[:60], mode, date, time,
        )
    return result


def require_minimum_handoff_data(record: Union[NormalizedHandoff, Dict[str, Any]]) -> GateResult:
    result = has_minimum_handoff_data(record)
    if not result:
        raise IncompleteRecord(result.missing)
    return result
