import pytest

from backend.core.handoff.errors import IncompleteRecord
from backend.core.handoff.gate import has_minimum_handoff_data, require_minimum_handoff_data
from backend.core.handoff.normalizer import normalize_handoff_payload

COMPLETE = {
    "contact": {"name": "Ali Veli", "phone": "+905551112233"},
    "meeting": {"mode": "Online Görüşme", "date": "2025-01-15", "time": "14:00"},
    "request": {"summary": "Velayet davası"},
}


def test_complete_record_passes():
    result = has_minimum_handoff_data(COMPLETE)
    assert result
    assert result.missing == []
    require_minimum_handoff_data(COMPLETE)


def test_short_phone_fails():
    record = {**COMPLETE, "contact": {"name": "Ali Veli", "phone": "12345"}}
    result = has_minimum_handoff_data(record)
    assert not result
    assert result.missing == ["phone"]
    with pytest.raises(IncompleteRecord) as exc:
        require_minimum_handoff_data(record)
    assert exc.value.missing == ["phone"]


def test_lists_every_missing_predicate():
    result = has_minimum_handoff_data({"contact": {"name": "A"}})
    assert result.missing == ["name", "phone", "summary_or_details", "meeting_mode", "meeting_datetime"]


def test_single_datetime_string_with_space_is_enough():
    record = {**COMPLETE, "meeting": {"mode": "online", "date": "2025-01-15 14:00"}}
    assert has_minimum_handoff_data(record)
    record = {**COMPLETE, "meeting": {"mode": "online", "date": "2025-01-15"}}
    assert has_minimum_handoff_data(record).missing == ["meeting_datetime"]


def test_flat_and_preferred_meeting_shapes():
    flat = {
        "full_name": "Ali Veli", "phone": "0555 111 22 33", "details": "Kira davası",
        "meeting_mode": "online", "meeting_datetime": "15.01.2025 14:00",
    }
    assert has_minimum_handoff_data(flat)
    nested = {**COMPLETE, "meeting": None, "preferred_meeting": COMPLETE["meeting"]}
    assert has_minimum_handoff_data(nested)


def test_normalized_record_with_placeholders_passes():
    record = normalize_handoff_payload({
        "contact": {"name": "Ali Veli", "phone": "+905551112233"},
        "request": {"summary": "Velayet davası"},
    })
    assert has_minimum_handoff_data(record)
    bare = normalize_handoff_payload(
        {"contact": {"name": "Ali Veli", "phone": "+905551112233"}, "request": {"summary": "Velayet"}},
        fill_placeholders=False,
    )
    assert has_minimum_handoff_data(bare).missing == ["meeting_mode", "meeting_datetime"]
