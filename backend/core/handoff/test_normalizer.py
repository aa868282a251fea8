import pytest

from backend.core.handoff.models import Category, Urgency
from backend.core.handoff.normalizer import (
    DATE_PLACEHOLDER,
    DATE_PLACEHOLDER_URGENT,
    MODE_ONLINE,
    MODE_IN_PERSON,
    MODE_PLACEHOLDER,
    TIME_PLACEHOLDER,
    normalize_date_tr,
    normalize_handoff_payload,
    normalize_time_tr,
    tr_title,
    unwrap_payload,
)


@pytest.mark.parametrize("raw, expected", [
    ("5 kasım 2025", "2025-11-05"),
    ("05.11.2025", "2025-11-05"),
    ("5/11/2025", "2025-11-05"),
    ("05-11-2025", "2025-11-05"),
    ("05 11 2025", "2025-11-05"),
    ("1 Şubat 2026", "2026-02-01"),
    ("2025-11-05", "2025-11-05"),
    ("not-a-date", None),
    ("32.13.2025", None),
    ("", None),
])
def test_normalize_date_tr(raw, expected):
    assert normalize_date_tr(raw) == expected


@pytest.mark.parametrize("raw, expected", [
    ("14.00", "14:00"),
    ("14:30", "14:30"),
    ("14 30", "14:30"),
    ("9", "09:00"),
    ("2:30 pm", "14:30"),
    ("12 am", "00:00"),
    ("öğleden sonra", None),
    ("25:00", None),
])
def test_normalize_time_tr(raw, expected):
    assert normalize_time_tr(raw) == expected


def test_tr_title_handles_turkish_i():
    assert tr_title("ali veli") == "Ali Veli"
    assert tr_title("ALI VELI") == "Ali Veli"
    assert tr_title("işıl ılgaz") == "İşıl Ilgaz"


def test_unwrap_is_bounded_to_two_levels():
    inner = {"contact": {"name": "Ali"}}
    assert unwrap_payload({"handoff": "x", "payload": {"kind": "y", "payload": inner}}) == inner
    three = {"handoff": "a", "payload": {"kind": "b", "payload": {"type": "c", "payload": inner}}}
    assert unwrap_payload(three) == {"type": "c", "payload": inner}
    # no wrapper key, nothing to peel
    assert unwrap_payload({"payload": inner}) == {"payload": inner}


def test_full_record_is_normalized():
    record = normalize_handoff_payload({
        "contact": {"name": "ali veli", "phone": "+90 555 111 22 33", "email": "ali@example.com"},
        "preferred_meeting": {"mode": "online", "date": "15.01.2025", "time": "14.00"},
        "matter": {"category": "family", "urgency": "urgent"},
        "request": {"summary": "Velayet davası", "details": "İki çocuk var.\n\n\n\nEşim taşındı."},
        "documents": ["nüfus kaydı", ""],
    })
    assert record.contact.name == "Ali Veli"
    assert record.contact.phone_digits == "905551112233"
    assert record.matter.category is Category.FAMILY
    assert record.matter.urgency is Urgency.URGENT
    assert (record.meeting.mode, record.meeting.date, record.meeting.time) == (MODE_ONLINE, "2025-01-15", "14:00")
    assert record.request.details == "İki çocuk var.\n\nEşim taşındı."
    assert record.documents == ["nüfus kaydı"]


def test_flat_and_alternate_shapes_first_source_wins():
    record = normalize_handoff_payload({
        "full_name": "Ayşe Kaya",
        "phone": "0532 000 11 22",
        "summary": "Kira tespiti",
        "meeting": {"mode": "ofiste yüz yüze"},
        "meeting_mode": "online",
        "meeting_datetime": "10.02.2025 10:30",
    })
    assert record.contact.name == "Ayşe Kaya"
    assert record.meeting.mode == MODE_IN_PERSON
    assert (record.meeting.date, record.meeting.time) == ("2025-02-10", "10:30")
    assert record.matter.category is Category.LEASE


def test_unparsed_date_and_time_keep_raw_value():
    record = normalize_handoff_payload({
        "preferred_meeting": {"mode": "telefon", "date": "gelecek hafta", "time": "öğleden sonra"},
    })
    assert (record.meeting.mode, record.meeting.date, record.meeting.time) == ("telefon", "gelecek hafta", "öğleden sonra")


def test_placeholders_filled_by_default():
    record = normalize_handoff_payload({"request": {"summary": "Acil dönüş rica ediyorum"}})
    assert record.meeting.mode == MODE_PLACEHOLDER
    assert record.meeting.date == DATE_PLACEHOLDER_URGENT
    assert record.meeting.time == TIME_PLACEHOLDER

    calm = normalize_handoff_payload({"request": {"summary": "Bilgi almak istiyorum"}})
    assert calm.meeting.date == DATE_PLACEHOLDER


def test_placeholders_can_be_disabled():
    record = normalize_handoff_payload({"request": {"summary": "Bilgi"}}, fill_placeholders=False)
    assert (record.meeting.mode, record.meeting.date, record.meeting.time) == ("", "", "")


def test_phone_and_name_fall_back_to_text():
    record = normalize_handoff_payload({
        "request": {"summary": "Randevu", "details": "Mehmet Can 0532 000 11 22 numarasından ulaşabilirsiniz"},
    })
    assert record.contact.phone == "0532 000 11 22"
    assert record.contact.name == "Mehmet Can"


def test_brand_email_is_not_customer_email():
    record = normalize_handoff_payload(
        {"contact": {"name": "Ali", "email": "Info@Buro.com"}},
        brand_emails=["info@buro.com"],
    )
    assert record.contact.email == ""


def test_summary_details_truncated_and_fences_stripped():
    record = normalize_handoff_payload({
        "request": {"summary": "A" * 300, "details": "önce ```gizli``` sonra " + "B" * 1000},
    })
    assert len(record.request.summary) == 181
    assert record.request.summary.endswith("…")
    assert "gizli" not in record.request.details
    assert record.request.details.endswith("…")


def test_ack_summary_is_replaced():
    record = normalize_handoff_payload({"request": {"summary": "Bilgilerinizi aldım, teşekkürler"}})
    assert record.request.summary == "Randevu talebi"


def test_wrapped_payload_is_unwrapped():
    record = normalize_handoff_payload({"handoff": "customer_request", "payload": {"contact": {"name": "veli"}}})
    assert record.contact.name == "Veli"
