from backend.core.handoff.inference import (
    NAME_MATCHERS,
    detect_category,
    detect_urgency,
    first_match,
    has_explicit_handoff,
    infer_handoff_from_text,
    is_agent_prompt,
)
from backend.core.handoff.models import Category, Urgency

USER_MESSAGE = (
    "Ad Soyad: Ali Veli\n"
    "Telefon: 0555 111 22 33\n"
    "Olay özeti: Velayet davası için avukatla görüşmek istiyorum"
)


def test_infers_candidate_from_user_message():
    candidate = infer_handoff_from_text(USER_MESSAGE)
    assert candidate is not None
    assert candidate.kind == "customer_request"
    assert candidate.source == "inferred"
    payload = candidate.payload
    assert payload["contact"]["name"] == "Ali Veli"
    assert payload["contact"]["phone"] == "0555 111 22 33"
    assert payload["matter"] == {"category": "aile", "urgency": "normal"}
    assert payload["request"]["summary"] == "Velayet davası için avukatla görüşmek istiyorum"
    assert payload["request"]["details"] == USER_MESSAGE


def test_requires_phone_or_email():
    assert infer_handoff_from_text("Ad Soyad: Ali Veli, boşanma davası hakkında bilgi") is None
    candidate = infer_handoff_from_text("Benim adım Ayşe, e-posta: ayse@example.com")
    assert candidate.payload["contact"]["email"] == "ayse@example.com"
    assert candidate.payload["contact"]["name"] == "Ayşe"


def test_skips_agent_form_and_confirmation_templates():
    form = "Lütfen aşağıdaki bilgileri paylaşır mısınız?\n1. Adı soyadı\n2. Telefon: 0555 111 22 33"
    assert is_agent_prompt(form) == "please_share_below"
    assert infer_handoff_from_text(form) is None

    confirm = "Ali Veli 0555 111 22 33, onaylıyor musunuz?"
    assert is_agent_prompt(confirm) == "do_you_approve"
    assert infer_handoff_from_text(confirm) is None


def test_skips_when_explicit_fenced_key_present():
    message = 'Telefon 0555 111 22 33 ```json\n{"handoff": "customer_request"}\n```'
    assert infer_handoff_from_text(message) is None
    transcript = 'Tamam.\n```handoff\n{"handoff": "customer_request"}\n```'
    assert infer_handoff_from_text(USER_MESSAGE, transcript=transcript) is None


def test_category_tie_break_follows_declared_order():
    assert detect_category("velayet") is Category.FAMILY
    assert detect_category("haciz geldi") is Category.ENFORCEMENT
    assert detect_category("velayet ve haciz") is Category.FAMILY
    assert detect_category("kiracı tahliye etmiyor") is Category.LEASE
    assert detect_category("miras paylaşımı") is Category.OTHER


def test_urgency_keywords():
    assert detect_urgency("Yarın duruşmam var") is Urgency.URGENT
    assert detect_urgency("ACİL dönüş bekliyorum") is Urgency.URGENT
    assert detect_urgency("Bilgi almak istiyorum") is Urgency.NORMAL


def test_name_matchers_in_order():
    assert first_match(NAME_MATCHERS, "Full name: John Doe") == ("John Doe", "labeled_full_name")
    assert first_match(NAME_MATCHERS, "İletişim: Mehmet Can, 0532 000 11 22") == ("Mehmet Can", "contact_line")
    assert first_match(NAME_MATCHERS, "Merhaba, benim adım Zeynep Kaya") == ("Zeynep Kaya", "my_name_is")
    assert first_match(NAME_MATCHERS, "Merhaba") == (None, None)


def test_default_summary_when_only_bullets():
    candidate = infer_handoff_from_text("- 0555 111 22 33\n- iletişim bilgim")
    assert candidate.payload["request"]["summary"] == "Hukuk Talebi"


def test_fenced_kind_or_type_key_blocks_inference():
    broken = 'Tamam.\n```json\n{"kind": "customer_request", "payload": {\n```'
    assert has_explicit_handoff(broken)
    assert has_explicit_handoff('```\n{"type": "callback"}\n```')
    assert not has_explicit_handoff("```\nprint(1)\n```")
    assert not has_explicit_handoff(None)
    assert infer_handoff_from_text(USER_MESSAGE, transcript=broken) is None
    assert infer_handoff_from_text(USER_MESSAGE, transcript="```\nprint(1)\n```") is not None
