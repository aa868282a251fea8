from datetime import datetime

from backend.core.config import BrandConfig, Config, load_brands
from backend.core.prompts.prompt_loader import PromptLoader, build_run_instructions

BRANDS_JSON = """
{
  "buro": {"label": "Örnek Hukuk", "handoffEmailTo": "ekip@buro.com", "contactEmail": "info@buro.com",
           "office": {"city": "İzmir"}, "practiceAreas": ["Aile", "İş"], "unknown_field": 1},
  "broken": "not-an-object"
}
"""


def test_load_brands_parses_whitelist():
    brands = load_brands(BRANDS_JSON)
    assert list(brands) == ["buro"]
    brand = brands["buro"]
    assert brand.key == "buro"
    assert brand.handoff_email_to == "ekip@buro.com"
    assert brand.office.city == "İzmir"
    assert brand.own_emails() == ["info@buro.com", "ekip@buro.com"]


def test_load_brands_tolerates_bad_input():
    assert load_brands(None) == {}
    assert load_brands("{not json") == {}
    assert load_brands("[1, 2]") == {}


def test_get_brand_is_a_whitelist():
    cfg = Config()
    cfg.BRANDS = load_brands(BRANDS_JSON)
    assert cfg.get_brand("buro").display_label == "Örnek Hukuk"
    assert cfg.get_brand("other") is None
    assert cfg.get_brand(None) is None


def test_run_instructions_are_formatted_per_brand():
    brand = load_brands(BRANDS_JSON)["buro"]
    prompt = build_run_instructions(brand, "buro", now=datetime(2025, 1, 10, 9, 30))
    assert "10.01.2025 09:30" in prompt
    assert '"Örnek Hukuk", a law office in İzmir' in prompt
    assert "Office focus areas: Aile, İş." in prompt
    assert '"handoff": "customer_request"' in prompt

    default = build_run_instructions(BrandConfig(key="x"), "x", now=datetime(2025, 1, 10))
    assert "a law office in Türkiye" in default


def test_prompt_template_has_system_prompt():
    assert "HANDOFF FORMAT" in PromptLoader.load_prompt("intake_agent_prompt.yaml")
