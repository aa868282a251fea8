from datetime import datetime
from pathlib import Path
from typing import Optional

import yaml

from backend.core.config import BrandConfig

DEFAULT_CITY = "Türkiye"
DEFAULT_PRACTICE_AREAS = "Aile, Ceza, İş, İcra/İflas, Gayrimenkul/Kira, Tazminat"


class PromptLoader:
    @staticmethod
    def load_prompt(relative_path: str) -> str:
        """
        Loads the 'SYSTEM_PROMPT' string from a YAML file next to this module.
        """
        file_path = Path(__file__).resolve().parent / relative_path

        if not file_path.exists():
            raise FileNotFoundError(f"Prompt file missing: {file_path}")

        with file_path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f)

        prompt_template = (data or {}).get("SYSTEM_PROMPT")
        if not prompt_template:
            raise ValueError(f"key 'SYSTEM_PROMPT' missing in {file_path}")

        return prompt_template


def build_run_instructions(brand: Optional[BrandConfig], brand_key: str = "",
                           now: Optional[datetime] = None,
                           template: Optional[str] = None) -> str:
    """System prompt for one brand, formatted with its label, city and practice areas."""
    brand = brand or BrandConfig(key=brand_key)
    label = brand.display_label or (brand.subject_prefix or "").strip("[]") or brand_key
    now = now or datetime.now()
    template = template or PromptLoader.load_prompt("intake_agent_prompt.yaml")
    return template.format(
        now=now.strftime("%d.%m.%Y %H:%M"),
        label=label,
        city=brand.office.city or DEFAULT_CITY,
        practice_areas=", ".join(brand.practice_areas) or DEFAULT_PRACTICE_AREAS,
    )
