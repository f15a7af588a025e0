"""人设加载与系统提示词渲染。

load_persona 在启动时读取一次 data 目录下的五个文件（并发读取，互不影响）；
PersonaPromptBuilder.build 每次调用时重新取当前时间再渲染模板。
"""

import json
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Optional

from twin_core.domain.persona import DEFAULT_FACTS, PersonaFacts, PersonaProfile
from twin_core.infrastructure.logging.logger import logger

PROMPTS_DIR = Path(__file__).resolve().parent

PERSONA_FILES = ("facts.json", "summary.txt", "style.txt", "me.txt", "linkedin.txt")
LINKEDIN_MISSING = "LinkedIn profile not available"
GENERIC_PROMPT = "You are a helpful AI assistant."


def load_prompt_template(name: str = "twin_system", locale: str = "en") -> str:
    """加载提示词模板文本。"""

    fname = PROMPTS_DIR / locale / f"{name}.md"
    return fname.read_text(encoding="utf-8")


def _read_optional(path: Path) -> Optional[str]:
    try:
        return path.read_text(encoding="utf-8")
    except OSError as e:
        logger.warning("Persona file not loaded", extra={"extra": {"path": str(path), "error": str(e)}})
        return None


def load_persona(data_dir: str | Path) -> PersonaProfile:
    """读取人设文件。

    - facts.json 不存在：facts 为 None，提示词退化为 me.txt 或通用助手提示。
    - facts.json 无法解析：使用 DEFAULT_FACTS。
    - linkedin.txt 不存在：使用占位文本。
    """

    root = Path(data_dir)
    with ThreadPoolExecutor(max_workers=len(PERSONA_FILES)) as pool:
        contents: Dict[str, Optional[str]] = dict(
            zip(PERSONA_FILES, pool.map(_read_optional, [root / f for f in PERSONA_FILES]))
        )

    facts: Optional[PersonaFacts] = None
    raw_facts = contents["facts.json"]
    if raw_facts is not None:
        try:
            facts = PersonaFacts.from_dict(json.loads(raw_facts))
        except (ValueError, KeyError, TypeError) as e:
            logger.error("Invalid facts.json, using default persona", extra={"extra": {"error": str(e)}})
            facts = DEFAULT_FACTS

    profile = PersonaProfile(
        facts=facts,
        summary=contents["summary.txt"] or "",
        style=contents["style.txt"] or "",
        linkedin=contents["linkedin.txt"] if contents["linkedin.txt"] is not None else LINKEDIN_MISSING,
        me_text=contents["me.txt"] or "",
    )
    logger.info(
        "Persona loaded",
        extra={"extra": {"data_dir": str(root), "has_facts": facts is not None}},
    )
    return profile


class PersonaPromptBuilder:
    """把 PersonaProfile 渲染成 system prompt。"""

    def __init__(self, profile: PersonaProfile, template: Optional[str] = None):
        self._profile = profile
        self._template = template

    @property
    def profile(self) -> PersonaProfile:
        return self._profile

    def build(self, now: Optional[datetime] = None) -> str:
        facts = self._profile.facts
        if facts is None:
            return self._profile.me_text or GENERIC_PROMPT

        now = now or datetime.now(timezone.utc)
        template = self._template or load_prompt_template()
        return template.format(
            full_name=facts.full_name,
            name=facts.name,
            facts_json=json.dumps(facts.to_dict(), indent=2, ensure_ascii=False),
            summary=self._profile.summary,
            linkedin=self._profile.linkedin,
            style=self._profile.style,
            current_date=now.astimezone(timezone.utc).strftime("%Y-%m-%d %H:%M:%S"),
        )
