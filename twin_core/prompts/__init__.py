"""系统提示词与人设加载。

按语言(locale) 从 prompts/<locale> 目录读取提示词模板，
由 PersonaPromptBuilder 填入人设字段后作为 system 消息。
"""

from twin_core.prompts.persona import (
    PROMPTS_DIR,
    PersonaPromptBuilder,
    load_persona,
    load_prompt_template,
)

__all__ = ["PROMPTS_DIR", "PersonaPromptBuilder", "load_persona", "load_prompt_template"]
