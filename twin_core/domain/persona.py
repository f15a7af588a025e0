"""人设（Persona）数据模型。

PersonaFacts 对应 data/facts.json 的结构化简历信息；
PersonaProfile 再加上 summary / style / linkedin 等自由文本，
进程启动时加载一次，之后只读。
"""

from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class EducationEntry:
    degree: str
    institution: str
    year: str


@dataclass(frozen=True)
class PersonaFacts:
    full_name: str
    name: str
    current_role: str
    location: str
    email: str
    linkedin: str = ""
    specialties: List[str] = field(default_factory=list)
    years_experience: int = 0
    education: List[EducationEntry] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PersonaFacts":
        if not isinstance(data, dict):
            raise ValueError("facts must be a JSON object")
        entries = data.get("education") or []
        if not all(isinstance(e, dict) for e in entries):
            raise ValueError("education entries must be JSON objects")
        education = [
            EducationEntry(
                degree=str(e.get("degree", "")),
                institution=str(e.get("institution", "")),
                year=str(e.get("year", "")),
            )
            for e in entries
        ]
        return cls(
            full_name=data["full_name"],
            name=data["name"],
            current_role=data.get("current_role", ""),
            location=data.get("location", ""),
            email=data.get("email", ""),
            linkedin=data.get("linkedin", ""),
            specialties=list(data.get("specialties") or []),
            years_experience=int(data.get("years_experience") or 0),
            education=education,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# facts.json 无法解析时使用的最小人设
DEFAULT_FACTS = PersonaFacts(
    full_name="AI Twin",
    name="Twin",
    current_role="AI Assistant",
    location="Cloud",
    email="twin@example.com",
    linkedin="",
    specialties=["AI", "Conversations"],
    years_experience=1,
    education=[],
)


@dataclass(frozen=True)
class PersonaProfile:
    """一次加载得到的完整人设上下文。facts 为 None 表示 facts.json 不存在。"""

    facts: Optional[PersonaFacts]
    summary: str = ""
    style: str = ""
    linkedin: str = ""
    me_text: str = ""
