from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional, Protocol


MessageRole = Literal["user", "assistant"]


def utc_timestamp(now: Optional[datetime] = None) -> str:
    """ISO-8601 UTC 时间戳，毫秒精度，以 Z 结尾。"""
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass(frozen=True)
class ConversationMessage:
    role: MessageRole
    content: str
    timestamp: str

    def to_dict(self) -> Dict[str, Any]:
        return {"role": self.role, "content": self.content, "timestamp": self.timestamp}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConversationMessage":
        return cls(
            role=data["role"],
            content=data.get("content") or "",
            timestamp=str(data.get("timestamp") or ""),
        )


@dataclass
class Conversation:
    session_id: str
    messages: List[ConversationMessage] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "messages": [m.to_dict() for m in self.messages],
        }


class ConversationStore(Protocol):
    """按 session_id 保存完整消息列表。

    load 对不存在的会话返回空列表；save 整体覆盖，不做合并。
    """

    def load(self, session_id: str) -> List[ConversationMessage]:
        ...

    def save(self, session_id: str, messages: List[ConversationMessage]) -> None:
        ...
