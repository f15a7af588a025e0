import json
import os
from pathlib import Path
from typing import Any, List
from uuid import uuid4

from twin_core.domain.conversation import ConversationMessage
from twin_core.domain.exceptions import InvalidInput, StoreFailure


def memory_key(session_id: str) -> str:
    """会话对应的文件名 / 对象 key。"""
    return f"{session_id}.json"


def dump_messages(messages: List[ConversationMessage]) -> str:
    return json.dumps([m.to_dict() for m in messages], ensure_ascii=False, indent=2)


def parse_messages(raw: str) -> List[ConversationMessage]:
    if not raw.strip():
        return []
    data: Any = json.loads(raw)
    if not isinstance(data, list):
        raise ValueError("conversation record is not a JSON array")
    return [ConversationMessage.from_dict(item) for item in data]


class LocalConversationStore:
    """本地文件存储：每个会话一个 <session_id>.json。

    目录在第一次 save 时创建；写入先落临时文件再 os.replace。
    """

    def __init__(self, memory_dir: str | Path):
        self._root = Path(memory_dir).resolve()

    @property
    def root(self) -> Path:
        return self._root

    def load(self, session_id: str) -> List[ConversationMessage]:
        path = self._path(session_id)
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return []
        except OSError as e:
            raise StoreFailure(code="STORE_READ_ERROR", message=str(e), session_id=session_id)
        try:
            return parse_messages(raw)
        except (ValueError, KeyError, TypeError) as e:
            raise StoreFailure(code="STORE_DECODE_ERROR", message=str(e), session_id=session_id)

    def save(self, session_id: str, messages: List[ConversationMessage]) -> None:
        path = self._path(session_id)
        tmp_path = path.with_name(f"{path.name}.{uuid4().hex}.tmp")
        try:
            self._root.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(dump_messages(messages), encoding="utf-8")
            os.replace(tmp_path, path)
        except OSError as e:
            tmp_path.unlink(missing_ok=True)
            raise StoreFailure(code="STORE_WRITE_ERROR", message=str(e), session_id=session_id)

    def _path(self, session_id: str) -> Path:
        if not session_id or "/" in session_id or "\\" in session_id or session_id in {".", ".."}:
            raise InvalidInput(code="INVALID_SESSION_ID", message="Invalid session ID")
        return self._root / memory_key(session_id)
