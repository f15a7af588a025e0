"""数字分身对话引擎。

一次对话轮次：读取历史 -> 调用模型 -> 追加用户/助手两条消息 -> 整体写回。
模型调用失败时不写回任何内容。轮次之间不保留状态，全部状态都在存储中。

同一 session 的并发请求不加锁，后写入者覆盖先写入者。
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional
from uuid import uuid4
import logging
import time

from twin_core.agents.gateway import CompletionGateway
from twin_core.domain.conversation import (
    Conversation,
    ConversationMessage,
    ConversationStore,
    utc_timestamp,
)
from twin_core.domain.exceptions import InvalidInput
from twin_core.infrastructure.logging.logger import logger


@dataclass(frozen=True)
class ChatTurn:
    reply: str
    session_id: str


class TwinAgent:
    def __init__(self, store: ConversationStore, gateway: CompletionGateway):
        self._store = store
        self._gateway = gateway

    @property
    def store(self) -> ConversationStore:
        return self._store

    @property
    def gateway(self) -> CompletionGateway:
        return self._gateway

    def chat(self, message: Any, session_id: Optional[str] = None) -> ChatTurn:
        """执行一次对话轮次。

        Args:
            message: 用户输入，必须是非空字符串
            session_id: 会话ID（可选，不提供则生成新的 UUID）

        Returns:
            ChatTurn(reply, session_id)
        """
        if not isinstance(message, str) or not message:
            raise InvalidInput(code="INVALID_INPUT", message="Message is required")

        start_time = time.time()
        sid = session_id or str(uuid4())
        log_ctx: Dict[str, Any] = {
            "trace_id": f"tr-{uuid4().hex}",
            "session_id": sid,
        }
        if not session_id:
            self._log(logging.INFO, "Created new session", log_ctx)

        history = list(self._store.load(sid))
        self._log(logging.INFO, "Loaded conversation", log_ctx, message_count=len(history))

        reply = self._gateway.complete(history, message)

        timestamp = utc_timestamp()
        history.append(ConversationMessage(role="user", content=message, timestamp=timestamp))
        history.append(ConversationMessage(role="assistant", content=reply, timestamp=timestamp))
        self._store.save(sid, history)

        self._log(
            logging.INFO,
            "Completed chat turn",
            log_ctx,
            elapsed_seconds=round(time.time() - start_time, 2),
            message_count=len(history),
        )
        return ChatTurn(reply=reply, session_id=sid)

    def get_conversation(self, session_id: str) -> Conversation:
        if not session_id:
            raise InvalidInput(code="INVALID_INPUT", message="Session ID is required")
        return Conversation(session_id=session_id, messages=list(self._store.load(session_id)))

    @staticmethod
    def _log(level: int, message: str, log_ctx: Dict[str, Any], **fields: Any) -> None:
        payload = dict(log_ctx)
        payload.update(fields)
        logger.log(level, message, extra={"extra": payload})
