"""模型调用网关。

负责拼装发给模型的消息（system prompt + 最近 20 条历史 + 新的用户消息），
调用 Provider，并把上游错误归类为少量业务异常。
"""

import logging
from typing import Any, Dict, List, Sequence

from twin_core.domain.conversation import ConversationMessage
from twin_core.domain.exceptions import (
    ApiError,
    AuthFailure,
    BusinessError,
    EmptyCompletion,
    InvalidRequest,
    RateLimited,
    UpstreamError,
)
from twin_core.domain.models import ChatMessage, ChatRequest
from twin_core.infrastructure.logging.logger import logger
from twin_core.prompts.persona import PersonaPromptBuilder
from twin_core.providers.base import ProviderClient

# 上下文窗口策略：固定为最近 20 条
MAX_HISTORY_MESSAGES = 20
MAX_TOKENS = 2000
TEMPERATURE = 0.7
TOP_P = 0.9

_AUTH_HINTS = ("invalid api key", "incorrect api key", "unauthorized", "authentication")
_RATE_HINTS = ("rate limit", "quota", "too many requests")


def classify_upstream_error(exc: BusinessError) -> BusinessError:
    """把 Provider 抛出的原始错误映射为 AuthFailure / RateLimited / InvalidRequest / UpstreamError。

    上游没有干净的错误类型，只能看状态码和错误信息。
    """

    status = exc.http_status if isinstance(exc, ApiError) else None
    text = (exc.message or "").lower()

    # 有状态码时只按状态码分类，文字提示仅用于没有状态码的错误
    if status is not None:
        if status in (401, 403):
            return _auth_failure(status)
        if status == 429:
            return _rate_limited(status)
        if status == 400:
            return InvalidRequest(code="INVALID_REQUEST", message="Invalid message format for OpenAI", http_status=status)
    elif any(h in text for h in _AUTH_HINTS):
        return _auth_failure(status)
    elif any(h in text for h in _RATE_HINTS):
        return _rate_limited(status)
    return UpstreamError(code="UPSTREAM_ERROR", message=f"OpenAI error: {exc.message}", http_status=status)


def _auth_failure(status):
    return AuthFailure(code="AUTH_FAILURE", message="Invalid OpenAI API key", http_status=status)


def _rate_limited(status):
    return RateLimited(
        code="RATE_LIMITED",
        message="OpenAI rate limit exceeded. Please try again later.",
        http_status=status,
    )


class CompletionGateway:
    def __init__(
        self,
        provider_client: ProviderClient,
        persona_builder: PersonaPromptBuilder,
        model: str,
    ):
        self._provider_client = provider_client
        self._persona_builder = persona_builder
        self._model = model

    @property
    def model(self) -> str:
        return self._model

    def build_messages(self, history: Sequence[ConversationMessage], user_text: str) -> List[ChatMessage]:
        chat_messages = [ChatMessage(role="system", content=self._persona_builder.build())]
        for msg in list(history)[-MAX_HISTORY_MESSAGES:]:
            chat_messages.append(ChatMessage(role=msg.role, content=msg.content))
        chat_messages.append(ChatMessage(role="user", content=user_text))
        return chat_messages

    def complete(self, history: Sequence[ConversationMessage], user_text: str) -> str:
        """调用模型并返回非空回复文本。

        Raises:
            AuthFailure / RateLimited / InvalidRequest / UpstreamError: 上游失败。
            EmptyCompletion: 模型没有返回内容。
        """
        messages = self.build_messages(history, user_text)
        if len(history) > MAX_HISTORY_MESSAGES:
            self._log(
                logging.INFO,
                "Truncated context",
                max_context=MAX_HISTORY_MESSAGES,
                trimmed=len(history) - MAX_HISTORY_MESSAGES,
            )
        req = ChatRequest(
            model=self._model,
            messages=messages,
            temperature=TEMPERATURE,
            top_p=TOP_P,
            max_tokens=MAX_TOKENS,
        )
        self._log(
            logging.INFO,
            "Calling provider",
            provider=getattr(self._provider_client, "name", "unknown"),
            model=self._model,
            message_count=len(messages),
        )
        try:
            result = self._provider_client.chat(req)
        except BusinessError as e:
            classified = classify_upstream_error(e)
            self._log(
                logging.ERROR,
                "Provider call failed",
                error_code=classified.code,
                upstream_status=e.http_status,
                error=e.message,
            )
            raise classified from e

        content = result.text
        if not content:
            self._log(logging.ERROR, "Empty completion", model=self._model)
            raise EmptyCompletion(code="EMPTY_COMPLETION", message="Empty response from OpenAI")
        if result.usage:
            self._log(
                logging.INFO,
                "Token usage",
                prompt_tokens=result.usage.prompt_tokens,
                completion_tokens=result.usage.completion_tokens,
                total_tokens=result.usage.total_tokens,
            )
        return content

    @staticmethod
    def _log(level: int, message: str, **fields: Any) -> None:
        payload: Dict[str, Any] = dict(fields)
        logger.log(level, message, extra={"extra": payload})
