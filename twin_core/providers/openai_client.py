"""OpenAI Provider 适配器。

本模块负责：

1. 接收统一的 ChatRequest。
2. 将其转换为 OpenAI chat/completions 的 HTTP 请求格式。
3. 调用 HTTP 接口，把网络错误包装为 NetworkError、非 2xx 包装为 ApiError。
4. 将响应 JSON 解析为统一的 ChatResult。

错误分类（401/429/400/其他）不在这里做，由 agents/gateway.py 集中处理。
"""

from typing import Any, Dict

import httpx

from twin_core.domain.models import ChatRequest, ChatResult, ChatMessage, ChatChoice, ChatUsage
from twin_core.domain.exceptions import ApiError, NetworkError


DEFAULT_BASE_URL = "https://api.openai.com/v1"


class OpenAIClient:
    """OpenAI（及兼容接口）客户端实现。"""

    name = "openai"

    def __init__(self, settings):
        # Settings 里包含 base_url、api_key、超时等配置
        self._settings = settings

    def chat(self, req: ChatRequest) -> ChatResult:
        """执行一次非流式对话调用。"""

        api_key = getattr(self._settings, "openai_api_key", None)
        if not api_key:
            # 与上游 401 同样处理，Gateway 会归类为 AuthFailure
            raise ApiError(code="MISSING_API_KEY", message="OPENAI_API_KEY not set", http_status=401)
        payload = self._build_payload(req)
        base = getattr(self._settings, "openai_base_url", None) or DEFAULT_BASE_URL
        try:
            with httpx.Client(timeout=self._settings.http_timeout, trust_env=False) as client:
                resp = client.post(
                    f"{base.rstrip('/')}/chat/completions",
                    json=payload,
                    headers={
                        "Authorization": f"Bearer {api_key}",
                        "Content-Type": "application/json",
                    },
                )
        except httpx.RequestError as e:
            # DNS 失败、连接超时、读超时等
            raise NetworkError(code="NETWORK_ERROR", message=str(e) or type(e).__name__)
        if resp.status_code >= 400:
            raise ApiError(code="API_ERROR", message=self._error_message(resp), http_status=resp.status_code)
        try:
            data = resp.json()
        except ValueError as e:
            raise ApiError(code="BAD_RESPONSE", message=f"Invalid JSON from provider: {e}", http_status=resp.status_code)
        return self._parse_response(data, req)

    def _build_payload(self, req: ChatRequest) -> dict:
        """将 ChatRequest 转成 OpenAI 所需的请求 JSON。"""

        payload: Dict[str, Any] = {
            "model": req.model,
            "messages": [{"role": m.role, "content": m.content} for m in req.messages],
            "temperature": req.temperature,
            "top_p": req.top_p,
        }
        if req.max_tokens:
            payload["max_tokens"] = req.max_tokens
        return payload

    def _parse_response(self, data: dict, req: ChatRequest) -> ChatResult:
        """将原始响应 JSON 解析为统一的 ChatResult。"""

        choices: list[ChatChoice] = []
        for i, ch in enumerate(data.get("choices") or []):
            msg = ch.get("message") or {}
            choices.append(
                ChatChoice(
                    index=ch.get("index", i),
                    message=ChatMessage(
                        role=msg.get("role") or "assistant",
                        content=msg.get("content") or "",
                    ),
                    finish_reason=ch.get("finish_reason"),
                )
            )
        usage_raw = data.get("usage") or {}
        usage = None
        if usage_raw:
            usage = ChatUsage(
                prompt_tokens=usage_raw.get("prompt_tokens", 0),
                completion_tokens=usage_raw.get("completion_tokens", 0),
                total_tokens=usage_raw.get("total_tokens", 0),
            )
        return ChatResult(provider=self.name, model=data.get("model") or req.model, choices=choices, usage=usage, raw=data)

    @staticmethod
    def _error_message(resp) -> str:
        """尽量取出 {"error": {"message": ...}} 中的信息，否则返回原始文本。"""

        try:
            body = resp.json()
        except ValueError:
            return resp.text
        if isinstance(body, dict):
            err = body.get("error")
            if isinstance(err, dict) and err.get("message"):
                return str(err["message"])
            if isinstance(err, str):
                return err
        return resp.text
