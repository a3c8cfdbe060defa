"""Gemini generateContent 流式适配器

默认以 alt=sse 请求 SSE 帧；use_sse=False 时服务端返回数组包裹的
流式 JSON，改用 NDJSON framer。

API key 位于 query string，日志中不得出现请求 URL。
"""

from collections.abc import AsyncIterator
from typing import Any

import httpx
from coursepilot.core.models import (
    Message,
    MessageRole,
    ProviderType,
    StreamOptions,
    split_system_message,
)

from .base import (
    VALIDATE_MAX_TOKENS,
    VALIDATE_PROMPT,
    HTTPStreamingProvider,
    dig,
    sse_data_json,
)
from .framing import iter_ndjson_objects


def _gemini_role(role: MessageRole) -> str:
    return "model" if role == MessageRole.ASSISTANT else "user"


def _contents(messages: list[Message]) -> list[dict[str, Any]]:
    return [
        {"role": _gemini_role(m.role), "parts": [{"text": m.content}]}
        for m in messages
    ]


class GeminiProvider(HTTPStreamingProvider):
    """Gemini 适配器

    system 消息放入 systemInstruction；assistant 角色映射为 "model"；
    增量来自 candidates[0].content.parts[0].text。
    """

    provider_type = ProviderType.GEMINI
    default_base_url = "https://generativelanguage.googleapis.com/v1beta"

    def __init__(self, *args: Any, use_sse: bool = True, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.use_sse = use_sse

    def _headers(self) -> dict[str, str]:
        return {"Content-Type": "application/json"}

    def _model_url(self, method: str) -> str:
        return f"{self.base_url}/models/{self.model}:{method}"

    def _stream_request(self, messages: list[Message], options: StreamOptions):
        system, rest = split_system_message(messages)
        body: dict[str, Any] = {
            "contents": _contents(rest),
            "generationConfig": {
                "maxOutputTokens": options.effective_max_tokens,
                "temperature": options.effective_temperature,
            },
        }
        if system is not None:
            body["systemInstruction"] = {"parts": [{"text": system.content}]}

        params = {"key": self.api_key}
        if self.use_sse:
            params["alt"] = "sse"
        return self._model_url("streamGenerateContent"), self._headers(), body, params

    def _validate_request(self):
        body = {
            "contents": [{"role": "user", "parts": [{"text": VALIDATE_PROMPT}]}],
            "generationConfig": {"maxOutputTokens": VALIDATE_MAX_TOKENS},
        }
        return self._model_url("generateContent"), self._headers(), body, {"key": self.api_key}

    def _iter_envelopes(
        self, response: httpx.Response, options: StreamOptions
    ) -> AsyncIterator[Any]:
        if self.use_sse:
            return super()._iter_envelopes(response, options)
        return iter_ndjson_objects(response.aiter_bytes(), options.cancel_event)

    def _extract_delta(self, envelope: Any) -> str | None:
        text = dig(sse_data_json(envelope), "candidates", 0, "content", "parts", 0, "text")
        return text if isinstance(text, str) else None
