"""OpenAI Chat Completions 流式适配器

Gateway 适配器复用同一 wire 格式。
"""

from typing import Any

from coursepilot.core.models import Message, ProviderType, StreamOptions

from .base import (
    VALIDATE_MAX_TOKENS,
    VALIDATE_PROMPT,
    HTTPStreamingProvider,
    dig,
    sse_data_json,
)

CHAT_COMPLETIONS_PATH = "/v1/chat/completions"


class OpenAIProvider(HTTPStreamingProvider):
    """OpenAI 适配器

    system 消息原样保留在 messages 中；增量来自 choices[0].delta.content。
    """

    provider_type = ProviderType.OPENAI
    default_base_url = "https://api.openai.com"

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def _stream_request(self, messages: list[Message], options: StreamOptions):
        body: dict[str, Any] = {
            "model": self.model,
            "max_tokens": options.effective_max_tokens,
            "temperature": options.effective_temperature,
            "messages": [{"role": m.role.value, "content": m.content} for m in messages],
            "stream": True,
        }
        return f"{self.base_url}{CHAT_COMPLETIONS_PATH}", self._headers(), body, {}

    def _validate_request(self):
        body = {
            "model": self.model,
            "max_tokens": VALIDATE_MAX_TOKENS,
            "messages": [{"role": "user", "content": VALIDATE_PROMPT}],
        }
        return f"{self.base_url}{CHAT_COMPLETIONS_PATH}", self._headers(), body, {}

    def _extract_delta(self, envelope: Any) -> str | None:
        content = dig(sse_data_json(envelope), "choices", 0, "delta", "content")
        return content if isinstance(content, str) else None
