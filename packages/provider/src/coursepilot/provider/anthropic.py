"""Anthropic Messages API 流式适配器"""

from typing import Any

from coursepilot.core.models import Message, ProviderType, StreamOptions, split_system_message

from .base import (
    VALIDATE_MAX_TOKENS,
    VALIDATE_PROMPT,
    HTTPStreamingProvider,
    dig,
    sse_data_json,
)
from .framing import SSEEnvelope

ANTHROPIC_API_VERSION = "2023-06-01"

# 仅此事件类型携带增量文本
_DELTA_EVENT = "content_block_delta"


class AnthropicProvider(HTTPStreamingProvider):
    """Anthropic 适配器

    system 消息提升为顶层 system 字段；增量只来自
    event: content_block_delta 的 delta.text。
    """

    provider_type = ProviderType.ANTHROPIC
    default_base_url = "https://api.anthropic.com"

    def _headers(self) -> dict[str, str]:
        return {
            "x-api-key": self.api_key,
            "anthropic-version": ANTHROPIC_API_VERSION,
            "content-type": "application/json",
        }

    def _stream_request(self, messages: list[Message], options: StreamOptions):
        system, rest = split_system_message(messages)
        body: dict[str, Any] = {
            "model": self.model,
            "max_tokens": options.effective_max_tokens,
            "temperature": options.effective_temperature,
            "messages": [{"role": m.role.value, "content": m.content} for m in rest],
            "stream": True,
        }
        if system is not None:
            body["system"] = system.content
        return f"{self.base_url}/v1/messages", self._headers(), body, {}

    def _validate_request(self):
        body = {
            "model": self.model,
            "max_tokens": VALIDATE_MAX_TOKENS,
            "messages": [{"role": "user", "content": VALIDATE_PROMPT}],
        }
        return f"{self.base_url}/v1/messages", self._headers(), body, {}

    def _extract_delta(self, envelope: Any) -> str | None:
        if not isinstance(envelope, SSEEnvelope) or envelope.event != _DELTA_EVENT:
            return None
        text = dig(sse_data_json(envelope), "delta", "text")
        return text if isinstance(text, str) else None
