"""Provider 能力接口 + HTTP 流式适配器基类

所有 Provider 只在 wire envelope 上不同，契约一致：
- stream(messages, options) -> 惰性、有限、不可重启的增量文本序列
- validate() -> bool，从不抛异常
"""

import json
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any, Protocol, runtime_checkable

import httpx
import structlog
from coursepilot.core.exceptions import TransportError
from coursepilot.core.models import Message, ProviderType, StreamOptions

from .framing import SSEEnvelope, iter_sse_envelopes

log = structlog.get_logger()

# validate() 使用的极小生成长度
VALIDATE_MAX_TOKENS = 10

# validate() 请求超时（秒），应快速响应
VALIDATE_TIMEOUT_S = 10

# validate() 使用的探测消息
VALIDATE_PROMPT = "Hi"


@runtime_checkable
class ProviderCapability(Protocol):
    """推理 Provider 能力接口"""

    provider_type: ProviderType
    model: str

    def stream(
        self,
        messages: list[Message],
        options: StreamOptions | None = None,
    ) -> AsyncIterator[str]:
        """流式生成，产出增量文本"""
        ...

    async def validate(self) -> bool:
        """低成本探测凭据是否可用"""
        ...


def dig(obj: Any, *path: str | int) -> Any:
    """按路径安全取值，任一环节缺失或类型不符返回 None

    Example:
        dig(data, "choices", 0, "delta", "content")
    """
    current = obj
    for key in path:
        if isinstance(key, int):
            if not isinstance(current, list) or len(current) <= key:
                return None
        elif not isinstance(current, dict) or key not in current:
            return None
        current = current[key]
    return current


def load_json(data: str) -> Any:
    """解析 envelope payload，失败返回 None（畸形 envelope 静默跳过）"""
    try:
        return json.loads(data)
    except (json.JSONDecodeError, TypeError):
        log.debug("envelope_unparseable", length=len(data) if isinstance(data, str) else None)
        return None


class HTTPStreamingProvider:
    """基于 httpx 的流式 Provider 基类

    子类实现 wire 相关的钩子：
        _stream_request() / _validate_request() / _extract_delta()
    以及可选的 _iter_envelopes()（默认 SSE framer）。
    """

    provider_type: ProviderType
    default_base_url: str = ""

    def __init__(
        self,
        api_key: str,
        model: str,
        *,
        base_url: str | None = None,
        timeout_s: float = 30,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Args:
            api_key: Provider API key
            model: 模型标识
            base_url: API 基础 URL，None 使用默认值
            timeout_s: 请求超时（秒）
            http_client: 注入的 httpx 客户端（测试或共享连接池），不由本类关闭
        """
        self.api_key = api_key
        self.model = model
        self.base_url = (base_url or self.default_base_url).rstrip("/")
        self._timeout_s = timeout_s
        self._http_client = http_client

    @property
    def service_name(self) -> str:
        return self.provider_type.value

    # ---- wire 钩子 ----

    def _stream_request(
        self, messages: list[Message], options: StreamOptions
    ) -> tuple[str, dict[str, str], dict[str, Any], dict[str, str]]:
        """返回 (url, headers, json_body, query_params)"""
        raise NotImplementedError

    def _validate_request(self) -> tuple[str, dict[str, str], dict[str, Any], dict[str, str]]:
        """返回 validate 探测请求的 (url, headers, json_body, query_params)"""
        raise NotImplementedError

    def _extract_delta(self, envelope: Any) -> str | None:
        """从一个 envelope 中提取增量文本，无增量返回 None"""
        raise NotImplementedError

    def _iter_envelopes(
        self, response: httpx.Response, options: StreamOptions
    ) -> AsyncIterator[Any]:
        return iter_sse_envelopes(response.aiter_bytes(), options.cancel_event)

    # ---- 公共接口 ----

    @asynccontextmanager
    async def _client_session(self):
        if self._http_client is not None:
            yield self._http_client
            return
        async with httpx.AsyncClient(timeout=httpx.Timeout(self._timeout_s)) as client:
            yield client

    async def stream(
        self,
        messages: list[Message],
        options: StreamOptions | None = None,
    ) -> AsyncIterator[str]:
        """流式生成

        Args:
            messages: 有序对话消息
            options: max_tokens / temperature / cancel_event

        Yields:
            增量文本，按到达顺序

        Raises:
            TransportError: Provider 返回非 2xx（致命，不重试）
        """
        options = options or StreamOptions()
        url, headers, body, params = self._stream_request(messages, options)
        start_time = time.monotonic()
        chunk_count = 0

        log.debug(
            "provider_stream_start",
            provider=self.service_name,
            model=self.model,
            message_count=len(messages),
        )

        async with self._client_session() as client:
            async with client.stream(
                "POST", url, headers=headers, json=body, params=params
            ) as response:
                if not response.is_success:
                    raw = await response.aread()
                    error_body = raw.decode("utf-8", errors="replace")
                    log.warning(
                        "provider_stream_rejected",
                        provider=self.service_name,
                        status_code=response.status_code,
                    )
                    raise TransportError(self.service_name, response.status_code, error_body)

                async for envelope in self._iter_envelopes(response, options):
                    delta = self._extract_delta(envelope)
                    if not delta:
                        continue
                    chunk_count += 1
                    yield delta

        log.info(
            "provider_stream_completed",
            provider=self.service_name,
            model=self.model,
            chunk_count=chunk_count,
            cancelled=options.cancelled,
            duration_ms=int((time.monotonic() - start_time) * 1000),
        )

    async def validate(self) -> bool:
        """发送极小请求验证凭据

        Returns:
            True 仅当响应为 2xx；其余结果（包括网络异常）返回 False

        注意: 此方法不抛出异常，所有异常内部捕获并返回 False。
        """
        url, headers, body, params = self._validate_request()
        try:
            async with self._client_session() as client:
                resp = await client.post(
                    url,
                    headers=headers,
                    json=body,
                    params=params,
                    timeout=VALIDATE_TIMEOUT_S,
                )
                return resp.is_success
        except Exception as e:
            log.debug("provider_validate_failed", provider=self.service_name, error=str(e))
            return False


def sse_data_json(envelope: Any) -> Any:
    """取出 SSE envelope 的 JSON payload；非 SSE envelope 原样返回"""
    if isinstance(envelope, SSEEnvelope):
        return load_json(envelope.data)
    return envelope
