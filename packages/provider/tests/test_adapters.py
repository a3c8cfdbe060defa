"""Provider 适配器测试 -- httpx.MockTransport 模拟各家 wire 格式

每个适配器验证：
1. 拼接所有增量 == 完整文本（任意切分）
2. 请求 URL / 鉴权头 / 请求体符合该 Provider 约定
3. 非 2xx 抛出 TransportError
4. validate() 2xx -> True，其余 -> False，从不抛异常
"""

import json

import httpx
import pytest
from coursepilot.core.exceptions import TransportError
from coursepilot.core.models import StreamOptions
from coursepilot.provider import (
    AnthropicProvider,
    GatewayProvider,
    GeminiProvider,
    OpenAIProvider,
)


def _sse(data: dict | str, event: str | None = None) -> str:
    payload = data if isinstance(data, str) else json.dumps(data)
    prefix = f"event: {event}\n" if event else ""
    return f"{prefix}data: {payload}\n\n"


def _split_every(raw: bytes, size: int) -> list[bytes]:
    return [raw[i : i + size] for i in range(0, len(raw), size)]


async def _collect(provider, messages, options=None) -> list[str]:
    return [delta async for delta in provider.stream(messages, options)]


def _anthropic_body(texts: list[str]) -> bytes:
    parts = [_sse({"type": "message_start", "message": {"id": "msg_1"}}, "message_start")]
    parts.append(
        _sse({"type": "content_block_start", "index": 0}, "content_block_start")
    )
    for text in texts:
        parts.append(
            _sse(
                {"type": "content_block_delta", "index": 0, "delta": {"type": "text_delta", "text": text}},
                "content_block_delta",
            )
        )
    parts.append(_sse({"type": "message_stop"}, "message_stop"))
    return "".join(parts).encode()


def _openai_body(texts: list[str]) -> bytes:
    parts = [_sse({"choices": [{"index": 0, "delta": {"role": "assistant"}}]})]
    for text in texts:
        parts.append(_sse({"choices": [{"index": 0, "delta": {"content": text}}]}))
    parts.append(_sse({"choices": [{"index": 0, "delta": {}, "finish_reason": "stop"}]}))
    parts.append(_sse("[DONE]"))
    return "".join(parts).encode()


def _gemini_object(text: str) -> dict:
    return {"candidates": [{"content": {"role": "model", "parts": [{"text": text}]}}]}


def _gemini_sse_body(texts: list[str]) -> bytes:
    return "".join(_sse(_gemini_object(t)) for t in texts).encode()


TEXTS = ["Hel", "lo, ", "wörld", " 你好"]
FULL_TEXT = "".join(TEXTS)


class TestAnthropicProvider:
    @pytest.mark.parametrize("chunk_size", [1, 7, 64, 100_000])
    async def test_stream_concatenation(self, streaming_transport, sample_messages, chunk_size):
        transport = streaming_transport(_split_every(_anthropic_body(TEXTS), chunk_size))
        async with transport.client() as client:
            provider = AnthropicProvider("sk-ant", "claude-test", http_client=client)
            deltas = await _collect(provider, sample_messages)
        assert "".join(deltas) == FULL_TEXT

    async def test_request_shape(self, streaming_transport, multi_turn_messages):
        transport = streaming_transport([_anthropic_body(["ok"])])
        async with transport.client() as client:
            provider = AnthropicProvider("sk-ant", "claude-test", http_client=client)
            await _collect(provider, multi_turn_messages, StreamOptions(max_tokens=100))

        request = transport.requests[-1]
        assert str(request.url) == "https://api.anthropic.com/v1/messages"
        assert request.headers["x-api-key"] == "sk-ant"
        assert request.headers["anthropic-version"] == "2023-06-01"
        body = transport.last_json
        assert body["system"] == "You are a helpful assistant."
        assert [m["role"] for m in body["messages"]] == ["user", "assistant", "user"]
        assert body["max_tokens"] == 100
        assert body["temperature"] == 0.7
        assert body["stream"] is True

    async def test_ignores_other_events(self, streaming_transport, sample_messages):
        raw = (
            _sse({"delta": {"text": "ignored"}}, "message_delta")
            + _sse({"delta": {"text": "kept"}}, "content_block_delta")
            + _sse("not json", "content_block_delta")
        ).encode()
        transport = streaming_transport([raw])
        async with transport.client() as client:
            provider = AnthropicProvider("sk-ant", "claude-test", http_client=client)
            assert await _collect(provider, sample_messages) == ["kept"]

    async def test_error_status_raises(self, streaming_transport, sample_messages):
        transport = streaming_transport([b'{"error":"invalid x-api-key"}'], status_code=401)
        async with transport.client() as client:
            provider = AnthropicProvider("bad", "claude-test", http_client=client)
            with pytest.raises(TransportError) as exc_info:
                await _collect(provider, sample_messages)
        assert exc_info.value.status_code == 401
        assert "anthropic API error (401)" in str(exc_info.value)
        assert "invalid x-api-key" in str(exc_info.value)
        assert exc_info.value.recoverable is False


class TestOpenAIProvider:
    @pytest.mark.parametrize("chunk_size", [1, 13, 100_000])
    async def test_stream_concatenation(self, streaming_transport, sample_messages, chunk_size):
        transport = streaming_transport(_split_every(_openai_body(TEXTS), chunk_size))
        async with transport.client() as client:
            provider = OpenAIProvider("sk-oa", "gpt-test", http_client=client)
            deltas = await _collect(provider, sample_messages)
        assert "".join(deltas) == FULL_TEXT

    async def test_request_keeps_system_role(self, streaming_transport, multi_turn_messages):
        transport = streaming_transport([_openai_body(["ok"])])
        async with transport.client() as client:
            provider = OpenAIProvider("sk-oa", "gpt-test", http_client=client)
            await _collect(provider, multi_turn_messages, StreamOptions(temperature=0.2))

        request = transport.requests[-1]
        assert str(request.url) == "https://api.openai.com/v1/chat/completions"
        assert request.headers["authorization"] == "Bearer sk-oa"
        body = transport.last_json
        assert body["messages"][0] == {"role": "system", "content": "You are a helpful assistant."}
        assert body["temperature"] == 0.2
        assert body["max_tokens"] == 4096

    async def test_server_error_is_recoverable(self, streaming_transport, sample_messages):
        transport = streaming_transport([b"upstream overloaded"], status_code=503)
        async with transport.client() as client:
            provider = OpenAIProvider("sk-oa", "gpt-test", http_client=client)
            with pytest.raises(TransportError) as exc_info:
                await _collect(provider, sample_messages)
        assert exc_info.value.recoverable is True


class TestGatewayProvider:
    async def test_default_url_without_auth(self, streaming_transport, sample_messages):
        transport = streaming_transport([_openai_body(TEXTS)])
        async with transport.client() as client:
            provider = GatewayProvider("", "default", http_client=client)
            deltas = await _collect(provider, sample_messages)

        assert "".join(deltas) == FULL_TEXT
        request = transport.requests[-1]
        assert str(request.url) == "http://127.0.0.1:18789/v1/chat/completions"
        assert "authorization" not in request.headers

    async def test_custom_url_with_key(self, streaming_transport, sample_messages):
        transport = streaming_transport([_openai_body(["ok"])])
        async with transport.client() as client:
            provider = GatewayProvider(
                "gw-key", "default", base_url="http://gateway.local:9000/", http_client=client
            )
            await _collect(provider, sample_messages)

        request = transport.requests[-1]
        assert str(request.url) == "http://gateway.local:9000/v1/chat/completions"
        assert request.headers["authorization"] == "Bearer gw-key"


class TestGeminiProvider:
    @pytest.mark.parametrize("chunk_size", [1, 17, 100_000])
    async def test_sse_stream_concatenation(self, streaming_transport, sample_messages, chunk_size):
        transport = streaming_transport(_split_every(_gemini_sse_body(TEXTS), chunk_size))
        async with transport.client() as client:
            provider = GeminiProvider("g-key", "gemini-test", http_client=client)
            deltas = await _collect(provider, sample_messages)
        assert "".join(deltas) == FULL_TEXT

    async def test_request_shape(self, streaming_transport, multi_turn_messages):
        transport = streaming_transport([_gemini_sse_body(["ok"])])
        async with transport.client() as client:
            provider = GeminiProvider("g-key", "gemini-test", http_client=client)
            await _collect(provider, multi_turn_messages, StreamOptions(max_tokens=64))

        url = transport.requests[-1].url
        assert url.path == "/v1beta/models/gemini-test:streamGenerateContent"
        assert url.params["alt"] == "sse"
        assert url.params["key"] == "g-key"
        body = transport.last_json
        assert body["systemInstruction"] == {"parts": [{"text": "You are a helpful assistant."}]}
        assert [c["role"] for c in body["contents"]] == ["user", "model", "user"]
        assert body["generationConfig"] == {"maxOutputTokens": 64, "temperature": 0.7}

    @pytest.mark.parametrize("chunk_size", [1, 9, 100_000])
    async def test_ndjson_mode(self, streaming_transport, sample_messages, chunk_size):
        raw = json.dumps([_gemini_object(t) for t in TEXTS], indent=1).encode()
        transport = streaming_transport(_split_every(raw, chunk_size))
        async with transport.client() as client:
            provider = GeminiProvider("g-key", "gemini-test", http_client=client, use_sse=False)
            deltas = await _collect(provider, sample_messages)

        assert "".join(deltas) == FULL_TEXT
        assert "alt" not in transport.requests[-1].url.params

    async def test_error_status_raises(self, streaming_transport, sample_messages):
        transport = streaming_transport([b'{"error":{"code":400}}'], status_code=400)
        async with transport.client() as client:
            provider = GeminiProvider("g-key", "gemini-test", http_client=client)
            with pytest.raises(TransportError, match=r"gemini API error \(400\)"):
                await _collect(provider, sample_messages)


class TestValidate:
    @staticmethod
    def _client(status_code: int, seen: list[httpx.Request]) -> httpx.AsyncClient:
        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(status_code, json={})

        return httpx.AsyncClient(transport=httpx.MockTransport(handler))

    @pytest.mark.parametrize(
        "provider_cls", [AnthropicProvider, OpenAIProvider, GeminiProvider, GatewayProvider]
    )
    async def test_success(self, provider_cls):
        seen: list[httpx.Request] = []
        async with self._client(200, seen) as client:
            provider = provider_cls("key", "model", http_client=client)
            assert await provider.validate() is True
        assert len(seen) == 1

    @pytest.mark.parametrize("status_code", [400, 401, 403, 500])
    async def test_non_success(self, status_code):
        seen: list[httpx.Request] = []
        async with self._client(status_code, seen) as client:
            provider = OpenAIProvider("key", "model", http_client=client)
            assert await provider.validate() is False

    async def test_network_error_returns_false(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("Connection refused")

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            provider = AnthropicProvider("key", "model", http_client=client)
            assert await provider.validate() is False

    async def test_minimal_request(self):
        seen: list[httpx.Request] = []
        async with self._client(200, seen) as client:
            await AnthropicProvider("key", "model", http_client=client).validate()
            await GeminiProvider("key", "model", http_client=client).validate()

        anthropic_body = json.loads(seen[0].content)
        assert anthropic_body["max_tokens"] == 10
        assert "stream" not in anthropic_body

        gemini_request = seen[1]
        assert gemini_request.url.path.endswith("/models/model:generateContent")
        assert json.loads(gemini_request.content)["generationConfig"] == {"maxOutputTokens": 10}
