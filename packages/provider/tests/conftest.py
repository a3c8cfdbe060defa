"""Provider 包测试 fixtures"""

import json
from collections.abc import Callable

import httpx
import pytest
from coursepilot.core.models import Message, MessageRole


class StreamingTransport:
    """返回流式响应体的 MockTransport 工厂，记录收到的请求"""

    def __init__(self, chunks: list[bytes], status_code: int = 200) -> None:
        self.chunks = chunks
        self.status_code = status_code
        self.requests: list[httpx.Request] = []

    def _handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)

        async def body():
            for chunk in self.chunks:
                yield chunk

        return httpx.Response(self.status_code, content=body())

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self._handler))

    @property
    def last_json(self) -> dict:
        return json.loads(self.requests[-1].content)


@pytest.fixture
def sample_messages() -> list[Message]:
    """单轮对话"""
    return [Message(role=MessageRole.USER, content="Hello, world!")]


@pytest.fixture
def multi_turn_messages() -> list[Message]:
    """多轮对话（含 system）"""
    return [
        Message(role=MessageRole.SYSTEM, content="You are a helpful assistant."),
        Message(role=MessageRole.USER, content="What is Python?"),
        Message(role=MessageRole.ASSISTANT, content="Python is a programming language."),
        Message(role=MessageRole.USER, content="Tell me more."),
    ]


@pytest.fixture
def streaming_transport() -> Callable[..., StreamingTransport]:
    return StreamingTransport
