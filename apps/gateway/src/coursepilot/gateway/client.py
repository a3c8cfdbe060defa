"""Relay 消费端 -- 按 request_id 拆分交错的流式事件

一个通道上可能同时存在多个流；StreamDemultiplexer 把收到的事件
分发到各自 request_id 的队列，collect_stream() 组装完整文本。
"""

import asyncio
from collections.abc import Callable
from typing import Any

import structlog
from coursepilot.core.exceptions import CoursePilotError
from coursepilot.core.models import (
    StreamChunk,
    StreamError,
    is_terminal_event,
    parse_stream_event,
)
from pydantic import ValidationError
from ulid import ULID

log = structlog.get_logger()


def new_request_id() -> str:
    """生成新的 request_id（req-<ULID>）"""
    return f"req-{ULID()}"


class StreamFailedError(CoursePilotError):
    """流以 STREAM_ERROR 结束"""

    def __init__(self, request_id: str, error: str) -> None:
        super().__init__(error)
        self.request_id = request_id
        self.error = error


class StreamDemultiplexer:
    """事件分发器

    必须先 register(request_id) 再发送请求，避免丢失早到的事件；
    未注册 request_id 的事件记录日志后丢弃。
    """

    def __init__(self) -> None:
        self._queues: dict[str, asyncio.Queue] = {}

    def register(self, request_id: str) -> asyncio.Queue:
        if request_id in self._queues:
            raise ValueError(f"request_id {request_id!r} already registered")
        queue: asyncio.Queue = asyncio.Queue()
        self._queues[request_id] = queue
        return queue

    def unregister(self, request_id: str) -> None:
        self._queues.pop(request_id, None)

    def dispatch(self, message: dict[str, Any]) -> bool:
        """分发一条通道事件

        Returns:
            True 如果事件已投递到某个已注册的 request_id
        """
        try:
            event = parse_stream_event(message)
        except ValidationError:
            log.debug("stream_event_unparseable", type=message.get("type"))
            return False

        queue = self._queues.get(event.request_id)
        if queue is None:
            log.debug("stream_event_unrouted", request_id=event.request_id, type=event.type)
            return False
        queue.put_nowait(event)
        return True

    async def collect_stream(
        self,
        request_id: str,
        on_chunk: Callable[[str], None] | None = None,
    ) -> str:
        """等待 request_id 的流结束并返回完整文本

        Args:
            request_id: 已 register 的请求标识
            on_chunk: 每个增量到达时的回调

        Returns:
            所有 chunk 按序拼接的文本

        Raises:
            StreamFailedError: 流以 STREAM_ERROR 结束
        """
        queue = self._queues.get(request_id)
        if queue is None:
            queue = self.register(request_id)
        parts: list[str] = []
        try:
            while True:
                event = await queue.get()
                if isinstance(event, StreamError):
                    raise StreamFailedError(request_id, event.error)
                if isinstance(event, StreamChunk):
                    parts.append(event.chunk)
                    if on_chunk is not None:
                        on_chunk(event.chunk)
                if is_terminal_event(event):
                    return "".join(parts)
        finally:
            self.unregister(request_id)
