"""StreamRelay -- 按 request_id 转发 Provider 流式事件

每个 StreamRequest 对应一个 producer task：
    解析 Provider -> Start -> Chunk* -> End（异常时 Error，不再发送 End）

同一通道上的发送经 asyncio.Lock 串行化；不同 request_id 的事件可以交错，
但每个 request_id 自身的事件严格有序。
"""

import asyncio
import time
from collections.abc import Awaitable, Callable
from contextlib import aclosing
from dataclasses import dataclass, field
from typing import Any, Protocol

import structlog
from coursepilot.core.exceptions import CoursePilotError
from coursepilot.core.models import (
    StreamChunk,
    StreamEnd,
    StreamError,
    StreamEventType,
    StreamRequest,
    StreamRequestMessage,
    StreamStart,
)
from coursepilot.provider import ProviderCapability, estimate_tokens

log = structlog.get_logger()

ProviderResolver = Callable[[], Awaitable[ProviderCapability]]


class RelayChannel(Protocol):
    """双向通道的发送端（如一个 WebSocket 连接）"""

    channel_id: str

    async def send(self, message: dict[str, Any]) -> None: ...


class StreamConflictError(CoursePilotError):
    """同一 request_id 已有活跃的流"""

    def __init__(self, request_id: str) -> None:
        super().__init__(f"Stream {request_id!r} is already active")
        self.request_id = request_id


@dataclass
class _ActiveStream:
    channel: RelayChannel
    request: StreamRequest
    cancel_event: asyncio.Event
    task: asyncio.Task | None = field(default=None)


class StreamRelay:
    """流式事件中继"""

    def __init__(self, provider_resolver: ProviderResolver) -> None:
        """
        Args:
            provider_resolver: 异步返回当前 Provider 的可调用对象；
                每个请求调用一次，使设置变更对后续请求立即生效
        """
        self._resolve_provider = provider_resolver
        self._active: dict[str, _ActiveStream] = {}
        self._send_locks: dict[str, asyncio.Lock] = {}

    def active_request_ids(self) -> list[str]:
        """当前活跃的 request_id"""
        return list(self._active)

    def _send_lock(self, channel: RelayChannel) -> asyncio.Lock:
        lock = self._send_locks.get(channel.channel_id)
        if lock is None:
            lock = asyncio.Lock()
            self._send_locks[channel.channel_id] = lock
        return lock

    async def _send(self, channel: RelayChannel, event: Any) -> None:
        async with self._send_lock(channel):
            await channel.send(event.to_wire())

    def start(self, channel: RelayChannel, request: StreamRequest) -> asyncio.Task:
        """启动一个流

        Args:
            channel: 事件发送通道
            request: 流请求；未携带 cancel_event 时自动创建

        Returns:
            producer task

        Raises:
            StreamConflictError: request_id 已有活跃的流
        """
        request_id = request.request_id
        if request_id in self._active:
            raise StreamConflictError(request_id)

        cancel_event = request.options.cancel_event or asyncio.Event()
        request = request.model_copy(
            update={"options": request.options.model_copy(update={"cancel_event": cancel_event})}
        )

        active = _ActiveStream(channel=channel, request=request, cancel_event=cancel_event)
        self._active[request_id] = active
        active.task = asyncio.create_task(
            self._produce(active), name=f"stream-relay-{request_id}"
        )
        active.task.add_done_callback(lambda _: self._release(active))
        return active.task

    def _release(self, active: _ActiveStream) -> None:
        request_id = active.request.request_id
        if self._active.get(request_id) is active:
            del self._active[request_id]

    async def handle_message(self, channel: RelayChannel, raw: dict[str, Any]) -> asyncio.Task | None:
        """处理一条通道入站消息

        仅识别 STREAM_REQUEST；其余类型记录日志后忽略。

        Raises:
            StreamConflictError: request_id 已有活跃的流
            pydantic.ValidationError: STREAM_REQUEST 字段不合法
        """
        msg_type = raw.get("type") if isinstance(raw, dict) else None
        if msg_type != StreamEventType.STREAM_REQUEST:
            log.warning("relay_message_ignored", channel_id=channel.channel_id, type=msg_type)
            return None

        message = StreamRequestMessage.model_validate(raw)
        return self.start(channel, message.to_stream_request())

    async def channel_closed(self, channel: RelayChannel) -> None:
        """通道关闭：取消该通道上所有活跃的流，不再发送任何事件"""
        tasks = []
        for request_id, active in list(self._active.items()):
            if active.channel.channel_id != channel.channel_id:
                continue
            active.cancel_event.set()
            if active.task is not None and not active.task.done():
                active.task.cancel()
                tasks.append(active.task)
            log.info("stream_cancelled", request_id=request_id, channel_id=channel.channel_id)

        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._send_locks.pop(channel.channel_id, None)

    async def _produce(self, active: _ActiveStream) -> None:
        """producer task 主体 -- 异常不会逃出本任务"""
        request = active.request
        request_id = request.request_id
        channel = active.channel
        start_time = time.monotonic()
        chunks: list[str] = []
        chunk_count = 0

        structlog.contextvars.bind_contextvars(request_id=request_id)
        try:
            provider = await self._resolve_provider()
            await self._send(channel, StreamStart(request_id=request_id))
            log.info(
                "stream_started",
                provider=provider.provider_type.value,
                model=provider.model,
            )

            async with aclosing(provider.stream(request.messages, request.options)) as deltas:
                async for delta in deltas:
                    if active.cancel_event.is_set():
                        break
                    chunk_count += 1
                    chunks.append(delta)
                    await self._send(channel, StreamChunk(request_id=request_id, chunk=delta))

            if active.cancel_event.is_set():
                log.info("stream_aborted", chunk_count=chunk_count)
                return

            await self._send(channel, StreamEnd(request_id=request_id))
            log.info(
                "stream_completed",
                chunk_count=chunk_count,
                estimated_tokens=estimate_tokens("".join(chunks)),
                duration_ms=int((time.monotonic() - start_time) * 1000),
            )
        except asyncio.CancelledError:
            log.info("stream_task_cancelled", chunk_count=chunk_count)
            raise
        except Exception as e:
            log.warning("stream_failed", error_type=type(e).__name__, error=str(e))
            if not active.cancel_event.is_set():
                await self._send_error(channel, request_id, str(e) or type(e).__name__)
        finally:
            structlog.contextvars.unbind_contextvars("request_id")

    async def _send_error(self, channel: RelayChannel, request_id: str, message: str) -> None:
        try:
            await self._send(channel, StreamError(request_id=request_id, error=message))
        except Exception as e:
            # 通道已不可用
            log.warning("stream_error_undeliverable", error=str(e))

    async def shutdown(self) -> None:
        """取消全部活跃的流（应用关闭时）"""
        tasks = []
        for active in list(self._active.values()):
            active.cancel_event.set()
            if active.task is not None and not active.task.done():
                active.task.cancel()
                tasks.append(active.task)
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._send_locks.clear()
