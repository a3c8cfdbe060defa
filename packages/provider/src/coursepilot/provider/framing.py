"""Frame Parsers -- 原始字节块 -> 协议 envelope

- iter_sse_envelopes: SSE 风格（event: / data: 行）
- iter_ndjson_objects: 数组包裹的流式 JSON（[ {...}, {...} ]）

两者都支持任意位置切分的读取边界（包括行内、UTF-8 多字节字符内），
对格式错误的内容从不抛异常。
"""

import codecs
import json
import math
import re
from collections.abc import AsyncIterable, AsyncIterator
from dataclasses import dataclass
from typing import Any

import structlog

log = structlog.get_logger()

# SSE 流结束哨兵
SSE_DONE_SENTINEL = "[DONE]"

# NDJSON 缓冲区开头可丢弃的字符：空白、数组括号、分隔逗号
_NDJSON_LEADING = re.compile(r"^[\s\[\],]+")


@dataclass(frozen=True)
class SSEEnvelope:
    """一个 SSE 事件"""

    data: str
    event: str | None = None


class _SSELineParser:
    """逐行 SSE 状态机

    pending_event 跨读取边界保留，直到被 data 行刷出或被空行重置。
    """

    def __init__(self) -> None:
        self.pending_event: str | None = None
        self.done = False

    def feed(self, line: str) -> SSEEnvelope | None:
        if line.endswith("\r"):
            line = line[:-1]

        if line == "":
            self.pending_event = None
            return None

        if line.startswith("event:"):
            self.pending_event = _field_value(line, "event:").strip()
            return None

        if line.startswith("data:"):
            data = _field_value(line, "data:")
            if data.strip() == SSE_DONE_SENTINEL:
                self.done = True
                return None
            envelope = SSEEnvelope(data=data, event=self.pending_event)
            self.pending_event = None
            return envelope

        # 注释（:）/ id: / retry: 等字段忽略
        return None


def _field_value(line: str, prefix: str) -> str:
    value = line[len(prefix) :]
    if value.startswith(" "):
        value = value[1:]
    return value


def _is_cancelled(cancel_event) -> bool:
    return cancel_event is not None and cancel_event.is_set()


async def iter_sse_envelopes(
    chunks: AsyncIterable[bytes],
    cancel_event=None,
) -> AsyncIterator[SSEEnvelope]:
    """将字节流解析为 SSE envelope 序列

    Args:
        chunks: 原始字节块（任意切分）
        cancel_event: 协作式取消信号（asyncio.Event），每次读取前检查

    Yields:
        SSEEnvelope，按到达顺序

    行为:
        - 未以换行结束的尾行保留到下一次读取
        - data 为 [DONE] 时立即结束，不再产出任何 envelope
        - 输入结束时，残留的未终止行按完整行处理
    """
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    parser = _SSELineParser()
    buffer = ""
    iterator = chunks.__aiter__()

    while True:
        if _is_cancelled(cancel_event):
            log.debug("sse_stream_cancelled")
            return

        try:
            raw = await iterator.__anext__()
        except StopAsyncIteration:
            break

        buffer += decoder.decode(raw)
        *lines, buffer = buffer.split("\n")

        for line in lines:
            envelope = parser.feed(line)
            if parser.done:
                return
            if envelope is not None:
                if _is_cancelled(cancel_event):
                    return
                yield envelope

    buffer += decoder.decode(b"", final=True)
    if buffer:
        envelope = parser.feed(buffer)
        if envelope is not None and not parser.done:
            yield envelope


def _drain_json_objects(buffer: str, decoder: json.JSONDecoder) -> tuple[str, list[Any]]:
    """从缓冲区中尽可能多地解析完整 JSON 值

    Returns:
        (剩余缓冲区, 已解析的对象列表)；解析失败视为"尚未完整"
    """
    objects: list[Any] = []
    while True:
        buffer = _NDJSON_LEADING.sub("", buffer)
        if not buffer:
            return buffer, objects
        try:
            obj, end = decoder.raw_decode(buffer)
        except json.JSONDecodeError:
            return buffer, objects
        objects.append(obj)
        buffer = buffer[end:]


async def iter_ndjson_objects(
    chunks: AsyncIterable[bytes],
    cancel_event=None,
) -> AsyncIterator[Any]:
    """将数组包裹的流式 JSON 解析为对象序列

    每次读取后剥离开头的 [ / , 与结尾的 ]，尝试解析；
    解析失败视为数据不完整，等待下一次读取，从不抛异常。

    Args:
        chunks: 原始字节块
        cancel_event: 协作式取消信号，每次读取前检查

    Yields:
        解析出的 JSON 对象
    """
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    json_decoder = json.JSONDecoder()
    buffer = ""
    iterator = chunks.__aiter__()

    while True:
        if _is_cancelled(cancel_event):
            log.debug("ndjson_stream_cancelled")
            return

        try:
            raw = await iterator.__anext__()
        except StopAsyncIteration:
            break

        buffer += decoder.decode(raw)
        buffer, objects = _drain_json_objects(buffer, json_decoder)
        for obj in objects:
            yield obj

    if buffer.strip():
        log.debug("ndjson_trailing_data_dropped", length=len(buffer))


def estimate_tokens(text: str) -> int:
    """粗略估算 token 数（约 4 字符 / token）"""
    return math.ceil(len(text) / 4)
