"""Relay WebSocket 路由

WS /ws/stream: 一个连接即一个 relay 通道。
客户端发送 STREAM_REQUEST，服务端按 requestId 推送
STREAM_START / STREAM_CHUNK / STREAM_END / STREAM_ERROR。
连接断开时取消该连接上所有进行中的流。
"""

import json
from typing import Any

import structlog
from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError
from ulid import ULID

from ..services.stream_relay import StreamConflictError, StreamRelay

log = structlog.get_logger()

router = APIRouter()


class WebSocketChannel:
    """把 WebSocket 连接包装为 RelayChannel"""

    def __init__(self, websocket: WebSocket) -> None:
        self.websocket = websocket
        self.channel_id = f"ws-{ULID()}"

    async def send(self, message: dict[str, Any]) -> None:
        await self.websocket.send_json(message)


def _frame_text(message: dict[str, Any]) -> str | None:
    """取出文本帧；二进制帧按 UTF-8 解码，无法解码返回 None"""
    if message.get("text") is not None:
        return message["text"]
    data = message.get("bytes")
    if data is None:
        return None
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        return None


@router.websocket("/ws/stream")
async def stream_socket(websocket: WebSocket):
    """Relay 通道端点

    无法解码的帧、非法 JSON、字段不合法的请求、重复的 requestId 只记录 warning，
    不回送任何事件，连接保持可用。
    """
    relay: StreamRelay = websocket.app.state.stream_relay
    await websocket.accept()
    channel = WebSocketChannel(websocket)
    log.info("relay_channel_opened", channel_id=channel.channel_id)

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(message.get("code", 1000))

            text = _frame_text(message)
            if text is None:
                log.warning("relay_frame_unreadable", channel_id=channel.channel_id)
                continue

            try:
                raw = json.loads(text)
            except json.JSONDecodeError:
                log.warning("relay_message_invalid_json", channel_id=channel.channel_id)
                continue

            try:
                await relay.handle_message(channel, raw)
            except StreamConflictError as e:
                log.warning("stream_conflict", request_id=e.request_id)
            except ValidationError as e:
                log.warning(
                    "relay_message_invalid",
                    channel_id=channel.channel_id,
                    error_count=e.error_count(),
                )
    except WebSocketDisconnect:
        log.info("relay_channel_disconnected", channel_id=channel.channel_id)
    finally:
        await relay.channel_closed(channel)
