"""WS /ws/stream 测试 -- Starlette TestClient"""

import asyncio
import json

from coursepilot.core.models import ProviderType
from coursepilot.gateway.routes import stream
from coursepilot.gateway.services.stream_relay import StreamRelay
from fastapi import FastAPI
from fastapi.testclient import TestClient


class EchoProvider:
    """逐词回显最后一条消息"""

    provider_type = ProviderType.GATEWAY
    model = "echo"

    async def stream(self, messages, options=None):
        for word in messages[-1].content.split(" "):
            await asyncio.sleep(0)
            yield word + " "

    async def validate(self) -> bool:
        return True


def _app() -> FastAPI:
    async def resolve():
        return EchoProvider()

    app = FastAPI()
    app.include_router(stream.router)
    app.state.stream_relay = StreamRelay(resolve)
    return app


def _request(request_id: str, text: str) -> dict:
    return {
        "type": "STREAM_REQUEST",
        "requestId": request_id,
        "messages": [{"role": "user", "content": text}],
    }


def _receive_until_terminal(ws, request_ids: set[str]) -> dict[str, list[dict]]:
    received: dict[str, list[dict]] = {rid: [] for rid in request_ids}
    remaining = set(request_ids)
    while remaining:
        event = ws.receive_json()
        received[event["requestId"]].append(event)
        if event["type"] in ("STREAM_END", "STREAM_ERROR"):
            remaining.discard(event["requestId"])
    return received


class TestStreamSocket:
    def test_single_stream(self):
        with TestClient(_app()) as client, client.websocket_connect("/ws/stream") as ws:
            ws.send_json(_request("req-1", "hello world"))
            events = _receive_until_terminal(ws, {"req-1"})["req-1"]

        assert [e["type"] for e in events] == [
            "STREAM_START",
            "STREAM_CHUNK",
            "STREAM_CHUNK",
            "STREAM_END",
        ]
        assert "".join(e.get("chunk", "") for e in events) == "hello world "

    def test_two_streams_on_one_connection(self):
        with TestClient(_app()) as client, client.websocket_connect("/ws/stream") as ws:
            ws.send_json(_request("A", "one two three"))
            ws.send_json(_request("B", "four five"))
            received = _receive_until_terminal(ws, {"A", "B"})

        for request_id, text in (("A", "one two three "), ("B", "four five ")):
            events = received[request_id]
            assert events[0]["type"] == "STREAM_START"
            assert events[-1]["type"] == "STREAM_END"
            assert "".join(e.get("chunk", "") for e in events) == text

    def test_bad_messages_do_not_close_connection(self):
        with TestClient(_app()) as client, client.websocket_connect("/ws/stream") as ws:
            ws.send_text("not json")
            ws.send_bytes(b"\x00")
            ws.send_bytes(b"\xff\xfe")
            ws.send_json({"type": "PING"})
            ws.send_json({"type": "STREAM_REQUEST", "requestId": "bad", "messages": []})
            ws.send_json(_request("ok", "still alive"))
            received = _receive_until_terminal(ws, {"ok"})

        assert received["ok"][-1]["type"] == "STREAM_END"

    def test_binary_json_frame_is_accepted(self):
        with TestClient(_app()) as client, client.websocket_connect("/ws/stream") as ws:
            ws.send_bytes(json.dumps(_request("bin", "from bytes")).encode())
            events = _receive_until_terminal(ws, {"bin"})["bin"]

        assert events[-1]["type"] == "STREAM_END"
        assert "".join(e.get("chunk", "") for e in events) == "from bytes "
