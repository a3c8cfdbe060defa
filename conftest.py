"""全局 pytest 配置 -- 临时 SQLite store + 远端服务替身 fixture"""

import base64
import json
from collections.abc import AsyncGenerator, Callable
from pathlib import Path

import httpx
import pytest
import pytest_asyncio
from coursepilot.core.store import SqliteKeyValueStore, create_kv_store


@pytest_asyncio.fixture
async def tmp_db_path(tmp_path: Path) -> Path:
    """提供临时 SQLite 数据库路径"""
    return tmp_path / "sqlite" / "test.db"


@pytest_asyncio.fixture
async def kv_store(tmp_db_path: Path) -> AsyncGenerator[SqliteKeyValueStore, None]:
    """提供已初始化的临时 KeyValueStore"""
    store = await create_kv_store(tmp_db_path)
    yield store
    await store.conn.close()


def anthropic_sse_body(deltas: list[str]) -> bytes:
    """按 Anthropic Messages 流格式拼出 SSE 响应体"""
    events = [("message_start", {"type": "message_start"})]
    events.append(("content_block_start", {"type": "content_block_start", "index": 0}))
    for text in deltas:
        events.append(
            (
                "content_block_delta",
                {
                    "type": "content_block_delta",
                    "index": 0,
                    "delta": {"type": "text_delta", "text": text},
                },
            )
        )
    events.append(("message_stop", {"type": "message_stop"}))
    return "".join(
        f"event: {name}\ndata: {json.dumps(data)}\n\n" for name, data in events
    ).encode()


class FakeAnthropicService:
    """Anthropic Messages API 替身

    /v1/messages 上 stream=true 的请求返回 deltas 组成的 SSE 流，
    其余请求（validate 探测）返回一个普通 JSON 响应。
    """

    def __init__(self, deltas: list[str] | None = None, status_code: int = 200) -> None:
        self.deltas = deltas if deltas is not None else ["Hel", "lo"]
        self.status_code = status_code
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.status_code != 200:
            return httpx.Response(self.status_code, json={"error": {"message": "rejected"}})
        body = json.loads(request.content)
        if body.get("stream"):
            return httpx.Response(
                200,
                content=anthropic_sse_body(self.deltas),
                headers={"content-type": "text/event-stream"},
            )
        return httpx.Response(200, json={"content": [{"type": "text", "text": "Hi"}]})

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


class FakeDocumentService:
    """文档生成 + PDF 服务替身

    - 文档生成：返回 "%PDF-<模板内容>"
    - 上传：按顺序分配 doc-1、doc-2 ...
    - combine / compress：任务首次查询为 PROCESSING，第二次 COMPLETED
    - 下载：返回 "%PDF-final:<文档 ID>"

    fail_on 指定的路径片段返回 500。
    """

    def __init__(self, fail_on: str | None = None, task_status: str = "COMPLETED") -> None:
        self.fail_on = fail_on
        self.task_status = task_status
        self.requests: list[httpx.Request] = []
        self._next_doc = 0
        self._tasks: dict[str, dict] = {}

    def paths(self) -> list[str]:
        return [r.url.path for r in self.requests]

    def _new_doc_id(self) -> str:
        self._next_doc += 1
        return f"doc-{self._next_doc}"

    def _new_task(self, kind: str) -> httpx.Response:
        task_id = f"task-{kind}-{len(self._tasks) + 1}"
        self._tasks[task_id] = {"polls": 0, "result": self._new_doc_id()}
        return httpx.Response(200, json={"taskId": task_id})

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if self.fail_on and self.fail_on in path:
            return httpx.Response(500, text=f"{self.fail_on} unavailable")

        if path.endswith("/GenerateDocumentBase64"):
            template = base64.b64decode(json.loads(request.content)["base64FileString"])
            pdf = b"%PDF-" + template
            return httpx.Response(200, json={"base64FileString": base64.b64encode(pdf).decode()})
        if path.endswith("/documents/upload"):
            return httpx.Response(200, json={"documentId": self._new_doc_id()})
        if path.endswith("/pdf-combine"):
            return self._new_task("combine")
        if path.endswith("/pdf-compress"):
            return self._new_task("compress")
        if "/tasks/" in path:
            task = self._tasks.get(path.rsplit("/", 1)[-1])
            if task is None:
                return httpx.Response(404, json={"error": "task not found"})
            task["polls"] += 1
            if task["polls"] < 2:
                return httpx.Response(200, json={"status": "PROCESSING"})
            if self.task_status == "COMPLETED":
                return httpx.Response(
                    200, json={"status": "COMPLETED", "resultDocumentId": task["result"]}
                )
            return httpx.Response(200, json={"status": self.task_status, "error": "remote failure"})
        if path.endswith("/download"):
            document_id = path.split("/")[-2]
            return httpx.Response(200, content=f"%PDF-final:{document_id}".encode())
        return httpx.Response(404)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


class StaticTemplateLoader:
    """返回固定内容的模板来源"""

    def __init__(self) -> None:
        self.loaded: list[str] = []

    async def load(self, name: str) -> bytes:
        self.loaded.append(name)
        return name.encode()


@pytest.fixture
def anthropic_service() -> Callable[..., FakeAnthropicService]:
    return FakeAnthropicService


@pytest.fixture
def document_service() -> Callable[..., FakeDocumentService]:
    return FakeDocumentService


@pytest.fixture
def static_templates() -> StaticTemplateLoader:
    return StaticTemplateLoader()


@pytest.fixture
def portfolio_payload() -> dict:
    """PUT /api/courses/{course_id}/portfolio 请求体"""
    return {
        "certificate": {
            "courseName": "Intro to Python",
            "overallMastery": "87%",
            "completionDate": "February 20, 2026",
            "bloomLevelsAchieved": "Remember, Understand, Apply",
            "totalPagesStudied": "12",
            "totalQuizzesTaken": "8",
            "masteryThreshold": "80%",
        },
        "report": {
            "courseName": "Intro to Python",
            "overallMastery": "87%",
            "totalPages": "12",
            "pagesMastered": "10",
            "completionDate": "February 20, 2026",
            "pages": [{"pageTitle": "Variables", "masteryScore": "92%", "status": "Mastered"}],
            "bloomPerformance": [
                {"level": "Remember", "questionsAttempted": "10", "correctRate": "90%"}
            ],
            "missedQuestions": [],
            "chatTopics": [{"topic": "Loops", "messageCount": "4"}],
        },
    }
