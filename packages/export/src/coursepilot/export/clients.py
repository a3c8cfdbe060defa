"""远端文档服务客户端 -- 文档生成 + PDF 服务

两个服务各自使用独立的 client_id / client_secret 请求头。
任何非 2xx 响应都抛出 TransportError，不重试。
"""

import base64
from contextlib import asynccontextmanager
from typing import Any

import httpx
import structlog
from coursepilot.core.exceptions import TransportError
from coursepilot.core.models import RemoteTask, ServiceCredentials

log = structlog.get_logger()

DEFAULT_BASE_URL = "https://na1.fusion.foxit.com"

# 远端服务请求超时（秒）
REQUEST_TIMEOUT_S = 60

# validate() 请求超时（秒）
VALIDATE_TIMEOUT_S = 10

# 凭据被拒绝的状态码；其余状态一律视为凭据可用
_AUTH_REJECTED = frozenset({401, 403})


class _DocumentServiceClient:
    """共享的会话管理与响应检查"""

    service_name: str = ""

    def __init__(
        self,
        credentials: ServiceCredentials,
        base_url: str = DEFAULT_BASE_URL,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Args:
            credentials: 本服务的 client_id / client_secret
            base_url: 服务基础 URL
            http_client: 注入的 httpx 客户端，不由本类关闭
        """
        self._credentials = credentials
        self._base_url = base_url.rstrip("/")
        self._http_client = http_client

    @asynccontextmanager
    async def _session(self):
        if self._http_client is not None:
            yield self._http_client
            return
        async with httpx.AsyncClient(timeout=REQUEST_TIMEOUT_S) as client:
            yield client

    def _url(self, path: str) -> str:
        return f"{self._base_url}{path}"

    def _check(self, response: httpx.Response) -> httpx.Response:
        if not response.is_success:
            log.warning(
                "document_service_rejected",
                service=self.service_name,
                status_code=response.status_code,
            )
            raise TransportError(self.service_name, response.status_code, response.text)
        return response

    async def _auth_accepted(self, method: str, path: str, **kwargs: Any) -> bool:
        try:
            async with self._session() as client:
                resp = await client.request(
                    method,
                    self._url(path),
                    headers=self._credentials.headers(),
                    timeout=VALIDATE_TIMEOUT_S,
                    **kwargs,
                )
                return resp.status_code not in _AUTH_REJECTED
        except Exception as e:
            log.debug("document_service_validate_failed", service=self.service_name, error=str(e))
            return False


class DocGenClient(_DocumentServiceClient):
    """文档生成服务 -- .docx 模板 + 数据 -> PDF"""

    service_name = "doc-gen"
    generate_path = "/document-generation/api/GenerateDocumentBase64"

    async def generate(self, template_bytes: bytes, values: dict[str, Any]) -> bytes:
        """渲染模板为 PDF

        Args:
            template_bytes: .docx 模板原始字节
            values: 模板数据（扁平 key/value 及循环表）

        Returns:
            生成的 PDF 字节
        """
        body = {
            "outputFormat": "pdf",
            "documentValues": values,
            "base64FileString": base64.b64encode(template_bytes).decode("ascii"),
        }
        async with self._session() as client:
            resp = await client.post(
                self._url(self.generate_path),
                headers=self._credentials.headers(),
                json=body,
            )
        result = self._check(resp).json()
        pdf_bytes = base64.b64decode(result["base64FileString"])
        log.debug("document_generated", size=len(pdf_bytes))
        return pdf_bytes

    async def validate(self) -> bool:
        """空模板请求：业务错误说明凭据可用，仅 401/403 或网络异常返回 False"""
        return await self._auth_accepted(
            "POST",
            self.generate_path,
            json={"outputFormat": "pdf", "documentValues": {}, "base64FileString": ""},
        )


class PdfServicesClient(_DocumentServiceClient):
    """PDF 服务 -- 上传 / 合并 / 压缩 / 任务查询 / 下载"""

    service_name = "pdf-services"

    async def upload(self, pdf_bytes: bytes, filename: str) -> str:
        """multipart 上传，返回文档 ID"""
        files = {"file": (filename, pdf_bytes, "application/pdf")}
        async with self._session() as client:
            resp = await client.post(
                self._url("/pdf-services/api/documents/upload"),
                headers=self._credentials.headers(),
                files=files,
            )
        document_id = self._check(resp).json()["documentId"]
        log.debug("document_uploaded", filename=filename, document_id=document_id)
        return document_id

    async def _start_task(self, path: str, body: dict[str, Any]) -> str:
        async with self._session() as client:
            resp = await client.post(
                self._url(path),
                headers=self._credentials.headers(),
                json=body,
            )
        return self._check(resp).json()["taskId"]

    async def combine(self, document_ids: list[str]) -> str:
        """按顺序合并多个文档，返回远端任务 ID"""
        return await self._start_task(
            "/pdf-services/api/documents/enhance/pdf-combine",
            {"documentIds": document_ids},
        )

    async def compress(self, document_id: str, level: str = "medium") -> str:
        """压缩文档，返回远端任务 ID"""
        return await self._start_task(
            "/pdf-services/api/documents/modify/pdf-compress",
            {"documentId": document_id, "compressionLevel": level},
        )

    async def poll_task(self, task_id: str) -> RemoteTask:
        """单次查询任务状态（退避由 poller 负责）"""
        async with self._session() as client:
            resp = await client.get(
                self._url(f"/pdf-services/api/tasks/{task_id}"),
                headers=self._credentials.headers(),
            )
        data = self._check(resp).json()
        data.setdefault("taskId", task_id)
        return RemoteTask.model_validate(data)

    async def download(self, document_id: str) -> bytes:
        """下载文档原始字节"""
        async with self._session() as client:
            resp = await client.get(
                self._url(f"/pdf-services/api/documents/{document_id}/download"),
                headers=self._credentials.headers(),
            )
        return self._check(resp).content

    async def validate(self) -> bool:
        """查询不存在的任务：仅 401/403 或网络异常返回 False"""
        return await self._auth_accepted("GET", "/pdf-services/api/tasks/nonexistent")
