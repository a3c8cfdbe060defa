"""HttpTemplateLoader -- 从静态文件服务加载 .docx 模板"""

import httpx
import structlog

from .exceptions import TemplateLoadError

log = structlog.get_logger()


class HttpTemplateLoader:
    """按文件名从 {base_url}/{name} 读取模板字节"""

    def __init__(
        self,
        base_url: str,
        http_client: httpx.AsyncClient | None = None,
        timeout_s: float = 30,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._http_client = http_client
        self._timeout_s = timeout_s

    async def load(self, name: str) -> bytes:
        """读取模板

        Raises:
            TemplateLoadError: 模板服务返回非 2xx
        """
        url = f"{self._base_url}/{name}"
        if self._http_client is not None:
            resp = await self._http_client.get(url)
        else:
            async with httpx.AsyncClient(timeout=self._timeout_s) as client:
                resp = await client.get(url)

        if not resp.is_success:
            log.warning("template_load_failed", template=name, status_code=resp.status_code)
            raise TemplateLoadError(name, resp.status_code)
        return resp.content
