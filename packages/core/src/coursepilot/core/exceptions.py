"""Core 异常体系

TransportError 由所有 Provider 与远端文档服务共享：
任何非 2xx 响应对当次调用都是致命的，携带状态码与原始响应体向上传播。
"""

from .config import ERROR_BODY_PREVIEW_LENGTH


class CoursePilotError(Exception):
    """CoursePilot 基础异常"""

    def __init__(self, message: str, recoverable: bool = False) -> None:
        """
        Args:
            message: 错误描述
            recoverable: 调用方是否可以通过重新发起请求恢复
        """
        super().__init__(message)
        self.recoverable = recoverable


class TransportError(CoursePilotError):
    """远端返回非成功状态码

    不重试；由直接调用方决定如何处理。
    """

    def __init__(self, service: str, status_code: int, body: str) -> None:
        """
        Args:
            service: 服务名（如 anthropic / pdf-services）
            status_code: HTTP 状态码
            body: 原始响应体
        """
        preview = body[:ERROR_BODY_PREVIEW_LENGTH]
        super().__init__(
            f"{service} API error ({status_code}): {preview}",
            recoverable=status_code >= 500 or status_code == 429,
        )
        self.service = service
        self.status_code = status_code
        self.body = body
