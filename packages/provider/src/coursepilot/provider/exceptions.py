"""Provider 异常体系

网络层的非成功响应统一使用 coursepilot.core.exceptions.TransportError；
此处只定义 Provider 选择与配置相关的异常。
"""

from coursepilot.core.exceptions import CoursePilotError, TransportError


class ProviderError(CoursePilotError):
    """Provider 包基础异常"""

    def __init__(self, message: str, recoverable: bool = False) -> None:
        """
        Args:
            message: 错误描述
            recoverable: 是否可通过修改配置后重试恢复
        """
        super().__init__(message, recoverable=recoverable)


class UnsupportedProviderError(ProviderError):
    """声明的 Provider 类型不在封闭集合内"""

    def __init__(self, provider_type: str) -> None:
        super().__init__(f"Unsupported provider type: {provider_type!r}")
        self.provider_type = provider_type


class MissingCredentialsError(ProviderError):
    """当前 Provider 缺少必需的 API key

    配置修复后即可恢复。
    """

    def __init__(self, provider_type: str) -> None:
        super().__init__(
            f"No API key configured for provider {provider_type!r}",
            recoverable=True,
        )
        self.provider_type = provider_type


__all__ = [
    "ProviderError",
    "UnsupportedProviderError",
    "MissingCredentialsError",
    "TransportError",
]
