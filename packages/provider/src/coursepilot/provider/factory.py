"""Provider Factory -- (类型, key, 模型, 基础 URL) -> 适配器

纯选择逻辑，不发起网络请求。
"""

import httpx
import structlog
from coursepilot.core.models import ProviderType

from .anthropic import AnthropicProvider
from .base import HTTPStreamingProvider
from .config import ProviderConfig
from .exceptions import MissingCredentialsError, UnsupportedProviderError
from .gateway import GatewayProvider
from .gemini import GeminiProvider
from .openai import OpenAIProvider

log = structlog.get_logger()

DEFAULT_MODELS: dict[ProviderType, str] = {
    ProviderType.ANTHROPIC: "claude-sonnet-4-5-20250929",
    ProviderType.OPENAI: "gpt-4o",
    ProviderType.GEMINI: "gemini-3-flash-preview",
    ProviderType.GATEWAY: "default",
}

_PROVIDER_CLASSES: dict[ProviderType, type[HTTPStreamingProvider]] = {
    ProviderType.ANTHROPIC: AnthropicProvider,
    ProviderType.OPENAI: OpenAIProvider,
    ProviderType.GEMINI: GeminiProvider,
    ProviderType.GATEWAY: GatewayProvider,
}


def _coerce_provider_type(provider_type: ProviderType | str) -> ProviderType:
    try:
        return ProviderType(provider_type)
    except ValueError:
        raise UnsupportedProviderError(str(provider_type)) from None


def create_provider(
    provider_type: ProviderType | str,
    api_key: str,
    model: str | None = None,
    base_url: str | None = None,
    *,
    timeout_s: float = 30,
    http_client: httpx.AsyncClient | None = None,
) -> HTTPStreamingProvider:
    """创建 Provider 适配器

    Args:
        provider_type: Provider 类型（封闭集合）
        api_key: API key（gateway 可为空）
        model: 模型覆盖，None 或空串使用默认模型
        base_url: 基础 URL 覆盖（主要用于 gateway）
        timeout_s: 请求超时（秒）
        http_client: 注入的 httpx 客户端

    Returns:
        对应的适配器实例

    Raises:
        UnsupportedProviderError: 类型不在封闭集合内
    """
    resolved = _coerce_provider_type(provider_type)
    provider_cls = _PROVIDER_CLASSES[resolved]
    return provider_cls(
        api_key,
        model or DEFAULT_MODELS[resolved],
        base_url=base_url,
        timeout_s=timeout_s,
        http_client=http_client,
    )


def create_provider_from_config(
    config: ProviderConfig,
    *,
    http_client: httpx.AsyncClient | None = None,
) -> HTTPStreamingProvider:
    """按当前配置创建 Provider

    Raises:
        MissingCredentialsError: 非 gateway Provider 缺少 API key
    """
    api_key = config.api_key_for(config.provider)
    if not api_key and config.provider != ProviderType.GATEWAY:
        raise MissingCredentialsError(config.provider.value)

    base_url = config.gateway_url if config.provider == ProviderType.GATEWAY else None
    provider = create_provider(
        config.provider,
        api_key,
        config.model,
        base_url,
        timeout_s=config.timeout_s,
        http_client=http_client,
    )
    log.debug("provider_created", provider=config.provider.value, model=provider.model)
    return provider
