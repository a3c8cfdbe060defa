"""CoursePilot Provider -- 流式推理 Provider 抽象层

packages/provider 的公开接口导出。
"""

# 适配器
from .anthropic import AnthropicProvider
from .base import HTTPStreamingProvider, ProviderCapability

# 配置
from .config import ProviderConfig, load_provider_config

# 异常
from .exceptions import (
    MissingCredentialsError,
    ProviderError,
    TransportError,
    UnsupportedProviderError,
)
from .factory import DEFAULT_MODELS, create_provider, create_provider_from_config

# 帧解析
from .framing import SSEEnvelope, estimate_tokens, iter_ndjson_objects, iter_sse_envelopes
from .gateway import GatewayProvider
from .gemini import GeminiProvider
from .openai import OpenAIProvider

__all__ = [
    "ProviderCapability",
    "HTTPStreamingProvider",
    "AnthropicProvider",
    "OpenAIProvider",
    "GeminiProvider",
    "GatewayProvider",
    "DEFAULT_MODELS",
    "create_provider",
    "create_provider_from_config",
    "SSEEnvelope",
    "iter_sse_envelopes",
    "iter_ndjson_objects",
    "estimate_tokens",
    "ProviderConfig",
    "load_provider_config",
    "ProviderError",
    "UnsupportedProviderError",
    "MissingCredentialsError",
    "TransportError",
]
